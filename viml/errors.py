from __future__ import annotations

from enum import Enum


class VimError(Exception):
    """ Base class for all script errors; `code` is the Vim error number"""
    code: str = ""
    # name of the command that raised it, set by the dispatcher
    command: str | None = None

    def __init__(self, message: str, code: str | None = None):
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(f"{self.code}: {message}" if self.code else message)


class UndefinedVariable(VimError):
    """ Raised when a variable is read before it is defined"""
    code = "E121"


class IllegalVariableName(VimError):
    """ Raised when a scoped name is used outside of its context (l: outside a function)"""
    code = "E461"


class ReadOnlyVariable(VimError):
    """ Raised when assigning to a read-only variable such as v:val or a:1"""
    code = "E46"


class LockedValue(VimError):
    """ Raised when mutating a locked binding, container or element"""
    code = "E741"


class CoercionKind(Enum):
    """Offending conversion of a TypeCoercionError, as (code, message)."""
    LIST_AS_NUMBER = ("E745", "Using a List as a Number")
    DICT_AS_NUMBER = ("E728", "Using a Dictionary as a Number")
    FUNCREF_AS_NUMBER = ("E703", "Using a Funcref as a Number")
    BLOB_AS_NUMBER = ("E974", "Using a Blob as a Number")
    FLOAT_AS_NUMBER = ("E805", "Using a Float as a Number")
    LIST_AS_STRING = ("E730", "Using a List as a String")
    DICT_AS_STRING = ("E731", "Using a Dictionary as a String")
    FUNCREF_AS_STRING = ("E729", "Using a Funcref as a String")
    BLOB_AS_STRING = ("E976", "Using a Blob as a String")
    FLOAT_AS_STRING = ("E806", "Using a Float as a String")
    LIST_AS_FLOAT = ("E893", "Using a List as a Float")
    DICT_AS_FLOAT = ("E894", "Using a Dictionary as a Float")
    FUNCREF_AS_FLOAT = ("E891", "Using a Funcref as a Float")
    BLOB_AS_FLOAT = ("E975", "Using a Blob as a Float")
    STRING_AS_FLOAT = ("E892", "Using a String as a Float")

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def message(self) -> str:
        return self.value[1]


class TypeCoercionError(VimError):
    """ Raised when a value cannot be converted to the type an operation needs"""

    def __init__(self, kind: CoercionKind):
        self.kind = kind
        super().__init__(kind.message, kind.code)


class InvalidOperation(VimError):
    """ Raised for operators that are not defined for their operand types"""
    code = "E15"


class WrongVariableType(VimError):
    """ Raised by compound assignment with an unsupported operand (let x += [1])"""
    code = "E734"


class InvalidRange(VimError):
    """ Raised when a range is malformed or its end precedes its start"""
    code = "E16"


class IndexOutOfRange(VimError):
    """ Raised when a List or Blob index is outside the container"""
    code = "E684"


class KeyNotPresent(VimError):
    """ Raised when a Dictionary key is missing"""
    code = "E716"


class KeyAlreadyExists(VimError):
    """ Raised by extend(..., 'error') on a conflicting key"""
    code = "E737"


class TooFewArguments(VimError):
    """ Raised when a function is called with fewer arguments than it requires"""
    code = "E119"


class TooManyArguments(VimError):
    """ Raised when a function is called with more arguments than it accepts"""
    code = "E118"


class InvalidArgument(VimError):
    """ Raised when an argument has an unsupported value"""
    code = "E475"


class InvalidExpression(VimError):
    """ Raised when an expression cannot be parsed"""
    code = "E15"


class UnknownFunction(VimError):
    """ Raised when calling a function that is not defined"""
    code = "E117"


class UnknownCommand(VimError):
    """ Raised when a command line does not name an Ex command"""
    code = "E492"


class AliasRecursionLimitExceeded(VimError):
    """ Raised when user command aliases expand into each other too deeply"""


class ExternalProcessTerminated(VimError):
    """ Raised when an external filter or shell command is interrupted"""


class NoRangeAllowed(VimError):
    """ Raised when a range is given to a command that forbids one"""
    code = "E481"


class MissingRange(VimError):
    """ Raised when a command that requires a range is given none"""
    code = "E14"


class NoArgumentAllowed(VimError):
    """ Raised when an argument is given to a command that forbids one"""
    code = "E488"


class MissingArgument(VimError):
    """ Raised when a command that requires an argument is given none"""
    code = "E471"


class VimThrow(VimError):
    """ User exception raised by :throw and caught by :try/:catch"""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Exception not caught: {value}", "E605")
