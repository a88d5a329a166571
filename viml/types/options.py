"""Editor options visible to scripts as &name and changed with :set."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from viml import config
from viml.errors import InvalidArgument, VimError
from viml.types.coercion import to_number, to_string
from viml.types.values import VimInt, VimString, VimValue


class OptionType(Enum):
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"


@dataclass(frozen=True)
class Option:
    name: str
    abbrev: str
    type: OptionType
    default: bool | int | str


def default_options() -> list[Option]:
    return [
        Option("ignorecase", "ic", OptionType.BOOLEAN, config.get_ignorecase_default()),
        Option("smartcase", "scs", OptionType.BOOLEAN, False),
        Option("gdefault", "gd", OptionType.BOOLEAN, False),
        Option("wrapscan", "ws", OptionType.BOOLEAN, True),
        Option("expandtab", "et", OptionType.BOOLEAN, False),
        Option("shiftwidth", "sw", OptionType.NUMBER, 8),
        Option("tabstop", "ts", OptionType.NUMBER, 8),
        Option("history", "hi", OptionType.NUMBER, config.get_history_size()),
        Option("maxfuncdepth", "mfd", OptionType.NUMBER, config.get_max_function_depth()),
        Option("shell", "sh", OptionType.STRING, config.get_shell()),
    ]


class UnknownOption(VimError):
    """ Raised when naming an option that does not exist"""
    code = "E518"


class OptionStore:
    """Current option values keyed by full option name."""

    __slots__ = ("options", "values")

    def __init__(self, options: list[Option] | None = None):
        self.options: dict[str, Option] = {}
        for option in options if options is not None else default_options():
            self.options[option.name] = option
            self.options[option.abbrev] = option
        self.values: dict[str, bool | int | str] = {
            option.name: option.default for option in self.options.values()
        }

    def find(self, name: str) -> Option:
        option = self.options.get(name)
        if option is None:
            raise UnknownOption(f"Unknown option: {name}")
        return option

    def get(self, name: str) -> bool | int | str:
        return self.values[self.find(name).name]

    def set(self, name: str, raw: bool | int | str) -> None:
        self.values[self.find(name).name] = raw

    def reset(self, name: str) -> None:
        option = self.find(name)
        self.values[option.name] = option.default

    def get_value(self, name: str) -> VimValue:
        """Value of &name as seen by expressions."""
        option = self.find(name)
        raw = self.values[option.name]
        if option.type is OptionType.STRING:
            return VimString(str(raw))
        return VimInt(int(raw))

    def set_value(self, name: str, value: VimValue) -> None:
        """Assignment through `let &name = value`."""
        option = self.find(name)
        match option.type:
            case OptionType.BOOLEAN:
                self.values[option.name] = to_number(value) != 0
            case OptionType.NUMBER:
                self.values[option.name] = to_number(value)
            case OptionType.STRING:
                self.values[option.name] = to_string(value)

    def format(self, name: str) -> str:
        option = self.find(name)
        raw = self.values[option.name]
        if option.type is OptionType.BOOLEAN:
            return f"  {option.name}" if raw else f"no{option.name}"
        return f"  {option.name}={raw}"

    def apply_set_argument(self, token: str) -> str | None:
        """Apply one :set token (ic, noic, invic, ic!, sw=4, sw+=2, ic?, ic&).

        Returns the text to show for queries, otherwise None.
        """
        for operator in ("+=", "-=", "^=", "="):
            if operator in token:
                name, _, raw = token.partition(operator)
                self._assign(name, operator, raw)
                return None
        if token.endswith("?"):
            return self.format(token[:-1])
        if token.endswith("&"):
            self.reset(token[:-1])
            return None
        if token.endswith("!"):
            return self._toggle(token[:-1])
        if token.startswith("inv") and token not in self.options and token[3:] in self.options:
            return self._toggle(token[3:])
        if token.startswith("no") and token not in self.options and token[2:] in self.options:
            option = self._boolean(token[2:])
            self.values[option.name] = False
            return None
        option = self.find(token)
        if option.type is OptionType.BOOLEAN:
            self.values[option.name] = True
            return None
        return self.format(token)

    def _toggle(self, name: str) -> None:
        option = self._boolean(name)
        self.values[option.name] = not self.values[option.name]
        return None

    def _boolean(self, name: str) -> Option:
        option = self.find(name)
        if option.type is not OptionType.BOOLEAN:
            raise InvalidArgument(f"Invalid argument: {name}")
        return option

    def _assign(self, name: str, operator: str, raw: str) -> None:
        option = self.find(name)
        current = self.values[option.name]
        match option.type:
            case OptionType.BOOLEAN:
                raise InvalidArgument(f"Invalid argument: {name}{operator}{raw}")
            case OptionType.NUMBER:
                if not raw.lstrip("-").isdigit():
                    raise VimError(f"Number required after =: {name}{operator}{raw}", "E521")
                n = int(raw)
                match operator:
                    case "+=":
                        n = int(current) + n
                    case "-=":
                        n = int(current) - n
                    case "^=":
                        n = int(current) * n
                self.values[option.name] = n
            case OptionType.STRING:
                match operator:
                    case "+=":
                        raw = f"{current},{raw}" if current else raw
                    case "^=":
                        raw = f"{raw},{current}" if current else raw
                    case "-=":
                        raw = ",".join(p for p in str(current).split(",") if p != raw)
                self.values[option.name] = raw

    @property
    def ignorecase(self) -> bool:
        return bool(self.values["ignorecase"])
