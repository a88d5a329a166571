"""Runtime values of the script language.

Every runtime value is an instance of exactly one of the classes below; the
union alias `VimValue` is the closed set matched by coercion and comparison
code. List, Dictionary and Blob are mutable reference types, the scalar
classes are immutable apart from their lock state.

Each value carries a lock state (`locked`, `lock_owner`, `lock_depth`).
`lock_var(depth)` follows :lockvar numbering: depth 1 locks the value itself,
depth 2 also locks the items of a container, and so on; a negative depth
locks the whole nested structure.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Iterator, assert_never

from viml.errors import VimError

if TYPE_CHECKING:
    from viml.types.function import FunctionHandler


INT_MIN = -(2 ** 31)
INT_MAX = 2 ** 31 - 1
MAX_COPY_DEPTH = 100


def wrap32(n: int) -> int:
    """Wrap a Python int into the signed 32-bit range (two's complement)."""
    return ((n - INT_MIN) % 2 ** 32) + INT_MIN


class VimDataType:
    """Common lock state for every value."""

    __slots__ = ("locked", "lock_owner", "lock_depth")

    def __init__(self) -> None:
        self.locked: bool = False
        self.lock_owner: str | None = None
        self.lock_depth: int = 0

    @property
    def is_locked(self) -> bool:
        return self.locked

    def lock_var(self, depth: int, owner: str | None = None) -> None:
        self.locked = True
        self.lock_owner = owner
        self.lock_depth = depth

    def unlock_var(self, depth: int) -> None:
        self.locked = False
        self.lock_owner = None
        self.lock_depth = 0

    def children(self) -> Iterator[VimValue]:
        return iter(())


def _child_depth(depth: int) -> int | None:
    """Depth passed on to items, or None when the lock stops at this level."""
    if depth < 0:
        return depth
    if depth > 1:
        return depth - 1
    return None


class VimInt(VimDataType):
    __slots__ = ("value",)

    def __init__(self, value: int):
        super().__init__()
        self.value: int = wrap32(value)

    def __eq__(self, other) -> bool:
        return isinstance(other, VimInt) and other.value == self.value

    def __hash__(self) -> int:
        return hash(self.value)

    def __repr__(self) -> str:
        return f"VimInt({self.value})"


class VimFloat(VimDataType):
    __slots__ = ("value",)

    def __init__(self, value: float):
        super().__init__()
        self.value: float = float(value)

    def __eq__(self, other) -> bool:
        return isinstance(other, VimFloat) and other.value == self.value

    def __hash__(self) -> int:
        return hash(self.value)

    def __repr__(self) -> str:
        return f"VimFloat({self.value})"


class VimString(VimDataType):
    __slots__ = ("value",)

    def __init__(self, value: str):
        super().__init__()
        self.value: str = value

    def __eq__(self, other) -> bool:
        return isinstance(other, VimString) and other.value == self.value

    def __hash__(self) -> int:
        return hash(self.value)

    def __repr__(self) -> str:
        return f"VimString({self.value!r})"


class VimBlob(VimDataType):
    __slots__ = ("data",)

    def __init__(self, data: bytes | bytearray = b""):
        super().__init__()
        self.data: bytearray = bytearray(data)

    def __eq__(self, other) -> bool:
        return isinstance(other, VimBlob) and other.data == self.data

    __hash__ = None

    def __repr__(self) -> str:
        return f"VimBlob({bytes(self.data)!r})"


class VimList(VimDataType):
    __slots__ = ("values",)

    def __init__(self, values: list[VimValue] | None = None):
        super().__init__()
        self.values: list[VimValue] = values if values is not None else []

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[VimValue]:
        return iter(self.values)

    def __eq__(self, other) -> bool:
        return isinstance(other, VimList) and structural_equals(self, other)

    __hash__ = None

    def __repr__(self) -> str:
        return f"VimList(<{len(self.values)} items>)"

    def children(self) -> Iterator[VimValue]:
        return iter(self.values)

    def lock_var(self, depth: int, owner: str | None = None) -> None:
        super().lock_var(depth, owner)
        if (child_depth := _child_depth(depth)) is not None:
            self.values[:] = [detached(value) for value in self.values]
            for value in self.values:
                value.lock_var(child_depth, owner)

    def unlock_var(self, depth: int) -> None:
        super().unlock_var(depth)
        if (child_depth := _child_depth(depth)) is not None:
            self.values[:] = [detached(value) for value in self.values]
            for value in self.values:
                value.unlock_var(child_depth)


class VimDictionary(VimDataType):
    """Insertion-ordered String-keyed mapping.

    `locked_keys` holds keys whose binding is locked (:lockvar 0 on a scope
    variable or on d.key), independent of the locks of the values themselves.
    """

    __slots__ = ("dictionary", "locked_keys")

    def __init__(self, dictionary: dict[str, VimValue] | None = None):
        super().__init__()
        self.dictionary: dict[str, VimValue] = dictionary if dictionary is not None else {}
        self.locked_keys: set[str] = set()

    def __len__(self) -> int:
        return len(self.dictionary)

    def __eq__(self, other) -> bool:
        return isinstance(other, VimDictionary) and structural_equals(self, other)

    __hash__ = None

    def __repr__(self) -> str:
        return f"VimDictionary(<{len(self.dictionary)} keys>)"

    def children(self) -> Iterator[VimValue]:
        return iter(self.dictionary.values())

    def lock_var(self, depth: int, owner: str | None = None) -> None:
        super().lock_var(depth, owner)
        if (child_depth := _child_depth(depth)) is not None:
            for key in list(self.dictionary):
                self.dictionary[key] = detached(self.dictionary[key])
            for value in self.dictionary.values():
                value.lock_var(child_depth, owner)

    def unlock_var(self, depth: int) -> None:
        super().unlock_var(depth)
        if (child_depth := _child_depth(depth)) is not None:
            for key in list(self.dictionary):
                self.dictionary[key] = detached(self.dictionary[key])
            for value in self.dictionary.values():
                value.unlock_var(child_depth)


class FuncrefKind(Enum):
    FUNCTION = "function"   # function('Name'): equal by name
    FUNCREF = "funcref"     # funcref('Name'): equal by identity
    LAMBDA = "lambda"       # {-> expr}: equal by identity


class VimFuncref(VimDataType):
    """A handle to a builtin, user-defined or lambda function.

    `arguments` are bound in front of the call arguments (a partial), and
    `dictionary` is bound as `self` for dictionary functions.
    """

    __slots__ = ("handler", "arguments", "dictionary", "kind", "is_self_fixed")

    def __init__(
        self,
        handler: FunctionHandler,
        arguments: VimList | None = None,
        dictionary: VimDictionary | None = None,
        kind: FuncrefKind = FuncrefKind.FUNCTION,
        is_self_fixed: bool = False,
    ):
        super().__init__()
        self.handler = handler
        self.arguments: VimList = arguments if arguments is not None else VimList()
        self.dictionary: VimDictionary | None = dictionary
        self.kind: FuncrefKind = kind
        self.is_self_fixed: bool = is_self_fixed

    @property
    def name(self) -> str:
        return self.handler.name

    def __eq__(self, other) -> bool:
        return isinstance(other, VimFuncref) and structural_equals(self, other)

    __hash__ = None

    def __repr__(self) -> str:
        return f"VimFuncref({self.name!r}, {self.kind.value})"


VimValue = VimInt | VimFloat | VimString | VimList | VimDictionary | VimBlob | VimFuncref


class UndefinedType:
    """Sentinel for a lookup that found no variable."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "Undefined"

    def __bool__(self) -> bool:
        return False


Undefined = UndefinedType()


# -------------------------------
# Equality
# -------------------------------
def reference_equals(a: VimValue, b: VimValue) -> bool:
    """Identity for reference types, type-and-value equality for scalars."""
    match a:
        case VimList() | VimDictionary() | VimBlob() | VimFuncref():
            return a is b
        case VimInt() | VimFloat() | VimString():
            return type(a) is type(b) and a.value == b.value
        case _:
            assert_never(a)


def structural_equals(a: VimValue, b: VimValue, ignore_case: bool = False) -> bool:
    """Deep equality as used by == on Lists and Dictionaries.

    Item types must match exactly ([4] != ['4']). Cyclic structures terminate:
    a pair of containers already being compared is assumed equal.
    """
    return _equals(a, b, ignore_case, set())


def _equals(a: VimValue, b: VimValue, ignore_case: bool, visited: set[tuple[int, int]]) -> bool:
    if a is b:
        return True
    match a:
        case VimInt() | VimFloat():
            return type(a) is type(b) and a.value == b.value
        case VimString():
            if not isinstance(b, VimString):
                return False
            if ignore_case:
                return a.value.lower() == b.value.lower()
            return a.value == b.value
        case VimBlob():
            return isinstance(b, VimBlob) and a.data == b.data
        case VimList():
            if not isinstance(b, VimList) or len(a.values) != len(b.values):
                return False
            pair = (id(a), id(b))
            if pair in visited:
                return True
            visited.add(pair)
            return all(_equals(x, y, ignore_case, visited) for x, y in zip(a.values, b.values))
        case VimDictionary():
            if not isinstance(b, VimDictionary) or a.dictionary.keys() != b.dictionary.keys():
                return False
            pair = (id(a), id(b))
            if pair in visited:
                return True
            visited.add(pair)
            return all(
                _equals(value, b.dictionary[key], ignore_case, visited)
                for key, value in a.dictionary.items()
            )
        case VimFuncref():
            if not isinstance(b, VimFuncref):
                return False
            if a.kind is not FuncrefKind.FUNCTION or b.kind is not FuncrefKind.FUNCTION:
                return False
            if a.name != b.name or a.dictionary is not b.dictionary:
                return False
            return _equals(a.arguments, b.arguments, ignore_case, visited)
        case _:
            assert_never(a)


# -------------------------------
# Copying
# -------------------------------
def shallow_copy(value: VimValue) -> VimValue:
    """copy(): new top-level container, unlocked; containers inside it are shared."""
    match value:
        case VimList():
            return VimList([detached(v) for v in value.values])
        case VimDictionary():
            return VimDictionary({k: detached(v) for k, v in value.dictionary.items()})
        case VimBlob():
            return VimBlob(value.data)
        case VimInt():
            return VimInt(value.value)
        case VimFloat():
            return VimFloat(value.value)
        case VimString():
            return VimString(value.value)
        case VimFuncref():
            return value
        case _:
            assert_never(value)


def detached(value: VimValue) -> VimValue:
    """Scalars are values: a holder that is about to lock one gets its own copy."""
    if isinstance(value, (VimInt, VimFloat, VimString)):
        return shallow_copy(value)
    return value


def deep_copy(value: VimValue, noref: bool = False) -> VimValue:
    """deepcopy(): recursive copy.

    Without `noref` a container referenced more than once (including cycles)
    is copied once and the copy is shared. With `noref` every reference is
    copied separately, so a cyclic structure fails with E698.
    """
    return _deep_copy(value, noref, {}, 0)


def _deep_copy(value: VimValue, noref: bool, memo: dict[int, VimValue], depth: int) -> VimValue:
    if depth >= MAX_COPY_DEPTH:
        raise VimError("Variable nested too deep for making a copy", "E698")
    match value:
        case VimList():
            if not noref and id(value) in memo:
                return memo[id(value)]
            copied = VimList()
            memo[id(value)] = copied
            copied.values = [_deep_copy(v, noref, memo, depth + 1) for v in value.values]
            return copied
        case VimDictionary():
            if not noref and id(value) in memo:
                return memo[id(value)]
            copied_dict = VimDictionary()
            memo[id(value)] = copied_dict
            copied_dict.dictionary = {
                k: _deep_copy(v, noref, memo, depth + 1) for k, v in value.dictionary.items()
            }
            return copied_dict
        case _:
            return shallow_copy(value)
