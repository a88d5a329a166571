"""Conversions between value kinds and their printable forms.

The rules follow legacy Vim script: Strings convert to Numbers by their
numeric prefix, Numbers widen to Floats, and nothing else converts
implicitly. Containers and Funcrefs raise a TypeCoercionError naming the
offending conversion.
"""

from __future__ import annotations

import math
import re
from typing import assert_never

from viml.errors import CoercionKind, TypeCoercionError
from viml.types.values import (
    VimBlob,
    VimDictionary,
    VimFloat,
    VimFuncref,
    VimInt,
    VimList,
    VimString,
    VimValue,
    wrap32,
)

NUMBER_PREFIX_RE = re.compile(
    r"\s*(?P<sign>[-+]?)"
    r"(?:(?P<hex>0[xX][0-9a-fA-F]+)"
    r"|(?P<bin>0[bB][01]+)"
    r"|(?P<oct>0[oO]?[0-7]+(?![0-9]))"
    r"|(?P<dec>[0-9]+))?"
)

TYPE_NUMBERS = {
    VimInt: 0,
    VimString: 1,
    VimFuncref: 2,
    VimList: 3,
    VimDictionary: 4,
    VimFloat: 5,
    VimBlob: 10,
}


def string_to_number(text: str) -> int:
    """Number from the leading numeric prefix of `text`; 0 when there is none."""
    m = NUMBER_PREFIX_RE.match(text)
    if m.group("hex"):
        n = int(m.group("hex")[2:], 16)
    elif m.group("bin"):
        n = int(m.group("bin")[2:], 2)
    elif m.group("oct"):
        digits = m.group("oct").lstrip("0oO")
        n = int(digits, 8) if digits else 0
    elif m.group("dec"):
        n = int(m.group("dec"))
    else:
        return 0
    return wrap32(-n if m.group("sign") == "-" else n)


def to_number(value: VimValue) -> int:
    match value:
        case VimInt():
            return value.value
        case VimString():
            return string_to_number(value.value)
        case VimFloat():
            raise TypeCoercionError(CoercionKind.FLOAT_AS_NUMBER)
        case VimList():
            raise TypeCoercionError(CoercionKind.LIST_AS_NUMBER)
        case VimDictionary():
            raise TypeCoercionError(CoercionKind.DICT_AS_NUMBER)
        case VimFuncref():
            raise TypeCoercionError(CoercionKind.FUNCREF_AS_NUMBER)
        case VimBlob():
            raise TypeCoercionError(CoercionKind.BLOB_AS_NUMBER)
        case _:
            assert_never(value)


def to_float(value: VimValue) -> float:
    match value:
        case VimFloat():
            return value.value
        case VimInt():
            return float(value.value)
        case VimString():
            raise TypeCoercionError(CoercionKind.STRING_AS_FLOAT)
        case VimList():
            raise TypeCoercionError(CoercionKind.LIST_AS_FLOAT)
        case VimDictionary():
            raise TypeCoercionError(CoercionKind.DICT_AS_FLOAT)
        case VimFuncref():
            raise TypeCoercionError(CoercionKind.FUNCREF_AS_FLOAT)
        case VimBlob():
            raise TypeCoercionError(CoercionKind.BLOB_AS_FLOAT)
        case _:
            assert_never(value)


def to_string(value: VimValue) -> str:
    """String coercion used by concatenation, keys and string arguments."""
    match value:
        case VimString():
            return value.value
        case VimInt():
            return str(value.value)
        case VimFloat():
            raise TypeCoercionError(CoercionKind.FLOAT_AS_STRING)
        case VimList():
            raise TypeCoercionError(CoercionKind.LIST_AS_STRING)
        case VimDictionary():
            raise TypeCoercionError(CoercionKind.DICT_AS_STRING)
        case VimFuncref():
            raise TypeCoercionError(CoercionKind.FUNCREF_AS_STRING)
        case VimBlob():
            raise TypeCoercionError(CoercionKind.BLOB_AS_STRING)
        case _:
            assert_never(value)


def to_boolean(value: VimValue) -> bool:
    """Truthiness of conditions and filter() predicates."""
    return to_number(value) != 0


def float_to_string(f: float) -> str:
    """Format like Vim's %g: six significant digits, always with a decimal point."""
    if math.isnan(f):
        return "nan"
    if math.isinf(f):
        return "inf" if f > 0 else "-inf"
    text = "%g" % f
    if "e" in text:
        mantissa, exponent = text.split("e")
        if "." not in mantissa:
            mantissa += ".0"
        sign = "-" if exponent.startswith("-") else ""
        return f"{mantissa}e{sign}{exponent.lstrip('+-').lstrip('0') or '0'}"
    if "." not in text:
        text += ".0"
    return text


def blob_to_string(blob: VimBlob) -> str:
    hex_groups = [blob.data[i:i + 4].hex().upper() for i in range(0, len(blob.data), 4)]
    return "0z" + ".".join(hex_groups)


def quote_string(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def to_output_string(value: VimValue) -> str:
    """Rendering used by :echo; a top-level String is printed raw."""
    match value:
        case VimString():
            return value.value
        case VimFuncref():
            return value.name if not value.arguments.values and value.dictionary is None else _render(value, set())
        case _:
            return _render(value, set())


def to_string_repr(value: VimValue) -> str:
    """Rendering used by string(): Strings are quoted at every level."""
    return _render(value, set())


def _render(value: VimValue, visited: set[int]) -> str:
    match value:
        case VimInt():
            return str(value.value)
        case VimFloat():
            return float_to_string(value.value)
        case VimString():
            return quote_string(value.value)
        case VimBlob():
            return blob_to_string(value)
        case VimList():
            if id(value) in visited:
                return "[...]"
            visited.add(id(value))
            return "[" + ", ".join(_render(v, visited) for v in value.values) + "]"
        case VimDictionary():
            if id(value) in visited:
                return "{...}"
            visited.add(id(value))
            items = (f"{quote_string(k)}: {_render(v, visited)}" for k, v in value.dictionary.items())
            return "{" + ", ".join(items) + "}"
        case VimFuncref():
            parts = [quote_string(value.name)]
            if value.arguments.values:
                parts.append(_render(value.arguments, visited))
            if value.dictionary is not None:
                parts.append(_render(value.dictionary, visited))
            return f"function({', '.join(parts)})"
        case _:
            assert_never(value)


def type_number(value: VimValue) -> int:
    """Result of type(): v:t_number, v:t_string, ..."""
    return TYPE_NUMBERS[type(value)]
