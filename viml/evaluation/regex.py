"""Translation of Vim search patterns into Python regular expressions.

Supports the magic levels \\v, \\m (default), \\M and \\V, the case modifiers
\\c and \\C, word boundaries \\< and \\>, groups \\( \\) and \\%( \\),
alternation \\|, the multis *, \\+, \\=, \\? and \\{n,m} (including the
non-greedy \\{-n,m}), character classes and the common backslash classes.
"""

from __future__ import annotations

import re
from functools import lru_cache

from viml.errors import VimError

CLASS_ESCAPES = {
    "s": r"\s", "S": r"\S", "d": r"\d", "D": r"\D", "w": r"[0-9A-Za-z_]", "W": r"[^0-9A-Za-z_]",
    "a": r"[A-Za-z]", "A": r"[^A-Za-z]", "l": r"[a-z]", "L": r"[^a-z]", "u": r"[A-Z]", "U": r"[^A-Z]",
    "x": r"[0-9A-Fa-f]", "X": r"[^0-9A-Fa-f]", "h": r"[A-Za-z_]", "H": r"[^A-Za-z_]",
    "n": r"\n", "t": r"\t", "e": r"\x1b", "r": r"\r",
}

# Characters that are special without a backslash at each magic level
_SPECIAL = {
    "v": set("()|+?=@{<>*.[~^$"),
    "m": set("*.[~^$"),
    "M": set("^$"),
    "V": set(),
}


class InvalidPattern(VimError):
    """ Raised when a search pattern cannot be compiled"""
    code = "E383"


def _read_brace(pattern: str, i: int) -> tuple[str, int]:
    """Translate the body of a {n,m} multi starting after '{'; returns (re, next index)."""
    end = pattern.find("}", i)
    if end < 0:
        raise InvalidPattern(f"Invalid search string: {pattern}")
    body = pattern[i:end]
    if body.endswith("\\"):
        body = body[:-1]
    lazy = body.startswith("-")
    body = body.lstrip("-")
    if body == "":
        result = "*"
    elif "," not in body:
        result = "{" + body + "}"
    else:
        low, high = body.split(",", 1)
        result = "{" + (low or "0") + "," + high + "}"
    return result + ("?" if lazy else ""), end + 1


def _read_collection(pattern: str, i: int) -> tuple[str, int]:
    """Copy a [...] collection starting at '['; returns (re, next index)."""
    j = i + 1
    if j < len(pattern) and pattern[j] == "^":
        j += 1
    if j < len(pattern) and pattern[j] == "]":
        j += 1
    while j < len(pattern) and pattern[j] != "]":
        if pattern[j] == "\\" and j + 1 < len(pattern):
            j += 1
        j += 1
    if j >= len(pattern):
        return re.escape("["), i + 1
    body = pattern[i + 1:j]
    body = body.replace("[", r"\[")
    return "[" + body + "]", j + 1


def translate(pattern: str) -> tuple[str, bool | None]:
    """Return (python_regex, case) where case is True for \\c, False for \\C, None if unset."""
    out: list[str] = []
    magic = "m"
    case: bool | None = None
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "\\" and i + 1 < n:
            nxt = pattern[i + 1]
            i += 2
            if nxt in "vmMV":
                magic = nxt
                continue
            if nxt == "c":
                case = True
                continue
            if nxt == "C":
                case = False
                continue
            if nxt in CLASS_ESCAPES:
                out.append(CLASS_ESCAPES[nxt])
                continue
            if nxt == "%" and i < n and pattern[i] == "(":
                out.append("(?:")
                i += 1
                continue
            if nxt in _SPECIAL[magic] or nxt == "\\":
                out.append(re.escape(nxt))
                continue
            # escaped character becomes special
            i = _special(pattern, nxt, i, out)
            continue
        if c in _SPECIAL[magic]:
            i = _special(pattern, c, i + 1, out)
            continue
        out.append(re.escape(c))
        i += 1
    return "".join(out), case


def _special(pattern: str, c: str, i: int, out: list[str]) -> int:
    match c:
        case "(":
            out.append("(")
        case ")":
            out.append(")")
        case "|":
            out.append("|")
        case "+":
            out.append("+")
        case "=" | "?":
            out.append("?")
        case "*":
            out.append("*")
        case "<":
            out.append(r"\b(?=\w)")
        case ">":
            out.append(r"\b(?<=\w)")
        case ".":
            out.append(".")
        case "^":
            out.append("^")
        case "$":
            out.append("$")
        case "~":
            out.append("~")
        case "{":
            text, i = _read_brace(pattern, i)
            out.append(text)
        case "[":
            text, i = _read_collection(pattern, i - 1)
            out.append(text)
        case _:
            out.append(re.escape(c))
    return i


@lru_cache(maxsize=256)
def compile_pattern(pattern: str, ignore_case: bool = False, smart_case: bool = False) -> re.Pattern:
    """Compile a Vim pattern; \\c and \\C inside the pattern win over the flags."""
    source, case = translate(pattern)
    if case is None:
        case = ignore_case and not (smart_case and any(ch.isupper() for ch in pattern))
    try:
        return re.compile(source, re.IGNORECASE if case else 0)
    except re.error:
        raise InvalidPattern(f"Invalid search string: {pattern}") from None
