from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class SelectionType(Enum):
    CHARACTER_WISE = "v"
    LINE_WISE = "V"
    BLOCK_WISE = "\x16"


@dataclass(frozen=True)
class Register:
    name: str
    text: str
    type: SelectionType = SelectionType.CHARACTER_WISE


class RegisterGroup(Protocol):
    def get_register(self, name: str) -> Register | None: ...

    def store_text(self, name: str, text: str, type: SelectionType) -> bool: ...


READ_ONLY_REGISTERS = frozenset(".%#")


class Registers:
    """In-memory registers.

    Storing into a named register also fills the unnamed one; an uppercase name
    appends to its lowercase register and "_ discards the text.
    """

    def __init__(self):
        self.registers: dict[str, Register] = {}

    def get_register(self, name: str) -> Register | None:
        return self.registers.get(name.lower())

    def store_text(self, name: str, text: str, type: SelectionType = SelectionType.CHARACTER_WISE) -> bool:
        if name == "_":
            return True
        if name in READ_ONLY_REGISTERS:
            return False
        key = name.lower()
        if name.isupper() and key in self.registers:
            previous = self.registers[key]
            separator = "\n" if type is SelectionType.LINE_WISE and not previous.text.endswith("\n") else ""
            text = previous.text + separator + text
        register = Register(key, text, type)
        self.registers[key] = register
        if key not in ('"', ":", "/"):
            self.registers['"'] = Register('"', text, type)
        return True
