"""Editor collaborators the runtime talks to.

Each concern is a Protocol with an in-memory implementation; `Host`
bundles one of each.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from viml.host.editor import TextEditor, VimCaret, VimEditor
from viml.host.history import History, HistoryGroup
from viml.host.messages import MessageGroup, Messages
from viml.host.registers import RegisterGroup, Registers, SelectionType
from viml.host.shell import ShellRunner, SubprocessShell


@dataclass
class Host:
    editor: VimEditor = field(default_factory=TextEditor)
    registers: RegisterGroup = field(default_factory=Registers)
    history: HistoryGroup = field(default_factory=History)
    messages: MessageGroup = field(default_factory=Messages)
    shell: ShellRunner = field(default_factory=SubprocessShell)


__all__ = [
    "Host",
    "TextEditor",
    "VimCaret",
    "VimEditor",
    "History",
    "HistoryGroup",
    "Messages",
    "MessageGroup",
    "Registers",
    "RegisterGroup",
    "SelectionType",
    "ShellRunner",
    "SubprocessShell",
]
