from __future__ import annotations

from typing import Protocol


class MessageGroup(Protocol):
    def show_message(self, text: str, keep: bool = False) -> None: ...

    def output(self, text: str) -> None: ...

    def indicate_error(self) -> None: ...


class Messages:
    """Records what a real editor would show.

    - messages: status line messages in order
    - history: messages kept for :messages (echomsg and errors)
    - outputs: multi-line output panel contents
    - error_count: number of error indications (beeps)
    """

    def __init__(self):
        self.messages: list[str] = []
        self.history: list[str] = []
        self.outputs: list[str] = []
        self.error_count = 0

    def show_message(self, text: str, keep: bool = False) -> None:
        self.messages.append(text)
        if keep:
            self.history.append(text)

    def output(self, text: str) -> None:
        self.outputs.append(text)

    def indicate_error(self) -> None:
        self.error_count += 1

    @property
    def last_message(self) -> str | None:
        return self.messages[-1] if self.messages else None
