from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from viml import config


HISTORY_CATEGORIES = ("cmd", "search", "expr", "input")


@dataclass(frozen=True)
class HistoryEntry:
    number: int
    text: str


class HistoryGroup(Protocol):
    def add_entry(self, category: str, text: str) -> None: ...

    def get_entries(self, category: str, first: int = 0, last: int = 0) -> list[HistoryEntry]: ...


class History:
    """Numbered history lists; re-adding an entry moves it to the end."""

    def __init__(self, size: int | None = None):
        self.size = size if size is not None else config.get_history_size()
        self.entries: dict[str, list[HistoryEntry]] = {category: [] for category in HISTORY_CATEGORIES}
        self.counters: dict[str, int] = {category: 0 for category in HISTORY_CATEGORIES}

    def add_entry(self, category: str, text: str) -> None:
        if not text:
            return
        entries = [e for e in self.entries[category] if e.text != text]
        self.counters[category] += 1
        entries.append(HistoryEntry(self.counters[category], text))
        self.entries[category] = entries[-self.size:] if self.size > 0 else []

    def get_entries(self, category: str, first: int = 0, last: int = 0) -> list[HistoryEntry]:
        """Entries numbered first..last; 0 leaves a bound open, negative counts from the newest."""
        entries = self.entries[category]
        if not entries:
            return []
        newest = entries[-1].number
        if first < 0:
            first = newest + first + 1
        if last < 0:
            last = newest + last + 1
        return [e for e in entries if (first == 0 or e.number >= first) and (last == 0 or e.number <= last)]
