"""Core data structures for the Quillshift translator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List


ProgressCallback = Callable[[int, int, str], None]
TranslationMap = Dict[int, str]


@dataclass(frozen=True)
class ExtractableItem:
    """Snapshot of one paragraph's translatable text."""

    id: int
    text: str

    def as_payload(self) -> dict:
        return {"id": self.id, "text": self.text}


@dataclass
class Batch:
    """An ordered, non-empty group of items sent in one translation call."""

    batch_id: int
    items: List[ExtractableItem]

    @property
    def ids(self) -> List[int]:
        return [item.id for item in self.items]

    @property
    def char_count(self) -> int:
        return sum(len(item.text) for item in self.items)


def ignore_progress(completed: int, total: int, status: str) -> None:
    """Default progress callback that discards updates."""
