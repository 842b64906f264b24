"""Structure-aware batching of extracted paragraphs."""

from __future__ import annotations

import re
from typing import Callable, List, Sequence

from .structures import Batch, ExtractableItem

DEFAULT_BATCH_CHARS = 3000

HEADING_STYLE_PATTERN = re.compile(
    r"heading|title|subtitle|chapter|part", re.IGNORECASE
)


def is_heading_style(style_name: str | None) -> bool:
    """Detect whether a paragraph style name denotes a heading."""

    if not style_name:
        return False
    return bool(HEADING_STYLE_PATTERN.search(style_name))


def _never_heading(paragraph_id: int) -> bool:
    return False


class BatchBuilder:
    """Groups paragraphs into batches bounded by headings and a size target.

    A new batch starts right before an item when the current batch is not
    empty and either the item is a heading or the current batch has already
    reached the target length. Paragraphs are never split, so one oversized
    paragraph can exceed the target on its own.
    """

    def __init__(self, target_chars: int = DEFAULT_BATCH_CHARS) -> None:
        self.target_chars = max(1, target_chars)

    def build(
        self,
        items: Sequence[ExtractableItem],
        is_heading: Callable[[int], bool] = _never_heading,
    ) -> List[Batch]:
        batches: List[Batch] = []
        current: List[ExtractableItem] = []
        running_total = 0
        batch_id = 1

        for item in items:
            if current and (
                is_heading(item.id) or running_total >= self.target_chars
            ):
                batches.append(Batch(batch_id=batch_id, items=current))
                batch_id += 1
                current = []
                running_total = 0

            current.append(item)
            running_total += len(item.text)

        if current:
            batches.append(Batch(batch_id=batch_id, items=current))

        return batches
