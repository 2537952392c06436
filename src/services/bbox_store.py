"""Bounding Box Store holding the annotations of the current page."""

import dataclasses
import logging
from typing import Any, Iterable, Iterator, List, Optional, Union

from models.data_models import BoundingBox, BoxKind, BoxStats


logger = logging.getLogger(__name__)

KindLike = Union[BoxKind, str]


def _parse_kind(kind: KindLike) -> BoxKind:
    return kind if isinstance(kind, BoxKind) else BoxKind(kind)


class BoundingBoxStore:
    """Ordered collection of bounding boxes with kind-aware operations."""

    def __init__(self, boxes: Optional[Iterable[BoundingBox]] = None):
        self._boxes: List[BoundingBox] = list(boxes or [])

    def __len__(self) -> int:
        return len(self._boxes)

    def __iter__(self) -> Iterator[BoundingBox]:
        return iter(list(self._boxes))

    def __contains__(self, box_id: object) -> bool:
        return any(box.id == box_id for box in self._boxes)

    @property
    def boxes(self) -> List[BoundingBox]:
        """Snapshot of the boxes in insertion order."""
        return list(self._boxes)

    def add(self, box: BoundingBox) -> None:
        self._boxes.append(box)

    def add_many(self, boxes: Iterable[BoundingBox]) -> None:
        added = list(boxes)
        self._boxes.extend(added)
        logger.debug(f"Added {len(added)} boxes, store now holds {len(self._boxes)}")

    def remove(self, box_id: str) -> None:
        """Remove a box by id; unknown ids are ignored."""
        self._boxes = [box for box in self._boxes if box.id != box_id]

    def remove_by_kind(self, kind: KindLike) -> None:
        """Remove every box of a kind (absent kind counts as manual)."""
        kind = _parse_kind(kind)
        self._boxes = [box for box in self._boxes if box.effective_kind != kind]

    def clear(self) -> None:
        self._boxes = []

    def update(self, box_id: str, **updates: Any) -> None:
        """
        Shallow-merge fields into a box.

        Args:
            box_id: Id of the box to update; unknown ids are ignored
            **updates: Field values to replace. An "id" entry is dropped.
        """
        updates.pop("id", None)
        for index, box in enumerate(self._boxes):
            if box.id == box_id:
                self._boxes[index] = dataclasses.replace(box, **updates)
                return

    def get(self, box_id: str) -> Optional[BoundingBox]:
        """Get a box by id, or None when absent."""
        for box in self._boxes:
            if box.id == box_id:
                return box
        return None

    def get_by_kind(self, kind: KindLike) -> List[BoundingBox]:
        kind = _parse_kind(kind)
        return [box for box in self._boxes if box.effective_kind == kind]

    def stats(self) -> BoxStats:
        """Count boxes per kind, treating an absent kind as manual."""
        counts = {}
        for box in self._boxes:
            counts[box.effective_kind] = counts.get(box.effective_kind, 0) + 1
        return BoxStats(total=len(self._boxes), counts_by_kind=counts)
