from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

from .schema import Anchor, Frame


BucketKey = Tuple[str, Frame]


class AnchorStore:
    """
    Anchors bucketed by (context_id, frame).

    Each bucket is held sorted ascending by ``at`` and is replaced wholesale
    on every write. Reads hand out list copies.
    """

    def __init__(self) -> None:
        self._buckets: Dict[BucketKey, List[Anchor]] = {}

    def put(self, context_id: str, frame: Frame, anchors: Iterable[Anchor]) -> List[Anchor]:
        ordered = sorted(anchors, key=lambda a: a.at)
        self._buckets[(context_id, Frame.coerce(frame))] = ordered
        return list(ordered)

    def get(self, context_id: str, frame: Frame) -> List[Anchor]:
        return list(self._buckets.get((context_id, Frame.coerce(frame)), ()))

    def keys(self) -> List[BucketKey]:
        return list(self._buckets)

    def clear(self) -> None:
        self._buckets.clear()

    def __len__(self) -> int:
        return len(self._buckets)
