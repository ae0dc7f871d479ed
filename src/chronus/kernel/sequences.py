"""
Sequence Library: persisted, user-authored step templates.

A library given a storage loads from it on construction.

The library is a convenience cache, not the source of truth for a live
session: storage failures are logged and recorded in ``last_result`` while
the in-memory collection stays as it was.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from loguru import logger
from pydantic import ValidationError

from .events import EventBus, SequencesUpdated
from .schema import Sequence
from .storage import KeyValueStorage, MemoryStorage, StorageErrorKind, StorageResult

DEFAULT_STORAGE_KEY = "chronus.sequences.v1"

SequenceLike = Union[Sequence, Mapping[str, Any]]


def _as_fields(item: SequenceLike) -> Optional[Dict[str, Any]]:
    if isinstance(item, Sequence):
        return item.model_dump(by_alias=True, exclude_unset=True)
    if isinstance(item, Mapping):
        return dict(item)
    return None


class SequenceLibrary:
    def __init__(
        self,
        storage: Optional[KeyValueStorage] = None,
        bus: Optional[EventBus] = None,
        key: str = DEFAULT_STORAGE_KEY,
    ) -> None:
        self._storage = storage if storage is not None else MemoryStorage()
        self._bus = bus if bus is not None else EventBus()
        self._key = key
        self._sequences: Dict[str, Sequence] = {}
        self.last_result: Optional[StorageResult] = None
        if storage is not None:
            self.load()

    @property
    def key(self) -> str:
        return self._key

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def load(self) -> StorageResult:
        """
        Replace the in-memory library with the stored one.

        Missing data loads as an empty library. Malformed data also leaves an
        empty library, with a SERIALIZATION result.
        """
        self._sequences.clear()
        result = self._storage.read(self._key)
        if result.ok and result.data is not None:
            result = self._decode(result.data)
        elif result.ok:
            result = StorageResult.success(0)

        if not result.ok:
            logger.warning(
                "Sequence library load failed ({}): {}",
                result.error_kind.value if result.error_kind else "unknown",
                result.error_message,
            )
        self.last_result = result
        return result

    def _decode(self, raw: str) -> StorageResult:
        try:
            records = json.loads(raw)
        except (TypeError, ValueError) as e:
            return StorageResult.failure(StorageErrorKind.SERIALIZATION, str(e))
        if not isinstance(records, list):
            return StorageResult.failure(
                StorageErrorKind.SERIALIZATION,
                f"Expected a JSON array, got {type(records).__name__}",
            )

        for record in records:
            if not isinstance(record, dict) or not record.get("id"):
                continue
            try:
                sequence = Sequence.model_validate(record)
            except ValidationError:
                logger.debug("Skipping malformed stored sequence {!r}", record.get("id"))
                continue
            self._sequences[sequence.id] = sequence
        return StorageResult.success(len(self._sequences))

    def save(self) -> StorageResult:
        """Write the whole library under the storage key."""
        try:
            payload = json.dumps(
                [s.model_dump(mode="json", by_alias=True, exclude_none=True) for s in self._sequences.values()]
            )
        except (TypeError, ValueError) as e:
            result = StorageResult.failure(StorageErrorKind.SERIALIZATION, str(e))
        else:
            result = self._storage.write(self._key, payload)

        if not result.ok:
            logger.warning(
                "Sequence library save failed ({}): {}",
                result.error_kind.value if result.error_kind else "unknown",
                result.error_message,
            )
        self.last_result = result
        return result

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def upsert_sequences(self, items: Iterable[SequenceLike]) -> List[str]:
        """
        Shallow-merge each entry over the stored entry with the same id.

        Entries without an id are skipped. Returns the ids that changed; the
        library is saved and sequences-updated emitted only when some did.
        """
        changed: List[str] = []
        for item in items or ():
            fields = _as_fields(item)
            if not fields or not fields.get("id"):
                continue
            seq_id = str(fields["id"])
            current = self._sequences.get(seq_id)
            merged = current.model_dump(by_alias=True, exclude_unset=True) if current else {}
            merged.update(fields)
            merged["id"] = seq_id
            try:
                candidate = Sequence.model_validate(merged)
            except ValidationError as e:
                logger.warning("Rejected sequence {!r}: {}", seq_id, e)
                continue
            if current is not None and candidate == current:
                continue
            self._sequences[seq_id] = candidate
            if seq_id not in changed:
                changed.append(seq_id)

        if changed:
            self.save()
            self._bus.emit(SequencesUpdated(ids=changed))
        return changed

    def get_sequences(self, ids: Optional[Iterable[str]] = None) -> List[Sequence]:
        """All sequences, or those whose id is in ``ids`` (an empty list means all)."""
        wanted = list(ids) if ids is not None else []
        items = list(self._sequences.values())
        if wanted:
            items = [s for s in items if s.id in wanted]
        return [s.model_copy(deep=True) for s in items]

    def delete_sequences(self, ids: Iterable[str]) -> List[str]:
        removed = [seq_id for seq_id in list(ids or ()) if self._sequences.pop(seq_id, None) is not None]
        if removed:
            self.save()
            self._bus.emit(SequencesUpdated(ids=removed))
        return removed

    def __len__(self) -> int:
        return len(self._sequences)

    def __contains__(self, seq_id: object) -> bool:
        return seq_id in self._sequences
