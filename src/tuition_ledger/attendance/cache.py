from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from .matcher import HasIdentity, identity_key
from .model import AttendanceKey, AttendanceRecord


@dataclass
class _Undo:
    key: AttendanceKey
    previous: Optional[AttendanceRecord]
    applied: AttendanceRecord


@dataclass
class CacheSnapshot:
    """Journal of inverse operations recorded since :meth:`AttendanceCache.snapshot`."""

    generation: int
    undo: list[_Undo] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.undo)


class AttendanceCache:
    """In-memory working set of attendance records for one query scope.

    Entries live in a dict keyed by :class:`AttendanceKey`. The dict's
    insertion order is the reverse of display order, so a prepend is a plain
    assignment and an in-place replacement keeps its position.
    """

    def __init__(self, records: Iterable[AttendanceRecord] = ()):
        self._entries: dict[AttendanceKey, AttendanceRecord] = {}
        # Bumped on every load(); journaled undo from an older generation is void.
        self._generation = 0
        self.load(records)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[AttendanceRecord]:
        return reversed(list(self._entries.values()))

    def __contains__(self, item: HasIdentity | AttendanceKey) -> bool:
        return identity_key(item) in self._entries

    def records(self) -> list[AttendanceRecord]:
        return list(reversed(list(self._entries.values())))

    def find(self, identity: HasIdentity | AttendanceKey) -> Optional[AttendanceRecord]:
        return self._entries.get(identity_key(identity))

    def load(self, records: Iterable[AttendanceRecord]) -> None:
        """Replace the whole collection with rows in display order."""
        entries: dict[AttendanceKey, AttendanceRecord] = {}
        for record in reversed(list(records)):
            # A duplicate identity keeps the row that comes first in display order.
            key = identity_key(record)
            entries.pop(key, None)
            entries[key] = record
        self._entries = entries
        self._generation += 1

    def upsert_local(self, record: AttendanceRecord, snapshot: Optional[CacheSnapshot] = None) -> None:
        key = identity_key(record)
        previous = self._entries.get(key)
        # Existing keys keep their dict position; new keys land at the front of display order.
        self._entries[key] = record
        if snapshot is not None and snapshot.generation == self._generation:
            snapshot.undo.append(_Undo(key=key, previous=previous, applied=record))

    def snapshot(self) -> CacheSnapshot:
        return CacheSnapshot(generation=self._generation)

    def restore(self, snapshot: CacheSnapshot) -> None:
        """Undo the operations journaled in ``snapshot``, newest first.

        An entry that no longer holds the value this snapshot wrote was
        overwritten by someone else and is left as it is.
        """
        if snapshot.generation != self._generation:
            return
        for op in reversed(snapshot.undo):
            if self._entries.get(op.key) is not op.applied:
                continue
            if op.previous is None:
                del self._entries[op.key]
            else:
                self._entries[op.key] = op.previous
        snapshot.undo.clear()
