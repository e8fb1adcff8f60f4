"""The local, authoritative collection of records."""

import copy
from collections.abc import Iterable, Iterator

from loguru import logger

from freemind.models.record import Record


class WorkingSet:
    """Records held locally, in display order.

    Holds at most one record per id. Local edits only flag records
    (``removed``/``modified``); the sync passes act on the flags.
    """

    def __init__(self, records: Iterable[Record] = ()) -> None:
        self._records: list[Record] = []
        self._origins: dict[int, tuple[Record, Record]] = {}
        self.synced = False
        for record in records:
            self.add(record)
        self.synced = False

    def __iter__(self) -> Iterator[Record]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def get(self, record_id: int) -> Record | None:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def ids(self, *, include_removed: bool = True) -> list[int]:
        return [
            r.id for r in self._records if r.id is not None and (include_removed or not r.removed)
        ]

    def removed_ids(self) -> list[int]:
        return [r.id for r in self._records if r.removed and r.id is not None]

    def modified_ids(self) -> list[int]:
        return [r.id for r in self._records if r.modified and r.id is not None]

    def add(self, record: Record) -> Record:
        """Append a record, usually a fresh id-less one."""
        if record.id is not None and self.get(record.id) is not None:
            msg = f"Record {record.id} is already in the working set"
            raise ValueError(msg)
        self._records.append(record)
        self.synced = False
        return record

    def remove(self, record_id: int) -> bool:
        """Flag a record for deletion on the next sync."""
        record = self.get(record_id)
        if record is None:
            return False
        record.removed = True
        self.synced = False
        return True

    def discard(self, record_id: int) -> Record | None:
        """Drop a record for good, once its remote copy is gone."""
        for i, record in enumerate(self._records):
            if record.id == record_id:
                return self._records.pop(i)
        return None

    def mark_unsynced(self) -> None:
        self.synced = False

    def status(self) -> str:
        return "synced" if self.synced else "edited"

    def filter(self, query: str) -> list[Record]:
        """Records whose text contains every word of ``query``, case-insensitively."""
        words = query.lower().split()
        return [r for r in self._records if all(w in r.search_text() for w in words)]

    def allocate_missing_ids(self, existing_ids: list[int]) -> list[int]:
        """Give every id-less record an id not in ``existing_ids``.

        Id-less records that are already flagged removed never reached the
        server and are dropped instead. ``existing_ids`` is extended with the
        new ids, which are returned in working-set order.
        """
        self._records = [r for r in self._records if not (r.id is None and r.removed)]
        taken = existing_ids + self.ids()
        new_ids: list[int] = []
        for record in self._records:
            if record.id is None:
                new_ids.append(record.allocate_id(taken))
        existing_ids.extend(new_ids)
        return new_ids

    def merge(self, records: Iterable[Record]) -> int:
        """Append records whose id is not held yet; return how many were added."""
        known = set(self.ids())
        added = 0
        for record in records:
            if record.id is None or record.id in known:
                continue
            self._records.append(record)
            known.add(record.id)
            added += 1
        if added:
            logger.debug("Merged {} remote records", added)
        return added

    def sort_by_due(self) -> None:
        """Order by due date ascending; a record without one counts as due at 0."""
        self._records.sort(key=lambda r: r.due() or 0)

    def copy(self) -> "WorkingSet":
        """Deep copy, used to stage a sync without touching this set."""
        staged = WorkingSet()
        staged._records = copy.deepcopy(self._records)
        # Keyed by id(); the staged object is kept too so the key cannot be reused.
        staged._origins = {
            id(s): (s, o) for s, o in zip(staged._records, self._records, strict=True)
        }
        staged.synced = self.synced
        return staged

    def replace(self, other: "WorkingSet") -> None:
        """Take over the records and sync state of ``other``.

        Records that ``other`` staged from this set are updated in place, so
        references held by callers stay valid.
        """
        origins = other._origins
        records: list[Record] = []
        for staged in other._records:
            pair = origins.get(id(staged))
            if pair is None or pair[0] is not staged:
                records.append(staged)
                continue
            original = pair[1]
            original.update_from(staged)
            records.append(original)
        self._records = records
        self.synced = other.synced
