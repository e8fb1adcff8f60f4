"""The delete, edit and insert passes applied to a registry document.

Each pass is one forward read-rewrite of the document text. A pass that
cannot parse its input changes nothing: it returns the input text unchanged
and leaves the working set alone.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from loguru import logger

from freemind.core.patch.stream import COPYING, Element, Rewriting, StreamPatcher
from freemind.core.working_set import WorkingSet
from freemind.errors import DocumentDecodeError
from freemind.models.record import ENTRY_TAG, ID_ATTR, ROOT_TAG, Record, parse_record_id


@dataclass(frozen=True)
class PatchResult:
    """Outcome of one pass."""

    changed: bool
    text: str
    affected_ids: tuple[int, ...] = ()


def _entry_id(element: Element) -> int | None:
    if element.name != ENTRY_TAG:
        return None
    return parse_record_id(element.attrs.get(ID_ATTR))


class _DeletionPatcher(StreamPatcher):
    def __init__(self, targets: set[int]) -> None:
        super().__init__()
        self._targets = targets

    def open_element(self, element: Element) -> None:
        record_id = _entry_id(element)
        if record_id is not None and record_id in self._targets:
            self.affected_ids.append(record_id)
            self.skip_span(element)


class _EditPatcher(StreamPatcher):
    def __init__(self, records: dict[int, Record]) -> None:
        super().__init__()
        self._records = records

    def open_element(self, element: Element) -> None:
        state = self.state
        if isinstance(state, Rewriting):
            if self.depth == state.depth + 1 and element.name in state.known_tags:
                self.skip_span(element)
            return

        record_id = _entry_id(element)
        record = self._records.get(record_id) if record_id is not None else None
        if record is None or record_id is None:
            return
        self.write_inside(element, record.to_xml(with_wrapper=False))
        self.state = Rewriting(self.depth, record.suppressed_tags())
        self.affected_ids.append(record_id)

    def close_element(self, element: Element, depth: int) -> None:
        if isinstance(self.state, Rewriting) and depth == self.state.depth:
            self.state = COPYING


class _InsertionPatcher(StreamPatcher):
    def __init__(self, records: list[Record]) -> None:
        super().__init__()
        self._records = records

    def open_element(self, element: Element) -> None:
        if self.depth != 1:
            return
        self.write_inside(element, "".join(record.to_xml() for record in self._records))
        self.affected_ids.extend(r.id for r in self._records if r.id is not None)


def _run(patcher: StreamPatcher, text: str, pass_name: str) -> str | None:
    try:
        return patcher.rewrite(text)
    except DocumentDecodeError as e:
        logger.warning("{} pass skipped, document could not be read: {}", pass_name, e)
        return None


def delete_removed(working_set: WorkingSet, text: str) -> PatchResult:
    """Cut every entry flagged removed out of the document.

    Records whose entry was cut are dropped from the working set. Removed
    records the document does not hold stay flagged.
    """
    targets = set(working_set.removed_ids())
    if not targets or not text.strip():
        return PatchResult(False, text)

    patcher = _DeletionPatcher(targets)
    new_text = _run(patcher, text, "Deletion")
    if new_text is None or not patcher.affected_ids:
        return PatchResult(False, text)

    pruned = tuple(dict.fromkeys(patcher.affected_ids))
    for record_id in pruned:
        working_set.discard(record_id)
    logger.debug("Deletion pass pruned {} entries", len(pruned))
    return PatchResult(True, new_text, pruned)


def edit_modified(working_set: WorkingSet, text: str) -> PatchResult:
    """Write the current fields of every modified record into its entry.

    Fields the local record defines (or dropped) replace the server's copy;
    fields only the server knows are kept. ``modified`` is cleared on each
    record whose entry was rewritten.
    """
    records = {
        r.id: r for r in working_set if r.modified and not r.removed and r.id is not None
    }
    if not records or not text.strip():
        return PatchResult(False, text)

    patcher = _EditPatcher(records)
    new_text = _run(patcher, text, "Edit")
    if new_text is None or not patcher.affected_ids:
        return PatchResult(False, text)

    edited = tuple(dict.fromkeys(patcher.affected_ids))
    for record_id in edited:
        record = records[record_id]
        record.modified = False
        record.dropped_tags.clear()
    logger.debug("Edit pass rewrote {} entries", len(edited))
    return PatchResult(True, new_text, edited)


def _new_registry(records: list[Record]) -> str:
    body = "".join(record.to_xml() for record in records)
    return f"<{ROOT_TAG}>{body}</{ROOT_TAG}>"


def insert_created(working_set: WorkingSet, text: str, new_ids: Iterable[int]) -> PatchResult:
    """Insert the records with ``new_ids`` as the first children of the root.

    Records are written in working-set order. A blank document becomes a new
    registry holding just these records.
    """
    wanted = set(new_ids)
    records = [r for r in working_set if r.id in wanted]
    if not records:
        return PatchResult(False, text)
    inserted = tuple(r.id for r in records if r.id is not None)

    if not text.strip():
        return PatchResult(True, _new_registry(records), inserted)

    patcher = _InsertionPatcher(records)
    new_text = _run(patcher, text, "Insertion")
    if new_text is None or not patcher.affected_ids:
        return PatchResult(False, text)
    logger.debug("Insertion pass added {} entries", len(patcher.affected_ids))
    return PatchResult(True, new_text, tuple(patcher.affected_ids))
