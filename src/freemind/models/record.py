"""Record and field data model for registry documents."""

import io
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import format_datetime
from enum import Enum
from xml.sax.handler import ContentHandler
from xml.sax.saxutils import XMLGenerator
from xml.sax.xmlreader import AttributesImpl

from freemind.core.ids import generate_id

ROOT_TAG = "registry"
ENTRY_TAG = "entry"
GROUP_TAG = "directory"
ID_ATTR = "id"

MAX_RECORD_ID = 0xFFFF
MAX_TIMESTAMP = 0xFFFFFFFF


class FieldKind(Enum):
    """Well-known fields, valued by their document tag."""

    TITLE = "name"
    DESCRIPTION = "description"
    LOCATION = "location"
    COLOR = "color"
    DUE = "due"
    DURATION = "duration"
    ALERT = "alert"
    OTHER = ""


_KIND_BY_TAG = {kind.value: kind for kind in FieldKind if kind is not FieldKind.OTHER}

# Display/serialization rank. OTHER is further ordered by name length.
_RANK = {
    FieldKind.TITLE: 0,
    FieldKind.DESCRIPTION: 1,
    FieldKind.LOCATION: 2,
    FieldKind.DUE: 3,
    FieldKind.DURATION: 4,
    FieldKind.OTHER: 5,
    FieldKind.COLOR: 6,
    FieldKind.ALERT: 6,
}


@dataclass(frozen=True)
class FieldName:
    """Name of a field: a well-known kind, or OTHER carrying the raw tag."""

    kind: FieldKind
    other: str | None = None

    def __post_init__(self) -> None:
        if (self.kind is FieldKind.OTHER) != (self.other is not None):
            msg = f"OTHER field names need a tag, known kinds must not have one: {self!r}"
            raise ValueError(msg)

    @classmethod
    def from_tag(cls, tag: str) -> "FieldName":
        kind = _KIND_BY_TAG.get(tag)
        if kind is None:
            return cls(FieldKind.OTHER, tag)
        return cls(kind)

    @property
    def tag(self) -> str:
        if self.other is not None:
            return self.other
        return self.kind.value

    @property
    def sort_key(self) -> tuple[int, int, str]:
        if self.other is not None:
            return (_RANK[self.kind], len(self.other), self.other)
        return (_RANK[self.kind], 0, "")

    def __lt__(self, other: "FieldName") -> bool:
        return self.sort_key < other.sort_key


TITLE = FieldName(FieldKind.TITLE)
DESCRIPTION = FieldName(FieldKind.DESCRIPTION)
LOCATION = FieldName(FieldKind.LOCATION)
COLOR = FieldName(FieldKind.COLOR)
DUE = FieldName(FieldKind.DUE)
DURATION = FieldName(FieldKind.DURATION)
ALERT = FieldName(FieldKind.ALERT)
TAGS = FieldName.from_tag("tags")
TAG = FieldName.from_tag("tag")


@dataclass(frozen=True)
class Text:
    """A leaf field value."""

    value: str


@dataclass(frozen=True)
class Nested:
    """A field value with sub-elements.

    Children keep document order; repeated tags (like the ``tag`` entries of
    ``tags``) are all kept.
    """

    children: tuple[tuple[FieldName, "FieldValue"], ...] = ()

    @classmethod
    def of(cls, items: Iterable[tuple[FieldName, "FieldValue"]]) -> "Nested":
        return cls(tuple(items))

    def get(self, name: FieldName) -> "FieldValue | None":
        """Return the first child with this name."""
        for child_name, value in self.children:
            if child_name == name:
                return value
        return None

    def get_all(self, name: FieldName) -> list["FieldValue"]:
        return [value for child_name, value in self.children if child_name == name]

    def keys(self) -> list[FieldName]:
        return list(dict.fromkeys(name for name, _ in self.children))


FieldValue = Text | Nested


def parse_record_id(raw: str | None) -> int | None:
    """Parse an ``id`` attribute; anything but 1..65535 in decimal is no id."""
    if raw is None:
        return None
    raw = raw.strip()
    if not (raw.isascii() and raw.isdigit()):
        return None
    value = int(raw)
    if not 0 < value <= MAX_RECORD_ID:
        return None
    return value


def write_field(handler: ContentHandler, name: FieldName, value: FieldValue) -> None:
    """Emit one field as SAX events, recursing into nested values."""
    handler.startElement(name.tag, AttributesImpl({}))
    if isinstance(value, Text):
        if value.value:
            handler.characters(value.value)
    else:
        for child_name, child in value.children:
            write_field(handler, child_name, child)
    handler.endElement(name.tag)


def _flatten(path: str, value: FieldValue) -> Iterator[tuple[str, str]]:
    if isinstance(value, Text):
        yield path, value.value
        return
    for child_name, child in value.children:
        yield from _flatten(f"{path}/{child_name.tag}", child)


def _as_value(value: "FieldValue | str") -> FieldValue:
    return Text(value) if isinstance(value, str) else value


@dataclass(eq=False)
class Record:
    """One task or event.

    ``id`` is None until the record has been assigned one, either locally
    before its first upload or by arriving from the server. ``removed`` and
    ``modified`` are local-only and never serialized.
    """

    id: int | None = None
    fields: dict[FieldName, FieldValue] = field(default_factory=dict)
    removed: bool = False
    modified: bool = False
    # Tags dropped locally since the last sync; the edit pass strips them remotely.
    dropped_tags: set[str] = field(default_factory=set)

    @classmethod
    def new(
        cls,
        title: str,
        description: str = "",
        due: int | None = None,
        tags: Iterable[str] = (),
    ) -> "Record":
        """Create a local record that has not been uploaded yet."""
        fields: dict[FieldName, FieldValue] = {TITLE: Text(title), DESCRIPTION: Text(description)}
        if due is not None:
            fields[DUE] = Text(str(due))
        fields[TAGS] = Nested.of((TAG, Text(tag)) for tag in tags)
        return cls(fields=fields)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        if self.id is not None:
            return self.id == other.id
        return other.id is None and self.fields == other.fields

    __hash__ = None  # type: ignore[assignment]

    def _text(self, name: FieldName) -> str | None:
        value = self.fields.get(name)
        return value.value if isinstance(value, Text) else None

    def title(self) -> str | None:
        return self._text(TITLE)

    def description(self) -> str | None:
        return self._text(DESCRIPTION)

    def due(self) -> int | None:
        """Due date as a unix timestamp; None if absent or not a valid u32."""
        raw = self._text(DUE)
        if raw is None:
            return None
        raw = raw.strip()
        if not (raw.isascii() and raw.isdigit()):
            return None
        value = int(raw)
        return value if value <= MAX_TIMESTAMP else None

    def tags(self) -> list[str]:
        value = self.fields.get(TAGS)
        if not isinstance(value, Nested):
            return []
        return [tag.value for tag in value.get_all(TAG) if isinstance(tag, Text)]

    def flattened_fields(self) -> list[tuple[str, str]]:
        """All fields as (path, value) pairs in canonical field order."""
        result: list[tuple[str, str]] = []
        for name in sorted(self.fields):
            result.extend(_flatten(name.tag, self.fields[name]))
        return result

    def search_text(self) -> str:
        """Lowercased text of every field, for searching and filtering."""
        return " ".join(value for _, value in self.flattened_fields()).lower()

    def set_field(self, name: FieldName, value: "FieldValue | str") -> None:
        self.fields[name] = _as_value(value)
        self.dropped_tags.discard(name.tag)
        self.modified = True

    def remove_field(self, name: FieldName) -> bool:
        if name not in self.fields:
            return False
        del self.fields[name]
        self.dropped_tags.add(name.tag)
        self.modified = True
        return True

    def modify(
        self,
        *,
        title: str | None = None,
        description: str | None = None,
        due: int | None = None,
        tags: Iterable[str] | None = None,
    ) -> None:
        """Overwrite the given well-known fields and mark the record modified."""
        if title is not None:
            self.set_field(TITLE, title)
        if description is not None:
            self.set_field(DESCRIPTION, description)
        if due is not None:
            self.set_field(DUE, str(due))
        if tags is not None:
            self.set_field(TAGS, Nested.of((TAG, Text(tag)) for tag in tags))

    def suppressed_tags(self) -> frozenset[str]:
        """Tags whose server copy a local edit replaces or drops."""
        return frozenset(name.tag for name in self.fields) | self.dropped_tags

    def update_from(self, other: "Record") -> None:
        """Take over the id, fields and flags of a staged copy of this record."""
        self.id = other.id
        self.fields = other.fields
        self.removed = other.removed
        self.modified = other.modified
        self.dropped_tags = other.dropped_tags

    def allocate_id(self, existing_ids: list[int]) -> int:
        """Assign a random id not in ``existing_ids`` and record it there.

        Uniqueness holds only against ``existing_ids``; not thread-safe.
        """
        if self.id is not None:
            msg = f"Record already has id {self.id}"
            raise ValueError(msg)
        new_id = generate_id(existing_ids)
        self.id = new_id
        existing_ids.append(new_id)
        return new_id

    def serialize(self, handler: ContentHandler, *, with_wrapper: bool = True) -> None:
        """Emit the record as SAX events.

        Does nothing while the record has no id. Without the wrapper only the
        field elements are written, for callers that already opened the entry.
        """
        if self.id is None:
            return
        if with_wrapper:
            handler.startElement(ENTRY_TAG, AttributesImpl({ID_ATTR: str(self.id)}))
        for name in sorted(self.fields):
            write_field(handler, name, self.fields[name])
        if with_wrapper:
            handler.endElement(ENTRY_TAG)

    def to_xml(self, *, with_wrapper: bool = True) -> str:
        out = io.StringIO()
        self.serialize(XMLGenerator(out, short_empty_elements=False), with_wrapper=with_wrapper)
        return out.getvalue()

    def __str__(self) -> str:
        due = self.due()
        due_str = "None"
        if due is not None:
            due_str = format_datetime(datetime.fromtimestamp(due, tz=UTC).astimezone())
        lines = [
            f"ID: {self.id}",
            f"Title: {self.title() or ''}",
            f"Description: {self.description() or ''}",
            f"Due: {due_str}",
            f"Tags: {' '.join(self.tags())}",
        ]
        shown = {TITLE, DESCRIPTION, DUE, TAGS}
        for name in sorted(self.fields):
            if name not in shown:
                lines.extend(f"{path}: {value}" for path, value in _flatten(name.tag, self.fields[name]))
        return "\n".join(lines) + "\n"
