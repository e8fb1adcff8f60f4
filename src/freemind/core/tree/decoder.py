"""Decode registry documents into record/group trees."""

import io
import xml.sax
from dataclasses import dataclass, field
from xml.sax.handler import ContentHandler
from xml.sax.xmlreader import AttributesImpl

from loguru import logger

from freemind.core.declaration import with_utf8_declaration
from freemind.errors import DocumentDecodeError
from freemind.models.record import (
    ENTRY_TAG,
    GROUP_TAG,
    ID_ATTR,
    FieldName,
    FieldValue,
    Nested,
    Record,
    Text,
    parse_record_id,
)
from freemind.models.tree import Group, Node, Tree


@dataclass
class _ContainerFrame:
    """The root or a group: holds child nodes, and fields unless it is the root."""

    nodes: list[Node]
    fields: dict[FieldName, FieldValue] | None = None


@dataclass
class _RecordFrame:
    record: Record


@dataclass
class _FieldFrame:
    name: FieldName
    chunks: list[str] = field(default_factory=list)
    children: list[tuple[FieldName, FieldValue]] = field(default_factory=list)

    def value(self) -> FieldValue:
        if self.children:
            return Nested.of(self.children)
        return Text("".join(self.chunks).strip())


# None marks an element under the root that is neither record nor group.
_Frame = _ContainerFrame | _RecordFrame | _FieldFrame | None


class _TreeBuilder(ContentHandler):
    def __init__(self) -> None:
        super().__init__()
        self.tree = Tree()
        self._stack: list[_Frame] = []

    def startElement(self, name: str, attrs: AttributesImpl) -> None:  # noqa: N802
        if not self._stack:
            self._stack.append(_ContainerFrame(self.tree.nodes))
            return

        top = self._stack[-1]
        frame: _Frame
        if isinstance(top, _ContainerFrame) and name == ENTRY_TAG:
            frame = _RecordFrame(Record(id=parse_record_id(attrs.get(ID_ATTR))))
        elif isinstance(top, _ContainerFrame) and name == GROUP_TAG:
            group = Group(id=parse_record_id(attrs.get(ID_ATTR)))
            top.nodes.append(group)
            frame = _ContainerFrame(group.children, group.fields)
        elif isinstance(top, _ContainerFrame) and top.fields is None:
            frame = None
        elif top is None:
            frame = None
        else:
            frame = _FieldFrame(FieldName.from_tag(name))
        self._stack.append(frame)

    def endElement(self, name: str) -> None:  # noqa: N802
        frame = self._stack.pop()
        if not self._stack:
            return
        parent = self._stack[-1]

        if isinstance(frame, _RecordFrame):
            # Entries only open under the root or a group.
            if isinstance(parent, _ContainerFrame):
                parent.nodes.append(frame.record)
        elif isinstance(frame, _FieldFrame):
            value = frame.value()
            if isinstance(parent, _FieldFrame):
                parent.children.append((frame.name, value))
            elif isinstance(parent, _RecordFrame):
                parent.record.fields[frame.name] = value
            elif isinstance(parent, _ContainerFrame) and parent.fields is not None:
                parent.fields[frame.name] = value

    def characters(self, content: str) -> None:
        if self._stack and isinstance(self._stack[-1], _FieldFrame):
            self._stack[-1].chunks.append(content)


def _parse(text: str, handler: ContentHandler) -> None:
    xml.sax.parse(io.BytesIO(with_utf8_declaration(text).encode("utf-8")), handler)


def decode_tree(text: str) -> Tree:
    """Decode a whole registry document in one streaming pass.

    Blank text is the empty registry. Anything else must be well-formed.

    Raises:
        DocumentDecodeError: On any parse error; no partial tree is returned.
    """
    if not text.strip():
        return Tree()

    builder = _TreeBuilder()
    try:
        _parse(text, builder)
    except xml.sax.SAXException as e:
        msg = f"Cannot decode registry document: {e}"
        raise DocumentDecodeError(msg) from e
    return builder.tree


class _EntryDumper(ContentHandler):
    def __init__(self) -> None:
        super().__init__()
        self.lines: list[str] = []
        self._inside = False
        self._indent = 0

    def startElement(self, name: str, attrs: AttributesImpl) -> None:  # noqa: N802
        if name == ENTRY_TAG and not self._inside:
            self._inside = True
            return
        if self._inside:
            self.lines.append(" " * self._indent + f"{name}: ")
            self._indent += 1

    def endElement(self, name: str) -> None:  # noqa: N802
        if not self._inside:
            return
        if self._indent == 0:
            # The single entry is done.
            self._inside = False
        else:
            self._indent -= 1

    def characters(self, content: str) -> None:
        content = content.strip()
        if self._inside and content and self.lines:
            self.lines[-1] += content


def describe_entry(text: str) -> str:
    """Render a single-entry fragment as indented ``tag: text`` lines.

    Best effort: parsing stops quietly at the first error and whatever was
    read so far is returned.
    """
    if not text.strip():
        return ""
    dumper = _EntryDumper()
    try:
        _parse(text, dumper)
    except xml.sax.SAXException as e:
        logger.debug("Entry dump stopped early: {}", e)
    return "\n".join(dumper.lines)
