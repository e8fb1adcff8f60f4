"""Streaming read-rewrite of registry documents.

A patch never builds the whole document in memory. Expat reports where each
element starts and ends in the source, and every byte outside the spans a pass
skips or writes into is copied to the output unchanged: comments, CDATA
sections, the DOCTYPE, empty-element tags and whitespace all survive.
"""

import io
import re
from dataclasses import dataclass
from xml.parsers import expat

from freemind.core.declaration import with_utf8_declaration
from freemind.errors import DocumentDecodeError


@dataclass(frozen=True)
class Copying:
    """Source bytes are copied to the output."""


@dataclass(frozen=True)
class SkippingSpan:
    """Source bytes are dropped until the element opened at ``depth`` closes."""

    depth: int
    resume: "State"


@dataclass(frozen=True)
class Rewriting:
    """Inside a rewritten entry opened at ``depth``.

    Direct children whose tag is in ``known_tags`` were already written from
    the local record and are skipped; everything else is copied.
    """

    depth: int
    known_tags: frozenset[str]


State = Copying | SkippingSpan | Rewriting

COPYING = Copying()

# Expat has already checked well-formedness, so this only needs to find the end.
_START_TAG = re.compile(rb"""<[^\s/>]+(?:\s+[^\s=/>]+\s*=\s*(?:"[^"]*"|'[^']*'))*\s*/?>""")


@dataclass
class Element:
    """An element of the source document, located by byte offsets."""

    name: str
    attrs: dict[str, str]
    start: int
    tag_end: int
    empty: bool
    # An empty-element tag that was opened up to take content.
    expanded: bool = False


class StreamPatcher:
    """Base class for one patch pass.

    Subclasses override ``open_element``/``close_element``, which only see
    elements outside skipped spans, and record the ids they touched in
    ``affected_ids``.
    """

    def __init__(self) -> None:
        self.state: State = COPYING
        self.depth = 0
        self.affected_ids: list[int] = []
        self._open: list[Element] = []
        self._data = b""
        self._cursor = 0
        self._out = io.StringIO()
        self._parser = expat.ParserCreate()
        self._parser.StartElementHandler = self._start_element
        self._parser.EndElementHandler = self._end_element

    def rewrite(self, text: str) -> str:
        """Run the pass over ``text`` and return the rewritten document.

        Raises:
            DocumentDecodeError: If ``text`` is not well-formed.
        """
        self._data = with_utf8_declaration(text).encode("utf-8")
        try:
            self._parser.Parse(self._data, True)
        except expat.ExpatError as e:
            msg = f"Cannot decode registry document: {e}"
            raise DocumentDecodeError(msg) from e
        self.copy_to(len(self._data))
        return self._out.getvalue()

    # Output helpers

    def copy_to(self, pos: int) -> None:
        """Copy the source up to byte ``pos`` to the output."""
        if pos > self._cursor:
            self._out.write(self._data[self._cursor : pos].decode("utf-8"))
            self._cursor = pos

    def write(self, text: str) -> None:
        self._out.write(text)

    def write_inside(self, element: Element, text: str) -> None:
        """Write ``text`` right after the start tag of ``element``."""
        if element.empty:
            # <tag a="1"/> becomes <tag a="1">text</tag>, closed in _end_element.
            self.copy_to(element.tag_end - 2)
            self.write(">")
            self._cursor = element.tag_end
            element.empty = False
            element.expanded = True
        else:
            self.copy_to(element.tag_end)
        self.write(text)

    def skip_span(self, element: Element) -> None:
        """Drop ``element``, just opened, up to and including its end tag."""
        self.copy_to(element.start)
        self.state = SkippingSpan(self.depth, self.state)

    # Hooks

    def open_element(self, element: Element) -> None:
        pass

    def close_element(self, element: Element, depth: int) -> None:
        pass

    # Expat events

    def _start_element(self, name: str, attrs: dict[str, str]) -> None:
        start = self._parser.CurrentByteIndex
        match = _START_TAG.match(self._data, start) if start >= 0 else None
        if match is None:
            msg = f"Cannot locate element {name!r} in the source (entity expansion?)"
            raise DocumentDecodeError(msg)
        element = Element(name, attrs, start, match.end(), match.group().endswith(b"/>"))
        self.depth += 1
        self._open.append(element)
        if not isinstance(self.state, SkippingSpan):
            self.open_element(element)

    def _end_element(self, name: str) -> None:
        element = self._open.pop()
        depth = self.depth
        self.depth -= 1
        state = self.state
        if isinstance(state, SkippingSpan):
            if depth == state.depth:
                self._cursor = self._element_end(element)
                self.state = state.resume
            return
        self.close_element(element, depth)
        if element.expanded:
            self.copy_to(element.tag_end)
            self.write(f"</{element.name}>")

    def _element_end(self, element: Element) -> int:
        if element.empty:
            return element.tag_end
        # Inside an end-tag event, the index points at its "</".
        return self._data.index(b">", self._parser.CurrentByteIndex) + 1
