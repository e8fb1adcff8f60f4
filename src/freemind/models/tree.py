"""Decoded form of a registry document."""

from collections.abc import Iterator
from dataclasses import dataclass, field

from freemind.models.record import FieldName, FieldValue, Record


@dataclass
class Group:
    """A ``directory``: a container of records and further groups."""

    id: int | None = None
    fields: dict[FieldName, FieldValue] = field(default_factory=dict)
    children: list["Node"] = field(default_factory=list)

    def records(self) -> list[Record]:
        return [node for node in self.children if isinstance(node, Record)]


Node = Record | Group


def _walk(nodes: list[Node]) -> Iterator[Node]:
    for node in nodes:
        yield node
        if isinstance(node, Group):
            yield from _walk(node.children)


@dataclass
class Tree:
    """Top-level nodes of a registry, in document order."""

    nodes: list[Node] = field(default_factory=list)

    def records(self) -> list[Record]:
        """Records directly under the root. Group contents are not included."""
        return [node for node in self.nodes if isinstance(node, Record)]

    def groups(self) -> list[Group]:
        return [node for node in self.nodes if isinstance(node, Group)]

    def walk(self) -> Iterator[Node]:
        """Every node at any depth, in document order."""
        return _walk(self.nodes)

    def all_ids(self) -> list[int]:
        """Ids of every record and group anywhere in the document."""
        return [node.id for node in self.walk() if node.id is not None]
