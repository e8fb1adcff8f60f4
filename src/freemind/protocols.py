"""Protocols for dependency injection in the sync engine."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ApiProtocol(Protocol):
    """Protocol for registry server clients."""

    def fetch_all(self) -> str:
        """Return the whole registry document, or "" if the server sent none."""
        ...

    def fetch_by_id(self, record_id: int) -> str:
        """Return a single-entry fragment, or "" if the server sent none."""
        ...

    def update(self, document: str) -> int:
        """Upload a full registry document and return the HTTP status."""
        ...
