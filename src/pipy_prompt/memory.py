"""Key-value storage for state that outlives a single fit run.

The summarize strategy reads the previous summary for its id before
summarizing and writes the new one back afterwards. Stores may be sync or
async; callers await whatever comes back.
"""

import time
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar

from .types import StoredSummary

T = TypeVar("T")


class SummaryStore(Protocol):
    """Storage interface used by the summarize strategy."""

    def get(self, key: str) -> StoredSummary | None | Awaitable[StoredSummary | None]:
        ...

    def set(self, key: str, value: StoredSummary) -> None | Awaitable[None]:
        ...


@dataclass
class MemoryEntry(Generic[T]):
    """A stored value with timestamps (epoch ms)."""

    data: T
    created_at: int
    updated_at: int
    metadata: dict[str, Any] = field(default_factory=dict)


class InMemoryStore(Generic[T]):
    """Process-local key-value store.

    Example:
        store: InMemoryStore[StoredSummary] = InMemoryStore()
        store.set("conversation-1", StoredSummary(content="..."))
        store.get("conversation-1").content
    """

    def __init__(self):
        self._entries: dict[str, MemoryEntry[T]] = {}

    def get(self, key: str) -> T | None:
        """Get the stored value, or None."""
        entry = self._entries.get(key)
        return entry.data if entry else None

    def get_entry(self, key: str) -> MemoryEntry[T] | None:
        """Get the stored value with its metadata."""
        return self._entries.get(key)

    def set(self, key: str, value: T, metadata: dict[str, Any] | None = None) -> None:
        """Store or update a value. Last write wins."""
        now = int(time.time() * 1000)
        existing = self._entries.get(key)
        self._entries[key] = MemoryEntry(
            data=value,
            created_at=existing.created_at if existing else now,
            updated_at=now,
            metadata=dict(metadata or {}),
        )

    def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it existed."""
        return self._entries.pop(key, None) is not None

    def has(self, key: str) -> bool:
        return key in self._entries

    def list(self, prefix: str | None = None, limit: int | None = None) -> list[tuple[str, MemoryEntry[T]]]:
        """List entries sorted by key, optionally filtered by prefix."""
        items = sorted(
            (key, entry)
            for key, entry in self._entries.items()
            if prefix is None or key.startswith(prefix)
        )
        return items[:limit] if limit is not None else items

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        return len(self._entries)
