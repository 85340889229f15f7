"""Key/value persistence used by the contact directory."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .repository import SqliteKeyValueStore


@runtime_checkable
class KeyValueStore(Protocol):
    """Async string key/value store."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...


class InMemoryKeyValueStore:
    """Process-local store, mostly for tests and ephemeral sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value


__all__ = ["InMemoryKeyValueStore", "KeyValueStore", "SqliteKeyValueStore"]
