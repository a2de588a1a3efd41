"""Key-value store abstractions."""

import hashlib
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol, runtime_checkable


def record_digest(value: str) -> str:
    """Return a stable digest of a stored record."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


@runtime_checkable
class KeyValueStore(Protocol):
    """Single-key store with optional per-key expiry."""

    async def get(self, key: str) -> str | None:
        """Return the stored value, or None when absent or expired."""

    async def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Store a value, replacing any previous one."""

    async def delete(self, key: str) -> None:
        """Remove a key; absent keys are ignored."""

    async def list_keys(self, prefix: str, limit: int) -> list[str]:
        """Return up to ``limit`` live keys starting with ``prefix``."""


@runtime_checkable
class ConditionalKeyValueStore(KeyValueStore, Protocol):
    """Store that can replace a value only if it has not changed."""

    async def replace_if_unchanged(
        self, key: str, value: str, expected_digest: str, ttl_seconds: int | None
    ) -> bool:
        """Write ``value`` if the current record matches ``expected_digest``."""


@dataclass
class _StoreEntry:
    value: str
    expires_at: datetime | None


@dataclass
class InMemoryKeyValueStore(ConditionalKeyValueStore):
    """In-process store for a single instance and for tests."""

    _entries: dict[str, _StoreEntry]
    clock: Callable[[], datetime]

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._entries = {}
        self.clock = clock

    async def get(self, key: str) -> str | None:
        """Return a stored value if it hasn't expired."""
        entry = self._live_entry(key)
        return entry.value if entry else None

    async def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Store a value with an optional TTL."""
        self._entries[key] = _StoreEntry(
            value=value, expires_at=self._expiry(ttl_seconds)
        )

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def list_keys(self, prefix: str, limit: int) -> list[str]:
        keys = [key for key in list(self._entries) if key.startswith(prefix)]
        return [key for key in keys if self._live_entry(key)][:limit]

    async def replace_if_unchanged(
        self, key: str, value: str, expected_digest: str, ttl_seconds: int | None
    ) -> bool:
        """Replace a live record only if its digest still matches."""
        entry = self._live_entry(key)
        if entry is None or record_digest(entry.value) != expected_digest:
            return False
        self._entries[key] = _StoreEntry(
            value=value, expires_at=self._expiry(ttl_seconds)
        )
        return True

    def _live_entry(self, key: str) -> _StoreEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and self.clock() >= entry.expires_at:
            self._entries.pop(key, None)
            return None
        return entry

    def _expiry(self, ttl_seconds: int | None) -> datetime | None:
        if ttl_seconds is None:
            return None
        return self.clock() + timedelta(seconds=ttl_seconds)
