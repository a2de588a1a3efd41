"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from group_voting.config import Settings
from group_voting.containers import AppContainer, build_container
from group_voting.domain.errors import StoreUnavailableError
from group_voting.domain.sessions import Restaurant
from group_voting.services.ledger import VoteLedger
from group_voting.services.lifecycle import SessionLifecycle
from group_voting.services.repository import SessionRepository
from group_voting.services.roster import RestaurantRoster
from group_voting.services.store import InMemoryKeyValueStore, KeyValueStore


@dataclass
class FakeClock:
    """Controllable clock for expiry tests."""

    now: datetime = field(default_factory=lambda: datetime(2026, 1, 5, 12, tzinfo=UTC))

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class RacingStore(InMemoryKeyValueStore):
    """In-memory store where another writer sneaks in before conditional writes."""

    def __init__(self, clock: FakeClock, races: int = 1) -> None:
        super().__init__(clock=clock)
        self.races = races
        self.conditional_writes = 0

    async def replace_if_unchanged(
        self, key: str, value: str, expected_digest: str, ttl_seconds: int | None
    ) -> bool:
        self.conditional_writes += 1
        if self.races > 0:
            self.races -= 1
            current = await self.get(key)
            if current is not None:
                # Same content, new bytes: a concurrent save by another instance.
                await self.put(key, current + " ", ttl_seconds)
        return await super().replace_if_unchanged(
            key, value, expected_digest, ttl_seconds
        )


@dataclass
class UnavailableStore(KeyValueStore):
    """Store that fails every call like an unreachable backend."""

    calls: list[str] = field(default_factory=list)

    async def get(self, key: str) -> str | None:
        self.calls.append("get")
        raise StoreUnavailableError("Session store unavailable")

    async def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        self.calls.append("put")
        raise StoreUnavailableError("Session store unavailable")

    async def delete(self, key: str) -> None:
        self.calls.append("delete")
        raise StoreUnavailableError("Session store unavailable")

    async def list_keys(self, prefix: str, limit: int) -> list[str]:
        self.calls.append("list_keys")
        raise StoreUnavailableError("Session store unavailable")


@dataclass
class SlowStore(KeyValueStore):
    """Store whose reads never finish within the repository timeout."""

    delay_seconds: float = 1.0

    async def get(self, key: str) -> str | None:
        await asyncio.sleep(self.delay_seconds)
        return None

    async def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        await asyncio.sleep(self.delay_seconds)

    async def delete(self, key: str) -> None:
        await asyncio.sleep(self.delay_seconds)

    async def list_keys(self, prefix: str, limit: int) -> list[str]:
        await asyncio.sleep(self.delay_seconds)
        return []


def make_restaurant(restaurant_id: str, name: str | None = None) -> Restaurant:
    payload: dict[str, object] = {
        "id": restaurant_id,
        "name": name or f"Restaurant {restaurant_id}",
        "rating": 4.5,
        "priceLevel": 2,
        "location": {"lat": 40.7, "lng": -74.0},
    }
    return Restaurant(id=restaurant_id, payload=payload)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture
def repository(store: InMemoryKeyValueStore, clock: FakeClock) -> SessionRepository:
    return SessionRepository(store=store, ttl_seconds=3600, clock=clock)


@pytest.fixture
def roster(repository: SessionRepository) -> RestaurantRoster:
    return RestaurantRoster(repository)


@pytest.fixture
def ledger(repository: SessionRepository) -> VoteLedger:
    return VoteLedger(repository)


@pytest.fixture
def lifecycle(repository: SessionRepository) -> SessionLifecycle:
    return SessionLifecycle(repository)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ttl_seconds=3600,
        store_backend="memory",
        admin_token="admin-token",
    )


@pytest.fixture
def container(settings: Settings) -> AppContainer:
    return build_container(settings, store=InMemoryKeyValueStore())
