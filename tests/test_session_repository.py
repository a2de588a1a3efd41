"""Tests for session persistence."""

import asyncio
import json
from dataclasses import replace

import pytest

from group_voting.domain.errors import (
    ConflictError,
    SessionNotFoundError,
    StoreUnavailableError,
)
from group_voting.services.repository import (
    DEFAULT_SESSION_NAME,
    SessionRepository,
    session_to_payload,
)
from group_voting.services.store import InMemoryKeyValueStore
from tests.conftest import (
    FakeClock,
    RacingStore,
    SlowStore,
    UnavailableStore,
    make_restaurant,
)


def test_create_persists_empty_session(
    repository: SessionRepository, store: InMemoryKeyValueStore, clock: FakeClock
) -> None:
    session = asyncio.run(repository.create("Lunch"))

    assert session.name == "Lunch"
    assert session.restaurants == ()
    assert session.votes == ()
    assert session.created_at == clock.now
    assert (session.expires_at - session.created_at).total_seconds() == 3600

    raw = asyncio.run(store.get(f"session:{session.id}"))
    assert raw is not None
    stored = json.loads(raw)
    assert stored["id"] == session.id
    assert stored["restaurants"] == []
    assert stored["votes"] == []


def test_create_uses_default_name(repository: SessionRepository) -> None:
    session = asyncio.run(repository.create(None))

    assert session.name == DEFAULT_SESSION_NAME


def test_create_assigns_distinct_ids(repository: SessionRepository) -> None:
    first = asyncio.run(repository.create("A"))
    second = asyncio.run(repository.create("B"))

    assert first.id != second.id


def test_get_round_trips_session(repository: SessionRepository) -> None:
    created = asyncio.run(repository.create("Dinner"))
    saved = asyncio.run(
        repository.save(replace(created, restaurants=(make_restaurant("r1"),)))
    )

    fetched = asyncio.run(repository.get(created.id))

    assert fetched.id == created.id
    assert fetched.name == "Dinner"
    assert [item.id for item in fetched.restaurants] == ["r1"]
    assert fetched.restaurants[0].payload["rating"] == 4.5
    assert fetched.revision == saved.revision


def test_get_unknown_session_raises_not_found(repository: SessionRepository) -> None:
    with pytest.raises(SessionNotFoundError):
        asyncio.run(repository.get("missing"))


def test_get_expired_session_raises_not_found(
    repository: SessionRepository, clock: FakeClock
) -> None:
    session = asyncio.run(repository.create("Lunch"))

    clock.advance(3601)

    with pytest.raises(SessionNotFoundError):
        asyncio.run(repository.get(session.id))


def test_record_past_expires_is_not_found_even_if_store_keeps_it(
    repository: SessionRepository, store: InMemoryKeyValueStore, clock: FakeClock
) -> None:
    session = asyncio.run(repository.create("Lunch"))
    payload = session_to_payload(session)
    payload["expires"] = int(clock.now.timestamp() * 1000) - 1
    asyncio.run(store.put(f"session:{session.id}", json.dumps(payload)))

    with pytest.raises(SessionNotFoundError):
        asyncio.run(repository.get(session.id))


def test_corrupt_record_is_treated_as_not_found(
    repository: SessionRepository, store: InMemoryKeyValueStore
) -> None:
    asyncio.run(store.put("session:broken", "{not json"))
    asyncio.run(store.put("session:partial", json.dumps({"id": "partial"})))

    with pytest.raises(SessionNotFoundError):
        asyncio.run(repository.get("broken"))
    with pytest.raises(SessionNotFoundError):
        asyncio.run(repository.get("partial"))


def test_out_of_range_expiry_is_treated_as_not_found(
    repository: SessionRepository, store: InMemoryKeyValueStore
) -> None:
    session = asyncio.run(repository.create("Lunch"))
    payload = session_to_payload(session)
    payload["expires"] = 10**30
    asyncio.run(store.put("session:far-future", json.dumps(payload)))

    with pytest.raises(SessionNotFoundError):
        asyncio.run(repository.get("far-future"))


def test_get_keeps_requested_id_when_record_disagrees(
    repository: SessionRepository, store: InMemoryKeyValueStore
) -> None:
    session = asyncio.run(repository.create("Lunch"))
    payload = session_to_payload(session)
    payload["id"] = "someone-else"
    asyncio.run(store.put(f"session:{session.id}", json.dumps(payload)))

    fetched = asyncio.run(repository.get(session.id))

    assert fetched.id == session.id


def test_save_refreshes_expiry_and_preserves_id(
    repository: SessionRepository, clock: FakeClock
) -> None:
    session = asyncio.run(repository.create("Lunch"))
    clock.advance(1800)

    saved = asyncio.run(repository.save(replace(session, name="Late lunch")))

    assert saved.id == session.id
    assert saved.expires_at == clock.now + (session.expires_at - session.created_at)
    clock.advance(3000)
    fetched = asyncio.run(repository.get(session.id))
    assert fetched.name == "Late lunch"
    assert fetched.created_at == session.created_at


def test_save_with_stale_revision_raises_conflict(
    repository: SessionRepository,
) -> None:
    session = asyncio.run(repository.create("Lunch"))
    asyncio.run(repository.save(replace(session, name="First writer")))

    with pytest.raises(ConflictError):
        asyncio.run(repository.save(replace(session, name="Second writer")))

    assert asyncio.run(repository.get(session.id)).name == "First writer"


def test_save_detects_concurrent_write(clock: FakeClock) -> None:
    store = RacingStore(clock=clock)
    repository = SessionRepository(store=store, ttl_seconds=3600, clock=clock)
    session = asyncio.run(repository.create("Lunch"))

    with pytest.raises(ConflictError):
        asyncio.run(repository.save(replace(session, name="Renamed")))


def test_save_without_revision_writes_unconditionally(
    repository: SessionRepository,
) -> None:
    session = asyncio.run(repository.create("Lunch"))
    asyncio.run(repository.save(replace(session, name="Other")))

    saved = asyncio.run(repository.save(replace(session, name="Forced", revision=None)))

    assert saved.name == "Forced"
    assert asyncio.run(repository.get(session.id)).name == "Forced"


def test_delete_is_idempotent(repository: SessionRepository) -> None:
    session = asyncio.run(repository.create("Lunch"))

    asyncio.run(repository.delete(session.id))
    asyncio.run(repository.delete(session.id))

    with pytest.raises(SessionNotFoundError):
        asyncio.run(repository.get(session.id))


def test_list_sessions_returns_live_sessions(
    repository: SessionRepository, store: InMemoryKeyValueStore
) -> None:
    first = asyncio.run(repository.create("A"))
    second = asyncio.run(repository.create("B"))
    asyncio.run(store.put("session:corrupt", "garbage"))

    sessions = asyncio.run(repository.list_sessions(limit=10))

    assert {session.id for session in sessions} == {first.id, second.id}


def test_store_failure_propagates(clock: FakeClock) -> None:
    store = UnavailableStore()
    repository = SessionRepository(store=store, clock=clock)

    with pytest.raises(StoreUnavailableError):
        asyncio.run(repository.get("abc"))
    with pytest.raises(StoreUnavailableError):
        asyncio.run(repository.create("Lunch"))
    assert store.calls == ["get", "put"]


def test_store_timeout_raises_store_unavailable(clock: FakeClock) -> None:
    repository = SessionRepository(
        store=SlowStore(delay_seconds=1.0), timeout_seconds=0.01, clock=clock
    )

    with pytest.raises(StoreUnavailableError):
        asyncio.run(repository.get("abc"))


def test_payload_uses_wire_field_names(repository: SessionRepository) -> None:
    session = asyncio.run(repository.create("Lunch"))

    payload = session_to_payload(session)

    assert set(payload) == {
        "id",
        "name",
        "restaurants",
        "votes",
        "createdAt",
        "expires",
    }
    assert payload["createdAt"] == "2026-01-05T12:00:00.000Z"
    assert payload["expires"] == int(session.expires_at.timestamp() * 1000)
