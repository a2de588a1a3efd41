"""Session persistence on top of a key-value store."""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import TypeVar
from uuid import uuid4

from group_voting.domain.errors import (
    ConflictError,
    SessionNotFoundError,
    StoreUnavailableError,
)
from group_voting.domain.sessions import Restaurant, Session, VoteTally
from group_voting.services.store import (
    ConditionalKeyValueStore,
    KeyValueStore,
    record_digest,
    utc_now,
)

DEFAULT_SESSION_NAME = "Default Session"

_logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class SessionRepository:
    """Maps session ids to records in the key-value store."""

    store: KeyValueStore
    ttl_seconds: int = 86400
    key_prefix: str = "session:"
    timeout_seconds: float = 5.0
    clock: Callable[[], datetime] = utc_now

    async def create(self, name: str | None = None) -> Session:
        """Create and persist an empty session with a fresh id."""
        now = self.clock()
        session = Session(
            id=str(uuid4()),
            name=name or DEFAULT_SESSION_NAME,
            restaurants=(),
            votes=(),
            created_at=now,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
        )
        raw = encode_session(session)
        await self._call(
            self.store.put(self._key(session.id), raw, ttl_seconds=self.ttl_seconds),
            action="create",
        )
        _logger.info("Created session %s", session.id)
        return replace(session, revision=record_digest(raw))

    async def get(self, session_id: str) -> Session:
        """Return a live session or raise SessionNotFoundError."""
        raw = await self._call(self.store.get(self._key(session_id)), action="get")
        if raw is None:
            raise SessionNotFoundError(session_id)
        try:
            session = decode_session(raw, session_id)
        except (ValueError, TypeError, KeyError, OverflowError, OSError) as exc:
            _logger.warning("Discarding corrupt session record %s: %s", session_id, exc)
            raise SessionNotFoundError(session_id) from exc
        if self.clock() > session.expires_at:
            raise SessionNotFoundError(session_id)
        return replace(session, revision=record_digest(raw))

    async def save(self, session: Session) -> Session:
        """Persist a session under its own id and refresh its expiry.

        When the store supports conditional writes and the session was read
        from the store, the write only succeeds if nobody saved in between.
        """
        refreshed = replace(
            session, expires_at=self.clock() + timedelta(seconds=self.ttl_seconds)
        )
        raw = encode_session(refreshed)
        key = self._key(session.id)
        if session.revision is not None and isinstance(
            self.store, ConditionalKeyValueStore
        ):
            written = await self._call(
                self.store.replace_if_unchanged(
                    key, raw, session.revision, self.ttl_seconds
                ),
                action="save",
            )
            if not written:
                raise ConflictError(f"Session {session.id} was modified concurrently")
        else:
            await self._call(
                self.store.put(key, raw, ttl_seconds=self.ttl_seconds), action="save"
            )
        return replace(refreshed, revision=record_digest(raw))

    async def delete(self, session_id: str) -> None:
        """Remove a session; deleting an absent session is not an error."""
        await self._call(self.store.delete(self._key(session_id)), action="delete")

    async def list_sessions(self, limit: int = 50) -> list[Session]:
        """Return up to ``limit`` live sessions."""
        keys = await self._call(
            self.store.list_keys(self.key_prefix, limit), action="list"
        )
        sessions = []
        for key in keys:
            try:
                sessions.append(await self.get(key.removeprefix(self.key_prefix)))
            except SessionNotFoundError:
                continue
        return sessions

    def _key(self, session_id: str) -> str:
        return f"{self.key_prefix}{session_id}"

    async def _call(self, operation: Awaitable[T], *, action: str) -> T:
        """Run a store call with a bounded timeout."""
        try:
            return await asyncio.wait_for(operation, timeout=self.timeout_seconds)
        except TimeoutError as exc:
            _logger.warning(
                "Store %s timed out after %ss", action, self.timeout_seconds
            )
            raise StoreUnavailableError("Session store timed out") from exc


def session_to_payload(session: Session) -> dict[str, object]:
    """Build the canonical wire representation of a session."""
    return {
        "id": session.id,
        "name": session.name,
        "restaurants": [dict(item.payload) for item in session.restaurants],
        "votes": [
            {
                "restaurantId": tally.restaurant_id,
                "upvotes": list(tally.upvoters),
                "downvotes": list(tally.downvoters),
            }
            for tally in session.votes
        ],
        "createdAt": _format_timestamp(session.created_at),
        "expires": int(session.expires_at.timestamp() * 1000),
    }


def encode_session(session: Session) -> str:
    return json.dumps(session_to_payload(session), separators=(",", ":"))


def decode_session(raw: str, session_id: str) -> Session:
    """Parse a stored record; the key's id always wins over the record's."""
    payload = json.loads(raw)
    if not isinstance(payload, dict):
        raise TypeError("session record is not an object")
    if payload.get("id") not in {None, session_id}:
        _logger.warning(
            "Session record id %s does not match key %s", payload["id"], session_id
        )
    restaurants = tuple(
        restaurant_from_payload(item) for item in payload.get("restaurants") or []
    )
    votes = tuple(_tally_from_payload(item) for item in payload.get("votes") or [])
    return Session(
        id=session_id,
        name=str(payload.get("name") or DEFAULT_SESSION_NAME),
        restaurants=restaurants,
        votes=votes,
        created_at=_parse_timestamp(payload["createdAt"]),
        expires_at=datetime.fromtimestamp(int(payload["expires"]) / 1000, tz=UTC),
    )


def restaurant_from_payload(payload: object) -> Restaurant:
    """Wrap a restaurant blob, requiring only a non-empty string id."""
    if not isinstance(payload, dict):
        raise TypeError("restaurant must be an object")
    restaurant_id = payload.get("id")
    if not isinstance(restaurant_id, str) or not restaurant_id:
        raise ValueError("restaurant id must be a non-empty string")
    return Restaurant(id=restaurant_id, payload=dict(payload))


def _tally_from_payload(payload: object) -> VoteTally:
    if not isinstance(payload, dict):
        raise TypeError("vote entry must be an object")
    return VoteTally(
        restaurant_id=str(payload["restaurantId"]),
        upvoters=tuple(str(user) for user in payload.get("upvotes") or []),
        downvoters=tuple(str(user) for user in payload.get("downvotes") or []),
    )


def _format_timestamp(value: datetime) -> str:
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def _parse_timestamp(value: object) -> datetime:
    if not isinstance(value, str):
        raise TypeError("timestamp must be a string")
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
