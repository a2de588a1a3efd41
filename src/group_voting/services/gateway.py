"""Request-facing operations for group voting sessions."""

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace

from group_voting.domain.errors import ConflictError, InvalidInputError
from group_voting.domain.sessions import (
    Restaurant,
    RestaurantStanding,
    Session,
    VoteDirection,
    VoteTally,
)
from group_voting.services.ledger import VoteLedger
from group_voting.services.lifecycle import SessionLifecycle
from group_voting.services.repository import (
    SessionRepository,
    restaurant_from_payload,
)
from group_voting.services.roster import RestaurantRoster

_SESSION_ID_PATTERN = re.compile(r"[A-Za-z0-9._:-]{1,128}")
_MAX_OPAQUE_ID_LENGTH = 256
_MAX_NAME_LENGTH = 200

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionResults:
    """Roster with current tallies, best first."""

    session: Session
    standings: list[RestaurantStanding]
    leader: RestaurantStanding | None


@dataclass
class SessionGateway:
    """Validates requests and runs them as read-modify-write cycles."""

    repository: SessionRepository
    lifecycle: SessionLifecycle
    roster: RestaurantRoster
    ledger: VoteLedger
    max_write_attempts: int = 3

    async def create_session(self, name: str | None = None) -> Session:
        """Start a new session."""
        return await self.lifecycle.create(_clean_name(name))

    async def get_session(self, session_id: str) -> Session:
        """Fetch a session by id."""
        return await self.repository.get(_session_id(session_id))

    async def resolve_session(
        self, requested_id: str | None, name: str | None = None
    ) -> tuple[Session, bool]:
        """Fetch the requested session or start a new one in its place."""
        if requested_id is not None and requested_id != "":
            requested_id = _session_id(requested_id)
        return await self.lifecycle.resolve_or_create(
            requested_id or None, _clean_name(name)
        )

    async def delete_session(self, session_id: str) -> None:
        await self.repository.delete(_session_id(session_id))

    async def list_sessions(self, limit: int = 50) -> list[Session]:
        if limit < 1:
            raise InvalidInputError("limit must be positive")
        return await self.repository.list_sessions(limit)

    async def update_session(
        self,
        session_id: str,
        name: str | None = None,
        restaurants: list[object] | None = None,
        votes: list[dict[str, object]] | None = None,
    ) -> Session:
        """Merge provided fields into a session and extend its expiry."""
        session_id = _session_id(session_id)
        new_name = _clean_name(name)
        new_restaurants = (
            _parse_roster(restaurants) if restaurants is not None else None
        )

        async def mutate(session: Session) -> Session:
            roster = (
                new_restaurants if new_restaurants is not None else session.restaurants
            )
            tallies = (
                _parse_votes(votes, roster, session.restaurants)
                if votes is not None
                else session.votes
            )
            updated = replace(
                session,
                name=new_name or session.name,
                restaurants=roster,
                votes=tallies,
            )
            return await self.repository.save(updated)

        return await self._with_retry(session_id, mutate)

    async def add_restaurant(self, session_id: str, restaurant: object) -> Session:
        """Add a restaurant to a session; repeated ids are ignored."""
        session_id = _session_id(session_id)
        candidate = _parse_restaurant(restaurant)

        async def mutate(session: Session) -> Session:
            return await self.roster.add_restaurant(session, candidate)

        return await self._with_retry(session_id, mutate)

    async def cast_vote(
        self, session_id: str, restaurant_id: str, user_id: str, is_upvote: bool
    ) -> Session:
        """Record a user's up or down vote for a restaurant."""
        session_id = _session_id(session_id)
        restaurant_id = _opaque_id(restaurant_id, "restaurantId")
        user_id = _opaque_id(user_id, "userId")
        if not isinstance(is_upvote, bool):
            raise InvalidInputError("isUpvote must be a boolean")
        direction = VoteDirection.from_upvote_flag(is_upvote)

        async def mutate(session: Session) -> Session:
            return await self.ledger.cast_vote(
                session, restaurant_id, user_id, direction
            )

        return await self._with_retry(session_id, mutate)

    async def results(self, session_id: str) -> SessionResults:
        """Return the roster ranked by current votes."""
        session = await self.get_session(session_id)
        return SessionResults(
            session=session,
            standings=self.ledger.rank(session),
            leader=self.ledger.leader(session),
        )

    async def _with_retry(
        self, session_id: str, mutate: Callable[[Session], Awaitable[Session]]
    ) -> Session:
        """Re-run the whole read-modify-write when a conditional write loses."""
        attempt = 0
        while True:
            session = await self.repository.get(session_id)
            try:
                return await mutate(session)
            except ConflictError:
                attempt += 1
                _logger.warning(
                    "Write conflict on session %s (attempt %s/%s)",
                    session_id,
                    attempt,
                    self.max_write_attempts,
                )
                if attempt >= self.max_write_attempts:
                    raise


def _session_id(value: object) -> str:
    if not isinstance(value, str) or not _SESSION_ID_PATTERN.fullmatch(value):
        raise InvalidInputError("sessionId is malformed")
    return value


def _opaque_id(value: object, label: str) -> str:
    if (
        not isinstance(value, str)
        or not value
        or value != value.strip()
        or len(value) > _MAX_OPAQUE_ID_LENGTH
        or not value.isprintable()
    ):
        raise InvalidInputError(f"{label} is malformed")
    return value


def _clean_name(name: str | None) -> str | None:
    if name is None:
        return None
    if not isinstance(name, str):
        raise InvalidInputError("name must be a string")
    cleaned = name.strip()
    if len(cleaned) > _MAX_NAME_LENGTH:
        raise InvalidInputError(f"name must be at most {_MAX_NAME_LENGTH} characters")
    return cleaned or None


def _parse_restaurant(payload: object) -> Restaurant:
    try:
        restaurant = restaurant_from_payload(payload)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"restaurant is malformed: {exc}") from exc
    _opaque_id(restaurant.id, "restaurant.id")
    return restaurant


def _parse_roster(items: list[object]) -> tuple[Restaurant, ...]:
    """Parse a replacement roster, keeping the first entry for each id."""
    roster: list[Restaurant] = []
    seen: set[str] = set()
    for item in items:
        restaurant = _parse_restaurant(item)
        if restaurant.id in seen:
            continue
        seen.add(restaurant.id)
        roster.append(restaurant)
    return tuple(roster)


def _parse_votes(
    items: list[dict[str, object]],
    roster: tuple[Restaurant, ...],
    previous_roster: tuple[Restaurant, ...],
) -> tuple[VoteTally, ...]:
    """Parse replacement tallies, enforcing one side per user."""
    known_ids = {item.id for item in roster} | {item.id for item in previous_roster}
    tallies: list[VoteTally] = []
    seen: set[str] = set()
    for item in items:
        if not isinstance(item, dict):
            raise InvalidInputError("votes entries must be objects")
        restaurant_id = _opaque_id(item.get("restaurantId"), "votes.restaurantId")
        if restaurant_id not in known_ids:
            raise InvalidInputError(
                f"votes reference unknown restaurant {restaurant_id}"
            )
        if restaurant_id in seen:
            raise InvalidInputError(f"votes repeat restaurant {restaurant_id}")
        seen.add(restaurant_id)
        upvoters = _voter_list(item.get("upvotes"), "votes.upvotes")
        downvoters = _voter_list(item.get("downvotes"), "votes.downvotes")
        if set(upvoters) & set(downvoters):
            raise InvalidInputError(
                f"a user voted both ways on restaurant {restaurant_id}"
            )
        tallies.append(
            VoteTally(
                restaurant_id=restaurant_id,
                upvoters=upvoters,
                downvoters=downvoters,
            )
        )
    return tuple(tallies)


def _voter_list(value: object, label: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise InvalidInputError(f"{label} must be a list")
    voters = [_opaque_id(user, label) for user in value]
    return tuple(dict.fromkeys(voters))
