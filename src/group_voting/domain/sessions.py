"""Domain models for group voting sessions."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class VoteDirection(StrEnum):
    """Direction of a single ballot."""

    UP = "up"
    DOWN = "down"

    @classmethod
    def from_upvote_flag(cls, is_upvote: bool) -> "VoteDirection":
        return cls.UP if is_upvote else cls.DOWN


@dataclass(frozen=True)
class Restaurant:
    """Opaque restaurant value keyed by id.

    The payload is kept exactly as received from the search collaborator.
    """

    id: str
    payload: dict[str, object]

    @property
    def name(self) -> str | None:
        value = self.payload.get("name")
        return value if isinstance(value, str) else None


@dataclass(frozen=True)
class VoteTally:
    """Voters for one restaurant; counts are derived from membership."""

    restaurant_id: str
    upvoters: tuple[str, ...] = ()
    downvoters: tuple[str, ...] = ()

    @property
    def upvotes(self) -> int:
        return len(self.upvoters)

    @property
    def downvotes(self) -> int:
        return len(self.downvoters)

    def direction_for(self, user_id: str) -> VoteDirection | None:
        """Return the active vote direction for a user, if any."""
        if user_id in self.upvoters:
            return VoteDirection.UP
        if user_id in self.downvoters:
            return VoteDirection.DOWN
        return None


@dataclass(frozen=True)
class VoteCount:
    """Aggregate counts for one restaurant."""

    upvotes: int
    downvotes: int

    @property
    def score(self) -> int:
        return self.upvotes - self.downvotes

    @property
    def total(self) -> int:
        return self.upvotes + self.downvotes


@dataclass(frozen=True)
class RestaurantStanding:
    """A restaurant with its current counts, as shown in results."""

    restaurant: Restaurant
    count: VoteCount


@dataclass(frozen=True)
class Session:
    """A persisted group voting session.

    ``revision`` identifies the stored record this instance was read from and
    is never serialized.
    """

    id: str
    name: str
    restaurants: tuple[Restaurant, ...]
    votes: tuple[VoteTally, ...]
    created_at: datetime
    expires_at: datetime
    revision: str | None = field(default=None, compare=False)

    def has_restaurant(self, restaurant_id: str) -> bool:
        return any(item.id == restaurant_id for item in self.restaurants)

    def tally_for(self, restaurant_id: str) -> VoteTally | None:
        for tally in self.votes:
            if tally.restaurant_id == restaurant_id:
                return tally
        return None
