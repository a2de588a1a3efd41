"""Vote bookkeeping and ranking for a session."""

from dataclasses import dataclass, replace

from group_voting.domain.errors import UnknownRestaurantError
from group_voting.domain.sessions import (
    RestaurantStanding,
    Session,
    VoteCount,
    VoteDirection,
    VoteTally,
)
from group_voting.services.repository import SessionRepository


@dataclass
class VoteLedger:
    """Applies ballots so each user holds at most one vote per restaurant."""

    repository: SessionRepository

    async def cast_vote(
        self,
        session: Session,
        restaurant_id: str,
        user_id: str,
        direction: VoteDirection,
    ) -> Session:
        """Replace the user's vote for a restaurant and persist the session.

        Repeating a vote in the same direction leaves the counts unchanged;
        voting the other way moves the user to the opposite side.
        """
        if not session.has_restaurant(restaurant_id):
            raise UnknownRestaurantError(restaurant_id)
        current = session.tally_for(restaurant_id) or VoteTally(restaurant_id)
        updated_tally = apply_vote(current, user_id, direction)
        return await self.repository.save(
            replace(session, votes=_replace_tally(session.votes, updated_tally))
        )

    @staticmethod
    def tally(session: Session, restaurant_id: str) -> VoteCount:
        """Return derived counts for a restaurant without touching the store."""
        tally = session.tally_for(restaurant_id)
        if tally is None:
            if not session.has_restaurant(restaurant_id):
                raise UnknownRestaurantError(restaurant_id)
            return VoteCount(upvotes=0, downvotes=0)
        return VoteCount(upvotes=tally.upvotes, downvotes=tally.downvotes)

    def rank(self, session: Session) -> list[RestaurantStanding]:
        """Rank the roster by ``upvotes - downvotes``, highest first.

        Ties go to the earlier-added restaurant.
        """
        standings = [
            (index, RestaurantStanding(restaurant, self.tally(session, restaurant.id)))
            for index, restaurant in enumerate(session.restaurants)
        ]
        standings.sort(key=lambda item: (-item[1].count.score, item[0]))
        return [standing for _, standing in standings]

    def leader(self, session: Session) -> RestaurantStanding | None:
        """Return the best-ranked restaurant that received at least one vote."""
        for standing in self.rank(session):
            if standing.count.total > 0:
                return standing
        return None


def apply_vote(tally: VoteTally, user_id: str, direction: VoteDirection) -> VoteTally:
    """Retract any prior vote by the user, then record the new one.

    A repeated vote keeps the user's original position among the voters.
    """
    upvoters = tuple(user for user in tally.upvoters if user != user_id)
    downvoters = tuple(user for user in tally.downvoters if user != user_id)
    if direction == VoteDirection.UP:
        upvoters = (
            tally.upvoters if user_id in tally.upvoters else (*upvoters, user_id)
        )
    else:
        downvoters = (
            tally.downvoters
            if user_id in tally.downvoters
            else (*downvoters, user_id)
        )
    return replace(tally, upvoters=upvoters, downvoters=downvoters)


def _replace_tally(
    votes: tuple[VoteTally, ...], updated: VoteTally
) -> tuple[VoteTally, ...]:
    if any(tally.restaurant_id == updated.restaurant_id for tally in votes):
        return tuple(
            updated if tally.restaurant_id == updated.restaurant_id else tally
            for tally in votes
        )
    return (*votes, updated)
