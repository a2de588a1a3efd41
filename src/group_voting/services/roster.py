"""Restaurant roster management for a session."""

import logging
from dataclasses import dataclass, replace

from group_voting.domain.sessions import Restaurant, Session
from group_voting.services.repository import SessionRepository

_logger = logging.getLogger(__name__)


@dataclass
class RestaurantRoster:
    """Append-only, id-deduplicated list of candidate restaurants."""

    repository: SessionRepository

    async def add_restaurant(self, session: Session, restaurant: Restaurant) -> Session:
        """Append a restaurant unless one with the same id is already listed."""
        if session.has_restaurant(restaurant.id):
            return session
        updated = replace(session, restaurants=(*session.restaurants, restaurant))
        saved = await self.repository.save(updated)
        _logger.info("Added restaurant %s to session %s", restaurant.id, session.id)
        return saved
