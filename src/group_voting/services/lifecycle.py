"""Session creation and get-or-create resolution."""

import logging
from dataclasses import dataclass

from group_voting.domain.errors import SessionNotFoundError
from group_voting.domain.sessions import Session
from group_voting.services.repository import SessionRepository

_logger = logging.getLogger(__name__)


@dataclass
class SessionLifecycle:
    """Resolves the session a client refers to, creating one when needed."""

    repository: SessionRepository

    async def create(self, name: str | None = None) -> Session:
        return await self.repository.create(name)

    async def resolve_or_create(
        self, requested_id: str | None, default_name: str | None = None
    ) -> tuple[Session, bool]:
        """Return the requested session, or a new one and ``True`` if created.

        A created session always has its own fresh id, never ``requested_id``.
        """
        if requested_id:
            try:
                return await self.repository.get(requested_id), False
            except SessionNotFoundError:
                _logger.info(
                    "Session %s not found, creating a replacement", requested_id
                )
        return await self.repository.create(default_name), True
