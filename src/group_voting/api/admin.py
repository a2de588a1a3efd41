"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, Query, Request

from group_voting.domain.errors import UnauthorizedError

if TYPE_CHECKING:
    from group_voting.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str | None:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str | None = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not admin_token or not x_admin_token or x_admin_token != admin_token:
        raise UnauthorizedError("Admin token missing or invalid")


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.get("/sessions", dependencies=[Depends(require_admin)])
async def list_sessions(
    request: Request, limit: int = Query(default=20, ge=1, le=500)
) -> dict[str, object]:
    """Return live sessions with roster and ballot counts."""
    container: AppContainer = request.app.state.container
    sessions = await container.session_gateway.list_sessions(limit)
    return {
        "sessions": [
            {
                "id": session.id,
                "name": session.name,
                "restaurants": len(session.restaurants),
                "ballots": sum(
                    tally.upvotes + tally.downvotes for tally in session.votes
                ),
                "expires": int(session.expires_at.timestamp() * 1000),
            }
            for session in sessions
        ]
    }
