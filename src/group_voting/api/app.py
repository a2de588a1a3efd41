"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from group_voting.api.admin import router as admin_router
from group_voting.api.models import (
    AddRestaurantRequest,
    CreateSessionRequest,
    ResolveSessionRequest,
    UpdateSessionRequest,
    VoteRequest,
)
from group_voting.app_logging import configure_logging
from group_voting.containers import AppContainer
from group_voting.domain.errors import SessionServiceError, StoreUnavailableError
from group_voting.domain.sessions import RestaurantStanding
from group_voting.services.gateway import SessionResults
from group_voting.services.repository import session_to_payload


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container
    app.add_middleware(
        CORSMiddleware,
        allow_origins=container.settings.cors_allow_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Admin-Token"],
    )

    app.include_router(admin_router)

    @app.exception_handler(SessionServiceError)
    async def handle_service_error(
        request: Request, exc: SessionServiceError
    ) -> JSONResponse:
        if isinstance(exc, StoreUnavailableError):
            logger.warning("Store unavailable for %s %s", request.method, request.url)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "kind": exc.kind},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": _validation_message(exc), "kind": "invalid_input"},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/sessions")
    async def create_session(
        request: Request, body: CreateSessionRequest | None = None
    ) -> dict[str, object]:
        """Start a new voting session."""
        state_container: AppContainer = request.app.state.container
        session = await state_container.session_gateway.create_session(
            body.name if body else None
        )
        return session_to_payload(session)

    @app.post("/sessions/resolve")
    async def resolve_session(
        body: ResolveSessionRequest, request: Request
    ) -> dict[str, object]:
        """Return the requested session, or a new one when it no longer exists."""
        state_container: AppContainer = request.app.state.container
        session, created = await state_container.session_gateway.resolve_session(
            body.session_id, body.name
        )
        return {
            "session": session_to_payload(session),
            "created": created,
            "requestedId": body.session_id,
        }

    @app.get("/sessions/{session_id}")
    async def get_session(session_id: str, request: Request) -> dict[str, object]:
        """Fetch a session by id."""
        state_container: AppContainer = request.app.state.container
        session = await state_container.session_gateway.get_session(session_id)
        return session_to_payload(session)

    @app.put("/sessions/{session_id}")
    async def update_session(
        session_id: str, body: UpdateSessionRequest, request: Request
    ) -> dict[str, object]:
        """Merge name, restaurants and votes into a session."""
        state_container: AppContainer = request.app.state.container
        votes = (
            [entry.model_dump(by_alias=True) for entry in body.votes]
            if body.votes is not None
            else None
        )
        session = await state_container.session_gateway.update_session(
            session_id,
            name=body.name,
            restaurants=body.restaurants,
            votes=votes,
        )
        return session_to_payload(session)

    @app.delete("/sessions/{session_id}")
    async def delete_session(session_id: str, request: Request) -> dict[str, bool]:
        """Delete a session; unknown ids succeed as well."""
        state_container: AppContainer = request.app.state.container
        await state_container.session_gateway.delete_session(session_id)
        return {"success": True}

    @app.get("/sessions/{session_id}/results")
    async def session_results(
        session_id: str, request: Request
    ) -> dict[str, object]:
        """List restaurants with their current tallies, leader first."""
        state_container: AppContainer = request.app.state.container
        results = await state_container.session_gateway.results(session_id)
        return _format_results(results)

    @app.post("/add-restaurant")
    async def add_restaurant(
        body: AddRestaurantRequest, request: Request
    ) -> dict[str, object]:
        """Add a restaurant to a session, ignoring ids already listed."""
        state_container: AppContainer = request.app.state.container
        session = await state_container.session_gateway.add_restaurant(
            body.session_id, body.restaurant
        )
        return session_to_payload(session)

    @app.post("/vote")
    async def vote(body: VoteRequest, request: Request) -> dict[str, object]:
        """Cast or change a user's vote for a restaurant."""
        state_container: AppContainer = request.app.state.container
        session = await state_container.session_gateway.cast_vote(
            body.session_id, body.restaurant_id, body.user_id, body.is_upvote
        )
        return session_to_payload(session)

    return app


def _format_results(results: SessionResults) -> dict[str, object]:
    return {
        "sessionId": results.session.id,
        "leaderId": results.leader.restaurant.id if results.leader else None,
        "standings": [_format_standing(standing) for standing in results.standings],
    }


def _format_standing(standing: RestaurantStanding) -> dict[str, object]:
    return {
        "restaurant": dict(standing.restaurant.payload),
        "upvotes": standing.count.upvotes,
        "downvotes": standing.count.downvotes,
        "score": standing.count.score,
    }


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message
