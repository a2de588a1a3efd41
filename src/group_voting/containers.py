"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from group_voting.adapters.cloudflare_kv_client import HttpxCloudflareKvStore
from group_voting.adapters.redis_store import RedisKeyValueStore
from group_voting.config import Settings
from group_voting.services.gateway import SessionGateway
from group_voting.services.ledger import VoteLedger
from group_voting.services.lifecycle import SessionLifecycle
from group_voting.services.repository import SessionRepository
from group_voting.services.roster import RestaurantRoster
from group_voting.services.store import InMemoryKeyValueStore, KeyValueStore


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: KeyValueStore
    session_repository: SessionRepository
    session_lifecycle: SessionLifecycle
    restaurant_roster: RestaurantRoster
    vote_ledger: VoteLedger
    session_gateway: SessionGateway
    close_resources: Callable[[], Awaitable[None]]


def build_store(settings: Settings) -> KeyValueStore:
    """Create the key-value store selected by ``store_backend``."""
    if settings.store_backend == "redis":
        return RedisKeyValueStore.create(
            settings.redis_url, timeout_seconds=settings.store_timeout_seconds
        )
    if settings.store_backend == "cloudflare":
        if not (
            settings.cloudflare_account_id
            and settings.cloudflare_namespace_id
            and settings.cloudflare_api_token
        ):
            raise ValueError(
                "Cloudflare store requires account id, namespace id and API token"
            )
        return HttpxCloudflareKvStore.create(
            account_id=settings.cloudflare_account_id,
            namespace_id=settings.cloudflare_namespace_id,
            api_token=settings.cloudflare_api_token,
            base_url=settings.cloudflare_base_url,
            timeout_seconds=settings.store_timeout_seconds,
        )
    return InMemoryKeyValueStore()


def build_container(
    settings: Settings | None = None, store: KeyValueStore | None = None
) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    resolved_store = store if store is not None else build_store(resolved_settings)
    session_repository = SessionRepository(
        store=resolved_store,
        ttl_seconds=resolved_settings.ttl_seconds,
        key_prefix=resolved_settings.key_prefix,
        timeout_seconds=resolved_settings.store_timeout_seconds,
    )
    session_lifecycle = SessionLifecycle(session_repository)
    restaurant_roster = RestaurantRoster(session_repository)
    vote_ledger = VoteLedger(session_repository)
    session_gateway = SessionGateway(
        repository=session_repository,
        lifecycle=session_lifecycle,
        roster=restaurant_roster,
        ledger=vote_ledger,
        max_write_attempts=resolved_settings.max_write_attempts,
    )

    async def close_resources() -> None:
        close = getattr(resolved_store, "close", None)
        if close is not None:
            await close()

    return AppContainer(
        settings=resolved_settings,
        store=resolved_store,
        session_repository=session_repository,
        session_lifecycle=session_lifecycle,
        restaurant_roster=restaurant_roster,
        vote_ledger=vote_ledger,
        session_gateway=session_gateway,
        close_resources=close_resources,
    )
