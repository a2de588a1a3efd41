"""Redis-backed key-value store."""

import logging
from dataclasses import dataclass

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from group_voting.domain.errors import StoreUnavailableError
from group_voting.services.store import ConditionalKeyValueStore, record_digest

_logger = logging.getLogger(__name__)


@dataclass
class RedisKeyValueStore(ConditionalKeyValueStore):
    """Key-value store using Redis expiry and WATCH/MULTI for conditional writes."""

    client: redis.Redis

    @classmethod
    def create(cls, url: str, timeout_seconds: float = 5.0) -> "RedisKeyValueStore":
        """Create a store with a managed connection pool."""
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=timeout_seconds,
            socket_timeout=timeout_seconds,
            health_check_interval=30,
        )
        return cls(client=client)

    async def get(self, key: str) -> str | None:
        try:
            return await self.client.get(key)
        except RedisError as exc:
            raise _unavailable("get", key, exc) from exc

    async def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        try:
            await self.client.set(key, value, ex=ttl_seconds)
        except RedisError as exc:
            raise _unavailable("put", key, exc) from exc

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(key)
        except RedisError as exc:
            raise _unavailable("delete", key, exc) from exc

    async def list_keys(self, prefix: str, limit: int) -> list[str]:
        keys: list[str] = []
        try:
            async for key in self.client.scan_iter(match=f"{prefix}*", count=100):
                keys.append(key)
                if len(keys) >= limit:
                    break
        except RedisError as exc:
            raise _unavailable("scan", prefix, exc) from exc
        return keys

    async def replace_if_unchanged(
        self, key: str, value: str, expected_digest: str, ttl_seconds: int | None
    ) -> bool:
        """Write only if the record still matches; a concurrent write aborts."""
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                current = await pipe.get(key)
                if current is None or record_digest(current) != expected_digest:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.set(key, value, ex=ttl_seconds)
                await pipe.execute()
        except WatchError:
            _logger.info("Concurrent write detected on %s", key)
            return False
        except RedisError as exc:
            raise _unavailable("replace", key, exc) from exc
        return True

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self.client.aclose()


def _unavailable(action: str, key: str, exc: Exception) -> StoreUnavailableError:
    _logger.error("Redis %s failed for %s: %s", action, key, exc)
    return StoreUnavailableError("Session store unavailable")
