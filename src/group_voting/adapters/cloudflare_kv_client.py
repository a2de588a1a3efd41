"""Cloudflare Workers KV REST API adapter."""

import logging
from dataclasses import dataclass
from urllib.parse import quote

import httpx

from group_voting.domain.errors import StoreUnavailableError
from group_voting.services.store import KeyValueStore

# Workers KV rejects expiration_ttl values below one minute.
_MIN_EXPIRATION_TTL = 60
_LIST_PAGE_SIZE = 1000

_logger = logging.getLogger(__name__)


@dataclass
class HttpxCloudflareKvStore(KeyValueStore):
    """Workers KV namespace accessed over HTTPS.

    KV offers no compare-and-swap, so concurrent writers follow
    last-writer-wins.
    """

    account_id: str
    namespace_id: str
    api_token: str
    http_client: httpx.AsyncClient
    base_url: str = "https://api.cloudflare.com/client/v4"
    timeout_seconds: float = 5.0

    @classmethod
    def create(
        cls,
        account_id: str,
        namespace_id: str,
        api_token: str,
        base_url: str = "https://api.cloudflare.com/client/v4",
        timeout_seconds: float = 5.0,
    ) -> "HttpxCloudflareKvStore":
        """Create a KV client with a managed httpx session."""
        return cls(
            account_id=account_id,
            namespace_id=namespace_id,
            api_token=api_token,
            http_client=httpx.AsyncClient(),
            base_url=base_url,
            timeout_seconds=timeout_seconds,
        )

    async def get(self, key: str) -> str | None:
        """Read a value; missing and expired keys return None."""
        try:
            response = await self.http_client.get(
                self._value_url(key),
                headers=self._headers(),
                timeout=self.timeout_seconds,
            )
            if response.status_code == httpx.codes.NOT_FOUND:
                return None
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise _unavailable("get", key, exc) from exc
        return response.text

    async def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Write a value with an optional expiration TTL."""
        params: dict[str, object] = {}
        if ttl_seconds is not None:
            params["expiration_ttl"] = max(ttl_seconds, _MIN_EXPIRATION_TTL)
        try:
            response = await self.http_client.put(
                self._value_url(key),
                params=params,
                content=value.encode("utf-8"),
                headers={**self._headers(), "Content-Type": "text/plain"},
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise _unavailable("put", key, exc) from exc

    async def delete(self, key: str) -> None:
        try:
            response = await self.http_client.delete(
                self._value_url(key),
                headers=self._headers(),
                timeout=self.timeout_seconds,
            )
            if response.status_code != httpx.codes.NOT_FOUND:
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise _unavailable("delete", key, exc) from exc

    async def list_keys(self, prefix: str, limit: int) -> list[str]:
        """List key names, following the pagination cursor."""
        keys: list[str] = []
        cursor: str | None = None
        url = f"{self._namespace_url()}/keys"
        while len(keys) < limit:
            params: dict[str, object] = {
                "prefix": prefix,
                "limit": min(_LIST_PAGE_SIZE, max(limit - len(keys), 10)),
            }
            if cursor:
                params["cursor"] = cursor
            try:
                response = await self.http_client.get(
                    url,
                    params=params,
                    headers=self._headers(),
                    timeout=self.timeout_seconds,
                )
                response.raise_for_status()
                payload = response.json()
                keys.extend(item["name"] for item in payload.get("result", []))
                cursor = (payload.get("result_info") or {}).get("cursor")
            except (
                httpx.HTTPError,
                ValueError,
                KeyError,
                TypeError,
                AttributeError,
            ) as exc:
                raise _unavailable("list", prefix, exc) from exc
            if not cursor:
                break
        return keys[:limit]

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()

    def _namespace_url(self) -> str:
        return (
            f"{self.base_url}/accounts/{self.account_id}"
            f"/storage/kv/namespaces/{self.namespace_id}"
        )

    def _value_url(self, key: str) -> str:
        return f"{self._namespace_url()}/values/{quote(key, safe='')}"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_token}"}


def _unavailable(action: str, key: str, exc: Exception) -> StoreUnavailableError:
    _logger.error("Workers KV %s failed for %s: %s", action, key, exc)
    return StoreUnavailableError("Session store unavailable")
