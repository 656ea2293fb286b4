from __future__ import annotations
# invoicing/services/cache.py
import httpx
from invoicing.config import settings

# Module-level singleton: avoids creating a new TLS connection on every Redis call.
_http = httpx.AsyncClient(
    timeout=httpx.Timeout(5.0, connect=3.0),
    limits=httpx.Limits(max_connections=20, max_keepalive_connections=10, keepalive_expiry=30),
)


class UpstashClient:
    """Minimal Upstash Redis REST client; commands are POSTed as JSON arrays."""

    def __init__(self, http: httpx.AsyncClient | None = None):
        self.url = settings.UPSTASH_REDIS_REST_URL
        self.headers = {"Authorization": f"Bearer {settings.UPSTASH_REDIS_REST_TOKEN}"}
        self._client = http or _http

    async def command(self, *args) -> object:
        r = await self._client.post(
            self.url, headers=self.headers, json=[str(a) for a in args]
        )
        r.raise_for_status()
        return r.json().get("result")

    async def get(self, key: str) -> str | None:
        return await self.command("GET", key)

    async def set(self, key: str, value: str, ex: int = 300):
        await self.command("SET", key, value, "EX", ex)

    async def setnx(self, key: str, value: str, ex: int = 300) -> bool:
        """Set key only if it does not exist. Returns True if the key was set."""
        return await self.command("SET", key, value, "NX", "EX", ex) == "OK"

    async def expire(self, key: str, seconds: int):
        await self.command("EXPIRE", key, seconds)

    async def delete(self, key: str):
        await self.command("DEL", key)

    async def ping(self) -> bool:
        return await self.command("PING") == "PONG"


cache = UpstashClient()
