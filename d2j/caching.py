"""TTL-keyed stores holding encrypted session payloads."""

from __future__ import annotations

import logging
import time
from datetime import timedelta
from typing import Callable, Protocol, runtime_checkable

from redis.asyncio import Redis
from redis.exceptions import RedisError

from .errors import EntryNotFound, StoreReadFailure, StoreWriteFailure

LOG = logging.getLogger(__name__)


@runtime_checkable
class SessionStore(Protocol):
    """Protocol implemented by session stores."""

    async def put(self, key: str, value: str, ttl: timedelta) -> None:
        """Write *value* at *key*, replacing any previous entry, expiring after *ttl*."""

    async def get(self, key: str) -> str:
        """Return the value at *key* or raise :class:`EntryNotFound`."""

    async def delete(self, key: str) -> None:
        """Remove *key*; absent keys are ignored."""

    async def close(self) -> None:
        """Release the underlying client."""


class RedisSessionStore:
    """Session store backed by Redis key expiry."""

    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def connect(
        cls,
        *,
        host: str = "localhost",
        port: int = 6379,
        password: str | None = None,
        database: int = 0,
        socket_timeout: float | None = None,
    ) -> RedisSessionStore:
        client = Redis(
            host=host,
            port=port,
            password=password or None,
            db=database,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client)

    async def put(self, key: str, value: str, ttl: timedelta) -> None:
        milliseconds = int(ttl.total_seconds() * 1000)
        try:
            if milliseconds <= 0:
                # Redis rejects non-positive expiries.
                await self._client.delete(key)
                return
            await self._client.set(key, value, px=milliseconds)
        except RedisError as exc:
            raise StoreWriteFailure(f"set into redis: {exc}") from exc
        LOG.debug("Stored session entry", extra={"ttl_ms": milliseconds})

    async def get(self, key: str) -> str:
        try:
            value = await self._client.get(key)
        except RedisError as exc:
            raise StoreReadFailure(f"get from redis: {exc}") from exc
        if value is None:
            raise EntryNotFound("session entry not found")
        return value.decode("utf-8") if isinstance(value, bytes) else str(value)

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except RedisError as exc:
            raise StoreWriteFailure(f"delete from redis: {exc}") from exc

    async def close(self) -> None:
        await self._client.aclose()


class InMemorySessionStore:
    """Process-local store for demos and tests.

    Entries carry a deadline on the injected monotonic clock and are dropped
    lazily when read after it.
    """

    def __init__(self, *, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.monotonic
        self._entries: dict[str, tuple[str, float]] = {}

    async def put(self, key: str, value: str, ttl: timedelta) -> None:
        seconds = ttl.total_seconds()
        if seconds <= 0:
            self._entries.pop(key, None)
            return
        self._entries[key] = (value, self._clock() + seconds)

    async def get(self, key: str) -> str:
        entry = self._entries.get(key)
        if entry is None:
            raise EntryNotFound("session entry not found")
        value, deadline = entry
        if self._clock() >= deadline:
            del self._entries[key]
            raise EntryNotFound("session entry not found")
        return value

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def expire(self, key: str) -> None:
        """Force *key* past its deadline (testing helper)."""

        entry = self._entries.get(key)
        if entry is not None:
            self._entries[key] = (entry[0], self._clock())

    async def close(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["InMemorySessionStore", "RedisSessionStore", "SessionStore"]
