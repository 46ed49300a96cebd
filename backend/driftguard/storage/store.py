"""Shared key-value store behind the blackboard.

The blackboard only needs single-key GET / SET / DELETE with per-key
atomicity, which Redis provides. Failures are surfaced as ``StoreError``
rather than swallowed: a missed read must be distinguishable from an empty
slot.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from driftguard.errors import StoreError

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """Protocol that blackboard storage backends must implement."""

    async def get(self, key: str) -> bytes | None:
        """Return the raw value, or None if the key is absent."""
        ...

    async def set(self, key: str, value: bytes) -> None:
        """Store a value, replacing any previous one."""
        ...

    async def delete(self, *keys: str) -> int:
        """Delete keys, returning how many existed."""
        ...


class RedisStore:
    """Redis-backed store sharing one connection pool across all callers."""

    def __init__(self, client: redis.Redis, pool: ConnectionPool | None = None):
        self._client = client
        self._pool = pool

    @classmethod
    def from_url(cls, url: str, max_connections: int = 20) -> RedisStore:
        """Create a store with its own connection pool."""
        pool = ConnectionPool.from_url(
            url,
            max_connections=max_connections,
            decode_responses=False,  # Envelopes are orjson bytes
        )
        return cls(redis.Redis(connection_pool=pool), pool)

    async def connect(self) -> None:
        """Verify the connection. Raises StoreError if Redis is unreachable."""
        try:
            await self._client.ping()
        except redis.RedisError as e:
            raise StoreError(f"Failed to connect to Redis: {e}", operation="PING") from e

    async def close(self) -> None:
        """Close the client and its connection pool."""
        await self._client.aclose()
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None
        logger.info("Redis connection closed")

    async def get(self, key: str) -> bytes | None:
        try:
            return await self._client.get(key)
        except redis.RedisError as e:
            logger.warning(f"Redis GET error for {key}: {e}")
            raise StoreError(f"Redis GET failed: {e}", operation="GET", key=key) from e

    async def set(self, key: str, value: bytes) -> None:
        try:
            await self._client.set(key, value)
        except redis.RedisError as e:
            logger.warning(f"Redis SET error for {key}: {e}")
            raise StoreError(f"Redis SET failed: {e}", operation="SET", key=key) from e

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return await self._client.delete(*keys)
        except redis.RedisError as e:
            logger.warning(f"Redis DELETE error for {keys}: {e}")
            raise StoreError(
                f"Redis DELETE failed: {e}", operation="DELETE", key=",".join(keys)
            ) from e
