"""
Connection Provider

This module supplies store connections to the key fetcher and the key
enumerator. Two interchangeable strategies share one contract:

* ``PooledConnectionProvider`` checks a connection out of a bounded blocking
  pool for the duration of one ``connection()`` block.
* ``PerCallConnectionProvider`` opens a fresh client per block and closes it
  afterwards.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional

from redis.asyncio import BlockingConnectionPool, Redis

from ..config_manager import RedisConfig

logger = logging.getLogger(__name__)

# Keys and values are decoded as UTF-8; undecodable bytes survive as
# surrogate escapes and are re-encoded identically on the way back.
CLIENT_OPTIONS = {"decode_responses": True, "encoding_errors": "surrogateescape"}


class ConnectionProvider(ABC):
    """Hands out store clients; callers never keep one past their block."""

    @abstractmethod
    def connection(self) -> Any:
        """Async context manager yielding a client for one unit of work."""

    async def close(self) -> None:
        """Release shared resources held by the provider."""

    async def __aenter__(self) -> "ConnectionProvider":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


class PooledConnectionProvider(ConnectionProvider):
    """
    Shares a bounded pool between all in-flight fetches.

    A block holds exactly one pooled connection; when all ``max_connections``
    are checked out, further blocks wait until one is returned.
    """

    def __init__(
        self,
        url: str,
        max_connections: int,
        client_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.url = url
        self.max_connections = max_connections
        self._client_factory = client_factory
        self._pool: Optional[BlockingConnectionPool] = None
        if client_factory is None:
            self._pool = BlockingConnectionPool.from_url(
                url, max_connections=max_connections, timeout=None, **CLIENT_OPTIONS
            )

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[Any]:
        if self._client_factory is not None:
            client = self._client_factory()
        else:
            client = Redis(connection_pool=self._pool, single_connection_client=True)
        try:
            yield client
        finally:
            # Returns the connection to the pool; the pool itself stays open.
            await client.aclose()

    async def close(self) -> None:
        if self._pool is not None:
            logger.debug("Disconnecting connection pool")
            await self._pool.disconnect()


class PerCallConnectionProvider(ConnectionProvider):
    """Opens a dedicated client per block; concurrency bounds the total."""

    def __init__(
        self, url: str, client_factory: Optional[Callable[[], Any]] = None
    ) -> None:
        self.url = url
        self._client_factory = client_factory or (
            lambda: Redis.from_url(url, single_connection_client=True, **CLIENT_OPTIONS)
        )

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[Any]:
        client = self._client_factory()
        try:
            yield client
        finally:
            await client.aclose()


def create_connection_provider(
    config: RedisConfig, client_factory: Optional[Callable[[], Any]] = None
) -> ConnectionProvider:
    """
    Factory function selecting the connection strategy from configuration.

    Args:
        config: Store configuration
        client_factory: Optional zero-argument client factory (for testing)

    Returns:
        ConnectionProvider: Pooled or per-call provider
    """
    if config.pooled:
        logger.debug(f"Using pooled connections (max {config.max_connections})")
        return PooledConnectionProvider(
            config.url, config.max_connections, client_factory=client_factory
        )
    logger.debug("Using per-call connections")
    return PerCallConnectionProvider(config.url, client_factory=client_factory)
