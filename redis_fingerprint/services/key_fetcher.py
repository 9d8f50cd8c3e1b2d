"""
Key Fetcher

Learns the type of one key, reads its full value with the matching command
and turns it into a fingerprint Record. Never mutates the store.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog
from redis.exceptions import RedisError

from ..canonical import canonicalize
from ..exceptions import UnsupportedTypeError, wrap_store_exception
from ..fingerprint import digest
from ..models import Record, TypeTag
from .connection_provider import ConnectionProvider

logger = structlog.get_logger(__name__)

_READERS: Dict[TypeTag, Callable[[Any, str], Awaitable[Any]]] = {
    TypeTag.STRING: lambda con, key: con.get(key),
    TypeTag.SET: lambda con, key: con.smembers(key),
    TypeTag.LIST: lambda con, key: con.lrange(key, 0, -1),
    TypeTag.HASH: lambda con, key: con.hgetall(key),
    TypeTag.ZSET: lambda con, key: con.zrange(key, 0, -1),
}


class KeyFetcher:
    """Fetches and fingerprints single keys through a ConnectionProvider."""

    def __init__(
        self, provider: ConnectionProvider, timeout: Optional[float] = None
    ) -> None:
        """
        Args:
            provider: Source of store connections
            timeout: Optional deadline in seconds for one whole fetch
        """
        self.provider = provider
        self.timeout = timeout

    async def fetch(self, key: str) -> Record:
        """
        Fingerprint one key.

        Raises:
            UnsupportedTypeError: The store reported a type we cannot hash
            StoreTransportError: A round-trip failed
            StoreTimeoutError: The fetch exceeded the configured timeout
        """
        try:
            if self.timeout is not None:
                return await asyncio.wait_for(self._fetch(key), self.timeout)
            return await self._fetch(key)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            raise wrap_store_exception(
                exc, key=key, operation="fetch", timeout=self.timeout
            ) from exc

    async def _fetch(self, key: str) -> Record:
        async with self.provider.connection() as con:
            type_name = await con.type(key)
            type_tag = TypeTag.from_store(type_name)
            if type_tag is None:
                raise UnsupportedTypeError(
                    f"Not supported type '{type_name}' for key: {key}",
                    key=key,
                    type_name=type_name,
                )

            value = None
            if type_tag is not TypeTag.NONE:
                value = await _READERS[type_tag](con, key)

        if type_tag is TypeTag.STRING and value is None:
            # Deleted between TYPE and GET.
            type_tag = TypeTag.NONE
        if type_tag is TypeTag.NONE:
            logger.debug(f"Key vanished before fetch: {key}")

        return Record(key, type_tag, digest(canonicalize(type_tag, value)))
