"""Tests for the pooled and per-call connection strategies."""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from redis_fingerprint.config_manager import RedisConfig
from redis_fingerprint.services.connection_provider import (
    CLIENT_OPTIONS,
    PerCallConnectionProvider,
    PooledConnectionProvider,
    create_connection_provider,
)

MODULE = "redis_fingerprint.services.connection_provider"


class TestPooledConnectionProvider:
    """Test cases for PooledConnectionProvider."""

    def test_pool_created_with_bound(self):
        with patch(f"{MODULE}.BlockingConnectionPool") as pool_cls:
            PooledConnectionProvider("redis://localhost/", 30)

        pool_cls.from_url.assert_called_once_with(
            "redis://localhost/", max_connections=30, timeout=None, **CLIENT_OPTIONS
        )

    @pytest.mark.asyncio
    async def test_connection_checked_out_and_returned(self):
        with patch(f"{MODULE}.BlockingConnectionPool") as pool_cls, patch(
            f"{MODULE}.Redis"
        ) as redis_cls:
            pool = pool_cls.from_url.return_value
            client = Mock()
            client.aclose = AsyncMock()
            redis_cls.return_value = client

            provider = PooledConnectionProvider("redis://localhost/", 2)
            async with provider.connection() as con:
                assert con is client

        redis_cls.assert_called_once_with(connection_pool=pool, single_connection_client=True)
        client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connection_returned_on_error(self):
        with patch(f"{MODULE}.BlockingConnectionPool"), patch(f"{MODULE}.Redis") as redis_cls:
            client = Mock()
            client.aclose = AsyncMock()
            redis_cls.return_value = client
            provider = PooledConnectionProvider("redis://localhost/", 2)

            with pytest.raises(RuntimeError):
                async with provider.connection():
                    raise RuntimeError("boom")

        client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_disconnects_pool(self):
        with patch(f"{MODULE}.BlockingConnectionPool") as pool_cls:
            pool = pool_cls.from_url.return_value
            pool.disconnect = AsyncMock()
            async with PooledConnectionProvider("redis://localhost/", 2):
                pass

        pool.disconnect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_client_factory_skips_pool(self, fake_store):
        with patch(f"{MODULE}.BlockingConnectionPool") as pool_cls:
            provider = PooledConnectionProvider(
                "redis://fake/", 2, client_factory=fake_store.client
            )
            async with provider:
                async with provider.connection():
                    pass

        pool_cls.from_url.assert_not_called()
        assert fake_store.clients_opened == fake_store.clients_closed == 1


class TestPerCallConnectionProvider:
    """Test cases for PerCallConnectionProvider."""

    @pytest.mark.asyncio
    async def test_fresh_client_per_block(self):
        with patch(f"{MODULE}.Redis") as redis_cls:
            clients = [Mock(), Mock()]
            for client in clients:
                client.aclose = AsyncMock()
            redis_cls.from_url.side_effect = clients

            provider = PerCallConnectionProvider("redis://localhost/")
            async with provider.connection() as first:
                pass
            async with provider.connection() as second:
                pass

        assert first is clients[0]
        assert second is clients[1]
        redis_cls.from_url.assert_called_with(
            "redis://localhost/", single_connection_client=True, **CLIENT_OPTIONS
        )
        for client in clients:
            client.aclose.assert_awaited_once()


class TestCreateConnectionProvider:
    """Test cases for the strategy factory."""

    def test_pooled_by_default(self, fake_store):
        config = RedisConfig(url="redis://fake/", max_connections=5, connection_strategy="pooled")
        provider = create_connection_provider(config, fake_store.client)
        assert isinstance(provider, PooledConnectionProvider)
        assert provider.max_connections == 5

    def test_per_call(self, fake_store):
        config = RedisConfig(url="redis://fake/", connection_strategy="per-call")
        provider = create_connection_provider(config, fake_store.client)
        assert isinstance(provider, PerCallConnectionProvider)
