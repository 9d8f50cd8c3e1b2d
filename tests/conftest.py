import asyncio
import fnmatch
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

# ============================================================================
# In-memory store fixtures
# ============================================================================


class FakeStore:
    """
    Minimal in-memory stand-in for a Redis server.

    Values are stored as (type_name, value) pairs. Keys listed in
    ``vanish_on_fetch`` are deleted the moment their type is queried, which
    simulates a concurrent deleter racing the enumeration.
    """

    def __init__(self) -> None:
        self.data: Dict[str, Tuple[str, Any]] = {}
        self.vanish_on_fetch: Set[str] = set()
        self.vanish_after_type: Set[str] = set()
        self.fail_keys: Set[str] = set()
        self.latency: float = 0.0
        self.commands: List[Tuple[str, str]] = []
        self.clients_opened = 0
        self.clients_closed = 0

    def set(self, key: str, value: str) -> None:
        self.data[key] = ("string", value)

    def sadd(self, key: str, *members: str) -> None:
        self.data[key] = ("set", set(members))

    def rpush(self, key: str, *elements: str) -> None:
        self.data[key] = ("list", list(elements))

    def hset(self, key: str, pairs: List[Tuple[str, str]]) -> None:
        self.data[key] = ("hash", dict(pairs))

    def zadd(self, key: str, scores: Dict[str, float]) -> None:
        self.data[key] = ("zset", dict(scores))

    def set_raw(self, key: str, type_name: str, value: Any = None) -> None:
        self.data[key] = (type_name, value)

    def client(self) -> "FakeRedisClient":
        self.clients_opened += 1
        return FakeRedisClient(self)


class FakeRedisClient:
    """Async client exposing the commands the fingerprinter uses."""

    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.closed = False

    async def _round_trip(self, command: str, key: str = "") -> None:
        if self.closed:
            raise RuntimeError("client used after aclose()")
        self.store.commands.append((command, key))
        if key in self.store.fail_keys:
            raise RedisConnectionError(f"Connection reset while reading {key}")
        await asyncio.sleep(self.store.latency)

    def _value(self, key: str, expected: str, empty: Any) -> Any:
        type_name, value = self.store.data.get(key, (expected, empty))
        return value if type_name == expected else empty

    async def keys(self, pattern: str = "*") -> List[str]:
        await self._round_trip("KEYS")
        return [k for k in self.store.data if fnmatch.fnmatchcase(k, pattern)]

    async def scan_iter(self, match: Optional[str] = None, count: Optional[int] = None):
        await self._round_trip("SCAN")
        pattern = match or "*"
        found = [k for k in self.store.data if fnmatch.fnmatchcase(k, pattern)]
        # Real SCAN may repeat keys across cursor pages.
        for key in found + found[:1]:
            yield key

    async def type(self, key: str) -> str:
        await self._round_trip("TYPE", key)
        if key in self.store.vanish_on_fetch:
            self.store.data.pop(key, None)
        if key not in self.store.data:
            return "none"
        type_name = self.store.data[key][0]
        if key in self.store.vanish_after_type:
            self.store.data.pop(key, None)
        return type_name

    async def get(self, key: str) -> Optional[str]:
        await self._round_trip("GET", key)
        return self._value(key, "string", None)

    async def smembers(self, key: str) -> Set[str]:
        await self._round_trip("SMEMBERS", key)
        return set(self._value(key, "set", set()))

    async def lrange(self, key: str, start: int, end: int) -> List[str]:
        await self._round_trip("LRANGE", key)
        return list(self._value(key, "list", []))

    async def hgetall(self, key: str) -> Dict[str, str]:
        await self._round_trip("HGETALL", key)
        return dict(self._value(key, "hash", {}))

    async def zrange(self, key: str, start: int, end: int) -> List[str]:
        await self._round_trip("ZRANGE", key)
        scores = self._value(key, "zset", {})
        return [m for m, _ in sorted(scores.items(), key=lambda item: (item[1], item[0]))]

    async def aclose(self) -> None:
        self.closed = True
        self.store.clients_closed += 1


@pytest.fixture
def fake_store() -> FakeStore:
    """Provide an empty in-memory store."""
    return FakeStore()


@pytest.fixture
def sample_store(fake_store: FakeStore) -> FakeStore:
    """Provide the three-key store used by the end-to-end scenario."""
    fake_store.set("k1", "v1")
    fake_store.sadd("k2", "b", "a")
    fake_store.rpush("k3", "x", "y")
    return fake_store


@pytest.fixture
def log_path(tmp_path):
    """Provide a fingerprint log path inside a temporary directory."""
    return tmp_path / "fingerprints.log"


def _read_log_lines(path) -> List[str]:
    with open(path, "rb") as f:
        return sorted(line.decode("utf-8", "surrogateescape") for line in f)


@pytest.fixture
def read_log():
    """Provide a reader returning the sorted lines of a fingerprint log."""
    return _read_log_lines
