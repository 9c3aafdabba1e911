import asyncio

import pytest
import redis
from unittest.mock import AsyncMock, MagicMock

from quotagate.app.core.config import Settings

REDIS_ENV_VARS = ("REDIS_URL", "KV_URL", "UPSTASH_REDIS_URL")


@pytest.fixture(autouse=True)
def clean_redis_env(monkeypatch):
    """Keep a developer's REDIS_URL from switching tests onto Redis."""
    for name in REDIS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def memory_settings() -> Settings:
    return Settings(_env_file=None, rate_limit_sweep_interval_seconds=0.01)


class FakeClock:
    """Settable epoch-millisecond clock."""

    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def make_redis_client(count: int = 1, ttl: int = 60) -> MagicMock:
    """Mock redis.asyncio client whose pipeline replies [count, True, ttl]."""
    client = MagicMock()
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    pipe = client.pipeline.return_value
    pipe.execute = AsyncMock(return_value=[count, True, ttl])
    return client


@pytest.fixture
def redis_client() -> MagicMock:
    return make_redis_client()


class FakeRedis:
    """Counter commands over dicts; a pipeline applies all of its commands or none.

    Entries in ``failures`` disrupt the next pipeline executions in order:
    an exception is raised before anything is applied, "hang" blocks until
    cancelled, and "lost_reply" applies the commands then raises.
    """

    def __init__(self):
        self.values: dict = {}
        self.ttls: dict = {}
        self.failures: list = []

    def pipeline(self, transaction: bool = True) -> "FakePipeline":
        return FakePipeline(self, transaction)

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        pass

    def apply(self, command: str, key: str, *args):
        if command == "incr":
            self.values[key] = self.values.get(key, 0) + 1
            return self.values[key]
        if command == "expire":
            seconds, nx = args
            if key not in self.values or (nx and key in self.ttls):
                return False
            self.ttls[key] = seconds
            return True
        if command == "ttl":
            if key not in self.values:
                return -2
            return self.ttls.get(key, -1)
        raise ValueError(command)


class FakePipeline:
    def __init__(self, redis: FakeRedis, transaction: bool):
        self._redis = redis
        self.transaction = transaction
        self._commands: list = []

    def incr(self, key):
        self._commands.append(("incr", key))
        return self

    def expire(self, key, seconds, nx=False):
        self._commands.append(("expire", key, seconds, nx))
        return self

    def ttl(self, key):
        self._commands.append(("ttl", key))
        return self

    async def execute(self):
        failure = self._redis.failures.pop(0) if self._redis.failures else None
        if failure == "hang":
            await asyncio.sleep(10)
        elif isinstance(failure, Exception):
            raise failure

        if not self.transaction:
            raise AssertionError("counter commands must run in MULTI/EXEC")
        results = [self._redis.apply(*command) for command in self._commands]
        if failure == "lost_reply":
            raise redis.ConnectionError("Connection closed by server.")
        return results


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()
