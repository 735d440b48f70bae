from __future__ import annotations

import asyncio
import random
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from mz_admin.core.captcha import session_key
from mz_admin.core.puzzle import Puzzle
from mz_admin.db.redis import get_redis
from mz_admin.main import app as fastapi_app
from mz_admin.services.captcha import CaptchaService
from mz_admin.services.store import CaptchaStore

CLIENT_ID = "123e4567-e89b-42d3-a456-426614174000"
OTHER_CLIENT_ID = "9b2f7c1e-0d4a-4c55-8e3f-1a2b3c4d5e6f"
TEST_IP = "203.0.113.7"
TEST_UA = "Mozilla/5.0 (pytest)"
PUZZLE_X = 120
PUZZLE_Y = 40


class FakePipeline:
    """Queues commands and applies them in order on ``execute``."""

    def __init__(self, redis: FakeRedis) -> None:
        self._redis = redis
        self._commands: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []

    async def __aenter__(self) -> FakePipeline:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self._commands.clear()

    def _queue(self, name: str, *args: Any, **kwargs: Any) -> FakePipeline:
        self._commands.append((name, args, kwargs))
        return self

    def delete(self, *keys: str) -> FakePipeline:
        return self._queue("delete", *keys)

    def hset(self, key: str, mapping: dict[str, str]) -> FakePipeline:
        return self._queue("hset", key, mapping=mapping)

    def expire(self, key: str, seconds: int) -> FakePipeline:
        return self._queue("expire", key, seconds)

    async def execute(self) -> list[Any]:
        results = []
        for name, args, kwargs in self._commands:
            results.append(await getattr(self._redis, name)(*args, **kwargs))
        self._commands.clear()
        return results


class FakeRedis:
    """In-memory stand-in for the subset of ``redis.asyncio.Redis`` the app uses.

    Every command yields to the event loop once so concurrent callers interleave
    the way they would against a real server. TTLs are recorded, not enforced.
    """

    def __init__(self) -> None:
        self.hashes: dict[str, dict[str, str]] = {}
        self.strings: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    def _exists(self, key: str) -> bool:
        return key in self.hashes or key in self.strings

    async def hgetall(self, key: str) -> dict[str, str]:
        await asyncio.sleep(0)
        return dict(self.hashes.get(key, {}))

    async def hset(self, key: str, mapping: dict[str, str]) -> int:
        await asyncio.sleep(0)
        current = self.hashes.setdefault(key, {})
        added = len(set(mapping) - set(current))
        current.update({field: str(value) for field, value in mapping.items()})
        return added

    async def expire(self, key: str, seconds: int) -> bool:
        await asyncio.sleep(0)
        if not self._exists(key):
            return False
        self.ttls[key] = int(seconds)
        return True

    async def ttl(self, key: str) -> int:
        if not self._exists(key):
            return -2
        return self.ttls.get(key, -1)

    async def delete(self, *keys: str) -> int:
        await asyncio.sleep(0)
        removed = 0
        for key in keys:
            if self.hashes.pop(key, None) is not None or self.strings.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def exists(self, *keys: str) -> int:
        await asyncio.sleep(0)
        return sum(1 for key in keys if self._exists(key))

    async def get(self, key: str) -> str | None:
        return self.strings.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        await asyncio.sleep(0)
        self.strings[key] = str(value)
        if ex is not None:
            self.ttls[key] = int(ex)
        return True

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)


class _BrokenPipeline(FakePipeline):
    async def execute(self) -> list[Any]:
        raise RedisConnectionError("Connection refused")


class BrokenRedis(FakeRedis):
    """A redis double whose every command fails as if the server were down."""

    async def hgetall(self, key: str) -> dict[str, str]:
        raise RedisConnectionError("Connection refused")

    async def delete(self, *keys: str) -> int:
        raise RedisConnectionError("Connection refused")

    async def exists(self, *keys: str) -> int:
        raise RedisConnectionError("Connection refused")

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        raise RedisConnectionError("Connection refused")

    async def ping(self) -> bool:
        raise RedisConnectionError("Connection refused")

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return _BrokenPipeline(self)


class FixedClock:
    """Controllable clock injected into `CaptchaStore`."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def fixed_puzzle_factory(path: Any, rng: random.Random) -> Puzzle:
    return Puzzle(
        background="data:image/jpeg;base64,AAAA",
        tile="data:image/png;base64,AAAA",
        x=PUZZLE_X,
        y=PUZZLE_Y,
    )


def human_trail(target_x: float, points: int = 10) -> list[tuple[float, float]]:
    """Return an evenly spaced drag trail from 0 to ``target_x``."""
    step = target_x / (points - 1)
    return [(round(step * i, 2), float(i % 3)) for i in range(points)]


@pytest.fixture()
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 1, 1, 12, 0, tzinfo=UTC))


@pytest.fixture()
def store(fake_redis: FakeRedis, clock: FixedClock) -> CaptchaStore:
    return CaptchaStore(fake_redis, clock=clock)


@pytest.fixture()
def captcha_service(store: CaptchaStore, tmp_path) -> CaptchaService:
    """Service with a deterministic puzzle at (PUZZLE_X, PUZZLE_Y)."""
    return CaptchaService(
        store,
        image_dir=tmp_path,
        rng=random.Random(1234),
        puzzle_factory=fixed_puzzle_factory,
    )


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_redis_dependency(app: FastAPI, fake_redis: FakeRedis) -> Iterator[None]:
    app.dependency_overrides[get_redis] = lambda: fake_redis
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_redis, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


def solve_captcha(client: TestClient, fake_redis: FakeRedis, captcha_type: str = "login") -> str:
    """Run init and verify with the stored answer and return the minted token."""
    headers = {"X-Client-ID": CLIENT_ID, "X-Captcha-Type": captcha_type}
    r = client.post("/api/v1/captcha/init", headers=headers)
    assert r.status_code == 200
    session_id = r.json()["data"]["session_id"]
    puzzle_x = float(fake_redis.hashes[session_key(captcha_type, CLIENT_ID)]["puzzle_x"])

    r = client.post(
        "/api/v1/captcha/verify",
        headers=headers,
        json={
            "session_id": session_id,
            "x": puzzle_x,
            "y": 4,
            "duration": 1400,
            "trail": human_trail(puzzle_x),
        },
    )
    assert r.status_code == 200
    return r.json()["data"]["token"]
