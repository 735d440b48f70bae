"""Tests for the redis-backed captcha and cooldown stores."""

from datetime import timedelta

import pytest

from mz_admin.core.captcha import session_key, verified_key
from mz_admin.models import CaptchaSession, Challenge, Verified, VerifiedToken
from mz_admin.services.store import CaptchaStore, CooldownStore, StoreUnavailableError
from tests.conftest import CLIENT_ID, BrokenRedis, FakeRedis, FixedClock


def _session(clock: FixedClock, state=None, ttl: int = 300) -> CaptchaSession:
    now = clock()
    return CaptchaSession(
        id="session-1",
        client_id=CLIENT_ID,
        captcha_type="login",
        fingerprint="f" * 64,
        ip_address="203.0.113.7",
        created_at=now,
        expires_at=now + timedelta(seconds=ttl),
        state=state or Challenge(puzzle_x=120, puzzle_y=40, image_index=2),
    )


@pytest.mark.asyncio
async def test_upsert_writes_hash_with_ttl(
    store: CaptchaStore, fake_redis: FakeRedis, clock: FixedClock
) -> None:
    """A challenge is stored as a string hash under its type-scoped key."""
    await store.upsert(_session(clock))

    key = session_key("login", CLIENT_ID)
    stored = fake_redis.hashes[key]
    assert stored["verified"] == "false"
    assert stored["puzzle_x"] == "120"
    assert stored["image_index"] == "2"
    assert stored["verification_token"] == ""
    assert await fake_redis.ttl(key) == 300

    loaded = await store.get("login", CLIENT_ID)
    assert loaded == _session(clock)


@pytest.mark.asyncio
async def test_upsert_replaces_previous_fields(store: CaptchaStore, fake_redis: FakeRedis, clock) -> None:
    """Switching a verified session back to a challenge drops the old token field value."""
    await store.upsert(_session(clock, state=Verified(token="abc")))
    await store.upsert(_session(clock))

    stored = fake_redis.hashes[session_key("login", CLIENT_ID)]
    assert stored["verified"] == "false"
    assert stored["verification_token"] == ""


@pytest.mark.asyncio
async def test_get_ignores_expired_session(store: CaptchaStore, clock: FixedClock) -> None:
    """A record past expires_at is treated as absent even if the key survived."""
    await store.upsert(_session(clock))
    clock.advance(301)
    assert await store.get("login", CLIENT_ID) is None


@pytest.mark.asyncio
async def test_get_ignores_malformed_records(store: CaptchaStore, fake_redis: FakeRedis) -> None:
    """Partial or inconsistent hashes never surface as sessions."""
    key = session_key("login", CLIENT_ID)
    fake_redis.hashes[key] = {"id": "x", "client_id": CLIENT_ID}
    assert await store.get("login", CLIENT_ID) is None

    fake_redis.hashes[key] = _session(store.clock).to_mapping() | {
        "verified": "true",
        "verification_token": "",
    }
    assert await store.get("login", CLIENT_ID) is None


@pytest.mark.asyncio
async def test_save_verified_writes_both_keys_with_short_ttl(
    store: CaptchaStore, fake_redis: FakeRedis, clock: FixedClock
) -> None:
    """Verification persists the session and its reverse index for 90 seconds."""
    session = _session(clock, state=Verified(token="t0k3n"), ttl=90)
    record = VerifiedToken(
        client_id=CLIENT_ID,
        captcha_type="login",
        created_at=clock(),
        expires_at=session.expires_at,
    )
    await store.save_verified(session, record)

    s_key = session_key("login", CLIENT_ID)
    v_key = verified_key("login", "t0k3n")
    assert fake_redis.hashes[s_key]["verified"] == "true"
    assert fake_redis.hashes[s_key]["verification_token"] == "t0k3n"
    assert "puzzle_x" not in fake_redis.hashes[s_key]
    assert fake_redis.hashes[v_key]["client_id"] == CLIENT_ID
    assert await fake_redis.ttl(s_key) == 90
    assert await fake_redis.ttl(v_key) == 90

    assert await store.get_verified("login", "t0k3n") == record
    assert await store.get_verified("signup", "t0k3n") is None


@pytest.mark.asyncio
async def test_delete_verified_reports_single_winner(
    store: CaptchaStore, fake_redis: FakeRedis
) -> None:
    """Only the first delete of the reverse-index key reports a removal."""
    fake_redis.hashes[verified_key("login", "tok")] = {"client_id": CLIENT_ID}
    assert await store.delete_verified("login", "tok") == 1
    assert await store.delete_verified("login", "tok") == 0


@pytest.mark.asyncio
async def test_clear_returns_targeted_keys(store: CaptchaStore, fake_redis: FakeRedis, clock) -> None:
    """Clearing removes the session and, when given, the token index."""
    await store.upsert(_session(clock))
    fake_redis.hashes[verified_key("login", "tok")] = {"client_id": CLIENT_ID}

    deleted, keys = await store.clear("login", CLIENT_ID, "tok")
    assert deleted == 2
    assert keys == [session_key("login", CLIENT_ID), verified_key("login", "tok")]

    deleted, keys = await store.clear("login", CLIENT_ID)
    assert deleted == 0
    assert keys == [session_key("login", CLIENT_ID)]


@pytest.mark.asyncio
async def test_redis_errors_become_store_unavailable(clock: FixedClock) -> None:
    """Connection failures surface as StoreUnavailableError on every operation."""
    store = CaptchaStore(BrokenRedis(), clock=clock)
    with pytest.raises(StoreUnavailableError):
        await store.get("login", CLIENT_ID)
    with pytest.raises(StoreUnavailableError):
        await store.upsert(_session(clock))
    with pytest.raises(StoreUnavailableError):
        await store.delete_verified("login", "tok")
    with pytest.raises(StoreUnavailableError):
        await store.ping()


@pytest.mark.asyncio
async def test_cooldown_store(fake_redis: FakeRedis) -> None:
    """Cooldown keys exist for their TTL; a non-positive TTL sets nothing."""
    cooldowns = CooldownStore(fake_redis)
    assert await cooldowns.is_cooldown("forgot_password:a@b.co") is False

    await cooldowns.set_cooldown("forgot_password:a@b.co", 60)
    assert await cooldowns.is_cooldown("forgot_password:a@b.co") is True
    assert await fake_redis.ttl("forgot_password:a@b.co") == 60

    await cooldowns.set_cooldown("forgot_password:c@d.co", 0)
    assert await cooldowns.is_cooldown("forgot_password:c@d.co") is False


@pytest.mark.asyncio
async def test_cooldown_store_unavailable() -> None:
    cooldowns = CooldownStore(BrokenRedis())
    with pytest.raises(StoreUnavailableError):
        await cooldowns.is_cooldown("forgot_password:a@b.co")
    with pytest.raises(StoreUnavailableError):
        await cooldowns.set_cooldown("forgot_password:a@b.co", 60)
