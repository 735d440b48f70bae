"""Redis-backed storage for captcha sessions and their verified-token index."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TypeVar

from redis.asyncio import Redis
from redis.exceptions import RedisError

from mz_admin.core.captcha import (
    SESSION_TTL_SECONDS,
    VERIFIED_TTL_SECONDS,
    session_key,
    verified_key,
)
from mz_admin.models import CaptchaSession, VerifiedToken
from mz_admin.utils.time import utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoreUnavailableError(RuntimeError):
    """Raised when the ephemeral store cannot be reached or rejects a command.

    Callers must fail closed: no challenge is issued and nothing is verified.
    """


class CaptchaStore:
    """Single source of truth for captcha session existence, reuse and expiry.

    Sessions live under ``captcha:{type}:{client_id}``; the reverse index lives
    under ``verified:{type}:{token}``. Every key carries a TTL so abandoned
    records expire on their own.
    """

    def __init__(self, redis: Redis, clock: Callable[[], datetime] = utcnow) -> None:
        self._redis = redis
        self.clock = clock

    async def _call(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        try:
            return await func()
        except RedisError as err:
            logger.error("Captcha store %s failed: %s", operation, err)
            raise StoreUnavailableError(f"Captcha store unavailable during {operation}") from err

    # --- Sessions -------------------------------------------------------------------
    async def get(self, captcha_type: str, client_id: str) -> CaptchaSession | None:
        """Return the live session, or None if it is absent, malformed or expired.

        Redis expires the key itself; the ``expires_at`` check covers records
        whose TTL was lost or has not fired yet.
        """
        key = session_key(captcha_type, client_id)
        data = await self._call("get", lambda: self._redis.hgetall(key))
        session = CaptchaSession.from_mapping(data)
        if session is None or not session.is_live(self.clock()):
            return None
        return session

    async def upsert(self, session: CaptchaSession, ttl_seconds: int = SESSION_TTL_SECONDS) -> None:
        """Replace the session hash and re-arm its TTL in one MULTI/EXEC block."""
        key = session_key(session.captcha_type, session.client_id)
        mapping = session.to_mapping()

        async def _write() -> None:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                pipe.hset(key, mapping=mapping)
                pipe.expire(key, int(ttl_seconds))
                await pipe.execute()

        await self._call("upsert", _write)

    async def delete(self, captcha_type: str, client_id: str) -> int:
        key = session_key(captcha_type, client_id)
        return int(await self._call("delete", lambda: self._redis.delete(key)))

    # --- Verified-token index -------------------------------------------------------
    async def get_verified(self, captcha_type: str, token: str) -> VerifiedToken | None:
        key = verified_key(captcha_type, token)
        data = await self._call("get_verified", lambda: self._redis.hgetall(key))
        return VerifiedToken.from_mapping(data)

    async def delete_verified(self, captcha_type: str, token: str) -> int:
        """Delete the reverse-index key and report how many keys were removed.

        DEL is atomic, so among concurrent callers exactly one observes ``1``.
        """
        key = verified_key(captcha_type, token)
        return int(await self._call("delete_verified", lambda: self._redis.delete(key)))

    async def save_verified(
        self,
        session: CaptchaSession,
        record: VerifiedToken,
        ttl_seconds: int = VERIFIED_TTL_SECONDS,
    ) -> None:
        """Persist a verified session and its reverse index with the short TTL."""
        s_key = session_key(session.captcha_type, session.client_id)
        v_key = verified_key(record.captcha_type, session.verification_token)
        s_mapping = session.to_mapping()
        v_mapping = record.to_mapping()

        async def _write() -> None:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.delete(s_key)
                pipe.hset(s_key, mapping=s_mapping)
                pipe.hset(v_key, mapping=v_mapping)
                pipe.expire(s_key, int(ttl_seconds))
                pipe.expire(v_key, int(ttl_seconds))
                await pipe.execute()

        await self._call("save_verified", _write)

    async def clear(
        self,
        captcha_type: str,
        client_id: str,
        token: str | None = None,
    ) -> tuple[int, list[str]]:
        """Delete a session and, when given, its reverse-index entry.

        Returns:
            The number of keys removed and the keys that were targeted.
        """
        keys = [session_key(captcha_type, client_id)]
        if token:
            keys.append(verified_key(captcha_type, token))
        deleted = await self._call("clear", lambda: self._redis.delete(*keys))
        return int(deleted), keys

    async def ping(self) -> bool:
        return bool(await self._call("ping", lambda: self._redis.ping()))


class CooldownStore:
    """Short-lived flags used to throttle repeated actions (e.g. reset emails)."""

    def __init__(self, redis: Redis) -> None:
        self._redis = redis

    async def is_cooldown(self, key: str) -> bool:
        """Return True if a cooldown key is currently active (exists)."""
        try:
            return bool(await self._redis.exists(key))
        except RedisError as err:
            raise StoreUnavailableError("Cooldown store unavailable") from err

    async def set_cooldown(self, key: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        try:
            await self._redis.set(key, "1", ex=int(ttl_seconds))
        except RedisError as err:
            raise StoreUnavailableError("Cooldown store unavailable") from err
