"""Slider captcha issuance, verification and single-use token redemption."""

from __future__ import annotations

import asyncio
import logging
import random
import secrets
import uuid
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import timedelta
from pathlib import Path
from typing import Final

from mz_admin.core.captcha import (
    SESSION_TTL_SECONDS,
    TOKEN_BYTES,
    VERIFIED_TTL_SECONDS,
    Claim,
    RejectionReason,
    Thresholds,
    check_claim,
    fingerprint,
    is_valid_captcha_type,
    is_valid_client_id,
)
from mz_admin.core.puzzle import Puzzle, create_puzzle
from mz_admin.core.settings import settings
from mz_admin.models import CaptchaSession, Challenge, Verified, VerifiedToken
from mz_admin.services.store import CaptchaStore, StoreUnavailableError

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES: Final[frozenset[str]] = frozenset({".jpg", ".jpeg", ".png"})
DEFAULT_IMAGE_INDEX: Final[int] = -1

PuzzleFactory = Callable[[Path | None, random.Random], Puzzle]


class CaptchaError(ValueError):
    """Base class for captcha input errors."""


class InvalidClientError(CaptchaError):
    """Raised when the client identifier is missing or not a UUID string."""


class InvalidCaptchaTypeError(CaptchaError):
    """Raised when the captcha type tag is not one of the known flows."""


class PuzzleGenerationError(RuntimeError):
    """Raised when neither the chosen nor the default image could be rendered."""


@dataclass(frozen=True)
class IssuedChallenge:
    """What the client receives for a new round. Carries no answer."""

    session_id: str
    background_image: str
    tile_image: str


@dataclass(frozen=True)
class Accepted:
    token: str


@dataclass(frozen=True)
class Rejected:
    reason: RejectionReason


VerificationResult = Accepted | Rejected


def list_captcha_images(image_dir: Path) -> list[Path]:
    """Return the background images available in ``image_dir``, sorted by name.

    An unreadable or missing directory yields an empty list.
    """
    try:
        return sorted(
            path
            for path in image_dir.iterdir()
            if path.is_file() and path.suffix.lower() in IMAGE_SUFFIXES
        )
    except OSError as err:
        logger.warning("Cannot read captcha image directory %s: %s", image_dir, err)
        return []


def validate_request(captcha_type: str | None, client_id: str | None) -> None:
    """Reject malformed input before any store access.

    Raises:
        InvalidCaptchaTypeError: If the type tag is unknown.
        InvalidClientError: If the client id is absent or malformed.
    """
    if not is_valid_captcha_type(captcha_type):
        raise InvalidCaptchaTypeError("Invalid captcha type")
    if not is_valid_client_id(client_id):
        raise InvalidClientError("Invalid client id")


class CaptchaService:
    """Orchestrates the slider captcha lifecycle on top of `CaptchaStore`.

    Sessions move from absent to `Challenge` (issue), from `Challenge` to
    `Verified` (verify) and back to absent (redeem, clear or TTL expiry).
    """

    def __init__(
        self,
        store: CaptchaStore,
        *,
        image_dir: Path | str | None = None,
        thresholds: Thresholds | None = None,
        rng: random.Random | None = None,
        puzzle_factory: PuzzleFactory = create_puzzle,
    ) -> None:
        self._store = store
        self._image_dir = Path(image_dir if image_dir is not None else settings.captcha_image_dir)
        self._thresholds = thresholds or Thresholds.from_mapping(settings.captcha_thresholds)
        self._rng = rng or random.Random()
        self._puzzle_factory = puzzle_factory

    async def _generate_puzzle(self) -> tuple[Puzzle, int]:
        images = await asyncio.to_thread(list_captcha_images, self._image_dir)
        if images:
            index = self._rng.randrange(len(images))
            try:
                puzzle = await asyncio.to_thread(self._puzzle_factory, images[index], self._rng)
                return puzzle, index
            except (OSError, ValueError) as err:
                logger.warning("Captcha image %s unusable, using default: %s", images[index], err)
        else:
            logger.warning("No captcha images in %s, using default", self._image_dir)

        try:
            puzzle = await asyncio.to_thread(self._puzzle_factory, None, self._rng)
        except (OSError, ValueError) as err:
            raise PuzzleGenerationError("Failed to generate captcha") from err
        return puzzle, DEFAULT_IMAGE_INDEX

    async def issue(
        self,
        captcha_type: str,
        client_id: str,
        ip: str,
        user_agent: str | None,
    ) -> IssuedChallenge:
        """Create a puzzle and bind it to the client's session.

        A live session for the same (type, client_id) keeps its id; its puzzle,
        timestamps, fingerprint and IP are replaced and any minted token is
        dropped.

        Raises:
            InvalidCaptchaTypeError, InvalidClientError: On malformed input.
            StoreUnavailableError: If redis cannot be reached.
            PuzzleGenerationError: If no image could be rendered.
        """
        validate_request(captcha_type, client_id)
        session_fingerprint = fingerprint(ip, user_agent)

        existing = await self._store.get(captcha_type, client_id)
        puzzle, image_index = await self._generate_puzzle()

        now = self._store.clock()
        if existing is not None:
            logger.info("Reusing captcha session %s", existing.id)
            session_id = existing.id
        else:
            session_id = str(uuid.uuid4())

        session = CaptchaSession(
            id=session_id,
            client_id=client_id,
            captcha_type=captcha_type,
            fingerprint=session_fingerprint,
            ip_address=ip,
            created_at=now,
            expires_at=now + timedelta(seconds=SESSION_TTL_SECONDS),
            state=Challenge(puzzle_x=puzzle.x, puzzle_y=puzzle.y, image_index=image_index),
        )
        await self._store.upsert(session, SESSION_TTL_SECONDS)

        return IssuedChallenge(
            session_id=session_id,
            background_image=puzzle.background,
            tile_image=puzzle.tile,
        )

    async def verify(
        self,
        captcha_type: str,
        client_id: str,
        session_id: str,
        ip: str,
        user_agent: str | None,
        claim: Claim,
    ) -> VerificationResult:
        """Check a claimed solution and mint a single-use token on success.

        Raises:
            InvalidCaptchaTypeError, InvalidClientError: On malformed input.
            StoreUnavailableError: If redis cannot be reached.
        """
        validate_request(captcha_type, client_id)
        session = await self._store.get(captcha_type, client_id)

        if (
            session is None
            or session.id != session_id
            or session.client_id != client_id
            or session.fingerprint != fingerprint(ip, user_agent)
            or not isinstance(session.state, Challenge)
        ):
            logger.info("Captcha session lookup rejected for %s", captcha_type)
            return Rejected(RejectionReason.SESSION_INVALID)

        reason = check_claim(claim, session.state.puzzle_x, self._thresholds)
        if reason is not None:
            logger.info("Captcha claim rejected for session %s: %s", session.id, reason.name)
            return Rejected(reason)

        token = secrets.token_hex(TOKEN_BYTES)
        now = self._store.clock()
        expires_at = now + timedelta(seconds=VERIFIED_TTL_SECONDS)
        verified = replace(session, state=Verified(token=token), expires_at=expires_at)
        record = VerifiedToken(
            client_id=client_id,
            captcha_type=captcha_type,
            created_at=now,
            expires_at=expires_at,
        )
        await self._store.save_verified(verified, record, VERIFIED_TTL_SECONDS)
        logger.info("Captcha session %s verified", session.id)
        return Accepted(token=token)

    async def redeem(self, token: str | None, captcha_type: str) -> bool:
        """Consume a verification token exactly once.

        Any failed check or store error yields False. Among concurrent callers
        presenting the same token, only the one whose delete removes the
        reverse-index key succeeds.
        """
        if not token:
            return False

        try:
            record = await self._store.get_verified(captcha_type, token)
            if record is None or not record.client_id:
                return False

            session = await self._store.get(captcha_type, record.client_id)
            if session is None or not session.verified:
                return False
            if not secrets.compare_digest(session.verification_token, token):
                return False

            if await self._store.delete_verified(captcha_type, token) != 1:
                logger.warning("Captcha token for %s already redeemed", captcha_type)
                return False
            await self._store.delete(captcha_type, record.client_id)
        except StoreUnavailableError:
            return False

        return True

    async def clear(
        self,
        captcha_type: str,
        client_id: str,
        token: str | None = None,
    ) -> tuple[int, list[str]]:
        """Force a fresh challenge by deleting the session (and its token index).

        Raises:
            InvalidCaptchaTypeError, InvalidClientError: On malformed input.
            StoreUnavailableError: If redis cannot be reached.
        """
        validate_request(captcha_type, client_id)
        return await self._store.clear(captcha_type, client_id, token)
