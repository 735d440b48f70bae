"""Slider captcha primitives.

Pure helpers shared by the issuer, the verification engine and the HTTP layer:
fixed geometry and TTL constants, client fingerprinting, input validation and
the heuristic pipeline that scores a claimed slider solution.
"""
from __future__ import annotations

import hashlib
import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Final, Literal, get_args

CaptchaType = Literal["login", "signup", "forgotPassword"]
CAPTCHA_TYPES: Final[tuple[str, ...]] = get_args(CaptchaType)
DEFAULT_CAPTCHA_TYPE: Final[str] = "login"

SESSION_TTL_SECONDS: Final[int] = 300
VERIFIED_TTL_SECONDS: Final[int] = 90
TOKEN_BYTES: Final[int] = 32

TILE_WIDTH: Final[int] = 60
TILE_HEIGHT: Final[int] = 60
CANVAS_WIDTH: Final[int] = 320
CANVAS_HEIGHT: Final[int] = 160

CLIENT_ID_LENGTH: Final[int] = 36
_CLIENT_ID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

TrailPoint = tuple[float, float]


class RejectionReason(str, Enum):
    """Coarse, user-displayable reasons a slider claim was refused."""

    SESSION_INVALID = "session invalid or expired"
    POSITION_INCORRECT = "position incorrect"
    TOO_FAST = "too fast"
    TIMED_OUT = "timed out"
    ABNORMAL_OPERATION = "abnormal operation"


@dataclass(frozen=True)
class Thresholds:
    """Verification heuristics. Defaults are the reference values."""

    position_tolerance: int = 3
    min_duration_ms: int = 300
    max_duration_ms: int = 30_000
    min_trail_points: int = 5
    max_y_deviation: int = 40
    max_trail_jump: int = 50

    @classmethod
    def from_mapping(cls, values: Mapping[str, int]) -> Thresholds:
        return cls(**{key: int(value) for key, value in values.items()})


@dataclass(frozen=True)
class Claim:
    """A client's claimed solution: drag endpoint, duration and movement trail."""

    x: float
    y: float
    duration_ms: int
    trail: Sequence[TrailPoint] = ()


def fingerprint(ip: str, user_agent: str | None) -> str:
    """Return a stable SHA-256 hex digest binding a session to its client.

    Args:
        ip: Client IP address as extracted by the caller.
        user_agent: Raw User-Agent header, or None when absent.

    Returns:
        Hex digest of ``"{ip}:{user_agent or 'unknown'}"``.
    """
    data = f"{ip}:{user_agent or 'unknown'}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def is_valid_client_id(client_id: str | None) -> bool:
    """Return True if the identifier is a 36-character UUID-format string."""
    if not client_id or len(client_id) != CLIENT_ID_LENGTH:
        return False
    return _CLIENT_ID_PATTERN.match(client_id) is not None


def is_valid_captcha_type(captcha_type: str | None) -> bool:
    return captcha_type in CAPTCHA_TYPES


def session_key(captcha_type: str, client_id: str) -> str:
    return f"captcha:{captcha_type}:{client_id}"


def verified_key(captcha_type: str, token: str) -> str:
    return f"verified:{captcha_type}:{token}"


def _is_finite_claim(x: float, y: float, trail: Sequence[TrailPoint]) -> bool:
    return all(math.isfinite(v) for v in (x, y)) and all(
        math.isfinite(px) and math.isfinite(py) for px, py in trail
    )


def check_claim(
    claim: Claim,
    puzzle_x: int,
    thresholds: Thresholds | None = None,
) -> RejectionReason | None:
    """Score a claim against the true offset and the human-plausibility heuristics.

    The checks short-circuit in a fixed order: position, duration, trail
    length, vertical deviation, trail smoothness. A claim carrying any
    non-finite coordinate is refused as abnormal before scoring.

    Args:
        claim: The solution submitted by the client.
        puzzle_x: True horizontal offset of the tile, from the session.
        thresholds: Heuristic limits; reference defaults when omitted.

    Returns:
        None when the claim is accepted, otherwise the first failing reason.
    """
    limits = thresholds or Thresholds()
    trail = list(claim.trail)

    if not _is_finite_claim(claim.x, claim.y, trail):
        return RejectionReason.ABNORMAL_OPERATION

    if abs(claim.x - puzzle_x) > limits.position_tolerance:
        return RejectionReason.POSITION_INCORRECT

    if claim.duration_ms < limits.min_duration_ms:
        return RejectionReason.TOO_FAST
    if claim.duration_ms > limits.max_duration_ms:
        return RejectionReason.TIMED_OUT

    if len(trail) < limits.min_trail_points:
        return RejectionReason.ABNORMAL_OPERATION

    if abs(claim.y) > limits.max_y_deviation:
        return RejectionReason.ABNORMAL_OPERATION

    for previous, current in zip(trail, trail[1:]):
        if abs(current[0] - previous[0]) > limits.max_trail_jump:
            return RejectionReason.ABNORMAL_OPERATION

    return None
