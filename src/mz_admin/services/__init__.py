"""Business logic services for the MZ Admin backend."""

from .auth_client import AuthClient, AuthUpstreamError
from .captcha import (
    Accepted,
    CaptchaError,
    CaptchaService,
    InvalidCaptchaTypeError,
    InvalidClientError,
    IssuedChallenge,
    PuzzleGenerationError,
    Rejected,
)
from .store import CaptchaStore, CooldownStore, StoreUnavailableError

__all__ = [
    "AuthClient", "AuthUpstreamError",
    "CaptchaService", "IssuedChallenge", "Accepted", "Rejected",
    "CaptchaError", "InvalidClientError", "InvalidCaptchaTypeError", "PuzzleGenerationError",
    "CaptchaStore", "CooldownStore", "StoreUnavailableError",
]
