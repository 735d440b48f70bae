"""Store-backed record types for the MZ Admin backend."""

from .captcha import CaptchaSession, Challenge, SessionState, Verified, VerifiedToken

__all__ = [
    "CaptchaSession",
    "Challenge", "Verified", "SessionState",
    "VerifiedToken",
]
