"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .auth import ForgotPasswordRequest, MessageResponse, SignInRequest, SignUpRequest
from .captcha import (
    CaptchaChallengeResponse,
    CaptchaClearRequest,
    CaptchaClearResponse,
    CaptchaVerifyRequest,
    CaptchaVerifyResponse,
)

__all__ = [
    "ForgotPasswordRequest", "MessageResponse", "SignInRequest", "SignUpRequest",
    "CaptchaChallengeResponse",
    "CaptchaClearRequest", "CaptchaClearResponse",
    "CaptchaVerifyRequest", "CaptchaVerifyResponse",
]
