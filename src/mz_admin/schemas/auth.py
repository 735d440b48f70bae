"""Authentication request schemas.

Every entry point carries a captcha token that is redeemed before anything
is forwarded to the upstream auth server.
"""

import re
from typing import Any

from pydantic import BaseModel, Field, field_validator

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _drop_none(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


class SignInRequest(BaseModel):
    """Email/password sign-in."""

    email: str = Field(..., description="Account email")
    password: str = Field(..., min_length=1, description="Account password")
    remember_me: bool | None = Field(None, description="Persist the session cookie")
    callback_url: str | None = Field(None, description="Where to go after sign-in")
    captcha_token: str | None = Field(None, description="Token from /captcha/verify (login)")

    def to_upstream(self) -> dict[str, Any]:
        return _drop_none(
            {
                "email": self.email,
                "password": self.password,
                "rememberMe": self.remember_me,
                "callbackURL": self.callback_url,
            }
        )


class SignUpRequest(BaseModel):
    """Email/password registration."""

    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    email: str = Field(..., description="Account email")
    password: str = Field(..., min_length=8, description="Account password")
    image: str | None = Field(None, description="Optional avatar URL")
    callback_url: str | None = Field(None, description="Email verification callback")
    captcha_token: str | None = Field(None, description="Token from /captcha/verify (signup)")

    def to_upstream(self) -> dict[str, Any]:
        return _drop_none(
            {
                "name": self.name,
                "email": self.email,
                "password": self.password,
                "image": self.image,
                "callbackURL": self.callback_url,
            }
        )


class ForgotPasswordRequest(BaseModel):
    """Password reset email request."""

    email: str = Field(..., min_length=1, description="Account email")
    captcha_token: str = Field(
        ..., min_length=1, description="Token from /captcha/verify (forgotPassword)"
    )
    redirect_to: str | None = Field(None, description="Reset page path")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Lower-case and trim the address, then check its shape."""
        normalized = v.lower().strip()
        if not EMAIL_PATTERN.match(normalized):
            raise ValueError("Please enter a valid email address")
        return normalized


class MessageResponse(BaseModel):
    success: bool = True
    message: str
