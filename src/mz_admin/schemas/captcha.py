"""Captcha-related Pydantic schemas."""

from typing import Literal

from pydantic import BaseModel, Field, FiniteFloat

from mz_admin.core.captcha import Claim


class CaptchaChallengeData(BaseModel):
    """Presentable challenge artifacts. Never includes the answer."""

    session_id: str = Field(..., description="Opaque captcha session identifier")
    background_image: str = Field(..., description="Background with hole, JPEG data URL")
    tile_image: str = Field(..., description="Tile strip, PNG data URL")


class CaptchaChallengeResponse(BaseModel):
    success: bool = True
    data: CaptchaChallengeData


class CaptchaVerifyRequest(BaseModel):
    """Claimed slider solution."""

    session_id: str = Field(..., min_length=1, description="Session id from /captcha/init")
    x: float = Field(
        ..., allow_inf_nan=False, description="Final horizontal tile position in pixels"
    )
    y: float = Field(
        ..., allow_inf_nan=False, description="Vertical drift of the pointer in pixels"
    )
    duration: int = Field(..., ge=0, description="Drag duration in milliseconds")
    trail: list[tuple[FiniteFloat, FiniteFloat]] = Field(
        default_factory=list,
        max_length=2000,
        description="Pointer positions sampled during the drag",
    )

    def to_claim(self) -> Claim:
        return Claim(x=self.x, y=self.y, duration_ms=self.duration, trail=tuple(self.trail))


class CaptchaTokenData(BaseModel):
    token: str = Field(..., description="Single-use verification token")


class CaptchaVerifyResponse(BaseModel):
    success: bool = True
    data: CaptchaTokenData


class CaptchaClearRequest(BaseModel):
    """Request to discard a session so the next attempt needs a fresh puzzle."""

    client_id: str = Field(..., description="Client identifier (UUID)")
    type: Literal["login", "signup", "forgotPassword"] = Field(
        "login", description="Captcha flow the session belongs to"
    )
    token: str | None = Field(None, description="Verification token to discard as well")


class CaptchaClearData(BaseModel):
    deleted: int
    keys: list[str]


class CaptchaClearResponse(BaseModel):
    success: bool = True
    data: CaptchaClearData
