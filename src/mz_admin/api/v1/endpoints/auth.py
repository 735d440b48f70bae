"""Captcha-gated authentication endpoints.

Each route redeems a verification token for its own captcha flow before the
request is relayed to the upstream auth server.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse

from mz_admin.api.v1.dependencies import (
    AuthClientDep,
    CaptchaServiceDep,
    CooldownStoreDep,
    ensure_captcha,
)
from mz_admin.core.settings import settings
from mz_admin.schemas.auth import (
    ForgotPasswordRequest,
    MessageResponse,
    SignInRequest,
    SignUpRequest,
)
from mz_admin.services.auth_client import AuthUpstreamError, UpstreamResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])

# Headers relayed so the auth server sees the original client.
_FORWARDED_HEADERS = ("user-agent", "x-forwarded-for", "x-real-ip", "cookie", "origin")


def _forward_headers(request: Request) -> dict[str, str]:
    return {name: value for name in _FORWARDED_HEADERS if (value := request.headers.get(name))}


def _relay(upstream: UpstreamResponse) -> JSONResponse:
    return JSONResponse(status_code=upstream.status_code, content=upstream.body)


def _upstream_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail="Authentication service unavailable",
    )


def forgot_password_cooldown_key(email: str) -> str:
    return f"forgot_password:{email}"


def _is_user_not_found(body: Any) -> bool:
    if not isinstance(body, dict):
        return False
    text = f"{body.get('code', '')} {body.get('message', '')}".lower()
    return "user_not_found" in text or "user not found" in text or "no user found" in text


@router.post("/sign-in/email", summary="Sign in with email and password")
async def sign_in_email(
    payload: SignInRequest,
    request: Request,
    captcha_service: CaptchaServiceDep,
    auth_client: AuthClientDep,
) -> JSONResponse:
    """Redeem a ``login`` captcha token, then relay the sign-in upstream."""
    await ensure_captcha(captcha_service, payload.captcha_token, "login")
    try:
        upstream = await auth_client.sign_in_email(payload.to_upstream(), _forward_headers(request))
    except AuthUpstreamError as err:
        raise _upstream_unavailable() from err
    return _relay(upstream)


@router.post("/sign-up/email", summary="Register with email and password")
async def sign_up_email(
    payload: SignUpRequest,
    request: Request,
    captcha_service: CaptchaServiceDep,
    auth_client: AuthClientDep,
) -> JSONResponse:
    """Redeem a ``signup`` captcha token, then relay the registration upstream."""
    await ensure_captcha(captcha_service, payload.captcha_token, "signup")
    try:
        upstream = await auth_client.sign_up_email(payload.to_upstream(), _forward_headers(request))
    except AuthUpstreamError as err:
        raise _upstream_unavailable() from err
    return _relay(upstream)


@router.post(
    "/forgot-password",
    summary="Request a password reset email",
    response_model=MessageResponse,
)
async def forgot_password(
    payload: ForgotPasswordRequest,
    request: Request,
    captcha_service: CaptchaServiceDep,
    cooldowns: CooldownStoreDep,
    auth_client: AuthClientDep,
) -> MessageResponse:
    """Send a reset email at most once per cooldown window per address.

    The cooldown is only armed after the upstream accepted the request, so an
    unknown address cannot be used to lock out a real one.
    """
    await ensure_captcha(captcha_service, payload.captcha_token, "forgotPassword")

    cooldown_key = forgot_password_cooldown_key(payload.email)
    if await cooldowns.is_cooldown(cooldown_key):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "code": "RATE_LIMITED",
                "message": "Too many requests, please try again in a minute",
            },
        )

    try:
        upstream = await auth_client.forget_password(
            payload.email,
            payload.redirect_to or settings.reset_password_redirect,
            _forward_headers(request),
        )
    except AuthUpstreamError as err:
        raise _upstream_unavailable() from err

    if upstream.ok and isinstance(upstream.body, dict) and upstream.body.get("status") is True:
        await cooldowns.set_cooldown(cooldown_key, settings.forgot_password_cooldown_seconds)
        logger.info("Password reset email requested")
        return MessageResponse(message="Password reset email sent")

    if upstream.status_code == status.HTTP_404_NOT_FOUND or _is_user_not_found(upstream.body):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "USER_NOT_FOUND", "message": "No account found for this email"},
        )

    logger.warning("Password reset upstream returned %s", upstream.status_code)
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"code": "INTERNAL_ERROR", "message": "Password reset request failed"},
    )
