"""Slider captcha endpoints for the MZ Admin API."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from mz_admin.api.v1.dependencies import (
    CaptchaServiceDep,
    CaptchaTypeDep,
    ClientIdDep,
    ClientInfoDep,
)
from mz_admin.schemas.captcha import (
    CaptchaChallengeData,
    CaptchaChallengeResponse,
    CaptchaClearData,
    CaptchaClearRequest,
    CaptchaClearResponse,
    CaptchaTokenData,
    CaptchaVerifyRequest,
    CaptchaVerifyResponse,
)
from mz_admin.services.captcha import CaptchaError, Rejected

router = APIRouter(prefix="/captcha", tags=["captcha"])


def _bad_request(err: CaptchaError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err))


@router.post(
    "/init",
    summary="Issue a slider puzzle",
    response_model=CaptchaChallengeResponse,
)
async def init_captcha(
    captcha_type: CaptchaTypeDep,
    client_id: ClientIdDep,
    client: ClientInfoDep,
    captcha_service: CaptchaServiceDep,
) -> CaptchaChallengeResponse:
    """Create or refresh the caller's puzzle; the answer stays server-side."""
    try:
        issued = await captcha_service.issue(captcha_type, client_id, client.ip, client.user_agent)
    except CaptchaError as err:
        raise _bad_request(err) from err

    return CaptchaChallengeResponse(
        data=CaptchaChallengeData(
            session_id=issued.session_id,
            background_image=issued.background_image,
            tile_image=issued.tile_image,
        )
    )


@router.post(
    "/verify",
    summary="Verify a slider solution",
    response_model=CaptchaVerifyResponse,
)
async def verify_captcha(
    payload: CaptchaVerifyRequest,
    captcha_type: CaptchaTypeDep,
    client_id: ClientIdDep,
    client: ClientInfoDep,
    captcha_service: CaptchaServiceDep,
) -> CaptchaVerifyResponse:
    """Score the claim and return a single-use token when it passes."""
    try:
        result = await captcha_service.verify(
            captcha_type,
            client_id,
            payload.session_id,
            client.ip,
            client.user_agent,
            payload.to_claim(),
        )
    except CaptchaError as err:
        raise _bad_request(err) from err

    if isinstance(result, Rejected):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.reason.value,
        )
    return CaptchaVerifyResponse(data=CaptchaTokenData(token=result.token))


@router.post(
    "/clear",
    summary="Discard a captcha session",
    response_model=CaptchaClearResponse,
)
async def clear_captcha(
    payload: CaptchaClearRequest,
    captcha_service: CaptchaServiceDep,
) -> CaptchaClearResponse:
    """Drop the session (and token index) after an unrelated auth failure."""
    try:
        deleted, keys = await captcha_service.clear(payload.type, payload.client_id, payload.token)
    except CaptchaError as err:
        raise _bad_request(err) from err
    return CaptchaClearResponse(data=CaptchaClearData(deleted=deleted, keys=keys))
