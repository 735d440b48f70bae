"""System endpoints for the MZ Admin API."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from mz_admin.api.v1.dependencies import RedisDep
from mz_admin.core.captcha import (
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    CAPTCHA_TYPES,
    SESSION_TTL_SECONDS,
    TILE_HEIGHT,
    TILE_WIDTH,
    VERIFIED_TTL_SECONDS,
)
from mz_admin.core.settings import settings
from mz_admin.services.store import CaptchaStore, StoreUnavailableError

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/config")
async def get_public_config() -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Only what the captcha widget needs to lay itself out is exposed; the
    verification thresholds stay server-side.

    Returns:
        Dictionary containing app metadata and captcha geometry and lifetimes
    """
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "debug": settings.debug,
        },
        "captcha": {
            "types": list(CAPTCHA_TYPES),
            "tile": {"width": TILE_WIDTH, "height": TILE_HEIGHT},
            "canvas": {"width": CANVAS_WIDTH, "height": CANVAS_HEIGHT},
            "challenge_ttl_seconds": SESSION_TTL_SECONDS,
            "token_ttl_seconds": VERIFIED_TTL_SECONDS,
        },
    }


@router.get("/health")
async def get_store_health(redis: RedisDep) -> JSONResponse:
    """Report whether the ephemeral store answers a PING.

    Returns:
        200 with ``{"status": "ok"}`` or 503 with ``{"status": "degraded"}``
    """
    try:
        healthy = await CaptchaStore(redis).ping()
    except StoreUnavailableError:
        healthy = False
    if healthy:
        return JSONResponse({"status": "ok", "store": "ok"})
    return JSONResponse({"status": "degraded", "store": "unavailable"}, status_code=503)
