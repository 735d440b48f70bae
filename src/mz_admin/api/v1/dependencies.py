"""Shared API dependencies for captcha-aware endpoints."""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from redis.asyncio import Redis

from mz_admin.core.captcha import DEFAULT_CAPTCHA_TYPE, is_valid_captcha_type
from mz_admin.db.redis import get_redis
from mz_admin.services.auth_client import AuthClient, get_auth_client
from mz_admin.services.captcha import CaptchaService
from mz_admin.services.store import CaptchaStore, CooldownStore
from mz_admin.utils.network import client_ip

# Type alias for redis client dependency
RedisDep = Annotated[Redis, Depends(get_redis)]


@dataclass(frozen=True)
class ClientInfo:
    """Network origin of a request, as far as it can be told."""

    ip: str
    user_agent: str | None


def get_client_info(request: Request) -> ClientInfo:
    """Extract the client IP (proxy-aware) and user agent from the request."""
    peer = request.client.host if request.client else None
    return ClientInfo(
        ip=client_ip(request.headers, peer),
        user_agent=request.headers.get("user-agent"),
    )


def get_captcha_type(
    x_captcha_type: Annotated[str | None, Header(alias="X-Captcha-Type")] = None,
) -> str:
    """Return the captcha flow tag from the ``X-Captcha-Type`` header.

    Raises:
        HTTPException: If the tag is not one of the supported flows
    """
    captcha_type = x_captcha_type or DEFAULT_CAPTCHA_TYPE
    if not is_valid_captcha_type(captcha_type):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid captcha type",
        )
    return captcha_type


def get_client_id(
    x_client_id: Annotated[str | None, Header(alias="X-Client-ID")] = None,
) -> str:
    """Return the raw ``X-Client-ID`` header; format is checked by the service."""
    if not x_client_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing client id",
        )
    return x_client_id


def get_captcha_store(redis: RedisDep) -> CaptchaStore:
    return CaptchaStore(redis)


def get_captcha_service(store: Annotated[CaptchaStore, Depends(get_captcha_store)]) -> CaptchaService:
    return CaptchaService(store)


def get_cooldown_store(redis: RedisDep) -> CooldownStore:
    return CooldownStore(redis)


def get_auth_client_dep() -> AuthClient:
    return get_auth_client()


ClientInfoDep = Annotated[ClientInfo, Depends(get_client_info)]
CaptchaTypeDep = Annotated[str, Depends(get_captcha_type)]
ClientIdDep = Annotated[str, Depends(get_client_id)]
CaptchaServiceDep = Annotated[CaptchaService, Depends(get_captcha_service)]
CooldownStoreDep = Annotated[CooldownStore, Depends(get_cooldown_store)]
AuthClientDep = Annotated[AuthClient, Depends(get_auth_client_dep)]


async def ensure_captcha(service: CaptchaService, token: str | None, captcha_type: str) -> None:
    """Redeem a captcha token or refuse the request.

    Raises:
        HTTPException: 400 with code ``INVALID_CAPTCHA`` if redemption fails
    """
    if not await service.redeem(token, captcha_type):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "INVALID_CAPTCHA",
                "message": "Captcha is invalid or expired, please verify again",
            },
        )
