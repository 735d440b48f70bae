"""Version 1 API endpoints."""

from .endpoints import auth_router, captcha_router, system_router

__all__ = [
    "auth_router",
    "captcha_router",
    "system_router",
]
