"""API endpoint modules for version 1."""

from .auth import router as auth_router
from .captcha import router as captcha_router
from .system import router as system_router

__all__ = [
    "auth_router",
    "captcha_router",
    "system_router",
]
