"""HTTP client for the upstream authentication server.

Credential checks, user records and reset emails are owned by the upstream
auth server. This backend only gates access to it behind a redeemed captcha
token and relays the upstream response.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from mz_admin.core.settings import settings

logger = logging.getLogger(__name__)


class AuthUpstreamError(RuntimeError):
    """Raised when the upstream auth server cannot be reached."""


@dataclass(frozen=True)
class AuthClientConfig:
    """Connection parameters for the upstream auth server."""

    base_url: str
    timeout_seconds: float


@dataclass(frozen=True)
class UpstreamResponse:
    """Status and decoded JSON body returned by the auth server."""

    status_code: int
    body: Any

    @property
    def ok(self) -> bool:
        return self.status_code < 400


def load_auth_config() -> AuthClientConfig:
    """Build configuration object from global settings."""
    return AuthClientConfig(
        base_url=settings.auth_base_url.rstrip("/"),
        timeout_seconds=float(settings.auth_http_timeout_seconds),
    )


class AuthClient:
    """Thin async wrapper around the auth server's email/password endpoints."""

    def __init__(self, config: AuthClientConfig | None = None) -> None:
        self.config = config or load_auth_config()
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                )
        return self._client

    async def _post(
        self,
        path: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> UpstreamResponse:
        client = await self._ensure_client()
        try:
            response = await client.post(path, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Auth server request %s failed: %s", path, exc)
            raise AuthUpstreamError(f"Auth server request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {"message": response.text}
        return UpstreamResponse(status_code=response.status_code, body=body)

    async def sign_in_email(
        self, payload: dict[str, Any], headers: dict[str, str] | None = None
    ) -> UpstreamResponse:
        return await self._post("/sign-in/email", payload, headers)

    async def sign_up_email(
        self, payload: dict[str, Any], headers: dict[str, str] | None = None
    ) -> UpstreamResponse:
        return await self._post("/sign-up/email", payload, headers)

    async def forget_password(
        self, email: str, redirect_to: str, headers: dict[str, str] | None = None
    ) -> UpstreamResponse:
        """Ask the auth server to send a password reset email."""
        return await self._post(
            "/forget-password",
            {"email": email, "redirectTo": redirect_to},
            headers,
        )

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


class _AuthClientSingleton:
    _instance: AuthClient | None = None

    @classmethod
    def get_instance(cls) -> AuthClient:
        if cls._instance is None:
            cls._instance = AuthClient()
        return cls._instance


def get_auth_client() -> AuthClient:
    """Return a singleton auth client instance."""
    return _AuthClientSingleton.get_instance()
