"""Captcha records kept in the ephemeral store.

A session is either an open `Challenge` (the client still has to solve the
puzzle) or `Verified` (a one-time token has been minted). Absence from the
store is the third state. Modelling the state as a variant keeps
``verified=true`` without a token unrepresentable.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime

from mz_admin.utils.time import from_iso, to_iso

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Challenge:
    """An issued, unsolved puzzle. Coordinates are ground truth, never sent out."""

    puzzle_x: int
    puzzle_y: int
    image_index: int


@dataclass(frozen=True)
class Verified:
    """A solved puzzle holding the single-use verification token."""

    token: str


SessionState = Challenge | Verified


@dataclass(frozen=True)
class CaptchaSession:
    """Per (type, client_id) captcha record."""

    id: str
    client_id: str
    captcha_type: str
    fingerprint: str
    ip_address: str
    created_at: datetime
    expires_at: datetime
    state: SessionState

    @property
    def verified(self) -> bool:
        return isinstance(self.state, Verified)

    @property
    def verification_token(self) -> str:
        return self.state.token if isinstance(self.state, Verified) else ""

    def is_live(self, now: datetime) -> bool:
        return self.expires_at > now

    def to_mapping(self) -> dict[str, str]:
        """Flatten the session into the string hash stored in redis."""
        data = {
            "id": self.id,
            "client_id": self.client_id,
            "type": self.captcha_type,
            "session_fingerprint": self.fingerprint,
            "ip_address": self.ip_address,
            "created_at": to_iso(self.created_at),
            "expires_at": to_iso(self.expires_at),
        }
        if isinstance(self.state, Verified):
            data["verified"] = "true"
            data["verification_token"] = self.state.token
        else:
            data["verified"] = "false"
            data["verification_token"] = ""
            data["puzzle_x"] = str(self.state.puzzle_x)
            data["puzzle_y"] = str(self.state.puzzle_y)
            data["image_index"] = str(self.state.image_index)
        return data

    @classmethod
    def from_mapping(cls, data: Mapping[str, str]) -> CaptchaSession | None:
        """Rebuild a session from a redis hash, or None if the record is unusable."""
        if not data:
            return None
        try:
            state: SessionState
            if data.get("verified") == "true":
                token = data.get("verification_token") or ""
                if not token:
                    return None
                state = Verified(token=token)
            else:
                state = Challenge(
                    puzzle_x=int(data["puzzle_x"]),
                    puzzle_y=int(data["puzzle_y"]),
                    image_index=int(data["image_index"]),
                )
            return cls(
                id=data["id"],
                client_id=data["client_id"],
                captcha_type=data["type"],
                fingerprint=data["session_fingerprint"],
                ip_address=data.get("ip_address", ""),
                created_at=from_iso(data["created_at"]),
                expires_at=from_iso(data["expires_at"]),
                state=state,
            )
        except (KeyError, ValueError) as err:
            logger.warning("Discarding malformed captcha session record: %s", err)
            return None


@dataclass(frozen=True)
class VerifiedToken:
    """Reverse index from a minted token back to the session that produced it."""

    client_id: str
    captcha_type: str
    created_at: datetime
    expires_at: datetime

    def to_mapping(self) -> dict[str, str]:
        return {
            "client_id": self.client_id,
            "type": self.captcha_type,
            "created_at": to_iso(self.created_at),
            "expires_at": to_iso(self.expires_at),
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, str]) -> VerifiedToken | None:
        if not data:
            return None
        try:
            return cls(
                client_id=data.get("client_id", ""),
                captcha_type=data.get("type", ""),
                created_at=from_iso(data["created_at"]),
                expires_at=from_iso(data["expires_at"]),
            )
        except (KeyError, ValueError) as err:
            logger.warning("Discarding malformed verified-token record: %s", err)
            return None
