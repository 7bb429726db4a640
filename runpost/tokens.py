from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Protocol

from .errors import AuthRequired, TokenRefreshFailed
from .storage import read_json, write_json


logger = logging.getLogger(__name__)

EXPIRY_MARGIN = timedelta(seconds=60)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_utc(raw: Any) -> datetime | None:
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class Token:
    access_token: str
    refresh_token: str
    expires_at: datetime

    @classmethod
    def from_authorization_response(cls, payload: dict[str, Any], issued_at: datetime) -> "Token":
        if not isinstance(payload, dict):
            raise ValueError("Token response is not a JSON object.")
        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("Token response is missing access_token.")
        if not isinstance(refresh_token, str) or not refresh_token:
            raise ValueError("Token response is missing refresh_token.")
        try:
            expires_in = int(payload.get("expires_in") or 0)
        except (TypeError, ValueError) as exc:
            raise ValueError("Token response has an invalid expires_in.") from exc
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=issued_at + timedelta(seconds=expires_in),
        )

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Token | None":
        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token")
        expires_at = _parse_utc(payload.get("expires_at"))
        if not isinstance(access_token, str) or not access_token.strip():
            return None
        if not isinstance(refresh_token, str) or not refresh_token.strip():
            return None
        if expires_at is None:
            return None
        return cls(access_token.strip(), refresh_token.strip(), expires_at)

    def to_dict(self) -> dict[str, str]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at.isoformat(),
        }

    def is_fresh(self, now: datetime) -> bool:
        return self.expires_at > now + EXPIRY_MARGIN


class TokenStore(Protocol):
    def get(self) -> Token | None: ...

    def put(self, token: Token) -> None: ...


class FileTokenStore:
    def __init__(self, path: Path):
        self.path = path

    def get(self) -> Token | None:
        payload = read_json(self.path)
        if payload is None:
            if self.path.exists():
                logger.warning("Token file %s is unreadable; treating as missing.", self.path)
            return None
        token = Token.from_dict(payload)
        if token is None:
            logger.warning("Token file %s is incomplete; treating as missing.", self.path)
        return token

    def put(self, token: Token) -> None:
        write_json(self.path, token.to_dict())


class MemoryTokenStore:
    def __init__(self, token: Token | None = None):
        self.token = token
        self.writes = 0

    def get(self) -> Token | None:
        return self.token

    def put(self, token: Token) -> None:
        self.token = token
        self.writes += 1


class Authorizer(Protocol):
    def authorize(self, code: str) -> dict[str, Any]: ...

    def refresh(self, refresh_token: str) -> dict[str, Any] | None: ...


class TokenState(enum.Enum):
    NO_TOKEN = "no_token"
    VALID = "valid"
    EXPIRING = "expiring"
    INVALID = "invalid"


class TokenManager:
    def __init__(
        self,
        store: TokenStore,
        authorizer: Authorizer,
        *,
        now: Callable[[], datetime] = _utc_now,
    ):
        self.store = store
        self.authorizer = authorizer
        self.now = now
        self._invalid = False

    def state(self) -> TokenState:
        if self._invalid:
            return TokenState.INVALID
        token = self.store.get()
        if token is None:
            return TokenState.NO_TOKEN
        if token.is_fresh(self.now()):
            return TokenState.VALID
        return TokenState.EXPIRING

    def get_valid_token(self) -> Token:
        if self._invalid:
            raise AuthRequired("Stored token was rejected; re-authorization required.", reason="invalid")

        token = self.store.get()
        if token is None:
            raise AuthRequired("No stored token; authorization code required.", reason="no_token")
        if token.is_fresh(self.now()):
            return token

        logger.info("Access token expires at %s; refreshing.", token.expires_at.isoformat())
        # Transport failures propagate from the authorizer as TokenRefreshFailed.
        payload = self.authorizer.refresh(token.refresh_token)
        if payload is None:
            self._invalid = True
            logger.warning("Token refresh was rejected upstream.")
            raise AuthRequired("Token refresh was rejected; re-authorization required.", reason="invalid")

        try:
            refreshed = Token.from_authorization_response(payload, self.now())
        except ValueError as exc:
            raise TokenRefreshFailed(f"Token refresh returned an unusable response: {exc}") from exc
        self.store.put(refreshed)
        logger.info("Access token refreshed; valid until %s.", refreshed.expires_at.isoformat())
        return refreshed

    def exchange_code(self, code: str) -> Token:
        payload = self.authorizer.authorize(code.strip())
        token = Token.from_authorization_response(payload, self.now())
        self.store.put(token)
        self._invalid = False
        logger.info("Authorization code exchanged; token valid until %s.", token.expires_at.isoformat())
        return token
