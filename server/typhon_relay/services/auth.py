"""PIN login, bearer token issuance and verification."""
from __future__ import annotations

import asyncio
import logging
import re
import secrets
import time
from dataclasses import asdict, dataclass
from typing import Any, Optional, Protocol

from ..errors import AuthError, ValidationError

logger = logging.getLogger(__name__)

PIN_PATTERN = re.compile(r"^\d{6}$")


@dataclass(frozen=True, slots=True)
class UserIdentity:
    """Who a token belongs to. At least one field is expected to be set."""

    name: Optional[str] = None
    id: Optional[str] = None
    pin: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}

    @property
    def entry_id(self) -> str:
        """Identifier written to per-message transcript rows."""

        return self.id or self.name or self.pin or ""

    @property
    def player_name(self) -> str:
        """Display name written to paired transcript rows."""

        return self.name or self.id or f"User-{self.pin or ''}"


class RowSource(Protocol):
    def read_rows(self, range_: str) -> list[list[Any]]: ...


class PinDirectory:
    """Maps 6-digit PINs to users listed in a spreadsheet tab.

    Expected columns: pin, name, id. A header row whose first cell is ``pin`` is
    skipped. The sheet is cached; an unknown PIN triggers a reload, at most once
    per ``miss_refresh_seconds``.
    """

    def __init__(self, source: RowSource, sheet_name: str, *, miss_refresh_seconds: float = 30.0) -> None:
        self._source = source
        self._sheet_name = sheet_name
        self._miss_refresh_seconds = miss_refresh_seconds
        self._users: Optional[dict[str, UserIdentity]] = None
        self._loaded_at = 0.0
        self._lock = asyncio.Lock()

    async def refresh(self) -> int:
        rows = await asyncio.to_thread(self._source.read_rows, f"{self._sheet_name}!A:C")
        users: dict[str, UserIdentity] = {}
        for row in rows:
            if not row:
                continue
            pin = str(row[0]).strip()
            if not PIN_PATTERN.match(pin):
                continue
            name = str(row[1]).strip() if len(row) > 1 and str(row[1]).strip() else None
            user_id = str(row[2]).strip() if len(row) > 2 and str(row[2]).strip() else None
            users[pin] = UserIdentity(name=name, id=user_id, pin=pin)
        self._users = users
        self._loaded_at = time.monotonic()
        logger.info("Loaded %d user(s) from sheet %r", len(users), self._sheet_name)
        return len(users)

    async def lookup(self, pin: str) -> Optional[UserIdentity]:
        async with self._lock:
            if self._users is None:
                await self.refresh()
            elif pin not in self._users and (
                time.monotonic() - self._loaded_at >= self._miss_refresh_seconds
            ):
                await self.refresh()
        return (self._users or {}).get(pin)


@dataclass(slots=True)
class IssuedToken:
    token: str
    user: UserIdentity
    expires_at: float


class TokenStore:
    """Opaque bearer tokens held in memory for the life of the process."""

    def __init__(self, ttl_seconds: int = 43200) -> None:
        self._ttl = ttl_seconds
        self._tokens: dict[str, IssuedToken] = {}

    def issue(self, user: UserIdentity) -> IssuedToken:
        self.purge_expired()
        issued = IssuedToken(
            token=secrets.token_urlsafe(32),
            user=user,
            expires_at=time.time() + self._ttl,
        )
        self._tokens[issued.token] = issued
        return issued

    def verify(self, token: Optional[str]) -> Optional[UserIdentity]:
        if not token:
            return None
        issued = self._tokens.get(token)
        if issued is None:
            return None
        if issued.expires_at <= time.time():
            del self._tokens[token]
            return None
        return issued.user

    def purge_expired(self) -> int:
        now = time.time()
        expired = [token for token, issued in self._tokens.items() if issued.expires_at <= now]
        for token in expired:
            del self._tokens[token]
        return len(expired)

    def __len__(self) -> int:
        return len(self._tokens)

    def revoke(self, token: Optional[str]) -> bool:
        if not token:
            return False
        return self._tokens.pop(token, None) is not None


def extract_token(authorization: Optional[str], x_auth_token: Optional[str]) -> Optional[str]:
    """Pull a token from ``Authorization: Bearer`` first, then ``x-auth-token``."""

    if authorization and authorization.startswith("Bearer "):
        token = authorization[len("Bearer ") :].strip()
        if token:
            return token
    if x_auth_token and x_auth_token.strip():
        return x_auth_token.strip()
    return None


class AuthService:
    """Facade combining the PIN directory with the token store."""

    def __init__(self, directory: PinDirectory, tokens: TokenStore) -> None:
        self.directory = directory
        self.tokens = tokens

    async def login(self, pin: Any) -> IssuedToken:
        normalized = str(pin).strip() if pin is not None else ""
        if not PIN_PATTERN.match(normalized):
            raise ValidationError("PIN must be exactly 6 digits")
        user = await self.directory.lookup(normalized)
        if user is None:
            logger.info("Rejected login for unknown PIN")
            raise AuthError("Invalid PIN")
        logger.info("User %s logged in", user.player_name)
        return self.tokens.issue(user)

    def verify(self, token: Optional[str]) -> Optional[UserIdentity]:
        return self.tokens.verify(token)

    def logout(self, token: Optional[str]) -> bool:
        return self.tokens.revoke(token)
