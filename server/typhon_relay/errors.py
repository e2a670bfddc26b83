"""Error taxonomy shared by the services and the HTTP layer."""
from __future__ import annotations

from typing import Any, Optional


class RelayError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(RelayError):
    """Missing or malformed request field."""

    status_code = 400


class AuthError(RelayError):
    """Missing, unknown or expired credential."""

    status_code = 401


class ConfigError(RelayError):
    """A required setting is absent."""

    status_code = 500


class UpstreamError(RelayError):
    """The completion provider rejected the request or could not be reached."""

    def __init__(
        self,
        status: int,
        message: str,
        data: Any = None,
        attempts: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        super().__init__(message, status_code=status if 400 <= status <= 599 else 500)
        self.status = status
        self.data = data
        self.attempts = attempts


class SinkError(RelayError):
    """A transcript backend failed to append rows."""


class GraphAPIError(RelayError):
    """The Facebook Graph API returned an error."""

    def __init__(self, status: int, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, status_code=status if 400 <= status <= 599 else 500)
        self.details = details
