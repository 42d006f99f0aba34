# Error types shared by the auth core, the API client and the tool layer.
# Created: 2026-10-19
#
# Failures are classified by kind/status, never by searching message text.

from __future__ import annotations

from enum import Enum
from typing import Any


class DidaError(Exception):
    """Base class for all dida365-mcp errors."""


class ConfigError(DidaError):
    """Missing or invalid configuration."""


class AuthErrorKind(str, Enum):
    NO_TOKEN = "no_token"
    TOKEN_EXPIRED = "token_expired"
    CSRF_MISMATCH = "csrf_mismatch"
    PROVIDER_DENIED = "provider_denied"
    MISSING_PARAMETERS = "missing_parameters"
    CALLBACK_TIMEOUT = "callback_timeout"
    CALLBACK_CLOSED = "callback_closed"
    PORT_IN_USE = "port_in_use"
    NETWORK_ERROR = "network_error"
    TOKEN_EXCHANGE_REJECTED = "token_exchange_rejected"


class AuthError(DidaError):
    """An authorization failure tagged with its kind.

    ``detail`` carries diagnostic payload, e.g. the token endpoint's response
    body for TOKEN_EXCHANGE_REJECTED.
    """

    def __init__(self, kind: AuthErrorKind, message: str, detail: Any = None):
        super().__init__(message)
        self.kind = kind
        self.detail = detail

    def __repr__(self) -> str:
        return f"AuthError({self.kind.value!r}, {str(self)!r})"


class ApiError(DidaError):
    """Remote API failure. ``status`` is 0 for failures without an HTTP response."""

    def __init__(self, status: int, message: str, body: Any = None):
        super().__init__(message)
        self.status = status
        self.body = body

    @property
    def is_unauthorized(self) -> bool:
        return self.status == 401

    @property
    def is_not_found(self) -> bool:
        return self.status == 404

    @property
    def is_transient(self) -> bool:
        return self.status == 429 or self.status >= 500
