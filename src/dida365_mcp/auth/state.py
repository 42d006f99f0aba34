# Authorization state — coarse lifecycle for status reporting.
# Created: 2026-10-19

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from dida365_mcp.auth.token_manager import TokenManager

logger = logging.getLogger(__name__)

DEFAULT_PENDING_TIMEOUT = 300.0


class AuthState(str, Enum):
    NOT_AUTHORIZED = "not_authorized"
    PENDING = "pending"
    AUTHORIZED = "authorized"
    EXPIRED = "expired"
    ERROR = "error"


@dataclass
class AuthStatusInfo:
    state: AuthState
    message: str
    authorized: bool
    timestamp: float
    error: str | None = None
    auth_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "authorized": self.authorized,
            "state": self.state.value,
            "message": self.message,
        }
        if self.auth_url:
            data["auth_url"] = self.auth_url
        return data


class AuthStateMachine:
    """Tracks not_authorized / pending / authorized / expired / error.

    Not the source of truth for tokens: when a ``TokenManager`` is attached,
    ``get_status_info()`` re-derives authorized/expired/not_authorized from the
    token file, so external deletion or expiry shows up without a transition
    call. ``pending`` self-expires into ``error`` after ``pending_timeout``.
    """

    def __init__(
        self,
        tokens: TokenManager | None = None,
        pending_timeout: float = DEFAULT_PENDING_TIMEOUT,
    ):
        self._tokens = tokens
        self.pending_timeout = pending_timeout
        self._state = AuthState.NOT_AUTHORIZED
        self.started_at: float | None = None
        self.last_error: str | None = None

    # -- transitions -------------------------------------------------------

    def start_auth_flow(self) -> None:
        self._state = AuthState.PENDING
        self.started_at = time.time()
        self.last_error = None
        logger.info("Auth state: PENDING (waiting for user authorization)")

    def set_authorized(self) -> None:
        self._state = AuthState.AUTHORIZED
        self.started_at = None
        self.last_error = None
        logger.info("Auth state: AUTHORIZED")

    def set_not_authorized(self) -> None:
        self._state = AuthState.NOT_AUTHORIZED
        self.started_at = None
        self.last_error = None
        logger.info("Auth state: NOT_AUTHORIZED")

    def set_expired(self) -> None:
        self._state = AuthState.EXPIRED
        self.started_at = None
        self.last_error = "Token expired"
        logger.info("Auth state: EXPIRED")

    def set_error(self, error: str) -> None:
        self._state = AuthState.ERROR
        self.started_at = None
        self.last_error = error
        logger.warning("Auth state: ERROR - %s", error)

    # -- queries -----------------------------------------------------------

    def is_pending_timed_out(self, now: float | None = None) -> bool:
        if self.started_at is None:
            return False
        now = time.time() if now is None else now
        return now - self.started_at > self.pending_timeout

    def get_state(self) -> AuthState:
        """Current state; a timed-out ``pending`` becomes ``error`` first."""
        if self._state is AuthState.PENDING and self.is_pending_timed_out():
            self.set_error(f"Authorization timeout (exceeded {int(self.pending_timeout)} seconds)")
        return self._state

    def is_authorized(self) -> bool:
        return self.get_state() is AuthState.AUTHORIZED

    def is_pending(self) -> bool:
        return self.get_state() is AuthState.PENDING

    def reconcile(self) -> AuthState:
        """Re-derive the token-backed states from the token file.

        ``pending`` describes an authorization attempt rather than the token,
        so it is left alone. ``error`` gives way only to a valid token, e.g. a
        denied re-authorization while the previous token still works.
        """
        state = self.get_state()
        if self._tokens is None or state is AuthState.PENDING:
            return state
        if state is AuthState.ERROR:
            if self._tokens.is_token_valid():
                self.set_authorized()
            return self._state

        if self._tokens.is_token_valid():
            if state is not AuthState.AUTHORIZED:
                self.set_authorized()
        elif self._tokens.has_token():
            if state is not AuthState.EXPIRED:
                self.set_expired()
        elif state is not AuthState.NOT_AUTHORIZED:
            self.set_not_authorized()
        return self._state

    def get_status_info(self) -> AuthStatusInfo:
        state = self.reconcile()
        now = time.time()

        if state is AuthState.NOT_AUTHORIZED:
            message = "Not authorized. Please authorize first using the get_auth_url tool."
        elif state is AuthState.PENDING:
            elapsed = int(now - self.started_at) if self.started_at else 0
            remaining = max(int(self.pending_timeout) - elapsed, 0)
            message = (
                f"Waiting for authorization ({elapsed}s elapsed, timeout in {remaining}s)"
            )
        elif state is AuthState.AUTHORIZED:
            message = "Successfully authorized"
        elif state is AuthState.EXPIRED:
            message = "Token expired. Please re-authorize using the get_auth_url tool."
        else:
            message = f"Authorization error: {self.last_error or 'Unknown error'}"

        return AuthStatusInfo(
            state=state,
            message=message,
            authorized=state is AuthState.AUTHORIZED,
            timestamp=now,
            error=self.last_error,
        )
