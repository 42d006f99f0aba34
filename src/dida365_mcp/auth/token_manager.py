# Token Manager — validity checks over the persisted token.
# Created: 2026-10-19

from __future__ import annotations

import logging

from dida365_mcp.auth.token_store import TokenRecord, TokenStore, ValidationContext
from dida365_mcp.errors import AuthError, AuthErrorKind

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_BUFFER = 300.0


class TokenManager:
    """Answers "is there a usable token" against the token file.

    Nothing is cached in memory: the file can be edited, deleted or replaced
    while the process runs, so every call reloads it. A record whose
    credentials do not match ``context`` is treated exactly like a missing one.
    """

    def __init__(
        self,
        store: TokenStore,
        context: ValidationContext,
        expiry_buffer: float = DEFAULT_EXPIRY_BUFFER,
    ):
        self.store = store
        self.context = context
        self.expiry_buffer = expiry_buffer
        self._discard_foreign_token()

    def _discard_foreign_token(self) -> None:
        record = self.store.load()
        if record is None:
            logger.info("No token found on startup")
            return

        reason = self.context.mismatch_reason(record)
        if reason is None:
            logger.info("Loaded token for current client credentials")
            return

        logger.warning("Discarding stored token: %s. Please re-authorize.", reason)
        self.store.delete()

    def _load(self) -> TokenRecord | None:
        record = self.store.load()
        if record is None or not self.context.matches(record):
            return None
        return record

    def get_valid_access_token(self) -> str:
        """Return the stored access token if it is usable.

        Raises:
            AuthError: NO_TOKEN if nothing usable is stored, TOKEN_EXPIRED if
                the token expires within the safety buffer.
        """
        record = self._load()
        if record is None:
            raise AuthError(AuthErrorKind.NO_TOKEN, "No token available. Please authorize first.")
        if record.is_expired(self.expiry_buffer):
            raise AuthError(AuthErrorKind.TOKEN_EXPIRED, "Token expired. Please re-authorize.")
        return record.access_token

    def set_token(self, record: TokenRecord) -> None:
        if not self.context.matches(record):
            logger.warning("Saving token that does not match the current client credentials")
        self.store.save(record)

    def has_token(self) -> bool:
        return self._load() is not None

    def is_token_valid(self) -> bool:
        record = self._load()
        return record is not None and not record.is_expired(self.expiry_buffer)

    def get_token_record(self) -> TokenRecord | None:
        """Current usable-credentials record, expired or not (for diagnostics)."""
        return self._load()

    def clear_token(self) -> None:
        self.store.delete()
