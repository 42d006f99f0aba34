# Token Store — single-file OAuth token persistence at ~/.dida365-mcp/tokens.json.
# Created: 2026-10-19
#
# Every read goes to disk. A missing, unreadable or malformed file is treated
# as "no token", never as an error.

from __future__ import annotations

import hashlib
import json
import logging
import math
import os
import stat
import tempfile
import time
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = ("access_token", "expires_at")


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class ValidationContext:
    """Fingerprint of the OAuth client a token must belong to.

    Built once per process; the secret is hashed at construction and the raw
    value is not kept.
    """

    client_id: str
    client_secret_hash: str
    region: str

    @classmethod
    def create(cls, client_id: str, client_secret: str, region: str) -> ValidationContext:
        return cls(client_id=client_id, client_secret_hash=sha256_hex(client_secret), region=region)

    def matches(self, record: TokenRecord) -> bool:
        """True if the record was minted under these exact credentials and region."""
        return (
            record.client_id == self.client_id
            and record.client_secret_hash == self.client_secret_hash
            and record.region == self.region
        )

    def mismatch_reason(self, record: TokenRecord) -> str | None:
        """Human-readable reason the record does not match, for logging."""
        if not record.client_id or not record.client_secret_hash:
            return "token has no client metadata (legacy token)"
        if record.client_id != self.client_id:
            return "token belongs to a different OAuth client"
        if record.client_secret_hash != self.client_secret_hash:
            return "client secret has changed"
        if record.region != self.region:
            return f"token was issued for region '{record.region}', not '{self.region}'"
        return None


@dataclass
class TokenRecord:
    """Persisted OAuth access token plus the credentials it is bound to."""

    access_token: str
    expires_at: float  # Unix timestamp
    created_at: float = field(default_factory=time.time)
    scope: str = ""
    token_type: str = "Bearer"
    client_id: str = ""
    client_secret_hash: str = ""
    region: str = ""

    @classmethod
    def issued(
        cls,
        context: ValidationContext,
        access_token: str,
        expires_in: float,
        scope: str,
        token_type: str = "Bearer",
    ) -> TokenRecord:
        """Build a fresh record stamped with the current validation context."""
        now = time.time()
        return cls(
            access_token=access_token,
            expires_at=now + expires_in,
            created_at=now,
            scope=scope,
            token_type=token_type,
            client_id=context.client_id,
            client_secret_hash=context.client_secret_hash,
            region=context.region,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenRecord | None:
        if not all(data.get(name) for name in _REQUIRED_FIELDS):
            return None
        if not isinstance(data["access_token"], str):
            return None
        known = {f.name for f in fields(cls)}
        try:
            record = cls(**{k: v for k, v in data.items() if k in known})
            record.expires_at = float(record.expires_at)
            record.created_at = float(record.created_at)
        except (TypeError, ValueError):
            return None
        # json.loads accepts NaN and Infinity
        if not (math.isfinite(record.expires_at) and math.isfinite(record.created_at)):
            return None
        return record

    def is_expired(self, buffer_seconds: float = 0.0, now: float | None = None) -> bool:
        now = time.time() if now is None else now
        return now >= self.expires_at - buffer_seconds


class TokenStore:
    """File-based store for a single token record.

    The directory is kept 0700 and the file written 0600 (owner-only).
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _ensure_dir(self) -> None:
        directory = self.path.parent
        directory.mkdir(parents=True, mode=0o700, exist_ok=True)
        os.chmod(directory, stat.S_IRWXU)

    def save(self, record: TokenRecord) -> None:
        """Atomically replace the token file with ``record``."""
        self._ensure_dir()
        data = json.dumps(asdict(record), indent=2)

        # mkstemp creates the file 0600
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".tokens-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(data)
            os.chmod(tmp_name, stat.S_IRUSR | stat.S_IWUSR)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.info("Token saved to %s", self.path)

    def load(self) -> TokenRecord | None:
        """Load the token record. Returns None if absent or corrupt."""
        if not self.path.exists():
            return None

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Failed to load token file %s: %s", self.path, e)
            return None

        if not isinstance(data, dict):
            logger.warning("Invalid token file %s: not a JSON object", self.path)
            return None

        record = TokenRecord.from_dict(data)
        if record is None:
            logger.warning(
                "Invalid token file %s: missing required fields (access_token or expires_at)",
                self.path,
            )
        return record

    def delete(self) -> bool:
        """Delete the token file. Returns True if a file was removed."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        logger.info("Token file deleted")
        return True
