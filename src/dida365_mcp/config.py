"""Configuration for dida365-mcp.

Settings are read from ``DIDA365_*`` environment variables (and a local
``.env`` file during development). The OAuth core never reads settings
itself: ``Settings.oauth_config()`` builds an immutable ``OAuthConfig`` once at
startup, which is then passed to the managers explicitly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dida365_mcp.errors import ConfigError

logger = logging.getLogger(__name__)

Region = Literal["china", "international"]

REGIONS: dict[str, dict[str, str]] = {
    "china": {
        "auth_url": "https://dida365.com/oauth/authorize",
        "token_url": "https://dida365.com/oauth/token",
        "api_url": "https://api.dida365.com",
    },
    "international": {
        "auth_url": "https://ticktick.com/oauth/authorize",
        "token_url": "https://ticktick.com/oauth/token",
        "api_url": "https://api.ticktick.com",
    },
}

DEFAULT_SCOPE = "tasks:read tasks:write"
CALLBACK_PATH = "/callback"
DEVELOPER_PORTAL = "https://developer.dida365.com"


def get_config_dir() -> Path:
    """Default per-user directory for the token file."""
    return Path.home() / ".dida365-mcp"


@dataclass(frozen=True)
class OAuthConfig:
    """Everything the OAuth core needs, fixed for the life of the process."""

    client_id: str
    client_secret: str
    region: str
    scope: str
    auth_endpoint: str
    token_endpoint: str
    api_base_url: str
    callback_host: str
    callback_port: int
    token_dir: Path
    auth_timeout: float = 300.0
    expiry_buffer: float = 300.0
    http_timeout: float = 30.0

    @property
    def redirect_uri(self) -> str:
        return f"http://{self.callback_host}:{self.callback_port}{CALLBACK_PATH}"

    @property
    def token_file(self) -> Path:
        return self.token_dir / "tokens.json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DIDA365_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    client_id: str = ""
    client_secret: str = ""
    region: Region = "china"
    scope: str = DEFAULT_SCOPE
    token_dir: Path = Field(default_factory=get_config_dir)
    callback_host: str = "localhost"
    callback_port: int = 8521
    auth_timeout: float = 300.0
    expiry_buffer: float = 300.0
    http_timeout: float = 30.0
    read_only: bool = False
    log_level: str = "INFO"

    @field_validator("region", mode="before")
    @classmethod
    def _normalize_region(cls, value: object) -> object:
        # Anything other than "international" falls back to the China endpoints
        if isinstance(value, str):
            value = value.strip().lower()
            return "international" if value == "international" else "china"
        return value

    @field_validator("client_id", "client_secret", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    def oauth_config(self) -> OAuthConfig:
        """Validate credentials and freeze them into an ``OAuthConfig``."""
        if not self.client_id:
            raise ConfigError(
                "DIDA365_CLIENT_ID environment variable is not set. "
                f"Get your OAuth Client ID from {DEVELOPER_PORTAL}"
            )
        if not self.client_secret:
            raise ConfigError(
                "DIDA365_CLIENT_SECRET environment variable is not set. "
                f"Get your OAuth Client Secret from {DEVELOPER_PORTAL}"
            )

        endpoints = REGIONS[self.region]
        return OAuthConfig(
            client_id=self.client_id,
            client_secret=self.client_secret,
            region=self.region,
            scope=self.scope,
            auth_endpoint=endpoints["auth_url"],
            token_endpoint=endpoints["token_url"],
            api_base_url=endpoints["api_url"],
            callback_host=self.callback_host,
            callback_port=self.callback_port,
            token_dir=self.token_dir.expanduser(),
            auth_timeout=self.auth_timeout,
            expiry_buffer=self.expiry_buffer,
            http_timeout=self.http_timeout,
        )


@lru_cache
def get_settings() -> Settings:
    """Load settings once per process."""
    return Settings()


def mask_secret(value: str) -> str:
    """Show only the first and last four characters of a credential."""
    if len(value) <= 8:
        return "***"
    return f"{value[:4]}...{value[-4:]}"


def describe_config(config: OAuthConfig, read_only: bool = False) -> None:
    """Log the effective configuration with credentials masked."""
    logger.info("OAuth2 configuration:")
    logger.info("  Region: %s", config.region)
    logger.info("  Client ID: %s", mask_secret(config.client_id))
    logger.info("  Client Secret: %s", mask_secret(config.client_secret))
    logger.info("  Redirect URI: %s", config.redirect_uri)
    logger.info("  Scope: %s", config.scope)
    logger.info("  Auth endpoint: %s", config.auth_endpoint)
    logger.info("  Token endpoint: %s", config.token_endpoint)
    logger.info("  API base URL: %s", config.api_base_url)
    logger.info("  Token file: %s", config.token_file)
    logger.info("  Read-only mode: %s", "ENABLED" if read_only else "disabled")
