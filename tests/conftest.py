# Shared fixtures for the dida365-mcp test suite.
# Created: 2026-10-19

import asyncio
import socket
import time

import httpx
import pytest

from dida365_mcp.auth.token_store import TokenRecord, TokenStore, ValidationContext
from dida365_mcp.config import REGIONS, OAuthConfig


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


async def wait_until(predicate, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


def token_transport(status: int = 200, payload: dict | None = None, requests: list | None = None):
    """Fake token endpoint."""
    body = payload if payload is not None else {
        "access_token": "access-from-exchange",
        "token_type": "bearer",
        "expires_in": 7200,
        "scope": "tasks:read tasks:write",
    }

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler)


@pytest.fixture
def oauth_config(tmp_path) -> OAuthConfig:
    endpoints = REGIONS["china"]
    return OAuthConfig(
        client_id="test-client",
        client_secret="test-secret",
        region="china",
        scope="tasks:read tasks:write",
        auth_endpoint=endpoints["auth_url"],
        token_endpoint=endpoints["token_url"],
        api_base_url=endpoints["api_url"],
        callback_host="127.0.0.1",
        callback_port=free_port(),
        token_dir=tmp_path / "dida",
        auth_timeout=5.0,
    )


@pytest.fixture
def context(oauth_config) -> ValidationContext:
    return ValidationContext.create(
        oauth_config.client_id, oauth_config.client_secret, oauth_config.region
    )


@pytest.fixture
def store(oauth_config) -> TokenStore:
    return TokenStore(oauth_config.token_file)


@pytest.fixture
def make_record(context):
    def _make(expires_in: float = 3600, ctx: ValidationContext | None = None, token: str = "stored-token"):
        return TokenRecord.issued(
            ctx or context, access_token=token, expires_in=expires_in, scope="tasks:read tasks:write"
        )

    return _make
