# Tests for auth/oauth.py: the authorization lifecycle end to end.
# Created: 2026-10-19

import asyncio
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from conftest import token_transport, wait_until
from dida365_mcp.auth.callback_server import OAuthCallbackServer
from dida365_mcp.auth.oauth import OAuthManager, generate_state
from dida365_mcp.auth.state import AuthState
from dida365_mcp.errors import AuthError, AuthErrorKind


@pytest.fixture
def servers(oauth_config):
    """Callback server factory that records every server it builds."""
    created = []

    def factory():
        server = OAuthCallbackServer(
            host=oauth_config.callback_host,
            port=oauth_config.callback_port,
            success_close_delay=0.05,
        )
        created.append(server)
        return server

    factory.created = created
    return factory


@pytest.fixture
async def manager(oauth_config, servers):
    m = OAuthManager(oauth_config, callback_server_factory=servers, transport=token_transport())
    yield m
    await m.aclose()


def _state_of(url: str) -> str:
    return parse_qs(urlparse(url).query)["state"][0]


async def _callback(oauth_config, **params):
    async with httpx.AsyncClient() as http:
        return await http.get(oauth_config.redirect_uri, params=params)


async def _start(manager, servers):
    url = await manager.get_authorization_url()
    server = servers.created[-1]
    await wait_until(lambda: server.is_running)
    return url


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def test_fresh_process_is_not_authorized(manager):
    status = manager.get_auth_status()
    assert status.state is AuthState.NOT_AUTHORIZED
    assert status.authorized is False
    assert status.auth_url is None


def test_valid_token_on_startup(oauth_config, store, make_record):
    store.save(make_record())
    manager = OAuthManager(oauth_config)
    assert manager.is_authorized()
    assert manager.get_auth_status().state is AuthState.AUTHORIZED


def test_expired_token_reported_as_expired(oauth_config, store, make_record):
    store.save(make_record(expires_in=-60))
    manager = OAuthManager(oauth_config)

    assert not manager.tokens.is_token_valid()
    assert manager.get_auth_status().state is AuthState.EXPIRED


def test_authorization_url_parameters(manager, oauth_config):
    url = manager.build_authorization_url("abc123")
    parsed = urlparse(url)
    query = parse_qs(parsed.query)

    assert url.startswith(oauth_config.auth_endpoint + "?")
    assert query["client_id"] == ["test-client"]
    assert query["redirect_uri"] == [oauth_config.redirect_uri]
    assert query["response_type"] == ["code"]
    assert query["scope"] == ["tasks:read tasks:write"]
    assert query["state"] == ["abc123"]


def test_generate_state_is_random():
    a, b = generate_state(), generate_state()
    assert a != b
    assert len(a) == 64


# ---------------------------------------------------------------------------
# Authorization flow
# ---------------------------------------------------------------------------


async def test_full_flow(oauth_config, servers):
    requests = []
    manager = OAuthManager(
        oauth_config, callback_server_factory=servers, transport=token_transport(requests=requests)
    )
    try:
        url = await _start(manager, servers)

        status = manager.get_auth_status()
        assert status.state is AuthState.PENDING
        assert status.auth_url == url

        resp = await _callback(oauth_config, code="auth-code", state=_state_of(url))
        assert resp.status_code == 200

        await wait_until(manager.is_authorized)
        assert await manager.get_valid_access_token() == "access-from-exchange"

        form = parse_qs(requests[0].content.decode())
        assert form["grant_type"] == ["authorization_code"]
        assert form["code"] == ["auth-code"]
        assert form["redirect_uri"] == [oauth_config.redirect_uri]
        assert form["client_secret"] == ["test-secret"]

        record = manager.tokens.get_token_record()
        assert record.client_id == "test-client"
        assert record.region == "china"
    finally:
        await manager.aclose()


async def test_provider_denial(manager, oauth_config, servers):
    url = await _start(manager, servers)

    resp = await _callback(oauth_config, error="access_denied", state=_state_of(url))
    assert resp.status_code == 400

    await wait_until(lambda: manager.state.get_state() is AuthState.ERROR)
    status = manager.get_auth_status()
    assert status.state is AuthState.ERROR
    assert "access_denied" in status.message

    with pytest.raises(AuthError) as exc:
        await manager.get_valid_access_token()
    assert exc.value.kind is AuthErrorKind.NO_TOKEN


async def test_csrf_mismatch_never_exchanges(oauth_config, servers):
    requests = []
    manager = OAuthManager(
        oauth_config, callback_server_factory=servers, transport=token_transport(requests=requests)
    )
    try:
        await _start(manager, servers)

        resp = await _callback(oauth_config, code="stolen", state="forged-state")
        assert resp.status_code == 400

        await wait_until(lambda: manager.state.get_state() is AuthState.ERROR)
        assert "CSRF" in manager.state.last_error
        assert requests == []
        assert not manager.tokens.has_token()
    finally:
        await manager.aclose()


async def test_url_is_idempotent_while_pending(manager, servers):
    first = await _start(manager, servers)
    second = await manager.get_authorization_url()

    assert first == second
    assert len(servers.created) == 1


async def test_new_flow_after_pending_times_out(manager, servers):
    first = await _start(manager, servers)
    manager.state.started_at -= manager.config.auth_timeout + 1

    second = await _start(manager, servers)

    assert second != first
    assert len(servers.created) == 2
    assert not servers.created[0].is_running


async def test_concurrent_restart_after_timeout_starts_one_flow(manager, servers):
    await _start(manager, servers)
    manager.state.started_at -= manager.config.auth_timeout + 1

    first, second = await asyncio.gather(
        manager.get_authorization_url(), manager.get_authorization_url()
    )

    assert first == second
    assert len(servers.created) == 2
    await wait_until(lambda: servers.created[1].is_running)
    assert manager.is_pending()
    assert manager.pending.authorization_url == first


async def test_new_flow_after_error(manager, oauth_config, servers):
    url = await _start(manager, servers)
    await _callback(oauth_config, error="access_denied", state=_state_of(url))
    await wait_until(lambda: manager.state.get_state() is AuthState.ERROR)

    again = await _start(manager, servers)
    assert _state_of(again) != _state_of(url)
    assert manager.is_pending()


async def test_exchange_rejected_sets_error(oauth_config, servers):
    manager = OAuthManager(
        oauth_config,
        callback_server_factory=servers,
        transport=token_transport(status=400, payload={"error": "invalid_grant"}),
    )
    try:
        url = await _start(manager, servers)
        await _callback(oauth_config, code="bad-code", state=_state_of(url))

        await wait_until(lambda: manager.state.get_state() is AuthState.ERROR)
        assert "400" in manager.state.last_error
        assert not manager.tokens.has_token()
    finally:
        await manager.aclose()


# ---------------------------------------------------------------------------
# Token exchange
# ---------------------------------------------------------------------------


async def test_exchange_code_rejected(oauth_config):
    manager = OAuthManager(
        oauth_config, transport=token_transport(status=401, payload={"error": "invalid_client"})
    )
    with pytest.raises(AuthError) as exc:
        await manager.exchange_code("code")
    assert exc.value.kind is AuthErrorKind.TOKEN_EXCHANGE_REJECTED
    assert "invalid_client" in exc.value.detail


async def test_exchange_code_network_error(oauth_config):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    manager = OAuthManager(oauth_config, transport=httpx.MockTransport(handler))
    with pytest.raises(AuthError) as exc:
        await manager.exchange_code("code")
    assert exc.value.kind is AuthErrorKind.NETWORK_ERROR


async def test_exchange_code_without_access_token(oauth_config):
    manager = OAuthManager(oauth_config, transport=token_transport(payload={"token_type": "bearer"}))
    with pytest.raises(AuthError) as exc:
        await manager.exchange_code("code")
    assert exc.value.kind is AuthErrorKind.TOKEN_EXCHANGE_REJECTED


async def test_exchange_code_defaults(oauth_config):
    manager = OAuthManager(oauth_config, transport=token_transport(payload={"access_token": "a"}))
    record = await manager.exchange_code("code")
    assert record.access_token == "a"
    assert record.token_type == "Bearer"
    assert record.scope == "tasks:read tasks:write"
    assert 3500 < record.expires_at - record.created_at <= 3600


# ---------------------------------------------------------------------------
# Status correction and revocation
# ---------------------------------------------------------------------------


async def test_deleted_token_corrects_status(oauth_config, store, make_record):
    store.save(make_record())
    manager = OAuthManager(oauth_config)
    assert manager.is_authorized()

    store.delete()
    with pytest.raises(AuthError) as exc:
        await manager.get_valid_access_token()
    assert exc.value.kind is AuthErrorKind.NO_TOKEN
    assert manager.state.get_state() is AuthState.NOT_AUTHORIZED


async def test_expired_token_corrects_status(oauth_config, store, make_record):
    store.save(make_record())
    manager = OAuthManager(oauth_config)

    store.save(make_record(expires_in=10))
    with pytest.raises(AuthError) as exc:
        await manager.get_valid_access_token()
    assert exc.value.kind is AuthErrorKind.TOKEN_EXPIRED
    assert manager.state.get_state() is AuthState.EXPIRED


async def test_token_lookup_leaves_pending_flow_alone(manager, servers):
    await _start(manager, servers)

    with pytest.raises(AuthError):
        await manager.get_valid_access_token()
    assert manager.is_pending()


async def test_invalidate_token(oauth_config, store, make_record):
    store.save(make_record())
    manager = OAuthManager(oauth_config)

    manager.invalidate_token()

    assert not manager.tokens.has_token()
    assert manager.get_auth_status().state is AuthState.NOT_AUTHORIZED


async def test_revoke_when_authorized(oauth_config, store, make_record):
    store.save(make_record())
    manager = OAuthManager(oauth_config)

    await manager.revoke_authorization()

    assert not manager.tokens.has_token()
    assert manager.get_auth_status().state is AuthState.NOT_AUTHORIZED


async def test_revoke_while_pending(manager, servers):
    await _start(manager, servers)

    await manager.revoke_authorization()

    assert not manager.tokens.has_token()
    assert manager.get_auth_status().state is AuthState.NOT_AUTHORIZED
    assert manager.pending is None
    assert not servers.created[0].is_running


async def test_revoke_after_error(manager, oauth_config, servers):
    url = await _start(manager, servers)
    await _callback(oauth_config, error="access_denied", state=_state_of(url))
    await wait_until(lambda: manager.state.get_state() is AuthState.ERROR)

    await manager.revoke_authorization()
    assert manager.get_auth_status().state is AuthState.NOT_AUTHORIZED
