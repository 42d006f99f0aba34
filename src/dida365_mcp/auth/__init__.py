"""OAuth2 authorization lifecycle and credential-bound token storage."""

from dida365_mcp.auth.callback_server import CallbackResult, OAuthCallbackServer
from dida365_mcp.auth.oauth import OAuthManager, PendingAuthorization
from dida365_mcp.auth.state import AuthState, AuthStateMachine, AuthStatusInfo
from dida365_mcp.auth.token_manager import TokenManager
from dida365_mcp.auth.token_store import TokenRecord, TokenStore, ValidationContext

__all__ = [
    "AuthState",
    "AuthStateMachine",
    "AuthStatusInfo",
    "CallbackResult",
    "OAuthCallbackServer",
    "OAuthManager",
    "PendingAuthorization",
    "TokenManager",
    "TokenRecord",
    "TokenStore",
    "ValidationContext",
]
