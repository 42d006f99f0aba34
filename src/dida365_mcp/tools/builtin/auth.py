# Auth tools — start, inspect and revoke Dida365 authorization.
# Created: 2026-10-19

import logging
from typing import Any

from dida365_mcp.auth.oauth import OAuthManager
from dida365_mcp.tools.protocol import BaseTool

logger = logging.getLogger(__name__)


class GetAuthUrlTool(BaseTool):
    """Start the browser authorization flow and hand back the URL to open."""

    def __init__(self, oauth: OAuthManager):
        self._oauth = oauth

    @property
    def name(self) -> str:
        return "get_auth_url"

    @property
    def title(self) -> str:
        return "Get Authorization URL"

    @property
    def description(self) -> str:
        minutes = max(int(self._oauth.config.auth_timeout) // 60, 1)
        return (
            "Use ONLY when a Dida365 task/project tool fails with an authorization error "
            "(missing, expired or invalid token), or the user explicitly asks to start or "
            "redo Dida365 authorization. Returns a short-lived URL "
            f"(about {minutes} min) to open in a browser; a local callback server "
            "captures the authorization code in the background."
        )

    async def execute(self) -> str:
        try:
            url = await self._oauth.get_authorization_url()
        except Exception as e:
            return self._failure("generate authorization URL", e)

        timeout = int(self._oauth.config.auth_timeout)
        return self._json(
            {
                "auth_url": url,
                "expires_in": timeout,
                "message": (
                    "Please open this URL in your browser to authorize the application. "
                    f"The link is valid for {max(timeout // 60, 1)} minutes."
                ),
            }
        )


class CheckAuthStatusTool(BaseTool):
    """Report the current authorization state."""

    def __init__(self, oauth: OAuthManager):
        self._oauth = oauth

    @property
    def name(self) -> str:
        return "check_auth_status"

    @property
    def title(self) -> str:
        return "Check Authorization Status"

    @property
    def description(self) -> str:
        return (
            "Use when the user asks whether Dida365 is authorized, or when deciding "
            "whether protected Dida365 operations can proceed and the current state is "
            "unclear. Avoid repeated calls within one turn."
        )

    async def execute(self) -> str:
        return self._json(self._oauth.get_auth_status().to_dict())


class RevokeAuthTool(BaseTool):
    """Forget the stored token. Local only; the provider is not contacted."""

    def __init__(self, oauth: OAuthManager):
        self._oauth = oauth

    @property
    def name(self) -> str:
        return "revoke_auth"

    @property
    def title(self) -> str:
        return "Revoke Authorization"

    @property
    def description(self) -> str:
        return (
            "Use ONLY when the user explicitly asks to log out, revoke, reset or clear "
            "Dida365 authorization. Clears the stored token; the user must re-authorize "
            "afterwards."
        )

    async def execute(self) -> str:
        try:
            await self._oauth.revoke_authorization()
        except Exception as e:
            return self._failure("revoke authorization", e)

        result: dict[str, Any] = {
            "success": True,
            "message": "Authorization revoked successfully. All tokens have been cleared.",
        }
        return self._json(result)
