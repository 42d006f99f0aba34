# Dida365 Client — HTTP client for the Dida365 / TickTick Open API.
# Created: 2026-10-19

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from dida365_mcp.errors import ApiError

if TYPE_CHECKING:
    from dida365_mcp.auth.oauth import OAuthManager

logger = logging.getLogger(__name__)

_OPEN_API = "/open/v1"


class DidaClient:
    """HTTP client for the Dida365 Open API.

    Every request asks the OAuth manager for a currently valid bearer token;
    ``AuthError`` from that lookup propagates unchanged so the tool layer can
    tell "never authorized" from "expired".
    """

    def __init__(
        self,
        oauth: OAuthManager,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._oauth = oauth
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Send an authenticated request. Returns parsed JSON, or None for an empty body."""
        token = await self._oauth.get_valid_access_token()

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.request(
                    method,
                    path,
                    json=json,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Accept": "application/json",
                    },
                )
        except httpx.TransportError as e:
            raise ApiError(0, f"Network request failed: {e}") from e

        if resp.status_code == 401:
            self._oauth.invalidate_token()
            raise ApiError(401, "Authentication failed. Please re-authorize.", resp.text)
        if not resp.is_success:
            raise ApiError(
                resp.status_code,
                f"API request failed: {resp.status_code} {resp.reason_phrase}",
                resp.text,
            )

        if not resp.content.strip():
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(0, "Failed to parse JSON response", resp.text) from e

    # -- projects ------------------------------------------------------------

    async def list_projects(self) -> list[dict[str, Any]]:
        data = await self._request("GET", f"{_OPEN_API}/project")
        return data if isinstance(data, list) else []

    async def get_project(self, project_id: str) -> dict[str, Any]:
        data = await self._request("GET", f"{_OPEN_API}/project/{project_id}")
        if not data:
            raise ApiError(404, f"Project with ID {project_id} not found")
        return data

    async def get_project_data(self, project_id: str) -> dict[str, Any]:
        """Project with its undone tasks and kanban columns."""
        data = await self._request("GET", f"{_OPEN_API}/project/{project_id}/data")
        if not data:
            raise ApiError(404, f"Project with ID {project_id} not found")
        data.setdefault("tasks", [])
        data.setdefault("columns", [])
        return data

    async def create_project(self, fields: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", f"{_OPEN_API}/project", json=fields)

    async def update_project(self, project_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        data = await self._request("POST", f"{_OPEN_API}/project/{project_id}", json=fields)
        if not data:
            raise ApiError(404, f"Project with ID {project_id} not found")
        return data

    async def delete_project(self, project_id: str) -> None:
        await self._request("DELETE", f"{_OPEN_API}/project/{project_id}")

    # -- tasks ---------------------------------------------------------------

    async def get_task(self, project_id: str, task_id: str) -> dict[str, Any]:
        data = await self._request("GET", f"{_OPEN_API}/project/{project_id}/task/{task_id}")
        if not data:
            raise ApiError(404, f"Task with ID {task_id} not found in project {project_id}")
        return data

    async def create_task(self, fields: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", f"{_OPEN_API}/task", json=fields)

    async def update_task(self, task_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", f"{_OPEN_API}/task/{task_id}", json=fields)

    async def complete_task(self, project_id: str, task_id: str) -> None:
        await self._request("POST", f"{_OPEN_API}/project/{project_id}/task/{task_id}/complete")

    async def delete_task(self, project_id: str, task_id: str) -> None:
        await self._request("DELETE", f"{_OPEN_API}/project/{project_id}/task/{task_id}")
