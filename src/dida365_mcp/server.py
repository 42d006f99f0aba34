# MCP server — exposes the tool registry over the stdio transport.
# Created: 2026-10-19

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types
from mcp.server import Server
from mcp.server.stdio import stdio_server

from dida365_mcp import __version__
from dida365_mcp.api.client import DidaClient
from dida365_mcp.auth.oauth import OAuthManager
from dida365_mcp.config import OAuthConfig
from dida365_mcp.errors import DidaError
from dida365_mcp.tools.builtin import (
    CheckAuthStatusTool,
    CompleteTaskTool,
    CreateProjectTool,
    CreateTaskTool,
    DeleteProjectTool,
    DeleteTaskTool,
    GetAuthUrlTool,
    GetProjectDataTool,
    GetProjectTool,
    GetTaskTool,
    ListProjectsTool,
    ListTasksTool,
    RevokeAuthTool,
    UpdateProjectTool,
    UpdateTaskTool,
)
from dida365_mcp.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

SERVER_NAME = "dida365-mcp"


class ToolCallError(DidaError):
    """A tool finished with an error result; reported to the host as isError."""


def build_registry(oauth: OAuthManager, client: DidaClient, read_only: bool = False) -> ToolRegistry:
    """Register every tool. Write tools are dropped in read-only mode."""
    registry = ToolRegistry(read_only=read_only)
    for tool in (
        GetAuthUrlTool(oauth),
        CheckAuthStatusTool(oauth),
        RevokeAuthTool(oauth),
        ListProjectsTool(client),
        GetProjectTool(client),
        GetProjectDataTool(client),
        CreateProjectTool(client),
        UpdateProjectTool(client),
        DeleteProjectTool(client),
        GetTaskTool(client),
        ListTasksTool(client),
        CreateTaskTool(client),
        UpdateTaskTool(client),
        CompleteTaskTool(client),
        DeleteTaskTool(client),
    ):
        registry.register(tool)
    logger.info(
        "Registered %d tools%s", len(registry), " (read-only mode)" if read_only else ""
    )
    return registry


def _to_mcp_tool(schema: dict[str, Any]) -> types.Tool:
    annotations = schema["annotations"]
    return types.Tool(
        name=schema["name"],
        title=annotations.get("title"),
        description=schema["description"],
        inputSchema=schema["inputSchema"],
        annotations=types.ToolAnnotations(
            title=annotations.get("title"),
            readOnlyHint=annotations["readOnlyHint"],
            destructiveHint=annotations["destructiveHint"],
        ),
    )


def create_server(registry: ToolRegistry) -> Server:
    """Build a low-level MCP server backed by ``registry``."""
    server = Server(SERVER_NAME, version=__version__)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [_to_mcp_tool(schema) for schema in registry.get_definitions()]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[types.TextContent]:
        result = await registry.execute(name, **(arguments or {}))
        if result.startswith("Error"):
            # Raised errors come back to the host with isError set
            raise ToolCallError(result)
        return [types.TextContent(type="text", text=result)]

    return server


async def run_stdio(server: Server) -> None:
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


async def serve(config: OAuthConfig, read_only: bool = False) -> None:
    """Wire OAuth, API client and tools together and serve until stdin closes."""
    oauth = OAuthManager(config)
    client = DidaClient(oauth, config.api_base_url, timeout=config.http_timeout)
    registry = build_registry(oauth, client, read_only=read_only)

    status = oauth.get_auth_status()
    logger.info("Authorization status: %s (%s)", status.state.value, status.message)

    try:
        await run_stdio(create_server(registry))
    finally:
        await oauth.aclose()
        logger.info("Dida365 MCP server stopped")
