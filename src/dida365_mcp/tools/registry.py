# Tool registry for managing available tools.
# Created: 2026-10-19


from __future__ import annotations

import logging
from typing import Any

from dida365_mcp.tools.protocol import ToolProtocol

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Registry for managing tools.

    In read-only mode write tools (trust level high/critical) are neither
    registered nor executable.

    Usage:
        registry = ToolRegistry(read_only=True)
        registry.register(ListProjectsTool(client))

        # Get definitions for the MCP host
        definitions = registry.get_definitions()

        # Execute a tool
        result = await registry.execute("list_projects")
    """

    def __init__(self, read_only: bool = False):
        self._tools: dict[str, ToolProtocol] = {}
        self.read_only = read_only

    def register(self, tool: ToolProtocol) -> bool:
        """Register a tool. Returns False if read-only mode hides it."""
        if self.read_only and tool.definition.is_write:
            logger.debug("Read-only mode: skipping write tool %s", tool.name)
            return False
        self._tools[tool.name] = tool
        logger.debug("Registered tool: %s", tool.name)
        return True

    def get_definitions(self) -> list[dict[str, Any]]:
        """Tool definitions in the MCP ``tools/list`` shape."""
        return [tool.definition.to_mcp_schema() for tool in self._tools.values()]

    async def execute(self, name: str, **params: Any) -> str:
        """Execute a tool by name.

        Returns:
            Tool result as string. Unexpected exceptions are reported as an
            ``Error executing ...`` string rather than raised.
        """
        tool = self._tools.get(name)

        if not tool:
            return f"Error: Tool '{name}' not found. Available: {list(self._tools.keys())}"

        try:
            logger.debug("Executing %s", name)
            result = await tool.execute(**params)
        except TypeError as e:
            # Bad or missing arguments from the agent
            logger.warning("Invalid arguments for %s: %s", name, e)
            return f"Error: Invalid arguments for {name}: {e}"
        except Exception as e:
            logger.exception("%s failed", name)
            return f"Error executing {name}: {e}"

        log_result = result[:200] + "..." if len(result) > 200 else result
        logger.debug("%s result: %s", name, log_result)
        return result

    @property
    def tool_names(self) -> list[str]:
        """Get list of registered tool names."""
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)
