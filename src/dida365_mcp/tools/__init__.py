# Tools package.

from dida365_mcp.tools.protocol import BaseTool, ToolDefinition, ToolProtocol
from dida365_mcp.tools.registry import ToolRegistry

__all__ = [
    "ToolProtocol",
    "BaseTool",
    "ToolDefinition",
    "ToolRegistry",
]
