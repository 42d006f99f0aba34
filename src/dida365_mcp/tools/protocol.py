# Tool protocol - simple, string-based tool interface.
# Created: 2026-10-19


from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from dida365_mcp.errors import ApiError, AuthError, AuthErrorKind

logger = logging.getLogger(__name__)

AUTH_TOOL_HINT = "Please use the 'get_auth_url' tool to authorize."


@dataclass
class ToolDefinition:
    """Tool definition for the agent host."""

    name: str
    description: str
    parameters: dict[str, Any]  # JSON Schema
    title: str = ""
    trust_level: str = "standard"  # standard (read), high (write), critical (delete)

    @property
    def is_write(self) -> bool:
        return self.trust_level in ("high", "critical")

    def to_mcp_schema(self) -> dict[str, Any]:
        """Convert to the MCP ``tools/list`` shape."""
        schema: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.parameters,
            "annotations": {
                "readOnlyHint": not self.is_write,
                "destructiveHint": self.trust_level == "critical",
            },
        }
        if self.title:
            schema["annotations"]["title"] = self.title
        return schema


class ToolProtocol(Protocol):
    """Protocol for tools.

    Tools are simple: they take parameters and return a string result.
    No streaming, no complex event types.
    """

    @property
    def name(self) -> str:
        """Tool name (used in function calls)."""
        ...

    @property
    def definition(self) -> ToolDefinition:
        """Tool definition for the agent."""
        ...

    async def execute(self, **params: Any) -> str:
        """Execute the tool with given parameters.

        Returns:
            String result (success or error message).
        """
        ...


class BaseTool(ABC):
    """Base class for tools with common functionality."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool name."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Tool description for the agent."""
        ...

    @property
    def title(self) -> str:
        return ""

    @property
    def trust_level(self) -> str:
        """standard for reads, high for writes, critical for deletes."""
        return "standard"

    @property
    def parameters(self) -> dict[str, Any]:
        """Parameter schema. Override in subclass."""
        return {"type": "object", "properties": {}, "required": []}

    @property
    def definition(self) -> ToolDefinition:
        """Get the tool definition."""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
            title=self.title,
            trust_level=self.trust_level,
        )

    @abstractmethod
    async def execute(self, **params: Any) -> str:
        """Execute the tool."""
        ...

    def _error(self, message: str) -> str:
        """Format an error response."""
        return f"Error: {message}"

    def _success(self, message: str) -> str:
        """Format a success response."""
        return message

    def _json(self, data: Any, summary: str | None = None) -> str:
        """Format structured output, optionally preceded by a one-line summary."""
        body = json.dumps(data, indent=2, ensure_ascii=False)
        return f"{summary}\n{body}" if summary else body

    @staticmethod
    def _pick(values: dict[str, Any], keys: tuple[str, ...]) -> dict[str, Any]:
        """Copy the provided (non-None) optional fields into a request body."""
        return {k: values[k] for k in keys if values.get(k) is not None}

    def _failure(self, action: str, exc: Exception) -> str:
        """Turn an exception into a message the agent can act on.

        Distinguishes "never authorized", "authorization expired" and
        "transient network failure" so the agent knows whether to ask the
        user to authorize or simply retry.
        """
        if isinstance(exc, AuthError):
            if exc.kind is AuthErrorKind.NO_TOKEN:
                return self._error(f"Not authorized: {exc} {AUTH_TOOL_HINT}")
            if exc.kind is AuthErrorKind.TOKEN_EXPIRED:
                return self._error(
                    "Authorization expired. Please use the 'get_auth_url' tool to re-authorize."
                )
            return self._error(f"Failed to {action}: {exc}")

        if isinstance(exc, ApiError):
            if exc.is_unauthorized:
                return self._error(
                    "Authorization was rejected by Dida365 (token revoked or expired). "
                    "Please use the 'get_auth_url' tool to re-authorize."
                )
            if exc.status == 0 or exc.is_transient:
                return self._error(f"Temporary failure, please retry: failed to {action}: {exc}")
            detail = f" ({exc.body})" if exc.body else ""
            return self._error(f"Failed to {action}: {exc}{detail}")

        if isinstance(exc, httpx.TransportError):
            return self._error(f"Temporary network failure, please retry: failed to {action}: {exc}")

        logger.debug("Unexpected error in %s", self.name, exc_info=exc)
        return self._error(f"Failed to {action}: {exc}")
