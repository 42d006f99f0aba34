"""Dida365 Open API client."""

from dida365_mcp.api.client import DidaClient

__all__ = ["DidaClient"]
