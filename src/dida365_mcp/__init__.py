"""Dida365 / TickTick task management exposed as MCP tools."""

__version__ = "0.3.0"
