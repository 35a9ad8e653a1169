"""MCP bridge exposing the Taiga project management API as tools."""

__version__ = "0.2.0"
