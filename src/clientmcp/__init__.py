"""Client-aware MCP server - adapts tools and responses to the connected client."""

__version__ = "0.1.0"
