"""Compatibility layer for supporting multiple fastmcp versions."""

from clientmcp.compat.fastmcp_compat import (
    FASTMCP_V3,
    FASTMCP_VERSION,
    get_server_tools,
    get_tool_fn,
    set_server_lifespan,
)

__all__ = [
    "FASTMCP_V3",
    "FASTMCP_VERSION",
    "get_server_tools",
    "get_tool_fn",
    "set_server_lifespan",
]
