"""FastMCP version compatibility layer.

Supports fastmcp 2.12+ and later majors for the pieces of the server API the
client adaptation middleware touches: tool listing, lifespan installation,
session identification and tool results.

Usage::

    from clientmcp.compat.fastmcp_compat import (
        get_server_tools, set_server_lifespan, session_key,
    )
"""

from __future__ import annotations

import dataclasses
import importlib.metadata
import inspect
import json
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from mcp.types import TextContent

logger = logging.getLogger(__name__)

# ── Version detection ─────────────────────────────────────────────

try:
    _version_str = importlib.metadata.version("fastmcp")
    _major = int(_version_str.split(".")[0])
except Exception:
    _version_str = "0.0.0"
    _major = 0

FASTMCP_VERSION: str = _version_str
"""Installed fastmcp version string, e.g. '2.13.3' or '3.0.2'."""

FASTMCP_V3: bool = _major >= 3
"""True when running on fastmcp 3.x+."""

DEFAULT_SESSION_KEY = "default"

# Experimental capability key under which clients may declare
# camelCase capabilities during initialize
DECLARED_CAPABILITIES_KEY = "clientCapabilities"


# ── Tool access ───────────────────────────────────────────────────

def get_tool_fn(tool_obj: Any) -> Callable[..., Any]:
    """Get the underlying function from a FastMCP tool object.

    On v2: ``@mcp.tool`` returns a ``FunctionTool`` with a ``.fn`` attribute.
    On v3: ``@mcp.tool`` returns the original function directly.
    """
    return getattr(tool_obj, "fn", tool_obj)


def _tools_by_name(tools: Any) -> Dict[str, Any]:
    if isinstance(tools, Mapping):
        return dict(tools)
    return {getattr(t, "name", str(t)): t for t in tools}


async def get_server_tools(server: Any) -> Dict[str, Any]:
    """Return all registered tools of a FastMCP server as {name: Tool}.

    On v2: ``server.get_tools()`` returns a mapping.
    On later versions: ``server.list_tools()`` returns a sequence; server
    middleware is skipped where the signature allows it.
    """
    getter = getattr(server, "get_tools", None)
    if getter is not None:
        tools = getter()
        if inspect.isawaitable(tools):
            tools = await tools
        return _tools_by_name(tools)
    lister = getattr(server, "list_tools", None)
    if lister is not None:
        try:
            params = inspect.signature(lister).parameters
        except (TypeError, ValueError):
            params = {}
        tools = lister(run_middleware=False) if "run_middleware" in params else lister()
        if inspect.isawaitable(tools):
            tools = await tools
        return _tools_by_name(tools)
    manager = getattr(server, "_tool_manager", None)
    if manager is not None:
        return _tools_by_name(await manager.get_tools())
    logger.warning("Cannot get tools: no compatible API found")
    return {}


def tool_definition(tool: Any) -> Dict[str, Any]:
    """MCP-style definition dict of a FastMCP tool."""
    return {
        "name": tool.name,
        "description": getattr(tool, "description", None) or "",
        "inputSchema": getattr(tool, "parameters", None) or {"type": "object"},
    }


# ── Lifespan compatibility ────────────────────────────────────────

def set_server_lifespan(mcp_server: Any, lifespan_fn: Any) -> None:
    """Set the lifespan context manager on the FastMCP server.

    On v2: mutates ``mcp._mcp_server.lifespan``.
    On v3: tries v2 path first, then public API if available.

    Args:
        mcp_server: The FastMCP server instance.
        lifespan_fn: An async context manager factory for the lifespan.
    """
    if hasattr(mcp_server, "_mcp_server"):
        mcp_server._mcp_server.lifespan = lifespan_fn  # type: ignore[attr-defined]
    elif hasattr(mcp_server, "lifespan"):
        mcp_server.lifespan = lifespan_fn
    else:
        logger.warning(
            "Cannot set lifespan: no compatible attribute found on FastMCP server"
        )


# ── Session information ───────────────────────────────────────────

def session_key(fastmcp_context: Any) -> str:
    """Stable key of the MCP session behind a request context."""
    if fastmcp_context is None:
        return DEFAULT_SESSION_KEY
    try:
        key = fastmcp_context.session_id
    except (AttributeError, RuntimeError, ValueError) as e:
        logger.debug("No session id available: %s", e)
        return DEFAULT_SESSION_KEY
    return str(key) if key else DEFAULT_SESSION_KEY


def _client_params(fastmcp_context: Any) -> Any:
    try:
        session = fastmcp_context.session
    except (AttributeError, RuntimeError, ValueError):
        return None
    return getattr(session, "client_params", None)


def client_info(fastmcp_context: Any) -> Any:
    """MCP ``clientInfo`` sent during initialize, if known."""
    params = _client_params(fastmcp_context)
    return getattr(params, "clientInfo", None) if params is not None else None


def declared_capabilities(fastmcp_context: Any) -> Dict[str, Any]:
    """camelCase capabilities the client declared under ``experimental``."""
    params = _client_params(fastmcp_context)
    capabilities = getattr(params, "capabilities", None)
    experimental = getattr(capabilities, "experimental", None) or {}
    declared = experimental.get(DECLARED_CAPABILITIES_KEY)
    return dict(declared) if isinstance(declared, Mapping) else {}


def request_headers() -> Dict[str, str]:
    """HTTP headers of the current request; empty for stdio."""
    from fastmcp.server.dependencies import get_http_headers

    try:
        return dict(get_http_headers(include_all=True))
    except RuntimeError:
        return {}


# ── Tool results ──────────────────────────────────────────────────

def tool_result_data(result: Any) -> Any:
    """Plain data carried by a ToolResult.

    Structured content wins, unwrapping fastmcp's ``{"result": ...}``
    envelope. Otherwise text blocks are joined and parsed as JSON when
    possible.
    """
    structured = getattr(result, "structured_content", None)
    if isinstance(structured, Mapping):
        if set(structured) == {"result"}:
            return structured["result"]
        return dict(structured)
    texts = [
        block.text for block in getattr(result, "content", None) or []
        if isinstance(block, TextContent)
    ]
    text = "\n".join(texts)
    try:
        return json.loads(text)
    except ValueError:
        return text


def make_tool_result(text: str, original: Any = None) -> Any:
    """Build a ToolResult with ``text`` as its only text content.

    Structured content of ``original`` is kept so clients that validate
    against an output schema still receive it.
    """
    from fastmcp.tools.tool import ToolResult

    content: List[Any] = [TextContent(type="text", text=text)]
    structured = getattr(original, "structured_content", None)
    return ToolResult(content=content, structured_content=structured)


def map_resource_text(result: Any, transform: Callable[[str, Optional[str]], str]) -> Any:
    """Apply ``transform(text, mime_type)`` to the text contents of a read.

    Handles v2's list of ReadResourceContents and v3-style results with a
    ``contents`` attribute. Binary contents are left alone.
    """
    def _convert(item: Any) -> Any:
        content = getattr(item, "content", None)
        if not isinstance(content, str):
            return item
        mime_type = getattr(item, "mime_type", None)
        text = transform(content, mime_type)
        if dataclasses.is_dataclass(item):
            return dataclasses.replace(item, content=text)
        if hasattr(item, "model_copy"):
            return item.model_copy(update={"content": text})
        return item

    if isinstance(result, (list, tuple)):
        return [_convert(item) for item in result]
    contents = getattr(result, "contents", None)
    if isinstance(contents, (list, tuple)) and hasattr(result, "model_copy"):
        return result.model_copy(update={"contents": [_convert(c) for c in contents]})
    return result
