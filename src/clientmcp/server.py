"""Client-aware MCP server.

A FastMCP server with the client adaptation middleware installed and a
set of introspection and administration tools for the adaptation layer
itself. Applications add their own tools to ``mcp``; every tool is then
filtered, adapted and tracked per connected client.
"""

import argparse
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastmcp import Context, FastMCP

from clientmcp.adapters import ClientAdaptationMiddleware
from clientmcp.compat.fastmcp_compat import set_server_lifespan
from clientmcp.config.settings import Settings
from clientmcp.container import get_container
from clientmcp.domains.client_profile import ClientProfiles
from clientmcp.domains.shared import ConfigurationError
from clientmcp.domains.shared.kernel import ComplexityLiteral, StatsScope, TemplateName
from clientmcp.integration import ClientIntegration

logger = logging.getLogger(__name__)

SERVER_INSTRUCTIONS = (
    "This server adapts its tools and responses to the connected client. "
    "Use get_client_info to see how your client was detected and which "
    "capabilities apply, and recommend_tools to find tools for a task."
)

ADMIN_TAGS = {"complexity:low", "category:system"}

middleware = ClientAdaptationMiddleware()


def _create_mcp_server() -> FastMCP:
    """Create the FastMCP server with the adaptation middleware installed.

    Returns:
        Configured FastMCP server instance.
    """
    server = FastMCP("Client-Aware MCP Server", instructions=SERVER_INSTRUCTIONS)
    server.add_middleware(middleware)
    return server


mcp = _create_mcp_server()


def _integration(ctx: Optional[Context]) -> ClientIntegration:
    return middleware.integration_for(ctx)


def _target_client(client_id: Optional[str], ctx: Optional[Context]) -> str:
    if client_id:
        return client_id
    return _integration(ctx).context.client_id


# ── Introspection tools ───────────────────────────────────────────


@mcp.tool(tags=ADMIN_TAGS)
async def get_client_info(ctx: Context = None) -> Dict[str, Any]:
    """Show how the connected client was detected and its effective capabilities."""
    info = _integration(ctx).get_session_info()
    return {"success": True, **info}


@mcp.tool(tags=ADMIN_TAGS)
async def get_adaptation_stats(scope: StatsScope = "all") -> Dict[str, Any]:
    """Return statistics of the adaptation layer.

    Args:
        scope: One of "all", "config", "tools", "behavior", "responses".
    """
    container = get_container()
    sections = {
        "config": container.config_manager.get_stats,
        "tools": container.registry.get_stats,
        "behavior": container.tracker.get_behavior_stats,
        "responses": container.adaptation.get_response_stats,
    }
    if scope == "all":
        stats = {name: produce() for name, produce in sections.items()}
        stats["sessions"] = len(container.integrations())
        stats["recentEvents"] = container.recent_events(20)
    else:
        stats = {scope: sections[scope]()}
    return {"success": True, "scope": scope, "stats": stats}


@mcp.tool(tags=ADMIN_TAGS)
async def get_tool_usage_stats(tool_name: Optional[str] = None) -> Dict[str, Any]:
    """Return execution statistics of one tool, or of all tools.

    Args:
        tool_name: Tool to report on. Omit for all tools.
    """
    registry = get_container().registry
    if tool_name is not None and tool_name not in registry:
        return {"success": False, "error": f"Tool '{tool_name}' not found"}
    return {
        "success": True,
        "tool": tool_name,
        "usage": registry.get_usage_stats(tool_name),
    }


@mcp.tool(tags=ADMIN_TAGS)
async def recommend_tools(
    operation: str,
    entity: Optional[str] = None,
    complexity: Optional[ComplexityLiteral] = None,
    ctx: Context = None,
) -> Dict[str, Any]:
    """Recommend up to five tools for an operation on an entity.

    Args:
        operation: Operation to perform, e.g. "list" or "create".
        entity: Entity the operation targets, e.g. "account".
        complexity: Preferred complexity tier.
    """
    recommendations = _integration(ctx).recommend_tools(operation, entity, complexity)
    return {
        "success": True,
        "operation": operation,
        "entity": entity,
        "recommendations": [r.to_dict() for r in recommendations],
    }


# ── Configuration tools ───────────────────────────────────────────


@mcp.tool(tags=ADMIN_TAGS)
async def list_config_templates() -> Dict[str, Any]:
    """List the configuration templates that can be applied to a client."""
    manager = get_container().config_manager
    templates = {name: manager.get_template(name) for name in manager.list_templates()}
    return {"success": True, "templates": templates}


@mcp.tool(tags=ADMIN_TAGS)
async def apply_config_template(
    template: TemplateName,
    client_id: Optional[str] = None,
    ctx: Context = None,
) -> Dict[str, Any]:
    """Apply a configuration template as the override of a client.

    Args:
        template: Template name.
        client_id: Client to configure. Defaults to the connected client.
    """
    container = get_container()
    target = _target_client(client_id, ctx)
    try:
        override = container.config_manager.apply_template(target, template)
    except ConfigurationError as e:
        return {"success": False, "error": str(e), "errors": e.errors}
    refreshed = container.refresh_client(target, reason="template")
    return {
        "success": True,
        "clientId": target,
        "template": template,
        "override": override,
        "config": container.config_manager.get_config(target),
        "sessionsRefreshed": refreshed,
    }


@mcp.tool(tags=ADMIN_TAGS)
async def export_client_config(
    client_id: Optional[str] = None,
    ctx: Context = None,
) -> Dict[str, Any]:
    """Export a client's effective config, override and adaptive settings.

    Args:
        client_id: Client to export. Defaults to the connected client.
    """
    target = _target_client(client_id, ctx)
    return {"success": True, "export": get_container().config_manager.export_config(target)}


@mcp.tool(tags=ADMIN_TAGS)
async def import_client_config(envelope: Dict[str, Any]) -> Dict[str, Any]:
    """Import an envelope produced by export_client_config.

    Args:
        envelope: ``{exportedAt, clientId, config, overrides, adaptiveSettings}``.
    """
    container = get_container()
    try:
        client_id = container.config_manager.import_config(envelope)
    except ConfigurationError as e:
        return {"success": False, "error": str(e), "errors": e.errors}
    refreshed = container.refresh_client(client_id, reason="import")
    return {"success": True, "clientId": client_id, "sessionsRefreshed": refreshed}


# ── Resources ─────────────────────────────────────────────────────


@mcp.resource("client://profiles", name="client_profiles")
def client_profiles() -> str:
    """Known client profiles in detection priority order."""
    return json.dumps([p.to_dict() for p in ClientProfiles.ordered()], indent=2)


@mcp.resource("client://config", name="client_config")
def client_config(ctx: Context = None) -> str:
    """Effective configuration of the connected client."""
    integration = _integration(ctx)
    config = integration.config_manager.get_config(integration.context.client_id)
    return json.dumps(config, indent=2)


# ── Lifespan ──────────────────────────────────────────────────────


def _install_sweeper_lifespan(interval_seconds: int) -> None:
    """Attach a FastMCP lifespan that runs the behavior sweeper.

    Args:
        interval_seconds: Time between sweeps.
    """
    container = get_container()
    sweeper = container.sweeper
    sweeper.interval = interval_seconds

    @asynccontextmanager
    async def sweeper_lifespan(server: FastMCP):  # type: ignore[override]
        try:
            await sweeper.start()
            yield {}
        finally:
            await sweeper.stop()

    set_server_lifespan(mcp, sweeper_lifespan)


# ── Entry point ───────────────────────────────────────────────────


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Client-aware MCP server entry point."
    )
    parser.add_argument(
        "--transport",
        dest="transport",
        choices=["stdio", "http", "sse"],
        help="Transport to use for the MCP server (default: stdio).",
    )
    parser.add_argument(
        "--host",
        dest="host",
        help="Host/interface for HTTP transport (default 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        dest="port",
        type=int,
        help="Port for HTTP transport (default 8000).",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        help="Log level for the MCP server (e.g., INFO, DEBUG).",
    )
    parser.add_argument(
        "--config",
        dest="config_file",
        help="YAML or JSON file with clients, overrides and templates.",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Start the client-aware MCP server."""

    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    settings = Settings.from_env()

    log_level = (args.log_level or settings.log_level).upper()
    logging.basicConfig(level=getattr(logging, log_level, logging.INFO))

    container = get_container()
    config_file = args.config_file or settings.config_file
    if config_file:
        try:
            counts = container.config_manager.load_file(config_file)
        except (ConfigurationError, OSError, ValueError) as e:
            logger.error(f"Failed to load configuration file {config_file}: {e}")
            raise SystemExit(2) from e
        logger.info("Loaded %s from %s", counts, config_file)

    if settings.sweep_interval > 0:
        _install_sweeper_lifespan(settings.sweep_interval)

    try:
        run_kwargs: Dict[str, Any] = {}

        transport = args.transport or settings.transport
        run_kwargs["transport"] = transport

        # Only pass host/port when using HTTP/SSE transports
        if transport != "stdio":
            host = args.host or settings.host
            port = args.port or settings.port
            if host:
                run_kwargs["host"] = host
            if port:
                run_kwargs["port"] = port

        mcp.run(**run_kwargs)
    except KeyboardInterrupt:
        logger.info("Client-aware MCP server interrupted by user")


if __name__ == "__main__":
    main()
