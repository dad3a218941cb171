"""FastMCP Client Adaptation Adapter - Anti-Corruption Layer.

ClientAdaptationMiddleware applies the client adaptation pipeline to the
MCP traffic of a FastMCP server without the domain model knowing about
fastmcp types:

- tools/list: sync tools into the registry, filter and rank per client
- tools/call: gate, adapt arguments, execute with tracking, shape output
- resources/list: hide resources the client cannot render
- resources/read: shape text contents

Domain errors are converted into ``ToolError`` carrying the
verbosity-tiered error payload for the client.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, List, Optional, Sequence

from fastmcp.exceptions import ToolError
from fastmcp.server.middleware import CallNext, Middleware, MiddlewareContext

from clientmcp.compat.fastmcp_compat import (
    client_info,
    declared_capabilities,
    get_server_tools,
    make_tool_result,
    map_resource_text,
    request_headers,
    session_key,
    tool_definition,
    tool_result_data,
)
from clientmcp.container import ServiceContainer, get_container
from clientmcp.domains.client_profile import extract_connection_info
from clientmcp.domains.tool_registry import ToolMetadata
from clientmcp.integration import ClientIntegration

logger = logging.getLogger(__name__)


class ClientAdaptationMiddleware(Middleware):
    """FastMCP middleware adapting tools, results and resources per client.

    Attributes:
        _container: Service container holding the shared services and the
            per-session integrations.
    """

    def __init__(self, container: Optional[ServiceContainer] = None) -> None:
        self._container = container

    @property
    def container(self) -> ServiceContainer:
        return self._container if self._container is not None else get_container()

    # ── Session resolution ────────────────────────────────────────

    def integration_for(self, fastmcp_context: Any) -> ClientIntegration:
        """Get or create the integration of the session behind a request."""
        container = self.container
        key = session_key(fastmcp_context)
        existing = container.find_integration(key)
        if existing is not None:
            return existing
        return container.get_integration(key, self.connection_metadata(fastmcp_context))

    def connection_metadata(self, fastmcp_context: Any) -> Dict[str, Any]:
        """Build detection metadata from the handshake, headers and environment."""
        settings = self.container.settings
        info = client_info(fastmcp_context)
        if info is None and settings.client_hint:
            info = {"name": settings.client_hint}
        metadata = extract_connection_info(
            client_info=info,
            headers=request_headers(),
            transport=settings.transport,
            capabilities=declared_capabilities(fastmcp_context),
        )
        return metadata.to_dict()

    async def sync_tools(self, server: Any) -> None:
        """Register server tools the registry does not know yet."""
        registry = self.container.registry
        for name, tool in (await get_server_tools(server)).items():
            if name in registry:
                continue
            registry.register(
                name,
                definition=tool_definition(tool),
                metadata=ToolMetadata.from_tags(
                    name, getattr(tool, "description", None), getattr(tool, "tags", None)
                ),
            )

    # ── Hooks ─────────────────────────────────────────────────────

    async def on_list_tools(
        self,
        context: MiddlewareContext,
        call_next: CallNext,
    ) -> Sequence[Any]:
        tools = list(await call_next(context))
        registry = self.container.registry
        for tool in tools:
            if tool.name not in registry:
                registry.register(
                    tool.name,
                    definition=tool_definition(tool),
                    metadata=ToolMetadata.from_tags(
                        tool.name, tool.description, getattr(tool, "tags", None)
                    ),
                )
        integration = self.integration_for(context.fastmcp_context)
        by_name = {tool.name: tool for tool in tools}
        visible = [
            by_name[d["name"]] for d in integration.list_tools() if d["name"] in by_name
        ]
        logger.info(
            "Exposing %d of %d tools to %s",
            len(visible), len(tools), integration.context.client_id,
        )
        return visible

    async def on_call_tool(
        self,
        context: MiddlewareContext,
        call_next: CallNext,
    ) -> Any:
        message = context.message
        name = message.name
        fastmcp_context = context.fastmcp_context
        if name not in self.container.registry and fastmcp_context is not None:
            await self.sync_tools(fastmcp_context.fastmcp)
        integration = self.integration_for(fastmcp_context)
        raw: Dict[str, Any] = {}

        async def invoke(adapted: Dict[str, Any]) -> Any:
            updated = message.model_copy(update={"arguments": adapted})
            result = await call_next(dataclasses.replace(context, message=updated))
            raw["result"] = result
            return tool_result_data(result)

        try:
            response = await integration.call_tool_with(
                name, dict(message.arguments or {}), invoke
            )
        except Exception as e:
            rendered = integration.handle_error(e, tool_name=name)
            raise ToolError(rendered.text) from e
        return make_tool_result(response.text, raw.get("result"))

    async def on_list_resources(
        self,
        context: MiddlewareContext,
        call_next: CallNext,
    ) -> Sequence[Any]:
        resources: List[Any] = list(await call_next(context))
        integration = self.integration_for(context.fastmcp_context)
        visible = integration.filter_resources(resources)
        if len(visible) != len(resources):
            logger.debug(
                "Hid %d resources from %s",
                len(resources) - len(visible), integration.context.client_id,
            )
        return visible

    async def on_read_resource(
        self,
        context: MiddlewareContext,
        call_next: CallNext,
    ) -> Any:
        result = await call_next(context)
        integration = self.integration_for(context.fastmcp_context)
        uri = str(getattr(context.message, "uri", "") or "") or None
        return map_resource_text(
            result, lambda text, _mime: integration.format_resource(text, uri).text
        )
