"""Per-session client integration.

ClientIntegration wires the bounded contexts into the per-call pipeline
for one client session:

    resolve context -> check compatibility -> adapt parameters ->
    execute -> record behavior -> format response

Shared services (detector, config manager, registry, tracker, adaptation)
are injected, normally from the ServiceContainer. The integration itself
only holds the session's ClientContext.

Usage:
    from clientmcp.container import get_container

    integration = get_container().create_integration()
    integration.initialize({"clientName": "Cursor"})
    tools = integration.list_tools()
    response = await integration.call_tool("list_accounts", {"limit": 500})
"""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from clientmcp.domains.adaptation import AdaptationManager, FormattedResponse
from clientmcp.domains.behavior import BehaviorStats, BehaviorTracker
from clientmcp.domains.client_config import BehaviorReport, ClientConfigManager
from clientmcp.domains.client_profile import (
    CapabilitiesRefreshed,
    ClientCapabilities,
    ClientContext,
    ClientDetector,
    ConnectionMetadata,
)
from clientmcp.domains.shared import (
    ClientMCPError,
    ToolIncompatibleError,
    ToolNotFoundError,
)
from clientmcp.domains.tool_registry import ToolRecommendation, ToolRegistry

logger = logging.getLogger(__name__)

Invoke = Callable[[Dict[str, Any]], Union[Any, Awaitable[Any]]]


class ClientIntegration:
    """Orchestrates detection, configuration and adaptation for one session.

    Attributes:
        detector: Client detector.
        config_manager: Layered configuration store.
        registry: Tool registry.
        tracker: Behavior tracker.
        adaptation: Parameter and response adaptation.
    """

    def __init__(
        self,
        detector: ClientDetector,
        config_manager: ClientConfigManager,
        registry: ToolRegistry,
        tracker: BehaviorTracker,
        adaptation: AdaptationManager,
        event_publisher: Optional[Callable[[object], None]] = None,
    ) -> None:
        self.detector = detector
        self.config_manager = config_manager
        self.registry = registry
        self.tracker = tracker
        self.adaptation = adaptation
        self._event_publisher = event_publisher
        self._context: Optional[ClientContext] = None

    # ── Session lifecycle ─────────────────────────────────────────

    @property
    def context(self) -> Optional[ClientContext]:
        return self._context

    @property
    def is_initialized(self) -> bool:
        return self._context is not None

    def initialize(
        self,
        metadata: Union[ConnectionMetadata, Mapping[str, Any], None] = None,
    ) -> ClientContext:
        """Detect the client and resolve its effective capabilities.

        Args:
            metadata: Connection metadata for detection.

        Returns:
            The session's ClientContext.
        """
        self._context = self.detector.detect(metadata)
        self.refresh_capabilities(reason="initialize")
        self.tracker.seed(self._context.client_id, self.registry.names())
        return self._context

    def refresh_capabilities(self, reason: str = "refresh") -> ClientCapabilities:
        """Re-resolve the client config and swap the context's capabilities.

        Returns:
            The new capability record.
        """
        context = self._require_context()
        client_id = context.client_id
        previous = context.capabilities
        updated = context.apply_config(
            self.config_manager.get_config(client_id),
            self.config_manager.get_patch(client_id),
        )
        before, after = previous.to_dict(), updated.to_dict()
        changed = {k: after[k] for k in after if before.get(k) != after[k]}
        if changed:
            logger.debug("Capabilities of %s changed (%s): %s", client_id, reason, changed)
            self._publish_event(CapabilitiesRefreshed(
                session_id=context.session_id,
                client_id=client_id,
                changed=changed,
                reason=reason,
            ))
        return updated

    def close(self) -> None:
        """Release session-scoped state held by shared services."""
        if self._context is not None:
            self.registry.release_session(self._context.session_id)

    # ── Tools ─────────────────────────────────────────────────────

    def list_tools(self) -> List[Dict[str, Any]]:
        """Definitions of the tools visible to this client, best first."""
        context = self._require_context()
        tools = self.registry.get_filtered_tools(context)
        logger.debug(
            "Tools filtered for %s: %d of %d",
            context.client_id, len(tools), len(self.registry),
        )
        return tools

    def recommend_tools(
        self,
        operation: str,
        entity: Optional[str] = None,
        complexity: Optional[str] = None,
    ) -> List[ToolRecommendation]:
        return self.registry.get_recommended_tools(
            self._require_context(), operation, entity, complexity
        )

    async def call_tool(
        self, name: str, params: Optional[Mapping[str, Any]] = None
    ) -> FormattedResponse:
        """Run a registered tool's own handler through the full pipeline.

        Raises:
            ToolNotFoundError: Unknown tool.
            ToolIncompatibleError: Tool is filtered out for this client.
            Exception: Handler errors, unchanged, after tracking.
        """
        context = self._require_context()
        return await self._run(
            name, params,
            lambda adapted: self.registry.execute_tool(name, adapted, context),
        )

    async def call_tool_with(
        self,
        name: str,
        params: Optional[Mapping[str, Any]],
        invoke: Invoke,
    ) -> FormattedResponse:
        """Like ``call_tool`` with the handler supplied by the caller."""
        context = self._require_context()
        return await self._run(
            name, params,
            lambda adapted: self.registry.execute_with(name, adapted, context, invoke),
        )

    async def _run(
        self,
        name: str,
        params: Optional[Mapping[str, Any]],
        execute: Callable[[Dict[str, Any]], Awaitable[Any]],
    ) -> FormattedResponse:
        context = self._require_context()
        tool = self.registry.get(name)
        adapted = self.adaptation.adapt_parameters(
            name, params, context,
            required=tool.kept_parameters if tool is not None else (),
        )
        start = time.perf_counter()
        try:
            result = await execute(adapted)
        except (ToolNotFoundError, ToolIncompatibleError):
            raise
        except Exception:
            self._track(name, False, start)
            raise
        self._track(name, True, start)
        return self.adaptation.format_response(result, context, tool_name=name)

    def _track(self, name: str, success: bool, start: float) -> BehaviorStats:
        context = self._require_context()
        duration_ms = (time.perf_counter() - start) * 1000
        stats = self.tracker.record(context.client_id, name, success, duration_ms)
        if self.tracker.should_adapt(stats):
            self._adapt(stats)
        return stats

    def _adapt(self, stats: BehaviorStats) -> None:
        context = self._require_context()
        report = BehaviorReport(
            error_rate=stats.error_rate,
            avg_response_time=stats.avg_duration_ms,
            avg_response_size=self.adaptation.average_response_size(context.client_id),
        )
        try:
            self.config_manager.update_adaptive_settings(context.client_id, report)
        except (ClientMCPError, ValueError) as e:
            logger.error(f"Failed to apply adaptive update: {e}")
            return
        self.refresh_capabilities(reason="adaptive")
        logger.info(
            "Adaptive configuration updated for %s (errorRate=%.2f)",
            context.client_id, stats.error_rate,
        )

    # ── Resources and errors ──────────────────────────────────────

    def filter_resources(self, resources: List[Any]) -> List[Any]:
        return self.adaptation.filter_resources(resources, self._require_context())

    def format_resource(self, data: Any, uri: Optional[str] = None) -> FormattedResponse:
        """Shape resource content like a tool result."""
        return self.adaptation.format_response(data, self._require_context(), tool_name=uri)

    def format_error(
        self, error: BaseException, tool_name: Optional[str] = None
    ) -> Dict[str, Any]:
        return self.adaptation.format_error(error, self._require_context(), tool_name)

    def handle_error(
        self, error: BaseException, tool_name: Optional[str] = None
    ) -> FormattedResponse:
        """Log an error and render its client-facing payload."""
        context = self._require_context()
        logger.error(
            "Handling client error for %s (%s): %s",
            context.client_id, tool_name or "-", error,
        )
        return self.adaptation.render_error(error, context, tool_name)

    # ── Introspection ─────────────────────────────────────────────

    def get_session_info(self) -> Dict[str, Any]:
        """Summary of the session, its config and its behavior."""
        context = self._require_context()
        client_id = context.client_id
        adaptive = self.config_manager.get_adaptive_settings(client_id)
        return {
            "client": context.to_dict(),
            "config": self.config_manager.get_config(client_id),
            "adaptiveSettings": adaptive.to_dict() if adaptive else None,
            "tools": {
                "total": len(self.registry),
                "visible": len(self.registry.get_filtered_tools(context)),
            },
            "behavior": self.tracker.get_behavior_stats(client_id),
            "responses": self.adaptation.formatter.get_size_stats(client_id).to_dict(),
        }

    def _require_context(self) -> ClientContext:
        if self._context is None:
            raise ClientMCPError("Client integration is not initialized")
        return self._context

    def _publish_event(self, event: object) -> None:
        """Publish a domain event.

        Args:
            event: The event to publish.
        """
        if self._event_publisher:
            try:
                self._event_publisher(event)
            except Exception as e:
                logger.error(f"Failed to publish event: {e}")
