"""Dependency Injection Container for the clientmcp domains.

This container wires together the bounded contexts:
- Client Profile Context: detector and profile catalog
- Client Config Context: layered configuration manager
- Tool Registry Context: shared tool registry
- Adaptation Context: parameter and response adaptation
- Behavior Context: tracker and periodic sweeper

Shared services are created lazily and live for the process. Session
integrations are keyed by the transport's session key.

Usage:
    from clientmcp.container import get_container

    container = get_container()
    integration = container.get_integration("session-1", {"clientName": "Cursor"})
"""

from __future__ import annotations

import logging
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Deque, Dict, List, Mapping, Optional

from clientmcp.config.settings import Settings

if TYPE_CHECKING:
    from clientmcp.domains.adaptation import AdaptationManager
    from clientmcp.domains.behavior import BehaviorSweeper, BehaviorTracker
    from clientmcp.domains.client_config import ClientConfigManager
    from clientmcp.domains.client_profile import ClientDetector
    from clientmcp.domains.tool_registry import ToolRegistry
    from clientmcp.integration import ClientIntegration

logger = logging.getLogger(__name__)

# Singleton container instance
_container: Optional["ServiceContainer"] = None

EVENT_LOG_SIZE = 500


@dataclass
class ServiceContainer:
    """Simple dependency injection container for the domain services.

    Attributes:
        settings: Process settings.
        events: Most recent domain events, newest last.

    Session-specific services (keyed by session key):
        - Client integrations
    """

    settings: Settings = field(default_factory=Settings.from_env)
    events: Deque[object] = field(
        default_factory=lambda: deque(maxlen=EVENT_LOG_SIZE), repr=False
    )

    # Shared services (singletons)
    _detector: Optional["ClientDetector"] = field(default=None, repr=False)
    _config_manager: Optional["ClientConfigManager"] = field(default=None, repr=False)
    _registry: Optional["ToolRegistry"] = field(default=None, repr=False)
    _tracker: Optional["BehaviorTracker"] = field(default=None, repr=False)
    _adaptation: Optional["AdaptationManager"] = field(default=None, repr=False)
    _sweeper: Optional["BehaviorSweeper"] = field(default=None, repr=False)

    # Session-scoped registries
    _integrations: "OrderedDict[str, ClientIntegration]" = field(
        default_factory=OrderedDict, repr=False
    )

    def publish(self, event: object) -> None:
        """Event publisher handed to every domain service."""
        self.events.append(event)
        logger.debug("Domain event: %s", type(event).__name__)

    def recent_events(self, limit: int = 50) -> List[Dict[str, Any]]:
        """The newest ``limit`` events as dictionaries."""
        items = list(self.events)[-limit:] if limit > 0 else []
        return [e.to_dict() if hasattr(e, "to_dict") else {"event": repr(e)} for e in items]

    @property
    def detector(self) -> "ClientDetector":
        """Get the client detector."""
        if self._detector is None:
            from clientmcp.domains.client_profile import ClientDetector
            self._detector = ClientDetector(event_publisher=self.publish)
        return self._detector

    @property
    def config_manager(self) -> "ClientConfigManager":
        """Get the configuration manager."""
        if self._config_manager is None:
            from clientmcp.domains.client_config import ClientConfigManager
            self._config_manager = ClientConfigManager(event_publisher=self.publish)
        return self._config_manager

    @property
    def registry(self) -> "ToolRegistry":
        """Get the tool registry."""
        if self._registry is None:
            from clientmcp.domains.tool_registry import ToolRegistry
            self._registry = ToolRegistry(event_publisher=self._on_registry_event)
        return self._registry

    def _on_registry_event(self, event: object) -> None:
        """Publish a registry event; late registrations are seeded for known clients."""
        from clientmcp.domains.tool_registry import ToolRegistered
        self.publish(event)
        if isinstance(event, ToolRegistered):
            self.tracker.seed_tool(event.tool_name)

    @property
    def tracker(self) -> "BehaviorTracker":
        """Get the behavior tracker."""
        if self._tracker is None:
            from clientmcp.domains.behavior import BehaviorTracker
            self._tracker = BehaviorTracker(event_publisher=self.publish)
        return self._tracker

    @property
    def adaptation(self) -> "AdaptationManager":
        """Get the adaptation manager."""
        if self._adaptation is None:
            from clientmcp.domains.adaptation import AdaptationManager
            self._adaptation = AdaptationManager(event_publisher=self.publish)
        return self._adaptation

    @property
    def sweeper(self) -> "BehaviorSweeper":
        """Get the behavior sweeper (not started)."""
        if self._sweeper is None:
            from clientmcp.domains.behavior import BehaviorSweeper
            self._sweeper = BehaviorSweeper(
                self.tracker,
                interval_seconds=self.settings.sweep_interval or 60,
                event_publisher=self.publish,
            )
        return self._sweeper

    def load_configuration(self) -> Optional[Dict[str, int]]:
        """Load the configuration file named in the settings, if any.

        Raises:
            ConfigurationError: If the file content is invalid.
            OSError: If the file cannot be read.
        """
        if not self.settings.config_file:
            return None
        return self.config_manager.load_file(self.settings.config_file)

    def create_integration(self) -> "ClientIntegration":
        """Create an uninitialized integration wired to the shared services."""
        from clientmcp.integration import ClientIntegration
        return ClientIntegration(
            detector=self.detector,
            config_manager=self.config_manager,
            registry=self.registry,
            tracker=self.tracker,
            adaptation=self.adaptation,
            event_publisher=self.publish,
        )

    def get_integration(
        self,
        session_key: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> "ClientIntegration":
        """Get or create the initialized integration of a session.

        Args:
            session_key: Transport-level session identifier.
            metadata: Connection metadata, used only on first access.

        Returns:
            ClientIntegration for the session
        """
        integration = self.find_integration(session_key)
        if integration is None:
            integration = self.create_integration()
            integration.initialize(metadata)
            self._integrations[session_key] = integration
            self._evict_sessions()
        return integration

    def find_integration(self, session_key: str) -> Optional["ClientIntegration"]:
        integration = self._integrations.get(session_key)
        if integration is not None:
            self._integrations.move_to_end(session_key)
        return integration

    def _evict_sessions(self) -> None:
        # MCP middleware sees no session teardown; bound the table instead
        while len(self._integrations) > max(1, self.settings.max_sessions):
            oldest = next(iter(self._integrations))
            logger.info(f"Session limit reached, dropping session {oldest}")
            self.clear_session(oldest)

    def integrations(self) -> List["ClientIntegration"]:
        return list(self._integrations.values())

    def refresh_client(self, client_id: str, reason: str = "override") -> int:
        """Refresh every live session of ``client_id`` after a config change.

        Returns:
            Number of sessions refreshed.
        """
        refreshed = 0
        for integration in self._integrations.values():
            context = integration.context
            if context is not None and context.client_id == client_id:
                integration.refresh_capabilities(reason=reason)
                refreshed += 1
        return refreshed

    def clear_session(self, session_key: str) -> None:
        """Clear all session-specific data.

        Args:
            session_key: The session to clear
        """
        integration = self._integrations.pop(session_key, None)
        if integration is not None:
            integration.close()
        logger.debug(f"Cleared container data for session {session_key}")


def get_container() -> ServiceContainer:
    """Get the singleton service container.

    Returns:
        The shared ServiceContainer instance
    """
    global _container
    if _container is None:
        _container = ServiceContainer()
    return _container


def reset_container() -> None:
    """Reset the container (for testing).

    Clears the singleton instance so a fresh container is created
    on next get_container() call.
    """
    global _container
    _container = None
