"""Domain-Driven Design bounded contexts for client-aware MCP serving.

This package contains the DDD implementation for:
- Client Profile Context: Client catalog, detection and session context
- Client Config Context: Layered, validated capability configuration
- Tool Registry Context: Compatibility filtering, ranking and execution
- Adaptation Context: Parameter adaptation and response shaping
- Behavior Context: Usage tracking and the adaptive feedback loop
"""

from clientmcp.domains.shared import (
    ClientMCPError,
    ConfigurationError,
    ToolComplexity,
    ToolIncompatibleError,
    ToolNotFoundError,
    ToolTimeoutError,
)

from clientmcp.domains.client_profile import (
    ClientCapabilities,
    ClientContext,
    ClientDetector,
    ClientProfile,
    ClientProfiles,
    ConnectionMetadata,
)

from clientmcp.domains.client_config import (
    AdaptiveSettings,
    BehaviorReport,
    CapabilityValidator,
    ClientConfigManager,
    ConfigTemplates,
)

from clientmcp.domains.tool_registry import (
    CompatibilityScorer,
    ToolMetadata,
    ToolRegistry,
)

from clientmcp.domains.adaptation import (
    AdaptationManager,
    FormattedResponse,
)

from clientmcp.domains.behavior import (
    BehaviorStats,
    BehaviorSweeper,
    BehaviorTracker,
)

__all__ = [
    # Shared Kernel
    "ClientMCPError",
    "ConfigurationError",
    "ToolComplexity",
    "ToolIncompatibleError",
    "ToolNotFoundError",
    "ToolTimeoutError",
    # Client Profile
    "ClientCapabilities",
    "ClientContext",
    "ClientDetector",
    "ClientProfile",
    "ClientProfiles",
    "ConnectionMetadata",
    # Client Config
    "AdaptiveSettings",
    "BehaviorReport",
    "CapabilityValidator",
    "ClientConfigManager",
    "ConfigTemplates",
    # Tool Registry
    "CompatibilityScorer",
    "ToolMetadata",
    "ToolRegistry",
    # Adaptation
    "AdaptationManager",
    "FormattedResponse",
    # Behavior
    "BehaviorStats",
    "BehaviorSweeper",
    "BehaviorTracker",
]
