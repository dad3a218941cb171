"""Tool Registry Bounded Context.

Keeps the tools the server exposes together with their compatibility
metadata, ranks them per client and executes them with usage tracking.

The domain follows DDD patterns with:
- Value Objects: ToolMetadata, ScoredTool, ToolRecommendation
- Entities: RegisteredTool (with immutable UsageStats snapshots)
- Domain Events: ToolRegistered, ToolExecuted, ToolRejected
- Services: CompatibilityScorer, ToolRegistry

Example usage:
    from clientmcp.domains.tool_registry import ToolRegistry

    registry = ToolRegistry()
    registry.register("get_balance", metadata={"complexity": "low"})
    visible = registry.get_filtered_tools(context)
"""

# Value Objects
from .value_objects import (
    ScoredTool,
    ToolMetadata,
    ToolRecommendation,
)

# Entities
from .entities import (
    RegisteredTool,
    ToolHandler,
    UsageStats,
)

# Domain Events
from .events import (
    ToolExecuted,
    ToolRegistered,
    ToolRejected,
)

# Services
from .services import (
    CompatibilityScorer,
    ToolRegistry,
)

__all__ = [
    # Value Objects
    "ScoredTool",
    "ToolMetadata",
    "ToolRecommendation",
    # Entities
    "RegisteredTool",
    "ToolHandler",
    "UsageStats",
    # Domain Events
    "ToolExecuted",
    "ToolRegistered",
    "ToolRejected",
    # Services
    "CompatibilityScorer",
    "ToolRegistry",
]
