"""Behavior Tracking Bounded Context.

Records tool outcomes per (client, tool) pair, signals when a client's
error rate should feed back into its adaptive settings, and periodically
classifies usage patterns for observability.
"""

# Value Objects
from .value_objects import (
    AdaptationTrigger,
    BehaviorPatterns,
    BehaviorStats,
)

# Domain Events
from .events import (
    AdaptationThresholdReached,
    BehaviorPatternsDetected,
)

# Services
from .services import (
    BehaviorSweeper,
    BehaviorTracker,
)

__all__ = [
    # Value Objects
    "AdaptationTrigger",
    "BehaviorPatterns",
    "BehaviorStats",
    # Domain Events
    "AdaptationThresholdReached",
    "BehaviorPatternsDetected",
    # Services
    "BehaviorSweeper",
    "BehaviorTracker",
]
