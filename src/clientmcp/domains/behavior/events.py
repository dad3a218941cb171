"""Behavior Tracking Domain Events."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict


@dataclass(frozen=True)
class AdaptationThresholdReached:
    """Emitted when a (client, tool) pair crosses the adaptation threshold."""
    client_id: str
    tool_name: str
    error_rate: float
    attempts: int
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "AdaptationThresholdReached",
            "client_id": self.client_id,
            "tool_name": self.tool_name,
            "error_rate": round(self.error_rate, 4),
            "attempts": self.attempts,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class BehaviorPatternsDetected:
    """Emitted by the periodic sweep when it finds high-error or slow tools."""
    high_error_tools: int
    slow_tools: int
    frequent_tools: int
    unused_tools: int
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "BehaviorPatternsDetected",
            "high_error_tools": self.high_error_tools,
            "slow_tools": self.slow_tools,
            "frequent_tools": self.frequent_tools,
            "unused_tools": self.unused_tools,
            "timestamp": self.timestamp.isoformat(),
        }
