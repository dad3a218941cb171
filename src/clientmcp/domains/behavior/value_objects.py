"""Behavior Tracking Value Objects."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, ClassVar, Dict, Optional, Tuple


@dataclass(frozen=True)
class BehaviorStats:
    """Observed behavior of one tool for one client.

    All rates and averages are over total attempts.

    Attributes:
        client_id: Client profile id.
        tool_name: Tool name.
        calls: Attempts started.
        successes: Attempts that returned normally.
        errors: Attempts that raised.
        total_duration_ms: Sum of attempt durations.
        last_call: Time of the most recent attempt.
    """
    client_id: str
    tool_name: str
    calls: int = 0
    successes: int = 0
    errors: int = 0
    total_duration_ms: float = 0.0
    last_call: Optional[datetime] = None

    @property
    def attempts(self) -> int:
        return self.successes + self.errors

    @property
    def error_rate(self) -> float:
        return self.errors / self.attempts if self.attempts else 0.0

    @property
    def avg_duration_ms(self) -> float:
        return self.total_duration_ms / self.attempts if self.attempts else 0.0

    def record(self, success: bool, duration_ms: float) -> BehaviorStats:
        return replace(
            self,
            calls=self.calls + 1,
            successes=self.successes + (1 if success else 0),
            errors=self.errors + (0 if success else 1),
            total_duration_ms=self.total_duration_ms + max(0.0, duration_ms),
            last_call=datetime.now(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clientId": self.client_id,
            "tool": self.tool_name,
            "calls": self.calls,
            "successes": self.successes,
            "errors": self.errors,
            "totalDuration": round(self.total_duration_ms, 3),
            "avgDuration": round(self.avg_duration_ms, 3),
            "errorRate": round(self.error_rate, 4),
            "lastCall": self.last_call.isoformat() if self.last_call else None,
        }


@dataclass(frozen=True)
class AdaptationTrigger:
    """Threshold at which observed errors feed back into configuration."""
    min_error_rate: float = 0.2
    min_attempts: int = 5

    def should_adapt(self, stats: BehaviorStats) -> bool:
        return stats.error_rate > self.min_error_rate and stats.attempts >= self.min_attempts


@dataclass(frozen=True)
class BehaviorPatterns:
    """Classification of tracked (client, tool) pairs.

    Each tuple holds the stats of the pairs that matched.
    """
    high_error: Tuple[BehaviorStats, ...] = ()
    slow: Tuple[BehaviorStats, ...] = ()
    frequent: Tuple[BehaviorStats, ...] = ()
    unused: Tuple[BehaviorStats, ...] = ()
    analyzed_at: datetime = field(default_factory=datetime.now)

    HIGH_ERROR_RATE: ClassVar[float] = 0.3
    SLOW_AVG_MS: ClassVar[float] = 10000
    FREQUENT_CALLS: ClassVar[int] = 10

    @property
    def has_issues(self) -> bool:
        return bool(self.high_error or self.slow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "highErrorTools": [
                {"clientId": s.client_id, "tool": s.tool_name,
                 "errorRate": round(s.error_rate, 4)}
                for s in self.high_error
            ],
            "slowTools": [
                {"clientId": s.client_id, "tool": s.tool_name,
                 "avgDuration": round(s.avg_duration_ms, 3)}
                for s in self.slow
            ],
            "frequentTools": [
                {"clientId": s.client_id, "tool": s.tool_name, "calls": s.calls}
                for s in self.frequent
            ],
            "unusedTools": [
                {"clientId": s.client_id, "tool": s.tool_name} for s in self.unused
            ],
            "analyzedAt": self.analyzed_at.isoformat(),
        }
