"""Tool Registry Domain Entities."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from ..shared.kernel import ToolCategory
from .value_objects import ToolMetadata

ToolHandler = Callable[[Dict[str, Any]], Any]


@dataclass(frozen=True)
class UsageStats:
    """Execution statistics for one tool.

    ``calls`` counts every attempt. The average duration is taken over
    all attempts, successful or not.

    Attributes:
        calls: Total attempts.
        successes: Attempts that returned normally.
        errors: Attempts that raised.
        total_duration_ms: Sum of attempt durations.
        last_used: Time of the most recent attempt.
    """
    calls: int = 0
    successes: int = 0
    errors: int = 0
    total_duration_ms: float = 0.0
    last_used: Optional[datetime] = None

    @property
    def avg_duration_ms(self) -> float:
        return self.total_duration_ms / self.calls if self.calls else 0.0

    @property
    def error_rate(self) -> float:
        return self.errors / self.calls if self.calls else 0.0

    def record(self, success: bool, duration_ms: float) -> "UsageStats":
        """Return a new record including one more attempt."""
        return replace(
            self,
            calls=self.calls + 1,
            successes=self.successes + (1 if success else 0),
            errors=self.errors + (0 if success else 1),
            total_duration_ms=self.total_duration_ms + max(0.0, duration_ms),
            last_used=datetime.now(),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to camelCase dictionary representation."""
        return {
            "calls": self.calls,
            "successes": self.successes,
            "errors": self.errors,
            "totalDuration": round(self.total_duration_ms, 3),
            "avgDuration": round(self.avg_duration_ms, 3),
            "errorRate": round(self.error_rate, 4),
            "lastUsed": self.last_used.isoformat() if self.last_used else None,
        }


@dataclass
class RegisteredTool:
    """A tool known to the registry, identified by its name.

    Attributes:
        name: Tool name.
        definition: MCP tool definition (name, description, inputSchema).
        metadata: Compatibility metadata.
        handler: Callable receiving adapted parameters, may be async.
            None for tools executed by the transport layer.
        stats: Current usage statistics (replaced on every attempt).
        registered_at: Registration time.
        order: Registration sequence number, used as a stable tiebreak.
    """
    name: str
    definition: Dict[str, Any]
    metadata: ToolMetadata
    handler: Optional[ToolHandler] = None
    stats: UsageStats = field(default_factory=UsageStats)
    registered_at: datetime = field(default_factory=datetime.now)
    order: int = 0
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    @property
    def kept_parameters(self) -> Tuple[str, ...]:
        """Arguments that parameter simplification must not drop.

        Required arguments of every tool, and all declared arguments of
        system tools.
        """
        schema = self.definition.get("inputSchema")
        if not isinstance(schema, dict):
            return ()
        if self.metadata.category == ToolCategory.SYSTEM:
            names = schema.get("properties")
        else:
            names = schema.get("required")
        if not isinstance(names, (list, tuple, dict)):
            return ()
        return tuple(str(name) for name in names)

    def record_attempt(self, success: bool, duration_ms: float) -> UsageStats:
        """Serialize a stats update; returns the new snapshot."""
        with self._lock:
            self.stats = self.stats.record(success, duration_ms)
            return self.stats
