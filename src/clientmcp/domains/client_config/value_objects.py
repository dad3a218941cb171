"""Client Config Domain Value Objects."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, Mapping


def _number(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return 0.0


@dataclass(frozen=True)
class BehaviorReport:
    """Observed runtime behavior of a client, input to adaptive rules.

    Attributes:
        error_rate: Fraction of failed tool attempts (0..1).
        avg_response_time: Average tool duration in milliseconds.
        avg_response_size: Average serialized response size in characters.
    """
    error_rate: float = 0.0
    avg_response_time: float = 0.0
    avg_response_size: float = 0.0

    def __post_init__(self) -> None:
        """Validate the report on creation."""
        if not 0.0 <= self.error_rate <= 1.0:
            raise ValueError(f"error_rate must be in [0, 1], got {self.error_rate}")
        if self.avg_response_time < 0 or self.avg_response_size < 0:
            raise ValueError("Averages must be non-negative")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BehaviorReport":
        """Build from ``{errorRate, avgResponseTime, avgResponseSize}``."""
        return cls(
            error_rate=_number(data.get("errorRate")),
            avg_response_time=_number(data.get("avgResponseTime")),
            avg_response_size=_number(data.get("avgResponseSize")),
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "errorRate": self.error_rate,
            "avgResponseTime": self.avg_response_time,
            "avgResponseSize": self.avg_response_size,
        }


@dataclass(frozen=True)
class AdaptiveSettings:
    """Behavior-derived capability patch for one client.

    The record is immutable; each adaptive update produces a new record
    with a higher revision that replaces the previous one as a whole.

    Attributes:
        client_id: Client the patch applies to.
        settings: camelCase capability patch.
        revision: Monotonic revision number, starting at 1.
        updated_at: When this revision was produced.
    """
    client_id: str
    settings: Mapping[str, Any] = field(default_factory=dict)
    revision: int = 1
    updated_at: datetime = field(default_factory=datetime.now)

    # Thresholds of the adaptive rules
    ERROR_RATE_THRESHOLD: ClassVar[float] = 0.1
    SLOW_RESPONSE_MS: ClassVar[float] = 5000
    RESPONSE_SIZE_RATIO: ClassVar[float] = 0.8
    MAX_TIMEOUT_MS: ClassVar[int] = 60000
    MAX_RESPONSE_SIZE: ClassVar[int] = 100000
    MIN_RESPONSE_SIZE: ClassVar[int] = 1000

    def __post_init__(self) -> None:
        """Freeze a private copy of the patch."""
        if self.revision < 1:
            raise ValueError(f"revision must be >= 1, got {self.revision}")
        object.__setattr__(self, "settings", copy.deepcopy(dict(self.settings)))

    def as_patch(self) -> Dict[str, Any]:
        """Return a mutable deep copy of the patch."""
        return copy.deepcopy(dict(self.settings))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "clientId": self.client_id,
            "settings": self.as_patch(),
            "revision": self.revision,
            "updatedAt": self.updated_at.isoformat(),
        }
