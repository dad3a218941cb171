"""Adaptation Domain Events."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class ParametersAdapted:
    """Emitted when request parameters were clamped or dropped for a client."""
    client_id: str
    tool_name: str
    clamped: Tuple[str, ...]
    dropped: Tuple[str, ...]
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "ParametersAdapted",
            "client_id": self.client_id,
            "tool_name": self.tool_name,
            "clamped": list(self.clamped),
            "dropped": list(self.dropped),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class ResponseTruncated:
    """Emitted when a response exceeded the client's ``maxResponseSize``."""
    client_id: str
    tool_name: Optional[str]
    original_size: int
    size: int
    max_size: int
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": "ResponseTruncated",
            "client_id": self.client_id,
            "tool_name": self.tool_name,
            "original_size": self.original_size,
            "size": self.size,
            "max_size": self.max_size,
            "timestamp": self.timestamp.isoformat(),
        }
