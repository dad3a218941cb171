"""Tool Registry Domain Events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class ToolRegistered:
    """Emitted when a tool is added to the registry."""
    tool_name: str
    category: str
    complexity: str
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "event_type": "ToolRegistered",
            "tool_name": self.tool_name,
            "category": self.category,
            "complexity": self.complexity,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class ToolExecuted:
    """Emitted after every tool attempt, successful or not.

    Attributes:
        tool_name: Executed tool.
        client_id: Requesting client profile id.
        success: Whether the handler returned normally.
        duration_ms: Wall-clock duration of the attempt.
        error: Error message for failed attempts.
        timestamp: When the attempt finished.
    """
    tool_name: str
    client_id: str
    success: bool
    duration_ms: float
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "event_type": "ToolExecuted",
            "tool_name": self.tool_name,
            "client_id": self.client_id,
            "success": self.success,
            "duration_ms": round(self.duration_ms, 3),
            "error": self.error,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class ToolRejected:
    """Emitted when a client requests a tool filtered out for it."""
    tool_name: str
    client_id: str
    reasons: list
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "event_type": "ToolRejected",
            "tool_name": self.tool_name,
            "client_id": self.client_id,
            "reasons": list(self.reasons),
            "timestamp": self.timestamp.isoformat(),
        }
