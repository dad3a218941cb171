"""Client Profile Domain Events.

Domain events represent something that happened in the domain that
observers (logging, stats, tests) care about.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class ClientDetected:
    """Emitted when a session's client has been resolved.

    Attributes:
        session_id: The new session id.
        client_id: Matched profile id.
        client_name: Matched profile display name.
        detection_method: Source or strategy that produced the match.
        matched_text: The metadata value that matched, if any.
        timestamp: When detection completed.
    """
    session_id: str
    client_id: str
    client_name: str
    detection_method: str
    matched_text: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "event_type": "ClientDetected",
            "session_id": self.session_id,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "detection_method": self.detection_method,
            "matched_text": self.matched_text,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class CapabilitiesRefreshed:
    """Emitted when a session's effective capabilities are replaced.

    Attributes:
        session_id: The session whose context changed.
        client_id: Profile id of the client.
        changed: camelCase keys whose values changed.
        reason: What triggered the refresh (e.g. "adaptive", "override").
        timestamp: When the refresh happened.
    """
    session_id: str
    client_id: str
    changed: Dict[str, Any]
    reason: str
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "event_type": "CapabilitiesRefreshed",
            "session_id": self.session_id,
            "client_id": self.client_id,
            "changed": dict(self.changed),
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
        }
