"""Client Config Domain Events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List


@dataclass
class ClientRegistered:
    """Emitted when a custom client config is registered as a base layer.

    Attributes:
        client_id: The registered client id.
        source: Where the record came from ("api", "import", "file").
        timestamp: When the registration happened.
    """
    client_id: str
    source: str = "api"
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "event_type": "ClientRegistered",
            "client_id": self.client_id,
            "source": self.source,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class OverrideApplied:
    """Emitted when an override layer is replaced or cleared.

    Attributes:
        client_id: Target client id.
        keys: Top-level keys in the new override (empty when cleared).
        template: Template name when the override came from a template.
        timestamp: When the override was applied.
    """
    client_id: str
    keys: List[str]
    template: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "event_type": "OverrideApplied",
            "client_id": self.client_id,
            "keys": list(self.keys),
            "template": self.template,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class AdaptiveSettingsUpdated:
    """Emitted when the feedback loop replaces a client's adaptive layer.

    Attributes:
        client_id: Target client id.
        revision: Revision of the new adaptive layer.
        changes: Keys whose value changed, mapped to the new value.
        behavior: The behavior report that drove the update.
        timestamp: When the update happened.
    """
    client_id: str
    revision: int
    changes: Dict[str, Any]
    behavior: Dict[str, float]
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "event_type": "AdaptiveSettingsUpdated",
            "client_id": self.client_id,
            "revision": self.revision,
            "changes": dict(self.changes),
            "behavior": dict(self.behavior),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class ConfigValidationFailed:
    """Emitted when validation reports errors.

    On write operations the write was rejected; on reads the invalid
    fields were dropped from the resolved config.

    Attributes:
        client_id: Client the record belongs to.
        operation: "get_config", "set_override", "register_client", ...
        errors: Validation error messages.
        timestamp: When validation failed.
    """
    client_id: str
    operation: str
    errors: List[str]
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "event_type": "ConfigValidationFailed",
            "client_id": self.client_id,
            "operation": self.operation,
            "errors": list(self.errors),
            "timestamp": self.timestamp.isoformat(),
        }
