"""Client Profile Domain Entities.

ClientContext has identity (its session id) and a lifecycle: it is created
once when a session starts and its capability record is replaced whenever
the resolved configuration changes.
"""

from __future__ import annotations

import secrets
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from ..shared.kernel import DetectionMethod, ToolComplexity
from .aggregates import ClientProfile
from .value_objects import ClientCapabilities


def new_session_id(profile_id: str) -> str:
    """Build a session id of the form ``{profileId}-{epochMillis}-{random}``."""
    return f"{profile_id}-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


@dataclass
class ClientContext:
    """Session-scoped detection result plus effective capabilities.

    The capability record itself is immutable; ``apply_capabilities``
    swaps the whole record under a lock so readers always see a
    consistent snapshot.

    Attributes:
        profile: The matched ClientProfile.
        detection_method: How the profile was resolved.
        capabilities: Effective capability record.
        session_id: Unique session identifier.
        created_at: When the session context was created.
        metadata: The raw connection metadata used for detection.
    """
    profile: ClientProfile
    detection_method: DetectionMethod
    capabilities: ClientCapabilities
    session_id: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        if not self.session_id:
            self.session_id = new_session_id(self.profile.id)

    @property
    def client_id(self) -> str:
        """Profile id used as the configuration key for this client."""
        return self.profile.id

    @property
    def client_name(self) -> str:
        return self.profile.name

    def supports(self, capability: str) -> bool:
        """Whether a boolean capability is enabled.

        Args:
            capability: camelCase capability name (e.g. "supportsImages").

        Returns:
            True only when the capability exists and is literally True.
        """
        return self.capabilities.get(capability) is True

    def get_capability(self, capability: str, fallback: Any = None) -> Any:
        """Return a capability value by camelCase name, or ``fallback``."""
        value = self.capabilities.get(capability)
        return fallback if value is None else value

    def supports_tool_complexity(self, complexity: Any) -> bool:
        """Whether this client can run a tool of the given tier."""
        tier = ToolComplexity.parse(complexity, default=ToolComplexity.LOW)
        return self.capabilities.tool_complexity.supports(tier)

    def apply_capabilities(
        self, capabilities: ClientCapabilities
    ) -> ClientCapabilities:
        """Atomically replace the capability record.

        Returns:
            The previous capability record.
        """
        with self._lock:
            previous = self.capabilities
            self.capabilities = capabilities
        return previous

    def apply_config(
        self,
        config: Optional[Mapping[str, Any]],
        patch: Optional[Mapping[str, Any]] = None,
    ) -> ClientCapabilities:
        """Replace capabilities with those of a resolved config record.

        Layering is profile defaults, then the resolved config, then the
        capabilities the client declared at connect time, then ``patch``
        (the explicit override and adaptive layers), so declared values
        beat profile-derived defaults but never beat explicit or adaptive
        settings.

        Args:
            config: Validated config record from the config manager.
            patch: Merged override and adaptive layers, if any.

        Returns:
            The new capability record.
        """
        updated = ClientCapabilities.from_mapping(
            config, base=self.profile.capabilities
        )
        declared = self.metadata.get("capabilities")
        if isinstance(declared, Mapping):
            updated = ClientCapabilities.from_mapping(declared, base=updated)
        if patch:
            updated = ClientCapabilities.from_mapping(patch, base=updated)
        self.apply_capabilities(updated)
        return updated

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "sessionId": self.session_id,
            "clientId": self.client_id,
            "clientName": self.client_name,
            "detectionMethod": self.detection_method.value,
            "capabilities": self.capabilities.to_dict(),
            "createdAt": self.created_at.isoformat(),
        }
