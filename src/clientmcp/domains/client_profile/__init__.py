"""Client Profile Bounded Context.

Recognizes which MCP client is connected and holds the session-scoped
ClientContext with the client's effective capabilities.

The domain follows DDD patterns with:
- Value Objects: ClientCapabilities, RateLimit, ConnectionMetadata
- Entities: ClientContext (identified by session id)
- Aggregates: ClientProfile and the ClientProfiles catalog
- Domain Events: ClientDetected, CapabilitiesRefreshed
- Services: ClientDetector

Example usage:
    from clientmcp.domains.client_profile import ClientDetector

    detector = ClientDetector()
    context = detector.detect({"userAgent": "Claude Desktop/1.2.0 (macOS)"})
    assert context.client_id == "claude-desktop"
    assert context.supports("supportsImages")
"""

# Value Objects
from .value_objects import (
    ClientCapabilities,
    ConnectionMetadata,
    RateLimit,
)

# Entities
from .entities import (
    ClientContext,
    new_session_id,
)

# Aggregates
from .aggregates import (
    ClientProfile,
    ClientProfiles,
)

# Domain Events
from .events import (
    CapabilitiesRefreshed,
    ClientDetected,
)

# Services
from .services import (
    CapabilitySignature,
    ClientDetector,
    DEFAULT_SIGNATURES,
    extract_connection_info,
)

__all__ = [
    # Value Objects
    "ClientCapabilities",
    "ConnectionMetadata",
    "RateLimit",
    # Entities
    "ClientContext",
    "new_session_id",
    # Aggregates
    "ClientProfile",
    "ClientProfiles",
    # Domain Events
    "CapabilitiesRefreshed",
    "ClientDetected",
    # Services
    "CapabilitySignature",
    "ClientDetector",
    "DEFAULT_SIGNATURES",
    "extract_connection_info",
]
