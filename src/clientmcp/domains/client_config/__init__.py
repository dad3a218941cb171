"""Client Config Bounded Context.

Maintains a layered, validated capability configuration per client:

    base (registered or profile-derived) -> override -> adaptive

The domain follows DDD patterns with:
- Value Objects: FieldRule, ValidationResult, BehaviorReport, AdaptiveSettings
- Aggregates: ConfigTemplates (built-in starter overrides)
- Domain Events: ClientRegistered, OverrideApplied, AdaptiveSettingsUpdated,
  ConfigValidationFailed
- Services: CapabilityValidator, ClientConfigManager
- Repository: ClientConfigRepository protocol with an in-memory store

Example usage:
    from clientmcp.domains.client_config import ClientConfigManager

    manager = ClientConfigManager()
    manager.apply_template("cursor", "mobile")
    config = manager.get_config("cursor")
    assert config["maxResponseSize"] == 25000
"""

# Schema
from .schema import (
    CLIENT_CONFIG_SCHEMA,
    FieldRule,
)

# Value Objects
from .value_objects import (
    AdaptiveSettings,
    BehaviorReport,
)
from .validator import (
    CapabilityValidator,
    ValidationResult,
)

# Aggregates
from .aggregates import (
    ConfigTemplates,
)

# Domain Events
from .events import (
    AdaptiveSettingsUpdated,
    ClientRegistered,
    ConfigValidationFailed,
    OverrideApplied,
)

# Services
from .services import (
    ClientConfigManager,
    deep_merge,
)

# Repository
from .repository import (
    ClientConfigRepository,
    InMemoryClientConfigRepository,
)

__all__ = [
    # Schema
    "CLIENT_CONFIG_SCHEMA",
    "FieldRule",
    # Value Objects
    "AdaptiveSettings",
    "BehaviorReport",
    "CapabilityValidator",
    "ValidationResult",
    # Aggregates
    "ConfigTemplates",
    # Domain Events
    "AdaptiveSettingsUpdated",
    "ClientRegistered",
    "ConfigValidationFailed",
    "OverrideApplied",
    # Services
    "ClientConfigManager",
    "deep_merge",
    # Repository
    "ClientConfigRepository",
    "InMemoryClientConfigRepository",
]
