"""Capability schema for client configuration records.

The schema is declarative: each key maps to a FieldRule describing the
expected type, whether the key is required, its default, numeric bounds,
allowed values, and (for objects) nested rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, FrozenSet, Mapping, Optional, Tuple


@dataclass(frozen=True)
class FieldRule:
    """Validation rule for one configuration key.

    Attributes:
        type: One of "string", "number", "boolean", "object".
        required: Whether absence is an error (full validation only).
        default: Value used when the key is absent.
        min: Inclusive lower bound for numbers.
        max: Inclusive upper bound for numbers.
        enum: Allowed values.
        properties: Nested rules for object fields.
    """
    type: str
    required: bool = False
    default: Any = None
    min: Optional[float] = None
    max: Optional[float] = None
    enum: Optional[Tuple[str, ...]] = None
    properties: Optional[Mapping[str, "FieldRule"]] = None

    VALID_TYPES: ClassVar[FrozenSet[str]] = frozenset({
        "string", "number", "boolean", "object",
    })

    def __post_init__(self) -> None:
        """Validate the rule itself on creation."""
        if self.type not in self.VALID_TYPES:
            raise ValueError(
                f"Invalid field type: '{self.type}'. "
                f"Must be one of: {', '.join(sorted(self.VALID_TYPES))}"
            )
        if self.properties is not None and self.type != "object":
            raise ValueError("Only object fields may declare properties")
        if (
            self.min is not None
            and self.max is not None
            and self.min > self.max
        ):
            raise ValueError(f"min ({self.min}) exceeds max ({self.max})")


TOOL_COMPLEXITIES = ("low", "medium", "high")
OUTPUT_FORMATS = ("minimal", "concise", "structured", "developer")
ESCAPE_STRATEGIES = ("none", "minimal", "standard", "json", "markdown")
ERROR_VERBOSITIES = ("minimal", "standard", "detailed", "debug")
UI_THEMES = ("light", "dark", "auto")


RATE_LIMIT_SCHEMA: Mapping[str, FieldRule] = {
    "requests": FieldRule("number", min=1, max=1000, default=60),
    "window": FieldRule("number", min=1000, max=3600000, default=60000),
    "burstLimit": FieldRule("number", min=1, max=100, default=10),
}

FEATURES_SCHEMA: Mapping[str, FieldRule] = {
    "pagination": FieldRule("boolean", default=True),
    "subscriptions": FieldRule("boolean", default=False),
    "templates": FieldRule("boolean", default=False),
    "analytics": FieldRule("boolean", default=False),
}

UI_SCHEMA: Mapping[str, FieldRule] = {
    "theme": FieldRule("string", enum=UI_THEMES, default="auto"),
    "dateFormat": FieldRule("string", default="ISO"),
    "numberFormat": FieldRule("string", default="en-US"),
    "timezone": FieldRule("string", default="UTC"),
}

CLIENT_CONFIG_SCHEMA: Mapping[str, FieldRule] = {
    # Identity
    "id": FieldRule("string", required=True),
    "name": FieldRule("string", required=True),
    "version": FieldRule("string", default="1.0.0"),
    # Tool exposure
    "maxToolsPerCall": FieldRule("number", min=1, max=50, default=10),
    "maxConcurrentTools": FieldRule("number", min=1, max=10, default=2),
    "concurrentTools": FieldRule("number", min=1, max=10, default=2),
    "toolComplexity": FieldRule("string", enum=TOOL_COMPLEXITIES, default="medium"),
    # Content capabilities
    "supportsBinaryContent": FieldRule("boolean", default=False),
    "supportsImages": FieldRule("boolean", default=False),
    "supportsStreaming": FieldRule("boolean", default=False),
    "supportsMarkdown": FieldRule("boolean", default=True),
    # Response shaping
    "maxResponseSize": FieldRule("number", min=1000, max=1000000, default=50000),
    "outputFormat": FieldRule("string", enum=OUTPUT_FORMATS, default="structured"),
    "escapeHandling": FieldRule("string", enum=ESCAPE_STRATEGIES, default="standard"),
    # Throughput
    "rateLimit": FieldRule("object", properties=RATE_LIMIT_SCHEMA),
    # Errors
    "errorVerbosity": FieldRule("string", enum=ERROR_VERBOSITIES, default="standard"),
    "includeStackTrace": FieldRule("boolean", default=False),
    # Execution
    "timeoutMs": FieldRule("number", min=1000, max=300000, default=30000),
    "retryAttempts": FieldRule("number", min=0, max=5, default=2),
    "cacheResponses": FieldRule("boolean", default=True),
    # Feature flags and presentation
    "features": FieldRule("object", properties=FEATURES_SCHEMA),
    "ui": FieldRule("object", properties=UI_SCHEMA),
}
