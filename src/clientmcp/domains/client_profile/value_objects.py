"""Client Profile Domain Value Objects.

This module contains immutable value objects for the Client Profile bounded
context. Value objects are identified by their attributes rather than by
identity.

Capability records cross the boundary to the configuration layer and to
MCP clients as camelCase dictionaries. ``to_dict()`` and ``from_mapping()``
are the only places where that translation happens.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple

from ..shared.kernel import (
    ErrorVerbosity,
    EscapeStrategy,
    OutputFormat,
    ToolComplexity,
)

logger = logging.getLogger(__name__)

__all__ = [
    "RateLimit",
    "ClientCapabilities",
    "ConnectionMetadata",
]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class RateLimit:
    """Request rate a client tolerates.

    Attributes:
        requests: Requests allowed per window.
        window: Window length in milliseconds.
        burst_limit: Requests allowed in a burst.
    """
    requests: int = 60
    window: int = 60000
    burst_limit: int = 10

    # camelCase key -> (attribute, min, max); same bounds as the config schema
    FIELDS: ClassVar[Dict[str, Tuple[str, int, int]]] = {
        "requests": ("requests", 1, 1000),
        "window": ("window", 1000, 3600000),
        "burstLimit": ("burst_limit", 1, 100),
    }

    def __post_init__(self) -> None:
        """Validate the rate limit on creation."""
        if self.requests < 1:
            raise ValueError(f"requests must be >= 1, got {self.requests}")
        if self.window < 1:
            raise ValueError(f"window must be >= 1, got {self.window}")

    @classmethod
    def from_mapping(
        cls, data: Mapping[str, Any], base: Optional["RateLimit"] = None
    ) -> "RateLimit":
        """Overlay the numeric keys of ``data`` onto ``base``."""
        base = base or cls()
        changes = {}
        for key, (attr, low, high) in cls.FIELDS.items():
            value = data.get(key)
            if _is_number(value) and low <= value <= high:
                changes[attr] = int(value)
            elif value is not None:
                logger.debug("Ignoring invalid rateLimit.%s=%r", key, value)
        return replace(base, **changes)

    def to_dict(self) -> Dict[str, int]:
        """Convert to camelCase dictionary representation."""
        return {
            "requests": self.requests,
            "window": self.window,
            "burstLimit": self.burst_limit,
        }


@dataclass(frozen=True)
class ClientCapabilities:
    """Typed capability record of a client.

    Every field has a documented default so a record built from an empty
    mapping is the schema default. Records are immutable; adaptive changes
    produce a new record.

    Attributes:
        max_tools_per_call: Maximum number of tools exposed (1..50).
        supports_binary_content: Whether binary payloads can be rendered.
        supports_images: Whether image payloads can be rendered.
        supports_streaming: Whether streamed responses are consumed.
        supports_markdown: Whether markdown is rendered.
        max_response_size: Maximum response text length in characters.
        escape_handling: Escape strategy applied to response text.
        output_format: Response shaping mode.
        rate_limit: Tolerated request rate.
        tool_complexity: Highest tool tier the client handles.
        concurrent_tools: Concurrent tool calls the client issues.
        max_concurrent_tools: Concurrency ceiling set by configuration.
        timeout_ms: Per-call execution timeout.
        error_verbosity: Configured error verbosity.
        include_stack_trace: Whether developer errors carry a stack.
        retry_attempts: Retries the client is expected to make.
        cache_responses: Whether responses may be cached.
    """
    max_tools_per_call: int = 10
    supports_binary_content: bool = False
    supports_images: bool = False
    supports_streaming: bool = False
    supports_markdown: bool = True
    max_response_size: int = 50000
    escape_handling: EscapeStrategy = EscapeStrategy.STANDARD
    output_format: OutputFormat = OutputFormat.STRUCTURED
    rate_limit: RateLimit = field(default_factory=RateLimit)
    tool_complexity: ToolComplexity = ToolComplexity.MEDIUM
    concurrent_tools: int = 2
    max_concurrent_tools: int = 2
    timeout_ms: int = 30000
    error_verbosity: ErrorVerbosity = ErrorVerbosity.STANDARD
    include_stack_trace: bool = False
    retry_attempts: int = 2
    cache_responses: bool = True

    MIN_TOOLS: ClassVar[int] = 1
    MAX_TOOLS: ClassVar[int] = 50

    # camelCase key -> (attribute, kind)
    FIELD_MAP: ClassVar[Dict[str, Tuple[str, str]]] = {
        "maxToolsPerCall": ("max_tools_per_call", "int"),
        "supportsBinaryContent": ("supports_binary_content", "bool"),
        "supportsImages": ("supports_images", "bool"),
        "supportsStreaming": ("supports_streaming", "bool"),
        "supportsMarkdown": ("supports_markdown", "bool"),
        "maxResponseSize": ("max_response_size", "int"),
        "escapeHandling": ("escape_handling", "escape"),
        "outputFormat": ("output_format", "format"),
        "rateLimit": ("rate_limit", "rate"),
        "toolComplexity": ("tool_complexity", "complexity"),
        "concurrentTools": ("concurrent_tools", "int"),
        "maxConcurrentTools": ("max_concurrent_tools", "int"),
        "timeoutMs": ("timeout_ms", "int"),
        "errorVerbosity": ("error_verbosity", "verbosity"),
        "includeStackTrace": ("include_stack_trace", "bool"),
        "retryAttempts": ("retry_attempts", "int"),
        "cacheResponses": ("cache_responses", "bool"),
    }

    # Inclusive bounds of numeric capabilities, matching the config schema
    RANGES: ClassVar[Dict[str, Tuple[int, int]]] = {
        "max_tools_per_call": (MIN_TOOLS, MAX_TOOLS),
        "max_response_size": (1000, 1000000),
        "concurrent_tools": (1, 10),
        "max_concurrent_tools": (1, 10),
        "timeout_ms": (1000, 300000),
        "retry_attempts": (0, 5),
    }

    _ENUMS: ClassVar[Dict[str, type]] = {
        "escape": EscapeStrategy,
        "format": OutputFormat,
        "verbosity": ErrorVerbosity,
    }

    def __post_init__(self) -> None:
        """Validate capability invariants on creation."""
        if not self.MIN_TOOLS <= self.max_tools_per_call <= self.MAX_TOOLS:
            raise ValueError(
                f"maxToolsPerCall must be in [{self.MIN_TOOLS}, "
                f"{self.MAX_TOOLS}], got {self.max_tools_per_call}"
            )

    @classmethod
    def from_mapping(
        cls,
        data: Optional[Mapping[str, Any]],
        base: Optional["ClientCapabilities"] = None,
    ) -> "ClientCapabilities":
        """Overlay a camelCase capability mapping onto ``base``.

        Unknown keys, values of the wrong type and numbers outside the
        schema range are ignored, so a partially valid mapping (such as
        the capabilities a client declares about itself) still yields a
        valid record.

        Args:
            data: camelCase capability mapping (may be None).
            base: Record to overlay onto. Defaults to schema defaults.

        Returns:
            A new ClientCapabilities.
        """
        base = base or cls()
        if not data:
            return base
        changes: Dict[str, Any] = {}
        for key, value in data.items():
            spec = cls.FIELD_MAP.get(key)
            if spec is None:
                continue
            attr, kind = spec
            converted = cls._convert(kind, value, getattr(base, attr))
            if converted is None:
                logger.debug("Ignoring invalid capability %s=%r", key, value)
                continue
            bounds = cls.RANGES.get(attr)
            if bounds is not None and not bounds[0] <= converted <= bounds[1]:
                logger.debug("Ignoring out-of-range capability %s=%r", key, value)
                continue
            changes[attr] = converted
        return replace(base, **changes)

    @classmethod
    def _convert(cls, kind: str, value: Any, current: Any) -> Any:
        if kind == "bool":
            return value if isinstance(value, bool) else None
        if kind == "int":
            return int(value) if _is_number(value) else None
        if kind == "complexity":
            if isinstance(value, ToolComplexity):
                return value
            if isinstance(value, str) and value in {c.value for c in ToolComplexity}:
                return ToolComplexity(value)
            return None
        if kind == "rate":
            if isinstance(value, RateLimit):
                return value
            if isinstance(value, Mapping):
                return RateLimit.from_mapping(value, base=current)
            return None
        enum_cls = cls._ENUMS[kind]
        if isinstance(value, enum_cls):
            return value
        try:
            return enum_cls(value)
        except ValueError:
            return None

    @property
    def effective_concurrency(self) -> int:
        """Concurrent tool executions allowed for this client."""
        return max(1, min(self.concurrent_tools, self.max_concurrent_tools))

    def get(self, key: str, fallback: Any = None) -> Any:
        """Look up a capability by camelCase key as a plain value."""
        spec = self.FIELD_MAP.get(key)
        if spec is None:
            return fallback
        value = getattr(self, spec[0])
        if isinstance(value, RateLimit):
            return value.to_dict()
        return getattr(value, "value", value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to camelCase dictionary representation."""
        return {key: self.get(key) for key in self.FIELD_MAP}


@dataclass(frozen=True)
class ConnectionMetadata:
    """Weak, heterogeneous signals describing the connecting client.

    Any field may be absent. Header names are stored lowercased.

    Attributes:
        user_agent: Explicit user agent string.
        client_name: Explicit client name (MCP ``clientInfo.name``).
        headers: Transport headers.
        capabilities: Capabilities declared by the client (camelCase).
        transport: Transport name (stdio, http, sse).
        environment: Selected environment variables.
    """
    user_agent: Optional[str] = None
    client_name: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    capabilities: Mapping[str, Any] = field(default_factory=dict)
    transport: Optional[str] = None
    environment: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Lowercase header names so lookups are case-insensitive."""
        headers = {
            str(k).lower(): v for k, v in (self.headers or {}).items()
        }
        object.__setattr__(self, "headers", headers)
        object.__setattr__(self, "capabilities", dict(self.capabilities or {}))
        object.__setattr__(self, "environment", dict(self.environment or {}))

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ConnectionMetadata":
        """Build from a camelCase metadata record, ignoring unknown keys."""
        data = data or {}

        def _mapping(key: str) -> Mapping[str, Any]:
            value = data.get(key)
            return value if isinstance(value, Mapping) else {}

        def _text(key: str) -> Optional[str]:
            value = data.get(key)
            return value if isinstance(value, str) else None

        return cls(
            user_agent=_text("userAgent"),
            client_name=_text("clientName"),
            headers=_mapping("headers"),
            capabilities=_mapping("capabilities"),
            transport=_text("transport"),
            environment=_mapping("environment"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to camelCase dictionary representation."""
        return {
            "userAgent": self.user_agent,
            "clientName": self.client_name,
            "headers": dict(self.headers),
            "capabilities": dict(self.capabilities),
            "transport": self.transport,
            "environment": dict(self.environment),
        }
