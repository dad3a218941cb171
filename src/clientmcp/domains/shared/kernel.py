"""Shared Kernel - Core domain types shared across bounded contexts.

These types are intentionally minimal and shared between:
- Client Profile Context (capability records, detection results)
- Client Config Context (schema enums, adaptive rules)
- Tool Registry Context (complexity gating and scoring)
- Adaptation Context (output modes, escaping, error verbosity)

The shared kernel is kept minimal to reduce coupling.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional

from pydantic import BeforeValidator


class ToolComplexity(Enum):
    """Ordinal tool complexity tier.

    Ordering is strictly ``LOW < MEDIUM < HIGH``. A client with tier T
    can run any tool whose tier is <= T.
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        """Numeric rank used for ordinal comparisons (1..3)."""
        return _COMPLEXITY_RANK[self]

    @classmethod
    def parse(
        cls, value: Any, default: Optional["ToolComplexity"] = None
    ) -> "ToolComplexity":
        """Parse a tier from a string or enum, falling back to ``default``.

        Args:
            value: Tier name (case-insensitive) or ToolComplexity.
            default: Returned for unknown values. Defaults to MEDIUM.

        Returns:
            The matching ToolComplexity.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return default if default is not None else cls.MEDIUM

    def supports(self, other: "ToolComplexity") -> bool:
        """Whether a client at this tier can run a tool of tier ``other``."""
        return other.rank <= self.rank

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ToolComplexity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, ToolComplexity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, ToolComplexity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, ToolComplexity):
            return NotImplemented
        return self.rank >= other.rank


_COMPLEXITY_RANK: Dict[ToolComplexity, int] = {
    ToolComplexity.LOW: 1,
    ToolComplexity.MEDIUM: 2,
    ToolComplexity.HIGH: 3,
}


class OutputFormat(Enum):
    """Response shaping mode selected per client.

    MINIMAL:    Essential fields only.
    CONCISE:    One-line summaries, capped item count.
    STRUCTURED: Typed envelope around the payload.
    DEVELOPER:  Header with tool/client/time plus indented JSON.
    """
    MINIMAL = "minimal"
    CONCISE = "concise"
    STRUCTURED = "structured"
    DEVELOPER = "developer"


class EscapeStrategy(Enum):
    """Text-encoding policy applied to outgoing response text."""
    NONE = "none"
    MINIMAL = "minimal"
    STANDARD = "standard"
    JSON = "json"
    MARKDOWN = "markdown"


class ErrorVerbosity(Enum):
    """Configured error verbosity (schema level)."""
    MINIMAL = "minimal"
    STANDARD = "standard"
    DETAILED = "detailed"
    DEBUG = "debug"


class ErrorTier(Enum):
    """Verbosity tier of an error payload sent to the client.

    Stack traces are only ever included at the DEVELOPER tier.
    """
    MINIMAL = "minimal"
    DETAILED = "detailed"
    DEVELOPER = "developer"

    @classmethod
    def resolve(cls, output_format: str, error_verbosity: str) -> "ErrorTier":
        """Choose the tier from a resolved client config.

        Args:
            output_format: The client's ``outputFormat`` value.
            error_verbosity: The client's ``errorVerbosity`` value.

        Returns:
            DEVELOPER for developer output or debug verbosity, MINIMAL for
            minimal output or minimal verbosity, DETAILED otherwise.
        """
        if output_format == OutputFormat.DEVELOPER.value or (
            error_verbosity == ErrorVerbosity.DEBUG.value
        ):
            return cls.DEVELOPER
        if output_format == OutputFormat.MINIMAL.value or (
            error_verbosity == ErrorVerbosity.MINIMAL.value
        ):
            return cls.MINIMAL
        return cls.DETAILED


class DetectionMethod(Enum):
    """How a client context was resolved.

    The first six members are metadata sources, listed in the priority
    order the detector evaluates them.
    """
    USER_AGENT = "user-agent"
    CLIENT_NAME = "client-name"
    HEADER_USER_AGENT = "header-user-agent"
    HEADER_CLIENT_NAME = "header-client-name"
    TERM_PROGRAM = "term-program"
    EDITOR_ENV = "editor-env"
    CAPABILITIES = "capabilities"
    FALLBACK = "fallback"


class ToolCategory(Enum):
    """Functional category of a registered tool."""
    FINANCIAL = "financial"
    ADMINISTRATIVE = "administrative"
    DOCUMENTATION = "documentation"
    ANALYSIS = "analysis"
    SYSTEM = "system"


# ============================================================
# Type-Constrained Tool Parameters
# ============================================================
#
# Literal type aliases with BeforeValidator for case-insensitive
# normalization.  Produces flat {"enum": [...]} in JSON Schema
# while accepting wrong-case input at runtime.
# ============================================================


def _normalize_str(v: Any) -> Any:
    """Normalize string input: strip whitespace, lowercase."""
    return v.strip().lower() if isinstance(v, str) else v


TemplateName = Annotated[
    Literal["minimal", "standard", "advanced", "mobile", "enterprise"],
    BeforeValidator(_normalize_str),
]

ComplexityLiteral = Annotated[
    Literal["low", "medium", "high"],
    BeforeValidator(_normalize_str),
]

StatsScope = Annotated[
    Literal["all", "config", "tools", "behavior", "responses"],
    BeforeValidator(_normalize_str),
]
