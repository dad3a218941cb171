"""Tool Registry Domain Value Objects."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from ..shared.kernel import ToolCategory, ToolComplexity

__all__ = [
    "ToolMetadata",
    "ScoredTool",
    "ToolRecommendation",
]


@dataclass(frozen=True)
class ToolMetadata:
    """Compatibility-relevant description of a registered tool.

    Attributes:
        name: Tool name.
        description: Short description.
        category: Functional category.
        complexity: Tier a client needs to run the tool.
        requires_binary_content: Tool returns binary content.
        requires_images: Tool returns images.
        requires_streaming: Tool streams its output.
        estimated_duration_ms: Typical execution time.
        rate_limit_calls: Calls per window the tool expects to make.
        rate_limit_window_ms: Window for ``rate_limit_calls``.
        dependencies: Names of tools this tool relies on.
        min_client_version: Oldest supported client version.
        tags: Free-form tags used for recommendations.
    """
    name: str
    description: str = ""
    category: ToolCategory = ToolCategory.FINANCIAL
    complexity: ToolComplexity = ToolComplexity.MEDIUM
    requires_binary_content: bool = False
    requires_images: bool = False
    requires_streaming: bool = False
    estimated_duration_ms: int = 1000
    rate_limit_calls: int = 60
    rate_limit_window_ms: int = 60000
    dependencies: Tuple[str, ...] = ()
    min_client_version: str = "1.0.0"
    tags: FrozenSet[str] = field(default_factory=frozenset)

    # Structured tag prefixes understood by from_tags()
    COMPLEXITY_PREFIX: ClassVar[str] = "complexity:"
    CATEGORY_PREFIX: ClassVar[str] = "category:"
    REQUIRES_PREFIX: ClassVar[str] = "requires:"
    RATE_PREFIX: ClassVar[str] = "rate:"

    def __post_init__(self) -> None:
        """Validate metadata on creation."""
        if not self.name:
            raise ValueError("ToolMetadata name must be non-empty")
        if self.rate_limit_calls < 1:
            raise ValueError(
                f"rate_limit_calls must be >= 1, got {self.rate_limit_calls}"
            )

    @property
    def required_features(self) -> Tuple[str, ...]:
        """camelCase capability names this tool requires."""
        features = []
        if self.requires_binary_content:
            features.append("supportsBinaryContent")
        if self.requires_images:
            features.append("supportsImages")
        if self.requires_streaming:
            features.append("supportsStreaming")
        return tuple(features)

    @classmethod
    def from_tags(
        cls,
        name: str,
        description: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> "ToolMetadata":
        """Build metadata from fastmcp tool tags.

        Structured tags set fields (``complexity:high``, ``category:analysis``,
        ``requires:images``, ``requires:binary``, ``requires:streaming``,
        ``rate:120``); all other tags are kept as plain tags.

        Args:
            name: Tool name.
            description: Tool description.
            tags: Tag strings.

        Returns:
            A ToolMetadata instance.
        """
        values: Dict[str, Any] = {}
        plain = set()
        for raw in tags or ():
            tag = str(raw).strip()
            lowered = tag.lower()
            if lowered.startswith(cls.COMPLEXITY_PREFIX):
                values["complexity"] = ToolComplexity.parse(
                    lowered[len(cls.COMPLEXITY_PREFIX):]
                )
            elif lowered.startswith(cls.CATEGORY_PREFIX):
                try:
                    values["category"] = ToolCategory(
                        lowered[len(cls.CATEGORY_PREFIX):]
                    )
                except ValueError:
                    plain.add(tag)
            elif lowered.startswith(cls.REQUIRES_PREFIX):
                feature = lowered[len(cls.REQUIRES_PREFIX):]
                if feature in ("binary", "binarycontent"):
                    values["requires_binary_content"] = True
                elif feature in ("images", "image"):
                    values["requires_images"] = True
                elif feature == "streaming":
                    values["requires_streaming"] = True
                else:
                    plain.add(tag)
            elif lowered.startswith(cls.RATE_PREFIX):
                suffix = lowered[len(cls.RATE_PREFIX):]
                if suffix.isdigit() and int(suffix) >= 1:
                    values["rate_limit_calls"] = int(suffix)
                else:
                    plain.add(tag)
            else:
                plain.add(tag)
        return cls(
            name=name,
            description=description or "",
            tags=frozenset(plain),
            **values,
        )

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any]) -> "ToolMetadata":
        """Build metadata from a camelCase mapping.

        Recognized keys: description, category, complexity,
        requiresBinaryContent, requiresImages, requiresStreaming,
        estimatedDuration, rateLimit {calls, window}, dependencies,
        minClientVersion, tags.
        """
        rate = data.get("rateLimit") or {}
        category = data.get("category", ToolCategory.FINANCIAL.value)
        return cls(
            name=name,
            description=str(data.get("description", "")),
            category=ToolCategory(getattr(category, "value", category)),
            complexity=ToolComplexity.parse(data.get("complexity")),
            requires_binary_content=bool(data.get("requiresBinaryContent", False)),
            requires_images=bool(data.get("requiresImages", False)),
            requires_streaming=bool(data.get("requiresStreaming", False)),
            estimated_duration_ms=int(data.get("estimatedDuration", 1000)),
            rate_limit_calls=int(rate.get("calls", 60)),
            rate_limit_window_ms=int(rate.get("window", 60000)),
            dependencies=tuple(data.get("dependencies", ())),
            min_client_version=str(data.get("minClientVersion", "1.0.0")),
            tags=frozenset(data.get("tags", ())),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to camelCase dictionary representation."""
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "complexity": self.complexity.value,
            "requiresBinaryContent": self.requires_binary_content,
            "requiresImages": self.requires_images,
            "requiresStreaming": self.requires_streaming,
            "estimatedDuration": self.estimated_duration_ms,
            "rateLimit": {
                "calls": self.rate_limit_calls,
                "window": self.rate_limit_window_ms,
            },
            "dependencies": list(self.dependencies),
            "minClientVersion": self.min_client_version,
            "tags": sorted(self.tags),
        }


@dataclass(frozen=True)
class ScoredTool:
    """A tool with its compatibility score for one client.

    Attributes:
        name: Tool name.
        score: Compatibility score in [0, 1].
        calls: Usage count at scoring time.
    """
    name: str
    score: float
    calls: int = 0

    USAGE_WEIGHT: ClassVar[float] = 0.001

    @property
    def rank_key(self) -> float:
        """Sort key: score with usage as a tiebreaker."""
        return self.score + self.calls * self.USAGE_WEIGHT


@dataclass(frozen=True)
class ToolRecommendation:
    """A tool recommended for an operation/entity pair."""
    name: str
    relevance: float
    reason: str
    definition: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "relevance": round(self.relevance, 4),
            "reason": self.reason,
            "definition": dict(self.definition),
        }
