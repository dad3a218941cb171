"""Adaptation Value Objects."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, ClassVar, Dict, FrozenSet, Mapping

from ..shared.kernel import ToolComplexity

TRUNCATION_NOTICE = "\n\n[Response truncated - see full data with higher limits]"


@dataclass(frozen=True)
class PaginationPolicy:
    """Per-tier ceilings for pagination-style request parameters."""
    ceilings: Mapping[ToolComplexity, int]
    fallback: int = 50

    PAGINATION_KEYS: ClassVar[FrozenSet[str]] = frozenset({
        "limit", "pageSize", "page_size", "maxResults", "max_results",
    })
    ESSENTIAL_KEYS: ClassVar[FrozenSet[str]] = frozenset({
        "id", "name", "type", "limit", "offset",
    })

    @classmethod
    def default(cls) -> PaginationPolicy:
        return cls(ceilings={
            ToolComplexity.LOW: 10,
            ToolComplexity.MEDIUM: 25,
            ToolComplexity.HIGH: 100,
        })

    def ceiling_for(self, tier: ToolComplexity) -> int:
        return self.ceilings.get(tier, self.fallback)


@dataclass(frozen=True)
class FormattedResponse:
    """Client-shaped response text.

    Attributes:
        text: Escaped, size-bounded text sent to the client.
        is_error: Whether the text describes an error.
        truncated: Whether the size limit cut the text.
        original_size: Text length before the size limit.
        size: Final text length.
    """
    text: str
    is_error: bool = False
    truncated: bool = False
    original_size: int = 0
    size: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "isError": self.is_error,
            "truncated": self.truncated,
            "originalSize": self.original_size,
            "size": self.size,
        }


@dataclass(frozen=True)
class ResponseSizeStats:
    """Running size statistics of the responses sent to one client."""
    count: int = 0
    total: int = 0
    max: int = 0

    @property
    def average(self) -> float:
        return self.total / self.count if self.count else 0.0

    def record(self, size: int) -> ResponseSizeStats:
        return replace(
            self,
            count=self.count + 1,
            total=self.total + size,
            max=max(self.max, size),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "totalSize": self.total,
            "maxSize": self.max,
            "avgSize": round(self.average, 2),
        }
