"""Client Profile Domain Aggregates.

This module contains the aggregate roots for the Client Profile bounded
context: the immutable ClientProfile and the ClientProfiles catalog that
fixes the detection priority order.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Optional, Tuple

from ..shared.kernel import EscapeStrategy, OutputFormat, ToolComplexity
from .value_objects import ClientCapabilities, RateLimit


@dataclass(frozen=True)
class ClientProfile:
    """Aggregate root: a recognized client type.

    Invariants:
    - id and name are non-empty.
    - patterns is ordered; the first matching pattern wins.
    - capabilities is a complete ClientCapabilities record.

    Attributes:
        id: Stable profile identifier (e.g. "claude-desktop").
        name: Display name.
        patterns: Case-insensitive detection regular expressions.
        capabilities: Default capability set for this client type.
    """
    id: str
    name: str
    patterns: Tuple[str, ...]
    capabilities: ClientCapabilities
    _compiled: Tuple[re.Pattern, ...] = field(
        default=(), init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        """Validate invariants and compile the patterns."""
        if not self.id:
            raise ValueError("ClientProfile id must be non-empty")
        if not self.name:
            raise ValueError("ClientProfile name must be non-empty")
        compiled = tuple(re.compile(p, re.IGNORECASE) for p in self.patterns)
        object.__setattr__(self, "_compiled", compiled)

    def matches(self, text: str) -> bool:
        """Whether any detection pattern matches ``text``."""
        return any(p.search(text) for p in self._compiled)

    def to_dict(self) -> Dict[str, object]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "patterns": list(self.patterns),
            "capabilities": self.capabilities.to_dict(),
        }


def _profile(
    id: str,
    name: str,
    patterns: Tuple[str, ...],
    *,
    max_tools: int,
    binary: bool,
    images: bool,
    streaming: bool,
    max_response: int,
    escape: EscapeStrategy,
    output: OutputFormat,
    rate_requests: int,
    complexity: ToolComplexity,
    concurrent: int,
) -> ClientProfile:
    return ClientProfile(
        id=id,
        name=name,
        patterns=patterns,
        capabilities=ClientCapabilities(
            max_tools_per_call=max_tools,
            supports_binary_content=binary,
            supports_images=images,
            supports_streaming=streaming,
            max_response_size=max_response,
            escape_handling=escape,
            output_format=output,
            rate_limit=RateLimit(requests=rate_requests, window=60000),
            tool_complexity=complexity,
            concurrent_tools=concurrent,
            max_concurrent_tools=concurrent,
        ),
    )


class ClientProfiles:
    """Process-wide, read-only catalog of known client profiles.

    Detection evaluates profiles in PROFILE_ORDER. The order matters where
    patterns overlap, e.g. "Codeium Windsurf" must resolve to windsurf
    rather than codeium, so windsurf precedes codeium.
    """

    CLAUDE_DESKTOP: ClassVar[ClientProfile] = _profile(
        "claude-desktop", "Claude Desktop",
        (r"Claude Desktop", r"anthropic.*desktop", r"claude.*app"),
        max_tools=10, binary=True, images=True, streaming=False,
        max_response=100000, escape=EscapeStrategy.JSON,
        output=OutputFormat.STRUCTURED, rate_requests=60,
        complexity=ToolComplexity.HIGH, concurrent=3,
    )
    CURSOR: ClassVar[ClientProfile] = _profile(
        "cursor", "Cursor",
        (r"Cursor", r"cursor.*editor", r"anysphere"),
        max_tools=5, binary=False, images=False, streaming=True,
        max_response=50000, escape=EscapeStrategy.MINIMAL,
        output=OutputFormat.CONCISE, rate_requests=30,
        complexity=ToolComplexity.MEDIUM, concurrent=2,
    )
    VSCODE: ClassVar[ClientProfile] = _profile(
        "vscode", "Visual Studio Code",
        (r"Visual Studio Code", r"vscode", r"code.*oss", r"monaco.*editor"),
        max_tools=8, binary=True, images=False, streaming=True,
        max_response=75000, escape=EscapeStrategy.STANDARD,
        output=OutputFormat.DEVELOPER, rate_requests=45,
        complexity=ToolComplexity.HIGH, concurrent=2,
    )
    WINDSURF: ClassVar[ClientProfile] = _profile(
        "windsurf", "Windsurf",
        (r"Windsurf", r"codeium.*windsurf"),
        max_tools=6, binary=False, images=False, streaming=True,
        max_response=60000, escape=EscapeStrategy.STANDARD,
        output=OutputFormat.CONCISE, rate_requests=40,
        complexity=ToolComplexity.MEDIUM, concurrent=2,
    )
    CONTINUE: ClassVar[ClientProfile] = _profile(
        "continue", "Continue",
        (r"Continue", r"continue.*dev"),
        max_tools=4, binary=False, images=False, streaming=True,
        max_response=40000, escape=EscapeStrategy.MINIMAL,
        output=OutputFormat.MINIMAL, rate_requests=25,
        complexity=ToolComplexity.LOW, concurrent=1,
    )
    CODEIUM: ClassVar[ClientProfile] = _profile(
        "codeium", "Codeium",
        (r"Codeium", r"codeium.*chat"),
        max_tools=5, binary=False, images=False, streaming=True,
        max_response=45000, escape=EscapeStrategy.STANDARD,
        output=OutputFormat.CONCISE, rate_requests=35,
        complexity=ToolComplexity.MEDIUM, concurrent=2,
    )
    ZEROCODE: ClassVar[ClientProfile] = _profile(
        "zerocode", "ZeroCode",
        (r"ZeroCode", r"zero.*code"),
        max_tools=3, binary=False, images=False, streaming=False,
        max_response=30000, escape=EscapeStrategy.MINIMAL,
        output=OutputFormat.MINIMAL, rate_requests=20,
        complexity=ToolComplexity.LOW, concurrent=1,
    )
    GENERIC: ClassVar[ClientProfile] = _profile(
        "generic", "Generic MCP Client",
        (r"mcp", r"model.*context.*protocol"),
        max_tools=5, binary=False, images=False, streaming=False,
        max_response=50000, escape=EscapeStrategy.STANDARD,
        output=OutputFormat.STRUCTURED, rate_requests=30,
        complexity=ToolComplexity.MEDIUM, concurrent=1,
    )

    PROFILE_ORDER: ClassVar[Tuple[ClientProfile, ...]] = (
        CLAUDE_DESKTOP,
        CURSOR,
        VSCODE,
        WINDSURF,
        CONTINUE,
        CODEIUM,
        ZEROCODE,
        GENERIC,
    )

    @classmethod
    def ordered(cls) -> Tuple[ClientProfile, ...]:
        """All profiles in detection priority order."""
        return cls.PROFILE_ORDER

    @classmethod
    def ids(cls) -> List[str]:
        """Profile ids in detection priority order."""
        return [p.id for p in cls.PROFILE_ORDER]

    @classmethod
    def get(cls, profile_id: str) -> Optional[ClientProfile]:
        """Look up a profile by id."""
        for profile in cls.PROFILE_ORDER:
            if profile.id == profile_id:
                return profile
        return None

    @classmethod
    def default(cls) -> ClientProfile:
        """The generic profile used when detection finds nothing."""
        return cls.GENERIC
