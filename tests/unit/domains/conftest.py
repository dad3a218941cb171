"""Pytest fixtures for domain tests.

These fixtures support testing the client adaptation bounded contexts:
- Client Profile Context
- Client Config Context
- Tool Registry Context
- Adaptation Context
- Behavior Context
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import pytest

from clientmcp.domains.client_profile import (
    ClientCapabilities,
    ClientContext,
    ClientProfiles,
)
from clientmcp.domains.shared.kernel import DetectionMethod


def make_context(
    profile_id: str = "generic",
    overrides: Optional[Dict[str, Any]] = None,
) -> ClientContext:
    """ClientContext for a built-in profile with optional capability overrides."""
    profile = ClientProfiles.get(profile_id)
    assert profile is not None, f"unknown profile {profile_id}"
    capabilities = ClientCapabilities.from_mapping(overrides, base=profile.capabilities)
    return ClientContext(
        profile=profile,
        detection_method=DetectionMethod.CLIENT_NAME,
        capabilities=capabilities,
    )


# =============================================================================
# Client Context Fixtures
# =============================================================================


@pytest.fixture
def context_factory():
    """Factory fixture: ``context_factory("cursor", {"maxToolsPerCall": 2})``."""
    return make_context


@pytest.fixture
def generic_context() -> ClientContext:
    """Generic client: medium tier, 5 tools, standard escaping, structured output."""
    return make_context("generic")


@pytest.fixture
def claude_context() -> ClientContext:
    """Claude Desktop: high tier, binary and images, JSON escaping."""
    return make_context("claude-desktop")


@pytest.fixture
def continue_context() -> ClientContext:
    """Continue: low tier, minimal output, minimal escaping."""
    return make_context("continue")


@pytest.fixture
def raw_context() -> ClientContext:
    """Generic client with escaping disabled, for readable formatter assertions."""
    return make_context("generic", {"escapeHandling": "none"})
