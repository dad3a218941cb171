"""Pytest configuration for the clientmcp test suite."""

from __future__ import annotations

from typing import Iterator, List

import pytest

from clientmcp.container import reset_container


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: tests that wait on real timers (sweeper, timeouts)",
    )


@pytest.fixture(autouse=True)
def fresh_container() -> Iterator[None]:
    """Every test starts with a new service container."""
    reset_container()
    yield
    reset_container()


@pytest.fixture
def event_log() -> List[object]:
    """Collects published domain events; pass ``event_log.append`` as publisher."""
    return []
