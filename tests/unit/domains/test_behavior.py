"""Unit tests for the Behavior Tracking bounded context.

Run with: uv run pytest tests/unit/domains/test_behavior.py -v
"""

__test__ = True

import asyncio

import pytest

from clientmcp.domains.behavior import (
    AdaptationThresholdReached,
    AdaptationTrigger,
    BehaviorPatterns,
    BehaviorPatternsDetected,
    BehaviorStats,
    BehaviorSweeper,
    BehaviorTracker,
)


@pytest.fixture
def tracker(event_log):
    return BehaviorTracker(event_publisher=event_log.append)


def _record_many(tracker, client_id, tool, successes, errors, duration_ms=10.0):
    for _ in range(successes):
        tracker.record(client_id, tool, True, duration_ms)
    for _ in range(errors):
        tracker.record(client_id, tool, False, duration_ms)


# =============================================================================
# BehaviorStats
# =============================================================================


class TestBehaviorStats:
    """Immutable per-pair statistics."""

    def test_empty(self):
        stats = BehaviorStats("cursor", "t")
        assert stats.attempts == 0
        assert stats.error_rate == 0.0
        assert stats.avg_duration_ms == 0.0
        assert stats.to_dict()["lastCall"] is None

    def test_record_returns_new_instance(self):
        stats = BehaviorStats("cursor", "t")
        updated = stats.record(False, 40).record(True, 20)
        assert stats.calls == 0
        assert updated.calls == 2
        assert updated.errors == 1
        assert updated.error_rate == 0.5
        assert updated.avg_duration_ms == 30
        assert updated.last_call is not None

    def test_negative_duration_counts_as_zero(self):
        assert BehaviorStats("c", "t").record(True, -5).total_duration_ms == 0.0


class TestAdaptationTrigger:
    """Error-rate feedback threshold."""

    @pytest.mark.parametrize("successes, errors, expected", [
        (3, 2, True),     # 0.4 over 5 attempts
        (0, 4, False),    # too few attempts
        (8, 2, False),    # exactly 0.2 is not above the threshold
        (7, 3, True),
    ])
    def test_should_adapt(self, successes, errors, expected):
        stats = BehaviorStats("c", "t")
        for _ in range(successes):
            stats = stats.record(True, 1)
        for _ in range(errors):
            stats = stats.record(False, 1)
        assert AdaptationTrigger().should_adapt(stats) is expected


# =============================================================================
# BehaviorTracker
# =============================================================================


class TestBehaviorTracker:
    """Recording, summaries and pattern analysis."""

    def test_record_accumulates(self, tracker):
        _record_many(tracker, "cursor", "list_accounts", successes=2, errors=1)
        stats = tracker.get("cursor", "list_accounts")
        assert stats.calls == 3
        assert stats.successes == 2
        assert tracker.get("cursor", "other") is None

    def test_clients_are_tracked_separately(self, tracker):
        tracker.record("cursor", "t", True, 1)
        tracker.record("vscode", "t", False, 1)
        assert tracker.get("cursor", "t").errors == 0
        assert tracker.get("vscode", "t").errors == 1

    def test_threshold_event(self, tracker, event_log):
        _record_many(tracker, "cursor", "flaky", successes=3, errors=1)
        assert event_log == []
        tracker.record("cursor", "flaky", False, 10)
        event = event_log[-1]
        assert isinstance(event, AdaptationThresholdReached)
        assert event.attempts == 5
        assert event.error_rate == pytest.approx(0.4)
        assert event.to_dict()["event_type"] == "AdaptationThresholdReached"

    def test_snapshot_is_isolated(self, tracker):
        tracker.record("cursor", "t", True, 1)
        snapshot = tracker.snapshot()
        tracker.record("cursor", "t", True, 1)
        assert snapshot[("cursor", "t")].calls == 1

    def test_seed_marks_unused_tools(self, tracker):
        tracker.seed("cursor", ["a", "b"])
        tracker.record("cursor", "a", True, 1)
        tracker.seed("cursor", ["a"])
        patterns = tracker.analyze_patterns()
        assert [s.tool_name for s in patterns.unused] == ["b"]
        assert tracker.get("cursor", "a").calls == 1

    def test_seed_tool_covers_known_clients(self, tracker):
        tracker.seed("cursor", [])
        tracker.seed("windsurf", ["a"])
        tracker.seed_tool("late")
        assert tracker.get("cursor", "late").calls == 0
        assert tracker.get("windsurf", "late").calls == 0
        unused = {(s.client_id, s.tool_name) for s in tracker.analyze_patterns().unused}
        assert ("cursor", "late") in unused

    def test_seed_tool_forgets_reset_clients(self, tracker):
        tracker.seed("cursor", [])
        tracker.reset("cursor")
        tracker.seed_tool("late")
        assert tracker.get("cursor", "late") is None

    def test_analyze_patterns(self, tracker):
        _record_many(tracker, "cursor", "broken", successes=1, errors=3)
        _record_many(tracker, "cursor", "slow", successes=2, errors=0, duration_ms=12000)
        _record_many(tracker, "cursor", "busy", successes=11, errors=0)
        patterns = tracker.analyze_patterns()
        assert [s.tool_name for s in patterns.high_error] == ["broken"]
        assert [s.tool_name for s in patterns.slow] == ["slow"]
        assert [s.tool_name for s in patterns.frequent] == ["busy"]
        assert patterns.has_issues

    def test_patterns_to_dict(self, tracker):
        tracker.seed("cursor", ["idle"])
        data = tracker.analyze_patterns().to_dict()
        assert data["unusedTools"] == [{"clientId": "cursor", "tool": "idle"}]
        assert data["highErrorTools"] == []

    def test_behavior_summary(self, tracker):
        _record_many(tracker, "cursor", "busy", successes=6, errors=0, duration_ms=100)
        _record_many(tracker, "cursor", "broken", successes=1, errors=1, duration_ms=300)
        tracker.record("vscode", "other", True, 1)
        summary = tracker.get_behavior_stats("cursor")
        assert summary["totalTools"] == 2
        assert summary["totalCalls"] == 8
        assert summary["avgErrorRate"] == pytest.approx(0.25)
        assert summary["avgDuration"] == pytest.approx(200)
        assert summary["mostUsedTools"] == [{"tool": "busy", "calls": 6}]
        assert summary["problemTools"] == [{"tool": "broken", "errorRate": 0.5}]
        assert tracker.get_behavior_stats()["totalTools"] == 3

    def test_empty_summary(self, tracker):
        summary = tracker.get_behavior_stats()
        assert summary["totalTools"] == 0
        assert summary["avgErrorRate"] == 0.0

    def test_reset(self, tracker):
        tracker.record("cursor", "t", True, 1)
        tracker.record("vscode", "t", True, 1)
        tracker.reset("cursor")
        assert tracker.get("cursor", "t") is None
        assert tracker.get("vscode", "t") is not None
        tracker.reset()
        assert tracker.snapshot() == {}

    def test_failing_publisher_does_not_break_recording(self):
        def explode(event):
            raise RuntimeError("publisher down")

        tracker = BehaviorTracker(event_publisher=explode)
        for _ in range(5):
            stats = tracker.record("cursor", "t", False, 1)
        assert stats.errors == 5


# =============================================================================
# BehaviorSweeper
# =============================================================================


class TestBehaviorSweeper:
    """Periodic pattern analysis."""

    def test_sweep_once_publishes_findings(self, tracker, event_log):
        sweeper = BehaviorSweeper(tracker, event_publisher=event_log.append)
        _record_many(tracker, "cursor", "broken", successes=0, errors=2)
        patterns = sweeper.sweep_once()
        assert sweeper.last_patterns is patterns
        event = event_log[-1]
        assert isinstance(event, BehaviorPatternsDetected)
        assert event.high_error_tools == 1
        assert event.slow_tools == 0

    def test_sweep_without_issues_is_silent(self, tracker, event_log):
        sweeper = BehaviorSweeper(tracker, event_publisher=event_log.append)
        tracker.seed("cursor", ["idle"])
        patterns = sweeper.sweep_once()
        assert isinstance(patterns, BehaviorPatterns)
        assert not patterns.has_issues
        assert event_log == []

    @pytest.mark.asyncio
    async def test_start_and_stop(self, tracker):
        sweeper = BehaviorSweeper(tracker, interval_seconds=0.01)
        await sweeper.start()
        await sweeper.start()
        assert sweeper.running
        await asyncio.sleep(0.05)
        await sweeper.stop()
        assert not sweeper.running
        assert sweeper.last_patterns is not None

    @pytest.mark.asyncio
    async def test_stop_without_start(self, tracker):
        sweeper = BehaviorSweeper(tracker)
        await sweeper.stop()
        assert not sweeper.running
