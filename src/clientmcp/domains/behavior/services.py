"""Behavior Tracking Domain Services.

BehaviorTracker aggregates usage per (client, tool) pair and decides when
observed errors should feed back into a client's adaptive settings.
BehaviorSweeper periodically classifies the tracked pairs for
observability; it never changes configuration.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from .events import AdaptationThresholdReached, BehaviorPatternsDetected
from .value_objects import AdaptationTrigger, BehaviorPatterns, BehaviorStats

logger = logging.getLogger(__name__)

BehaviorKey = Tuple[str, str]


class BehaviorTracker:
    """Per-(client, tool) usage statistics.

    Each update runs under the lock of its key and replaces the immutable
    BehaviorStats record, so snapshots handed out are never modified.
    """

    MOST_USED_CALLS = 5
    PROBLEM_ERROR_RATE = 0.3

    def __init__(
        self,
        trigger: Optional[AdaptationTrigger] = None,
        event_publisher: Optional[Callable[[object], None]] = None,
    ) -> None:
        self._trigger = trigger or AdaptationTrigger()
        self._event_publisher = event_publisher
        self._stats: Dict[BehaviorKey, BehaviorStats] = {}
        self._locks: Dict[BehaviorKey, threading.Lock] = {}
        self._clients: Set[str] = set()
        self._registry_lock = threading.Lock()

    @property
    def trigger(self) -> AdaptationTrigger:
        return self._trigger

    def record(
        self,
        client_id: str,
        tool_name: str,
        success: bool,
        duration_ms: float,
    ) -> BehaviorStats:
        """Record one attempt and return the updated snapshot."""
        key = (client_id, tool_name)
        with self._lock_for(key):
            current = self._stats.get(key) or BehaviorStats(client_id, tool_name)
            updated = current.record(success, duration_ms)
            self._stats[key] = updated

        if self._trigger.should_adapt(updated):
            self._publish_event(AdaptationThresholdReached(
                client_id=client_id,
                tool_name=tool_name,
                error_rate=updated.error_rate,
                attempts=updated.attempts,
            ))
        return updated

    def should_adapt(self, stats: BehaviorStats) -> bool:
        return self._trigger.should_adapt(stats)

    def seed(self, client_id: str, tool_names: Iterable[str]) -> None:
        """Create empty entries so never-called tools show up as unused."""
        with self._registry_lock:
            self._clients.add(client_id)
        for name in tool_names:
            key = (client_id, name)
            with self._lock_for(key):
                self._stats.setdefault(key, BehaviorStats(client_id, name))

    def seed_tool(self, tool_name: str) -> None:
        """Seed a newly registered tool for every client seeded so far."""
        with self._registry_lock:
            clients = sorted(self._clients)
        for client_id in clients:
            self.seed(client_id, [tool_name])

    def get(self, client_id: str, tool_name: str) -> Optional[BehaviorStats]:
        with self._registry_lock:
            return self._stats.get((client_id, tool_name))

    def snapshot(self) -> Dict[BehaviorKey, BehaviorStats]:
        """Copy of all tracked stats; later updates do not affect it."""
        with self._registry_lock:
            return dict(self._stats)

    def analyze_patterns(self) -> BehaviorPatterns:
        """Classify every tracked pair into high-error, slow, frequent and unused."""
        high_error: List[BehaviorStats] = []
        slow: List[BehaviorStats] = []
        frequent: List[BehaviorStats] = []
        unused: List[BehaviorStats] = []
        for stats in self.snapshot().values():
            if stats.error_rate > BehaviorPatterns.HIGH_ERROR_RATE:
                high_error.append(stats)
            if stats.avg_duration_ms > BehaviorPatterns.SLOW_AVG_MS:
                slow.append(stats)
            if stats.calls > BehaviorPatterns.FREQUENT_CALLS:
                frequent.append(stats)
            if stats.calls == 0:
                unused.append(stats)
        return BehaviorPatterns(
            high_error=tuple(high_error),
            slow=tuple(slow),
            frequent=tuple(frequent),
            unused=tuple(unused),
        )

    def get_behavior_stats(self, client_id: Optional[str] = None) -> Dict[str, Any]:
        """Summary over all tracked tools, optionally for one client only.

        Returns:
            Dict with totalTools, totalCalls, avgErrorRate, avgDuration,
            mostUsedTools (calls > 5) and problemTools (error rate > 0.3).
        """
        entries = [
            s for s in self.snapshot().values()
            if client_id is None or s.client_id == client_id
        ]
        count = len(entries)
        return {
            "totalTools": count,
            "totalCalls": sum(s.calls for s in entries),
            "avgErrorRate": (
                sum(s.error_rate for s in entries) / count if count else 0.0
            ),
            "avgDuration": (
                sum(s.avg_duration_ms for s in entries) / count if count else 0.0
            ),
            "mostUsedTools": [
                {"tool": s.tool_name, "calls": s.calls}
                for s in entries if s.calls > self.MOST_USED_CALLS
            ],
            "problemTools": [
                {"tool": s.tool_name, "errorRate": s.error_rate}
                for s in entries if s.error_rate > self.PROBLEM_ERROR_RATE
            ],
        }

    def reset(self, client_id: Optional[str] = None) -> None:
        with self._registry_lock:
            if client_id is None:
                self._stats.clear()
                self._locks.clear()
                self._clients.clear()
                return
            self._clients.discard(client_id)
            for key in [k for k in self._stats if k[0] == client_id]:
                del self._stats[key]
                self._locks.pop(key, None)

    def _lock_for(self, key: BehaviorKey) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def _publish_event(self, event: object) -> None:
        """Publish a domain event.

        Args:
            event: The event to publish.
        """
        if self._event_publisher:
            try:
                self._event_publisher(event)
            except Exception as e:
                logger.error(f"Failed to publish event: {e}")


class BehaviorSweeper:
    """Background task running ``analyze_patterns()`` at a fixed interval.

    Findings are logged and published as BehaviorPatternsDetected. The
    sweep only reads tracker snapshots.
    """

    def __init__(
        self,
        tracker: BehaviorTracker,
        interval_seconds: float = 60,
        event_publisher: Optional[Callable[[object], None]] = None,
    ) -> None:
        """Initialize the sweeper.

        Args:
            tracker: Tracker to analyze.
            interval_seconds: Time between sweeps in seconds.
            event_publisher: Optional callback for domain events.
        """
        self.tracker = tracker
        self.interval = interval_seconds
        self._event_publisher = event_publisher
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.last_patterns: Optional[BehaviorPatterns] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the sweep loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(f"Behavior sweeper started (interval: {self.interval}s)")

    async def stop(self) -> None:
        """Stop the sweep loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Behavior sweeper stopped")

    async def _sweep_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.interval)
            self.sweep_once()

    def sweep_once(self) -> BehaviorPatterns:
        """Run one analysis pass and report its findings."""
        patterns = self.tracker.analyze_patterns()
        self.last_patterns = patterns
        if patterns.has_issues:
            logger.warning(
                "Behavior analysis found issues: %d high-error tools, %d slow tools",
                len(patterns.high_error), len(patterns.slow),
            )
            if self._event_publisher:
                try:
                    self._event_publisher(BehaviorPatternsDetected(
                        high_error_tools=len(patterns.high_error),
                        slow_tools=len(patterns.slow),
                        frequent_tools=len(patterns.frequent),
                        unused_tools=len(patterns.unused),
                    ))
                except Exception as e:
                    logger.error(f"Failed to publish event: {e}")
        else:
            logger.debug("Behavior analysis found no issues")
        return patterns
