"""Tool Registry Domain Services.

CompatibilityScorer is pure: it gates and scores a tool against a client's
capability record. ToolRegistry owns the registered tools, ranks them per
client, and executes them with usage tracking, bounded concurrency and a
per-call timeout.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
import time
from contextlib import asynccontextmanager
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Union,
)

from ..client_profile.entities import ClientContext
from ..client_profile.value_objects import ClientCapabilities
from ..shared.errors import (
    ToolIncompatibleError,
    ToolNotFoundError,
    ToolRegistryError,
    ToolTimeoutError,
)
from ..shared.kernel import ToolCategory, ToolComplexity
from .entities import RegisteredTool, ToolHandler, UsageStats
from .events import ToolExecuted, ToolRegistered, ToolRejected
from .value_objects import ScoredTool, ToolMetadata, ToolRecommendation

logger = logging.getLogger(__name__)

CapabilitySource = Union[ClientContext, ClientCapabilities]


def _capabilities(source: CapabilitySource) -> ClientCapabilities:
    return source.capabilities if isinstance(source, ClientContext) else source


class CompatibilityScorer:
    """Hard gate and soft score of a tool against client capabilities.

    Score factors (match / mismatch):
    - complexity alignment: +0.2 / -0.3 (always counted)
    - binary requirement: +0.1 / -0.4 (only when required)
    - image requirement: +0.1 / -0.4 (only when required)
    - streaming requirement: +0.1 / -0.2 (only when required)
    - rate-limit adequacy: +0.1 / -0.2 (always counted)

    The score starts at 1.0, is divided by the number of counted factors
    and clamped to [0, 1].
    """

    COMPLEXITY_DELTA = (0.2, -0.3)
    BINARY_DELTA = (0.1, -0.4)
    IMAGES_DELTA = (0.1, -0.4)
    STREAMING_DELTA = (0.1, -0.2)
    RATE_DELTA = (0.1, -0.2)

    def incompatibility_reasons(
        self, tool: ToolMetadata, client: CapabilitySource
    ) -> List[str]:
        """Return why ``tool`` fails the hard gate (empty when compatible)."""
        caps = _capabilities(client)
        reasons = []
        if caps.tool_complexity < tool.complexity:
            reasons.append(
                f"requires {tool.complexity.value} complexity, client supports "
                f"{caps.tool_complexity.value}"
            )
        if tool.requires_binary_content and not caps.supports_binary_content:
            reasons.append("requires binary content")
        if tool.requires_images and not caps.supports_images:
            reasons.append("requires images")
        if tool.requires_streaming and not caps.supports_streaming:
            reasons.append("requires streaming")
        return reasons

    def is_compatible_with(
        self, tool: ToolMetadata, client: CapabilitySource
    ) -> bool:
        return not self.incompatibility_reasons(tool, client)

    def get_compatibility_score(
        self, tool: ToolMetadata, client: CapabilitySource
    ) -> float:
        """Score in [0, 1] of how well ``tool`` fits the client."""
        caps = _capabilities(client)
        score = 1.0
        factors = 0

        def apply(matched: bool, deltas: tuple) -> None:
            nonlocal score, factors
            score += deltas[0] if matched else deltas[1]
            factors += 1

        apply(tool.complexity <= caps.tool_complexity, self.COMPLEXITY_DELTA)
        if tool.requires_binary_content:
            apply(caps.supports_binary_content, self.BINARY_DELTA)
        if tool.requires_images:
            apply(caps.supports_images, self.IMAGES_DELTA)
        if tool.requires_streaming:
            apply(caps.supports_streaming, self.STREAMING_DELTA)
        apply(tool.rate_limit_calls <= caps.rate_limit.requests, self.RATE_DELTA)

        return max(0.0, min(1.0, score / factors))


class _ConcurrencyLimiter:
    """Counting limiter whose limit is read at acquire time.

    Unlike asyncio.Semaphore the limit can change between acquisitions,
    which happens when adaptive settings lower ``maxConcurrentTools``.
    """

    def __init__(self) -> None:
        self._active = 0
        self._condition: Optional[asyncio.Condition] = None

    @property
    def active(self) -> int:
        return self._active

    @asynccontextmanager
    async def slot(self, limit: int) -> AsyncIterator[None]:
        if self._condition is None:
            self._condition = asyncio.Condition()
        condition = self._condition
        async with condition:
            await condition.wait_for(lambda: self._active < max(1, limit))
            self._active += 1
        try:
            yield
        finally:
            async with condition:
                self._active -= 1
                condition.notify_all()


class ToolRegistry:
    """Registry of tools with per-client filtering, ranking and execution.

    Thread safety: the tool table is guarded by a lock; each tool's usage
    stats are updated under that tool's own lock.

    Attributes:
        _tools: Registered tools by name.
        _scorer: Compatibility scorer.
        _event_publisher: Optional callback for domain events.
    """

    MIN_SCORE = 0.3
    MAX_RECOMMENDATIONS = 5
    DEFAULT_MAX_TOOLS = 20

    # Entity keywords used to infer the category of an operation
    FINANCIAL_ENTITIES = ("account", "transaction", "balance", "asset", "portfolio")
    ADMIN_ENTITIES = ("organization", "ledger", "segment")
    DOC_ENTITIES = ("docs", "documentation", "help")

    def __init__(
        self,
        scorer: Optional[CompatibilityScorer] = None,
        event_publisher: Optional[Callable[[object], None]] = None,
    ) -> None:
        self._tools: Dict[str, RegisteredTool] = {}
        self._scorer = scorer or CompatibilityScorer()
        self._event_publisher = event_publisher
        self._lock = threading.Lock()
        self._sequence = 0
        self._limiters: Dict[str, _ConcurrencyLimiter] = {}

    @property
    def scorer(self) -> CompatibilityScorer:
        return self._scorer

    # ── Registration ──────────────────────────────────────────────

    def register(
        self,
        name: str,
        definition: Optional[Mapping[str, Any]] = None,
        handler: Optional[ToolHandler] = None,
        metadata: Union[ToolMetadata, Mapping[str, Any], None] = None,
    ) -> RegisteredTool:
        """Register or replace a tool.

        Replacing a tool keeps its usage statistics.

        Args:
            name: Tool name.
            definition: MCP tool definition. Defaults to name + description.
            handler: Callable receiving the adapted parameters.
            metadata: ToolMetadata or camelCase metadata mapping.

        Returns:
            The registered tool.
        """
        if isinstance(metadata, ToolMetadata):
            meta = metadata
        else:
            meta = ToolMetadata.from_mapping(name, metadata or {})
        if definition is None:
            definition = {"name": name, "description": meta.description}

        with self._lock:
            existing = self._tools.get(name)
            self._sequence += 1
            tool = RegisteredTool(
                name=name,
                definition=dict(definition),
                metadata=meta,
                handler=handler,
                stats=existing.stats if existing else UsageStats(),
                order=existing.order if existing else self._sequence,
            )
            self._tools[name] = tool

        if existing is None:
            logger.debug("Registered tool %s (%s)", name, meta.complexity.value)
            self._publish_event(ToolRegistered(
                tool_name=name,
                category=meta.category.value,
                complexity=meta.complexity.value,
            ))
        return tool

    def unregister(self, name: str) -> bool:
        with self._lock:
            return self._tools.pop(name, None) is not None

    def get(self, name: str) -> Optional[RegisteredTool]:
        with self._lock:
            return self._tools.get(name)

    def names(self) -> List[str]:
        """Tool names in registration order."""
        return [t.name for t in self._snapshot()]

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tools

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)

    # ── Compatibility ─────────────────────────────────────────────

    def is_compatible_with(self, name: str, client: CapabilitySource) -> bool:
        tool = self.get(name)
        return tool is not None and self._scorer.is_compatible_with(tool.metadata, client)

    def get_compatibility_score(self, name: str, client: CapabilitySource) -> float:
        tool = self.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return self._scorer.get_compatibility_score(tool.metadata, client)

    def rank_tools(self, client: CapabilitySource) -> List[ScoredTool]:
        """Score, gate and rank all tools for a client.

        Tools must pass the hard gate and score above MIN_SCORE. The result
        is sorted by score plus a small usage bonus, ties keeping
        registration order, and truncated to ``maxToolsPerCall``.
        """
        caps = _capabilities(client)
        scored = []
        for tool in self._snapshot():
            if not self._scorer.is_compatible_with(tool.metadata, caps):
                continue
            score = self._scorer.get_compatibility_score(tool.metadata, caps)
            if score <= self.MIN_SCORE:
                continue
            scored.append(ScoredTool(tool.name, score, tool.stats.calls))
        scored.sort(key=lambda s: s.rank_key, reverse=True)
        limit = caps.max_tools_per_call or self.DEFAULT_MAX_TOOLS
        return scored[:limit]

    def get_filtered_tools(self, client: CapabilitySource) -> List[Dict[str, Any]]:
        """Tool definitions visible to a client, best first."""
        definitions = []
        for scored in self.rank_tools(client):
            tool = self.get(scored.name)
            if tool is not None:
                definitions.append(dict(tool.definition))
        return definitions

    def get_tools_by_category(
        self,
        category: Union[ToolCategory, str],
        client: Optional[CapabilitySource] = None,
    ) -> List[Dict[str, Any]]:
        """Definitions of tools in ``category``, optionally gated per client."""
        wanted = category if isinstance(category, ToolCategory) else ToolCategory(category)
        result = []
        for tool in self._snapshot():
            if tool.metadata.category != wanted:
                continue
            if client is not None and not self._scorer.is_compatible_with(
                tool.metadata, client
            ):
                continue
            result.append(dict(tool.definition))
        return result

    def infer_category(self, operation: Optional[str], entity: Optional[str]) -> ToolCategory:
        """Guess the category of an operation from the entity it targets."""
        entity = (entity or "").lower()
        if any(e in entity for e in self.FINANCIAL_ENTITIES):
            return ToolCategory.FINANCIAL
        if any(e in entity for e in self.ADMIN_ENTITIES):
            return ToolCategory.ADMINISTRATIVE
        if any(e in entity for e in self.DOC_ENTITIES):
            return ToolCategory.DOCUMENTATION
        return ToolCategory.FINANCIAL

    def get_recommended_tools(
        self,
        client: Optional[CapabilitySource],
        operation: str,
        entity: Optional[str] = None,
        complexity: Optional[Union[ToolComplexity, str]] = None,
    ) -> List[ToolRecommendation]:
        """Recommend up to five tools for an operation on an entity.

        Relevance: operation tag +0.4, entity tag +0.3, inferred category
        +0.2, complexity match +0.1, multiplied by the compatibility score
        when a client is given. Only relevance above 0.3 is returned.
        """
        wanted_tier = (
            ToolComplexity.parse(complexity) if complexity is not None else None
        )
        category = self.infer_category(operation, entity)
        recommendations = []
        for tool in self._snapshot():
            meta = tool.metadata
            relevance = 0.0
            reasons = []
            if operation and operation in meta.tags:
                relevance += 0.4
                reasons.append(f"supports {operation} operations")
            if entity and entity in meta.tags:
                relevance += 0.3
                reasons.append(f"works with {entity}")
            if meta.category == category:
                relevance += 0.2
            if wanted_tier is not None and meta.complexity == wanted_tier:
                relevance += 0.1
                reasons.append(f"matches complexity level ({wanted_tier.value})")
            if client is not None:
                relevance *= self._scorer.get_compatibility_score(meta, client)
            if relevance > self.MIN_SCORE:
                recommendations.append(ToolRecommendation(
                    name=tool.name,
                    relevance=relevance,
                    reason=", ".join(reasons) or "general compatibility",
                    definition=dict(tool.definition),
                ))
        recommendations.sort(key=lambda r: r.relevance, reverse=True)
        return recommendations[:self.MAX_RECOMMENDATIONS]

    # ── Execution ─────────────────────────────────────────────────

    async def execute_tool(
        self, name: str, params: Dict[str, Any], context: ClientContext
    ) -> Any:
        """Execute a registered tool's handler for a client.

        Raises:
            ToolNotFoundError: Unknown tool.
            ToolIncompatibleError: Tool is gated out for this client.
            ToolTimeoutError: Awaitable handler exceeded ``timeoutMs``.
            Exception: Any handler error, unchanged, after bookkeeping.
        """
        tool = self._require(name, context)
        if tool.handler is None:
            raise ToolRegistryError(f"Tool '{name}' has no handler")
        return await self._run(tool, params, context, tool.handler)

    async def execute_with(
        self,
        name: str,
        params: Dict[str, Any],
        context: ClientContext,
        invoke: Callable[[Dict[str, Any]], Union[Any, Awaitable[Any]]],
    ) -> Any:
        """Like ``execute_tool`` but with a caller-supplied invocation.

        Used when the transport layer owns the real handler.
        """
        tool = self._require(name, context)
        return await self._run(tool, params, context, invoke)

    def _require(self, name: str, context: ClientContext) -> RegisteredTool:
        tool = self.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        reasons = self._scorer.incompatibility_reasons(tool.metadata, context)
        if reasons:
            self._publish_event(ToolRejected(
                tool_name=name, client_id=context.client_id, reasons=reasons,
            ))
            raise ToolIncompatibleError(name, context.client_id, reasons)
        return tool

    async def _run(
        self,
        tool: RegisteredTool,
        params: Dict[str, Any],
        context: ClientContext,
        invoke: Callable[[Dict[str, Any]], Any],
    ) -> Any:
        caps = context.capabilities
        limiter = self._limiter_for(context.session_id)
        async with limiter.slot(caps.effective_concurrency):
            start = time.perf_counter()
            try:
                result = invoke(params)
                if inspect.isawaitable(result):
                    result = await self._await_bounded(tool.name, result, caps.timeout_ms)
            except Exception as e:
                self._record(tool, context, False, start, str(e))
                raise
            self._record(tool, context, True, start)
            return result

    async def _await_bounded(
        self, name: str, awaitable: Awaitable[Any], timeout_ms: int
    ) -> Any:
        task = asyncio.ensure_future(awaitable)
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task not in done:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug("Tool %s failed while being cancelled: %s", name, e)
            logger.warning("Tool %s cancelled after %dms", name, timeout_ms)
            raise ToolTimeoutError(name, timeout_ms)
        return task.result()

    def _record(
        self,
        tool: RegisteredTool,
        context: ClientContext,
        success: bool,
        start: float,
        error: Optional[str] = None,
    ) -> None:
        duration_ms = (time.perf_counter() - start) * 1000
        tool.record_attempt(success, duration_ms)
        self._publish_event(ToolExecuted(
            tool_name=tool.name,
            client_id=context.client_id,
            success=success,
            duration_ms=duration_ms,
            error=error,
        ))

    def _limiter_for(self, session_id: str) -> _ConcurrencyLimiter:
        with self._lock:
            limiter = self._limiters.get(session_id)
            if limiter is None:
                limiter = _ConcurrencyLimiter()
                self._limiters[session_id] = limiter
            return limiter

    def release_session(self, session_id: str) -> None:
        """Forget the concurrency state of a finished session."""
        with self._lock:
            self._limiters.pop(session_id, None)

    # ── Stats ─────────────────────────────────────────────────────

    def get_usage_stats(self, name: Optional[str] = None) -> Dict[str, Any]:
        """Usage stats of one tool, or of all tools keyed by name."""
        if name is not None:
            tool = self.get(name)
            if tool is None:
                raise ToolNotFoundError(name)
            return tool.stats.to_dict()
        return {tool.name: tool.stats.to_dict() for tool in self._snapshot()}

    def get_stats(self) -> Dict[str, Any]:
        """Registry summary: counts by category and complexity, total calls."""
        tools = self._snapshot()
        by_category: Dict[str, int] = {}
        by_complexity: Dict[str, int] = {}
        for tool in tools:
            cat = tool.metadata.category.value
            tier = tool.metadata.complexity.value
            by_category[cat] = by_category.get(cat, 0) + 1
            by_complexity[tier] = by_complexity.get(tier, 0) + 1
        return {
            "totalTools": len(tools),
            "byCategory": by_category,
            "byComplexity": by_complexity,
            "totalCalls": sum(t.stats.calls for t in tools),
        }

    def _snapshot(self) -> List[RegisteredTool]:
        with self._lock:
            return sorted(self._tools.values(), key=lambda t: t.order)

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
