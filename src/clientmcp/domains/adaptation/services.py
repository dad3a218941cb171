"""Adaptation Domain Services.

Shapes traffic in both directions for one client:

- ParameterAdapter: clamps pagination parameters and simplifies requests
  for low-complexity clients.
- ResponseFormatter: output mode transform, serialization, escaping and
  size limiting, plus per-client response size statistics.
- ResourceFilter: hides resources the client cannot render.
- AdaptationManager: facade the session integration talks to.
"""
from __future__ import annotations

import json
import logging
import re
import threading
import traceback
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from ..client_profile.entities import ClientContext
from ..shared.errors import ClientMCPError
from ..shared.kernel import (
    ErrorTier,
    EscapeStrategy,
    OutputFormat,
    ToolComplexity,
)
from .events import ParametersAdapted, ResponseTruncated
from .value_objects import (
    TRUNCATION_NOTICE,
    FormattedResponse,
    PaginationPolicy,
    ResponseSizeStats,
)

logger = logging.getLogger(__name__)

_MARKDOWN_SPECIAL = re.compile(r"([\\`*_{}\[\]()#+\-.!])")
_MINIMAL_ESCAPES = {'"': '\\"', "\\": "\\\\"}
_STANDARD_ESCAPES = {
    '"': '\\"', "\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t",
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


class ParameterAdapter:
    """Adapts tool-call parameters to a client's complexity tier."""

    def __init__(
        self,
        policy: Optional[PaginationPolicy] = None,
        event_publisher: Optional[Callable[[object], None]] = None,
    ) -> None:
        self._policy = policy or PaginationPolicy.default()
        self._event_publisher = event_publisher

    @property
    def policy(self) -> PaginationPolicy:
        return self._policy

    def adapt_parameters(
        self,
        tool_name: str,
        params: Optional[Mapping[str, Any]],
        context: ClientContext,
        required: Iterable[str] = (),
    ) -> Dict[str, Any]:
        """Return a new parameter dict adapted for ``context``.

        Numeric pagination parameters above the tier ceiling are clamped.
        For low-complexity clients only the essential keys and the tool's
        ``required`` parameters survive. The input mapping is never
        modified.
        """
        adapted = dict(params or {})
        tier = context.capabilities.tool_complexity
        ceiling = self._policy.ceiling_for(tier)

        clamped = []
        for key in PaginationPolicy.PAGINATION_KEYS:
            value = adapted.get(key)
            if _is_number(value) and value > ceiling:
                adapted[key] = ceiling
                clamped.append(key)

        dropped: List[str] = []
        if tier == ToolComplexity.LOW:
            keep = PaginationPolicy.ESSENTIAL_KEYS.union(required)
            dropped = [k for k in adapted if k not in keep]
            adapted = {k: v for k, v in adapted.items() if k in keep}

        if clamped or dropped:
            logger.debug(
                "Adapted parameters of %s for %s: clamped=%s dropped=%s",
                tool_name, context.client_id, sorted(clamped), dropped,
            )
            self._publish_event(ParametersAdapted(
                client_id=context.client_id,
                tool_name=tool_name,
                clamped=tuple(sorted(clamped)),
                dropped=tuple(dropped),
            ))
        return adapted

    def _publish_event(self, event: object) -> None:
        if self._event_publisher:
            try:
                self._event_publisher(event)
            except Exception as e:
                logger.error(f"Failed to publish event: {e}")


class ResponseFormatter:
    """Formats tool results and errors for a client.

    Pipeline for results:
    1. Output mode transform (minimal / concise / structured / developer)
    2. Serialize (strings pass through, JSON otherwise)
    3. Escape according to ``escapeHandling``
    4. Apply ``maxResponseSize`` with a visible truncation notice
    5. Record the pre-truncation size for the client
    """

    ESSENTIAL_FIELDS = ("id", "name", "title", "status", "type", "amount", "balance")
    CONCISE_MAX_ITEMS = 10
    TRUNCATION_MARGIN = 100
    NEWLINE_CUT_RATIO = 0.8

    def __init__(
        self,
        event_publisher: Optional[Callable[[object], None]] = None,
    ) -> None:
        self._event_publisher = event_publisher
        self._sizes: Dict[str, ResponseSizeStats] = {}
        self._lock = threading.Lock()

    # ── Results ───────────────────────────────────────────────────

    def format_response(
        self,
        data: Any,
        context: ClientContext,
        tool_name: Optional[str] = None,
        is_error: bool = False,
    ) -> FormattedResponse:
        """Shape ``data`` for the client described by ``context``."""
        caps = context.capabilities
        shaped = self.apply_output_format(data, caps.output_format, context, tool_name)
        text = self.serialize(shaped, caps.tool_complexity)
        return self._finish(text, context, tool_name, is_error, track=True)

    def apply_output_format(
        self,
        data: Any,
        output_format: OutputFormat,
        context: ClientContext,
        tool_name: Optional[str] = None,
    ) -> Any:
        if output_format == OutputFormat.MINIMAL:
            return self._format_minimal(data)
        if output_format == OutputFormat.CONCISE:
            return self._format_concise(data)
        if output_format == OutputFormat.DEVELOPER:
            return self._format_developer(data, context, tool_name)
        return self._format_structured(data)

    def _format_minimal(self, data: Any) -> Any:
        if isinstance(data, str):
            return data
        if _is_sequence(data):
            return [self._extract_essential(item) for item in data]
        return self._extract_essential(data)

    def _extract_essential(self, item: Any) -> Any:
        if not isinstance(item, Mapping):
            return item
        essential = {k: item[k] for k in self.ESSENTIAL_FIELDS if k in item}
        return essential or item

    def _format_concise(self, data: Any) -> Any:
        if isinstance(data, str):
            return data
        if _is_sequence(data):
            lines = [self._summarize(item) for item in data[:self.CONCISE_MAX_ITEMS]]
            remaining = len(data) - self.CONCISE_MAX_ITEMS
            if remaining > 0:
                lines.append(f"... ({remaining} more)")
            return "\n".join(lines)
        return self._summarize(data)

    @staticmethod
    def _summarize(item: Any) -> str:
        if not isinstance(item, Mapping):
            return str(item)
        ident = item.get("id") or item.get("name") or item.get("title") or "unknown"
        summary = str(ident)
        if item.get("type"):
            summary += f" ({item['type']})"
        if item.get("status"):
            summary += f" - {item['status']}"
        return summary

    def _format_developer(
        self, data: Any, context: ClientContext, tool_name: Optional[str]
    ) -> str:
        timestamp = datetime.now(timezone.utc).isoformat()
        header = (
            f"=== {tool_name or 'Response'} ===\n"
            f"Client: {context.client_name} | Time: {timestamp}\n\n"
        )
        if isinstance(data, str):
            return header + data
        return header + json.dumps(data, indent=2, default=str, ensure_ascii=False)

    @staticmethod
    def _format_structured(data: Any) -> Any:
        if _is_sequence(data):
            return {"type": "list", "count": len(data), "items": list(data)}
        if isinstance(data, Mapping):
            return {"type": "object", "data": dict(data)}
        return data

    @staticmethod
    def serialize(data: Any, complexity: ToolComplexity) -> str:
        """Strings pass through; everything else becomes JSON.

        Low-complexity clients get compact JSON, others indent 2.
        """
        if isinstance(data, str):
            return data
        if complexity == ToolComplexity.LOW:
            return json.dumps(data, separators=(",", ":"), default=str, ensure_ascii=False)
        return json.dumps(data, indent=2, default=str, ensure_ascii=False)

    @staticmethod
    def escape(text: str, strategy: EscapeStrategy) -> str:
        if strategy == EscapeStrategy.NONE:
            return text
        if strategy == EscapeStrategy.MINIMAL:
            return "".join(_MINIMAL_ESCAPES.get(ch, ch) for ch in text)
        if strategy == EscapeStrategy.JSON:
            return json.dumps(text, ensure_ascii=False)
        if strategy == EscapeStrategy.MARKDOWN:
            return _MARKDOWN_SPECIAL.sub(r"\\\1", text)
        return "".join(_STANDARD_ESCAPES.get(ch, ch) for ch in text)

    @classmethod
    def apply_size_limit(cls, text: str, max_size: int) -> str:
        """Bound ``text`` to ``max_size`` characters plus a truncation notice.

        The kept window is ``max_size - 100`` characters. When its last
        newline lies in the final 20% of the window the cut happens there,
        otherwise the window is hard-cut.
        """
        if len(text) <= max_size:
            return text
        window = max(0, max_size - cls.TRUNCATION_MARGIN)
        kept = text[:window]
        newline = kept.rfind("\n")
        if newline >= 0 and newline >= window * cls.NEWLINE_CUT_RATIO:
            kept = kept[:newline]
        return kept + TRUNCATION_NOTICE

    # ── Errors ────────────────────────────────────────────────────

    def format_error(
        self,
        error: BaseException,
        context: ClientContext,
        tool_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Build the verbosity-tiered error payload for a client.

        Tiers:
        - minimal: ``{error}``
        - detailed: ``{error, code, timestamp}``
        - developer: adds ``stack``, ``context`` and ``client``
        """
        caps = context.capabilities
        tier = ErrorTier.resolve(caps.output_format.value, caps.error_verbosity.value)
        payload: Dict[str, Any] = {"error": str(error) or type(error).__name__}
        if tier == ErrorTier.MINIMAL:
            return payload

        code = getattr(error, "code", None)
        payload["code"] = code if isinstance(code, str) else "UNKNOWN_ERROR"
        payload["timestamp"] = datetime.now(timezone.utc).isoformat()
        if tier == ErrorTier.DETAILED:
            return payload

        details = dict(error.details) if isinstance(error, ClientMCPError) else {}
        if tool_name:
            details.setdefault("tool", tool_name)
        payload["stack"] = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
        payload["context"] = details
        payload["client"] = context.client_name
        return payload

    def render_error(
        self,
        error: BaseException,
        context: ClientContext,
        tool_name: Optional[str] = None,
    ) -> FormattedResponse:
        """Error payload serialized, escaped and size-bounded like a result."""
        payload = self.format_error(error, context, tool_name)
        text = self.serialize(payload, context.capabilities.tool_complexity)
        return self._finish(text, context, tool_name, is_error=True, track=False)

    # ── Shared tail of the pipeline ───────────────────────────────

    def _finish(
        self,
        text: str,
        context: ClientContext,
        tool_name: Optional[str],
        is_error: bool,
        track: bool,
    ) -> FormattedResponse:
        caps = context.capabilities
        escaped = self.escape(text, caps.escape_handling)
        original_size = len(escaped)
        truncated = original_size > caps.max_response_size
        bounded = self.apply_size_limit(escaped, caps.max_response_size)
        if track:
            self._record_size(context.client_id, original_size)
        if truncated:
            logger.info(
                "Truncated %s response for %s: %d -> %d chars",
                tool_name or "unnamed", context.client_id, original_size, len(bounded),
            )
            self._publish_event(ResponseTruncated(
                client_id=context.client_id,
                tool_name=tool_name,
                original_size=original_size,
                size=len(bounded),
                max_size=caps.max_response_size,
            ))
        return FormattedResponse(
            text=bounded,
            is_error=is_error,
            truncated=truncated,
            original_size=original_size,
            size=len(bounded),
        )

    # ── Size statistics ───────────────────────────────────────────

    def _record_size(self, client_id: str, size: int) -> None:
        with self._lock:
            current = self._sizes.get(client_id, ResponseSizeStats())
            self._sizes[client_id] = current.record(size)

    def get_size_stats(self, client_id: str) -> ResponseSizeStats:
        with self._lock:
            return self._sizes.get(client_id, ResponseSizeStats())

    def average_response_size(self, client_id: str) -> float:
        return self.get_size_stats(client_id).average

    def get_response_stats(self) -> Dict[str, Dict[str, Any]]:
        """Size statistics of every client, keyed by client id."""
        with self._lock:
            return {cid: stats.to_dict() for cid, stats in self._sizes.items()}

    def reset_stats(self, client_id: Optional[str] = None) -> None:
        with self._lock:
            if client_id is None:
                self._sizes.clear()
            else:
                self._sizes.pop(client_id, None)

    def _publish_event(self, event: object) -> None:
        if self._event_publisher:
            try:
                self._event_publisher(event)
            except Exception as e:
                logger.error(f"Failed to publish event: {e}")


def _resource_field(resource: Any, *names: str) -> Any:
    for name in names:
        if isinstance(resource, Mapping):
            value = resource.get(name)
        else:
            value = getattr(resource, name, None)
        if value is not None:
            return value
    return None


def resource_complexity(resource: Any) -> Optional[str]:
    """Complexity tier of a resource from its field or ``complexity:`` tag."""
    value = _resource_field(resource, "complexity")
    if value is not None:
        return getattr(value, "value", value)
    for tag in _resource_field(resource, "tags") or ():
        if isinstance(tag, str) and tag.lower().startswith("complexity:"):
            return tag.split(":", 1)[1].strip().lower()
    return None


class ResourceFilter:
    """Hides resources a client cannot handle.

    Resources may be plain mappings (``mimeType``, ``complexity``) or
    objects exposing ``mime_type`` and ``tags`` such as fastmcp resources.
    """

    def is_visible(self, resource: Any, context: ClientContext) -> bool:
        complexity = resource_complexity(resource)
        if complexity and not context.supports_tool_complexity(complexity):
            return False
        mime_type = _resource_field(resource, "mimeType", "mime_type") or ""
        if mime_type.startswith("application/") and not context.supports(
            "supportsBinaryContent"
        ):
            return False
        if mime_type.startswith("image/") and not context.supports("supportsImages"):
            return False
        return True

    def filter_resources(
        self, resources: Iterable[Any], context: ClientContext
    ) -> List[Any]:
        return [r for r in resources if self.is_visible(r, context)]


class AdaptationManager:
    """Facade over parameter adaptation, response shaping and resource filtering."""

    def __init__(
        self,
        parameter_adapter: Optional[ParameterAdapter] = None,
        formatter: Optional[ResponseFormatter] = None,
        resource_filter: Optional[ResourceFilter] = None,
        event_publisher: Optional[Callable[[object], None]] = None,
    ) -> None:
        self.parameter_adapter = parameter_adapter or ParameterAdapter(
            event_publisher=event_publisher
        )
        self.formatter = formatter or ResponseFormatter(event_publisher=event_publisher)
        self.resource_filter = resource_filter or ResourceFilter()

    def adapt_parameters(
        self,
        tool_name: str,
        params: Optional[Mapping[str, Any]],
        context: ClientContext,
        required: Iterable[str] = (),
    ) -> Dict[str, Any]:
        return self.parameter_adapter.adapt_parameters(
            tool_name, params, context, required
        )

    def format_response(
        self,
        data: Any,
        context: ClientContext,
        tool_name: Optional[str] = None,
        is_error: bool = False,
    ) -> FormattedResponse:
        return self.formatter.format_response(data, context, tool_name, is_error)

    def format_error(
        self,
        error: BaseException,
        context: ClientContext,
        tool_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self.formatter.format_error(error, context, tool_name)

    def render_error(
        self,
        error: BaseException,
        context: ClientContext,
        tool_name: Optional[str] = None,
    ) -> FormattedResponse:
        return self.formatter.render_error(error, context, tool_name)

    def filter_resources(
        self, resources: Sequence[Any], context: ClientContext
    ) -> List[Any]:
        return self.resource_filter.filter_resources(resources, context)

    def average_response_size(self, client_id: str) -> float:
        return self.formatter.average_response_size(client_id)

    def get_response_stats(self) -> Dict[str, Dict[str, Any]]:
        return self.formatter.get_response_stats()
