"""Unit tests for the Adaptation bounded context.

Tests cover: parameter clamping and simplification, output modes,
serialization, escaping, size limiting, tiered error payloads, response
size statistics and resource filtering.

Run with: uv run pytest tests/unit/domains/test_adaptation.py -v
"""

__test__ = True

import json
from datetime import datetime
from types import SimpleNamespace

import pytest

from clientmcp.domains.adaptation import (
    TRUNCATION_NOTICE,
    AdaptationManager,
    ParameterAdapter,
    ParametersAdapted,
    ResourceFilter,
    ResponseFormatter,
    ResponseTruncated,
)
from clientmcp.domains.adaptation.services import resource_complexity
from clientmcp.domains.shared import (
    ConfigurationError,
    EscapeStrategy,
    ToolComplexity,
    ToolIncompatibleError,
)

ACCOUNTS = [
    {"id": "acc-1", "name": "Checking", "type": "account", "status": "active", "iban": "X1"},
    {"id": "acc-2", "name": "Savings", "type": "account", "status": "frozen", "iban": "X2"},
]


@pytest.fixture
def formatter(event_log):
    return ResponseFormatter(event_publisher=event_log.append)


# =============================================================================
# ParameterAdapter
# =============================================================================


class TestParameterAdapter:
    """Request-side adaptation."""

    @pytest.fixture
    def adapter(self, event_log):
        return ParameterAdapter(event_publisher=event_log.append)

    def test_clamps_to_medium_ceiling(self, adapter, generic_context, event_log):
        params = {"limit": 500, "page": 3}
        adapted = adapter.adapt_parameters("list_accounts", params, generic_context)
        assert adapted == {"limit": 25, "page": 3}
        assert params == {"limit": 500, "page": 3}
        assert isinstance(event_log[-1], ParametersAdapted)
        assert event_log[-1].clamped == ("limit",)

    def test_high_ceiling(self, adapter, claude_context):
        adapted = adapter.adapt_parameters(
            "t", {"pageSize": 500, "max_results": 50}, claude_context
        )
        assert adapted == {"pageSize": 100, "max_results": 50}

    def test_low_tier_keeps_essential_keys_only(self, adapter, continue_context, event_log):
        adapted = adapter.adapt_parameters(
            "t", {"limit": 500, "offset": 10, "id": 1, "filter": "x"}, continue_context
        )
        assert adapted == {"limit": 10, "offset": 10, "id": 1}
        assert event_log[-1].dropped == ("filter",)

    def test_low_tier_keeps_required_keys(self, adapter, continue_context, event_log):
        adapted = adapter.adapt_parameters(
            "recommend_tools",
            {"operation": "list", "entity": "account", "limit": 50},
            continue_context,
            required=["operation"],
        )
        assert adapted == {"operation": "list", "limit": 10}
        assert event_log[-1].dropped == ("entity",)

    def test_required_keys_do_not_matter_above_low_tier(self, adapter, generic_context):
        params = {"operation": "list", "entity": "account"}
        assert adapter.adapt_parameters("t", params, generic_context, required=["x"]) == params

    def test_non_numeric_values_untouched(self, adapter, generic_context):
        adapted = adapter.adapt_parameters("t", {"limit": "500", "maxResults": True}, generic_context)
        assert adapted == {"limit": "500", "maxResults": True}

    def test_no_event_when_unchanged(self, adapter, generic_context, event_log):
        adapter.adapt_parameters("t", {"limit": 5}, generic_context)
        assert adapter.adapt_parameters("t", None, generic_context) == {}
        assert event_log == []


# =============================================================================
# Output modes
# =============================================================================


class TestOutputModes:
    """Result shaping per outputFormat."""

    def test_structured_list(self, formatter, raw_context):
        response = formatter.format_response(ACCOUNTS, raw_context)
        payload = json.loads(response.text)
        assert payload["type"] == "list"
        assert payload["count"] == 2
        assert payload["items"][0]["iban"] == "X1"
        assert "\n  " in response.text

    def test_structured_object_and_scalar(self, formatter, raw_context):
        payload = json.loads(formatter.format_response({"a": 1}, raw_context).text)
        assert payload == {"type": "object", "data": {"a": 1}}
        assert formatter.format_response(42, raw_context).text == "42"

    def test_strings_pass_through(self, formatter, raw_context):
        assert formatter.format_response("plain text", raw_context).text == "plain text"

    def test_minimal(self, formatter, context_factory):
        context = context_factory("generic", {"outputFormat": "minimal", "escapeHandling": "none"})
        items = json.loads(formatter.format_response(ACCOUNTS, context).text)
        assert items[0] == {"id": "acc-1", "name": "Checking", "status": "active", "type": "account"}
        weird = json.loads(formatter.format_response({"foo": 1}, context).text)
        assert weird == {"foo": 1}

    def test_concise(self, formatter, context_factory):
        context = context_factory("cursor", {"escapeHandling": "none"})
        text = formatter.format_response(ACCOUNTS, context).text
        assert text == "acc-1 (account) - active\nacc-2 (account) - frozen"

    def test_concise_caps_items(self, formatter, context_factory):
        context = context_factory("cursor", {"escapeHandling": "none"})
        items = [{"title": f"t{i}"} for i in range(12)] + [{"x": 1}]
        lines = formatter.format_response(items, context).text.split("\n")
        assert len(lines) == 11
        assert lines[0] == "t0"
        assert lines[-1] == "... (3 more)"
        assert formatter.format_response({"x": 1}, context).text == "unknown"

    def test_developer(self, formatter, context_factory):
        context = context_factory("vscode", {"escapeHandling": "none"})
        text = formatter.format_response(ACCOUNTS, context, tool_name="list_accounts").text
        assert text.startswith("=== list_accounts ===\nClient: Visual Studio Code | Time: ")
        assert '"iban": "X1"' in text


# =============================================================================
# Serialization, escaping and size limits
# =============================================================================


class TestSerializationAndEscaping:
    """Text encoding of shaped results."""

    def test_low_tier_is_compact(self):
        assert ResponseFormatter.serialize({"a": [1, 2]}, ToolComplexity.LOW) == '{"a":[1,2]}'

    def test_other_tiers_are_indented(self):
        assert ResponseFormatter.serialize({"a": 1}, ToolComplexity.HIGH) == '{\n  "a": 1\n}'

    def test_non_json_values_are_stringified(self):
        text = ResponseFormatter.serialize({"when": datetime(2026, 1, 2)}, ToolComplexity.LOW)
        assert text == '{"when":"2026-01-02 00:00:00"}'

    @pytest.mark.parametrize("strategy, expected", [
        (EscapeStrategy.NONE, 'say "hi"\n\\'),
        (EscapeStrategy.MINIMAL, 'say \\"hi\\"\n\\\\'),
        (EscapeStrategy.STANDARD, 'say \\"hi\\"\\n\\\\'),
        (EscapeStrategy.JSON, json.dumps('say "hi"\n\\')),
    ])
    def test_escape(self, strategy, expected):
        assert ResponseFormatter.escape('say "hi"\n\\', strategy) == expected

    def test_markdown_escape(self):
        assert ResponseFormatter.escape("*bold* [x]", EscapeStrategy.MARKDOWN) == r"\*bold\* \[x\]"


class TestSizeLimit:
    """Truncation with a visible notice."""

    def test_short_text_unchanged(self):
        assert ResponseFormatter.apply_size_limit("abc", 1000) == "abc"

    def test_cut_at_late_newline(self):
        text = "a" * 900 + "\n" + "b" * 500
        assert ResponseFormatter.apply_size_limit(text, 1100) == "a" * 900 + TRUNCATION_NOTICE

    def test_hard_cut_when_newline_is_early(self):
        text = "a" * 100 + "\n" + "b" * 2000
        result = ResponseFormatter.apply_size_limit(text, 1100)
        assert result == text[:1000] + TRUNCATION_NOTICE

    @pytest.mark.parametrize("max_size", [1000, 1001, 1500, 4096, 25000])
    @pytest.mark.parametrize("newline_at", [None, 0, 10, 500, 850, 899, 5000])
    def test_truncated_length_is_bounded(self, max_size, newline_at):
        chars = ["z"] * (max_size * 3)
        if newline_at is not None:
            chars[min(newline_at, max_size - 101)] = "\n"
        text = "".join(chars)
        result = ResponseFormatter.apply_size_limit(text, max_size)
        assert result.endswith(TRUNCATION_NOTICE)
        kept = result[: -len(TRUNCATION_NOTICE)]
        assert text.startswith(kept)
        assert len(kept) <= max_size - ResponseFormatter.TRUNCATION_MARGIN
        assert len(result) <= max_size

    def test_format_response_truncates_and_reports(self, formatter, context_factory, event_log):
        context = context_factory("generic", {"maxResponseSize": 1000, "escapeHandling": "none"})
        response = formatter.format_response("x" * 5000, context, tool_name="dump")
        assert response.truncated is True
        assert response.original_size == 5000
        assert response.text.endswith(TRUNCATION_NOTICE)
        assert response.size == 900 + len(TRUNCATION_NOTICE)
        event = event_log[-1]
        assert isinstance(event, ResponseTruncated)
        assert event.max_size == 1000

    def test_size_measured_after_escaping(self, formatter, context_factory):
        context = context_factory("generic", {"maxResponseSize": 1000})
        response = formatter.format_response("\n" * 600, context)
        assert response.original_size == 1200
        assert response.truncated is True

    def test_size_stats(self, formatter, raw_context):
        formatter.format_response("a" * 10, raw_context)
        formatter.format_response("a" * 30, raw_context)
        stats = formatter.get_size_stats("generic")
        assert stats.count == 2
        assert stats.max == 30
        assert formatter.average_response_size("generic") == 20
        assert formatter.get_response_stats() == {
            "generic": {"count": 2, "totalSize": 40, "maxSize": 30, "avgSize": 20.0},
        }
        formatter.reset_stats("generic")
        assert formatter.get_size_stats("generic").count == 0


# =============================================================================
# Errors
# =============================================================================


class TestErrorFormatting:
    """Verbosity-tiered error payloads."""

    def test_detailed_tier(self, formatter, generic_context):
        payload = formatter.format_error(ConfigurationError("bad config"), generic_context)
        assert set(payload) == {"error", "code", "timestamp"}
        assert payload["code"] == "CONFIGURATION_ERROR"

    def test_unknown_error_code(self, formatter, generic_context):
        assert formatter.format_error(ValueError("x"), generic_context)["code"] == "UNKNOWN_ERROR"

    def test_minimal_tier(self, formatter, continue_context):
        assert formatter.format_error(RuntimeError("nope"), continue_context) == {"error": "nope"}

    def test_empty_message_uses_type_name(self, formatter, continue_context):
        assert formatter.format_error(KeyError(), continue_context) == {"error": "KeyError"}

    def test_developer_tier(self, formatter, context_factory):
        context = context_factory("vscode")
        try:
            raise ToolIncompatibleError("render", "vscode", ["requires images"])
        except ToolIncompatibleError as e:
            payload = formatter.format_error(e, context, tool_name="render")
        assert payload["code"] == "TOOL_INCOMPATIBLE"
        assert "Traceback" in payload["stack"]
        assert payload["context"]["reasons"] == ["requires images"]
        assert payload["client"] == "Visual Studio Code"

    def test_debug_verbosity_gives_developer_tier(self, formatter, context_factory):
        context = context_factory("generic", {"errorVerbosity": "debug"})
        payload = formatter.format_error(RuntimeError("x"), context, tool_name="t")
        assert payload["context"] == {"tool": "t"}

    def test_render_error_is_not_counted(self, formatter, generic_context):
        response = formatter.render_error(RuntimeError("boom"), generic_context)
        assert response.is_error is True
        assert "boom" in response.text
        assert formatter.get_size_stats("generic").count == 0


# =============================================================================
# Resources
# =============================================================================


class TestResourceFilter:
    """Resource visibility per client."""

    RESOURCES = [
        {"uri": "r://text", "mimeType": "text/plain"},
        {"uri": "r://pdf", "mimeType": "application/pdf"},
        {"uri": "r://png", "mimeType": "image/png"},
        {"uri": "r://deep", "mimeType": "text/plain", "complexity": "high"},
    ]

    def test_generic_client(self, generic_context):
        visible = ResourceFilter().filter_resources(self.RESOURCES, generic_context)
        assert [r["uri"] for r in visible] == ["r://text"]

    def test_claude_sees_everything(self, claude_context):
        visible = ResourceFilter().filter_resources(self.RESOURCES, claude_context)
        assert len(visible) == 4

    def test_objects_with_tags(self, generic_context):
        resource = SimpleNamespace(mime_type="text/plain", tags={"complexity:high"})
        assert resource_complexity(resource) == "high"
        assert not ResourceFilter().is_visible(resource, generic_context)

    def test_missing_mime_type_is_visible(self, generic_context):
        assert ResourceFilter().is_visible({"uri": "r://x"}, generic_context)


class TestAdaptationManager:
    """Facade wiring."""

    def test_facade(self, generic_context, event_log):
        manager = AdaptationManager(event_publisher=event_log.append)
        assert manager.adapt_parameters("t", {"limit": 99}, generic_context) == {"limit": 25}
        response = manager.format_response({"a": 1}, generic_context)
        assert response.original_size == len(response.text)
        assert manager.average_response_size("generic") == response.original_size
        assert "generic" in manager.get_response_stats()
        assert manager.filter_resources([{"mimeType": "image/png"}], generic_context) == []
