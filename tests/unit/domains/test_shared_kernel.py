"""Unit tests for the shared kernel and the error hierarchy.

Run with: uv run pytest tests/unit/domains/test_shared_kernel.py -v
"""

__test__ = True

import pytest

from clientmcp.domains.shared import (
    ClientMCPError,
    ConfigurationError,
    ErrorTier,
    ToolComplexity,
    ToolIncompatibleError,
    ToolNotFoundError,
    ToolRegistryError,
    ToolTimeoutError,
)


# =============================================================================
# ToolComplexity
# =============================================================================


class TestToolComplexity:
    """Ordinal behavior of complexity tiers."""

    def test_ordering(self):
        assert ToolComplexity.LOW < ToolComplexity.MEDIUM < ToolComplexity.HIGH
        assert ToolComplexity.HIGH >= ToolComplexity.HIGH

    def test_supports_lower_and_equal_tiers(self):
        assert ToolComplexity.MEDIUM.supports(ToolComplexity.LOW)
        assert ToolComplexity.MEDIUM.supports(ToolComplexity.MEDIUM)
        assert not ToolComplexity.MEDIUM.supports(ToolComplexity.HIGH)

    @pytest.mark.parametrize("raw, expected", [
        ("high", ToolComplexity.HIGH),
        (" LOW ", ToolComplexity.LOW),
        (ToolComplexity.MEDIUM, ToolComplexity.MEDIUM),
    ])
    def test_parse(self, raw, expected):
        assert ToolComplexity.parse(raw) == expected

    def test_parse_unknown_uses_default(self):
        assert ToolComplexity.parse("extreme") == ToolComplexity.MEDIUM
        assert ToolComplexity.parse(None, default=ToolComplexity.LOW) == ToolComplexity.LOW

    def test_comparison_with_other_types_is_not_supported(self):
        with pytest.raises(TypeError):
            ToolComplexity.LOW < 2  # noqa: B015


# =============================================================================
# ErrorTier
# =============================================================================


class TestErrorTier:
    """Tier resolution from output format and error verbosity."""

    @pytest.mark.parametrize("output_format, verbosity, expected", [
        ("developer", "standard", ErrorTier.DEVELOPER),
        ("structured", "debug", ErrorTier.DEVELOPER),
        ("minimal", "standard", ErrorTier.MINIMAL),
        ("structured", "minimal", ErrorTier.MINIMAL),
        ("structured", "standard", ErrorTier.DETAILED),
        ("concise", "detailed", ErrorTier.DETAILED),
    ])
    def test_resolve(self, output_format, verbosity, expected):
        assert ErrorTier.resolve(output_format, verbosity) == expected

    def test_developer_beats_minimal(self):
        assert ErrorTier.resolve("minimal", "debug") == ErrorTier.DEVELOPER


# =============================================================================
# Errors
# =============================================================================


class TestErrors:
    """Codes, messages and details of the error hierarchy."""

    def test_hierarchy(self):
        assert issubclass(ConfigurationError, ClientMCPError)
        assert issubclass(ToolNotFoundError, ToolRegistryError)
        assert issubclass(ToolIncompatibleError, ToolRegistryError)
        assert issubclass(ToolTimeoutError, ToolRegistryError)

    def test_codes_are_distinct(self):
        codes = {
            ClientMCPError.code,
            ConfigurationError.code,
            ToolRegistryError.code,
            ToolNotFoundError.code,
            ToolIncompatibleError.code,
            ToolTimeoutError.code,
        }
        assert len(codes) == 6

    def test_configuration_error_lists_errors(self):
        err = ConfigurationError(
            "Invalid configuration", client_id="cursor",
            errors=["bad a", "bad b"], warnings=["Unknown property: x"],
        )
        assert str(err) == "Invalid configuration: bad a; bad b"
        assert err.details == {
            "clientId": "cursor",
            "errors": ["bad a", "bad b"],
            "warnings": ["Unknown property: x"],
        }

    def test_configuration_error_without_errors(self):
        assert str(ConfigurationError("Broken")) == "Broken"

    def test_tool_not_found(self):
        err = ToolNotFoundError("list_accounts")
        assert "list_accounts" in str(err)
        assert err.code == "TOOL_NOT_FOUND"
        assert err.details == {"tool": "list_accounts"}

    def test_tool_incompatible_includes_reasons(self):
        err = ToolIncompatibleError("render", "cursor", ["requires images"])
        assert "requires images" in str(err)
        assert err.details["reasons"] == ["requires images"]
        assert err.details["clientId"] == "cursor"

    def test_tool_timeout(self):
        err = ToolTimeoutError("slow_tool", 1000)
        assert "1000ms" in str(err)
        assert err.details == {"tool": "slow_tool", "timeoutMs": 1000}

    def test_base_error_has_no_details(self):
        assert ClientMCPError("x").details == {}
