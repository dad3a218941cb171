"""Unit tests for the Client Config bounded context.

Tests cover: schema validation (full and partial), deep_merge, layered
resolution, overrides and templates, adaptive settings, export/import,
configuration files and stats.

Run with: uv run pytest tests/unit/domains/test_client_config.py -v
"""

__test__ = True

import json

import pytest

from clientmcp.domains.client_config import (
    AdaptiveSettings,
    AdaptiveSettingsUpdated,
    BehaviorReport,
    CapabilityValidator,
    ClientConfigManager,
    ClientRegistered,
    ConfigTemplates,
    ConfigValidationFailed,
    InMemoryClientConfigRepository,
    OverrideApplied,
    deep_merge,
)
from clientmcp.domains.client_config.schema import FieldRule
from clientmcp.domains.shared import ConfigurationError


ACME = {
    "id": "acme",
    "name": "Acme Assistant",
    "maxToolsPerCall": 10,
    "timeoutMs": 30000,
    "maxConcurrentTools": 2,
    "maxResponseSize": 50000,
}


@pytest.fixture
def manager(event_log):
    return ClientConfigManager(event_publisher=event_log.append)


# =============================================================================
# Validator
# =============================================================================


class TestCapabilityValidator:
    """Schema validation rules."""

    @pytest.fixture
    def validator(self):
        return CapabilityValidator()

    def test_valid_record_gets_defaults(self, validator):
        result = validator.validate({"id": "x", "name": "X"})
        assert result.valid
        assert result.config["maxToolsPerCall"] == 10
        assert result.config["outputFormat"] == "structured"
        assert result.config["rateLimit"] == {
            "requests": 60, "window": 60000, "burstLimit": 10,
        }

    def test_missing_required(self, validator):
        result = validator.validate({"id": "x"})
        assert not result.valid
        assert "Required field missing: name" in result.errors

    def test_wrong_type_is_omitted_not_defaulted(self, validator):
        result = validator.validate({"id": "x", "name": "X", "maxToolsPerCall": "ten"})
        assert not result.valid
        assert "maxToolsPerCall" not in result.config
        assert any("expected number, got string" in e for e in result.errors)

    def test_boolean_is_not_a_number(self, validator):
        result = validator.validate({"maxToolsPerCall": True}, partial=True)
        assert not result.valid

    def test_out_of_range(self, validator):
        result = validator.validate({"maxToolsPerCall": 51}, partial=True)
        assert any("above maximum" in e for e in result.errors)
        result = validator.validate({"timeoutMs": 10}, partial=True)
        assert any("below minimum" in e for e in result.errors)

    def test_enum(self, validator):
        result = validator.validate({"outputFormat": "fancy"}, partial=True)
        assert not result.valid
        assert "allowed: minimal, concise, structured, developer" in result.errors[0]

    def test_nested_error_path(self, validator):
        result = validator.validate({"rateLimit": {"window": 10}}, partial=True)
        assert any("rateLimit.window" in e for e in result.errors)

    def test_unknown_keys_pass_through_with_warning(self, validator):
        result = validator.validate({"custom": {"a": 1}}, partial=True)
        assert result.valid
        assert result.config == {"custom": {"a": 1}}
        assert result.warnings == ("Unknown property: custom",)

    def test_partial_mode_adds_nothing(self, validator):
        result = validator.validate({"maxToolsPerCall": 3}, partial=True)
        assert result.config == {"maxToolsPerCall": 3}

    def test_root_must_be_object(self, validator):
        result = validator.validate(["not", "a", "record"])
        assert not result.valid
        assert "expected object, got array" in result.errors[0]

    def test_input_is_not_mutated(self, validator):
        record = {"id": "x", "name": "X", "rateLimit": {"requests": 5}}
        snapshot = json.dumps(record, sort_keys=True)
        validator.validate(record)
        assert json.dumps(record, sort_keys=True) == snapshot

    def test_deterministic(self, validator):
        record = {"id": "x", "name": "X", "bogus": 1, "maxToolsPerCall": 0}
        assert validator.validate(record) == validator.validate(record)

    def test_field_rule_validates_itself(self):
        with pytest.raises(ValueError):
            FieldRule("integer")
        with pytest.raises(ValueError):
            FieldRule("number", min=5, max=1)


# =============================================================================
# deep_merge
# =============================================================================


class TestDeepMerge:
    """Layer merging."""

    def test_nested_objects_merge(self):
        merged = deep_merge(
            {"rateLimit": {"requests": 10, "window": 1000}},
            {"rateLimit": {"requests": 20}},
        )
        assert merged == {"rateLimit": {"requests": 20, "window": 1000}}

    def test_scalars_replace_and_none_layers_skip(self):
        assert deep_merge({"a": 1}, None, {"a": 2}) == {"a": 2}

    def test_inputs_not_mutated(self):
        base = {"features": {"pagination": True}}
        deep_merge(base, {"features": {"pagination": False}})
        assert base == {"features": {"pagination": True}}


# =============================================================================
# Resolution, overrides and templates
# =============================================================================


class TestConfigResolution:
    """Layered reads and explicit overrides."""

    def test_profile_base(self, manager):
        config = manager.get_config("cursor")
        assert config["id"] == "cursor"
        assert config["maxToolsPerCall"] == 5
        assert config["outputFormat"] == "concise"
        assert config["features"]["subscriptions"] is True
        assert config["ui"]["theme"] == "auto"

    def test_unknown_client_uses_generic(self, manager):
        assert manager.get_config("mystery")["id"] == "generic"

    def test_override_wins_and_merges(self, manager, event_log):
        manager.set_override("cursor", {"maxToolsPerCall": 3, "rateLimit": {"requests": 5}})
        config = manager.get_config("cursor")
        assert config["maxToolsPerCall"] == 3
        assert config["rateLimit"]["requests"] == 5
        assert config["rateLimit"]["window"] == 60000
        assert isinstance(event_log[-1], OverrideApplied)

    def test_invalid_override_commits_nothing(self, manager, event_log):
        with pytest.raises(ConfigurationError) as exc_info:
            manager.set_override("cursor", {"maxToolsPerCall": 3, "outputFormat": "fancy"})
        assert exc_info.value.client_id == "cursor"
        assert manager.get_override("cursor") == {}
        assert isinstance(event_log[-1], ConfigValidationFailed)

    def test_override_replaces_previous_override(self, manager):
        manager.set_override("cursor", {"maxToolsPerCall": 3})
        manager.set_override("cursor", {"outputFormat": "developer"})
        assert manager.get_override("cursor") == {"outputFormat": "developer"}
        assert manager.get_config("cursor")["maxToolsPerCall"] == 5

    def test_clear_override(self, manager):
        manager.set_override("cursor", {"maxToolsPerCall": 3})
        manager.clear_override("cursor")
        assert manager.get_config("cursor")["maxToolsPerCall"] == 5

    def test_invalid_merged_field_is_dropped(self, event_log):
        repository = InMemoryClientConfigRepository()
        manager = ClientConfigManager(repository=repository, event_publisher=event_log.append)
        repository.save_override("cursor", {"maxToolsPerCall": 99})
        config = manager.get_config("cursor")
        assert "maxToolsPerCall" not in config
        assert any(isinstance(e, ConfigValidationFailed) for e in event_log)

    def test_register_client(self, manager, event_log):
        record = manager.register_client(ACME)
        assert record["outputFormat"] == "structured"
        assert manager.get_config("acme")["name"] == "Acme Assistant"
        assert "acme" in manager.known_client_ids()
        assert isinstance(event_log[-1], ClientRegistered)

    def test_register_incomplete_client_rejected(self, manager):
        with pytest.raises(ConfigurationError):
            manager.register_client({"id": "half"})
        assert manager.get_config("half")["id"] == "generic"

    @pytest.mark.parametrize("client_id", ["cursor", "continue", "mystery"])
    def test_get_config_is_idempotent(self, manager, client_id):
        manager.set_override("cursor", {"maxToolsPerCall": 3, "rateLimit": {"requests": 5}})
        manager.update_adaptive_settings("cursor", BehaviorReport(error_rate=0.25))
        first = manager.get_config(client_id)
        first["maxToolsPerCall"] = 42
        first["rateLimit"]["requests"] = 999
        assert manager.get_config(client_id) == manager.get_config(client_id)
        assert manager.get_config(client_id)["maxToolsPerCall"] != 42
        assert manager.get_config(client_id)["rateLimit"]["requests"] != 999

    def test_get_patch_merges_override_and_adaptive(self, manager):
        manager.set_override("cursor", {"maxToolsPerCall": 3, "outputFormat": "developer"})
        manager.set_adaptive_settings("cursor", {"maxToolsPerCall": 2})
        assert manager.get_patch("cursor") == {"maxToolsPerCall": 2, "outputFormat": "developer"}


class TestTemplates:
    """Built-in and registered templates."""

    def test_builtin_names(self, manager):
        assert manager.list_templates() == [
            "minimal", "standard", "advanced", "mobile", "enterprise",
        ]

    def test_templates_validate_in_patch_mode(self):
        validator = CapabilityValidator()
        for name, patch in ConfigTemplates.builtin().items():
            assert validator.validate(patch, partial=True).valid, name

    def test_get_returns_copy(self, manager):
        manager.get_template("minimal")["maxToolsPerCall"] = 42
        assert manager.get_template("minimal")["maxToolsPerCall"] == 3

    def test_unknown_name_gives_standard(self, manager):
        assert manager.get_template("nope") == ConfigTemplates.standard()

    def test_apply_template(self, manager, event_log):
        manager.apply_template("cursor", "mobile")
        config = manager.get_config("cursor")
        assert config["maxResponseSize"] == 25000
        assert config["escapeHandling"] == "minimal"
        assert event_log[-1].template == "mobile"

    def test_register_template(self, manager):
        manager.register_template("tiny", {"maxToolsPerCall": 2})
        manager.apply_template("cursor", "tiny")
        assert manager.get_config("cursor")["maxToolsPerCall"] == 2

    def test_register_invalid_template(self, manager):
        with pytest.raises(ConfigurationError):
            manager.register_template("bad", {"maxToolsPerCall": 0})
        assert "bad" not in manager.list_templates()


# =============================================================================
# Adaptive settings
# =============================================================================


class TestAdaptiveSettings:
    """Behavior-derived configuration changes."""

    def test_all_rules(self, manager, event_log):
        manager.register_client(ACME)
        settings = manager.update_adaptive_settings("acme", {
            "errorRate": 0.25, "avgResponseTime": 8000, "avgResponseSize": 60000,
        })
        assert settings.settings == {
            "maxToolsPerCall": 8,
            "timeoutMs": 36000,
            "maxConcurrentTools": 1,
            "outputFormat": "concise",
            "maxResponseSize": 72000,
        }
        assert settings.revision == 1
        config = manager.get_config("acme")
        assert config["maxToolsPerCall"] == 8
        assert config["outputFormat"] == "concise"
        assert isinstance(event_log[-1], AdaptiveSettingsUpdated)

    def test_rules_compound_from_adaptive_layer(self, manager):
        manager.register_client(ACME)
        report = BehaviorReport(error_rate=0.25)
        manager.update_adaptive_settings("acme", report)
        second = manager.update_adaptive_settings("acme", report)
        assert second.settings["maxToolsPerCall"] == 6
        assert second.settings["timeoutMs"] == 43200
        assert second.revision == 2

    def test_limits(self, manager):
        manager.set_override("cursor", {"maxToolsPerCall": 1, "timeoutMs": 55000})
        settings = manager.update_adaptive_settings("cursor", {"errorRate": 0.5})
        assert settings.settings["maxToolsPerCall"] == 1
        assert settings.settings["timeoutMs"] == 60000

    def test_response_size_capped(self, manager):
        settings = manager.update_adaptive_settings("cursor", {"avgResponseSize": 95000})
        assert settings.settings["maxResponseSize"] == 100000

    def test_healthy_behavior_changes_nothing(self, manager):
        settings = manager.update_adaptive_settings("cursor", {
            "errorRate": 0.05, "avgResponseTime": 100, "avgResponseSize": 100,
        })
        assert settings.settings == {}
        assert manager.get_config("cursor")["maxToolsPerCall"] == 5

    def test_profile_client_starts_from_profile(self, manager):
        settings = manager.update_adaptive_settings("generic", {"errorRate": 0.2})
        assert settings.settings["maxToolsPerCall"] == 4

    def test_adaptive_beats_override(self, manager):
        manager.set_override("cursor", {"maxToolsPerCall": 5})
        manager.update_adaptive_settings("cursor", {"errorRate": 0.5})
        assert manager.get_config("cursor")["maxToolsPerCall"] == 4

    def test_report_validation(self):
        with pytest.raises(ValueError):
            BehaviorReport(error_rate=1.5)
        assert BehaviorReport.from_mapping({"errorRate": "x"}).error_rate == 0.0

    def test_settings_are_frozen_copies(self):
        patch = {"maxToolsPerCall": 3}
        settings = AdaptiveSettings(client_id="cursor", settings=patch)
        patch["maxToolsPerCall"] = 9
        assert settings.settings["maxToolsPerCall"] == 3
        assert settings.to_dict()["revision"] == 1


# =============================================================================
# Export / import
# =============================================================================


class TestExportImport:
    """Configuration export envelopes."""

    def test_export_shape(self, manager):
        manager.set_override("cursor", {"maxToolsPerCall": 3})
        envelope = manager.export_config("cursor")
        assert set(envelope) == {
            "exportedAt", "clientId", "config", "overrides", "adaptiveSettings",
        }
        assert envelope["overrides"] == {"maxToolsPerCall": 3}
        assert envelope["config"]["maxToolsPerCall"] == 3
        json.dumps(envelope)

    def test_import_restores_layers(self, manager):
        manager.set_override("cursor", {"maxToolsPerCall": 3})
        manager.update_adaptive_settings("cursor", {"avgResponseSize": 60000})
        envelope = manager.export_config("cursor")

        fresh = ClientConfigManager()
        assert fresh.import_config(envelope) == "cursor"
        assert fresh.get_config("cursor") == manager.get_config("cursor")
        assert fresh.get_override("cursor") == {"maxToolsPerCall": 3}
        assert fresh.get_adaptive_settings("cursor").settings["outputFormat"] == "concise"

    def test_invalid_part_commits_nothing(self, manager):
        envelope = {
            "clientId": "acme",
            "config": dict(ACME),
            "overrides": {"maxToolsPerCall": 0},
        }
        with pytest.raises(ConfigurationError):
            manager.import_config(envelope)
        assert manager.get_config("acme")["id"] == "generic"

    @pytest.mark.parametrize("envelope", [
        None,
        {},
        {"clientId": ""},
        {"clientId": 7},
    ])
    def test_malformed_envelope(self, manager, envelope):
        with pytest.raises(ConfigurationError):
            manager.import_config(envelope)

    def test_import_without_adaptive_clears_it(self, manager):
        manager.update_adaptive_settings("cursor", {"errorRate": 0.5})
        manager.import_config({"clientId": "cursor"})
        assert manager.get_adaptive_settings("cursor") is None


# =============================================================================
# Files and stats
# =============================================================================


class TestConfigFiles:
    """Loading YAML and JSON configuration documents."""

    def test_load_yaml(self, manager, tmp_path):
        path = tmp_path / "clients.yaml"
        path.write_text(
            "clients:\n"
            "  - id: acme\n"
            "    name: Acme Assistant\n"
            "    maxToolsPerCall: 4\n"
            "overrides:\n"
            "  cursor:\n"
            "    outputFormat: developer\n"
            "templates:\n"
            "  tiny:\n"
            "    maxToolsPerCall: 2\n",
            encoding="utf-8",
        )
        counts = manager.load_file(path)
        assert counts == {"clients": 1, "overrides": 1, "templates": 1}
        assert manager.get_config("acme")["maxToolsPerCall"] == 4
        assert manager.get_config("cursor")["outputFormat"] == "developer"
        assert "tiny" in manager.list_templates()

    def test_load_json(self, manager, tmp_path):
        path = tmp_path / "clients.json"
        path.write_text(json.dumps({"overrides": {"vscode": {"maxToolsPerCall": 2}}}))
        manager.load_file(str(path))
        assert manager.get_config("vscode")["maxToolsPerCall"] == 2

    def test_empty_file(self, manager, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert manager.load_file(path) == {"clients": 0, "overrides": 0, "templates": 0}

    def test_invalid_document(self, manager, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("clients: {id: acme}\n")
        with pytest.raises(ConfigurationError):
            manager.load_file(path)

    def test_invalid_entry(self, manager, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("overrides:\n  cursor:\n    maxToolsPerCall: 0\n")
        with pytest.raises(ConfigurationError):
            manager.load_file(path)


class TestConfigStats:
    """get_stats summary."""

    def test_stats(self, manager):
        manager.register_client(ACME)
        manager.set_override("cursor", {"maxToolsPerCall": 3})
        manager.set_override("vscode", {"maxToolsPerCall": 4, "outputFormat": "concise"})
        manager.update_adaptive_settings("vscode", {"errorRate": 0.5})
        stats = manager.get_stats()
        assert stats["totalConfigs"] == 9
        assert stats["totalOverrides"] == 2
        assert stats["adaptiveClients"] == 1
        assert stats["mostOverriddenSettings"][0] == {
            "setting": "maxToolsPerCall", "count": 2,
        }
        assert sum(stats["configsByComplexity"].values()) == 9

    def test_reset(self, manager):
        manager.register_client(ACME)
        manager.register_template("tiny", {"maxToolsPerCall": 2})
        manager.reset()
        assert manager.get_config("acme")["id"] == "generic"
        assert "tiny" not in manager.list_templates()
