"""Client Config Domain Services.

ClientConfigManager keeps three immutable layers per client id and merges
them on every read:

    base (registered record or profile-derived) -> override -> adaptive

Later layers overwrite scalars and merge object fields recursively. The
merged record is validated again on read and any field that fails
validation is dropped from the result (it is neither reverted to an
earlier layer's value nor to the schema default).

Writes (``set_override``, ``register_client``, ``import_config``) validate
the whole input first and commit nothing if any error is found.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import yaml

from ..client_profile.aggregates import ClientProfile, ClientProfiles
from ..shared.errors import ConfigurationError
from .aggregates import ConfigTemplates
from .events import (
    AdaptiveSettingsUpdated,
    ClientRegistered,
    ConfigValidationFailed,
    OverrideApplied,
)
from .repository import ClientConfigRepository, InMemoryClientConfigRepository
from .schema import CLIENT_CONFIG_SCHEMA, UI_SCHEMA
from .validator import CapabilityValidator, ValidationResult
from .value_objects import AdaptiveSettings, BehaviorReport

logger = logging.getLogger(__name__)

ConfigRecord = Dict[str, Any]


def deep_merge(*layers: Optional[Mapping[str, Any]]) -> ConfigRecord:
    """Merge mappings left to right into a new dict.

    Scalars and lists from later layers replace earlier values; mappings
    are merged recursively. Inputs are never mutated.
    """
    result: ConfigRecord = {}
    for layer in layers:
        if not layer:
            continue
        for key, value in layer.items():
            current = result.get(key)
            if isinstance(value, Mapping) and isinstance(current, Mapping):
                result[key] = deep_merge(current, value)
            elif isinstance(value, Mapping):
                result[key] = deep_merge(value)
            else:
                result[key] = copy.deepcopy(value)
    return result


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _schema_defaults(schema: Mapping[str, Any]) -> ConfigRecord:
    return {k: copy.deepcopy(r.default) for k, r in schema.items()}


class ClientConfigManager:
    """Domain service owning the layered configuration of every client.

    Thread safety: every read-modify-write runs under a per-client
    ``threading.RLock``. Reads snapshot the layers under the lock and
    merge outside it.

    Attributes:
        _repository: Layer storage.
        _validator: Schema validator.
        _profiles: Profile catalog used to derive base layers.
        _templates: Named override templates (built-in plus loaded).
        _event_publisher: Optional callback for domain events.
    """

    def __init__(
        self,
        repository: Optional[ClientConfigRepository] = None,
        validator: Optional[CapabilityValidator] = None,
        profiles: Optional[List[ClientProfile]] = None,
        event_publisher: Optional[Callable[[object], None]] = None,
    ) -> None:
        self._repository = repository or InMemoryClientConfigRepository()
        self._validator = validator or CapabilityValidator()
        self._profiles: Dict[str, ClientProfile] = {
            p.id: p for p in (profiles or ClientProfiles.ordered())
        }
        self._templates: Dict[str, ConfigRecord] = ConfigTemplates.builtin()
        self._event_publisher = event_publisher
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    # ── Base layer ────────────────────────────────────────────────

    @staticmethod
    def profile_config(profile: ClientProfile) -> ConfigRecord:
        """Derive the base config record for a built-in profile."""
        caps = profile.capabilities
        complexity = caps.tool_complexity.value
        record: ConfigRecord = {
            "id": profile.id,
            "name": profile.name,
            "version": "1.0.0",
        }
        record.update(caps.to_dict())
        record["maxConcurrentTools"] = caps.concurrent_tools
        record["features"] = {
            "pagination": True,
            "subscriptions": caps.supports_streaming,
            "templates": complexity == "high",
            "analytics": complexity != "low",
        }
        record["ui"] = _schema_defaults(UI_SCHEMA)
        return record

    def base_config(self, client_id: str) -> ConfigRecord:
        """Return a copy of the base layer for ``client_id``.

        Registered records win over profile-derived ones; unknown ids fall
        back to the generic profile.
        """
        registered = self._repository.get_base(client_id)
        if registered is not None:
            return copy.deepcopy(registered)
        profile = self._profiles.get(client_id)
        if profile is not None:
            return self.profile_config(profile)
        generic = ClientProfiles.default()
        registered = self._repository.get_base(generic.id)
        if registered is not None:
            return copy.deepcopy(registered)
        return self.profile_config(generic)

    def known_client_ids(self) -> List[str]:
        """Profile ids followed by registered ids, without duplicates."""
        ids = list(self._profiles)
        ids.extend(i for i in self._repository.base_ids() if i not in self._profiles)
        return ids

    # ── Reads ─────────────────────────────────────────────────────

    def get_layers(
        self, client_id: str
    ) -> Tuple[ConfigRecord, ConfigRecord, ConfigRecord]:
        """Snapshot (base, override, adaptive) for ``client_id``."""
        with self._lock_for(client_id):
            base = self.base_config(client_id)
            override = copy.deepcopy(self._repository.get_override(client_id) or {})
            adaptive = self._repository.get_adaptive(client_id)
        return base, override, adaptive.as_patch() if adaptive else {}

    def resolve(self, client_id: str) -> ValidationResult:
        """Merge and validate all layers, returning the full result."""
        base, override, adaptive = self.get_layers(client_id)
        result = self._validator.validate(deep_merge(base, override, adaptive))
        if result.errors:
            logger.warning(
                "Config for %s has invalid fields (dropped): %s",
                client_id, "; ".join(result.errors),
            )
            self._publish_event(ConfigValidationFailed(
                client_id=client_id,
                operation="get_config",
                errors=list(result.errors),
            ))
        return result

    def get_config(self, client_id: str) -> ConfigRecord:
        """Return the effective, validated config for ``client_id``.

        Never fails. Fields that do not validate are dropped.
        """
        return self.resolve(client_id).config

    def get_override(self, client_id: str) -> ConfigRecord:
        with self._lock_for(client_id):
            return copy.deepcopy(self._repository.get_override(client_id) or {})

    def get_adaptive_settings(self, client_id: str) -> Optional[AdaptiveSettings]:
        with self._lock_for(client_id):
            return self._repository.get_adaptive(client_id)

    def get_patch(self, client_id: str) -> ConfigRecord:
        """Override merged with adaptive: the explicitly set layers."""
        _, override, adaptive = self.get_layers(client_id)
        return deep_merge(override, adaptive)

    # ── Writes ────────────────────────────────────────────────────

    def set_override(
        self, client_id: str, patch: Mapping[str, Any], template: str = ""
    ) -> ConfigRecord:
        """Replace the override layer of ``client_id``.

        Args:
            client_id: Target client id.
            patch: Partial capability record.
            template: Template name, recorded in the emitted event.

        Returns:
            The stored (validated) override.

        Raises:
            ConfigurationError: If any field fails validation.
        """
        result = self._validate_write(client_id, patch, "set_override", partial=True)
        with self._lock_for(client_id):
            self._repository.save_override(client_id, copy.deepcopy(result.config))
        logger.info("Override set for %s: %s", client_id, sorted(result.config))
        self._publish_event(OverrideApplied(
            client_id=client_id, keys=sorted(result.config), template=template,
        ))
        return copy.deepcopy(result.config)

    def clear_override(self, client_id: str) -> None:
        with self._lock_for(client_id):
            self._repository.delete_override(client_id)
        self._publish_event(OverrideApplied(client_id=client_id, keys=[]))

    def register_client(
        self, record: Mapping[str, Any], source: str = "api"
    ) -> ConfigRecord:
        """Register a complete client config as the base layer for its id.

        Raises:
            ConfigurationError: If the record fails full validation.
        """
        client_id = record.get("id") if isinstance(record, Mapping) else None
        client_id = client_id if isinstance(client_id, str) else "<unknown>"
        result = self._validate_write(client_id, record, "register_client")
        self._store_base(client_id, result.config, source)
        return copy.deepcopy(result.config)

    def _store_base(self, client_id: str, record: ConfigRecord, source: str) -> None:
        with self._lock_for(client_id):
            self._repository.save_base(client_id, copy.deepcopy(record))
        logger.info("Registered client config %s (%s)", client_id, source)
        self._publish_event(ClientRegistered(client_id=client_id, source=source))

    def update_adaptive_settings(
        self,
        client_id: str,
        behavior: Union[BehaviorReport, Mapping[str, Any]],
    ) -> AdaptiveSettings:
        """Derive a new adaptive layer from observed behavior.

        Each rule takes its starting value from the current adaptive layer,
        then the merged base and override layers, then the schema default.
        The rules are independent and cumulative:

        - errorRate > 0.1: maxToolsPerCall x0.8 (floor, min 1) and
          timeoutMs x1.2 (max 60000)
        - avgResponseTime > 5000: maxConcurrentTools - 1 (min 1)
        - avgResponseSize > 0.8 * maxResponseSize: outputFormat "concise"
          and maxResponseSize = avgResponseSize x1.2 (max 100000)

        Args:
            client_id: Target client id.
            behavior: BehaviorReport or ``{errorRate, avgResponseTime,
                avgResponseSize}``.

        Returns:
            The new AdaptiveSettings, which replaced the previous one.
        """
        report = (
            behavior if isinstance(behavior, BehaviorReport)
            else BehaviorReport.from_mapping(behavior)
        )
        rules = AdaptiveSettings

        with self._lock_for(client_id):
            current = self._repository.get_adaptive(client_id)
            layer = current.as_patch() if current else {}
            effective = deep_merge(
                self.base_config(client_id),
                self._repository.get_override(client_id),
            )

            def start(key: str) -> float:
                for source in (layer, effective):
                    if _is_number(source.get(key)):
                        return source[key]
                return CLIENT_CONFIG_SCHEMA[key].default

            updated = dict(layer)
            if report.error_rate > rules.ERROR_RATE_THRESHOLD:
                updated["maxToolsPerCall"] = max(1, int(start("maxToolsPerCall") * 0.8))
                updated["timeoutMs"] = min(
                    rules.MAX_TIMEOUT_MS, int(round(start("timeoutMs") * 1.2))
                )
            if report.avg_response_time > rules.SLOW_RESPONSE_MS:
                updated["maxConcurrentTools"] = max(
                    1, int(start("maxConcurrentTools")) - 1
                )
            if report.avg_response_size > rules.RESPONSE_SIZE_RATIO * start("maxResponseSize"):
                updated["outputFormat"] = "concise"
                updated["maxResponseSize"] = max(
                    rules.MIN_RESPONSE_SIZE,
                    min(rules.MAX_RESPONSE_SIZE, int(round(report.avg_response_size * 1.2))),
                )

            settings = AdaptiveSettings(
                client_id=client_id,
                settings=updated,
                revision=current.revision + 1 if current else 1,
            )
            self._repository.save_adaptive(settings)

        changes = {k: v for k, v in updated.items() if layer.get(k) != v}
        if changes:
            logger.info(
                "Adaptive settings for %s updated (rev %d): %s",
                client_id, settings.revision, changes,
            )
        self._publish_event(AdaptiveSettingsUpdated(
            client_id=client_id,
            revision=settings.revision,
            changes=changes,
            behavior=report.to_dict(),
        ))
        return settings

    def set_adaptive_settings(
        self, client_id: str, patch: Mapping[str, Any]
    ) -> AdaptiveSettings:
        """Replace the adaptive layer with a validated patch (import path).

        Raises:
            ConfigurationError: If any field fails validation.
        """
        result = self._validate_write(
            client_id, patch, "set_adaptive_settings", partial=True
        )
        with self._lock_for(client_id):
            current = self._repository.get_adaptive(client_id)
            settings = AdaptiveSettings(
                client_id=client_id,
                settings=result.config,
                revision=current.revision + 1 if current else 1,
            )
            self._repository.save_adaptive(settings)
        return settings

    def clear_adaptive(self, client_id: str) -> None:
        with self._lock_for(client_id):
            self._repository.delete_adaptive(client_id)

    def reset(self) -> None:
        """Drop all registered configs, overrides and adaptive layers."""
        with self._locks_guard:
            self._repository.clear()
            self._templates = ConfigTemplates.builtin()

    # ── Templates ─────────────────────────────────────────────────

    def list_templates(self) -> List[str]:
        return list(self._templates)

    def get_template(self, name: str) -> ConfigRecord:
        """Return a copy of a template; unknown names give "standard"."""
        if name not in self._templates:
            logger.debug("Unknown template '%s', using standard", name)
            name = ConfigTemplates.DEFAULT
        return copy.deepcopy(self._templates[name])

    def register_template(self, name: str, patch: Mapping[str, Any]) -> None:
        """Add or replace a named template.

        Raises:
            ConfigurationError: If the patch fails validation.
        """
        result = self._validate_write(name, patch, "register_template", partial=True)
        self._templates[name] = result.config

    def apply_template(self, client_id: str, name: str) -> ConfigRecord:
        """Set the override of ``client_id`` to the named template."""
        return self.set_override(client_id, self.get_template(name), template=name)

    # ── Export / import ───────────────────────────────────────────

    def export_config(self, client_id: str) -> Dict[str, Any]:
        """Export the effective config and layers of a client.

        Returns:
            JSON-serializable ``{exportedAt, clientId, config, overrides,
            adaptiveSettings}``.
        """
        _, override, adaptive = self.get_layers(client_id)
        return {
            "exportedAt": datetime.now(timezone.utc).isoformat(),
            "clientId": client_id,
            "config": self.get_config(client_id),
            "overrides": override,
            "adaptiveSettings": adaptive,
        }

    def import_config(self, envelope: Mapping[str, Any]) -> str:
        """Import an export envelope.

        All parts are validated before anything is committed.

        Returns:
            The imported client id.

        Raises:
            ConfigurationError: If the envelope or any part is invalid.
        """
        if not isinstance(envelope, Mapping):
            raise ConfigurationError("Import envelope must be an object")
        client_id = envelope.get("clientId")
        if not isinstance(client_id, str) or not client_id:
            raise ConfigurationError("Import envelope is missing clientId")

        config = envelope.get("config") or {}
        overrides = envelope.get("overrides") or {}
        adaptive = envelope.get("adaptiveSettings") or {}

        validated = (
            self._validate_write(client_id, config, "import_config")
            if config else None
        )
        override_result = self._validate_write(
            client_id, overrides, "import_config", partial=True
        )
        adaptive_result = self._validate_write(
            client_id, adaptive, "import_config", partial=True
        )

        if validated is not None:
            self._store_base(client_id, validated.config, "import")
        if override_result.config:
            self.set_override(client_id, override_result.config)
        if adaptive_result.config:
            self.set_adaptive_settings(client_id, adaptive_result.config)
        else:
            self.clear_adaptive(client_id)
        logger.info("Imported configuration for %s", client_id)
        return client_id

    # ── Configuration files ───────────────────────────────────────

    def load_file(self, path: Union[str, Path]) -> Dict[str, int]:
        """Load clients, overrides and templates from a YAML or JSON file.

        Expected layout::

            clients:
              - {id: my-client, name: My Client, maxToolsPerCall: 4}
            overrides:
              cursor: {outputFormat: developer}
            templates:
              tiny: {maxToolsPerCall: 2}

        Returns:
            Counts of loaded entries per section.

        Raises:
            ConfigurationError: If the file is malformed or any entry fails
                validation.
        """
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
        return self.load_mapping(data or {}, source=str(path))

    def load_mapping(self, data: Mapping[str, Any], source: str = "file") -> Dict[str, int]:
        """Apply a parsed configuration document. See ``load_file``."""
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Configuration in {source} must be a mapping")

        clients = data.get("clients") or []
        overrides = data.get("overrides") or {}
        templates = data.get("templates") or {}
        if not isinstance(clients, list):
            raise ConfigurationError(f"'clients' in {source} must be a list")
        if not isinstance(overrides, Mapping) or not isinstance(templates, Mapping):
            raise ConfigurationError(
                f"'overrides' and 'templates' in {source} must be mappings"
            )

        for name, patch in templates.items():
            self.register_template(str(name), patch)
        for record in clients:
            self.register_client(record, source="file")
        for client_id, patch in overrides.items():
            self.set_override(str(client_id), patch)

        counts = {
            "clients": len(clients),
            "overrides": len(overrides),
            "templates": len(templates),
        }
        logger.info("Loaded configuration from %s: %s", source, counts)
        return counts

    # ── Stats ─────────────────────────────────────────────────────

    def get_stats(self) -> Dict[str, Any]:
        """Summarize configured clients and overrides."""
        override_ids = self._repository.override_ids()
        counter: Counter = Counter()
        for client_id in override_ids:
            counter.update(self.get_override(client_id).keys())

        by_complexity: Dict[str, int] = {}
        for client_id in self.known_client_ids():
            tier = self.get_config(client_id).get("toolComplexity", "unknown")
            by_complexity[tier] = by_complexity.get(tier, 0) + 1

        return {
            "totalConfigs": len(self.known_client_ids()),
            "totalOverrides": len(override_ids),
            "adaptiveClients": len(self._repository.adaptive_ids()),
            "configsByComplexity": by_complexity,
            "mostOverriddenSettings": [
                {"setting": key, "count": count}
                for key, count in counter.most_common(10)
            ],
        }

    # ── Internals ─────────────────────────────────────────────────

    def _lock_for(self, client_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(client_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[client_id] = lock
            return lock

    def _validate_write(
        self,
        client_id: str,
        record: Any,
        operation: str,
        partial: bool = False,
    ) -> ValidationResult:
        result = self._validator.validate(record, partial=partial)
        for warning in result.warnings:
            logger.debug("%s(%s): %s", operation, client_id, warning)
        if not result.valid:
            logger.warning(
                "Rejected %s for %s: %s",
                operation, client_id, "; ".join(result.errors),
            )
            self._publish_event(ConfigValidationFailed(
                client_id=client_id,
                operation=operation,
                errors=list(result.errors),
            ))
            raise ConfigurationError(
                f"Invalid configuration for {operation}",
                client_id=client_id,
                errors=result.errors,
                warnings=result.warnings,
            )
        return result

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
