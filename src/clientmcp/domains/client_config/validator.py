"""Capability schema validator.

``CapabilityValidator.validate`` is pure: it performs no I/O, never mutates
its input, and returns identical results for identical input.

Rules:
- Required and missing: error, field omitted.
- Present but wrong type, out of range, or not in the enum: error, field
  omitted. Defaults only ever replace absent values.
- Absent with a default: default used.
- Unknown key: warning, value passed through unchanged.
- Objects validate recursively; error paths use dots (``rateLimit.window``).

Partial validation (``partial=True``) is used for patches such as overrides
and adaptive settings: required checks and default filling are skipped so
a patch never grows keys it did not set.
"""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .schema import CLIENT_CONFIG_SCHEMA, FieldRule

_TYPE_NAMES = {
    bool: "boolean",
    str: "string",
    dict: "object",
    list: "array",
    type(None): "null",
}


def _describe(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, Mapping):
        return "object"
    return _TYPE_NAMES.get(type(value), type(value).__name__)


def _matches_type(rule: FieldRule, value: Any) -> bool:
    if rule.type == "string":
        return isinstance(value, str)
    if rule.type == "boolean":
        return isinstance(value, bool)
    if rule.type == "number":
        return (
            isinstance(value, (int, float))
            and not isinstance(value, bool)
            and math.isfinite(value)
        )
    return isinstance(value, Mapping)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a record against a schema.

    Attributes:
        valid: True when no errors were found.
        config: The validated record (invalid fields omitted).
        errors: Error messages.
        warnings: Warning messages.
    """
    valid: bool
    config: Dict[str, Any] = field(default_factory=dict)
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "valid": self.valid,
            "config": copy.deepcopy(self.config),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


class CapabilityValidator:
    """Validates configuration records against a FieldRule schema."""

    def __init__(self, schema: Optional[Mapping[str, FieldRule]] = None) -> None:
        self._schema = schema if schema is not None else CLIENT_CONFIG_SCHEMA

    @property
    def schema(self) -> Mapping[str, FieldRule]:
        return self._schema

    def validate(
        self,
        record: Any,
        schema: Optional[Mapping[str, FieldRule]] = None,
        partial: bool = False,
    ) -> ValidationResult:
        """Validate ``record`` against ``schema``.

        Args:
            record: The record to validate. Non-mappings are an error.
            schema: Rules to apply. Defaults to the validator's schema.
            partial: Patch mode, skipping required checks and defaults.

        Returns:
            A ValidationResult; never raises for bad input.
        """
        schema = schema if schema is not None else self._schema
        errors: List[str] = []
        warnings: List[str] = []
        if not isinstance(record, Mapping):
            errors.append(
                f"Invalid type for root: expected object, got {_describe(record)}"
            )
            return ValidationResult(valid=False, errors=tuple(errors))

        config = self._validate_object(record, schema, "", partial, errors, warnings)
        return ValidationResult(
            valid=not errors,
            config=config,
            errors=tuple(errors),
            warnings=tuple(warnings),
        )

    def _validate_object(
        self,
        record: Mapping[str, Any],
        schema: Mapping[str, FieldRule],
        prefix: str,
        partial: bool,
        errors: List[str],
        warnings: List[str],
    ) -> Dict[str, Any]:
        result: Dict[str, Any] = {}

        for key, rule in schema.items():
            path = f"{prefix}{key}"
            if key not in record:
                if partial:
                    continue
                if rule.required:
                    errors.append(f"Required field missing: {path}")
                elif rule.default is not None:
                    result[key] = copy.deepcopy(rule.default)
                elif rule.properties is not None:
                    result[key] = self._validate_object(
                        {}, rule.properties, f"{path}.", partial, errors, warnings
                    )
                continue

            value = record[key]
            if not _matches_type(rule, value):
                errors.append(
                    f"Invalid type for {path}: expected {rule.type}, "
                    f"got {_describe(value)}"
                )
                continue
            if rule.enum is not None and value not in rule.enum:
                errors.append(
                    f"Invalid value for {path}: {value!r} "
                    f"(allowed: {', '.join(rule.enum)})"
                )
                continue
            if rule.min is not None and value < rule.min:
                errors.append(f"Value for {path} below minimum {rule.min}: {value}")
                continue
            if rule.max is not None and value > rule.max:
                errors.append(f"Value for {path} above maximum {rule.max}: {value}")
                continue

            if rule.type == "object" and rule.properties is not None:
                result[key] = self._validate_object(
                    value, rule.properties, f"{path}.", partial, errors, warnings
                )
            else:
                result[key] = copy.deepcopy(value)

        for key, value in record.items():
            if key not in schema:
                warnings.append(f"Unknown property: {prefix}{key}")
                result[key] = copy.deepcopy(value)

        return result
