"""Client Config Domain Aggregates.

ConfigTemplates provides the built-in starter override patches. Every
template is a partial capability record that validates in patch mode.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List


class ConfigTemplates:
    """Factory for built-in configuration templates.

    ``get`` always returns a deep copy, so callers can modify the result
    freely. Unknown names resolve to the standard template.
    """

    DEFAULT: str = "standard"

    @classmethod
    def minimal(cls) -> Dict[str, Any]:
        """Smallest footprint: few low-complexity tools, terse errors."""
        return {
            "maxToolsPerCall": 3,
            "toolComplexity": "low",
            "maxResponseSize": 10000,
            "outputFormat": "minimal",
            "errorVerbosity": "minimal",
            "features": {"pagination": False, "subscriptions": False},
        }

    @classmethod
    def standard(cls) -> Dict[str, Any]:
        return {
            "maxToolsPerCall": 10,
            "toolComplexity": "medium",
            "maxResponseSize": 50000,
            "outputFormat": "structured",
            "errorVerbosity": "standard",
            "features": {"pagination": True, "subscriptions": False},
        }

    @classmethod
    def advanced(cls) -> Dict[str, Any]:
        """High-complexity tools, developer output, every feature enabled."""
        return {
            "maxToolsPerCall": 20,
            "toolComplexity": "high",
            "maxResponseSize": 200000,
            "outputFormat": "developer",
            "errorVerbosity": "detailed",
            "includeStackTrace": True,
            "features": {
                "pagination": True,
                "subscriptions": True,
                "templates": True,
                "analytics": True,
            },
        }

    @classmethod
    def mobile(cls) -> Dict[str, Any]:
        """Bandwidth-conscious clients."""
        return {
            "maxToolsPerCall": 5,
            "toolComplexity": "medium",
            "maxResponseSize": 25000,
            "outputFormat": "concise",
            "escapeHandling": "minimal",
            "rateLimit": {"requests": 30, "window": 60000},
        }

    @classmethod
    def enterprise(cls) -> Dict[str, Any]:
        """Large limits, debug errors, longer timeouts and retries."""
        return {
            "maxToolsPerCall": 30,
            "toolComplexity": "high",
            "maxResponseSize": 500000,
            "outputFormat": "developer",
            "errorVerbosity": "debug",
            "includeStackTrace": True,
            "timeoutMs": 60000,
            "retryAttempts": 5,
            "features": {
                "pagination": True,
                "subscriptions": True,
                "templates": True,
                "analytics": True,
            },
        }

    @classmethod
    def builtin(cls) -> Dict[str, Dict[str, Any]]:
        """All built-in templates keyed by name."""
        return {
            "minimal": cls.minimal(),
            "standard": cls.standard(),
            "advanced": cls.advanced(),
            "mobile": cls.mobile(),
            "enterprise": cls.enterprise(),
        }

    @classmethod
    def names(cls) -> List[str]:
        return list(cls.builtin())

    @classmethod
    def get(cls, name: str) -> Dict[str, Any]:
        """Return a copy of the named template, or the standard template."""
        templates = cls.builtin()
        return copy.deepcopy(templates.get(name, templates[cls.DEFAULT]))
