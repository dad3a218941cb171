"""Shared Kernel - Types shared across bounded contexts.

This module contains the minimal set of types shared between the client
profile, client config, tool registry, adaptation and behavior contexts.
"""

from clientmcp.domains.shared.errors import (
    ClientMCPError,
    ConfigurationError,
    ToolIncompatibleError,
    ToolNotFoundError,
    ToolRegistryError,
    ToolTimeoutError,
)
from clientmcp.domains.shared.kernel import (
    DetectionMethod,
    ErrorTier,
    ErrorVerbosity,
    EscapeStrategy,
    OutputFormat,
    ToolCategory,
    ToolComplexity,
)

__all__ = [
    # Kernel
    "DetectionMethod",
    "ErrorTier",
    "ErrorVerbosity",
    "EscapeStrategy",
    "OutputFormat",
    "ToolCategory",
    "ToolComplexity",
    # Errors
    "ClientMCPError",
    "ConfigurationError",
    "ToolIncompatibleError",
    "ToolNotFoundError",
    "ToolRegistryError",
    "ToolTimeoutError",
]
