"""Exception hierarchy shared by the client adaptation bounded contexts."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence


class ClientMCPError(Exception):
    """Base class for all client adaptation errors.

    Attributes:
        code: Stable machine-readable error code sent to clients.
    """
    code = "CLIENT_MCP_ERROR"

    @property
    def details(self) -> Dict[str, Any]:
        """Structured context for developer-tier error payloads."""
        return {}


class ConfigurationError(ClientMCPError):
    """A configuration write was rejected by schema validation.

    No partial state is committed when this error is raised.

    Attributes:
        client_id: The client the write targeted, if known.
        errors: Validation error messages.
        warnings: Validation warnings collected alongside the errors.
    """
    code = "CONFIGURATION_ERROR"

    def __init__(
        self,
        message: str,
        client_id: Optional[str] = None,
        errors: Sequence[str] = (),
        warnings: Sequence[str] = (),
    ) -> None:
        self.client_id = client_id
        self.errors: List[str] = list(errors)
        self.warnings: List[str] = list(warnings)
        if self.errors:
            message = f"{message}: {'; '.join(self.errors)}"
        super().__init__(message)

    @property
    def details(self) -> Dict[str, Any]:
        return {
            "clientId": self.client_id,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


class ToolRegistryError(ClientMCPError):
    """Base class for tool registry errors."""
    code = "TOOL_REGISTRY_ERROR"


class ToolNotFoundError(ToolRegistryError):
    """The requested tool is not registered."""
    code = "TOOL_NOT_FOUND"

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' not found")

    @property
    def details(self) -> Dict[str, Any]:
        return {"tool": self.tool_name}


class ToolIncompatibleError(ToolRegistryError):
    """The tool exists but is filtered out for the requesting client.

    Attributes:
        tool_name: Name of the rejected tool.
        client_id: Profile id of the requesting client.
        reasons: Human-readable gate failures.
    """
    code = "TOOL_INCOMPATIBLE"

    def __init__(
        self, tool_name: str, client_id: str, reasons: Sequence[str] = ()
    ) -> None:
        self.tool_name = tool_name
        self.client_id = client_id
        self.reasons: List[str] = list(reasons)
        detail = f" ({', '.join(self.reasons)})" if self.reasons else ""
        super().__init__(
            f"Tool '{tool_name}' is not compatible with client "
            f"'{client_id}'{detail}"
        )

    @property
    def details(self) -> Dict[str, Any]:
        return {
            "tool": self.tool_name,
            "clientId": self.client_id,
            "reasons": list(self.reasons),
        }


class ToolTimeoutError(ToolRegistryError):
    """A tool execution exceeded the client's ``timeoutMs`` and was cancelled."""
    code = "TOOL_TIMEOUT"

    def __init__(self, tool_name: str, timeout_ms: int) -> None:
        self.tool_name = tool_name
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Tool '{tool_name}' timed out after {timeout_ms}ms"
        )

    @property
    def details(self) -> Dict[str, Any]:
        return {"tool": self.tool_name, "timeoutMs": self.timeout_ms}
