"""Client Config Repository.

Stores the three configuration layers per client id. Records handed in
are stored as-is; the config manager owns copying and locking.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from .value_objects import AdaptiveSettings


class ClientConfigRepository(Protocol):
    """Protocol for configuration layer persistence."""

    def get_base(self, client_id: str) -> Optional[Dict[str, Any]]: ...
    def save_base(self, client_id: str, record: Dict[str, Any]) -> None: ...
    def get_override(self, client_id: str) -> Optional[Dict[str, Any]]: ...
    def save_override(self, client_id: str, patch: Dict[str, Any]) -> None: ...
    def delete_override(self, client_id: str) -> None: ...
    def get_adaptive(self, client_id: str) -> Optional[AdaptiveSettings]: ...
    def save_adaptive(self, settings: AdaptiveSettings) -> None: ...
    def delete_adaptive(self, client_id: str) -> None: ...
    def base_ids(self) -> List[str]: ...
    def override_ids(self) -> List[str]: ...
    def adaptive_ids(self) -> List[str]: ...
    def clear(self) -> None: ...


class InMemoryClientConfigRepository:
    """In-memory layer store keyed by client id."""

    def __init__(self) -> None:
        self._bases: Dict[str, Dict[str, Any]] = {}
        self._overrides: Dict[str, Dict[str, Any]] = {}
        self._adaptive: Dict[str, AdaptiveSettings] = {}

    def get_base(self, client_id: str) -> Optional[Dict[str, Any]]:
        return self._bases.get(client_id)

    def save_base(self, client_id: str, record: Dict[str, Any]) -> None:
        self._bases[client_id] = record

    def get_override(self, client_id: str) -> Optional[Dict[str, Any]]:
        return self._overrides.get(client_id)

    def save_override(self, client_id: str, patch: Dict[str, Any]) -> None:
        self._overrides[client_id] = patch

    def delete_override(self, client_id: str) -> None:
        self._overrides.pop(client_id, None)

    def get_adaptive(self, client_id: str) -> Optional[AdaptiveSettings]:
        return self._adaptive.get(client_id)

    def save_adaptive(self, settings: AdaptiveSettings) -> None:
        self._adaptive[settings.client_id] = settings

    def delete_adaptive(self, client_id: str) -> None:
        self._adaptive.pop(client_id, None)

    def base_ids(self) -> List[str]:
        return list(self._bases)

    def override_ids(self) -> List[str]:
        return list(self._overrides)

    def adaptive_ids(self) -> List[str]:
        return list(self._adaptive)

    def clear(self) -> None:
        self._bases.clear()
        self._overrides.clear()
        self._adaptive.clear()
