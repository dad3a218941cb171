"""Process settings read from the environment.

Environment variables:
    CLIENTMCP_LOG_LEVEL: Log level name (default INFO).
    CLIENTMCP_CONFIG_FILE: YAML or JSON file with clients, overrides and
        templates, loaded at startup.
    CLIENTMCP_SWEEP_INTERVAL: Seconds between behavior sweeps (default 60,
        0 disables the sweep).
    CLIENTMCP_CLIENT: Client name hint used when the handshake carries none.
    CLIENTMCP_TRANSPORT: stdio, http or sse (default stdio).
    CLIENTMCP_HOST: Host for HTTP transports.
    CLIENTMCP_PORT: Port for HTTP transports.
    CLIENTMCP_MAX_SESSIONS: Client sessions kept at once (default 256); the
        least recently used session is dropped beyond that.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

ENV_PREFIX = "CLIENTMCP_"


def _int_env(env: Mapping[str, str], key: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid {key}={raw!r}, using default {default}")
        return default


@dataclass(frozen=True)
class Settings:
    """Runtime settings of the server process."""
    log_level: str = "INFO"
    config_file: Optional[str] = None
    sweep_interval: int = 60
    client_hint: Optional[str] = None
    transport: str = "stdio"
    host: Optional[str] = None
    port: Optional[int] = None
    max_sessions: int = 256

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``CLIENTMCP_*`` environment variables.

        Args:
            environ: Environment mapping. Defaults to ``os.environ``.
        """
        env = os.environ if environ is None else environ
        transport = env.get(f"{ENV_PREFIX}TRANSPORT", "stdio").strip().lower()
        if transport not in ("stdio", "http", "sse"):
            logger.warning(f"Unknown transport '{transport}', using stdio")
            transport = "stdio"
        sweep = _int_env(env, f"{ENV_PREFIX}SWEEP_INTERVAL", 60)
        return cls(
            log_level=env.get(f"{ENV_PREFIX}LOG_LEVEL", "INFO").strip().upper() or "INFO",
            config_file=env.get(f"{ENV_PREFIX}CONFIG_FILE") or None,
            sweep_interval=max(0, sweep if sweep is not None else 60),
            client_hint=env.get(f"{ENV_PREFIX}CLIENT") or None,
            transport=transport,
            host=env.get(f"{ENV_PREFIX}HOST") or None,
            port=_int_env(env, f"{ENV_PREFIX}PORT", None),
            max_sessions=max(1, _int_env(env, f"{ENV_PREFIX}MAX_SESSIONS", 256)),
        )
