"""Client Profile Domain Services.

The ClientDetector resolves exactly one ClientContext from whatever
connection metadata is available. Detection is deterministic, side-effect
free apart from logging and event publishing, and never raises.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from ..shared.kernel import DetectionMethod
from .aggregates import ClientProfile, ClientProfiles
from .entities import ClientContext
from .events import ClientDetected
from .value_objects import ClientCapabilities, ConnectionMetadata

logger = logging.getLogger(__name__)

# Environment variables copied into connection metadata
ENVIRONMENT_KEYS: Tuple[str, ...] = (
    "TERM_PROGRAM",
    "EDITOR",
    "VSCODE_PID",
    "CURSOR_PID",
)

# Signatures accept a match only above this ratio over this many checks
SIGNATURE_MIN_RATIO = 0.8
SIGNATURE_MIN_CHECKS = 2


@dataclass(frozen=True)
class CapabilitySignature:
    """Expected declared capabilities for a profile.

    Booleans must match exactly; numeric expectations are inclusive
    ``(min, max)`` ranges.
    """
    profile: ClientProfile
    expected: Mapping[str, Union[bool, Tuple[int, int]]]

    def score(self, declared: Mapping[str, Any]) -> Tuple[int, int]:
        """Compare only keys present in ``declared``.

        Returns:
            Tuple of (matches, checks).
        """
        matches = checks = 0
        for key, expected in self.expected.items():
            if key not in declared:
                continue
            checks += 1
            actual = declared[key]
            if isinstance(expected, bool):
                if actual is expected:
                    matches += 1
            elif (
                isinstance(actual, (int, float))
                and not isinstance(actual, bool)
                and expected[0] <= actual <= expected[1]
            ):
                matches += 1
        return matches, checks

    def accepts(self, declared: Mapping[str, Any]) -> bool:
        matches, checks = self.score(declared)
        return (
            checks >= SIGNATURE_MIN_CHECKS
            and matches / checks >= SIGNATURE_MIN_RATIO
        )


DEFAULT_SIGNATURES: Tuple[CapabilitySignature, ...] = (
    CapabilitySignature(
        ClientProfiles.CLAUDE_DESKTOP,
        {
            "supportsBinaryContent": True,
            "supportsImages": True,
            "supportsStreaming": False,
        },
    ),
    CapabilitySignature(
        ClientProfiles.CURSOR,
        {
            "maxResponseSize": (40000, 60000),
            "supportsStreaming": True,
            "supportsBinaryContent": False,
        },
    ),
    CapabilitySignature(
        ClientProfiles.VSCODE,
        {
            "supportsBinaryContent": True,
            "supportsStreaming": True,
            "maxToolsPerCall": (6, 10),
        },
    ),
)


def extract_connection_info(
    environ: Optional[Mapping[str, str]] = None,
    client_info: Any = None,
    headers: Optional[Mapping[str, str]] = None,
    transport: Optional[str] = None,
    capabilities: Optional[Mapping[str, Any]] = None,
) -> ConnectionMetadata:
    """Build connection metadata from the process and MCP handshake.

    Args:
        environ: Environment mapping. Defaults to ``os.environ``.
        client_info: MCP ``clientInfo`` (object with ``name``/``version``
            attributes or a mapping).
        headers: Transport headers, when the transport has any.
        transport: Transport name.
        capabilities: camelCase capabilities declared by the client.

    Returns:
        A ConnectionMetadata record.
    """
    environ = os.environ if environ is None else environ
    environment = {k: environ[k] for k in ENVIRONMENT_KEYS if environ.get(k)}

    client_name = None
    user_agent = None
    if client_info is not None:
        if isinstance(client_info, Mapping):
            name = client_info.get("name")
            version = client_info.get("version")
        else:
            name = getattr(client_info, "name", None)
            version = getattr(client_info, "version", None)
        if isinstance(name, str) and name:
            client_name = name
            user_agent = f"{name}/{version}" if version else name

    return ConnectionMetadata(
        user_agent=user_agent,
        client_name=client_name,
        headers=headers or {},
        capabilities=capabilities or {},
        transport=transport,
        environment=environment,
    )


class ClientDetector:
    """Domain service resolving a ClientContext from connection metadata.

    Algorithm (first match wins):
    1. Walk the metadata sources in DetectionMethod priority order.
    2. For each non-empty source, test profiles in ClientProfiles order.
    3. Fall back to capability-signature matching.
    4. Otherwise return the generic profile tagged "fallback".

    Attributes:
        _profiles: Profiles in detection priority order.
        _signatures: Capability signatures tried in order.
        _event_publisher: Optional callback for domain events.
    """

    def __init__(
        self,
        profiles: Optional[Sequence[ClientProfile]] = None,
        signatures: Optional[Sequence[CapabilitySignature]] = None,
        event_publisher: Optional[Callable[[object], None]] = None,
    ) -> None:
        self._profiles: Tuple[ClientProfile, ...] = tuple(
            profiles if profiles is not None else ClientProfiles.ordered()
        )
        self._signatures: Tuple[CapabilitySignature, ...] = tuple(
            signatures if signatures is not None else DEFAULT_SIGNATURES
        )
        self._event_publisher = event_publisher

    @property
    def profiles(self) -> Tuple[ClientProfile, ...]:
        return self._profiles

    def detect(
        self,
        metadata: Union[ConnectionMetadata, Mapping[str, Any], None] = None,
    ) -> ClientContext:
        """Resolve the client for a new session.

        Args:
            metadata: ConnectionMetadata or a camelCase metadata mapping.

        Returns:
            A ClientContext. Never raises.
        """
        try:
            if not isinstance(metadata, ConnectionMetadata):
                metadata = ConnectionMetadata.from_dict(metadata)
            profile, method, matched = self._resolve(metadata)
        except Exception as e:
            logger.warning(f"Client detection failed, using fallback: {e}")
            metadata = ConnectionMetadata()
            profile, method, matched = (
                ClientProfiles.default(), DetectionMethod.FALLBACK, None
            )

        capabilities = ClientCapabilities.from_mapping(
            metadata.capabilities, base=profile.capabilities
        )
        context = ClientContext(
            profile=profile,
            detection_method=method,
            capabilities=capabilities,
            metadata=metadata.to_dict(),
        )
        logger.info(
            "Detected client %s via %s (session %s)",
            profile.id, method.value, context.session_id,
        )
        self._publish_event(ClientDetected(
            session_id=context.session_id,
            client_id=profile.id,
            client_name=profile.name,
            detection_method=method.value,
            matched_text=matched,
        ))
        return context

    def sources(self, metadata: ConnectionMetadata) -> List[Tuple[DetectionMethod, Any]]:
        """Metadata sources in priority order, including empty ones."""
        return [
            (DetectionMethod.USER_AGENT, metadata.user_agent),
            (DetectionMethod.CLIENT_NAME, metadata.client_name),
            (DetectionMethod.HEADER_USER_AGENT, metadata.headers.get("user-agent")),
            (DetectionMethod.HEADER_CLIENT_NAME, metadata.headers.get("x-client-name")),
            (DetectionMethod.TERM_PROGRAM, metadata.environment.get("TERM_PROGRAM")),
            (DetectionMethod.EDITOR_ENV, metadata.environment.get("EDITOR")),
        ]

    def match_profile(self, text: str) -> Optional[ClientProfile]:
        """Return the first profile (in priority order) matching ``text``."""
        for profile in self._profiles:
            if profile.matches(text):
                return profile
        return None

    def match_signature(
        self, declared: Mapping[str, Any]
    ) -> Optional[ClientProfile]:
        """Return the first profile whose capability signature accepts."""
        if not declared:
            return None
        for signature in self._signatures:
            if signature.accepts(declared):
                return signature.profile
        return None

    def _resolve(
        self, metadata: ConnectionMetadata
    ) -> Tuple[ClientProfile, DetectionMethod, Optional[str]]:
        for method, value in self.sources(metadata):
            if not isinstance(value, str) or not value.strip():
                continue
            profile = self.match_profile(value)
            if profile is not None:
                return profile, method, value

        profile = self.match_signature(metadata.capabilities)
        if profile is not None:
            return profile, DetectionMethod.CAPABILITIES, None

        return ClientProfiles.default(), DetectionMethod.FALLBACK, None

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
