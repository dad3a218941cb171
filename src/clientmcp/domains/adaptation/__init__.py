"""Adaptation Bounded Context.

Adapts request parameters and shapes responses, errors and resource
listings for the connected client.

Response pipeline:
1. Output mode transform (minimal / concise / structured / developer)
2. Serialization (compact JSON for low-complexity clients)
3. Escape strategy (none / minimal / standard / json / markdown)
4. Size limit with a visible truncation notice
"""

# Value Objects
from .value_objects import (
    TRUNCATION_NOTICE,
    FormattedResponse,
    PaginationPolicy,
    ResponseSizeStats,
)

# Domain Events
from .events import (
    ParametersAdapted,
    ResponseTruncated,
)

# Services
from .services import (
    AdaptationManager,
    ParameterAdapter,
    ResourceFilter,
    ResponseFormatter,
    resource_complexity,
)

__all__ = [
    # Value Objects
    "TRUNCATION_NOTICE",
    "FormattedResponse",
    "PaginationPolicy",
    "ResponseSizeStats",
    # Domain Events
    "ParametersAdapted",
    "ResponseTruncated",
    # Services
    "AdaptationManager",
    "ParameterAdapter",
    "ResourceFilter",
    "ResponseFormatter",
    "resource_complexity",
]
