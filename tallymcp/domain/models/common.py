"""Defines common Value Objects used across the query client and services.

These objects represent simple values like cache keys, GraphQL query text and
the raw result of an HTTP exchange, ensuring consistency and type safety.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, NewType, Optional, TypedDict, Union

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are strings at runtime.
QueryText = NewType("QueryText", str)          # GraphQL document text
ApiKey = NewType("ApiKey", str)                # Tally API token (never logged)
EndpointUrl = NewType("EndpointUrl", str)      # Upstream GraphQL endpoint

# === Caching Context ===
CacheKey = NewType("CacheKey", str)            # Normalized query text + serialized variables

QueryVariables = Dict[str, Any]


# --- Structured Data ---
class CacheStats(TypedDict):
    """Snapshot of the query cache counters."""
    size: int
    hits: int
    misses: int


class ErrorReport(TypedDict):
    """Structured failure report handed back across the tool boundary."""
    code: int
    message: str
    data: Optional[Any]


@dataclass
class TransportResponse:
    """Raw result of one HTTP exchange, before any decoding."""
    status_code: int
    reason: str = ""
    content: Union[bytes, str] = b""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300
