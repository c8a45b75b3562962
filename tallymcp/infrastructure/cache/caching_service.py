"""In-memory query result cache with per-entry expiry.

Entries are evicted lazily: a lookup past an entry's max age removes it and
counts as a miss. There is no background sweep and no size bound, so memory
is governed by the max age and the query volume.
"""

import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

# Domain Layer Imports
from tallymcp.domain.interfaces.cache import CacheService
from tallymcp.domain.models.common import CacheKey, CacheStats, QueryText, QueryVariables

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_SECONDS = 5 * 60  # 5 minutes

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class CacheEntry:
    """Internal representation of a cache entry."""
    value: Any
    stored_at: float  # Clock reading when the entry was written
    max_age: float    # Seconds the entry stays fresh


def generate_cache_key(query: QueryText, variables: Optional[QueryVariables] = None) -> CacheKey:
    """Derives a deterministic cache key from query text and variables.

    Whitespace runs in the query collapse to a single space, and variables
    are serialized with sorted keys so that logically identical requests map
    to the same key.
    """
    normalized_query = _WHITESPACE_RE.sub(" ", query).strip()
    variables_str = (
        json.dumps(variables, sort_keys=True, separators=(",", ":"), default=str)
        if variables is not None
        else ""
    )
    return CacheKey(f"{normalized_query}:{variables_str}")


class QueryCache(CacheService):
    """Key/value store of query results with expiry-on-read."""

    def __init__(
        self,
        default_max_age: float = DEFAULT_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initializes the cache.

        Args:
            default_max_age: Seconds an entry stays fresh when ``set`` is not
                given an explicit max age.
            clock: Monotonic time source, injectable for tests.
        """
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self.default_max_age = default_max_age
        self._clock = clock
        logger.debug(f"QueryCache initialized (default_max_age={default_max_age}s)")

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        # Reaching max_age exactly counts as expired.
        return now - entry.stored_at >= entry.max_age

    # --- CacheService Interface Implementation ---

    def get(self, key: CacheKey) -> Optional[Any]:
        """Retrieves a fresh entry, evicting it if it has gone stale."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        if self._is_expired(entry, self._clock()):
            del self._entries[key]
            self._misses += 1
            logger.debug("Cache entry expired and evicted")
            return None

        self._hits += 1
        return entry.value

    def set(self, key: CacheKey, value: Any, max_age: Optional[float] = None) -> None:
        """Stores a value, replacing any previous entry for the key."""
        self._entries[key] = CacheEntry(
            value=value,
            stored_at=self._clock(),
            max_age=max_age if max_age is not None else self.default_max_age,
        )

    def clear(self) -> None:
        """Empties the store. Hit and miss counters are kept."""
        self._entries.clear()
        logger.info("Cleared query cache.")

    def size(self) -> int:
        return len(self._entries)

    def get_stats(self) -> CacheStats:
        return {"size": len(self._entries), "hits": self._hits, "misses": self._misses}
