"""Interface for query result caching.

Defines the contract for storing, retrieving and clearing cached query
results with per-entry expiry and hit/miss accounting.
"""

import abc
from typing import Any, Optional

# Import relevant domain models
from ..models.common import CacheKey, CacheStats


class CacheService(abc.ABC):
    """Abstract Base Class for caching operations.

    Operations are synchronous: they never suspend the event loop, so a
    lookup and the decision that follows it cannot interleave with another
    caller.
    """

    @abc.abstractmethod
    def get(self, key: CacheKey) -> Optional[Any]:
        """Retrieves a fresh item from the cache.

        Args:
            key: The cache key to retrieve.

        Returns:
            The cached item if present and not expired, otherwise None.
            Stale entries are removed as a side effect.
        """
        pass

    @abc.abstractmethod
    def set(self, key: CacheKey, value: Any, max_age: Optional[float] = None) -> None:
        """Stores an item, overwriting any existing entry.

        Args:
            key: The cache key to store the item under.
            value: The item to store.
            max_age: Freshness lifetime in seconds (uses the default if None).
        """
        pass

    @abc.abstractmethod
    def clear(self) -> None:
        """Removes every entry. Hit/miss counters are preserved."""
        pass

    @abc.abstractmethod
    def size(self) -> int:
        """Number of entries currently stored (fresh or not yet evicted)."""
        pass

    @abc.abstractmethod
    def get_stats(self) -> CacheStats:
        """Returns the current size, hits and misses."""
        pass
