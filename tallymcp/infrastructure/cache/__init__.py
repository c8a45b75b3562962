"""Query result caching."""

from tallymcp.infrastructure.cache.caching_service import QueryCache

__all__ = ["QueryCache"]
