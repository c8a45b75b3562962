"""Resilient GraphQL client for the Tally API.

Every upstream call flows through TallyQueryClient.query(), which composes
query validation, result caching, sliding-window admission control and
fixed-delay retries around a single injected network transport.
"""

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

# Core Layer Imports
from tallymcp.core.query_validation import has_required_variables, is_valid_query

# Domain Layer Imports
from tallymcp.domain.errors import (
    DEFAULT_RETRY_AFTER_SECONDS,
    AuthenticationError,
    NetworkError,
    QueryError,
    RateLimitError,
    TallyMcpError,
    ValidationError,
)
from tallymcp.domain.interfaces.credentials import CredentialProvider
from tallymcp.domain.interfaces.transport import HttpTransport
from tallymcp.domain.models.common import (
    CacheStats,
    EndpointUrl,
    QueryText,
    QueryVariables,
    TransportResponse,
)

# Infrastructure Layer Imports
from tallymcp.infrastructure.cache.caching_service import QueryCache, generate_cache_key
from tallymcp.infrastructure.resilience.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = EndpointUrl("https://api.tally.xyz/query")
HTTP_TOO_MANY_REQUESTS = 429


@dataclass(frozen=True)
class ClientOptions:
    """Client configuration, resolved once at construction. Durations in seconds."""
    endpoint: EndpointUrl = DEFAULT_ENDPOINT
    enable_cache: bool = True
    cache_max_age: float = 300.0
    validate_queries: bool = False
    timeout: float = 30.0
    retry_attempts: int = 0
    retry_delay: float = 1.0
    enable_rate_limit: bool = True
    max_requests_per_minute: int = 30
    rate_limit_window: float = 60.0
    auth_header: str = "Api-Key"

    def __post_init__(self) -> None:
        if self.retry_attempts < 0:
            raise ValueError("retry_attempts must be >= 0")
        if self.enable_rate_limit and self.max_requests_per_minute < 1:
            raise ValueError("max_requests_per_minute must be >= 1")


class TallyQueryClient:
    """Single entry point for GraphQL queries against the Tally API."""

    def __init__(
        self,
        credentials: CredentialProvider,
        transport: HttpTransport,
        options: Optional[ClientOptions] = None,
        cache: Optional[QueryCache] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        """Initializes the client.

        Args:
            credentials: Supplies the API token on every cache miss.
            transport: Sends the HTTP request.
            options: Client configuration (defaults if None).
            cache: Cache to use when caching is enabled. A new one sized from
                ``options`` is created if None.
            rate_limiter: Limiter to use when rate limiting is enabled. A new
                one sized from ``options`` is created if None.
        """
        self.options = options or ClientOptions()
        self._credentials = credentials
        self._transport = transport
        self._cache: Optional[QueryCache] = None
        self._rate_limiter: Optional[RateLimiter] = None

        if self.options.enable_cache:
            self._cache = cache or QueryCache(default_max_age=self.options.cache_max_age)
        if self.options.enable_rate_limit:
            self._rate_limiter = rate_limiter or RateLimiter(
                max_requests=self.options.max_requests_per_minute,
                time_window=self.options.rate_limit_window,
            )

        logger.info(
            f"TallyQueryClient initialized: endpoint={self.options.endpoint}, "
            f"cache={self.options.enable_cache}, rate_limit={self.options.enable_rate_limit}, "
            f"retry_attempts={self.options.retry_attempts}"
        )

    # --- Introspection ---

    def get_endpoint(self) -> EndpointUrl:
        return self.options.endpoint

    def is_caching_enabled(self) -> bool:
        return self.options.enable_cache

    def validate_query(self, query: str) -> bool:
        """Returns True if the query parses as GraphQL."""
        return is_valid_query(query)

    def validate_variables(self, query: str, variables: QueryVariables) -> bool:
        """Returns True if every non-null variable the query declares is supplied."""
        return has_required_variables(query, variables)

    async def get_headers(self) -> Dict[str, str]:
        """Builds request headers, fetching the token from the credential holder.

        Raises:
            AuthenticationError: If the credential holder cannot supply a token.
        """
        try:
            api_key = self._credentials.get_api_key()
            if inspect.isawaitable(api_key):
                api_key = await api_key
        except AuthenticationError:
            raise
        except Exception as e:
            raise AuthenticationError(f"Failed to obtain API key: {e}") from e

        if not api_key:
            raise AuthenticationError(
                "Tally API key not configured. Please set TALLY_API_KEY environment variable."
            )
        return {
            "Content-Type": "application/json",
            self.options.auth_header: api_key,
        }

    # --- Query Execution ---

    async def query(self, query: QueryText, variables: Optional[QueryVariables] = None) -> Any:
        """Executes a GraphQL query and returns its ``data``.

        Args:
            query: GraphQL document text.
            variables: Variables for the operation, if any.

        Returns:
            The ``data`` member of the response body (possibly from cache).

        Raises:
            ValidationError: Query text or variables failed validation.
            AuthenticationError: No token could be obtained.
            RateLimitError: Admission was denied locally or upstream sent 429.
            NetworkError: Transport failure after the retry budget was spent.
            QueryError: The response body carried GraphQL errors.
        """
        if self.options.validate_queries:
            if not self.validate_query(query):
                raise ValidationError("Invalid GraphQL query syntax")
            if variables is not None and not self.validate_variables(query, variables):
                raise ValidationError("Invalid query variables")

        cache_key = generate_cache_key(query, variables)
        if self._cache is not None:
            cached_result = self._cache.get(cache_key)
            if cached_result is not None:
                logger.debug("Cache hit for query")
                return cached_result
            logger.debug("Cache miss for query")

        headers = await self.get_headers()
        result = await self._execute_with_retry(query, variables, headers)

        # A null result would read back as a miss, so it is not stored.
        if self._cache is not None and result is not None:
            self._cache.set(cache_key, result)
        return result

    async def _execute_with_retry(
        self, query: str, variables: Optional[QueryVariables], headers: Dict[str, str]
    ) -> Any:
        """Dispatches the request, retrying retryable network failures."""
        max_attempts = self.options.retry_attempts + 1
        for attempt in range(max_attempts):
            # 1. Local admission control (fail-fast, never retried)
            if self._rate_limiter is not None:
                if not self._rate_limiter.can_make_request():
                    retry_after = self._rate_limiter.get_retry_after()
                    raise RateLimitError(
                        f"Rate limit exceeded. Please retry after {retry_after} seconds.",
                        retry_after=retry_after,
                        limit=self._rate_limiter.max_requests,
                    )
                self._rate_limiter.record_request()

            # 2. Dispatch
            try:
                return await self._execute_query(query, variables, headers)
            except NetworkError as e:
                if e.status_code == HTTP_TOO_MANY_REQUESTS:
                    retry_after = (
                        self._rate_limiter.get_retry_after() if self._rate_limiter is not None else 0
                    ) or DEFAULT_RETRY_AFTER_SECONDS
                    raise RateLimitError(
                        f"API rate limit exceeded. Please retry after {retry_after} seconds.",
                        retry_after=retry_after,
                        limit=self.options.max_requests_per_minute,
                    ) from e

                if attempt + 1 >= max_attempts:
                    raise
                logger.warning(
                    f"Retryable error on attempt {attempt + 1}/{max_attempts}: {e}. "
                    f"Waiting {self.options.retry_delay:.2f}s..."
                )
                await asyncio.sleep(self.options.retry_delay)

        # Unreachable: the last attempt either returns or raises.
        raise NetworkError("Query was not attempted")

    async def _execute_query(
        self, query: str, variables: Optional[QueryVariables], headers: Dict[str, str]
    ) -> Any:
        """Performs one request and decodes the GraphQL response."""
        payload = {"query": query, "variables": variables}
        try:
            response: TransportResponse = await asyncio.wait_for(
                self._transport.send(
                    self.options.endpoint, headers, payload, self.options.timeout
                ),
                timeout=self.options.timeout,
            )
        except asyncio.TimeoutError as e:
            raise NetworkError(f"Request timed out after {self.options.timeout}s") from e
        except TallyMcpError:
            raise
        except OSError as e:
            raise NetworkError(f"Network error: {e}") from e

        if not response.ok:
            raise NetworkError(
                f"HTTP {response.status_code}: {response.reason}", status_code=response.status_code
            )

        try:
            body = json.loads(response.content)
        except (TypeError, ValueError) as e:
            raise NetworkError(f"Invalid JSON response: {e}") from e
        if not isinstance(body, dict):
            raise NetworkError("Invalid JSON response: expected an object")

        errors = body.get("errors")
        if errors:
            error_messages = ", ".join(
                str(err.get("message", err)) if isinstance(err, dict) else str(err) for err in errors
            )
            raise QueryError(f"GraphQL errors: {error_messages}", errors)

        return body.get("data")

    # --- Management Surface ---

    def clear_cache(self) -> None:
        if self._cache is not None:
            self._cache.clear()

    def get_cache_stats(self) -> CacheStats:
        if self._cache is not None:
            return self._cache.get_stats()
        return {"size": 0, "hits": 0, "misses": 0}

    async def aclose(self) -> None:
        """Closes the underlying transport."""
        await self._transport.aclose()


def create_tally_client(
    credentials: CredentialProvider,
    options: Optional[ClientOptions] = None,
    transport: Optional[HttpTransport] = None,
) -> TallyQueryClient:
    """Factory wiring the default httpx transport when none is given."""
    if transport is None:
        from tallymcp.infrastructure.http.httpx_transport import HttpxTransport
        transport = HttpxTransport()
    return TallyQueryClient(credentials, transport, options)
