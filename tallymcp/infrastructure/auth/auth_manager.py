"""API key management for the stdio and http transport modes.

The key is read once from configuration at startup and held for the life of
the server. The key itself is never included in reprs or logs.
"""

import logging
from typing import Any, Dict, Optional

from tallymcp.domain.errors import AuthenticationError, NetworkError
from tallymcp.domain.interfaces.credentials import CredentialProvider
from tallymcp.domain.interfaces.transport import HttpTransport
from tallymcp.domain.models.common import ApiKey, EndpointUrl
from tallymcp.infrastructure.config.settings import get_tally_api_key, get_tally_api_url

logger = logging.getLogger(__name__)

AUTH_MODES = ("stdio", "http")
MIN_API_KEY_LENGTH = 6
VALIDATION_QUERY = "query { __typename }"


class AuthManager(CredentialProvider):
    """Holds the Tally API key and hands it to the query client."""

    def __init__(self, mode: str = "stdio"):
        if mode not in AUTH_MODES:
            raise ValueError(f"Unsupported auth mode: {mode}")
        self._mode = mode
        self._api_key: Optional[ApiKey] = None
        self._initialized = False

    def get_mode(self) -> str:
        return self._mode

    def initialize(self) -> None:
        """Loads the key from configuration.

        Raises:
            AuthenticationError: If no key is configured.
        """
        key = get_tally_api_key()
        if not key:
            raise AuthenticationError("Tally API key not found in environment variables")
        self._api_key = ApiKey(key)
        self._initialized = True
        logger.info(f"AuthManager initialized (mode={self._mode})")

    def get_api_key(self) -> str:
        if not self._initialized or not self._api_key:
            raise AuthenticationError("API key not initialized")
        return self._api_key

    def has_api_key(self) -> bool:
        return bool(self._api_key)

    @staticmethod
    def is_valid_api_key_format(key: Any) -> bool:
        """Cheap local check: a string of at least six non-blank characters."""
        if not key or not isinstance(key, str):
            return False
        return len(key.strip()) >= MIN_API_KEY_LENGTH

    async def validate_api_key(
        self,
        transport: Optional[HttpTransport] = None,
        key: Optional[str] = None,
        endpoint: Optional[EndpointUrl] = None,
        timeout: float = 10.0,
    ) -> bool:
        """Checks a key against the live API with a trivial query.

        Args:
            transport: Transport used to send the check. A temporary
                httpx transport is used (and closed) if None.
            key: Key to check (defaults to the held key).
            endpoint: GraphQL endpoint (defaults to the configured URL).
            timeout: Seconds before the check is abandoned.

        Returns:
            True if the API answered with a 2xx status, False otherwise.
        """
        api_key = key or self._api_key
        if not api_key or not self.is_valid_api_key_format(api_key):
            return False

        owns_transport = transport is None
        if transport is None:
            from tallymcp.infrastructure.http.httpx_transport import HttpxTransport
            transport = HttpxTransport()

        try:
            response = await transport.send(
                endpoint or get_tally_api_url(),
                {"Content-Type": "application/json", "Api-Key": api_key},
                {"query": VALIDATION_QUERY},
                timeout,
            )
        except NetworkError as e:
            logger.warning(f"API key validation request failed: {e}")
            return False
        finally:
            if owns_transport:
                await transport.aclose()
        return response.ok

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self._mode,
            "hasApiKey": self.has_api_key(),
            "initialized": self._initialized,
        }

    def __repr__(self) -> str:
        return f"AuthManager(mode={self._mode}, hasApiKey={self.has_api_key()})"

    __str__ = __repr__


def redact_api_key(text: str, api_key: Optional[str]) -> str:
    """Replaces every occurrence of ``api_key`` in ``text`` with [REDACTED]."""
    if not api_key or not text:
        return text
    return text.replace(api_key, "[REDACTED]")
