"""HTTP transport backed by httpx.

Sends one JSON POST per call through a shared AsyncClient and translates
httpx failures into NetworkError, leaving status handling to the caller.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from tallymcp import __version__
from tallymcp.domain.errors import NetworkError
from tallymcp.domain.interfaces.transport import HttpTransport
from tallymcp.domain.models.common import TransportResponse

logger = logging.getLogger(__name__)

USER_AGENT = f"mcp-tally-api/{__version__}"


class HttpxTransport(HttpTransport):
    """HttpTransport implementation using a lazily created httpx.AsyncClient."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(headers={"User-Agent": USER_AGENT})
        return self._client

    async def send(
        self,
        url: str,
        headers: Dict[str, str],
        payload: Dict[str, Any],
        timeout: float,
    ) -> TransportResponse:
        try:
            response = await self._get_client().post(
                url, headers=headers, json=payload, timeout=timeout
            )
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Network error: {e}") from e

        logger.debug(f"POST {url} -> {response.status_code}")
        return TransportResponse(
            status_code=response.status_code,
            reason=response.reason_phrase,
            content=response.content,
            headers=dict(response.headers),
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
