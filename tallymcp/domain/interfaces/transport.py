"""Interface for the network transport used by the query client.

The query client never talks to an HTTP library directly; it sends one
request through this port. Tests substitute a fake transport through the
client's constructor.
"""

import abc
from typing import Any, Dict

from ..models.common import TransportResponse


class HttpTransport(abc.ABC):
    """Abstract Base Class for sending a single JSON POST request."""

    @abc.abstractmethod
    async def send(
        self,
        url: str,
        headers: Dict[str, str],
        payload: Dict[str, Any],
        timeout: float,
    ) -> TransportResponse:
        """Sends ``payload`` as a JSON body to ``url``.

        Args:
            url: The endpoint URL.
            headers: Request headers, including the auth header.
            payload: The JSON-serializable request body.
            timeout: Seconds before the request is abandoned.

        Returns:
            The raw response. Non-2xx statuses are returned, not raised.

        Raises:
            NetworkError: On connection failures and timeouts.
        """
        pass

    async def aclose(self) -> None:
        """Releases any pooled connections. Default is a no-op."""
        return None
