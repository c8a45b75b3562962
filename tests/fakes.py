"""Test doubles shared across the suite."""

import json
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Union

from tallymcp.domain.errors import NetworkError
from tallymcp.domain.interfaces.credentials import CredentialProvider
from tallymcp.domain.interfaces.transport import HttpTransport
from tallymcp.domain.models.common import TransportResponse


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def graphql_response(
    data: Any = None, errors: Optional[List[Any]] = None, status_code: int = 200, reason: str = "OK"
) -> TransportResponse:
    """Builds a transport response carrying a GraphQL JSON body."""
    body: Dict[str, Any] = {"data": data}
    if errors is not None:
        body["errors"] = errors
    return TransportResponse(status_code=status_code, reason=reason, content=json.dumps(body).encode())


class FakeTransport(HttpTransport):
    """Replays scripted responses (or raises scripted exceptions) in order."""

    def __init__(self, *script: Union[TransportResponse, Exception]):
        self.script: Deque[Union[TransportResponse, Exception]] = deque(script)
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def queue(self, *items: Union[TransportResponse, Exception]) -> None:
        self.script.extend(items)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def send(self, url, headers, payload, timeout) -> TransportResponse:
        self.calls.append({"url": url, "headers": headers, "payload": payload, "timeout": timeout})
        if not self.script:
            raise NetworkError("FakeTransport script exhausted")
        item = self.script.popleft()
        if isinstance(item, Exception):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


class StaticCredentials(CredentialProvider):
    def __init__(self, api_key: Optional[str] = "test-api-key"):
        self.api_key = api_key
        self.calls = 0

    def get_api_key(self) -> str:
        self.calls += 1
        return self.api_key

