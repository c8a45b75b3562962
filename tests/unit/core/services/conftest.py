import pytest
from unittest.mock import AsyncMock, MagicMock

from tallymcp.infrastructure.resilience.query_client import TallyQueryClient


@pytest.fixture
def mock_client():
    """A query client whose query() is an AsyncMock returning scripted data."""
    client = MagicMock(spec=TallyQueryClient)
    client.query = AsyncMock()
    return client
