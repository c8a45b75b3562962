import pytest
from typer.testing import CliRunner

from tallymcp.infrastructure.config import settings
from tests.fakes import FakeClock, FakeTransport, StaticCredentials


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def credentials():
    return StaticCredentials()


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keeps the host environment and any .env file out of configuration."""
    for env_key in list(settings.ENV_MAPPINGS) + [settings.CONFIG_FILE_ENV]:
        monkeypatch.delenv(env_key, raising=False)
    monkeypatch.setattr(settings, "find_dotenv_path", lambda: None)
    settings.reset_configuration()
    settings.clear_test_config()
    yield
    settings.reset_configuration()
    settings.clear_test_config()
