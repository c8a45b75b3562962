import json

import pytest

from tallymcp.domain.errors import ConfigValidationError
from tallymcp.infrastructure.config import settings


def test_defaults_without_any_source():
    config = settings.load_configuration()

    assert config == settings.DEFAULT_CONFIG
    assert settings.get_port() == 3000
    assert settings.get_log_level() == "info"
    assert settings.get_transport_mode() == "stdio"
    assert settings.get_tally_api_key() is None
    assert settings.get_tally_api_url() == "https://api.tally.xyz/query"
    assert settings.get_max_retries() == 3


def test_getters_load_lazily(monkeypatch):
    monkeypatch.setenv("PORT", "4100")

    assert settings.get_port() == 4100


def test_environment_values_are_converted(monkeypatch):
    monkeypatch.setenv("TALLY_API_KEY", "env-key")
    monkeypatch.setenv("MAX_RETRIES", "5")
    monkeypatch.setenv("TALLY_ENABLE_CACHE", "false")
    monkeypatch.setenv("TALLY_CACHE_MAX_AGE", "12.5")
    monkeypatch.setenv("TALLY_VALIDATE_QUERIES", "0")
    monkeypatch.setenv("TALLY_ENABLE_RATE_LIMIT", "yes")
    monkeypatch.setenv("TALLY_MAX_REQUESTS_PER_MINUTE", "10")

    config = settings.load_configuration()

    assert config["tally_api_key"] == "env-key"
    assert config["max_retries"] == 5
    assert config["enable_cache"] is False
    assert config["cache_max_age"] == 12.5
    assert config["validate_queries"] is False
    assert config["enable_rate_limit"] is True
    assert config["max_requests_per_minute"] == 10


def test_unconvertible_environment_value(monkeypatch):
    monkeypatch.setenv("PORT", "eighty")

    with pytest.raises(ConfigValidationError, match="PORT"):
        settings.load_configuration()


@pytest.mark.parametrize(
    "env_key, raw",
    [("PORT", "70000"), ("LOG_LEVEL", "verbose"), ("TRANSPORT_MODE", "grpc"), ("TALLY_API_URL", "ftp://x"),
     ("TALLY_TIMEOUT", "0"), ("MAX_RETRIES", "-1"), ("TALLY_MAX_REQUESTS_PER_MINUTE", "0")],
)
def test_out_of_range_values_rejected(monkeypatch, env_key, raw):
    monkeypatch.setenv(env_key, raw)

    with pytest.raises(ConfigValidationError, match="Invalid value for"):
        settings.load_configuration()


def test_yaml_config_file(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("port: 8080\nlog_level: debug\nmax_retries: 1\n")

    config = settings.load_configuration(config_file=config_file)

    assert config["port"] == 8080
    assert config["log_level"] == "debug"
    assert config["max_retries"] == 1


def test_json_config_file_from_environment_variable(tmp_path, monkeypatch):
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"transport_mode": "http", "timeout": 5}))
    monkeypatch.setenv("MCP_CONFIG_FILE", str(config_file))

    config = settings.load_configuration()

    assert config["transport_mode"] == "http"
    assert config["timeout"] == 5


def test_missing_config_file_is_ignored(tmp_path):
    config = settings.load_configuration(config_file=tmp_path / "absent.yaml")

    assert config["port"] == 3000


def test_unsupported_config_file_format(tmp_path):
    config_file = tmp_path / "config.toml"
    config_file.write_text("port = 1")

    with pytest.raises(ConfigValidationError, match="Unsupported config file format"):
        settings.load_configuration(config_file=config_file)


def test_malformed_and_non_mapping_config_files(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    listing = tmp_path / "list.yaml"
    listing.write_text("- 1\n- 2\n")

    with pytest.raises(ConfigValidationError, match="Failed to load config file"):
        settings.load_configuration(config_file=broken)
    with pytest.raises(ConfigValidationError, match="did not contain a mapping"):
        settings.load_configuration(config_file=listing)


def test_priority_cli_over_env_over_file(tmp_path, monkeypatch):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("port: 1111\nlog_level: debug\nmax_retries: 1\n")
    monkeypatch.setenv("PORT", "2222")
    monkeypatch.setenv("LOG_LEVEL", "error")

    config = settings.load_configuration(
        config_file=config_file, cli_args={"port": 3333, "log_level": None}
    )

    assert config["port"] == 3333
    assert config["log_level"] == "error"
    assert config["max_retries"] == 1


def test_dotenv_does_not_override_environment(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("TALLY_API_KEY=dotenv-key\nPORT=5000\n")
    monkeypatch.setenv("PORT", "6000")
    # Registered so monkeypatch removes what load_dotenv writes
    monkeypatch.setenv("TALLY_API_KEY", "placeholder")
    monkeypatch.delenv("TALLY_API_KEY")

    config = settings.load_configuration(env_file=env_file)

    assert config["tally_api_key"] == "dotenv-key"
    assert config["port"] == 6000


def test_set_config_validates():
    settings.set_config("port", 9000)
    assert settings.get_port() == 9000

    with pytest.raises(ConfigValidationError):
        settings.set_config("log_level", "loud")


def test_test_overrides_win_and_clear():
    settings.load_configuration()
    settings.set_config_for_testing({"max_retries": 7})

    assert settings.get_max_retries() == 7
    assert settings.get_all_config()["max_retries"] == 7

    settings.clear_test_config()
    assert settings.get_max_retries() == 3


def test_get_config_default_for_unset_key():
    assert settings.get_config("tally_api_key", "fallback") == "fallback"
    assert settings.get_config("no_such_key") is None


def test_build_client_options_from_config():
    settings.set_config_for_testing({
        "tally_api_url": "https://example.test/query",
        "max_retries": 2,
        "enable_cache": False,
        "timeout": 7.5,
        "retry_delay": 0.25,
        "max_requests_per_minute": 12,
    })

    options = settings.build_client_options()

    assert options.endpoint == "https://example.test/query"
    assert options.retry_attempts == 2
    assert options.enable_cache is False
    assert options.timeout == 7.5
    assert options.retry_delay == 0.25
    assert options.max_requests_per_minute == 12
    assert options.validate_queries is True
