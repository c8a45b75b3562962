"""Provides functions for loading and accessing configuration settings.

Values are merged from several sources. Priority order (highest to lowest):
1. CLI arguments
2. Environment variables
3. .env file (loaded without overriding variables already set)
4. Configuration file (YAML or JSON)
5. Default values
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union
from urllib.parse import urlparse

import yaml
from dotenv import load_dotenv

from tallymcp.domain.errors import ConfigValidationError
from tallymcp.infrastructure.resilience.query_client import ClientOptions

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
ENV_FILE_NAME = ".env"
LOG_LEVELS = ("debug", "info", "warn", "error")
TRANSPORT_MODES = ("stdio", "http", "sse")

DEFAULT_CONFIG: Dict[str, Any] = {
    "port": 3000,
    "log_level": "info",
    "transport_mode": "stdio",
    "tally_api_key": None,
    "tally_api_url": "https://api.tally.xyz/query",
    "max_retries": 3,
    "enable_cache": True,
    "cache_max_age": 300.0,
    "validate_queries": True,
    "timeout": 30.0,
    "retry_delay": 1.0,
    "enable_rate_limit": True,
    "max_requests_per_minute": 30,
}


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes", "on")


# Environment variable -> (config key, converter)
ENV_MAPPINGS: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "PORT": ("port", int),
    "LOG_LEVEL": ("log_level", str),
    "TRANSPORT_MODE": ("transport_mode", str),
    "TALLY_API_KEY": ("tally_api_key", str),
    "TALLY_API_URL": ("tally_api_url", str),
    "MAX_RETRIES": ("max_retries", int),
    "TALLY_ENABLE_CACHE": ("enable_cache", _to_bool),
    "TALLY_CACHE_MAX_AGE": ("cache_max_age", float),
    "TALLY_VALIDATE_QUERIES": ("validate_queries", _to_bool),
    "TALLY_TIMEOUT": ("timeout", float),
    "TALLY_RETRY_DELAY": ("retry_delay", float),
    "TALLY_ENABLE_RATE_LIMIT": ("enable_rate_limit", _to_bool),
    "TALLY_MAX_REQUESTS_PER_MINUTE": ("max_requests_per_minute", int),
}
CONFIG_FILE_ENV = "MCP_CONFIG_FILE"

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}  # For testing purposes
_loaded = False


# --- Validation ---

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_http_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


VALIDATORS: Dict[str, Tuple[Callable[[Any], bool], str]] = {
    "port": (lambda v: _is_int(v) and 1 <= v <= 65535, "must be an integer between 1 and 65535"),
    "log_level": (lambda v: v in LOG_LEVELS, f"must be one of {', '.join(LOG_LEVELS)}"),
    "transport_mode": (lambda v: v in TRANSPORT_MODES, f"must be one of {', '.join(TRANSPORT_MODES)}"),
    "tally_api_key": (lambda v: v is None or isinstance(v, str), "must be a string"),
    "tally_api_url": (_is_http_url, "must be an http(s) URL"),
    "max_retries": (lambda v: _is_int(v) and v >= 0, "must be a non-negative integer"),
    "enable_cache": (lambda v: isinstance(v, bool), "must be a boolean"),
    "cache_max_age": (lambda v: _is_number(v) and v > 0, "must be a positive number of seconds"),
    "validate_queries": (lambda v: isinstance(v, bool), "must be a boolean"),
    "timeout": (lambda v: _is_number(v) and v > 0, "must be a positive number of seconds"),
    "retry_delay": (lambda v: _is_number(v) and v >= 0, "must be a non-negative number of seconds"),
    "enable_rate_limit": (lambda v: isinstance(v, bool), "must be a boolean"),
    "max_requests_per_minute": (lambda v: _is_int(v) and v >= 1, "must be a positive integer"),
}


def validate_value(key: str, value: Any) -> None:
    """Checks a single known key. Unknown keys are accepted as-is.

    Raises:
        ConfigValidationError: If ``value`` is not acceptable for ``key``.
    """
    if key not in VALIDATORS or value is None:
        return
    check, requirement = VALIDATORS[key]
    if not check(value):
        raise ConfigValidationError(f"Invalid value for {key}: {value!r} ({requirement})")


# --- Loading ---

def _read_config_file(config_file: Path) -> Dict[str, Any]:
    """Parses a YAML or JSON configuration file into a dictionary."""
    suffix = config_file.suffix.lower()
    if suffix not in (".json", ".yaml", ".yml"):
        raise ConfigValidationError(f"Unsupported config file format: {suffix or config_file.name}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            if suffix == ".json":
                file_config = json.load(f)
            else:
                file_config = yaml.safe_load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigValidationError(f"Failed to load config file: {e}") from e

    if file_config is None:
        return {}
    if not isinstance(file_config, dict):
        raise ConfigValidationError(f"Config file {config_file} did not contain a mapping")
    return file_config


def _read_environment() -> Dict[str, Any]:
    """Collects known environment variables, converted to their config types."""
    env_config: Dict[str, Any] = {}
    for env_key, (config_key, convert) in ENV_MAPPINGS.items():
        raw_value = os.environ.get(env_key)
        if raw_value is None or raw_value == "":
            continue
        try:
            env_config[config_key] = convert(raw_value)
        except ValueError as e:
            raise ConfigValidationError(f"Invalid value for {env_key}: {raw_value!r}") from e
    return env_config


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def load_configuration(
    config_file: Optional[Union[str, Path]] = None,
    env_file: Optional[Union[str, Path]] = None,
    cli_args: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Loads configuration from every source and validates the result.

    Args:
        config_file: YAML/JSON configuration file. Falls back to the
            ``MCP_CONFIG_FILE`` environment variable.
        env_file: Path to the .env file (searches upwards from cwd if None).
        cli_args: Values given on the command line. None entries are ignored.

    Returns:
        A copy of the merged configuration.

    Raises:
        ConfigValidationError: If a source cannot be read or a value is invalid.
    """
    global _config, _loaded

    merged: Dict[str, Any] = dict(DEFAULT_CONFIG)

    # .env only fills in variables that are not already set
    dotenv_path = Path(env_file) if env_file else find_dotenv_path()
    if dotenv_path and dotenv_path.is_file():
        load_dotenv(dotenv_path=dotenv_path, override=False)
        logger.info(f"Loaded environment variables from: {dotenv_path}")

    file_path = config_file or os.environ.get(CONFIG_FILE_ENV)
    if file_path:
        file_path = Path(file_path)
        if file_path.exists():
            merged.update(_read_config_file(file_path))
            logger.info(f"Loaded configuration from file: {file_path}")
        else:
            logger.debug(f"Config file not found: {file_path}")

    merged.update(_read_environment())

    if cli_args:
        merged.update({key: value for key, value in cli_args.items() if value is not None})

    for key, value in merged.items():
        validate_value(key, value)

    _config = merged
    _loaded = True
    logger.debug("Configuration loading process completed.")
    return dict(_config)


def _ensure_loaded() -> None:
    if not _loaded:
        load_configuration()


# --- Access ---

def get_config(key: str, default: Any = None) -> Any:
    """Get a configuration value by key.

    Test overrides win over loaded values; ``default`` is returned when the
    key is absent or unset.
    """
    if key in _test_config:
        return _test_config[key]
    _ensure_loaded()
    value = _config.get(key)
    return default if value is None else value


def set_config(key: str, value: Any) -> None:
    """Sets a configuration value at CLI priority after validating it."""
    validate_value(key, value)
    _ensure_loaded()
    _config[key] = value
    logger.debug(f"Config set: {key}")


def get_all_config() -> Dict[str, Any]:
    """Returns a copy of the effective configuration, test overrides included."""
    _ensure_loaded()
    merged = dict(_config)
    merged.update(_test_config)
    return merged


# --- Convenience Functions ---

def get_port() -> int:
    return int(get_config("port", DEFAULT_CONFIG["port"]))


def get_log_level() -> str:
    return str(get_config("log_level", DEFAULT_CONFIG["log_level"]))


def get_transport_mode() -> str:
    return str(get_config("transport_mode", DEFAULT_CONFIG["transport_mode"]))


def get_tally_api_key() -> Optional[str]:
    key = get_config("tally_api_key")
    return str(key) if key else None


def get_tally_api_url() -> str:
    return str(get_config("tally_api_url", DEFAULT_CONFIG["tally_api_url"]))


def get_max_retries() -> int:
    return int(get_config("max_retries", DEFAULT_CONFIG["max_retries"]))


def build_client_options() -> ClientOptions:
    """Builds query client options from the current configuration."""
    return ClientOptions(
        endpoint=get_tally_api_url(),
        enable_cache=bool(get_config("enable_cache", True)),
        cache_max_age=float(get_config("cache_max_age", DEFAULT_CONFIG["cache_max_age"])),
        validate_queries=bool(get_config("validate_queries", True)),
        timeout=float(get_config("timeout", DEFAULT_CONFIG["timeout"])),
        retry_attempts=get_max_retries(),
        retry_delay=float(get_config("retry_delay", DEFAULT_CONFIG["retry_delay"])),
        enable_rate_limit=bool(get_config("enable_rate_limit", True)),
        max_requests_per_minute=int(
            get_config("max_requests_per_minute", DEFAULT_CONFIG["max_requests_per_minute"])
        ),
    )


# --- Testing Helpers ---

def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration keys: {sorted(config_dict)}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")


def reset_configuration() -> None:
    """Drops loaded values so the next access reloads every source."""
    global _config, _loaded
    _config = {}
    _loaded = False
