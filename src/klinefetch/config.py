from dataclasses import dataclass, field, is_dataclass
from pathlib import Path
import sys
import tomllib
from typing import Any, ClassVar, TypeVar

from loguru import logger

from klinefetch.dispatcher import (
    DEFAULT_CONCURRENCY_LIMIT,
    DEFAULT_RETRY_LIMIT,
    DEFAULT_RETRY_PAUSE_S,
)
from klinefetch.errors import ConfigError

# --- Constants ---
APP_NAME = "klinefetch"
# Use a platform-agnostic user config directory
if sys.platform == "win32":
    CONFIG_DIR = Path.home() / "AppData" / "Roaming" / APP_NAME
else:
    CONFIG_DIR = Path.home() / ".config" / APP_NAME

CONFIG_FILE = CONFIG_DIR / "config.toml"

# --- Dataclass Models for Settings ---
T = TypeVar("T")


@dataclass
class GeneralSettings:
    """General application settings."""

    log_level_console: str = "INFO"
    log_level_file: str = "DEBUG"
    # File logging is disabled unless a directory is configured.
    log_directory: str | None = None


@dataclass
class FetchSettings:
    """Settings for the kline fetch dispatcher."""

    concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT
    retry_limit: int = DEFAULT_RETRY_LIMIT
    retry_pause_s: float = DEFAULT_RETRY_PAUSE_S
    request_timeout_s: float = 30.0

    def validate(self) -> None:
        """Checks that every value has the right type and is within range.

        Raises:
            ConfigError: If a value has the wrong type or is out of range.
        """
        for name in ("concurrency_limit", "retry_limit"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                err_msg = f"{name} must be an integer, got {value!r}"
                raise ConfigError(err_msg)
        for name in ("retry_pause_s", "request_timeout_s"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int | float):
                err_msg = f"{name} must be a number, got {value!r}"
                raise ConfigError(err_msg)

        if self.concurrency_limit <= 0:
            err_msg = f"concurrency_limit must be positive, got {self.concurrency_limit}"
            raise ConfigError(err_msg)
        if self.retry_limit <= 0:
            err_msg = f"retry_limit must be positive, got {self.retry_limit}"
            raise ConfigError(err_msg)
        if self.retry_pause_s < 0:
            err_msg = f"retry_pause_s must not be negative, got {self.retry_pause_s}"
            raise ConfigError(err_msg)
        if self.request_timeout_s <= 0:
            err_msg = f"request_timeout_s must be positive, got {self.request_timeout_s}"
            raise ConfigError(err_msg)


@dataclass
class Settings:
    """Root container for all application settings."""

    general: GeneralSettings = field(default_factory=GeneralSettings)
    fetch: FetchSettings = field(default_factory=FetchSettings)

    _instance: ClassVar["Settings | None"] = None

    @classmethod
    def get_instance(cls) -> "Settings":
        """Returns the singleton instance of the Settings object."""
        if cls._instance is None:
            cls._instance = load_config()
        return cls._instance


def _update_dataclass(dc_instance: T, data: dict[str, Any]) -> T:
    """Recursively updates a dataclass instance from a dictionary."""
    for f in field_names(dc_instance):
        if f in data:
            field_value = getattr(dc_instance, f)
            if is_dataclass(field_value):
                if not isinstance(data[f], dict):
                    err_msg = f"[{f}] must be a table, got {data[f]!r}"
                    raise ConfigError(err_msg)
                _update_dataclass(field_value, data[f])
            else:
                setattr(dc_instance, f, data[f])
    return dc_instance


def field_names(dc_instance: Any) -> list[str]:
    """Helper to get field names from a dataclass instance."""
    return [f.name for f in dc_instance.__dataclass_fields__.values()]


def load_config(path: Path = CONFIG_FILE) -> Settings:
    """Loads settings from a TOML file, merging them with defaults.

    A missing file simply yields the defaults. A file that is not valid TOML
    is reported and ignored.

    Args:
        path: The path to the configuration file.

    Returns:
        A populated Settings object.

    Raises:
        ConfigError: If a section is not a table, or a fetch setting has the
            wrong type or is out of its valid range.
    """
    settings_obj = Settings()

    if not path.exists():
        logger.debug(f"No configuration file at '{path}', using defaults.")
        return settings_obj

    logger.info(f"Loading configuration from '{path}'...")
    try:
        with path.open("rb") as f:
            user_config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        logger.error(f"Error decoding TOML from '{path}': {e}")
        logger.warning("Using default settings due to configuration error.")
        return settings_obj
    except OSError as e:
        logger.error(f"Could not read configuration file '{path}': {e}")
        logger.warning("Using default settings due to configuration error.")
        return settings_obj

    _update_dataclass(settings_obj, user_config)
    settings_obj.fetch.validate()
    logger.success("Successfully loaded user configuration.")
    return settings_obj
