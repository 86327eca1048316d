from dataclasses import dataclass, field, is_dataclass
from enum import Enum
from pathlib import Path
import sys
import tomllib
from typing import Any, TypeVar

from loguru import logger

from cryptotracker.clients.coinbase import DEFAULT_BASE_URL
from cryptotracker.sync import DEFAULT_MAX_CONCURRENCY, DEFAULT_RATE_LIMIT

# --- Constants ---
APP_NAME = "cryptotracker"
# Use a platform-agnostic user config directory
if sys.platform == "win32":
    CONFIG_DIR = Path.home() / "AppData" / "Roaming" / APP_NAME
else:
    CONFIG_DIR = Path.home() / ".config" / APP_NAME

CONFIG_FILE = CONFIG_DIR / "config.toml"

# Quote currencies offered as the preferred listing filter.
QUOTE_CURRENCIES: tuple[str, ...] = (
    "USD",
    "BTC",
    "ETH",
    "USDT",
    "USDC",
    "EUR",
    "GBP",
    "DAI",
)

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")

T = TypeVar("T")


class AppTheme(Enum):
    LIGHT = "Light"
    DARK = "Dark"
    SYSTEM = "System"


class AccentColor(Enum):
    DEFAULT = "Default"
    RED = "Red"
    BLUE = "Blue"
    GREEN = "Green"
    YELLOW = "Yellow"
    ORANGE = "Orange"
    PURPLE = "Purple"
    PINK = "Pink"


# --- Dataclass Models for Settings ---


@dataclass
class GeneralSettings:
    """General application settings."""

    log_level_console: str = "INFO"
    log_level_file: str = "DEBUG"
    log_directory: str = str(CONFIG_DIR / "logs")


@dataclass
class APISettings:
    """Settings for the exchange REST API."""

    base_url: str = DEFAULT_BASE_URL
    request_timeout_s: float = 20.0


@dataclass
class SyncSettings:
    """Limits for the statistics fan-out."""

    max_concurrent_requests: int = DEFAULT_MAX_CONCURRENCY
    requests_per_second: int = DEFAULT_RATE_LIMIT


@dataclass
class WatchlistSettings:
    """Where the watchlist blob is stored."""

    storage_path: str = str(CONFIG_DIR / "watchlist.json")


@dataclass
class DisplaySettings:
    """User preferences for how products are listed."""

    preferred_quote_currency: str = "USD"
    theme: AppTheme = AppTheme.SYSTEM
    accent_color: AccentColor = AccentColor.BLUE


@dataclass
class Settings:
    """Root container for all application settings."""

    general: GeneralSettings = field(default_factory=GeneralSettings)
    api: APISettings = field(default_factory=APISettings)
    sync: SyncSettings = field(default_factory=SyncSettings)
    watchlist: WatchlistSettings = field(default_factory=WatchlistSettings)
    display: DisplaySettings = field(default_factory=DisplaySettings)


def _update_dataclass(dc_instance: T, data: dict[str, Any]) -> T:
    """Recursively updates a dataclass instance from a dictionary."""
    for f in field_names(dc_instance):
        if f in data:
            field_value = getattr(dc_instance, f)
            if is_dataclass(field_value):
                if not isinstance(data[f], dict):
                    err_msg = f"Section '{f}' must be a table"
                    raise ValueError(err_msg)
                _update_dataclass(field_value, data[f])
            else:
                setattr(dc_instance, f, data[f])
    return dc_instance


def field_names(dc_instance: Any) -> list[str]:
    """Helper to get field names from a dataclass instance."""
    return [f.name for f in dc_instance.__dataclass_fields__.values()]


def _coerce_enum(enum_cls: type[Enum], value: Any, default: Enum) -> Any:
    """Returns the enum member for `value`, or `default` if there is none."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning(
            f"Invalid {enum_cls.__name__} '{value}', using '{default.value}'."
        )
        return default


def _check_types(section: Any, defaults: Any, section_name: str) -> None:
    """Replaces scalar values whose type differs from the default's."""
    for name in field_names(section):
        value = getattr(section, name)
        default = getattr(defaults, name)
        if isinstance(default, float):
            valid = (
                isinstance(value, int | float)
                and not isinstance(value, bool)
                and value > 0
            )
            if valid:
                setattr(section, name, float(value))
        else:
            valid = isinstance(value, type(default))
        if not valid:
            logger.warning(
                f"Invalid {section_name}.{name} '{value}', using '{default}'."
            )
            setattr(section, name, default)


def _validate(settings_obj: Settings) -> Settings:
    """Replaces out-of-range preference values with their defaults."""
    _check_types(settings_obj.general, GeneralSettings(), "general")
    _check_types(settings_obj.api, APISettings(), "api")
    _check_types(settings_obj.watchlist, WatchlistSettings(), "watchlist")

    general = settings_obj.general
    general_defaults = GeneralSettings()
    for name in ("log_level_console", "log_level_file"):
        value = getattr(general, name)
        if value.upper() not in LOG_LEVELS:
            default = getattr(general_defaults, name)
            logger.warning(f"Unknown log level '{value}', using '{default}'.")
            setattr(general, name, default)

    display = settings_obj.display
    defaults = DisplaySettings()
    if display.preferred_quote_currency not in QUOTE_CURRENCIES:
        logger.warning(
            f"Unsupported quote currency '{display.preferred_quote_currency}', "
            f"using '{defaults.preferred_quote_currency}'."
        )
        display.preferred_quote_currency = defaults.preferred_quote_currency
    display.theme = _coerce_enum(AppTheme, display.theme, defaults.theme)
    display.accent_color = _coerce_enum(
        AccentColor, display.accent_color, defaults.accent_color
    )

    sync = settings_obj.sync
    sync_defaults = SyncSettings()
    for name in field_names(sync):
        value = getattr(sync, name)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            default = getattr(sync_defaults, name)
            logger.warning(f"Invalid sync.{name} '{value}', using {default}.")
            setattr(sync, name, default)
    return settings_obj


def load_config(path: Path = CONFIG_FILE) -> Settings:
    """Loads settings from a TOML file, merging them with defaults.

    If the config file does not exist, it creates one with default values.

    Args:
        path: The path to the configuration file.

    Returns:
        A populated Settings object.
    """
    settings_obj = Settings()
    logger.info(f"Loading configuration from '{path}'...")

    if not path.exists():
        logger.warning(f"Configuration file not found. Creating default at '{path}'.")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as f:
                f.write("# CryptoTracker Configuration File\n")
                f.write("# Add your settings overrides here, e.g.:\n")
                f.write("# [display]\n")
                f.write('# preferred_quote_currency = "EUR"\n')
        except OSError as e:
            logger.error(f"Failed to create default config file: {e}")
        return settings_obj

    try:
        with path.open("rb") as f:
            user_config = tomllib.load(f)
        _update_dataclass(settings_obj, user_config)
        logger.success("Successfully loaded user configuration.")
    except tomllib.TOMLDecodeError as e:
        logger.error(f"Error decoding TOML from '{path}': {e}")
        logger.warning("Using default settings due to configuration error.")
        return Settings()
    except (OSError, ValueError) as e:
        logger.error(f"An unexpected error occurred while loading config: {e}")
        logger.warning("Using default settings due to configuration error.")
        return Settings()

    return _validate(settings_obj)
