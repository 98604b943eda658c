"""
Configuration management for hexcheck.

Settings come from dataclass defaults, then an optional config file
(JSON, YAML or TOML), then ``HEXCHECK_*`` environment variables.
"""

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml
import yaml
from rich.console import Console

from .error_handling import ErrorCategory, get_error_handler
from .notifications import NotificationLevel, Notifier

console = Console(stderr=True)

DEFAULT_REGISTRY_URL = "https://hex.pm/api/packages"
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class DisplayConfig:
    """How annotations look. Has no bearing on fetching or comparing."""

    highlight_color: Optional[str] = "#8ec07c"
    italic: bool = True
    bold: bool = False
    message_prefix: str = "new version available "


@dataclass
class NetworkConfig:
    """Registry endpoint and request limits."""

    registry_url: str = DEFAULT_REGISTRY_URL
    connect_timeout: float = 5.0
    timeout: float = 10.0
    user_agent: str = "hexcheck/1.0.0"


@dataclass
class LoggingConfig:
    """Diagnostic logging, separate from user-facing notifications."""

    log_level: str = "WARNING"
    structured: bool = False
    log_file_path: Optional[str] = None
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class HexcheckConfig:
    """Main configuration containing all subsections."""

    display: DisplayConfig = field(default_factory=DisplayConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def validate_config_values(config: HexcheckConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []

    if config.network.connect_timeout <= 0:
        errors.append("network.connect_timeout must be positive")
    if config.network.timeout <= 0:
        errors.append("network.timeout must be positive")
    if not config.network.registry_url.startswith(("http://", "https://")):
        errors.append("network.registry_url must be an http(s) URL")

    if config.logging.log_level.upper() not in VALID_LOG_LEVELS:
        errors.append(
            f"logging.log_level must be one of: {', '.join(sorted(VALID_LOG_LEVELS))}"
        )

    return errors


def apply_display_options(
    display: DisplayConfig,
    options: Dict[str, Any],
    notifier: Optional[Notifier] = None,
) -> DisplayConfig:
    """
    Merge user display options into ``display`` after type-checking them.

    ``highlight_color=False`` turns the color off. Values of the wrong type
    are reported as warnings and left out.
    """
    def reject(message: str) -> None:
        if notifier is not None:
            notifier.notify(message, NotificationLevel.WARN)
        else:
            console.print(f"⚠️  {message}", style="yellow")

    if "highlight_color" in options and options["highlight_color"] is not None:
        color = options["highlight_color"]
        if color is False:
            display.highlight_color = None
        elif isinstance(color, str):
            display.highlight_color = color
        else:
            reject("hexcheck: highlight_color must be a string")

    for flag in ("italic", "bold"):
        if flag in options and options[flag] is not None:
            if isinstance(options[flag], bool):
                setattr(display, flag, options[flag])
            else:
                reject(f"hexcheck: {flag} must be true or false")

    if "message_prefix" in options and options["message_prefix"] is not None:
        if isinstance(options["message_prefix"], str):
            display.message_prefix = options["message_prefix"]
        else:
            reject("hexcheck: message_prefix must be a string")

    return display


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            suffix = config_path.suffix.lower()
            if suffix in [".yaml", ".yml"]:
                return yaml.safe_load(f)
            elif suffix == ".toml":
                return toml.load(f)
            elif suffix == ".json":
                return json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        get_error_handler().warning(
            ErrorCategory.CONFIGURATION,
            "Config file could not be loaded",
            "cli_config",
            "load_config_file",
            exception=e,
            details={"file_path": config_path.name},
        )
        console.print(
            f"⚠️  Error loading config from {config_path}: {e}", style="yellow"
        )

    return None


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".hexcheck.json",
        Path.cwd() / ".hexcheck.yaml",
        Path.cwd() / ".hexcheck.yml",
        Path.cwd() / ".hexcheck.toml",
        Path.home() / ".config" / "hexcheck" / "config.json",
        Path.home() / ".config" / "hexcheck" / "config.yaml",
        Path.home() / ".config" / "hexcheck" / "config.toml",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def load_environment_overrides(config: HexcheckConfig) -> None:
    """Load environment variable overrides."""

    def get_env_float(key: str) -> Optional[float]:
        try:
            return float(os.environ[key]) if key in os.environ else None
        except ValueError:
            console.print(
                f"⚠️  Invalid float value for {key}, using default", style="yellow"
            )
            return None

    if registry_url := os.environ.get("HEXCHECK_REGISTRY_URL"):
        config.network.registry_url = registry_url.rstrip("/")
    connect_timeout = get_env_float("HEXCHECK_CONNECT_TIMEOUT")
    if connect_timeout is not None:
        config.network.connect_timeout = connect_timeout
    timeout = get_env_float("HEXCHECK_TIMEOUT")
    if timeout is not None:
        config.network.timeout = timeout

    if log_level := os.environ.get("HEXCHECK_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()

    if color := os.environ.get("HEXCHECK_HIGHLIGHT_COLOR"):
        config.display.highlight_color = color
    if prefix := os.environ.get("HEXCHECK_MESSAGE_PREFIX"):
        config.display.message_prefix = prefix


def _accepts(default: Any, value: Any) -> bool:
    if isinstance(default, bool):
        return isinstance(value, bool)
    if isinstance(default, float):
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if default is None:
        return value is None or isinstance(value, str)
    return isinstance(value, type(default))


def apply_config_section(
    section: Any, section_data: Dict[str, Any], section_name: str
) -> None:
    """
    Apply configuration from dictionary to config section.

    Values whose type does not match the field default are reported and
    left at the default.
    """
    defaults = type(section)()
    for key, value in section_data.items():
        if hasattr(section, key):
            default = getattr(defaults, key)
            if not _accepts(default, value):
                console.print(
                    f"⚠️  Invalid type for {section_name}.{key}: {value!r}, using default",
                    style="yellow",
                    markup=False,
                )
                continue
            if isinstance(default, float):
                value = float(value)
            setattr(section, key, value)
        else:
            console.print(
                f"⚠️  Unknown config key in {section_name}: {key}", style="yellow"
            )


def load_config(
    config_path: Optional[Path] = None, notifier: Optional[Notifier] = None
) -> HexcheckConfig:
    """
    Build a configuration from defaults, a config file and the environment.

    Every call returns a new object; callers hand it to the check context
    they create instead of sharing a process-wide instance.
    """
    config = HexcheckConfig()

    config_file = config_path or find_config_file()
    if config_file:
        file_config = load_config_file(Path(config_file))
        if isinstance(file_config, dict):
            if isinstance(file_config.get("display"), dict):
                apply_display_options(config.display, file_config["display"], notifier)
            if isinstance(file_config.get("network"), dict):
                apply_config_section(config.network, file_config["network"], "network")
            if isinstance(file_config.get("logging"), dict):
                apply_config_section(config.logging, file_config["logging"], "logging")

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")
        console.print("Using default values for invalid settings.", style="yellow")
        _reset_invalid_values(config, validation_errors)

    return config


def _reset_invalid_values(config: HexcheckConfig, errors: List[str]) -> None:
    defaults = HexcheckConfig()
    for error in errors:
        section_name, _, rest = error.partition(".")
        key = rest.split(" ", 1)[0]
        section = getattr(config, section_name)
        setattr(section, key, getattr(getattr(defaults, section_name), key))


def create_sample_config() -> str:
    """Generate sample configuration from the defaults."""
    return json.dumps(asdict(HexcheckConfig()), indent=2)
