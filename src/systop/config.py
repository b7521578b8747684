"""Configuration loading for systop.

Loads settings from TOML config files with sensible defaults.
Search order: explicit --config path → ~/.config/systop/config.toml → defaults only.
"""

from __future__ import annotations

import logging
import sys
import tomllib
from pathlib import Path
from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "refresh": {"interval": 1.0},
    "display": {"process_limit": 12, "bar_width": 24},
    "logging": {"level": "WARNING", "file": ""},
}

_DEFAULT_PATH = Path.home() / ".config" / "systop" / "config.toml"

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(ValueError):
    """A configuration value is out of range or of the wrong type."""


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base. Nested dicts are merged at the first level only."""
    merged = {
        key: dict(value) if isinstance(value, dict) else value for key, value in base.items()
    }
    for key, value in overlay.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def default_config() -> dict[str, Any]:
    """Return a fresh copy of the built-in defaults."""
    return _deep_merge(DEFAULT_CONFIG, {})


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Check value types and ranges.

    Raises:
        ConfigError: On the first invalid value.
    """
    for section in DEFAULT_CONFIG:
        if not isinstance(config.get(section), dict):
            raise ConfigError(f"[{section}] must be a table")

    interval = config["refresh"]["interval"]
    if isinstance(interval, bool) or not isinstance(interval, int | float) or interval <= 0:
        raise ConfigError(f"refresh.interval must be a positive number, got {interval!r}")

    for key in ("process_limit", "bar_width"):
        value = config["display"][key]
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ConfigError(f"display.{key} must be a positive integer, got {value!r}")

    level = config["logging"]["level"]
    if not isinstance(level, str) or level.upper() not in _LEVELS:
        raise ConfigError(f"logging.level must be one of {', '.join(_LEVELS)}, got {level!r}")

    if not isinstance(config["logging"]["file"], str):
        raise ConfigError("logging.file must be a string")

    return config


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration, merging user TOML over defaults.

    Args:
        path: Explicit config file path (from --config). If None, tries the
              default location ~/.config/systop/config.toml.

    Returns:
        Merged configuration dict.

    Raises:
        SystemExit: If an explicit path doesn't exist or can't be parsed, or
                    if any value is invalid.
    """
    if path is not None:
        if not path.is_file():
            print(f"systop: config file not found: {path}", file=sys.stderr)
            raise SystemExit(1)
        try:
            user_config = tomllib.loads(path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            print(f"systop: invalid TOML in {path}: {e}", file=sys.stderr)
            raise SystemExit(1) from e
        return _checked(_deep_merge(DEFAULT_CONFIG, user_config), path)

    # Try default location silently
    if _DEFAULT_PATH.is_file():
        try:
            user_config = tomllib.loads(_DEFAULT_PATH.read_text(encoding="utf-8"))
            return _checked(_deep_merge(DEFAULT_CONFIG, user_config), _DEFAULT_PATH)
        except tomllib.TOMLDecodeError:
            logging.getLogger(__name__).warning("Ignoring invalid TOML in %s", _DEFAULT_PATH)
            print(
                f"systop: warning: ignoring invalid TOML in {_DEFAULT_PATH}",
                file=sys.stderr,
            )

    return default_config()


def _checked(config: dict[str, Any], source: Path) -> dict[str, Any]:
    try:
        return validate_config(config)
    except ConfigError as e:
        print(f"systop: {source}: {e}", file=sys.stderr)
        raise SystemExit(1) from e


def dump_default_config() -> str:
    """Return the default configuration as a TOML string."""
    lines = [
        "# systop configuration",
        "# Place this file at ~/.config/systop/config.toml",
        "",
        "[refresh]",
        f"interval = {DEFAULT_CONFIG['refresh']['interval']}",
        "",
        "[display]",
        f"process_limit = {DEFAULT_CONFIG['display']['process_limit']}",
        f"bar_width = {DEFAULT_CONFIG['display']['bar_width']}",
        "",
        "[logging]",
        f'level = "{DEFAULT_CONFIG["logging"]["level"]}"',
        f'file = "{DEFAULT_CONFIG["logging"]["file"]}"',
    ]
    return "\n".join(lines) + "\n"
