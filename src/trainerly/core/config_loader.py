"""
YAML → typed settings loader.

Loads settings from trainerly.yaml (bundled with the package) and
optionally merges user overrides from ~/.trainerly/config.yaml.

Usage:
    from trainerly.core.config_loader import load_settings
    settings = load_settings()
    store = HistoryStore(kv, retention=settings.history_retention)

If the bundled YAML cannot be parsed, all values fall back to the Python
defaults from config.py (no crash).  If the user override file exists but
has parse errors, a warning is logged and the file is ignored.
"""

from __future__ import annotations

import importlib.resources
import os
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from .config import Settings

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; return {} on any error."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Ignoring unreadable config file {path}: {e}")
        return {}
    return data if isinstance(data, dict) else {}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (non-destructive to base)."""
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


# Section → {yaml key: Settings field}
_FIELD_MAP: dict[str, dict[str, str]] = {
    "history": {
        "dedup_window_ms": "dedup_window_ms",
        "retention": "history_retention",
    },
    "completions": {
        "retention": "completions_retention",
    },
    "cache": {
        "namespace": "cache_namespace",
        "version": "cache_version",
        "max_age_ms": "cache_max_age_ms",
        "stale_max_age_ms": "cache_stale_max_age_ms",
    },
    "plans": {
        "refresh_cooldown_seconds": "plan_refresh_cooldown_seconds",
    },
    "storage": {
        "path": "storage_path",
    },
    "logging": {
        "level": "log_level",
    },
}


def settings_from_dict(config: dict[str, Any]) -> Settings:
    """
    Build Settings from a merged config dict.

    Unknown sections and keys are ignored; values of the wrong type are
    skipped so a single typo never disables the whole file.
    """
    defaults = Settings()
    types = {f.name: type(getattr(defaults, f.name)) for f in fields(Settings)}
    values: dict[str, Any] = {}

    for section, mapping in _FIELD_MAP.items():
        raw = config.get(section)
        if not isinstance(raw, dict):
            continue
        for yaml_key, field_name in mapping.items():
            if yaml_key not in raw or raw[yaml_key] is None:
                continue
            value = raw[yaml_key]
            expected = types[field_name]
            if expected is type(None):
                values[field_name] = str(value)
            elif isinstance(value, expected) and not isinstance(value, bool):
                values[field_name] = value
            else:
                logger.warning(
                    f"Config {section}.{yaml_key}: expected {expected.__name__}, "
                    f"got {value!r}; using default"
                )

    return Settings(**values)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_bundled_yaml_path() -> Path | None:
    """Return the path to the bundled trainerly.yaml, or None if not found."""
    try:
        ref = importlib.resources.files("trainerly").joinpath("trainerly.yaml")
        with importlib.resources.as_file(ref) as p:
            return p if p.exists() else None
    except (ModuleNotFoundError, FileNotFoundError):
        candidate = Path(__file__).parent.parent / "trainerly.yaml"
        return candidate if candidate.exists() else None


def get_user_yaml_path() -> Path | None:
    """Return ~/.trainerly/config.yaml if it exists, else None."""
    home = Path(os.environ.get("HOME", "~")).expanduser()
    p = home / ".trainerly" / "config.yaml"
    return p if p.exists() else None


def load_config() -> dict[str, Any]:
    """
    Load and merge configuration from YAML sources.

    Load order (later overrides earlier):
    1. Bundled src/trainerly/trainerly.yaml
    2. User override at ~/.trainerly/config.yaml

    Returns:
        Merged dict of config sections.  Empty dict if no YAML available.
    """
    config: dict[str, Any] = {}

    bundled = get_bundled_yaml_path()
    if bundled is not None:
        config = _deep_merge(config, _load_yaml_file(bundled))

    user = get_user_yaml_path()
    if user is not None:
        user_cfg = _load_yaml_file(user)
        if user_cfg:
            config = _deep_merge(config, user_cfg)

    return config


def load_settings() -> Settings:
    """Load merged YAML configuration as a typed Settings object."""
    return settings_from_dict(load_config())
