"""
Centralized configuration for Metronome.

Values resolve in this order (later wins):
1. Built-in defaults below
2. config/metronome.yaml under the app home (optional)
3. METRONOME_* environment variables
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path

import yaml

from metronome import paths

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the dashboard engine."""

    base_url: str = "http://localhost:3000"
    """Collaborator origin. Routes are joined under api_prefix."""

    api_prefix: str = "/api/metronome"

    notice_seconds: float = 3.0
    """How long a mutation-failure notice stays visible."""

    long_notice_seconds: float = 5.0
    """Notice lifetime for meeting-record and initiative-creation failures."""

    max_occurrences: int = 500
    """Cap on occurrences generated per recurring key date per expansion."""

    restore_priority: str = "strategic"
    """Priority an initiative gets back when restored from resolved."""

    log_level: str = "INFO"

    mutation_log_limit: int = 1000
    """Retained entries in the store's mutation log."""


# env var -> (field name, converter)
_ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "METRONOME_BASE_URL": ("base_url", str),
    "METRONOME_API_PREFIX": ("api_prefix", str),
    "METRONOME_NOTICE_SECONDS": ("notice_seconds", float),
    "METRONOME_LONG_NOTICE_SECONDS": ("long_notice_seconds", float),
    "METRONOME_MAX_OCCURRENCES": ("max_occurrences", int),
    "METRONOME_RESTORE_PRIORITY": ("restore_priority", str),
    "METRONOME_LOG_LEVEL": ("log_level", str),
    "METRONOME_MUTATION_LOG_LIMIT": ("mutation_log_limit", int),
}


def _load_yaml(config_path: Path) -> dict:
    """Load YAML config, return empty dict when missing or unreadable."""
    if not config_path.exists():
        logger.debug("No settings file at %s, using defaults", config_path)
        return {}
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as exc:
        logger.warning("Failed to load settings from %s: %s", config_path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Settings file %s is not a mapping, ignoring", config_path)
        return {}
    return data


def load_settings(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Build Settings from defaults, the YAML file and the environment."""
    if config_path is None:
        config_path = paths.config_file()
    if environ is None:
        environ = os.environ

    known = {f.name: f.type for f in fields(Settings)}
    overrides: dict = {}

    for key, value in _load_yaml(config_path).items():
        if key not in known:
            logger.warning("Unknown setting %r in %s", key, config_path)
            continue
        overrides[key] = value

    for env_key, (name, convert) in _ENV_OVERRIDES.items():
        raw = environ.get(env_key)
        if raw is None or raw == "":
            continue
        try:
            overrides[name] = convert(raw)
        except ValueError:
            logger.warning("Ignoring invalid %s=%r", env_key, raw)

    return replace(Settings(), **overrides)
