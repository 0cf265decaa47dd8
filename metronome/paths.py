from __future__ import annotations

import os
from pathlib import Path

APP_ENV_HOME = "METRONOME_HOME"


def app_home() -> Path:
    """
    User-writable home for Metronome.
    Override with METRONOME_HOME.
    """
    if os.environ.get(APP_ENV_HOME):
        return Path(os.environ[APP_ENV_HOME]).expanduser().resolve()
    return (Path.home() / ".metronome").resolve()


def config_dir() -> Path:
    return app_home() / "config"


def config_file() -> Path:
    """Optional YAML settings file."""
    return config_dir() / "metronome.yaml"
