"""Process-wide access to the loaded configuration."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from loguru import logger

from nimbus.app.runtime.config.config_data import ConfigData
from nimbus.app.runtime.config.config_loader import CONFIG_PATH, load_config


def get_config_path() -> Path:
    return Path(os.getenv("NIMBUS_CONFIG", str(CONFIG_PATH)))


@lru_cache(maxsize=1)
def get_config() -> ConfigData:
    """Load the configuration once and reuse it.

    Falls back to defaults when no config file exists, which is what the
    test-suite and a bare ``nimbus serve`` rely on.
    """
    path = get_config_path()
    if not path.exists():
        logger.warning(f"{path} not found, using default configuration")
        return ConfigData()
    return load_config(path)
