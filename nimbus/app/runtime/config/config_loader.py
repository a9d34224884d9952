"""Configuration loading with environment variable substitution."""

import os
from pathlib import Path
from typing import Any, Literal, overload

import yaml
from loguru import logger
from pydantic import ValidationError

from nimbus.app.runtime.config.config_data import ConfigData
from nimbus.app.runtime.config.config_utils import (
    apply_environment_overrides,
    substitute_env_vars,
)

CONFIG_PATH = Path("config.yaml")


@overload
def load_config(
    file_path: Path = ..., *, processed: Literal[False]
) -> dict[str, Any]: ...


@overload
def load_config(
    file_path: Path = ..., processed: Literal[True] = ...
) -> ConfigData: ...


def load_config(
    file_path: Path = CONFIG_PATH, processed: bool = True
) -> ConfigData | dict[str, Any]:
    """
    Load a YAML config file with environment variable substitution.

    Args:
        file_path: Path to the YAML file (default: config.yaml)
        processed: Whether to substitute environment variables and validate.
                  - True (default): substitute env vars and validate as ConfigData
                  - False: return the raw dict without substitution

    Returns:
        ConfigData when processed, the raw dict otherwise

    Raises:
        ValueError: If a required environment variable is missing, the YAML is
                    invalid, the 'config' key is missing or validation fails
        FileNotFoundError: If the YAML file doesn't exist

    Side Effects (when processed):
        Reads APP_ENVIRONMENT (default: 'development') and copies variables
        prefixed with the uppercased environment name onto their unprefixed
        names (e.g. TEST_DATABASE_URL -> DATABASE_URL) before substitution.
    """
    with open(file_path) as f:
        content = f.read()

    env_mode = os.getenv("APP_ENVIRONMENT", "development")

    if processed:
        logger.info(f"Loading configuration for environment: {env_mode}")
        applied = apply_environment_overrides(env_mode)
        logger.debug(f"Applied {len(applied)} environment-specific overrides: {applied}")
        content = substitute_env_vars(content)

    try:
        loaded: dict[str, Any] = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML: {e}") from e

    if not processed:
        return loaded
    if not loaded:
        raise ValueError("Failed to parse YAML")
    if "config" not in loaded:
        raise ValueError("Invalid YAML structure: missing 'config' key")

    try:
        config = ConfigData(**(loaded["config"] or {}))
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    if not config.cluster.storage_class:
        logger.warning(
            "cluster.storage_class is not set - deploys will fail until it is configured"
        )

    return config
