"""Loguru sink configuration."""

from __future__ import annotations

import sys

from loguru import logger

from nimbus.app.runtime.config.config_data import ConfigData

_DEV_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[request_id]}</cyan> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(config: ConfigData) -> None:
    """Replace the default loguru sink with one matching the environment.

    Production logs are serialized as JSON so the request id bound with
    ``logger.contextualize`` ends up as a structured field.
    """
    logger.remove()
    logger.configure(extra={"request_id": "-"})
    if config.app.environment == "production":
        logger.add(sys.stderr, level=config.app.log_level, serialize=True)
    else:
        logger.add(sys.stderr, level=config.app.log_level, format=_DEV_FORMAT)
