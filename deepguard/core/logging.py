"""
Logging configuration for DeepGuard.

All module loggers live under the "deepguard" namespace so one level setting
controls the whole package.
"""
import logging
import sys
from typing import Optional

from deepguard.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
ROOT_LOGGER = "deepguard"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure stdout logging and return the package logger."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    package_logger = logging.getLogger(ROOT_LOGGER)
    package_logger.setLevel(numeric_level)
    return package_logger


# Package logger, configured once on import
logger = setup_logging(settings.log_level)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger for a module, e.g. get_logger("pipeline.runner")."""
    if name:
        return logging.getLogger(f"{ROOT_LOGGER}.{name}")
    return logger
