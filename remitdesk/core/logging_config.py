"""
Logging Configuration Module.

This module provides the central logging configuration dictionary for the application.
Request bodies, idempotency keys and tokens are never logged; middleware only emits
method, path, status and client identifiers.
"""

import copy
import logging
import logging.config
import os
from pathlib import Path
from typing import Any

# Get log level from environment or default to INFO
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))

# Base configuration that can be extended for different environments
LOGGING_CONFIG_BASE: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
        "detailed": {
            "format": "[%(asctime)s] [%(levelname)s] [%(name)s:%(lineno)d] - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": LOG_LEVEL,
            "formatter": "standard",
            "stream": "ext://sys.stdout",
        },
        "file_handler": {
            "class": "logging.handlers.RotatingFileHandler",
            "level": LOG_LEVEL,
            "formatter": "detailed",
            "filename": str(LOG_DIR / "app.log"),
            "maxBytes": 10485760,  # 10MB
            "backupCount": 10,
            "encoding": "utf8",
            "delay": True,
        },
    },
    "loggers": {
        "remitdesk": {
            "level": LOG_LEVEL,
            "handlers": ["console", "file_handler"],
            "propagate": False,
        },
        "uvicorn": {
            "level": LOG_LEVEL,
            "handlers": ["console", "file_handler"],
            "propagate": False,
        },
        "sqlalchemy.engine": {
            "level": "WARNING",  # Set to INFO or DEBUG for SQL query logging
            "handlers": ["console"],
            "propagate": False,
        },
        "aiosqlite": {
            "level": "WARNING",
            "handlers": ["console"],
            "propagate": False,
        },
    },
    "root": {
        "level": LOG_LEVEL,
        "handlers": ["console"],
    },
}

# Concrete configuration used by the application factory
LOGGING_CONFIG = copy.deepcopy(LOGGING_CONFIG_BASE)


def build_logging_config(
    level: str | None = None, *, file_logging: bool = True, propagate: bool = False
) -> dict[str, Any]:
    """
    Build a logging configuration for the given level.

    Args:
        level: Log level applied to handlers and application loggers
        file_logging: Whether the rotating file handler is attached
        propagate: Hand application records to the root logger instead of
            dedicated handlers (test runs, where the root logger is captured)

    Returns:
        A dictConfig-compatible dictionary
    """
    config = copy.deepcopy(LOGGING_CONFIG_BASE)
    if level:
        level = level.upper()
        for handler in config["handlers"].values():
            handler["level"] = level
        for name in ("remitdesk", "uvicorn"):
            config["loggers"][name]["level"] = level
        config["root"]["level"] = level

    if not file_logging:
        config["handlers"].pop("file_handler")
        for logger_config in config["loggers"].values():
            logger_config["handlers"] = [h for h in logger_config["handlers"] if h != "file_handler"]

    if propagate:
        app_logger = config["loggers"]["remitdesk"]
        app_logger["handlers"] = []
        app_logger["propagate"] = True

    return config


def setup_logging(config: dict[str, Any] | None = None) -> None:
    """
    Configure the logging system with the provided configuration or default.

    Args:
        config: Optional logging configuration dictionary to use instead of the default
    """
    if config is None:
        config = LOGGING_CONFIG

    file_handler = config["handlers"].get("file_handler")
    if file_handler:
        Path(file_handler["filename"]).parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(config)

    logger = logging.getLogger(__name__)
    logger.debug("Logging configured successfully")
