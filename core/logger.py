"""
Service logger setup

Configures the root handlers once from LoggingConfig and returns a
named logger for the caller.

Usage:
    from core.logger import setup_service_logger
    logger = setup_service_logger("pledge_ledger")
"""

import logging
from typing import Optional

from core.config.logging_config import LoggingConfig

_configured = False


def setup_service_logger(
    service_name: str,
    config: Optional[LoggingConfig] = None,
) -> logging.Logger:
    """Configure logging handlers (first call only) and return a service logger"""
    global _configured

    config = config or LoggingConfig.from_env()
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    if not _configured:
        formatter = logging.Formatter(config.log_format)
        root = logging.getLogger()
        root.setLevel(level)

        if config.enable_console:
            console = logging.StreamHandler()
            console.setFormatter(formatter)
            root.addHandler(console)

        if config.log_file:
            file_handler = logging.FileHandler(config.log_file)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

        _configured = True

    logger = logging.getLogger(service_name)
    logger.setLevel(level)
    return logger


__all__ = ["setup_service_logger"]
