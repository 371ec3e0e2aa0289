"""
Service logger setup

Applies LoggingConfig (level, format, optional file) to a named service logger.

Usage:
    from core.logger import setup_service_logger
    logger = setup_service_logger("order_service")
"""

import logging
from typing import Optional

from core.config import LoggingConfig, get_settings

_configured: set = set()


def setup_service_logger(service_name: str, config: Optional[LoggingConfig] = None) -> logging.Logger:
    """Configure and return the logger for a service"""
    config = config or get_settings().logging
    logger = logging.getLogger(service_name)

    if service_name in _configured:
        return logger

    level = getattr(logging, config.log_level.upper(), logging.INFO)
    formatter = logging.Formatter(config.log_format)

    root = logging.getLogger()
    root.setLevel(level)

    if config.enable_console and not root.handlers:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        root.addHandler(console)

    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.setLevel(level)
    _configured.add(service_name)
    logger.info(f"Logger configured for {service_name} ({config.environment}, level={config.log_level})")
    return logger
