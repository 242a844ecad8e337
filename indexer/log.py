"""Logging configuration for the indexer."""

import logging
import sys
from typing import Any, MutableMapping, Optional, Tuple

from config import Config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("web3", "urllib3", "sqlalchemy.engine")


def setup_logging(config: Optional[Config] = None, log_level: Optional[str] = None) -> None:
    """Configure Python logging.

    Args:
        config: Config object (uses log_level from config if provided)
        log_level: Override log level (takes precedence over config)
    """
    level_str = log_level or (config.log_level if config else "INFO")
    level = logging.getLevelName(level_str.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


class NetworkLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every message with the network it concerns."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['network']}] {msg}", kwargs


def get_network_logger(name: str, network: str) -> NetworkLoggerAdapter:
    """Get a logger whose lines carry a network tag, e.g. ``[sonic] ...``."""
    return NetworkLoggerAdapter(logging.getLogger(name), {"network": network})
