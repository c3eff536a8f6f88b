"""
Logging setup shared by the CLI and the API.

Engine modules only call logging.getLogger(__name__); handlers and levels
are configured once here by whichever entry point runs.
"""

from __future__ import annotations

import logging
from typing import Optional

from .config import get_config

LOG_FORMAT = "%(asctime)s - %(levelname)-8s - [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger.

    Level precedence: explicit argument, then Config.log_level (TE_LOG_LEVEL),
    with Config.debug forcing DEBUG.
    """
    cfg = get_config()
    if level is None:
        level = "DEBUG" if cfg.debug else cfg.log_level

    numeric_level = getattr(logging, str(level).upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
    )
