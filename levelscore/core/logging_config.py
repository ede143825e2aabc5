"""
Logging setup for the level score engine.

Modules log through ``logging.getLogger(__name__)``; applications embedding
the engine call configure_logging() once at startup.
"""

import logging
from typing import Optional

from levelscore.core.config import get_settings


LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging with the engine's format.

    Args:
        level: Logging level name. Defaults to Settings.log_level.
    """
    level_name = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
    )
