"""
Logging setup for the expense tracker.
"""

import logging
from typing import Optional

from .config import ExpenseSettings, get_settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(settings: Optional[ExpenseSettings] = None) -> None:
    """Send log records to stderr and, when configured, to a log file."""
    settings = settings or get_settings()

    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
