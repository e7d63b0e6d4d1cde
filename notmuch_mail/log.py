import sys

from loguru import logger

from notmuch_mail.config import get_settings


def configure(level: str) -> None:
    """Send log records at ``level`` and above to stderr"""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


configure(get_settings().log_level)

__all__ = ["configure", "logger"]
