"""Centralized logging configuration."""

import sys

from loguru import logger

from ticket_bot.settings import settings

log_format = ' | '.join(
    (
        '<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green>',
        '<level>{level:<8}</level>',
        '<cyan>{name}:{function}:{line}</cyan>',
        '{message}',
    )
)

logger.remove()
logger.add(sys.stderr, format=log_format, level=settings.LOG_LEVEL)

__all__ = ['logger']
