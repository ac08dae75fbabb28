"""Logging configuration helpers for the quiz service."""

from __future__ import annotations

import logging
from logging import Logger

from course_quiz.config import settings


def configure_logging(level: str | None = None) -> Logger:
    """Configure basic logging for the application and return the package logger."""
    logging.basicConfig(
        level=level or settings.log_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    return logging.getLogger("course_quiz")
