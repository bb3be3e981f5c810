"""Logging utilities for the scanner."""

from Scanner.core.logging.std_logger import get_logger, configure_logging

__all__ = [
    "get_logger",
    "configure_logging",
]
