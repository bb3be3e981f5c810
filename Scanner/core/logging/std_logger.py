"""Standard logging setup for the scanner.

A thin wrapper over Python logging:
- console handler plus a rotating file handler;
- level taken from the LOG_LEVEL environment variable (default INFO);
- idempotent, safe to call more than once.

Usage:
    from Scanner.core.logging import get_logger
    logger = get_logger(__name__)
    logger.debug("Expanded %d path(s)", len(paths))
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from Scanner.constants import get_scanner_home

_CONFIGURED = False


def _parse_level(level: Optional[str]) -> int:
    """Turn a level name (or the LOG_LEVEL env value) into a logging level."""

    if isinstance(level, int):
        return level
    raw = level if isinstance(level, str) else os.getenv("LOG_LEVEL", "INFO")
    resolved = logging.getLevelName(raw.upper())
    # getLevelName returns "Level X" for unknown names
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(
    level: Optional[str] = None,
    log_dir: str | Path | None = None,
    filename: str = "scanner.log",
    max_bytes: int = 5_000_000,
    backup_count: int = 5,
    console: bool = True,
) -> logging.Logger:
    """Configure the root logger with console and rotating file handlers.

    May be called repeatedly; the first call wins.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return logging.getLogger()

    root = logging.getLogger()
    root.setLevel(_parse_level(level))

    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    )

    target_dir = Path(log_dir) if log_dir is not None else get_scanner_home() / "logs"
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            target_dir / filename,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    except OSError as exc:
        # read-only home: keep console logging only
        logging.getLogger(__name__).warning("File logging disabled (%s): %s", target_dir, exc)
    else:
        file_handler.setFormatter(fmt)
        root.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(fmt)
        root.addHandler(console_handler)

    _CONFIGURED = True
    return root


def get_logger(
    name: str,
    **kwargs,
) -> logging.Logger:
    """Return the named logger, configuring logging first if needed."""

    configure_logging(**kwargs)
    return logging.getLogger(name)


__all__ = ["get_logger", "configure_logging"]
