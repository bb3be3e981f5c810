"""Expansion of user-supplied rule path patterns into rule archive files."""

from __future__ import annotations

import os
from typing import Iterable, List

from Scanner.constants import RULE_ARCHIVE_EXTENSION
from Scanner.core.errors import InvalidPathError, UnreadablePathError
from Scanner.core.logging import get_logger

logger = get_logger(__name__)


def is_rule_archive(path: str) -> bool:
    return path.endswith(RULE_ARCHIVE_EXTENSION)


def expand_paths(patterns: Iterable[str]) -> List[str]:
    """Turn files and directories into the rule archives they denote.

    Files are kept only when they are rule archives; other files are dropped
    without error. Directories contribute the rule archives directly inside
    them (no recursion), in name order. Results follow input order and are
    not deduplicated.

    Raises:
        InvalidPathError: if a pattern does not exist
        UnreadablePathError: if a directory cannot be listed
    """
    entries: List[str] = []
    for pattern in patterns:
        logger.debug(f"Fetching stats for path {pattern}")
        if not os.path.exists(pattern):
            raise InvalidPathError(pattern)

        if os.path.isfile(pattern):
            if is_rule_archive(pattern):
                logger.debug(f"Adding rule archive provided directly: {pattern}")
                entries.append(os.path.abspath(pattern))
            else:
                logger.debug(f"Skipping unsupported file: {pattern}")
        elif os.path.isdir(pattern):
            try:
                names = sorted(os.listdir(pattern))
            except OSError as e:
                raise UnreadablePathError(str(e), path=pattern) from e
            for name in names:
                file_path = os.path.abspath(os.path.join(pattern, name))
                if is_rule_archive(name) and os.path.isfile(file_path):
                    logger.debug(f"Adding rule archive found in directory: {file_path}")
                    entries.append(file_path)
    return entries


__all__ = ["expand_paths", "is_rule_archive"]
