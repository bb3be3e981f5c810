"""Resolution of user scan targets into engine-specific file lists."""

from __future__ import annotations

import fnmatch
import glob
import os
from typing import List, Sequence, Tuple

from Scanner.core.logging import get_logger
from Scanner.rule.models import RuleTarget

logger = get_logger(__name__)

_GLOB_CHARS = ("*", "?", "[")


def _split_patterns(patterns: Sequence[str]) -> Tuple[List[str], List[str]]:
    positive, negative = [], []
    for pattern in patterns:
        if pattern.startswith("!"):
            negative.append(pattern[1:])
        else:
            positive.append(pattern)
    return positive, negative


def _match_one(path: str, pattern: str) -> bool:
    if fnmatch.fnmatchcase(path, pattern):
        return True
    # "**/x" also matches "x" at the root.
    if pattern.startswith("**/") and fnmatch.fnmatchcase(path, pattern[3:]):
        return True
    return False


def matches_patterns(path: str, patterns: Sequence[str]) -> bool:
    """Whether a posix-style relative path is selected by the patterns.

    A path is selected when it matches at least one positive pattern and no
    ``!``-prefixed pattern.
    """
    positive, negative = _split_patterns(patterns)
    if not any(_match_one(path, p) for p in positive):
        return False
    return not any(_match_one(path, p) for p in negative)


def _to_posix(path: str) -> str:
    return path.replace(os.sep, "/")


def _walk_directory(directory: str, patterns: Sequence[str]) -> List[str]:
    matched = []
    for root, dirs, files in os.walk(directory):
        dirs.sort()
        for name in sorted(files):
            full_path = os.path.join(root, name)
            relative = _to_posix(os.path.relpath(full_path, directory))
            if matches_patterns(relative, patterns):
                matched.append(os.path.abspath(full_path))
    return matched


def _resolve_one(target: str, patterns: Sequence[str]) -> RuleTarget | None:
    if any(ch in target for ch in _GLOB_CHARS):
        paths = [
            os.path.abspath(p)
            for p in sorted(glob.glob(target, recursive=True))
            if os.path.isfile(p) and matches_patterns(_to_posix(p), patterns)
        ]
        return RuleTarget(target=target, paths=paths)

    if os.path.isdir(target):
        return RuleTarget(target=target, paths=_walk_directory(target, patterns), is_directory=True)

    if os.path.isfile(target):
        paths = [os.path.abspath(target)] if matches_patterns(_to_posix(target), patterns) else []
        return RuleTarget(target=target, paths=paths)

    logger.warning(f"Target does not exist, skipping: {target}")
    return None


def resolve_targets(targets: Sequence[str], patterns: Sequence[str]) -> List[RuleTarget]:
    """Turn user targets into RuleTargets filtered by an engine's target patterns.

    Args:
        targets: Files, directories or glob patterns, in user order
        patterns: The engine's target patterns (``!`` negates)

    Returns:
        One RuleTarget per target that still has files after filtering
    """
    resolved = []
    for target in targets:
        rule_target = _resolve_one(target, patterns)
        if rule_target is None:
            continue
        if not rule_target.paths:
            logger.debug(f"No files in {target} match patterns {list(patterns)}")
            continue
        resolved.append(rule_target)
    return resolved


__all__ = ["matches_patterns", "resolve_targets"]
