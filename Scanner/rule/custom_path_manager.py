"""Custom rule path registry.

Tracks, per engine and per language, the rule archives users have added.
The registry lives in a single JSON document in the scanner home directory:

    {"<engine>": {"<language>": ["/abs/path/Rules.jar", ...]}}

It is loaded lazily on first use and rewritten in full after every change.
There is no file locking; concurrent processes writing the same file race
and the last writer wins.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple, TYPE_CHECKING

from pydantic import TypeAdapter, ValidationError

from Scanner.constants import CUSTOM_PATH_FILE_ENV, CUSTOM_PATHS_FILE, get_scanner_home
from Scanner.core.errors import MalformedRegistryError, RegistryReadError, RegistryWriteError
from Scanner.core.logging import get_logger
from Scanner.rule.engine_registry import EngineRegistry, determine_engine_for_path
from Scanner.rule.path_expander import expand_paths

if TYPE_CHECKING:
    from Scanner.rule.engine_base import RuleEngine

logger = get_logger(__name__)

RulePathEntry = Dict[str, Set[str]]
RulePathMap = Dict[str, RulePathEntry]

EMPTY_JSON_FILE = "{}"

_DOCUMENT_ADAPTER = TypeAdapter(Dict[str, Dict[str, List[str]]])


class CustomRulePathManager:
    """Persisted mapping of engine -> language -> set of custom rule paths."""

    def __init__(
        self,
        engines: Optional[Sequence["RuleEngine"]] = None,
        file_path: Optional[Path] = None,
    ):
        """
        Args:
            engines: Engines used to attribute paths, in priority order.
                Defaults to every registered engine.
            file_path: Registry document location. Defaults to
                ``get_file_path()``, evaluated on each access.
        """
        self._engines = list(engines) if engines is not None else None
        self._file_path = file_path
        self._paths_by_language_by_engine: RulePathMap = {}
        self._initialized = False

    @property
    def engines(self) -> List["RuleEngine"]:
        if self._engines is None:
            self._engines = EngineRegistry.get_engines()
        return self._engines

    @staticmethod
    def get_file_name() -> str:
        # Recomputed every time so tests can swap the file between runs.
        return os.environ.get(CUSTOM_PATH_FILE_ENV) or CUSTOM_PATHS_FILE

    @classmethod
    def get_file_path(cls) -> Path:
        return get_scanner_home() / cls.get_file_name()

    @property
    def file_path(self) -> Path:
        return self._file_path or self.get_file_path()

    def _initialize(self) -> None:
        if self._initialized:
            logger.debug("CustomRulePathManager has already been initialized")
            return

        path = self.file_path
        logger.debug(f"Initializing CustomRulePathManager from {path}")
        try:
            data = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("Custom rule path file does not exist yet, starting empty")
            data = EMPTY_JSON_FILE
        except OSError as e:
            raise RegistryReadError(str(e), path=str(path)) from e
        except UnicodeDecodeError as e:
            raise MalformedRegistryError(str(e), path=str(path)) from e

        if not data.strip():
            logger.debug("Custom rule path file existed, but was empty")
            data = EMPTY_JSON_FILE

        try:
            document = _DOCUMENT_ADAPTER.validate_python(json.loads(data))
        except json.JSONDecodeError as e:
            raise MalformedRegistryError(str(e), path=str(path)) from e
        except ValidationError as e:
            raise MalformedRegistryError(str(e), path=str(path)) from e

        self._paths_by_language_by_engine = {
            engine: {language: set(paths) for language, paths in by_language.items()}
            for engine, by_language in document.items()
        }
        self._initialized = True
        logger.debug(f"Initialized CustomRulePathManager: {self._paths_by_language_by_engine}")

    def _attribute(self, paths: Sequence[str]) -> List[Tuple[str, str]]:
        """Pair each path with the name of the engine that owns it, dropping orphans."""
        attributed = []
        for path in paths:
            engine = determine_engine_for_path(path, self.engines)
            if engine is None:
                logger.debug(f"No engine claims path {path}, ignoring it")
                continue
            attributed.append((path, engine.get_name()))
        return attributed

    def add_paths_for_language(self, language: str, paths: Sequence[str]) -> List[str]:
        """Register rule paths for a language.

        Returns every expanded path that an engine claimed, including ones
        already registered.
        """
        self._initialize()
        logger.debug(f"About to add paths {list(paths)} for language {language}")

        added: List[str] = []
        for path, engine_name in self._attribute(expand_paths(paths)):
            by_language = self._paths_by_language_by_engine.setdefault(engine_name, {})
            by_language.setdefault(language, set()).add(path)
            added.append(path)

        self._save_custom_paths()
        return added

    def get_matching_paths(self, language: str, paths: Sequence[str]) -> List[str]:
        """Return the expanded paths that are registered for this language."""
        self._initialize()
        logger.debug(f"Returning paths for language {language} that match {list(paths)}")

        matched = []
        for path, engine_name in self._attribute(expand_paths(paths)):
            registered = self._paths_by_language_by_engine.get(engine_name, {}).get(language, set())
            if path in registered:
                matched.append(path)
        return matched

    def remove_paths_for_language(self, language: str, paths: Sequence[str]) -> List[str]:
        """Unregister rule paths; returns only the paths actually removed."""
        self._initialize()
        logger.debug(f"Removing paths {list(paths)} for language {language}")

        removed = []
        for path, engine_name in self._attribute(expand_paths(paths)):
            registered = self._paths_by_language_by_engine.get(engine_name, {}).get(language)
            if registered is not None and path in registered:
                registered.discard(path)
                removed.append(path)

        self._save_custom_paths()
        return removed

    def get_rule_path_entries(self, engine: str) -> RulePathEntry:
        """Language -> paths registered for one engine (empty when it has none)."""
        self._initialize()
        if engine not in self._paths_by_language_by_engine:
            logger.debug(f"Custom rule path file has no entries for engine {engine}")
            return {}
        return self._paths_by_language_by_engine[engine]

    def _to_document(self) -> Dict[str, Dict[str, List[str]]]:
        return {
            engine: {language: sorted(paths) for language, paths in by_language.items()}
            for engine, by_language in self._paths_by_language_by_engine.items()
        }

    def _save_custom_paths(self) -> None:
        self._initialize()
        path = self.file_path
        content = json.dumps(self._to_document(), indent=4)
        logger.debug(f"Writing custom rule path file {path}: {content}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise RegistryWriteError(str(e), path=str(path)) from e


_manager: Optional[CustomRulePathManager] = None


def get_custom_path_manager() -> CustomRulePathManager:
    """Process-wide manager over the registered engines."""
    global _manager
    if _manager is None:
        _manager = CustomRulePathManager()
    return _manager


__all__ = [
    "CustomRulePathManager",
    "RulePathEntry",
    "RulePathMap",
    "get_custom_path_manager",
]
