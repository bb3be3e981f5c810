"""Scanner configuration: per-engine enablement and target patterns.

Built-in defaults are merged with an optional user file found in the scanner
home directory (``Config.json`` or ``Config.yaml``). Engines are merged by
name, so a user file only needs to mention the engines it changes.
"""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from Scanner.constants import CONFIG_FILE, CONFIG_FILE_YAML, ENGINE, PMD_HOME_ENV, get_scanner_home
from Scanner.core.logging import get_logger

logger = get_logger(__name__)

_APEX_AND_VF_PATTERNS = [
    "**/*.cls",
    "**/*.trigger",
    "**/*.java",
    "**/*.page",
    "**/*.component",
    "**/*.xml",
]

DEFAULT_CONFIG: Dict[str, Any] = {
    "engines": [
        {
            "name": ENGINE.PMD.value,
            "targetPatterns": _APEX_AND_VF_PATTERNS + ["!**/node_modules/**"],
        },
        {
            "name": ENGINE.ESLINT.value,
            "targetPatterns": ["**/*.js", "!**/node_modules/**", "!**/bower_components/**"],
        },
        {
            "name": ENGINE.ESLINT_TYPESCRIPT.value,
            "targetPatterns": ["**/*.ts", "!**/node_modules/**"],
        },
        {
            "name": ENGINE.ESLINT_LWC.value,
            "targetPatterns": ["**/lwc/**/*.js"],
            "disabled": True,
        },
        {
            "name": ENGINE.RETIRE_JS.value,
            "targetPatterns": ["**/*.js", "!**/node_modules/**"],
        },
        {
            "name": ENGINE.CPD.value,
            "targetPatterns": list(_APEX_AND_VF_PATTERNS),
            "disabled": True,
            "minimumTokens": 100,
        },
    ]
}


class EngineConfig(BaseModel):
    """Settings for one engine. Unknown keys are kept as engine-specific options."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    target_patterns: List[str] = Field(default_factory=list, alias="targetPatterns")
    disabled: bool = False

    def get_option(self, key: str, default: Any = None) -> Any:
        extra = self.model_extra or {}
        return extra.get(key, default)


class ScannerConfig(BaseModel):
    engines: List[EngineConfig] = Field(default_factory=list)

    def get_engine_config(self, name: str) -> Optional[EngineConfig]:
        for engine in self.engines:
            if engine.name == name:
                return engine
        return None

    def is_engine_enabled(self, name: str) -> bool:
        engine = self.get_engine_config(name)
        return engine is not None and not engine.disabled

    def get_target_patterns(self, name: str) -> List[str]:
        engine = self.get_engine_config(name)
        return list(engine.target_patterns) if engine else []


_CONFIG_CACHE: Optional[ScannerConfig] = None


def load_config_from_file(config_path: str | Path) -> Dict[str, Any]:
    """Load a raw config dictionary from a JSON or YAML file.

    Raises:
        FileNotFoundError: if the file does not exist
        ValueError: if the format is unsupported or the content is not a mapping
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file does not exist: {path}")

    with open(path, "r", encoding="utf-8") as f:
        if path.suffix == ".json":
            data = json.load(f)
        elif path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        else:
            raise ValueError(f"Unsupported config file format: {path}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def merge_configs(base_config: Dict[str, Any], override_config: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two config dictionaries; override wins.

    The ``engines`` list is merged entry by entry on ``name``.
    """
    merged = copy.deepcopy(base_config)

    for key, value in override_config.items():
        if key == "engines" and isinstance(value, list):
            merged[key] = _merge_engine_lists(merged.get(key, []), value)
        elif key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged


def _merge_engine_lists(base: List[Dict[str, Any]], override: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    by_name = {entry.get("name"): dict(entry) for entry in base}
    order = [entry.get("name") for entry in base]
    for entry in override:
        name = entry.get("name")
        if name in by_name:
            by_name[name] = merge_configs(by_name[name], entry)
        else:
            by_name[name] = dict(entry)
            order.append(name)
    return [by_name[name] for name in order]


def _find_user_config() -> Optional[Path]:
    home = get_scanner_home()
    for filename in (CONFIG_FILE, CONFIG_FILE_YAML):
        candidate = home / filename
        if candidate.exists():
            return candidate
    return None


def get_config(config_path: str | Path | None = None) -> ScannerConfig:
    """Return the scanner config, merging the user's file over the defaults.

    Without an explicit path the result is cached for the process.
    """
    global _CONFIG_CACHE

    if _CONFIG_CACHE is not None and config_path is None:
        return _CONFIG_CACHE

    raw = copy.deepcopy(DEFAULT_CONFIG)
    source = Path(config_path) if config_path else _find_user_config()
    if source is not None:
        try:
            raw = merge_configs(raw, load_config_from_file(source))
            logger.debug(f"Loaded scanner config from {source}")
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load config file {source}, using defaults: {e}")

    try:
        config = ScannerConfig.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Invalid config in {source}, using defaults: {e}")
        config = ScannerConfig.model_validate(copy.deepcopy(DEFAULT_CONFIG))

    if config_path is None:
        _CONFIG_CACHE = config

    return config


def reset_config_cache() -> None:
    """Drop the cached config."""
    global _CONFIG_CACHE
    _CONFIG_CACHE = None


def get_pmd_home() -> Optional[Path]:
    """PMD distribution directory, from $PMD_HOME when set."""
    value = os.environ.get(PMD_HOME_ENV)
    return Path(value).expanduser() if value else None


__all__ = [
    "DEFAULT_CONFIG",
    "EngineConfig",
    "ScannerConfig",
    "get_config",
    "load_config_from_file",
    "merge_configs",
    "reset_config_cache",
    "get_pmd_home",
]
