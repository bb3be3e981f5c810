"""Engine identifiers, languages and on-disk locations shared across the scanner."""

from __future__ import annotations

import os
from enum import Enum, IntEnum
from pathlib import Path


class ENGINE(str, Enum):
    """Identifiers of the wrapped engines, in registration order."""

    PMD = "pmd"
    ESLINT = "eslint"
    ESLINT_TYPESCRIPT = "eslint-typescript"
    ESLINT_LWC = "eslint-lwc"
    RETIRE_JS = "retire-js"
    CPD = "cpd"


class LANGUAGE(str, Enum):
    APEX = "apex"
    JAVA = "java"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    VISUALFORCE = "visualforce"
    XML = "xml"


class CUSTOM_CONFIG(str, Enum):
    """Engine option keys that turn an invocation into a custom-config run."""

    EslintConfig = "EslintConfig"
    PmdConfig = "PmdConfig"


class Severity(IntEnum):
    """Normalized violation severity (lower is more severe)."""

    NONE = 0
    HIGH = 1
    MODERATE = 2
    LOW = 3


# Values a user may pass to the engine filter.
ALLOWED_ENGINE_FILTERS = [
    ENGINE.ESLINT.value,
    ENGINE.ESLINT_LWC.value,
    ENGINE.ESLINT_TYPESCRIPT.value,
    ENGINE.PMD.value,
    ENGINE.RETIRE_JS.value,
    ENGINE.CPD.value,
]

RULE_ARCHIVE_EXTENSION = ".jar"

CUSTOM_PATHS_FILE = "CustomPaths.json"
CONFIG_FILE = "Config.json"
CONFIG_FILE_YAML = "Config.yaml"

SCANNER_HOME_ENV = "RULE_SCANNER_HOME"
CUSTOM_PATH_FILE_ENV = "CUSTOM_PATH_FILE"
PMD_HOME_ENV = "PMD_HOME"


def get_scanner_home() -> Path:
    """Directory holding the registry, config and logs.

    Recomputed on every call so tests can point it somewhere else.
    """
    override = os.environ.get(SCANNER_HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".rule-scanner"


__all__ = [
    "ENGINE",
    "LANGUAGE",
    "CUSTOM_CONFIG",
    "Severity",
    "ALLOWED_ENGINE_FILTERS",
    "RULE_ARCHIVE_EXTENSION",
    "CUSTOM_PATHS_FILE",
    "CONFIG_FILE",
    "CONFIG_FILE_YAML",
    "SCANNER_HOME_ENV",
    "CUSTOM_PATH_FILE_ENV",
    "PMD_HOME_ENV",
    "get_scanner_home",
]
