"""Engine adapter contract.

Every wrapped static-analysis tool is exposed to the rest of the scanner
through ``RuleEngine``: naming, custom rule path ownership, enablement,
target patterns, a memoized rule catalog, run selection and execution.
Adapters hold no shared state; each engine instance owns its own catalog.
"""

from __future__ import annotations

import subprocess
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from Scanner.constants import Severity
from Scanner.core.config import ScannerConfig, get_config
from Scanner.core.errors import EngineExecutionError
from Scanner.core.logging import get_logger
from Scanner.rule.engine_utils import decode_output, is_custom_run, is_filter_empty_or_name_in_filter
from Scanner.rule.models import Catalog, Rule, RuleGroup, RuleResult, RuleTarget

logger = get_logger(__name__)

EngineOptions = Mapping[str, str]


class RuleEngine(ABC):
    """Abstract adapter around one wrapped engine.

    Attributes:
        name: Engine identifier (e.g. "pmd", "eslint")
        custom_config_key: Engine option that marks a custom-config run,
            None when the engine has no custom configuration
    """

    name: str = "base"
    custom_config_key: Optional[str] = None

    def __init__(self, config: Optional[ScannerConfig] = None):
        self._config = config
        self._catalog: Optional[Catalog] = None

    @property
    def config(self) -> ScannerConfig:
        if self._config is None:
            self._config = get_config()
        return self._config

    def get_name(self) -> str:
        return self.name

    def match_path(self, path: str) -> bool:
        """Whether a custom rule path belongs to this engine."""
        return False

    def is_enabled(self) -> bool:
        return self.config.is_engine_enabled(self.get_name())

    def get_target_patterns(self) -> List[str]:
        return self.config.get_target_patterns(self.get_name())

    def get_config_option(self, key: str, default: Any = None) -> Any:
        """Engine-specific setting from the config file (e.g. ``minimumTokens``)."""
        engine_config = self.config.get_engine_config(self.get_name())
        return engine_config.get_option(key, default) if engine_config else default

    def get_catalog(self) -> Catalog:
        """Return the engine's catalog, building it on first use.

        The catalog is kept for the lifetime of this instance; a failed build
        is not cached.
        """
        if self._catalog is None:
            catalog = self.build_catalog()
            logger.debug(
                f"Built catalog for {self.get_name()}: {len(catalog.rules)} rules, "
                f"{len(catalog.categories)} categories, {len(catalog.rulesets)} rulesets"
            )
            self._catalog = catalog
        return self._catalog

    @abstractmethod
    def build_catalog(self) -> Catalog:
        """Convert the engine's native rule metadata into a Catalog."""

    @abstractmethod
    def run(
        self,
        rule_groups: Sequence[RuleGroup],
        rules: Sequence[Rule],
        targets: Sequence[RuleTarget],
        engine_options: EngineOptions,
    ) -> List[RuleResult]:
        """Execute the engine and return normalized results."""

    @abstractmethod
    def get_normalized_severity(self, severity: int) -> Severity:
        """Map an engine-native severity onto the shared scale."""

    def filter_unsupported_paths(self, paths: Sequence[str]) -> List[str]:
        """Last chance to drop files the engine cannot handle."""
        return list(paths)

    def is_custom_run(self, engine_options: EngineOptions) -> bool:
        return is_custom_run(self.custom_config_key, engine_options)

    def is_engine_requested(self, filter_values: Optional[Sequence[str]], engine_options: EngineOptions) -> bool:
        return (
            not self.is_custom_run(engine_options)
            and is_filter_empty_or_name_in_filter(self.get_name(), filter_values)
        )

    def should_engine_run(
        self,
        rule_groups: Sequence[RuleGroup],
        rules: Sequence[Rule],
        targets: Sequence[RuleTarget],
        engine_options: EngineOptions,
    ) -> bool:
        return (
            not self.is_custom_run(engine_options)
            and bool(targets)
            and len(rules) > 0
        )

    def _execute_command(
        self,
        args: List[str],
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        input_data: Optional[str] = None,
    ) -> Tuple[int, str, str]:
        """Run the wrapped tool and return (return_code, stdout, stderr).

        Runs to completion; there is no timeout. A missing or unlaunchable
        command is an EngineExecutionError.
        """
        logger.debug(f"Executing {self.get_name()}: {' '.join(args)}")
        try:
            completed = subprocess.run(
                args,
                input=input_data.encode("utf-8") if input_data is not None else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=cwd,
                env=env,
            )
        except FileNotFoundError as e:
            raise EngineExecutionError(
                self.get_name(), f"Command not found: {args[0] if args else 'unknown'}"
            ) from e
        except PermissionError as e:
            raise EngineExecutionError(
                self.get_name(), f"Permission denied executing command: {args[0] if args else 'unknown'}"
            ) from e

        return completed.returncode, decode_output(completed.stdout), decode_output(completed.stderr)

    def get_engine_info(self) -> Dict[str, Any]:
        return {
            "name": self.get_name(),
            "enabled": self.is_enabled(),
            "targetPatterns": self.get_target_patterns(),
            "customConfigKey": self.custom_config_key,
        }


__all__ = ["RuleEngine", "EngineOptions"]
