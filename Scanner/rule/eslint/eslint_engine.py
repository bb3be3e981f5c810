"""Generic ESLint engine, specialized per variant by an ``EslintStrategy``."""

from __future__ import annotations

import copy
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from Scanner.constants import CUSTOM_CONFIG, ENGINE, Severity
from Scanner.core.config import ScannerConfig
from Scanner.core.errors import EngineExecutionError
from Scanner.core.logging import get_logger
from Scanner.rule.engine_base import EngineOptions, RuleEngine
from Scanner.rule.eslint.eslint_commons import (
    EslintBridgeError,
    EslintProcessHelper,
    EslintStrategyHelper,
    RuleDefaultStatus,
    RuleMetaMap,
    StaticDependencies,
)
from Scanner.rule.models import Catalog, GroupAccumulator, Rule, RuleGroup, RuleResult, RuleTarget, RuleViolation

logger = get_logger(__name__)

# Environments enabled unless the run config or the user says otherwise.
DEFAULT_ENV_VARS: Dict[str, bool] = {
    "es6": True,            # Map and friends
    "node": True,           # process
    "browser": True,        # document
    "webextensions": True,
    "jasmine": True,
    "jest": True,
    "jquery": True,         # $
    "mocha": True,
}

ENV = "env"
BASE_CONFIG = "baseConfig"

UNCATEGORIZED = "Uncategorized"


class EslintStrategy(ABC):
    """What distinguishes one ESLint variant from another."""

    @abstractmethod
    def get_engine(self) -> ENGINE:
        """Engine identifier this strategy backs."""

    @abstractmethod
    def get_languages(self) -> List[str]:
        """Languages every rule of this variant applies to."""

    def get_catalog_plugins(self) -> List[Tuple[str, str]]:
        """``(package, prefix)`` of each plugin whose rules join the catalog."""
        return []

    @abstractmethod
    def get_recommended_base_config(self) -> Dict[str, Any]:
        """Base config whose computed rules are the variant's recommendation."""

    @abstractmethod
    def get_recommended_sample_file(self) -> str:
        """File name the recommended config is computed for."""

    @abstractmethod
    def get_run_config(self, engine_options: EngineOptions, cwd: str) -> Dict[str, Any]:
        """ESLint options for one target, before rules and env are merged in."""

    @abstractmethod
    def filter_unsupported_paths(self, paths: Sequence[str]) -> List[str]:
        """Last chance to drop files after target patterns were applied."""

    def filter_disallowed_rules(self, rules_by_name: RuleMetaMap) -> RuleMetaMap:
        return EslintStrategyHelper.filter_disallowed_rules(rules_by_name)

    def process_rule_violation(self, file_name: str, violation: RuleViolation) -> None:
        """Hook to adjust each violation; no-op by default."""


class EslintEngine(RuleEngine):
    """Adapter over ESLint; ``name`` comes from the strategy."""

    custom_config_key = CUSTOM_CONFIG.EslintConfig.value

    def __init__(
        self,
        strategy: EslintStrategy,
        config: Optional[ScannerConfig] = None,
        dependencies: Optional[StaticDependencies] = None,
    ):
        super().__init__(config)
        self.strategy = strategy
        self.name = strategy.get_engine().value
        self.dependencies = dependencies or StaticDependencies()
        self.helper = EslintProcessHelper()

    def match_path(self, path: str) -> bool:
        # ESLint engines do not accept custom rule paths.
        logger.debug(f"Custom rules are not supported by {self.get_name()}: {path}")
        return False

    def get_normalized_severity(self, severity: int) -> Severity:
        if severity == 2:
            return Severity.HIGH
        return Severity.MODERATE

    def filter_unsupported_paths(self, paths: Sequence[str]) -> List[str]:
        return self.strategy.filter_unsupported_paths(paths)

    def _call_bridge(self, func, *args):
        try:
            return func(*args)
        except EslintBridgeError as e:
            raise EngineExecutionError(self.get_name(), str(e)) from e

    def build_catalog(self) -> Catalog:
        all_rules = self._call_bridge(self.dependencies.get_rules, self.strategy.get_catalog_plugins())
        allowed = self.strategy.filter_disallowed_rules(all_rules)
        recommended = self._call_bridge(
            self.dependencies.get_recommended_config,
            self.strategy.get_recommended_base_config(),
            self.strategy.get_recommended_sample_file(),
        )

        categories = GroupAccumulator(self.get_name())
        rulesets = GroupAccumulator(self.get_name())
        rules = []
        for name, meta in allowed.items():
            rule = self._process_rule(name, meta, recommended)
            rules.append(rule)
            (category,) = tuple(rule.categories)
            categories.add(category, rule.url)
            rulesets.add(category, rule.url)

        return Catalog(categories=categories.groups(), rules=rules, rulesets=rulesets.groups())

    def _process_rule(self, name: str, meta: Dict[str, Any], recommended: Dict[str, Any]) -> Rule:
        docs = meta.get("docs") or {}
        category = docs.get("category") or meta.get("type") or UNCATEGORIZED
        status = EslintStrategyHelper.get_default_status(recommended, name)
        return Rule(
            name=name,
            engine=self.get_name(),
            categories=frozenset([category]),
            rulesets=frozenset([category]),
            languages=frozenset(self.strategy.get_languages()),
            default_enabled=None if status is None else status is RuleDefaultStatus.ENABLED,
            default_config=EslintStrategyHelper.get_default_config(recommended, name),
            url=docs.get("url", ""),
            description=docs.get("description", ""),
            source=self.get_name(),
        )

    @staticmethod
    def configure_rules(rules: Sequence[Rule]) -> Dict[str, Any]:
        """Map each rule to the setting it runs at: its default config, else "error"."""
        return {rule.name: rule.default_config or "error" for rule in rules}

    def build_target_config(self, target: RuleTarget, configured_rules: Dict[str, Any], engine_options: EngineOptions) -> Dict[str, Any]:
        """ESLint options for one target.

        Environments merge with increasing precedence: ``DEFAULT_ENV_VARS``,
        then the strategy's ``baseConfig.env``, then the JSON ``env`` option.
        """
        if target.is_directory:
            cwd = self.dependencies.resolve_target_path(target.target)
        else:
            cwd = self.dependencies.get_current_working_directory()
        logger.debug(f"Using current working directory {cwd} for {self.get_name()}")

        config: Dict[str, Any] = {"cwd": cwd}
        config.update(copy.deepcopy(self.strategy.get_run_config(engine_options, cwd)))

        override = config.setdefault("overrideConfig", {})
        override["rules"] = dict(configured_rules)

        base_config = config.get(BASE_CONFIG) or {}
        config[BASE_CONFIG] = base_config
        env_override = json.loads(engine_options[ENV]) if ENV in engine_options else {}
        base_config[ENV] = {**DEFAULT_ENV_VARS, **(base_config.get(ENV) or {}), **env_override}
        return config

    def run(
        self,
        rule_groups: Sequence[RuleGroup],
        rules: Sequence[Rule],
        targets: Sequence[RuleTarget],
        engine_options: EngineOptions,
    ) -> List[RuleResult]:
        configured_rules = self.configure_rules(rules)
        if not configured_rules:
            logger.debug("No matching rules to run. Nothing to execute.")
            return []

        results: List[RuleResult] = []
        for target in targets:
            paths = self.strategy.filter_unsupported_paths(target.paths)
            if not paths:
                logger.debug(f"No files to analyze in target {target.target}")
                continue

            try:
                config = self.build_target_config(target, configured_rules, engine_options)
            except json.JSONDecodeError as e:
                raise EngineExecutionError(self.get_name(), f"Invalid env option: {e}") from e

            logger.debug(f"About to run {self.get_name()} on {len(paths)} file(s)")
            es_results, rule_map = self._call_bridge(self.dependencies.lint_files, config, paths)
            logger.debug(f"Finished running {self.get_name()}")

            self.helper.add_rule_results_from_report(
                self.get_name(), results, es_results, rule_map, self.strategy.process_rule_violation
            )
        return results

    def get_engine_info(self) -> Dict[str, Any]:
        info = super().get_engine_info()
        info["languages"] = self.strategy.get_languages()
        return info


__all__ = ["DEFAULT_ENV_VARS", "EslintStrategy", "EslintEngine"]
