"""Catalog queries and run orchestration across engines."""

from __future__ import annotations

import asyncio
from typing import Dict, List, Mapping, Optional, Sequence

from Scanner.core.errors import EngineExecutionError
from Scanner.core.logging import get_logger
from Scanner.rule.engine_base import RuleEngine
from Scanner.rule.engine_registry import EngineRegistry
from Scanner.rule.engine_utils import is_filter_empty_or_name_in_filter
from Scanner.rule.models import Catalog, Rule, RuleGroup, RuleResult
from Scanner.rule.rule_filter import FilterKind, RuleFilter, get_filter_values, matches_all
from Scanner.rule.target_resolver import resolve_targets

logger = get_logger(__name__)


class RuleManager:
    """Entry point for listing rules and running engines.

    Engines are visited in registration order and only when enabled in the
    config. Runs are strictly sequential: one engine at a time, and inside an
    engine one target at a time.
    """

    def __init__(self, engines: Optional[Sequence[RuleEngine]] = None):
        self._engines = list(engines) if engines is not None else None

    @property
    def engines(self) -> List[RuleEngine]:
        if self._engines is None:
            self._engines = EngineRegistry.get_engines()
        return self._engines

    def get_enabled_engines(self) -> List[RuleEngine]:
        return [engine for engine in self.engines if engine.is_enabled()]

    def get_catalog(self) -> Catalog:
        """Catalog of every enabled engine, concatenated in engine order."""
        return Catalog.merge(engine.get_catalog() for engine in self.get_enabled_engines())

    def get_rules_matching_filters(self, filters: Sequence[RuleFilter]) -> List[Rule]:
        """Catalog rules matching every filter.

        Engines excluded by an engine filter are not asked for their catalog.
        """
        engine_filter = get_filter_values(filters, FilterKind.ENGINE)
        engines = [
            engine
            for engine in self.get_enabled_engines()
            if is_filter_empty_or_name_in_filter(engine.get_name(), engine_filter)
        ]
        catalog = Catalog.merge(engine.get_catalog() for engine in engines)
        return [rule for rule in catalog.rules if matches_all(rule, filters)]

    @staticmethod
    def get_rule_groups(catalog: Catalog, rules: Sequence[Rule]) -> List[RuleGroup]:
        """Categories and rulesets that contain at least one of the rules."""
        category_names = {name for rule in rules for name in rule.categories}
        ruleset_names = {name for rule in rules for name in rule.rulesets}
        return [g for g in catalog.categories if g.name in category_names] + [
            g for g in catalog.rulesets if g.name in ruleset_names
        ]

    def _warn_disabled_engines(self, requested: Sequence[str]) -> None:
        enabled = {engine.get_name() for engine in self.get_enabled_engines()}
        for name in requested:
            if name not in enabled:
                logger.warning(f"Engine {name} was requested but is not enabled; it will not run")

    async def run_rules_matching_criteria(
        self,
        filters: Sequence[RuleFilter],
        targets: Sequence[str],
        engine_options: Optional[Mapping[str, str]] = None,
    ) -> List[RuleResult]:
        """Run every selected engine over the targets and collect normalized results.

        Args:
            filters: Rule filter chain
            targets: User-supplied files, directories or glob patterns
            engine_options: Invocation options (``env``, ``tsconfig``, ...)

        Returns:
            Results in engine order, then target order

        Raises:
            EngineExecutionError: if an engine fails; results of the engines
                that already finished are attached as ``partial_results``
        """
        options: Dict[str, str] = dict(engine_options or {})
        engine_filter = get_filter_values(filters, FilterKind.ENGINE)
        self._warn_disabled_engines(engine_filter)

        results: List[RuleResult] = []
        for engine in self.get_enabled_engines():
            name = engine.get_name()
            if not engine.is_engine_requested(engine_filter, options):
                logger.debug(f"Engine {name} was not requested")
                continue

            try:
                catalog = engine.get_catalog()
                rules = [rule for rule in catalog.rules if matches_all(rule, filters)]
                rule_groups = self.get_rule_groups(catalog, rules)
                rule_targets = resolve_targets(targets, engine.get_target_patterns())

                if not engine.should_engine_run(rule_groups, rules, rule_targets, options):
                    logger.info(
                        f"Skipping engine {name}: {len(rules)} matching rule(s), {len(rule_targets)} target(s)"
                    )
                    continue

                logger.info(f"Running engine {name} with {len(rules)} rule(s) on {len(rule_targets)} target(s)")
                engine_results = await asyncio.to_thread(engine.run, rule_groups, rules, rule_targets, options)
            except EngineExecutionError as e:
                e.partial_results = list(results)
                raise
            except Exception as e:
                raise EngineExecutionError(name, str(e), partial_results=results) from e

            for result in engine_results:
                for violation in result.violations:
                    violation.normalized_severity = int(engine.get_normalized_severity(violation.severity))
            logger.debug(f"Engine {name} reported {len(engine_results)} file result(s)")
            results.extend(engine_results)

        return results


__all__ = ["RuleManager"]
