"""Rule catalog, custom rule paths and engine orchestration.

Importing this package registers the engines, in order: pmd, eslint,
eslint-typescript, eslint-lwc, retire-js, cpd.
"""

from Scanner.rule.models import (
    Catalog,
    Rule,
    RuleGroup,
    RuleResult,
    RuleTarget,
    RuleViolation,
)
from Scanner.rule.engine_base import RuleEngine, EngineOptions
from Scanner.rule.engine_registry import EngineRegistry, determine_engine_for_path

# Import engine modules to trigger registration
# pylint: disable=unused-import
from Scanner.rule import engine_pmd
from Scanner.rule.eslint import strategies
from Scanner.rule import engine_retire
from Scanner.rule import engine_cpd
# pylint: enable=unused-import

from Scanner.rule.custom_path_manager import CustomRulePathManager, get_custom_path_manager
from Scanner.rule.rule_filter import FilterKind, RuleFilter, build_rule_filters, matches_all
from Scanner.rule.rule_manager import RuleManager

__all__ = [
    "Catalog",
    "Rule",
    "RuleGroup",
    "RuleResult",
    "RuleTarget",
    "RuleViolation",
    "RuleEngine",
    "EngineOptions",
    "EngineRegistry",
    "determine_engine_for_path",
    "CustomRulePathManager",
    "get_custom_path_manager",
    "FilterKind",
    "RuleFilter",
    "build_rule_filters",
    "matches_all",
    "RuleManager",
]
