"""Rule filters and their composition.

Filters of different kinds are ANDed together; the values inside one filter
are ORed. The rule-name filter is the exception: it carries exactly one
name, compared for equality.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from Scanner.rule.models import Rule


class FilterKind(str, Enum):
    CATEGORY = "category"
    RULESET = "ruleset"
    LANGUAGE = "language"
    RULENAME = "rulename"
    ENGINE = "engine"


@dataclass(frozen=True)
class RuleFilter:
    kind: FilterKind
    values: frozenset

    def __post_init__(self) -> None:
        if self.kind is FilterKind.RULENAME and len(self.values) != 1:
            raise ValueError("A rule name filter takes exactly one rule name")

    def _rule_values(self, rule: Rule) -> frozenset:
        if self.kind is FilterKind.CATEGORY:
            return rule.categories
        if self.kind is FilterKind.RULESET:
            return rule.rulesets
        if self.kind is FilterKind.LANGUAGE:
            return rule.languages
        if self.kind is FilterKind.ENGINE:
            return frozenset([rule.engine])
        return frozenset([rule.name])

    def matches(self, rule: Rule) -> bool:
        if self.kind is FilterKind.RULENAME:
            (name,) = tuple(self.values)
            return rule.name == name
        return not self.values.isdisjoint(self._rule_values(rule))


def category_filter(values: Iterable[str]) -> RuleFilter:
    return RuleFilter(FilterKind.CATEGORY, frozenset(values))


def ruleset_filter(values: Iterable[str]) -> RuleFilter:
    return RuleFilter(FilterKind.RULESET, frozenset(values))


def language_filter(values: Iterable[str]) -> RuleFilter:
    return RuleFilter(FilterKind.LANGUAGE, frozenset(values))


def rulename_filter(name: str) -> RuleFilter:
    return RuleFilter(FilterKind.RULENAME, frozenset([name]))


def engine_filter(values: Iterable[str]) -> RuleFilter:
    return RuleFilter(FilterKind.ENGINE, frozenset(values))


def matches_all(rule: Rule, filters: Sequence[RuleFilter]) -> bool:
    """True when the rule satisfies every filter (always true with no filters)."""
    return all(f.matches(rule) for f in filters)


def get_filter_values(filters: Sequence[RuleFilter], kind: FilterKind) -> List[str]:
    """Union of the values of all filters of one kind, sorted."""
    values = set()
    for f in filters:
        if f.kind is kind:
            values.update(f.values)
    return sorted(values)


def build_rule_filters(
    categories: Optional[Sequence[str]] = None,
    rulesets: Optional[Sequence[str]] = None,
    languages: Optional[Sequence[str]] = None,
    rulename: Optional[str] = None,
    engines: Optional[Sequence[str]] = None,
) -> List[RuleFilter]:
    """Build the filter chain from command-level inputs; empty inputs add nothing."""
    filters: List[RuleFilter] = []
    if categories:
        filters.append(category_filter(categories))
    if rulesets:
        filters.append(ruleset_filter(rulesets))
    if languages:
        filters.append(language_filter(languages))
    if rulename:
        filters.append(rulename_filter(rulename))
    if engines:
        filters.append(engine_filter(engines))
    return filters


__all__ = [
    "FilterKind",
    "RuleFilter",
    "category_filter",
    "ruleset_filter",
    "language_filter",
    "rulename_filter",
    "engine_filter",
    "matches_all",
    "get_filter_values",
    "build_rule_filters",
]
