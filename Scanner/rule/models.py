"""Canonical rule catalog and result data structures.

Every engine maps its native metadata onto these shapes so that filtering,
selection and reporting never need to know which engine a rule came from.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional


@dataclass(frozen=True)
class Rule:
    """A single catalog rule.

    Attributes:
        name: Canonical rule name (unique within its engine)
        engine: Name of the owning engine
        categories: Category names the rule belongs to
        rulesets: Ruleset names the rule belongs to
        languages: Languages the rule evaluates
        default_enabled: True/False per the engine's recommended configuration,
            None when the recommendation says nothing about the rule
        default_config: Engine-specific run configuration, None when absent
            or when the rule is recommended off
        url: Documentation link
        description: Short human-readable summary
        source: Engine-native definition reference (e.g. a PMD category file)
    """

    name: str
    engine: str
    categories: frozenset = frozenset()
    rulesets: frozenset = frozenset()
    languages: frozenset = frozenset()
    default_enabled: Optional[bool] = None
    default_config: Any = None
    url: str = ""
    description: str = ""
    source: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "engine": self.engine,
            "categories": sorted(self.categories),
            "rulesets": sorted(self.rulesets),
            "languages": sorted(self.languages),
            "defaultEnabled": self.default_enabled,
            "defaultConfig": self.default_config,
            "url": self.url,
            "description": self.description,
        }


@dataclass
class RuleGroup:
    """A category or ruleset, with documentation references in processing order."""

    name: str
    engine: str
    paths: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "engine": self.engine, "paths": list(self.paths)}


@dataclass
class Catalog:
    categories: List[RuleGroup] = field(default_factory=list)
    rules: List[Rule] = field(default_factory=list)
    rulesets: List[RuleGroup] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "categories": [c.to_dict() for c in self.categories],
            "rules": [r.to_dict() for r in self.rules],
            "rulesets": [r.to_dict() for r in self.rulesets],
        }

    @classmethod
    def merge(cls, catalogs: Iterable["Catalog"]) -> "Catalog":
        """Concatenate several engine catalogs, preserving their order."""
        merged = cls()
        for catalog in catalogs:
            merged.categories.extend(catalog.categories)
            merged.rules.extend(catalog.rules)
            merged.rulesets.extend(catalog.rulesets)
        return merged


class GroupAccumulator:
    """Collects RuleGroups by name while an engine walks its native rules."""

    def __init__(self, engine: str) -> None:
        self.engine = engine
        self._groups: Dict[str, RuleGroup] = {}

    def add(self, name: str, path: Optional[str], unique: bool = False) -> RuleGroup:
        group = self._groups.get(name)
        if group is None:
            group = RuleGroup(name=name, engine=self.engine)
            self._groups[name] = group
        if path and not (unique and path in group.paths):
            group.paths.append(path)
        return group

    def groups(self) -> List[RuleGroup]:
        return list(self._groups.values())


@dataclass
class RuleTarget:
    """A resolved scan target.

    Attributes:
        target: The user-supplied file, directory or pattern
        paths: Concrete files to scan
        is_directory: Whether ``target`` was a directory
    """

    target: str
    paths: List[str] = field(default_factory=list)
    is_directory: bool = False


@dataclass
class RuleViolation:
    line: int
    column: int
    severity: int
    message: str
    rule_name: str
    category: str
    url: str = ""
    normalized_severity: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "line": self.line,
            "column": self.column,
            "severity": self.severity,
            "message": self.message,
            "ruleName": self.rule_name,
            "category": self.category,
            "url": self.url,
        }
        if self.normalized_severity is not None:
            data["normalizedSeverity"] = self.normalized_severity
        return data


@dataclass
class RuleResult:
    """All violations one engine reported for one file."""

    engine: str
    file_name: str
    violations: List[RuleViolation] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "engine": self.engine,
            "fileName": self.file_name,
            "violations": [v.to_dict() for v in self.violations],
        }


__all__ = [
    "Rule",
    "RuleGroup",
    "Catalog",
    "GroupAccumulator",
    "RuleTarget",
    "RuleViolation",
    "RuleResult",
]
