"""retire.js engine adapter.

retire.js reports JavaScript libraries with known vulnerabilities. It only
scans whole directories, so the target files are copied into a scratch
directory first and reported paths are mapped back to the originals.
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
from typing import Any, Dict, List, Optional, Sequence

from Scanner.constants import ENGINE, LANGUAGE, Severity
from Scanner.core.config import ScannerConfig
from Scanner.core.errors import EngineExecutionError
from Scanner.core.logging import get_logger
from Scanner.rule.engine_base import EngineOptions, RuleEngine
from Scanner.rule.engine_registry import EngineRegistry
from Scanner.rule.models import Catalog, GroupAccumulator, Rule, RuleGroup, RuleResult, RuleTarget, RuleViolation

logger = get_logger(__name__)

INSECURE_DEPENDENCIES_RULE = "insecure-bundled-dependencies"
INSECURE_DEPENDENCIES_CATEGORY = "Insecure Dependencies"
RETIRE_DOCS_URL = "https://retirejs.github.io/retire.js/"

RETIRE_SEVERITY: Dict[str, int] = {
    "critical": 1,
    "high": 1,
    "medium": 2,
    "low": 3,
}

# 13: vulnerabilities were found
RETIRE_SUCCESS_CODES = (0, 13)


@EngineRegistry.register
class RetireJsEngine(RuleEngine):
    """Adapter around the ``retire`` command line tool."""

    name = ENGINE.RETIRE_JS.value

    def __init__(self, config: Optional[ScannerConfig] = None):
        super().__init__(config)

    def get_normalized_severity(self, severity: int) -> Severity:
        if severity == 1:
            return Severity.HIGH
        if severity == 2:
            return Severity.MODERATE
        return Severity.LOW

    def filter_unsupported_paths(self, paths: Sequence[str]) -> List[str]:
        return [p for p in paths if p.lower().endswith(".js")]

    def build_catalog(self) -> Catalog:
        rule = Rule(
            name=INSECURE_DEPENDENCIES_RULE,
            engine=self.get_name(),
            categories=frozenset([INSECURE_DEPENDENCIES_CATEGORY]),
            rulesets=frozenset(),
            languages=frozenset([LANGUAGE.JAVASCRIPT.value]),
            default_enabled=True,
            url=RETIRE_DOCS_URL,
            description="Identify bundled libraries/frameworks with known vulnerabilities.",
        )
        categories = GroupAccumulator(self.get_name())
        categories.add(INSECURE_DEPENDENCIES_CATEGORY, rule.url)
        return Catalog(categories=categories.groups(), rules=[rule], rulesets=[])

    def run(
        self,
        rule_groups: Sequence[RuleGroup],
        rules: Sequence[Rule],
        targets: Sequence[RuleTarget],
        engine_options: EngineOptions,
    ) -> List[RuleResult]:
        if not any(rule.name == INSECURE_DEPENDENCIES_RULE for rule in rules):
            return []

        paths = [p for target in targets for p in self.filter_unsupported_paths(target.paths)]
        if not paths:
            logger.debug("No JavaScript files to scan with retire.js")
            return []

        scratch = tempfile.mkdtemp(prefix="rule-scanner-retire-")
        try:
            originals = self._stage_files(paths, scratch)
            args = [self.get_config_option("command", "retire"), "--outputformat", "json", "--jspath", scratch]
            return_code, stdout, stderr = self._execute_command(args)
            if return_code not in RETIRE_SUCCESS_CODES:
                raise EngineExecutionError(self.get_name(), stderr.strip() or f"exit status {return_code}")
            # retire writes its JSON report to stderr in some versions
            report = stdout if stdout.strip() else stderr
            return self.parse_report(report, originals)
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

    @staticmethod
    def _stage_files(paths: Sequence[str], scratch: str) -> Dict[str, str]:
        """Copy each file into its own numbered folder; returns staged path -> original."""
        originals = {}
        for index, path in enumerate(paths):
            folder = os.path.join(scratch, str(index))
            os.makedirs(folder)
            staged = os.path.join(folder, os.path.basename(path))
            shutil.copyfile(path, staged)
            originals[os.path.realpath(staged)] = path
        return originals

    def parse_report(self, report: str, originals: Dict[str, str]) -> List[RuleResult]:
        """Turn a retire.js JSON report into RuleResults on the original files.

        Accepts both the ``{"data": [...]}`` layout and the older bare list.
        """
        if not report or not report.strip():
            return []
        try:
            document: Any = json.loads(report)
        except json.JSONDecodeError as e:
            raise EngineExecutionError(self.get_name(), f"Could not parse retire.js report: {e}") from e

        entries = document.get("data", []) if isinstance(document, dict) else document
        results = []
        for entry in entries:
            file_name = entry.get("file", "")
            original = originals.get(os.path.realpath(file_name), file_name)
            violations = []
            for component in entry.get("results", []):
                for vulnerability in component.get("vulnerabilities") or []:
                    violations.append(self._to_violation(component, vulnerability))
            if violations:
                results.append(RuleResult(engine=self.get_name(), file_name=original, violations=violations))
        return results

    @staticmethod
    def _to_violation(component: Dict[str, Any], vulnerability: Dict[str, Any]) -> RuleViolation:
        identifiers = vulnerability.get("identifiers") or {}
        summary = identifiers.get("summary", "")
        message = f"{component.get('component')} v{component.get('version')} is insecure."
        if summary:
            message += f" {summary}"
        message += " Please upgrade to latest version."
        info = vulnerability.get("info") or []
        return RuleViolation(
            line=1,
            column=1,
            severity=RETIRE_SEVERITY.get(str(vulnerability.get("severity", "")).lower(), 3),
            message=message,
            rule_name=INSECURE_DEPENDENCIES_RULE,
            category=INSECURE_DEPENDENCIES_CATEGORY,
            url=info[0] if info else "",
        )


__all__ = ["RetireJsEngine", "INSECURE_DEPENDENCIES_RULE"]
