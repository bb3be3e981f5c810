"""CPD (copy-paste detector) engine adapter.

CPD is shipped with PMD and has no rules of its own; the catalog exposes a
single synthetic rule so duplicate detection can be selected and filtered
like any other rule.
"""

from __future__ import annotations

import os
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Sequence

from Scanner.constants import ENGINE, LANGUAGE, Severity
from Scanner.core.config import ScannerConfig, get_pmd_home
from Scanner.core.errors import EngineExecutionError
from Scanner.core.logging import get_logger
from Scanner.rule.engine_base import EngineOptions, RuleEngine
from Scanner.rule.engine_registry import EngineRegistry
from Scanner.rule.models import Catalog, GroupAccumulator, Rule, RuleGroup, RuleResult, RuleTarget, RuleViolation

logger = get_logger(__name__)

COPY_PASTE_RULE = "copy-paste-detected"
COPY_PASTE_CATEGORY = "Copy/Paste Detected"
CPD_DOCS_URL = "https://pmd.github.io/latest/pmd_userdocs_cpd.html"

DEFAULT_MINIMUM_TOKENS = 100
MINIMUM_TOKENS_OPTION = "minimumTokens"

# File extension -> CPD language id
CPD_LANGUAGES: Dict[str, str] = {
    ".cls": "apex",
    ".trigger": "apex",
    ".java": "java",
    ".page": "vf",
    ".component": "vf",
    ".xml": "xml",
}

CPD_SUCCESS_CODES = (0, 4)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


@EngineRegistry.register
class CpdEngine(RuleEngine):
    """Adapter around ``pmd cpd``."""

    name = ENGINE.CPD.value

    def __init__(self, config: Optional[ScannerConfig] = None):
        super().__init__(config)

    def get_normalized_severity(self, severity: int) -> Severity:
        if severity == 1:
            return Severity.HIGH
        if severity == 2:
            return Severity.MODERATE
        return Severity.LOW

    def filter_unsupported_paths(self, paths: Sequence[str]) -> List[str]:
        return [p for p in paths if os.path.splitext(p)[1].lower() in CPD_LANGUAGES]

    def build_catalog(self) -> Catalog:
        rule = Rule(
            name=COPY_PASTE_RULE,
            engine=self.get_name(),
            categories=frozenset([COPY_PASTE_CATEGORY]),
            rulesets=frozenset(),
            languages=frozenset(
                [LANGUAGE.APEX.value, LANGUAGE.JAVA.value, LANGUAGE.VISUALFORCE.value, LANGUAGE.XML.value]
            ),
            default_enabled=True,
            url=CPD_DOCS_URL,
            description="Identify duplicate code blocks.",
        )
        categories = GroupAccumulator(self.get_name())
        categories.add(COPY_PASTE_CATEGORY, rule.url)
        return Catalog(categories=categories.groups(), rules=[rule], rulesets=[])

    def get_minimum_tokens(self, engine_options: EngineOptions) -> int:
        value = engine_options.get(MINIMUM_TOKENS_OPTION) or self.get_config_option(
            MINIMUM_TOKENS_OPTION, DEFAULT_MINIMUM_TOKENS
        )
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise EngineExecutionError(self.get_name(), f"Invalid {MINIMUM_TOKENS_OPTION}: {value}") from e

    def _cpd_command(self) -> str:
        home = get_pmd_home()
        if home is not None:
            executable = home / "bin" / ("pmd.bat" if os.name == "nt" else "pmd")
            if executable.exists():
                return str(executable)
        return "pmd"

    def run(
        self,
        rule_groups: Sequence[RuleGroup],
        rules: Sequence[Rule],
        targets: Sequence[RuleTarget],
        engine_options: EngineOptions,
    ) -> List[RuleResult]:
        if not any(rule.name == COPY_PASTE_RULE for rule in rules):
            return []

        # CPD compares files against each other, so all targets go in one run per language.
        by_language: Dict[str, List[str]] = {}
        for target in targets:
            for path in self.filter_unsupported_paths(target.paths):
                language = CPD_LANGUAGES[os.path.splitext(path)[1].lower()]
                by_language.setdefault(language, []).append(path)

        minimum_tokens = self.get_minimum_tokens(engine_options)
        results: Dict[str, RuleResult] = {}
        for language in sorted(by_language):
            args = [
                self._cpd_command(),
                "cpd",
                "--minimum-tokens", str(minimum_tokens),
                "--language", language,
                "--format", "xml",
                "-d", ",".join(by_language[language]),
            ]
            return_code, stdout, stderr = self._execute_command(args)
            if return_code not in CPD_SUCCESS_CODES:
                raise EngineExecutionError(self.get_name(), stderr.strip() or f"exit status {return_code}")
            self.parse_report(stdout, results)
        return list(results.values())

    def parse_report(self, output: str, results: Dict[str, RuleResult]) -> Dict[str, RuleResult]:
        """Add one violation per file of every duplication, grouped by file."""
        if not output or not output.strip():
            return results
        try:
            root = ET.fromstring(output)
        except ET.ParseError as e:
            raise EngineExecutionError(self.get_name(), f"Could not parse CPD report: {e}") from e

        for duplication in root:
            if _local_name(duplication.tag) != "duplication":
                continue
            occurrences = [f for f in duplication if _local_name(f.tag) == "file"]
            lines = duplication.get("lines", "0")
            tokens = duplication.get("tokens", "0")
            for occurrence in occurrences:
                file_name = occurrence.get("path", "")
                result = results.setdefault(file_name, RuleResult(engine=self.get_name(), file_name=file_name))
                result.violations.append(
                    RuleViolation(
                        line=int(occurrence.get("line", "0")),
                        column=int(occurrence.get("column", "0") or 0),
                        severity=Severity.LOW.value,
                        message=f"{lines} duplicate lines ({tokens} tokens) found in {len(occurrences)} places.",
                        rule_name=COPY_PASTE_RULE,
                        category=COPY_PASTE_CATEGORY,
                        url=CPD_DOCS_URL,
                    )
                )
        return results


__all__ = ["CpdEngine", "COPY_PASTE_RULE"]
