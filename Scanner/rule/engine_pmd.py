"""PMD engine adapter.

The catalog is read straight from PMD's rule definition files:

- ``category/<lang>/*.xml`` inside the distribution jars under
  ``$PMD_HOME/lib`` and inside custom rule jars registered for ``pmd``;
- ``rulesets/<lang>/*.xml`` inside the same jars, giving ruleset membership.

The ``quickstart`` ruleset acts as PMD's recommended configuration.

Runs generate a temporary ruleset that references every selected rule and
invoke ``pmd check`` with XML output.
"""

from __future__ import annotations

import os
import re
import tempfile
import xml.etree.ElementTree as ET
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from Scanner.constants import CUSTOM_CONFIG, ENGINE, LANGUAGE, RULE_ARCHIVE_EXTENSION, Severity
from Scanner.core.config import ScannerConfig, get_pmd_home
from Scanner.core.errors import EngineExecutionError
from Scanner.core.logging import get_logger
from Scanner.rule.custom_path_manager import CustomRulePathManager, get_custom_path_manager
from Scanner.rule.engine_base import EngineOptions, RuleEngine
from Scanner.rule.engine_registry import EngineRegistry
from Scanner.rule.models import Catalog, GroupAccumulator, Rule, RuleGroup, RuleResult, RuleTarget, RuleViolation

logger = get_logger(__name__)

PMD_RULESET_NAMESPACE = "http://pmd.sourceforge.net/ruleset/2.0.0"

RECOMMENDED_RULESET = "quickstart"

# PMD directory names that differ from ours
PMD_LANGUAGE_ALIASES: Dict[str, str] = {
    "vf": LANGUAGE.VISUALFORCE.value,
    "visualforce": LANGUAGE.VISUALFORCE.value,
    "ecmascript": LANGUAGE.JAVASCRIPT.value,
}

PMD_SUPPORTED_EXTENSIONS = (".cls", ".trigger", ".java", ".page", ".component", ".xml")

# 0: no violations, 4: violations found, 5: recoverable processing errors
PMD_SUCCESS_CODES = (0, 4, 5)

_CATEGORY_ENTRY = re.compile(r"^category/([^/]+)/[^/]+\.xml$")
_RULESET_ENTRY = re.compile(r"^rulesets/([^/]+)/[^/]+\.xml$")


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _children(elem: ET.Element, name: str) -> List[ET.Element]:
    return [child for child in elem if _local_name(child.tag) == name]


def _child_text(elem: ET.Element, name: str) -> str:
    for child in _children(elem, name):
        return (child.text or "").strip()
    return ""


def _normalize_language(pmd_language: str) -> str:
    return PMD_LANGUAGE_ALIASES.get(pmd_language, pmd_language)


@dataclass
class _RuleDefinition:
    """A rule as read from a category file, before membership is resolved."""

    name: str
    category: str
    source: str
    language: str
    url: str = ""
    description: str = ""
    rulesets: Set[str] = field(default_factory=set)
    default_enabled: Optional[bool] = None
    default_config: Optional[Dict[str, str]] = None


@dataclass
class _RulesetReference:
    """One ``<rule ref=...>`` inside a ruleset file."""

    source: str
    rule_name: Optional[str]
    excludes: Set[str] = field(default_factory=set)
    properties: Dict[str, str] = field(default_factory=dict)


def _parse_reference(rule_elem: ET.Element) -> Optional[_RulesetReference]:
    ref = rule_elem.get("ref", "")
    if not ref.endswith(".xml") and ".xml/" not in ref:
        # Old-style references to renamed rulesets; nothing to resolve.
        return None
    if ref.endswith(".xml"):
        source, rule_name = ref, None
    else:
        source, rule_name = ref.rsplit("/", 1)

    reference = _RulesetReference(source=source, rule_name=rule_name)
    reference.excludes = {e.get("name", "") for e in _children(rule_elem, "exclude")}
    for properties in _children(rule_elem, "properties"):
        for prop in _children(properties, "property"):
            name = prop.get("name")
            if name is None:
                continue
            value = prop.get("value")
            if value is None:
                value = _child_text(prop, "value")
            reference.properties[name] = value
    return reference


def parse_category_file(content: bytes, source: str, default_language: str) -> Tuple[str, List[_RuleDefinition]]:
    """Read the rules declared in one PMD category file.

    Deprecated rules and ``ref`` aliases are skipped.

    Returns:
        The category name and its rule definitions, in file order
    """
    root = ET.fromstring(content)
    category = root.get("name") or Path(source).stem
    definitions = []
    for rule_elem in _children(root, "rule"):
        name = rule_elem.get("name")
        if not name or rule_elem.get("ref"):
            continue
        if rule_elem.get("deprecated", "false").lower() == "true":
            logger.debug(f"Skipping deprecated PMD rule {name} in {source}")
            continue
        language = rule_elem.get("language")
        definitions.append(
            _RuleDefinition(
                name=name,
                category=category,
                source=source,
                language=_normalize_language(language) if language else default_language,
                url=rule_elem.get("externalInfoUrl", ""),
                description=_child_text(rule_elem, "description") or rule_elem.get("message", ""),
            )
        )
    return category, definitions


def parse_ruleset_file(content: bytes, source: str) -> Tuple[str, List[_RulesetReference]]:
    root = ET.fromstring(content)
    name = root.get("name") or Path(source).stem
    references = []
    for rule_elem in _children(root, "rule"):
        reference = _parse_reference(rule_elem)
        if reference is not None:
            references.append(reference)
    return name, references


def parse_report(output: str, engine: str) -> List[RuleResult]:
    """Convert PMD's XML report into RuleResults, one per file."""
    if not output or not output.strip():
        return []
    try:
        root = ET.fromstring(output)
    except ET.ParseError as e:
        raise EngineExecutionError(engine, f"Could not parse PMD report: {e}") from e

    results = []
    for file_elem in _children(root, "file"):
        violations = []
        for violation in _children(file_elem, "violation"):
            violations.append(
                RuleViolation(
                    line=int(violation.get("beginline", "0")),
                    column=int(violation.get("begincolumn", "0")),
                    severity=int(violation.get("priority", "3")),
                    message=(violation.text or "").strip(),
                    rule_name=violation.get("rule", ""),
                    category=violation.get("ruleset", ""),
                    url=violation.get("externalInfoUrl", ""),
                )
            )
        results.append(RuleResult(engine=engine, file_name=file_elem.get("name", ""), violations=violations))

    for error in _children(root, "error"):
        logger.warning(f"PMD could not process {error.get('filename')}: {error.get('msg')}")
    return results


def build_ruleset_xml(rules: Sequence[Rule]) -> str:
    """Generate a ruleset referencing each rule by ``<category file>/<rule name>``."""
    ET.register_namespace("", PMD_RULESET_NAMESPACE)
    root = ET.Element(f"{{{PMD_RULESET_NAMESPACE}}}ruleset", {"name": "rule-scanner"})
    description = ET.SubElement(root, f"{{{PMD_RULESET_NAMESPACE}}}description")
    description.text = "Rules selected by rule-scanner"
    for rule in rules:
        ET.SubElement(root, f"{{{PMD_RULESET_NAMESPACE}}}rule", {"ref": f"{rule.source}/{rule.name}"})
    return ET.tostring(root, encoding="unicode", xml_declaration=True)


@EngineRegistry.register
class PmdEngine(RuleEngine):
    """Adapter around PMD's ``check`` command."""

    name = ENGINE.PMD.value
    custom_config_key = CUSTOM_CONFIG.PmdConfig.value

    def __init__(
        self,
        config: Optional[ScannerConfig] = None,
        path_manager: Optional[CustomRulePathManager] = None,
        pmd_home: Optional[Path] = None,
    ):
        super().__init__(config)
        self._path_manager = path_manager
        self._pmd_home = pmd_home

    @property
    def path_manager(self) -> CustomRulePathManager:
        if self._path_manager is None:
            self._path_manager = get_custom_path_manager()
        return self._path_manager

    @property
    def pmd_home(self) -> Optional[Path]:
        return self._pmd_home or get_pmd_home()

    def match_path(self, path: str) -> bool:
        return path.endswith(RULE_ARCHIVE_EXTENSION)

    def get_normalized_severity(self, severity: int) -> Severity:
        if severity == 1:
            return Severity.HIGH
        if severity == 2:
            return Severity.MODERATE
        return Severity.LOW

    def filter_unsupported_paths(self, paths: Sequence[str]) -> List[str]:
        return [p for p in paths if p.lower().endswith(PMD_SUPPORTED_EXTENSIONS)]

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def _distribution_jars(self) -> List[Path]:
        home = self.pmd_home
        if home is None:
            logger.warning("PMD_HOME is not set; the PMD catalog only contains custom rules")
            return []
        return sorted((home / "lib").glob("pmd-*.jar"))

    def _custom_paths(self) -> List[Tuple[str, str]]:
        """Registered (language, path) pairs for PMD, in a stable order."""
        entries = self.path_manager.get_rule_path_entries(self.get_name())
        pairs = []
        for language in sorted(entries):
            for path in sorted(entries[language]):
                pairs.append((language, path))
        return pairs

    def _custom_jars(self) -> List[str]:
        """Rule archives registered for PMD; other entries are ignored."""
        jars = []
        for _, path in self._custom_paths():
            if path.endswith(RULE_ARCHIVE_EXTENSION):
                jars.append(path)
            else:
                logger.warning(f"Ignoring registered PMD rule path that is not a rule archive: {path}")
        return jars

    def _iter_definition_files(self) -> Iterator[Tuple[str, str, Optional[str], bytes]]:
        """Yield (kind, entry name, default language, content) for every definition file.

        ``kind`` is "category" or "ruleset".
        """
        jars = [str(jar) for jar in self._distribution_jars()] + self._custom_jars()

        for jar in jars:
            try:
                with zipfile.ZipFile(jar) as archive:
                    for entry in sorted(archive.namelist()):
                        category_match = _CATEGORY_ENTRY.match(entry)
                        ruleset_match = _RULESET_ENTRY.match(entry)
                        if category_match:
                            default_language = _normalize_language(category_match.group(1))
                            yield "category", entry, default_language, archive.read(entry)
                        elif ruleset_match:
                            yield "ruleset", entry, None, archive.read(entry)
            except (OSError, zipfile.BadZipFile) as e:
                raise EngineExecutionError(self.get_name(), f"Could not read rule archive {jar}: {e}") from e

    def build_catalog(self) -> Catalog:
        definitions: Dict[Tuple[str, str], _RuleDefinition] = {}
        categories = GroupAccumulator(self.get_name())
        rulesets = GroupAccumulator(self.get_name())
        ruleset_files: List[Tuple[str, str, List[_RulesetReference]]] = []

        for kind, entry, language, content in self._iter_definition_files():
            try:
                if kind == "category":
                    category, rules = parse_category_file(content, entry, language or "")
                    for definition in rules:
                        definitions[(definition.source, definition.name)] = definition
                        categories.add(category, entry, unique=True)
                else:
                    ruleset_name, references = parse_ruleset_file(content, entry)
                    ruleset_files.append((entry, ruleset_name, references))
            except ET.ParseError as e:
                raise EngineExecutionError(self.get_name(), f"Malformed rule definition file {entry}: {e}") from e

        by_source: Dict[str, List[_RuleDefinition]] = {}
        for definition in definitions.values():
            by_source.setdefault(definition.source, []).append(definition)

        for entry, ruleset_name, references in ruleset_files:
            is_recommended = Path(entry).stem == RECOMMENDED_RULESET
            for reference in references:
                members = self._resolve_reference(reference, definitions, by_source)
                for definition in members:
                    definition.rulesets.add(ruleset_name)
                    rulesets.add(ruleset_name, entry, unique=True)
                    if is_recommended:
                        definition.default_enabled = True
                        definition.default_config = dict(reference.properties) or None
                if is_recommended:
                    for excluded in reference.excludes:
                        definition = definitions.get((reference.source, excluded))
                        if definition is not None:
                            definition.default_enabled = False
                            definition.default_config = None

        rules = [
            Rule(
                name=d.name,
                engine=self.get_name(),
                categories=frozenset([d.category]),
                rulesets=frozenset(d.rulesets),
                languages=frozenset([d.language]) if d.language else frozenset(),
                default_enabled=d.default_enabled,
                default_config=d.default_config,
                url=d.url,
                description=d.description,
                source=d.source,
            )
            for d in definitions.values()
        ]
        return Catalog(categories=categories.groups(), rules=rules, rulesets=rulesets.groups())

    @staticmethod
    def _resolve_reference(
        reference: _RulesetReference,
        definitions: Dict[Tuple[str, str], _RuleDefinition],
        by_source: Dict[str, List[_RuleDefinition]],
    ) -> List[_RuleDefinition]:
        if reference.rule_name is not None:
            definition = definitions.get((reference.source, reference.rule_name))
            return [definition] if definition is not None else []
        return [d for d in by_source.get(reference.source, []) if d.name not in reference.excludes]

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def _pmd_command(self) -> str:
        home = self.pmd_home
        if home is not None:
            executable = home / "bin" / ("pmd.bat" if os.name == "nt" else "pmd")
            if executable.exists():
                return str(executable)
        return "pmd"

    def _build_env(self) -> Dict[str, str]:
        env = dict(os.environ)
        jars = [path for _, path in self._custom_paths() if path.endswith(RULE_ARCHIVE_EXTENSION)]
        if jars:
            existing = env.get("CLASSPATH")
            env["CLASSPATH"] = os.pathsep.join(jars + ([existing] if existing else []))
        return env

    def run(
        self,
        rule_groups: Sequence[RuleGroup],
        rules: Sequence[Rule],
        targets: Sequence[RuleTarget],
        engine_options: EngineOptions,
    ) -> List[RuleResult]:
        """Run ``pmd check`` once per target with a generated ruleset.

        Args:
            rule_groups: Groups the selected rules belong to (unused by PMD)
            rules: Selected catalog rules
            targets: Resolved targets, processed in order
            engine_options: Invocation options

        Returns:
            Results for every file with violations

        Raises:
            EngineExecutionError: if PMD exits with an error status
        """
        if not rules:
            return []

        handle, ruleset_path = tempfile.mkstemp(prefix="rule-scanner-", suffix=".xml")
        try:
            with os.fdopen(handle, "w", encoding="utf-8") as f:
                f.write(build_ruleset_xml(rules))

            env = self._build_env()
            results: List[RuleResult] = []
            for target in targets:
                paths = self.filter_unsupported_paths(target.paths)
                if not paths:
                    logger.debug(f"No PMD-supported files in target {target.target}")
                    continue
                results.extend(self._run_target(ruleset_path, paths, env))
            return results
        finally:
            os.remove(ruleset_path)

    def _run_target(self, ruleset_path: str, paths: Sequence[str], env: Dict[str, str]) -> List[RuleResult]:
        args = [
            self._pmd_command(),
            "check",
            "--no-cache",
            "--no-progress",
            "-R", ruleset_path,
            "-f", "xml",
            "-d", ",".join(paths),
        ]
        return_code, stdout, stderr = self._execute_command(args, env=env)
        if return_code not in PMD_SUCCESS_CODES:
            raise EngineExecutionError(self.get_name(), stderr.strip() or f"exit status {return_code}")
        if return_code == 5:
            logger.warning(f"PMD reported processing errors: {stderr.strip()}")
        return [r for r in parse_report(stdout, self.get_name()) if r.violations]

    def get_engine_info(self) -> Dict[str, Any]:
        info = super().get_engine_info()
        info["pmdHome"] = str(self.pmd_home) if self.pmd_home else None
        return info


__all__ = [
    "PmdEngine",
    "parse_category_file",
    "parse_ruleset_file",
    "parse_report",
    "build_ruleset_xml",
]
