"""Pieces shared by every ESLint-based engine.

ESLint runs in node, so the adapter talks to it through a small bridge
script executed with ``node -e``. The request is a JSON document written to
the bridge's stdin; the response is a JSON document read from its stdout.
Modules are resolved by node from the working directory (or ``NODE_PATH``).
"""

from __future__ import annotations

import json
import os
import subprocess
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from Scanner.core.logging import get_logger
from Scanner.rule.engine_utils import decode_output
from Scanner.rule.models import RuleResult, RuleViolation

logger = get_logger(__name__)

NODE_COMMAND_ENV = "RULE_SCANNER_NODE"

_BRIDGE_SCRIPT = r"""
const chunks = [];
process.stdin.on('data', (c) => chunks.push(c));
process.stdin.on('end', async () => {
  try {
    const request = JSON.parse(Buffer.concat(chunks).toString('utf8'));
    const { Linter, ESLint } = require('eslint');
    let response;
    if (request.action === 'rules') {
      const rules = {};
      for (const [name, rule] of new Linter().getRules()) {
        rules[name] = rule.meta || {};
      }
      for (const plugin of request.plugins || []) {
        const pluginRules = require(plugin.package).rules || {};
        for (const [name, rule] of Object.entries(pluginRules)) {
          rules[`${plugin.prefix}/${name}`] = rule.meta || {};
        }
      }
      response = rules;
    } else if (request.action === 'recommended') {
      const eslint = new ESLint({ useEslintrc: false, baseConfig: request.baseConfig });
      response = await eslint.calculateConfigForFile(request.filePath);
    } else if (request.action === 'lint') {
      const eslint = new ESLint(request.options);
      const results = await eslint.lintFiles(request.paths);
      response = { results, rulesMeta: eslint.getRulesMetaForResults(results) };
    } else {
      throw new Error(`Unknown action ${request.action}`);
    }
    process.stdout.write(JSON.stringify(response));
  } catch (e) {
    process.stderr.write(String((e && e.stack) || e));
    process.exit(1);
  }
});
"""

RuleMetaMap = Dict[str, Dict[str, Any]]
ProcessRuleViolation = Callable[[str, RuleViolation], None]


class EslintBridgeError(Exception):
    """The node bridge could not be started or reported a failure."""


class RuleDefaultStatus(str, Enum):
    ENABLED = "enabled"
    DISABLED = "disabled"


class StaticDependencies:
    """Everything the ESLint engines need from node and the filesystem.

    Tests substitute this with an in-memory fake.
    """

    def __init__(self, node_command: Optional[str] = None):
        self.node_command = node_command or os.environ.get(NODE_COMMAND_ENV) or "node"

    def _invoke(self, request: Dict[str, Any], cwd: Optional[str] = None) -> Any:
        logger.debug(f"Calling ESLint bridge: action={request.get('action')} cwd={cwd}")
        try:
            completed = subprocess.run(
                [self.node_command, "-e", _BRIDGE_SCRIPT],
                input=json.dumps(request).encode("utf-8"),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=cwd,
            )
        except OSError as e:
            raise EslintBridgeError(f"Could not start {self.node_command}: {e}") from e

        stdout = decode_output(completed.stdout)
        if completed.returncode != 0:
            raise EslintBridgeError(decode_output(completed.stderr).strip() or f"exit status {completed.returncode}")
        try:
            return json.loads(stdout)
        except json.JSONDecodeError as e:
            raise EslintBridgeError(f"Unreadable response from ESLint: {e}") from e

    def get_rules(self, plugins: Sequence[Tuple[str, str]] = ()) -> RuleMetaMap:
        """Metadata of every built-in rule plus the rules of each ``(package, prefix)`` plugin."""
        return self._invoke(
            {"action": "rules", "plugins": [{"package": p, "prefix": prefix} for p, prefix in plugins]}
        )

    def get_recommended_config(self, base_config: Dict[str, Any], file_path: str) -> Dict[str, Any]:
        """The effective configuration ESLint computes for a file under ``base_config``."""
        return self._invoke({"action": "recommended", "baseConfig": base_config, "filePath": file_path})

    def lint_files(self, options: Dict[str, Any], paths: Sequence[str]) -> Tuple[List[Dict[str, Any]], RuleMetaMap]:
        """Lint files; returns ESLint's results and the metadata of the rules they mention."""
        response = self._invoke({"action": "lint", "options": options, "paths": list(paths)}, cwd=options.get("cwd"))
        return response.get("results", []), response.get("rulesMeta", {})

    def resolve_target_path(self, target: str) -> str:
        return os.path.abspath(target)

    def get_current_working_directory(self) -> str:
        return os.getcwd()


def _is_off(recommendation: Any) -> bool:
    if isinstance(recommendation, (list, tuple)):
        return len(recommendation) > 0 and _is_off(recommendation[0])
    return recommendation in ("off", 0)


class EslintStrategyHelper:
    @staticmethod
    def filter_disallowed_rules(rules_by_name: RuleMetaMap) -> RuleMetaMap:
        """Keep every rule except the deprecated ones."""
        return {name: meta for name, meta in rules_by_name.items() if not meta.get("deprecated")}

    @staticmethod
    def get_default_status(recommended_config: Dict[str, Any], rule_name: str) -> Optional[RuleDefaultStatus]:
        """Three-valued default status of a rule under a recommended configuration.

        A rule absent from the configuration may inherit its status from
        elsewhere, so absence yields None rather than DISABLED.
        """
        recommendation = (recommended_config.get("rules") or {}).get(rule_name)
        if recommendation is None:
            return None
        return RuleDefaultStatus.DISABLED if _is_off(recommendation) else RuleDefaultStatus.ENABLED

    @staticmethod
    def get_default_config(recommended_config: Dict[str, Any], rule_name: str) -> Any:
        # An "off" rule's remaining settings carry no meaning.
        recommendation = (recommended_config.get("rules") or {}).get(rule_name)
        if recommendation is None or _is_off(recommendation):
            return None
        return recommendation


class EslintProcessHelper:
    def add_rule_results_from_report(
        self,
        engine_name: str,
        results: List[RuleResult],
        es_results: Sequence[Dict[str, Any]],
        rule_map: RuleMetaMap,
        process_rule_violation: ProcessRuleViolation,
    ) -> None:
        for es_result in es_results:
            messages = es_result.get("messages") or []
            if messages:
                results.append(
                    self.to_rule_result(
                        engine_name, es_result.get("filePath", ""), messages, rule_map, process_rule_violation
                    )
                )

    def to_rule_result(
        self,
        engine_name: str,
        file_name: str,
        messages: Sequence[Dict[str, Any]],
        rule_map: RuleMetaMap,
        process_rule_violation: ProcessRuleViolation,
    ) -> RuleResult:
        violations = []
        for message in messages:
            rule_id = message.get("ruleId") or ""
            rule_meta = rule_map.get(rule_id)
            violation = RuleViolation(
                line=message.get("line", 0),
                column=message.get("column", 0),
                severity=message.get("severity", 0),
                message=message.get("message", ""),
                rule_name=rule_id,
                category=rule_meta.get("type", "problem") if rule_meta else "problem",
                url=(rule_meta.get("docs") or {}).get("url", "") if rule_meta else "",
            )
            process_rule_violation(file_name, violation)
            violations.append(violation)
        return RuleResult(engine=engine_name, file_name=file_name, violations=violations)


__all__ = [
    "EslintBridgeError",
    "RuleDefaultStatus",
    "StaticDependencies",
    "EslintStrategyHelper",
    "EslintProcessHelper",
    "RuleMetaMap",
    "ProcessRuleViolation",
]
