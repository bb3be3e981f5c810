"""Command-line entry point for rule-scanner.

    rule-scanner rule add -l apex -p ~/rules/MyRules.jar
    rule-scanner rule remove -l apex -p ~/rules
    rule-scanner rule list -e pmd -c "Best Practices"
    rule-scanner run -t src --env '{"jest": false}'
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Dict, List, Optional, Sequence

from dotenv import load_dotenv

from Scanner.constants import ALLOWED_ENGINE_FILTERS
from Scanner.core.errors import EngineExecutionError, ScannerError
from Scanner.core.logging import get_logger
from Scanner.rule import CustomRulePathManager, RuleManager, build_rule_filters, get_custom_path_manager
from Scanner.rule.models import Rule, RuleResult

load_dotenv()

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_VIOLATIONS = 1
EXIT_ERROR = 2


def _comma_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--category", type=_comma_list, default=[], help="Categories to select (comma-separated).")
    parser.add_argument("-r", "--ruleset", type=_comma_list, default=[], help="Rulesets to select (comma-separated).")
    parser.add_argument("-l", "--language", type=_comma_list, default=[], help="Languages to select (comma-separated).")
    parser.add_argument("-n", "--rulename", default=None, help="Select a single rule by name.")
    parser.add_argument(
        "-e",
        "--engine",
        type=_comma_list,
        default=[],
        help=f"Engines to select (comma-separated): {', '.join(ALLOWED_ENGINE_FILTERS)}.",
    )
    parser.add_argument("--json", action="store_true", help="Print JSON instead of text.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rule-scanner",
        description="Run several static-analysis engines through one rule catalog.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    rule = commands.add_parser("rule", help="Manage and inspect rules.")
    rule_commands = rule.add_subparsers(dest="rule_command", required=True)

    for name, help_text in (
        ("add", "Register custom rule paths for a language."),
        ("remove", "Unregister custom rule paths for a language."),
    ):
        sub = rule_commands.add_parser(name, help=help_text)
        sub.add_argument("-l", "--language", required=True, help="Language the custom rules evaluate.")
        sub.add_argument(
            "-p",
            "--path",
            dest="paths",
            type=_comma_list,
            action="extend",
            required=True,
            help="One or more rule paths (comma-separated, repeatable).",
        )

    list_parser = rule_commands.add_parser("list", help="List catalog rules.")
    _add_filter_arguments(list_parser)

    run = commands.add_parser("run", help="Run the selected rules against targets.")
    run.add_argument(
        "-t",
        "--target",
        dest="targets",
        type=_comma_list,
        action="extend",
        required=True,
        help="Files, directories or glob patterns to scan (comma-separated, repeatable).",
    )
    _add_filter_arguments(run)
    run.add_argument("--env", default=None, help="JSON object of ESLint environments, e.g. '{\"jest\": false}'.")
    run.add_argument("--tsconfig", default=None, help="tsconfig.json used by the TypeScript engine.")

    return parser


def resolve_paths(paths: Sequence[str]) -> List[str]:
    """Expand ``~`` and make each path absolute."""
    return [os.path.abspath(os.path.expanduser(p)) for p in paths]


class UsageError(ScannerError):
    pass


def _validate_language_and_paths(language: str, paths: Sequence[str]) -> None:
    if not language or not language.strip():
        raise UsageError("Language cannot be empty")
    if not paths:
        raise UsageError("Path cannot be empty")


def _validate_engines(engines: Sequence[str]) -> None:
    unknown = [e for e in engines if e not in ALLOWED_ENGINE_FILTERS]
    if unknown:
        raise UsageError(
            f"Unknown engine(s) {', '.join(unknown)}; expected one of {', '.join(ALLOWED_ENGINE_FILTERS)}"
        )


def cmd_rule_add(args: argparse.Namespace, manager: CustomRulePathManager) -> int:
    _validate_language_and_paths(args.language, args.paths)
    paths = resolve_paths(args.paths)
    logger.debug(f"Adding rule paths for {args.language}: {paths}")
    added = manager.add_paths_for_language(args.language, paths)
    print(f"Successfully added rules for {args.language}.")
    print(f"{len(added)} Path(s) added: {json.dumps(added)}")
    return EXIT_OK


def cmd_rule_remove(args: argparse.Namespace, manager: CustomRulePathManager) -> int:
    _validate_language_and_paths(args.language, args.paths)
    paths = resolve_paths(args.paths)
    removed = manager.remove_paths_for_language(args.language, paths)
    print(f"Successfully removed rules for {args.language}.")
    print(f"{len(removed)} Path(s) removed: {json.dumps(removed)}")
    return EXIT_OK


def _filters_from_args(args: argparse.Namespace):
    _validate_engines(args.engine)
    return build_rule_filters(
        categories=args.category,
        rulesets=args.ruleset,
        languages=args.language,
        rulename=args.rulename,
        engines=args.engine,
    )


def format_rules(rules: Sequence[Rule]) -> str:
    if not rules:
        return "No rules match the given criteria."
    lines = []
    for rule in rules:
        status = {True: "enabled", False: "disabled", None: "-"}[rule.default_enabled]
        lines.append(
            f"{rule.name}  [{rule.engine}]  languages={','.join(sorted(rule.languages))}  "
            f"categories={','.join(sorted(rule.categories))}  "
            f"rulesets={','.join(sorted(rule.rulesets))}  default={status}"
        )
    return "\n".join(lines)


def format_results(results: Sequence[RuleResult]) -> str:
    if not results:
        return "No rule violations found."
    lines = []
    for result in results:
        lines.append(f"{result.file_name} ({result.engine})")
        for v in result.violations:
            severity = v.normalized_severity if v.normalized_severity is not None else v.severity
            lines.append(f"  {v.line}:{v.column}  sev{severity}  {v.rule_name}  {v.message}")
    return "\n".join(lines)


def cmd_rule_list(args: argparse.Namespace, rule_manager: RuleManager) -> int:
    rules = rule_manager.get_rules_matching_filters(_filters_from_args(args))
    if args.json:
        print(json.dumps([rule.to_dict() for rule in rules], indent=2))
    else:
        print(format_rules(rules))
    return EXIT_OK


def _engine_options(args: argparse.Namespace) -> Dict[str, str]:
    options: Dict[str, str] = {}
    if args.env:
        try:
            env = json.loads(args.env)
        except json.JSONDecodeError as e:
            raise UsageError(f"--env must be a JSON object: {e}") from e
        if not isinstance(env, dict):
            raise UsageError("--env must be a JSON object")
        options["env"] = args.env
    if args.tsconfig:
        options["tsconfig"] = os.path.abspath(os.path.expanduser(args.tsconfig))
    return options


def cmd_run(args: argparse.Namespace, rule_manager: RuleManager) -> int:
    filters = _filters_from_args(args)
    options = _engine_options(args)
    try:
        results = asyncio.run(rule_manager.run_rules_matching_criteria(filters, args.targets, options))
    except EngineExecutionError as e:
        if e.partial_results:
            print(format_results(e.partial_results))
        raise

    if args.json:
        print(json.dumps([result.to_dict() for result in results], indent=2))
    else:
        print(format_results(results))
    return EXIT_VIOLATIONS if any(r.violations for r in results) else EXIT_OK


def main(
    argv: Optional[List[str]] = None,
    path_manager: Optional[CustomRulePathManager] = None,
    rule_manager: Optional[RuleManager] = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "rule":
            if args.rule_command == "add":
                return cmd_rule_add(args, path_manager or get_custom_path_manager())
            if args.rule_command == "remove":
                return cmd_rule_remove(args, path_manager or get_custom_path_manager())
            return cmd_rule_list(args, rule_manager or RuleManager())
        return cmd_run(args, rule_manager or RuleManager())
    except ScannerError as e:
        print(str(e), file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
