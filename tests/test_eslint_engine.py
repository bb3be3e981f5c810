"""Unit tests for the ESLint engine family, with node replaced by a fake."""

import json
import os
import tempfile
import unittest

from Scanner.constants import Severity
from Scanner.core.config import ScannerConfig
from Scanner.core.errors import EngineExecutionError
from Scanner.rule.eslint.eslint_commons import EslintBridgeError, EslintStrategyHelper, RuleDefaultStatus
from Scanner.rule.eslint.eslint_engine import DEFAULT_ENV_VARS, EslintEngine
from Scanner.rule.eslint.strategies import (
    JavascriptEslintStrategy,
    LwcEslintStrategy,
    TypescriptEslintStrategy,
)
from Scanner.rule.models import RuleTarget, RuleViolation

RULES = {
    "no-unused-vars": {
        "type": "problem",
        "docs": {"category": "Variables", "url": "https://eslint.org/docs/rules/no-unused-vars", "description": "unused"},
    },
    "no-undef": {
        "type": "problem",
        "docs": {"category": "Variables", "url": "https://eslint.org/docs/rules/no-undef"},
    },
    "semi": {
        "type": "layout",
        "docs": {"url": "https://eslint.org/docs/rules/semi"},
    },
    "no-extra-semi": {
        "type": "suggestion",
        "docs": {"category": "Possible Errors", "url": "https://eslint.org/docs/rules/no-extra-semi"},
    },
    "no-old": {"deprecated": True, "docs": {"category": "Legacy"}},
    "strange": {},
}

RECOMMENDED = {
    "rules": {
        "no-unused-vars": ["error", {"vars": "all"}],
        "no-undef": ["off"],
        "no-extra-semi": "error",
    }
}


class FakeDependencies:
    def __init__(self, rules=None, recommended=None, lint_results=None, cwd="/work"):
        self.rules = RULES if rules is None else rules
        self.recommended = RECOMMENDED if recommended is None else recommended
        self.lint_results = lint_results or []
        self.cwd = cwd
        self.lint_calls = []
        self.rule_requests = []

    def get_rules(self, plugins=()):
        self.rule_requests.append(list(plugins))
        return dict(self.rules)

    def get_recommended_config(self, base_config, file_path):
        return self.recommended

    def lint_files(self, options, paths):
        self.lint_calls.append((json.loads(json.dumps(options)), list(paths)))
        rule_map = {name: meta for name, meta in self.rules.items()}
        return self.lint_results, rule_map

    def resolve_target_path(self, target):
        return "/resolved/" + target

    def get_current_working_directory(self):
        return self.cwd


def make_engine(strategy=None, dependencies=None):
    return EslintEngine(
        strategy or JavascriptEslintStrategy(),
        config=ScannerConfig.model_validate({"engines": [{"name": "eslint"}]}),
        dependencies=dependencies or FakeDependencies(),
    )


class TestEslintStrategyHelper(unittest.TestCase):
    """Three-valued default status and default config"""

    def test_default_status(self):
        """Recommended rules are enabled, off rules disabled, absent rules unknown"""
        self.assertEqual(EslintStrategyHelper.get_default_status(RECOMMENDED, "no-unused-vars"), RuleDefaultStatus.ENABLED)
        self.assertEqual(EslintStrategyHelper.get_default_status(RECOMMENDED, "no-undef"), RuleDefaultStatus.DISABLED)
        self.assertIsNone(EslintStrategyHelper.get_default_status(RECOMMENDED, "semi"))

    def test_numeric_off(self):
        """Severity 0 counts as off"""
        config = {"rules": {"a": 0, "b": [0, {"x": 1}], "c": 2}}
        self.assertEqual(EslintStrategyHelper.get_default_status(config, "a"), RuleDefaultStatus.DISABLED)
        self.assertEqual(EslintStrategyHelper.get_default_status(config, "b"), RuleDefaultStatus.DISABLED)
        self.assertEqual(EslintStrategyHelper.get_default_status(config, "c"), RuleDefaultStatus.ENABLED)

    def test_default_config(self):
        """Off and absent rules have no default config"""
        self.assertEqual(
            EslintStrategyHelper.get_default_config(RECOMMENDED, "no-unused-vars"), ["error", {"vars": "all"}]
        )
        self.assertIsNone(EslintStrategyHelper.get_default_config(RECOMMENDED, "no-undef"))
        self.assertIsNone(EslintStrategyHelper.get_default_config(RECOMMENDED, "semi"))

    def test_deprecated_rules_are_dropped(self):
        """Deprecated rules never reach the catalog"""
        self.assertNotIn("no-old", EslintStrategyHelper.filter_disallowed_rules(RULES))


class TestEslintCatalog(unittest.TestCase):
    """Catalog built from rule metadata"""

    def setUp(self):
        self.engine = make_engine()
        self.catalog = self.engine.get_catalog()
        self.rules = {rule.name: rule for rule in self.catalog.rules}

    def test_rules(self):
        """Every allowed rule is cataloged with the variant's languages"""
        self.assertEqual(set(self.rules), {"no-unused-vars", "no-undef", "semi", "no-extra-semi", "strange"})
        self.assertEqual(self.rules["semi"].languages, frozenset(["javascript"]))
        self.assertEqual(self.rules["no-unused-vars"].engine, "eslint")

    def test_default_enabled_is_three_valued(self):
        """Default status keeps the unknown state"""
        self.assertIs(self.rules["no-unused-vars"].default_enabled, True)
        self.assertIs(self.rules["no-undef"].default_enabled, False)
        self.assertIsNone(self.rules["semi"].default_enabled)
        self.assertIsNone(self.rules["no-undef"].default_config)

    def test_category_fallbacks(self):
        """Category falls back to the rule type, then to Uncategorized"""
        self.assertEqual(self.rules["no-unused-vars"].categories, frozenset(["Variables"]))
        self.assertEqual(self.rules["semi"].categories, frozenset(["layout"]))
        self.assertEqual(self.rules["strange"].categories, frozenset(["Uncategorized"]))
        self.assertEqual(self.rules["semi"].rulesets, self.rules["semi"].categories)

    def test_group_urls_follow_rule_order(self):
        """Group paths accumulate documentation URLs in processing order"""
        groups = {g.name: g for g in self.catalog.categories}
        self.assertEqual(
            groups["Variables"].paths,
            ["https://eslint.org/docs/rules/no-unused-vars", "https://eslint.org/docs/rules/no-undef"],
        )
        self.assertEqual([g.name for g in self.catalog.rulesets], [g.name for g in self.catalog.categories])

    def test_catalog_is_cached(self):
        """The bridge is asked for rules only once"""
        self.engine.get_catalog()
        self.assertEqual(len(self.engine.dependencies.rule_requests), 1)

    def test_bridge_failure_is_engine_error(self):
        """Bridge failures surface as EngineExecutionError"""

        class Broken(FakeDependencies):
            def get_rules(self, plugins=()):
                raise EslintBridgeError("Cannot find module 'eslint'")

        engine = make_engine(dependencies=Broken())
        with self.assertRaises(EngineExecutionError) as ctx:
            engine.get_catalog()
        self.assertEqual(ctx.exception.engine, "eslint")
        self.assertIn("Cannot find module", str(ctx.exception))

    def test_typescript_drops_shadowed_rules(self):
        """Base rules extended by typescript-eslint are not cataloged"""
        rules = {
            "no-unused-vars": {"type": "problem", "docs": {}},
            "semi": {"type": "layout", "docs": {}},
            "@typescript-eslint/no-unused-vars": {"type": "problem", "docs": {}},
        }
        engine = make_engine(TypescriptEslintStrategy(), FakeDependencies(rules=rules, recommended={"rules": {}}))
        names = {rule.name for rule in engine.get_catalog().rules}
        self.assertEqual(names, {"semi", "@typescript-eslint/no-unused-vars"})
        self.assertEqual(engine.dependencies.rule_requests, [[("@typescript-eslint/eslint-plugin", "@typescript-eslint")]])


class TestEslintRun(unittest.TestCase):
    """Per-target run configuration and result conversion"""

    def setUp(self):
        self.lint_results = [
            {
                "filePath": "/work/a.js",
                "messages": [
                    {"ruleId": "no-unused-vars", "severity": 2, "message": "x is unused", "line": 3, "column": 5},
                    {"ruleId": None, "severity": 2, "message": "Parsing error", "line": 1, "column": 1},
                ],
            },
            {"filePath": "/work/b.js", "messages": []},
        ]
        self.deps = FakeDependencies(lint_results=self.lint_results)
        self.engine = make_engine(dependencies=self.deps)
        self.rules = self.engine.get_catalog().rules

    def test_configured_rules(self):
        """Rules run at their default config, otherwise at error"""
        configured = EslintEngine.configure_rules(self.rules)
        self.assertEqual(configured["no-unused-vars"], ["error", {"vars": "all"}])
        self.assertEqual(configured["semi"], "error")
        self.assertEqual(configured["no-undef"], "error")

    def test_env_precedence(self):
        """User env beats the run config's env, which beats the defaults"""
        target = RuleTarget(target="src", paths=["/work/src/a.js"], is_directory=True)

        class EnvStrategy(JavascriptEslintStrategy):
            def get_run_config(self, engine_options, cwd):
                config = super().get_run_config(engine_options, cwd)
                config["baseConfig"]["env"] = {"jest": False, "worker": True}
                return config

        engine = make_engine(EnvStrategy(), self.deps)
        config = engine.build_target_config(target, {"semi": "error"}, {"env": json.dumps({"worker": False, "amd": True})})

        env = config["baseConfig"]["env"]
        self.assertIs(env["jest"], False)
        self.assertIs(env["worker"], False)
        self.assertIs(env["amd"], True)
        self.assertIs(env["node"], DEFAULT_ENV_VARS["node"])
        self.assertEqual(config["cwd"], "/resolved/src")
        self.assertEqual(config["overrideConfig"]["rules"], {"semi": "error"})

    def test_run_config_is_not_mutated(self):
        """Each target gets its own copy of the strategy's run config"""

        class SharedStrategy(JavascriptEslintStrategy):
            shared = {"baseConfig": {"env": {"jest": False}}}

            def get_run_config(self, engine_options, cwd):
                return self.shared

        engine = make_engine(SharedStrategy(), self.deps)
        engine.build_target_config(RuleTarget(target="a.js", paths=["a.js"]), {}, {"env": '{"mocha": false}'})
        self.assertEqual(SharedStrategy.shared, {"baseConfig": {"env": {"jest": False}}})

    def test_file_target_uses_working_directory(self):
        """File targets run from the current working directory"""
        config = self.engine.build_target_config(RuleTarget(target="a.js", paths=["/work/a.js"]), {}, {})
        self.assertEqual(config["cwd"], "/work")

    def test_run_converts_results(self):
        """Messages become violations; files without messages are skipped"""
        targets = [RuleTarget(target="src", paths=["/work/a.js", "/work/b.js", "/work/c.ts"], is_directory=True)]

        results = self.engine.run([], self.rules, targets, {})

        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].file_name, "/work/a.js")
        first, second = results[0].violations
        self.assertEqual(first.rule_name, "no-unused-vars")
        self.assertEqual(first.category, "problem")
        self.assertEqual(first.url, "https://eslint.org/docs/rules/no-unused-vars")
        self.assertEqual((first.line, first.column, first.severity), (3, 5, 2))
        self.assertEqual(second.rule_name, "")
        self.assertEqual(second.category, "problem")
        ((_, paths),) = self.deps.lint_calls
        self.assertEqual(paths, ["/work/a.js", "/work/b.js"])

    def test_targets_without_supported_files_are_skipped(self):
        """A target left with no files is not linted"""
        targets = [RuleTarget(target="x", paths=["/work/x.ts"]), RuleTarget(target="y", paths=["/work/y.js"])]
        self.engine.run([], self.rules, targets, {})
        self.assertEqual([paths for _, paths in self.deps.lint_calls], [["/work/y.js"]])

    def test_no_rules_means_no_lint(self):
        """Without rules the engine does nothing"""
        self.assertEqual(self.engine.run([], [], [RuleTarget(target="a.js", paths=["/work/a.js"])], {}), [])
        self.assertEqual(self.deps.lint_calls, [])

    def test_invalid_env_option(self):
        """A malformed env option is an engine error"""
        with self.assertRaises(EngineExecutionError):
            self.engine.run([], self.rules, [RuleTarget(target="a.js", paths=["/work/a.js"])], {"env": "{bad"})

    def test_normalized_severity(self):
        """ESLint severity 2 is high, anything else moderate"""
        self.assertEqual(self.engine.get_normalized_severity(2), Severity.HIGH)
        self.assertEqual(self.engine.get_normalized_severity(1), Severity.MODERATE)
        self.assertEqual(self.engine.get_normalized_severity(7), Severity.MODERATE)

    def test_no_custom_rule_paths(self):
        """ESLint engines never claim custom rule paths"""
        self.assertFalse(self.engine.match_path("/r/rules.jar"))
        self.assertEqual(self.engine.custom_config_key, "EslintConfig")


class TestEslintStrategies(unittest.TestCase):
    """Variant-specific behavior"""

    def test_engine_names(self):
        """Each strategy backs its own engine"""
        self.assertEqual(make_engine(JavascriptEslintStrategy()).get_name(), "eslint")
        self.assertEqual(make_engine(TypescriptEslintStrategy()).get_name(), "eslint-typescript")
        self.assertEqual(make_engine(LwcEslintStrategy()).get_name(), "eslint-lwc")

    def test_supported_paths(self):
        """Variants keep only their own file types"""
        paths = ["a.js", "b.ts", "c.JS", "d.html"]
        self.assertEqual(JavascriptEslintStrategy().filter_unsupported_paths(paths), ["a.js", "c.JS"])
        self.assertEqual(TypescriptEslintStrategy().filter_unsupported_paths(paths), ["b.ts"])

    def test_tsconfig_lookup(self):
        """The tsconfig option wins; otherwise tsconfig.json in cwd is used"""
        strategy = TypescriptEslintStrategy()
        with tempfile.TemporaryDirectory() as cwd:
            with self.assertRaises(EngineExecutionError):
                strategy.get_run_config({}, cwd)

            tsconfig = os.path.join(cwd, "tsconfig.json")
            with open(tsconfig, "w", encoding="utf-8") as f:
                f.write("{}")
            config = strategy.get_run_config({}, cwd)
            self.assertEqual(config["baseConfig"]["parserOptions"]["project"], tsconfig)

            explicit = os.path.join(cwd, "other.json")
            config = strategy.get_run_config({"tsconfig": explicit}, cwd)
            self.assertEqual(config["baseConfig"]["parserOptions"]["project"], explicit)

    def test_typescript_parser_hint(self):
        """Project parsing errors get a hint about the tsconfig"""
        violation = RuleViolation(1, 1, 2, 'Parsing error: "parserOptions.project" has been set', "", "problem")
        TypescriptEslintStrategy().process_rule_violation("/work/a.ts", violation)
        self.assertIn("--tsconfig", violation.message)


if __name__ == "__main__":
    unittest.main()
