"""ESLint variants: plain JavaScript, TypeScript and Lightning Web Components.

Each variant is registered as its own engine, in that order.
"""

from __future__ import annotations

import os
from functools import partial
from typing import Any, Dict, List, Sequence, Tuple

from Scanner.constants import ENGINE, LANGUAGE
from Scanner.core.errors import EngineExecutionError
from Scanner.core.logging import get_logger
from Scanner.rule.engine_base import EngineOptions
from Scanner.rule.engine_registry import EngineRegistry
from Scanner.rule.eslint.eslint_commons import EslintStrategyHelper, RuleMetaMap
from Scanner.rule.eslint.eslint_engine import EslintEngine, EslintStrategy
from Scanner.rule.models import RuleViolation

logger = get_logger(__name__)

TSCONFIG_OPTION = "tsconfig"
TSCONFIG_FILE = "tsconfig.json"

TS_PLUGIN = "@typescript-eslint/eslint-plugin"
TS_PLUGIN_PREFIX = "@typescript-eslint"
TS_PARSER = "@typescript-eslint/parser"

LWC_PLUGIN = "@lwc/eslint-plugin-lwc"
LWC_PLUGIN_PREFIX = "@lwc/lwc"
LWC_CONFIG = "@salesforce/eslint-config-lwc/base"
LWC_PARSER = "@babel/eslint-parser"


def _with_extension(paths: Sequence[str], extensions: Tuple[str, ...]) -> List[str]:
    return [p for p in paths if p.lower().endswith(extensions)]


class JavascriptEslintStrategy(EslintStrategy):
    EXTENSIONS = (".js", ".cjs", ".mjs")

    def get_engine(self) -> ENGINE:
        return ENGINE.ESLINT

    def get_languages(self) -> List[str]:
        return [LANGUAGE.JAVASCRIPT.value]

    def get_recommended_base_config(self) -> Dict[str, Any]:
        return {"extends": ["eslint:recommended"]}

    def get_recommended_sample_file(self) -> str:
        return "sample.js"

    def get_run_config(self, engine_options: EngineOptions, cwd: str) -> Dict[str, Any]:
        return {
            "useEslintrc": False,
            "baseConfig": {
                "parserOptions": {"ecmaVersion": "latest", "sourceType": "module"},
            },
        }

    def filter_unsupported_paths(self, paths: Sequence[str]) -> List[str]:
        return _with_extension(paths, self.EXTENSIONS)


class TypescriptEslintStrategy(EslintStrategy):
    """TypeScript through typescript-eslint.

    Type-aware rules need a tsconfig.json: the ``tsconfig`` engine option
    wins, otherwise one is looked up in the run's working directory.
    """

    EXTENSIONS = (".ts",)

    def get_engine(self) -> ENGINE:
        return ENGINE.ESLINT_TYPESCRIPT

    def get_languages(self) -> List[str]:
        return [LANGUAGE.TYPESCRIPT.value]

    def get_catalog_plugins(self) -> List[Tuple[str, str]]:
        return [(TS_PLUGIN, TS_PLUGIN_PREFIX)]

    def get_recommended_base_config(self) -> Dict[str, Any]:
        return {
            "parser": TS_PARSER,
            "plugins": [TS_PLUGIN_PREFIX],
            "extends": ["eslint:recommended", f"plugin:{TS_PLUGIN_PREFIX}/recommended"],
        }

    def get_recommended_sample_file(self) -> str:
        return "sample.ts"

    def filter_disallowed_rules(self, rules_by_name: RuleMetaMap) -> RuleMetaMap:
        """Drop deprecated rules and base rules replaced by a typescript-eslint extension."""
        allowed = EslintStrategyHelper.filter_disallowed_rules(rules_by_name)
        prefix = f"{TS_PLUGIN_PREFIX}/"
        extended = {name[len(prefix):] for name in allowed if name.startswith(prefix)}
        return {name: meta for name, meta in allowed.items() if name.startswith(prefix) or name not in extended}

    def find_tsconfig(self, engine_options: EngineOptions, cwd: str) -> str:
        if engine_options.get(TSCONFIG_OPTION):
            return os.path.abspath(engine_options[TSCONFIG_OPTION])
        candidate = os.path.join(cwd, TSCONFIG_FILE)
        if os.path.isfile(candidate):
            return candidate
        raise EngineExecutionError(
            self.get_engine().value,
            f"Unable to find {TSCONFIG_FILE} in {cwd}; pass one with --{TSCONFIG_OPTION}",
        )

    def get_run_config(self, engine_options: EngineOptions, cwd: str) -> Dict[str, Any]:
        tsconfig = self.find_tsconfig(engine_options, cwd)
        logger.debug(f"Using {tsconfig} for {self.get_engine().value}")
        return {
            "useEslintrc": False,
            "baseConfig": {
                "parser": TS_PARSER,
                "parserOptions": {"project": tsconfig, "sourceType": "module"},
                "plugins": [TS_PLUGIN_PREFIX],
            },
        }

    def filter_unsupported_paths(self, paths: Sequence[str]) -> List[str]:
        return _with_extension(paths, self.EXTENSIONS)

    def process_rule_violation(self, file_name: str, violation: RuleViolation) -> None:
        if "parserOptions.project" in violation.message:
            violation.message += (
                f" Make sure {file_name} is included by the tsconfig.json used for this run"
                f" (--{TSCONFIG_OPTION})."
            )


class LwcEslintStrategy(EslintStrategy):
    EXTENSIONS = (".js",)

    def get_engine(self) -> ENGINE:
        return ENGINE.ESLINT_LWC

    def get_languages(self) -> List[str]:
        return [LANGUAGE.JAVASCRIPT.value]

    def get_catalog_plugins(self) -> List[Tuple[str, str]]:
        return [(LWC_PLUGIN, LWC_PLUGIN_PREFIX)]

    def get_recommended_base_config(self) -> Dict[str, Any]:
        return {"extends": [LWC_CONFIG]}

    def get_recommended_sample_file(self) -> str:
        return "sample.js"

    def get_run_config(self, engine_options: EngineOptions, cwd: str) -> Dict[str, Any]:
        return {
            "useEslintrc": False,
            "baseConfig": {
                "parser": LWC_PARSER,
                "parserOptions": {
                    "requireConfigFile": False,
                    "babelOptions": {
                        "parserOpts": {
                            "plugins": ["classProperties", ["decorators", {"decoratorsBeforeExport": False}]],
                        },
                    },
                },
                "plugins": [LWC_PLUGIN_PREFIX],
            },
        }

    def filter_unsupported_paths(self, paths: Sequence[str]) -> List[str]:
        return _with_extension(paths, self.EXTENSIONS)


EngineRegistry.register(partial(EslintEngine, JavascriptEslintStrategy()))
EngineRegistry.register(partial(EslintEngine, TypescriptEslintStrategy()))
EngineRegistry.register(partial(EslintEngine, LwcEslintStrategy()))


__all__ = [
    "JavascriptEslintStrategy",
    "TypescriptEslintStrategy",
    "LwcEslintStrategy",
]
