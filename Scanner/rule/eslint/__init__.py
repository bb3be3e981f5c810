"""ESLint engine family."""

from Scanner.rule.eslint.eslint_commons import StaticDependencies, EslintStrategyHelper, RuleDefaultStatus
from Scanner.rule.eslint.eslint_engine import DEFAULT_ENV_VARS, EslintEngine, EslintStrategy
from Scanner.rule.eslint.strategies import (
    JavascriptEslintStrategy,
    LwcEslintStrategy,
    TypescriptEslintStrategy,
)

__all__ = [
    "StaticDependencies",
    "EslintStrategyHelper",
    "RuleDefaultStatus",
    "DEFAULT_ENV_VARS",
    "EslintEngine",
    "EslintStrategy",
    "JavascriptEslintStrategy",
    "TypescriptEslintStrategy",
    "LwcEslintStrategy",
]
