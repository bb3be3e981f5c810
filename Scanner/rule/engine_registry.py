"""Engine registry and custom rule path attribution.

Engines register at import time through ``EngineRegistry.register``. The
registration order is significant: it is the order engines run in and the
order in which they are asked to claim custom rule paths.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence, TYPE_CHECKING

from Scanner.core.logging import get_logger

if TYPE_CHECKING:
    from Scanner.rule.engine_base import RuleEngine

logger = get_logger(__name__)

EngineFactory = Callable[[], "RuleEngine"]


class EngineRegistry:
    """Ordered registry of engine factories and their singleton instances.

    A factory is any zero-argument callable returning a ``RuleEngine``;
    engine classes qualify directly and can be registered as a decorator.

    Example:
        @EngineRegistry.register
        class PmdEngine(RuleEngine):
            ...
    """

    _factories: List[EngineFactory] = []
    _instances: Optional[List["RuleEngine"]] = None

    @classmethod
    def register(cls, factory: EngineFactory) -> EngineFactory:
        if factory not in cls._factories:
            cls._factories.append(factory)
            cls._instances = None
            logger.debug(f"Registered engine factory {getattr(factory, '__name__', factory)!r}")
        return factory

    @classmethod
    def get_engines(cls) -> List["RuleEngine"]:
        """All engines in registration order, instantiated once per process."""
        if cls._instances is None:
            cls._instances = [factory() for factory in cls._factories]
        return list(cls._instances)

    @classmethod
    def get_enabled_engines(cls) -> List["RuleEngine"]:
        return [engine for engine in cls.get_engines() if engine.is_enabled()]

    @classmethod
    def get_engine(cls, name: str) -> Optional["RuleEngine"]:
        for engine in cls.get_engines():
            if engine.get_name() == name:
                return engine
        return None

    @classmethod
    def get_engine_names(cls) -> List[str]:
        return [engine.get_name() for engine in cls.get_engines()]

    @classmethod
    def clear(cls) -> None:
        """Forget all factories and instances. Useful for testing."""
        cls._factories.clear()
        cls._instances = None


def determine_engine_for_path(path: str, engines: Sequence["RuleEngine"]) -> Optional["RuleEngine"]:
    """Return the first engine, in order, that claims ``path``; None if none do."""
    for engine in engines:
        if engine.match_path(path):
            return engine
    return None


__all__ = ["EngineRegistry", "EngineFactory", "determine_engine_for_path"]
