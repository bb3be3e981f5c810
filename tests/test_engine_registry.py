"""Unit tests for engine registration and path attribution."""

import unittest

import Scanner.rule  # noqa: F401  registers the engines
from Scanner.rule.engine_registry import EngineRegistry, determine_engine_for_path


class IsolatedRegistry(EngineRegistry):
    _factories = []
    _instances = None


class CountingEngine:
    created = 0

    def __init__(self):
        CountingEngine.created += 1

    def get_name(self):
        return "counting"

    def match_path(self, path):
        return False


class TestEngineRegistry(unittest.TestCase):
    """Registration order and singleton instances"""

    def test_builtin_engine_order(self):
        """Engines are registered in a fixed order"""
        self.assertEqual(
            EngineRegistry.get_engine_names(),
            ["pmd", "eslint", "eslint-typescript", "eslint-lwc", "retire-js", "cpd"],
        )

    def test_instances_are_reused(self):
        """get_engines returns the same instances on every call"""
        first = EngineRegistry.get_engines()
        second = EngineRegistry.get_engines()
        for a, b in zip(first, second):
            self.assertIs(a, b)

    def test_get_engine_by_name(self):
        """Engines can be looked up by name"""
        self.assertEqual(EngineRegistry.get_engine("cpd").get_name(), "cpd")
        self.assertIsNone(EngineRegistry.get_engine("unknown"))

    def test_register_is_idempotent(self):
        """Registering a factory twice keeps one entry and one instance"""
        CountingEngine.created = 0
        IsolatedRegistry.register(CountingEngine)
        IsolatedRegistry.register(CountingEngine)
        try:
            self.assertEqual(len(IsolatedRegistry.get_engines()), 1)
            IsolatedRegistry.get_engines()
            self.assertEqual(CountingEngine.created, 1)
        finally:
            IsolatedRegistry.clear()


class TestEngineAttribution(unittest.TestCase):
    """First matching engine owns a path"""

    def setUp(self):
        self.engines = EngineRegistry.get_engines()

    def test_archive_belongs_to_pmd(self):
        """Rule archives are attributed to pmd"""
        self.assertEqual(determine_engine_for_path("/r/MyRules.jar", self.engines).get_name(), "pmd")

    def test_unclaimed_path(self):
        """A path no engine claims attributes to None"""
        self.assertIsNone(determine_engine_for_path("/r/rules.js", self.engines))
        self.assertIsNone(determine_engine_for_path("/r/category/apex/my.xml", self.engines))
        self.assertIsNone(determine_engine_for_path("/r/notes.txt", []))

    def test_attribution_is_deterministic(self):
        """The same path always lands on the same engine"""
        owners = {determine_engine_for_path("/r/MyRules.jar", self.engines).get_name() for _ in range(10)}
        self.assertEqual(owners, {"pmd"})


if __name__ == "__main__":
    unittest.main()
