"""Unit tests for target resolution against engine target patterns."""

import os
import tempfile
import unittest

from Scanner.rule.target_resolver import matches_patterns, resolve_targets

JS_PATTERNS = ["**/*.js", "!**/node_modules/**"]


class TestMatchesPatterns(unittest.TestCase):
    """Positive and negated glob patterns"""

    def test_positive_pattern(self):
        """A file matches when any positive pattern matches"""
        self.assertTrue(matches_patterns("src/app.js", JS_PATTERNS))
        self.assertTrue(matches_patterns("app.js", JS_PATTERNS))
        self.assertFalse(matches_patterns("src/app.ts", JS_PATTERNS))

    def test_negated_pattern(self):
        """A negated pattern removes otherwise matching files"""
        self.assertFalse(matches_patterns("node_modules/lib/index.js", JS_PATTERNS))
        self.assertFalse(matches_patterns("src/node_modules/lib/index.js", JS_PATTERNS))

    def test_no_positive_patterns(self):
        """Without positive patterns nothing matches"""
        self.assertFalse(matches_patterns("src/app.js", ["!**/node_modules/**"]))
        self.assertFalse(matches_patterns("src/app.js", []))


class TestResolveTargets(unittest.TestCase):
    """Directories, files and globs become RuleTargets"""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = self._tmp.name
        for rel in ("src/a.js", "src/b.ts", "src/deep/c.js", "node_modules/lib/d.js", "README.md"):
            path = os.path.join(self.root, rel)
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                f.write("//")

    def tearDown(self):
        self._tmp.cleanup()

    def _abs(self, rel):
        return os.path.abspath(os.path.join(self.root, rel))

    def test_directory_target(self):
        """Directories are walked recursively and filtered"""
        (target,) = resolve_targets([self.root], JS_PATTERNS)
        self.assertTrue(target.is_directory)
        self.assertEqual(target.target, self.root)
        self.assertEqual(target.paths, [self._abs("src/a.js"), self._abs("src/deep/c.js")])

    def test_file_target(self):
        """A file target is kept when it matches"""
        (target,) = resolve_targets([self._abs("src/a.js")], JS_PATTERNS)
        self.assertFalse(target.is_directory)
        self.assertEqual(target.paths, [self._abs("src/a.js")])

    def test_unmatched_targets_are_omitted(self):
        """Targets without matching files produce no RuleTarget"""
        self.assertEqual(resolve_targets([self._abs("src/b.ts"), self._abs("README.md")], JS_PATTERNS), [])

    def test_missing_target_is_skipped(self):
        """A missing target is skipped with a warning"""
        with self.assertLogs("Scanner.rule.target_resolver", level="WARNING"):
            resolved = resolve_targets([self._abs("nope"), self._abs("src/a.js")], JS_PATTERNS)
        self.assertEqual([t.paths for t in resolved], [[self._abs("src/a.js")]])

    def test_glob_target(self):
        """Glob targets expand recursively"""
        (target,) = resolve_targets([os.path.join(self.root, "src", "**", "*.js")], JS_PATTERNS)
        self.assertEqual(target.paths, [self._abs("src/a.js"), self._abs("src/deep/c.js")])

    def test_target_order_is_kept(self):
        """Targets come back in the order given"""
        resolved = resolve_targets([self._abs("src/deep/c.js"), self._abs("src/a.js")], JS_PATTERNS)
        self.assertEqual([t.paths[0] for t in resolved], [self._abs("src/deep/c.js"), self._abs("src/a.js")])


if __name__ == "__main__":
    unittest.main()
