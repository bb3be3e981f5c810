"""Unit tests for rule path expansion."""

import os
import tempfile
import unittest
from unittest import mock

from Scanner.core.errors import InvalidPathError, UnreadablePathError
from Scanner.rule.path_expander import expand_paths, is_rule_archive


class TestPathExpander(unittest.TestCase):
    """Expansion of files and directories into rule archives"""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def _touch(self, *parts):
        path = os.path.join(self.root, *parts)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write("x")
        return path

    def test_is_rule_archive(self):
        """Only .jar files are rule archives"""
        self.assertTrue(is_rule_archive("/r/MyRules.jar"))
        self.assertFalse(is_rule_archive("/r/notes.txt"))
        self.assertFalse(is_rule_archive("/r/rules.xml"))

    def test_unsupported_file_is_dropped(self):
        """A file with an unsupported extension is dropped without error"""
        jar = self._touch("MyRules.jar")
        txt = self._touch("notes.txt")
        self.assertEqual(expand_paths([jar, txt]), [os.path.abspath(jar)])

    def test_directory_is_listed_non_recursively(self):
        """Directories contribute only their direct .jar children, sorted"""
        b = self._touch("rules", "b.jar")
        a = self._touch("rules", "a.jar")
        self._touch("rules", "readme.txt")
        self._touch("rules", "nested", "c.jar")

        expanded = expand_paths([os.path.join(self.root, "rules")])

        self.assertEqual(expanded, [os.path.abspath(a), os.path.abspath(b)])

    def test_results_are_absolute(self):
        """Relative patterns resolve to absolute paths"""
        self._touch("Rel.jar")
        cwd = os.getcwd()
        os.chdir(self.root)
        try:
            expanded = expand_paths(["Rel.jar"])
        finally:
            os.chdir(cwd)
        self.assertEqual(len(expanded), 1)
        self.assertTrue(os.path.isabs(expanded[0]))

    def test_duplicates_are_kept(self):
        """The same archive given twice appears twice"""
        jar = self._touch("MyRules.jar")
        self.assertEqual(len(expand_paths([jar, jar])), 2)

    def test_missing_path_raises(self):
        """A path that does not exist is an InvalidPathError naming it"""
        missing = os.path.join(self.root, "missing.jar")
        with self.assertRaises(InvalidPathError) as ctx:
            expand_paths([missing])
        self.assertIn(missing, str(ctx.exception))
        self.assertEqual(ctx.exception.path, missing)

    def test_unlistable_directory_raises(self):
        """A directory that cannot be listed is an UnreadablePathError naming it"""
        with mock.patch("Scanner.rule.path_expander.os.listdir", side_effect=PermissionError("denied")):
            with self.assertRaises(UnreadablePathError) as ctx:
                expand_paths([self.root])
        self.assertIn(self.root, str(ctx.exception))
        self.assertIn("denied", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
