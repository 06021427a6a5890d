"""
Package-level tests: the public API imports and is complete.

Conventions
- Test method names follow CamelCase per project convention.
"""
import importlib
import unittest
from unittest import TestCase

import cmdtree


class PackageTest(TestCase):

    def testEverySubmoduleImports(self):
        for name in ("utils", "faults", "flags", "nodes", "tree", "parser", "context", "dispatch", "render", "program", "logs"):
            with self.subTest(module=name):
                module = importlib.import_module("cmdtree." + name)
                for exported in module.__all__:
                    self.assertTrue(hasattr(module, exported), exported)

    def testPublicNamesResolve(self):
        for name in cmdtree.__all__:
            with self.subTest(name=name):
                self.assertTrue(hasattr(cmdtree, name))

    def testSentinelIsUsableByTheMetaclass(self):
        self.assertIs(cmdtree.IntrospectableType.__displayable__, cmdtree.Unset)
        self.assertIn("name=", repr(cmdtree.FlagSpec("port", kind="int")))

    def testDispatchIsTheFunction(self):
        self.assertTrue(callable(cmdtree.dispatch))
        self.assertEqual(cmdtree.version_info.major, 1)


if __name__ == "__main__":
    unittest.main()
