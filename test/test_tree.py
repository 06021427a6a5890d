"""
Command node and command tree tests (registration, merging, sealing, discovery).

Scope
- Validate node construction, alias routing and the command() decorator.
- Validate path registration: implicit branches, duplicates, merges.
- Validate sealing and the builder-style assemble().
- Validate include() against modules of the cmdtree package.

Conventions
- Test method names follow CamelCase per project convention.
"""
import unittest
from unittest import TestCase

from cmdtree import CommandNode, CommandTree, FlagSpec, assemble, register
from cmdtree.faults import (
    DuplicateCommandError,
    DuplicateFlagSpecError,
    IncludeError,
    SealedTreeError,
)


def handler(context, flags):
    pass


class CommandNodeTest(TestCase):
    """Node construction and child management."""

    def testInvocable(self):
        self.assertFalse(CommandNode("server").invocable)
        self.assertTrue(CommandNode("start", handler=handler).invocable)

    def testInvalidNames(self):
        for name in ("", "two words", "-dash"):
            with self.subTest(name=name):
                with self.assertRaises(ValueError):
                    CommandNode(name)
        with self.assertRaises(TypeError):
            CommandNode(1)

    def testHandlerMustBeCallable(self):
        with self.assertRaises(TypeError):
            CommandNode("start", handler="start")

    def testDescriptionFromHandlerDocstring(self):
        def start(context, flags):
            """start the server

            long description
            """

        self.assertEqual(CommandNode("start", handler=start).descr, "start the server")
        self.assertEqual(CommandNode("start", "explicit", handler=start).descr, "explicit")
        self.assertIsNone(CommandNode("start", handler=handler).descr)

    def testAliasLookup(self):
        users = CommandNode("users")
        create = users.attach(CommandNode("create", handler=handler, aliases=["add", "new"]))
        self.assertIs(users.lookup("create"), create)
        self.assertIs(users.lookup("add"), create)
        self.assertIs(users.lookup("new"), create)
        self.assertIsNone(users.lookup("cr"))
        self.assertEqual(tuple(users.children), ("create",))

    def testAliasCollisionRaises(self):
        users = CommandNode("users")
        users.attach(CommandNode("create", handler=handler, aliases=["add"]))
        with self.assertRaises(DuplicateCommandError):
            users.attach(CommandNode("add", handler=handler))

    def testAliasCannotRepeatName(self):
        with self.assertRaises(ValueError):
            CommandNode("create", aliases=["create"])

    def testDuplicateFlagDeclarationRaises(self):
        with self.assertRaises(DuplicateFlagSpecError):
            CommandNode("start", flags=[FlagSpec("port", "p"), FlagSpec("path", "p")])

    def testDeclare(self):
        node = CommandNode("start")
        port = node.declare(FlagSpec("port", kind="int"))
        self.assertEqual(node.flags, (port,))
        with self.assertRaises(DuplicateFlagSpecError):
            node.declare(FlagSpec("port"))

    def testCommandDecorator(self):
        server = CommandNode("server")

        @server.command("stop", "stop the server")
        def stop(context, flags):
            pass

        self.assertIsInstance(stop, CommandNode)
        self.assertIs(server.lookup("stop"), stop)
        self.assertEqual(stop.descr, "stop the server")

    def testReadOnlyViews(self):
        node = CommandNode("server", children=[CommandNode("start", handler=handler)])
        with self.assertRaises(TypeError):
            node.children["stop"] = CommandNode("stop")
        with self.assertRaises(AttributeError):
            node.name = "other"

    def testSealedNodeRejectsChanges(self):
        node = CommandNode("server").seal()
        with self.assertRaises(SealedTreeError):
            node.attach(CommandNode("start", handler=handler))
        with self.assertRaises(SealedTreeError):
            node.declare(FlagSpec("port"))


class CommandTreeTest(TestCase):
    """Registration into the tree."""

    def setUp(self):
        self.tree = CommandTree("gitness", "code platform", "1.2.3")

    def testRootFlags(self):
        self.assertEqual([flag.name for flag in self.tree.root.flags], ["help", "version"])
        self.assertEqual(self.tree.version, "1.2.3")
        self.assertEqual(CommandTree().version, "unversioned")

    def testGlobalFlags(self):
        tree = CommandTree("gitness", flags=[FlagSpec("debug", kind="bool")])
        self.assertEqual([flag.name for flag in tree.root.flags], ["help", "version", "debug"])

    def testWithoutHelpers(self):
        tree = CommandTree("gitness", helpers=False)
        self.assertEqual(tree.root.flags, ())
        self.assertFalse(tree.helpers)

    def testRegisterTopLevel(self):
        node = register(self.tree, (), CommandNode("migrate", handler=handler))
        self.assertIs(self.tree.lookup("migrate"), node)
        self.assertIs(self.tree.resolve(""), self.tree.root)

    def testRegisterCreatesImplicitBranches(self):
        start = self.tree.register("server.start", CommandNode("now", handler=handler))
        server = self.tree.resolve("server")
        self.assertIsNotNone(server)
        self.assertTrue(server.implicit)
        self.assertFalse(server.invocable)
        self.assertIs(self.tree.resolve(("server", "start", "now")), start)
        self.assertIs(self.tree.resolve("server start now"), start)
        self.assertIsNone(self.tree.resolve("server.stop"))

    def testDuplicateCommandRaises(self):
        self.tree.register("server", CommandNode("start", handler=handler))
        with self.assertRaises(DuplicateCommandError) as context:
            self.tree.register("server", CommandNode("start", handler=handler))
        self.assertEqual(context.exception.path, ("server", "start"))

    def testMergeIntoHandlerlessNode(self):
        self.tree.register("server", CommandNode("start", handler=handler))
        server = self.tree.register((), CommandNode(
            "server", "manage the server",
            flags=[FlagSpec("config")],
            children=[CommandNode("stop", handler=handler)],
        ))
        self.assertIs(self.tree.resolve("server"), server)
        self.assertEqual(server.descr, "manage the server")
        self.assertEqual(set(server.children), {"start", "stop"})
        self.assertFalse(server.implicit)

    def testMergeKeepsExistingFlags(self):
        self.tree.register((), CommandNode("server", flags=[FlagSpec("config"), FlagSpec("debug", kind="bool")]))
        server = self.tree.register((), CommandNode("server", flags=[FlagSpec("config", "c")]))
        self.assertEqual([flag.name for flag in server.flags], ["config", "debug"])
        self.assertEqual(server.flags[0].aliases, ("c",))

    def testMergeIsRecursive(self):
        self.tree.register("server.db", CommandNode("migrate", handler=handler))
        self.tree.register((), CommandNode("server", children=[
            CommandNode("db", children=[CommandNode("seed", handler=handler)]),
        ]))
        self.assertEqual(set(self.tree.resolve("server.db").children), {"migrate", "seed"})

    def testMergeKeepsIncomingHandlerOverImplicitChild(self):
        self.tree.register("server.start", CommandNode("now", handler=handler))
        server = self.tree.register((), CommandNode("server", children=[
            CommandNode("start", "start the server", handler=handler),
        ]))
        start = server.lookup("start")
        self.assertTrue(start.invocable)
        self.assertEqual(start.descr, "start the server")
        self.assertIs(self.tree.resolve("server.start.now").handler, handler)

    def testMergeKeepsIncomingDescriptionOfBranches(self):
        self.tree.register("server.db", CommandNode("migrate", handler=handler))
        self.tree.register((), CommandNode("server", children=[
            CommandNode("db", "database tasks"),
        ]))
        self.assertEqual(self.tree.resolve("server.db").descr, "database tasks")

    def testMergeConflictDeepDownRaises(self):
        self.tree.register("server", CommandNode("start", handler=handler))
        with self.assertRaises(DuplicateCommandError):
            self.tree.register((), CommandNode("server", children=[CommandNode("start", handler=handler)]))

    def testRegisterRejectsNonNodes(self):
        with self.assertRaises(TypeError):
            self.tree.register((), "server")
        with self.assertRaises(TypeError):
            self.tree.register(1, CommandNode("server"))
        with self.assertRaises(TypeError):
            register(object(), (), CommandNode("server"))

    def testSealedTreeRejectsRegistration(self):
        self.tree.seal()
        self.assertTrue(self.tree.sealed)
        with self.assertRaises(SealedTreeError):
            self.tree.register((), CommandNode("late", handler=handler))


class AssembleTest(TestCase):
    """Builder-style assembly and module discovery."""

    def testAssembleCallsRegistrarsInOrder(self):
        calls = []

        def first(tree):
            calls.append("first")
            tree.register((), CommandNode("server", handler=handler))

        def second(tree):
            calls.append("second")
            tree.register((), CommandNode("users", handler=handler))

        tree = assemble(first, second, name="gitness", version="1.0.0")
        self.assertEqual(calls, ["first", "second"])
        self.assertEqual(tree.name, "gitness")
        self.assertEqual(set(tree.children), {"server", "users"})

    def testAssembleAcceptsDescriptionOnly(self):
        tree = assemble(descr="no name given")
        self.assertEqual(tree.name, "cmdtree")
        self.assertEqual(tree.descr, "no name given")

    def testAssembleRejectsNonCallables(self):
        with self.assertRaises(TypeError):
            assemble("server")

    def testCollidingRegistrarsRaise(self):
        def one(tree):
            tree.register((), CommandNode("server", handler=handler))

        with self.assertRaises(DuplicateCommandError):
            assemble(one, one)

    def testIncludeSkipsModulesWithoutRegister(self):
        tree = CommandTree("gitness")
        self.assertEqual(tree.include("cmdtree.faults"), [])

    def testIncludeUnknownModuleRaises(self):
        tree = CommandTree("gitness")
        with self.assertRaises(IncludeError):
            tree.include("cmdtree.surely_missing_module")


if __name__ == "__main__":
    unittest.main()
