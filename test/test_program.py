"""
Program driver tests (argv → parse → render or dispatch → exit status).

Scope
- End-to-end runs over a small server/users tree.
- Help, version, builtin help and custom terminal actions.
- Usage errors render the fault (and the listing for command errors).
- main() exits with the status.

Conventions
- Test method names follow CamelCase per project convention.
- Both consoles are in-memory so output can be asserted on.
"""
import io
import unittest
from unittest import TestCase

from rich.console import Console

from cmdtree import CommandNode, FlagSpec, Program
from cmdtree.faults import DuplicateCommandError, ExitCode, HandlerFailure


class ProgramTest(TestCase):

    def setUp(self):
        self.errors = io.StringIO()
        self.stdout = io.StringIO()
        self.calls = []
        self.program = Program(
            "gitness",
            "self-hosted code platform",
            "1.2.3",
            flags=[FlagSpec("debug", "d", kind="bool", descr="verbose logging")],
            colorful=False,
            signals=False,
            environ={},
            console=Console(file=self.errors, width=100),
            output=Console(file=self.stdout, width=100),
        )
        self.program.assemble(self.register_server)

    def register_server(self, tree):
        def start(context, flags):
            """start the server"""
            self.calls.append(("start", dict(flags), context.positionals))

        def stop(context, flags):
            raise HandlerFailure("server is not running", status=3)

        tree.register((), CommandNode(
            "server", "manage the server",
            flags=[FlagSpec("config", "c", descr="configuration file")],
            children=[
                CommandNode("start", handler=start, flags=[
                    FlagSpec("port", "p", kind="int", default=3000, descr="port to listen on"),
                ]),
                CommandNode("stop", "stop the server", handler=stop),
            ],
        ))

    def testRunDispatchesHandler(self):
        status = self.program.run(["server", "start", "--port", "8080"])
        self.assertEqual(status, ExitCode.OK)
        name, flags, positionals = self.calls[0]
        self.assertEqual(name, "start")
        self.assertEqual(flags["port"], 8080)
        self.assertIs(flags["debug"], False)
        self.assertIsNone(flags["config"])
        self.assertEqual(positionals, ())

    def testRunAcceptsCommandLineString(self):
        status = self.program.run("server start -p 9000 'some file'")
        self.assertEqual(status, ExitCode.OK)
        self.assertEqual(self.calls[0][1]["port"], 9000)
        self.assertEqual(self.calls[0][2], ("some file",))

    def testRunRejectsBadArgv(self):
        with self.assertRaises(TypeError):
            self.program.run(["server", 1])
        with self.assertRaises(TypeError):
            self.program.run(42)

    def testHandlerFailureStatus(self):
        self.assertEqual(self.program.run(["server", "stop"]), 3)
        self.assertIn("server is not running", self.errors.getvalue())

    def testBranchWithoutSubcommandIsUsageError(self):
        self.assertEqual(self.program.run(["server"]), ExitCode.USAGE)
        output = self.errors.getvalue()
        self.assertIn("needs a subcommand", output)
        self.assertIn("usage: gitness server", output)
        self.assertIn("start", output)
        self.assertIn("stop", output)
        self.assertEqual(self.calls, [])

    def testUnknownSubcommandIsUsageError(self):
        self.assertEqual(self.program.run(["server", "bogus"]), ExitCode.USAGE)
        output = self.errors.getvalue()
        self.assertIn("unknown command 'bogus'", output)
        self.assertIn("usage: gitness server", output)

    def testNoCommandIsUsageError(self):
        self.assertEqual(self.program.run([]), ExitCode.USAGE)
        self.assertIn("no command given", self.errors.getvalue())

    def testConversionErrorIsUsageError(self):
        status = self.program.run(["server", "start", "--port", "notanumber"])
        self.assertEqual(status, ExitCode.USAGE)
        self.assertIn("notanumber", self.errors.getvalue())
        self.assertEqual(self.calls, [])

    def testVersion(self):
        self.assertEqual(self.program.run(["--version"]), ExitCode.OK)
        self.assertIn("gitness 1.2.3", self.stdout.getvalue())
        self.assertEqual(self.errors.getvalue(), "")

    def testVersionShortCircuitsHandler(self):
        self.assertEqual(self.program.run(["server", "start", "--version"]), ExitCode.OK)
        self.assertEqual(self.calls, [])

    def testHelpGoesToDiagnosticStream(self):
        self.assertEqual(self.program.run(["--help"]), ExitCode.OK)
        output = self.errors.getvalue()
        self.assertIn("usage: gitness", output)
        self.assertIn("self-hosted code platform", output)
        self.assertIn("server", output)
        self.assertIn("--debug", output)
        self.assertEqual(self.stdout.getvalue(), "")

    def testHelpForSubcommand(self):
        self.assertEqual(self.program.run(["server", "start", "-h"]), ExitCode.OK)
        output = self.errors.getvalue()
        self.assertIn("usage: gitness server start", output)
        self.assertIn("--port", output)
        self.assertIn("default: 3000", output)
        self.assertIn("global flags", output)
        self.assertIn("--config", output)
        self.assertEqual(self.calls, [])

    def testBuiltinHelpCommand(self):
        self.assertEqual(self.program.run(["help", "server"]), ExitCode.OK)
        output = self.errors.getvalue()
        self.assertIn("usage: gitness server", output)
        self.assertIn("manage the server", output)

    def testBuiltinHelpUnknownCommand(self):
        self.assertEqual(self.program.run(["help", "nope"]), ExitCode.USAGE)

    def testCommandDecorator(self):
        @self.program.command("status", "show the server status", path="server")
        def status(context, flags):
            return 4

        self.assertIsInstance(status, CommandNode)
        self.assertEqual(self.program.run(["server", "status"]), 4)

    def testCommandDecoratorCollision(self):
        with self.assertRaises(DuplicateCommandError):
            self.program.command("start", path="server")(lambda context, flags: None)

    def testCustomTerminalAction(self):
        program = Program(
            "gitness",
            flags=[FlagSpec("list-plugins", kind="bool", terminal=True)],
            signals=False,
            environ={},
            console=Console(file=io.StringIO()),
            output=Console(file=io.StringIO()),
        )
        seen = []

        @program.action("list-plugins")
        def list_plugins(program, path):
            seen.append(path)

        self.assertEqual(program.run(["--list-plugins"]), ExitCode.OK)
        self.assertEqual(seen, [()])

    def testUnboundTerminalActionRaises(self):
        program = Program(
            "gitness",
            flags=[FlagSpec("list-plugins", kind="bool", terminal=True)],
            environ={},
            console=Console(file=io.StringIO()),
        )
        with self.assertRaises(LookupError):
            program.run(["--list-plugins"])

    def testEnvironmentFeedsFlags(self):
        program = Program(
            "gitness",
            signals=False,
            environ={"GITNESS_PORT": "7000"},
            console=Console(file=io.StringIO()),
        )
        seen = []
        program.register((), CommandNode(
            "serve",
            handler=lambda context, flags: seen.append(flags["port"]),
            flags=[FlagSpec("port", kind="int", envar="GITNESS_PORT")],
        ))
        self.assertEqual(program.run(["serve"]), ExitCode.OK)
        self.assertEqual(seen, [7000])

    def testMainExitsWithStatus(self):
        with self.assertRaises(SystemExit) as raised:
            self.program.main(["server", "stop"])
        self.assertEqual(raised.exception.code, 3)

    def testMainNeverExitsZeroForOverflowingStatus(self):
        self.program.register((), CommandNode("overflow", handler=lambda context, flags: 256))
        with self.assertLogs("cmdtree", level="WARNING"):
            with self.assertRaises(SystemExit) as raised:
                self.program.main(["overflow"])
        self.assertEqual(raised.exception.code, ExitCode.FAILURE)

    def testRepr(self):
        self.assertEqual(self.program.name, "gitness")
        self.assertIn("'server'", repr(self.program))


if __name__ == "__main__":
    unittest.main()
