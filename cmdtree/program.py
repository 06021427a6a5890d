"""
cmdtree program driver: one object from sys.argv to an exit status.

What this module provides
- Program: owns a CommandTree, a Parser and a Dispatcher configured alike.
  • register(path, node) / include(pattern) / assemble(*registrars) /
    command(name, ...) decorator: registration, before the first run.
  • action(name): decorator binding a callback to a terminal flag action.
  • parse(argv): tokens → ResolvedInvocation | ShortCircuit (raises ParseError).
  • run(argv): parse, match the outcome, render or dispatch, return the status.
  • main(argv): configure logging, then sys.exit(run(argv)).

Outcomes
- ShortCircuit("help")     → help for the matched path on stderr, ExitCode.OK
- ShortCircuit("version")  → "<name> <version>" on stdout, ExitCode.OK
- ShortCircuit(other)      → the callback bound with action(other), ExitCode.OK
                             unless it returns a status
- ParseError               → the fault (plus the listing of the matched path
                             for command errors) on stderr, ExitCode.USAGE
- ResolvedInvocation       → Dispatcher.dispatch(...)
Registration errors are never caught: they are bugs in a collaborator.

argv forms
- Unset: sys.argv[1:]
- str: split with shlex.split
- iterable of str: used as-is

Quick example:
    program = Program("gitness", "self-hosted code platform", "1.0.0")
    program.assemble(commands.server.register, commands.users.register)
    if __name__ == "__main__":
        program.main()
"""
import os
import shlex
import sys
from collections.abc import Iterable

from rich.console import Console

from . import logs
from .dispatch import Dispatcher
from .faults import ExitCode, ParseError, UnknownCommandError, NoHandlerError, report
from .logs import logger
from .nodes import CommandNode
from .parser import Parser, ResolvedInvocation, ShortCircuit
from .render import render_help, render_version
from .tree import CommandTree
from .utils import *


def _progname():
    name = os.path.splitext(os.path.basename(sys.argv[0]))[0].strip("_")
    return name or "cmdtree"


def _tokens(argv):
    if argv is Unset:
        return sys.argv[1:]
    if isinstance(argv, str):
        return shlex.split(argv)
    if isinstance(argv, Iterable):
        tokens = list(argv)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("run() argument must be a string or an iterable of strings")
        return tokens
    raise TypeError("run() argument must be a string or an iterable of strings")


class Program:
    """
    Top-level driver wrapping a CommandTree.

    Options
    - version: printed by --version ("unversioned" when omitted).
    - flags: global flags visible to every command.
    - helpers: install --help/-h, --version and the builtin help command.
    - permissive: undeclared flags become positionals instead of errors.
    - colorful / fancy: rendering of help, version and faults.
    - deadline: default handler deadline (timedelta or seconds).
    - signals: route SIGINT/SIGTERM to the execution context during dispatch.
    - environ: mapping used for flag envars (os.environ by default).
    - console / output: rich consoles for diagnostics (stderr) and version (stdout).
    """

    def __init__(
            self,
            name=Unset,
            descr=Unset,
            /,
            version=Unset,
            *,
            flags=(),
            helpers=True,
            permissive=False,
            colorful=True,
            fancy=False,
            deadline=Unset,
            signals=True,
            environ=Unset,
            console=Unset,
            output=Unset,
    ):
        self.tree = CommandTree(
            coalesce(name, _progname()),
            descr,
            version,
            flags=flags,
            helpers=helpers,
        )
        self.colorful = bool(colorful)
        self.fancy = bool(fancy)
        self.console = Console(stderr=True) if console is Unset else console
        self.output = Console() if output is Unset else output
        self.parser = Parser(self.tree, permissive=permissive, environ=environ)
        self.dispatcher = Dispatcher(
            console=self.console,
            colorful=self.colorful,
            fancy=self.fancy,
            prog=self.tree.name,
            deadline=deadline,
            signals=signals,
        )
        self.actions = {
            "help": lambda program, path: render_help(
                program.tree, path, console=program.console, colorful=program.colorful, fancy=program.fancy,
            ),
            "version": lambda program, path: render_version(
                program.tree, console=program.output, colorful=program.colorful, fancy=program.fancy,
            ),
        }

    def __repr__(self):
        return "program(name=%r, version=%r, commands=%r)" % (
            self.tree.name, self.tree.version, tuple(self.tree.children),
        )

    @property
    def name(self):
        return self.tree.name

    # --- registration -----------------------------------------------------------------

    def register(self, path, node, /):
        return self.tree.register(path, node)

    def include(self, source, /):
        return self.tree.include(source)

    def assemble(self, *registrars):
        """
        Call every registrar(tree) in order; returns self for chaining.
        """
        for registrar in registrars:
            if not callable(registrar):
                raise TypeError("assemble() arguments must be callables taking the tree")
            registrar(self.tree)
        return self

    def command(self, name, descr=Unset, /, *, path=(), **options):
        """
        Decorator registering the decorated handler as a command under path.

            @program.command("status", "show the server status", path="server")
            def status(context, flags): ...
        """
        @rename("command")
        def wrapper(handler, /):
            if not callable(handler):
                raise TypeError("@command() must be applied to a callable")
            node = CommandNode(name, descr, handler=handler, **options)
            return self.tree.register(path, node)

        return wrapper

    def action(self, name, /):
        """
        Decorator binding callback(program, path) to a terminal flag action.
        """
        if not isinstance(name, str):
            raise TypeError("action() argument must be a string")

        @rename("action")
        def wrapper(callback, /):
            if not callable(callback):
                raise TypeError("@action() must be applied to a callable")
            self.actions[name] = callback
            return callback

        return wrapper

    # --- running ----------------------------------------------------------------------

    def parse(self, argv=Unset, /):
        return self.parser.parse(_tokens(argv))

    def run(self, argv=Unset, /):
        """
        Parse argv, act on the outcome and return the process exit status.
        """
        try:
            outcome = self.parse(argv)
        except ParseError as error:
            logger.debug("parse failed: %s", error)
            report(error, console=self.console, prog=self.tree.name, colorful=self.colorful, fancy=self.fancy)
            if isinstance(error, UnknownCommandError | NoHandlerError):
                self.console.print()
                render_help(
                    self.tree,
                    error.options.get("path", ()),
                    console=self.console,
                    colorful=self.colorful,
                    fancy=self.fancy,
                )
            return ExitCode.USAGE

        match outcome:
            case ShortCircuit(action=str() as action) if action in self.actions:
                status = self.actions[action](self, outcome.path)
                return ExitCode.OK if status is None else status
            case ShortCircuit(action=action) if callable(action):
                status = action(self, outcome.path)
                return ExitCode.OK if status is None else status
            case ShortCircuit(action=action):
                raise LookupError("no callback is bound to the terminal flag action %r" % action)
            case ResolvedInvocation():
                return self.dispatcher.dispatch(outcome)

        raise RuntimeError("unreachable")

    def main(self, argv=Unset, /):
        """
        Entry point: configure logging from CMDTREE_LOG_LEVEL, run, exit.
        """
        logs.configure(console=self.console)
        sys.exit(self.run(argv))


__all__ = (
    "Program",
)
