"""
cmdtree argument parser: tokens → ResolvedInvocation | ShortCircuit.

Scope
- Resolve the command path by exact names/aliases (no abbreviation).
- Bind the remaining tokens against the flags visible on that path.
- Fill unbound flags from their environment variable, then their default.
- Raise a ParseError subclass, never print: rendering is the driver's business.

Algorithm
1. path: consume leading tokens while each selects a child of the current node.
   Stop at a flag token, at an unknown name under an invocable node (it is the
   first positional), or when the node has no children. An unknown name at the
   root, or under a branch without handler, is UnknownCommandError.
2. flags: every node on root→leaf contributes its flags; a deeper declaration
   shadows a shallower one with the same name or spelling.
3. scan: flags and positionals interleave freely; a locked flag must precede
   the first positional; "--" ends flag parsing; terminal flags short-circuit.
4. finish: no path → UnknownCommandError; leaf without handler →
   NoHandlerError; required flags still unbound → MissingRequiredFlagError.

Token grammar
- "--name", "--name=value", "--no-name" (bool only), "-x", "-xvalue", "-x value".
- "-" alone and negative numbers ("-5", "-0.5") are positionals.

Quick example:
    >>> outcome = parse(tree, ["server", "start", "--port", "8080"])
    >>> outcome.route, dict(outcome.flags)
    (('server', 'start'), {'port': 8080})
"""
import os
import re
from types import MappingProxyType
from typing import NamedTuple

from .faults import (
    UnknownCommandError,
    NoHandlerError,
    MalformedTokenError,
    UnknownFlagError,
    FlagAssignmentError,
    FlagValueRequiredError,
    DuplicateFlagError,
    MissingRequiredFlagError,
    FlagConversionError,
    InvalidChoiceError,
    LockedFlagError,
)
from .flags import Kind, parse_bool
from .logs import logger
from .tree import CommandTree
from .utils import *

_LONG = re.compile(r"--(?P<name>[^\W\d_](-?[^\W_]+)*)(=(?P<value>.*))?", re.DOTALL)
_SHORT = re.compile(r"-(?P<name>[^\W\d_])(?P<value>.+)?", re.DOTALL)
_NEGATIVE = re.compile(r"-(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")

EXPLICIT = "explicit"
ENVAR = "envar"
DEFAULT = "default"


def _isflag(token):
    return token.startswith("-") and token != "-" and not _NEGATIVE.fullmatch(token)


def visible_flags(tree, path=(), /):
    """
    Spelling → FlagSpec for every flag visible at the end of path.

    Flags are collected root → leaf; a deeper declaration shadows a shallower
    one with the same name, and wins any spelling both declare.
    """
    named = {}
    for node in (tree.root, *path):
        for flag in node.flags:
            named.pop(flag.name, None)
            named[flag.name] = flag
    spellings = {}
    for flag in named.values():
        for spelling in filter(None, (*flag.spellings, flag.negation)):
            spellings[spelling] = flag
    return spellings


class ResolvedInvocation(NamedTuple):
    """
    Outcome of a successful parse.

    - path: matched nodes, root excluded, leaf last.
    - flags: bound values by flag name (terminal flags excluded).
    - positionals: tokens not consumed as flags or flag values, in order.
    - sources: flag name → "explicit", "envar" or "default".
    """
    path: tuple
    flags: MappingProxyType
    positionals: tuple
    sources: MappingProxyType

    @property
    def leaf(self):
        return self.path[-1]

    @property
    def route(self):
        return tuple(node.name for node in self.path)


class ShortCircuit(NamedTuple):
    """
    A terminal flag (or the builtin help command) stopped resolution.

    action is the flag's action ("help", "version" or a callable); path holds
    the nodes matched so far; flag is the terminal FlagSpec, None for the
    builtin help command.
    """
    action: object
    path: tuple
    flag: object = None

    @property
    def route(self):
        return tuple(node.name for node in self.path)


class Parser:
    """
    Parses token lists against one CommandTree.

    Options
    - permissive: undeclared flag tokens are kept as positionals instead of
      raising UnknownFlagError.
    - environ: mapping consulted for flag envars (os.environ by default).

    The tree is sealed on the first parse.
    """

    def __init__(self, tree, /, *, permissive=False, environ=Unset):
        if not isinstance(tree, CommandTree):
            raise TypeError("Parser() argument must be a command tree")
        self.tree = tree
        self.permissive = bool(permissive)
        self.environ = coalesce(environ, os.environ)

    def parse(self, tokens, /):
        """
        Resolve tokens into a ResolvedInvocation or a ShortCircuit.

        raises a ParseError subclass on any user input error.
        """
        if isinstance(tokens, str):
            raise TypeError("parse() tokens must be an iterable of strings, not a string")
        tokens = list(tokens)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("parse() tokens must be strings")

        self.tree.seal()

        path, index = self._walk(tokens)
        if isinstance(path, ShortCircuit):
            return path

        spellings = visible_flags(self.tree, path)
        outcome = self._scan(tokens, index, path, spellings)
        if isinstance(outcome, ShortCircuit):
            logger.debug("short-circuit %r at %r", outcome.action, " ".join(outcome.route))
            return outcome

        bound, sources, positionals = outcome
        self._check_path(path, tokens)
        self._fill(path, spellings, bound, sources)

        invocation = ResolvedInvocation(
            tuple(path),
            MappingProxyType(bound),
            tuple(positionals),
            MappingProxyType(sources),
        )
        logger.debug("resolved %r with %d positional(s)", " ".join(invocation.route), len(positionals))
        return invocation

    # --- path -------------------------------------------------------------------------

    def _walk(self, tokens):
        node = self.tree.root
        path = []
        index = 0
        while index < len(tokens):
            token = tokens[index]
            if _isflag(token) or token == "--":
                break
            if (child := node.lookup(token)) is None:
                if not path and token == "help" and self.tree.helpers:
                    return self._builtin_help(tokens, index + 1), index
                if not path or (node.children and not node.invocable):
                    raise self._unknown_command(node, path, token, index + 1)
                break
            path.append(child)
            node = child
            index += 1
        return path, index

    def _builtin_help(self, tokens, start):
        """
        'help [<command>...]': short-circuit to the help of the named path.
        """
        node = self.tree.root
        path = []
        for position, token in enumerate(tokens[start:], start + 1):
            if (child := node.lookup(token)) is None:
                raise self._unknown_command(node, path, token, position)
            path.append(child)
            node = child
        return ShortCircuit("help", tuple(path))

    def _unknown_command(self, node, path, token, position):
        choices = [name for name, child in node.children.items() if not child.hidden]
        suggestions = suggest(token, choices)
        where = "under %r" % " ".join(step.name for step in path) if path else "at top level"
        if suggestions:
            hint = "did you mean %r? run '%s --help' to list commands" % (suggestions[0], self._prog(path))
        elif choices:
            hint = "available %s: %s" % (pluralize("command", len(choices)), ", ".join(choices))
        else:
            hint = "no commands are registered"
        return UnknownCommandError(
            "unknown command %r at %s position (%s)" % (token, ordinal(position), where),
            input=token,
            index=position,
            path=tuple(path),
            choices=tuple(choices),
            suggestions=tuple(suggestions),
            hint=hint,
        )

    def _check_path(self, path, tokens):
        if not path:
            choices = [name for name, child in self.tree.children.items() if not child.hidden]
            raise UnknownCommandError(
                "no command given" if not tokens else "no command given before the flags",
                path=(),
                choices=tuple(choices),
                hint=("available %s: %s" % (pluralize("command", len(choices)), ", ".join(choices)))
                if choices else "no commands are registered",
            )
        if not (leaf := path[-1]).invocable:
            choices = [name for name, child in leaf.children.items() if not child.hidden]
            raise NoHandlerError(
                "command %r needs a subcommand" % " ".join(step.name for step in path),
                path=tuple(path),
                choices=tuple(choices),
                hint=("pick one of: %s" % ", ".join(choices)) if choices
                else "run '%s --help' for usage" % self._prog(path),
            )

    # --- flags ------------------------------------------------------------------------

    def _scan(self, tokens, index, path, spellings):
        bound = {}
        sources = {}
        positionals = []
        literal = False

        while index < len(tokens):
            token = tokens[index]
            index += 1
            position = index

            if literal or not _isflag(token):
                positionals.append(token)
                continue
            if token == "--":
                literal = True
                continue

            if match := _LONG.fullmatch(token):
                spelling = "--" + match["name"]
                inline = match["value"]
            elif match := _SHORT.fullmatch(token):
                spelling = "-" + match["name"]
                inline = match["value"]
                if inline is not None and inline.startswith("="):
                    inline = inline[1:]
            else:
                raise MalformedTokenError(
                    "bad form of flag %r at %s position" % (token, ordinal(position)),
                    input=token,
                    index=position,
                    hint="run '%s --help' to see valid spellings (e.g. --name=value)" % self._prog(path),
                )

            if (flag := spellings.get(spelling)) is None:
                if self.permissive:
                    positionals.append(token)
                    continue
                suggestions = suggest(spelling, spellings)
                if suggestions:
                    hint = "did you mean %r? run '%s --help' to see all flags" % (suggestions[0], self._prog(path))
                else:
                    hint = "run '%s --help' to see all flags" % self._prog(path)
                raise UnknownFlagError(
                    "unknown flag %r at %s position" % (spelling, ordinal(position)),
                    input=spelling,
                    index=position,
                    path=tuple(path),
                    suggestions=tuple(suggestions),
                    hint=hint,
                )

            if flag.locked and positionals:
                raise LockedFlagError(
                    "flag %r at %s position must come before the first positional" % (spelling, ordinal(position)),
                    input=spelling,
                    index=position,
                    flag=flag,
                    hint="move %s before %r" % (spelling, positionals[0]),
                )

            if flag.kind is Kind.BOOL:
                if inline is not None:
                    raise FlagAssignmentError(
                        "flag %r at %s position cannot have a value" % (spelling, ordinal(position)),
                        input=spelling,
                        index=position,
                        flag=flag,
                        hint="remove everything from '=' (for example: %s)" % spelling,
                    )
                if flag.terminal:
                    return ShortCircuit(flag.action, tuple(path), flag)
                value = spelling != flag.negation
            else:
                if inline is None:
                    if index >= len(tokens) or _isflag(tokens[index]):
                        raise FlagValueRequiredError(
                            "flag %r at %s position requires a value" % (spelling, ordinal(position)),
                            input=spelling,
                            index=position,
                            flag=flag,
                            hint="provide a value (e.g. %s=%s)" % (flag.spellings[0], flag.label),
                        )
                    inline = tokens[index]
                    index += 1
                value = self._convert(flag, spelling, inline, "at %s position" % ordinal(position), path)

            if flag.name in bound and not flag.repeatable:
                raise DuplicateFlagError(
                    "flag %r at %s position was already given" % (spelling, ordinal(position)),
                    input=spelling,
                    index=position,
                    flag=flag,
                    hint="pass %s only once" % flag.spellings[0],
                )
            if flag.repeatable:
                bound.setdefault(flag.name, []).append(value)
            else:
                bound[flag.name] = value
            sources[flag.name] = EXPLICIT

        return bound, sources, positionals

    def _convert(self, flag, spelling, raw, where, path):
        try:
            return flag.convert(raw)
        except ValueError as error:
            fault = InvalidChoiceError if flag.kind is Kind.ENUM else FlagConversionError
            raise fault(
                "invalid value for flag %r %s: %s" % (spelling, where, error),
                input=raw,
                flag=flag,
                path=tuple(path),
                choices=flag.choices,
                hint=("pick one of: %s" % ", ".join(flag.choices)) if flag.choices
                else "expected %s" % flag.label,
            ) from None

    def _fill(self, path, spellings, bound, sources):
        """
        Bind every remaining flag: envar, then default; collect missing required ones.
        """
        missing = []
        for flag in dict.fromkeys(spellings.values()):
            if flag.terminal or flag.name in bound:
                continue
            if flag.envar and (raw := self.environ.get(flag.envar)):
                where = "from $%s" % flag.envar
                if flag.repeatable:
                    value = [self._convert(flag, flag.spellings[0], item, where, path) for item in re.split(r"\r?\n", raw) if item]
                elif flag.kind is Kind.BOOL:
                    try:
                        value = parse_bool(raw)
                    except ValueError as error:
                        raise FlagConversionError(
                            "invalid value for flag %r %s: %s" % (flag.spellings[0], where, error),
                            input=raw,
                            flag=flag,
                            path=tuple(path),
                            hint="set %s to true or false" % flag.envar,
                        ) from None
                else:
                    value = self._convert(flag, flag.spellings[0], raw, where, path)
                bound[flag.name] = value
                sources[flag.name] = ENVAR
            elif flag.required:
                missing.append(flag)
            else:
                bound[flag.name] = coalesce(flag.fresh_default())
                sources[flag.name] = DEFAULT

        if missing:
            names = ", ".join(flag.spellings[0] for flag in missing)
            raise MissingRequiredFlagError(
                "missing required %s %s" % (pluralize("flag", len(missing)), names),
                flags=tuple(missing),
                path=tuple(path),
                hint="provide %s (e.g. %s=%s)" % (names, missing[0].spellings[0], missing[0].label),
            )

    def _prog(self, path):
        return " ".join((self.tree.name, *(step.name for step in path)))


def parse(tree, tokens, /, **options):
    """
    Shorthand for Parser(tree, **options).parse(tokens).
    """
    return Parser(tree, **options).parse(tokens)


__all__ = (
    "ResolvedInvocation",
    "ShortCircuit",
    "Parser",
    "parse",
    "visible_flags",
)
