"""
cmdtree command nodes: named units of the dispatch tree.

What this module provides
- CommandNode: a name, a description, flags (in help order), children keyed by
  name, an optional handler, optional aliases.
  • A node with a handler is invocable; a node with children is a branch; a
    branch may also be invocable.
  • Children are attached with attach() (or the command() decorator) while the
    tree is being built; once sealed, the node is read-only.
- Merge semantics used by registration: attaching a node whose name is already
  taken merges the two when the existing one has no handler, and raises
  DuplicateCommandError when it has one.

Handler contract
- handler(context, flags) where context is an ExecutionContext carrying the
  ResolvedInvocation and flags is the bound flag mapping.
- return None / 0 for success, a non-zero int for a reported failure, or raise
  HandlerFailure(message, status=...).

Quick start
    from cmdtree import CommandNode, FlagSpec

    server = CommandNode("server", "manage the server")

    @server.command("start", "start the server", flags=[FlagSpec("port", "p", kind="int", default=3000)])
    def start(context, flags):
        ...
"""
import re

from rich.text import Text

from .faults import DuplicateCommandError, SealedTreeError
from .flags import FlagSpec, index_flags
from .utils import *

_NAME = re.compile(r"[^\W_][\w.-]*")


def _sanitize_name(cls, name, /, what="name"):
    if not isinstance(name, str):
        raise TypeError(f"{cls.__typename__} {what} must be a string")
    elif not (name := name.strip()):
        raise ValueError(f"{cls.__typename__} {what} cannot be empty")
    elif not _NAME.fullmatch(name):
        raise ValueError(f"{cls.__typename__} {what} {name!r} must start with a letter or digit and contain no spaces")
    return name


class CommandNode(metaclass=IntrospectableType):
    """
    Named unit of the dispatch tree.

    Responsibilities
    - Own flags (validated for unique names/aliases, see index_flags).
    - Own children keyed by name, plus an alias routing table for lookup().
    - Optionally own a handler (any callable).

    Lifecycle
    - Built by collaborators, attached under a tree (or another node), sealed
      by the tree at the first parse; after that attach()/command() raise
      SealedTreeError.

    Properties
    - every name in __introspectable__ is a read-only attribute (containers
      are exposed as tuples / mapping proxies).
    - invocable: a handler is bound.
    - implicit: the node was created as an intermediate branch by registration.
    """

    __introspectable__ = (
        "name",
        "descr",
        "flags",
        "children",
        "handler",
        "aliases",
        "hidden",
    )

    __displayable__ = (
        "name",
        "descr",
        "flags",
        "children",
        "handler",
    )

    def __init__(
            self,
            name,
            descr=Unset,
            /,
            *,
            flags=(),
            children=(),
            handler=Unset,
            aliases=(),
            hidden=False,
            implicit=False,
    ):
        cls = type(self)
        self._name = _sanitize_name(cls, name)

        if not isinstance(descr, str | Text | Unset):
            raise TypeError(f"{cls.__typename__} 'descr' must be a string")
        elif isinstance(descr, str) and not (descr := descr.strip()):
            raise ValueError(f"{cls.__typename__} 'descr' cannot be empty")

        if handler is not Unset and not callable(handler):
            raise TypeError(f"{cls.__typename__} 'handler' must be callable")
        self._handler = coalesce(handler)
        if descr is Unset and handler is not Unset:
            descr = _firstline(handler)
        self._descr = coalesce(descr)

        if isinstance(aliases, str):
            raise TypeError(f"{cls.__typename__} 'aliases' must be an iterable of strings")
        self._aliases = tuple(_sanitize_name(cls, alias, "alias") for alias in aliases)
        if self.name in self._aliases or len(set(self._aliases)) != len(self._aliases):
            raise ValueError(f"{cls.__typename__} 'aliases' cannot repeat the name or each other")

        self._flags = list(flags)
        self._spellings = index_flags(self._flags, owner="command %r" % self.name)

        self._hidden = bool(hidden)
        self._implicit = bool(implicit)
        self._sealed = False
        self._children = {}
        self._routes = {}
        for child in children:
            self.attach(child)

    @property
    def invocable(self):
        return self._handler is not None

    @property
    def implicit(self):
        return self._implicit

    @property
    def sealed(self):
        return self._sealed

    def lookup(self, token, /):
        """
        Return the child selected by token (exact name or alias), or None.
        """
        return self._routes.get(token)

    def seal(self):
        """
        Freeze this node and its whole subtree.
        """
        self._sealed = True
        for child in self._children.values():
            child.seal()
        return self

    def _check_open(self):
        if self._sealed:
            raise SealedTreeError(
                "command %r is sealed and cannot be changed" % self.name,
                node=self,
                hint="register every command before parsing",
            )

    def attach(self, node, /):
        """
        Attach node as a child and return the node that ends up in the tree.

        - free name: node is attached as-is.
        - name taken by a node with a handler: DuplicateCommandError.
        - name taken by a node without handler: merged (see _merge).
        - alias colliding with a sibling's name or alias: DuplicateCommandError.
        """
        if not isinstance(node, CommandNode):
            raise TypeError(f"{type(self).__typename__} children must be command nodes")
        self._check_open()

        existing = self._children.get(node.name)
        if existing is node:
            return node
        if existing is not None:
            if existing.invocable:
                raise DuplicateCommandError(
                    "command %r is already registered under %r" % (node.name, self.name),
                    name=node.name,
                    parent=self,
                    hint="each collaborator must register a distinct command path",
                )
            node = node._merge(existing)

        for route in (node.name, *node.aliases):
            if (owner := self._routes.get(route)) is not None and owner is not existing:
                raise DuplicateCommandError(
                    "name %r under %r is already used by command %r" % (route, self.name, owner.name),
                    name=route,
                    parent=self,
                    hint="pick another alias",
                )

        if existing is not None:
            for route in (existing.name, *existing.aliases):
                del self._routes[route]
        self._children[node.name] = node
        self._routes.update(dict.fromkeys((node.name, *node.aliases), node))
        return node

    def _merge(self, placeholder, /):
        """
        Absorb a handler-less node registered earlier under the same name.

        self's handler, description and flags win; the placeholder's flags not
        redeclared by self are kept after self's; children merge recursively.
        """
        self._check_open()
        self._descr = coalesce(self._descr or Unset, placeholder.descr)
        if not self._aliases:
            self._aliases = placeholder.aliases
        for flag in placeholder.flags:
            if flag.name not in {mine.name for mine in self._flags}:
                candidate = [*self._flags, flag]
                self._spellings = index_flags(candidate, owner="command %r" % self.name)
                self._flags = candidate
        for child in placeholder.children.values():
            mine = self._children.get(child.name)
            if mine is None or child.invocable:
                self.attach(child)
                continue
            # the incoming child absorbs the earlier handler-less one
            for route in (mine.name, *mine.aliases):
                del self._routes[route]
            del self._children[mine.name]
            self.attach(mine._merge(child))
        self._implicit = self._implicit and placeholder.implicit
        return self

    def command(self, name, descr=Unset, /, **options):
        """
        Decorator: build a child node around the decorated handler and attach it.

        Usage
            @server.command("stop", "stop the server")
            def stop(context, flags): ...

        Returns the child CommandNode (not the function), mirroring how a
        registered command is looked up later.
        """
        @rename("command")
        def wrapper(handler, /):
            if not callable(handler):
                raise TypeError("@command() must be applied to a callable")
            return self.attach(CommandNode(name, descr, handler=handler, **options))

        return wrapper

    def declare(self, flag, /):
        """
        Append a flag to this node (help order = declaration order).
        """
        if not isinstance(flag, FlagSpec):
            raise TypeError(f"{type(self).__typename__} declare() argument must be a flag spec")
        self._check_open()
        self._spellings = index_flags([*self._flags, flag], owner="command %r" % self.name)
        self._flags.append(flag)
        return flag


def _firstline(callable, /):
    """
    First line of a handler's docstring, used as a default description.
    """
    if doc := (getattr(callable, "__doc__", None) or "").strip():
        return doc.splitlines()[0].strip()
    return Unset


__all__ = (
    "CommandNode",
)
