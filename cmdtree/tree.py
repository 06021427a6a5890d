"""
cmdtree command tree: the root collection collaborators register into.

What this module provides
- CommandTree: a synthetic root node (program name, description, root flags
  such as --help/--version and any global flags) plus the registration API.
  • register(path, node): insert node under path, creating implicit branches.
  • include(pattern): import modules matching a module glob and call each
    module's register(tree) function.
  • seal(): freeze the whole tree; the parser seals on first use.
- register(tree, path, node): collaborator-facing form of CommandTree.register.
- assemble(*registrars, **options): build a tree by handing the same tree value
  to every registrar in order (no module-level singleton).

Paths
- a sequence of names ("server", "start"), or a string split on dots or
  whitespace ("server.start", "server start"); the empty path is the root.

Quick start
    def register_server(tree):
        server = CommandNode("server", "manage the server")
        server.attach(CommandNode("start", handler=start))
        tree.register((), server)

    tree = assemble(register_server, register_users, name="gitness", version="1.0.0")
"""
import importlib
import inspect

from .faults import DuplicateCommandError, IncludeError, SealedTreeError
from .flags import HELP, VERSION
from .logs import logger
from .nodes import CommandNode
from .utils import *


def _split(path, /):
    """
    Normalize a registration path into a tuple of names.
    """
    if isinstance(path, str):
        return tuple(path.replace(".", " ").split())
    try:
        names = tuple(path)
    except TypeError:
        raise TypeError("command path must be a string or an iterable of strings") from None
    if not all(isinstance(name, str) for name in names):
        raise TypeError("command path must be a string or an iterable of strings")
    return names


class CommandTree(metaclass=IntrospectableType):
    """
    Root of the dispatch tree.

    Lifecycle
    - Constructed empty (apart from the root flags).
    - Populated by register()/include()/assemble(); registration is sequential
      and happens strictly before parsing.
    - Sealed at the first parse: later registration raises SealedTreeError.

    Root flags
    - --help/-h (terminal, every level inherits it as the root declares it).
    - --version (terminal) prints the externally supplied version string.
    - flags=...: extra global flags, visible to every command.
    """

    __introspectable__ = (
        "name",
        "descr",
        "version",
        "root",
    )

    def __init__(self, name=Unset, descr=Unset, /, version=Unset, *, flags=(), helpers=True):
        if not isinstance(version, str | Unset):
            raise TypeError(f"{type(self).__typename__} 'version' must be a string")
        self._root = CommandNode(
            coalesce(name, "cmdtree"),
            descr,
            flags=(*((HELP, VERSION) if helpers else ()), *flags),
        )
        self._name = self._root.name
        self._descr = self._root.descr
        self._version = coalesce(version or Unset, "unversioned")
        self._helpers = bool(helpers)

    @property
    def children(self):
        return self._root.children

    @property
    def sealed(self):
        return self._root.sealed

    @property
    def helpers(self):
        return self._helpers

    def lookup(self, token, /):
        return self._root.lookup(token)

    def resolve(self, path, /):
        """
        Return the node registered at path (exact names), or None.
        """
        node = self._root
        for name in _split(path):
            if (node := node.children.get(name)) is None:
                return None
        return node

    def register(self, path, node, /):
        """
        Insert node under the parent addressed by path.

        - intermediate names that do not exist yet become implicit branch nodes.
        - the terminal name taken by a node with a handler → DuplicateCommandError.
        - the terminal name taken by a handler-less node → merged.

        Returns the node that ends up in the tree.
        """
        if not isinstance(node, CommandNode):
            raise TypeError(f"{type(self).__typename__} register() second argument must be a command node")
        if self.sealed:
            raise SealedTreeError(
                "cannot register %r: the command tree is sealed" % node.name,
                node=node,
                hint="register every command before parsing",
            )

        parent = self._root
        for name in (names := _split(path)):
            if (child := parent.children.get(name)) is None:
                child = parent.attach(CommandNode(name, implicit=True))
            parent = child

        try:
            attached = parent.attach(node)
        except DuplicateCommandError as error:
            raise DuplicateCommandError(
                "command %r is already registered" % " ".join((*names, node.name)),
                **error.options | {"path": (*names, node.name)},
            ) from None

        logger.debug("registered command %r", " ".join((*names, node.name)))
        return attached

    def include(self, source, /):
        """
        Discover collaborator modules and let each register into this tree.

        source is a module glob ("app.commands.*"); every matched module that
        exposes a callable register(tree) is imported and called with self, in
        sorted module order. Modules without register() are skipped.

        Returns the list of module names whose register() ran.
        """
        if not isinstance(source, str):
            raise TypeError("include() argument must be a string")

        included = []
        for name in mglob(source):
            try:
                module = importlib.import_module(name)
            except ImportError as error:
                raise IncludeError(
                    "unable to import module %r" % name,
                    module=name,
                    hint=str(error),
                ) from error
            registrar = getattr(module, "register", None)
            if not callable(registrar) or inspect.isclass(registrar):
                continue
            registrar(self)
            included.append(name)
        logger.debug("included %d module(s) from %r", len(included), source)
        return included

    def seal(self):
        if not self.sealed:
            self._root.seal()
            logger.debug("sealed command tree %r", self.name)
        return self


def register(tree, path, node, /):
    """
    Collaborator-facing registration: tree.register(path, node).
    """
    if not isinstance(tree, CommandTree):
        raise TypeError("register() first argument must be a command tree")
    return tree.register(path, node)


def assemble(*registrars, **options):
    """
    Build a CommandTree(**options) and pass it to every registrar in order.

    Each registrar is a callable taking the tree; collaborators stay
    independent of each other and of the order they are listed in, as long as
    their paths do not collide.
    """
    tree = CommandTree(options.pop("name", Unset), options.pop("descr", Unset), **options)
    for registrar in registrars:
        if not callable(registrar):
            raise TypeError("assemble() arguments must be callables taking the tree")
        registrar(tree)
    return tree


__all__ = (
    "CommandTree",
    "register",
    "assemble",
)
