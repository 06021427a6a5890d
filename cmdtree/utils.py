"""
cmdtree utilities (internal helpers, carefully exposed)

Scope
- Small building blocks shared by the flag, node, tree and parser layers.
- Exposed through __all__ so collaborators can reuse them, but designed first
  for the engine itself.

Overview
- UnsetType / Unset
  • Sentinel for "not provided", distinct from None (a flag default may be None).
- coalesce(value, default=None)
  • Materialize Unset into a concrete default; every other value passes through.
- rename(callable, name) / @rename("name")
  • Stable __name__/__qualname__ for generated helpers.
- mirror("attr")
  • Read-only property over a private backing field, returning frozen views.
- IntrospectableType
  • Metaclass shared by specs and nodes: mirrored properties, __typename__,
    stable __repr__/__rich_repr__.
- pluralize(word, count) / ordinal(number) / suggest(word, candidates)
  • Copy helpers for position-first, friendly fault messages.
- mglob(pattern)
  • Expand "pkg.commands.*" style module globs for registration discovery.
"""
import builtins
import difflib
import functools
import importlib
import pkgutil
import re
from collections.abc import Sequence, Mapping, Set
from types import MappingProxyType
from typing import final


@final
class UnsetType:
    """
    Sentinel type for a value that was never provided.

    A flag default of None is a legitimate user value, so the engine needs a
    second "nothing" that cannot be confused with it. The single instance is
    exported as Unset.

    Characteristics
    - falsey, printable as "Unset", singleton, sealed against subclassing.
    - participates in PEP 604 unions (str | Unset) for isinstance checks.
    """

    def __or__(self, other, /):
        try:
            return type(self) | other
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo, /):
        return self

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


Unset = UnsetType()


def coalesce(object, default=None, /):
    """
    Return object unless it is Unset, in which case return default.

    Falsey values (None, 0, "", []) are preserved; only the sentinel is replaced.

    Examples
    - coalesce(Unset, 8080) -> 8080
    - coalesce(None, 8080)  -> None
    """
    return object if object is not Unset else default


def rename(*parameters):
    """
    Set __name__/__qualname__ on a callable, or build a decorator that does.

    Forms
    - rename(callable, name) -> callable (renamed in place)
    - @rename(name)          -> decorator
    """
    match len(parameters):
        case 2:
            callable, name = parameters
            if not builtins.callable(callable):
                raise TypeError("rename() first argument must be callable")
            if not isinstance(name, str):
                raise TypeError("rename() second argument must be a string")
            try:
                callable.__qualname__ = name
                callable.__name__ = name
            except (AttributeError, TypeError):
                raise TypeError("rename() first argument must be an updatable callable") from None
            return callable
        case 1:
            name, = parameters
            if not isinstance(name, str):
                raise TypeError("@rename() argument must be a string")

            def wrapper(callable):
                return rename(callable, name)

            return rename(wrapper, "rename")
        case _:
            raise TypeError("rename takes 1 to 2 arguments but %d were given" % len(parameters))


def _freeze(object):
    """
    Return a read-only view of a container, leaving scalars untouched.

    - Mapping  → MappingProxyType over the same mapping (live, not writable)
    - Sequence → tuple
    - Set      → frozenset
    """
    if isinstance(object, Mapping):
        return MappingProxyType(object)
    elif isinstance(object, Sequence) and not isinstance(object, str):
        return tuple(object)
    elif isinstance(object, Set):
        return frozenset(object)
    return object


def mirror(name, /):
    """
    Define a read-only property reading self._{name}.

    Containers are exposed frozen (see _freeze) so that the tree, once built,
    cannot be mutated through its public attributes.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _freeze(getattr(self, "_" + name))

    return property(getter)


class IntrospectableType(type):
    """
    Metaclass for engine value objects (flag specs, command nodes, trees).

    Responsibilities
    - Publish every name in __introspectable__ as a read-only mirrored property.
    - Derive __typename__ from the class name ("CommandNode" → "command-node")
      for consistent wording in errors.
    - Provide a compact __repr__ and a __rich_repr__ for rich.pretty, limited to
      __displayable__ when set.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)

        @rename("__repr__")
        def __repr__(self):
            return "%s(%s)" % (type(self).__typename__, ", ".join(
                "%s=%r" % pair for pair in self.__rich_repr__()
            ))

        if "__rich_repr__" not in namespace:
            self.__rich_repr__ = __rich_repr__
        if "__repr__" not in namespace:
            self.__repr__ = __repr__
        return self


def pluralize(word, count=2, /):
    """
    Pluralize a single English word when count != 1.

    Only the shapes the engine emits are covered: "flag" → "flags",
    "alias" → "aliases", "entry" → "entries".
    """
    if count == 1 or not word:
        return word
    if word.endswith(("s", "sh", "ch", "x", "z")):
        return word + "es"
    if word.endswith("y") and word[-2:-1] not in tuple("aeiou"):
        return word[:-1] + "ies"
    return word + "s"


@functools.cache
def ordinal(number, /):
    """
    Human-friendly ordinal for a 1-based token position.

    1..10 are spelled out ("first" … "tenth"); the rest use numeric suffixes
    with the 11th/12th/13th exception.
    """
    words = ("first", "second", "third", "fourth", "fifth", "sixth", "seventh", "eighth", "ninth", "tenth")
    if 1 <= number <= len(words):
        return words[number - 1]
    if 10 < number % 100 < 20:
        return "%dth" % number
    return "%d%s" % (number, {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th"))


def suggest(word, candidates, /, limit=3):
    """
    Return up to limit close matches of word among candidates, best first.
    """
    return difflib.get_close_matches(word, list(candidates), limit)


@functools.cache
def _compile_glob(pattern):
    """
    Translate a dotted module glob into a regex.

    - '**' as a whole segment matches zero or more segments
    - '*' and '?' never cross a dot
    - [...] / [!...] are character classes within a segment
    """
    parts = []
    for segment in pattern.split("."):
        if segment == "**":
            parts.append(r"(?:\.[A-Za-z_]\w*)*")
            continue
        body = ""
        index = 0
        while index < len(segment):
            char = segment[index]
            if char == "*":
                body += r"[^.]*"
            elif char == "?":
                body += r"[^.]"
            elif char == "[" and (close := segment.find("]", index + 1)) > index:
                inner = segment[index + 1:close]
                body += "[%s]" % ("^" + inner[1:] if inner.startswith("!") else inner)
                index = close
            else:
                body += re.escape(char)
            index += 1
        parts.append(r"\." + body)
    return re.compile("".join(parts)[2:])


def mglob(source, /):
    """
    Expand a dot-separated module glob into importable module names (sorted).

    The pattern must start with at least one concrete package segment, which is
    imported and walked with pkgutil. A pattern without wildcards is returned
    as-is. An unimportable prefix yields an empty list.

    Examples
    - "app.commands.*"      → direct children of app.commands
    - "app.**.commands"     → any "commands" module below app
    """
    if not isinstance(source, str):
        raise TypeError("mglob() argument must be a string")
    elif not (source := source.strip()):
        raise ValueError("mglob() argument must be a non-empty string")

    if re.fullmatch(r"(?!\d)\w+(\.(?!\d)\w+)*", source):
        return [source]

    prefixes = []
    for segment in source.split("."):
        if not re.fullmatch(r"(?!\d)\w+", segment):
            break
        prefixes.append(segment)
    if not prefixes:
        raise ValueError("mglob() pattern must start with a concrete package segment")

    try:
        package = importlib.import_module(prefix := ".".join(prefixes))
    except ImportError:
        return []

    pattern = _compile_glob(source)
    matches = {prefix} if pattern.fullmatch(prefix) else set()
    for metadata in pkgutil.walk_packages(getattr(package, "__path__", ()), prefix + "."):
        if pattern.fullmatch(metadata.name):
            matches.add(metadata.name)
    return sorted(matches)


__all__ = (
    # Functions
    "coalesce",
    "rename",
    "mirror",
    "pluralize",
    "ordinal",
    "suggest",
    "mglob",

    # Types
    "UnsetType",
    "IntrospectableType",

    # Constants
    "Unset",
)
