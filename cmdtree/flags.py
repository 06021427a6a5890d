r"""
cmdtree flag specifications.

Overview
- Kind: the textual encodings a flag accepts (bool, string, int, float,
  duration, enum, strings).
- FlagSpec: one named argument surface owned by a command node: name, aliases,
  kind, default, required, terminal, plus help/UX metadata.
- parse_duration(text): Go-style duration grammar ("300ms", "1h30m").
- HELP / VERSION: the reserved terminal flags the tree installs.

Spellings
- name "port" is spelled "--port"; an alias of one character ("p") is spelled
  "-p", longer aliases ("listen") are spelled "--listen".
- bool flags additionally accept the negated "--no-<name>" spelling.

Metadata (sanitized on construction)
- name / aliases: r"[^\W\d_](-?[^\W_]+)*" (unicode letters allowed), unique.
- kind: Kind member or its string value.
- default: Unset (none), a value of the flag's kind, or a string that is
  converted through the kind (so defaults can be written as on the command line).
- required: forbidden for bool and terminal flags.
- terminal: bool only; short-circuits parsing with action (defaults to name).
- envar: environment variable consulted when the flag is absent.
- choices: enum only, non-empty, no duplicates.
- metavar / descr: optional non-empty strings.
- hidden / locked: help visibility / must precede the first positional.

Quick example:
    >>> port = FlagSpec("port", "p", kind="int", default=8080, envar="APP_PORT")
    >>> port.spellings
    ('--port', '-p')
    >>> port.convert("9090")
    9090
"""
import copy
import math
import re
from datetime import timedelta
from enum import StrEnum

from rich.text import Text

from .faults import DuplicateFlagSpecError
from .utils import *


class Kind(StrEnum):
    """
    textual encodings a flag accepts.

    - BOOL: presence-only, no value; "--no-<name>" negates.
    - STRING: any text.
    - INT: base-10 integer.
    - FLOAT: decimal number (nan/inf rejected).
    - DURATION: numeric + unit sequence, converted to datetime.timedelta.
    - ENUM: one of the declared choices.
    - STRINGS: repeatable text, values accumulate in a list.
    """
    BOOL = "bool"
    STRING = "string"
    INT = "int"
    FLOAT = "float"
    DURATION = "duration"
    ENUM = "enum"
    STRINGS = "strings"


_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,  # U+00B5
    "μs": 1e-6,  # U+03BC
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION = re.compile(r"(?P<number>\d+(?:\.\d*)?|\.\d+)(?P<unit>ns|us|µs|μs|ms|s|m|h)")

_TRUTHY = frozenset({"1", "t", "true", "y", "yes", "on"})
_FALSY = frozenset({"0", "f", "false", "n", "no", "off"})

_NAME = re.compile(r"[^\W\d_](-?[^\W_]+)*")


def parse_duration(text, /):
    """
    Parse a duration such as "300ms", "-1.5h" or "2h45m" into a timedelta.

    grammar
    - optional sign, then one or more <number><unit> pairs with no separators.
    - units: ns, us (µs), ms, s, m, h. A bare "0" is accepted.

    raises
    - TypeError when text is not a string.
    - ValueError on any other shape (missing unit, unknown unit, empty).
    """
    if not isinstance(text, str):
        raise TypeError("parse_duration() argument must be a string")

    source = text.strip()
    sign = -1 if source.startswith("-") else 1
    source = source[1:] if source[:1] in ("+", "-") else source

    if source == "0":
        return timedelta(0)
    if not source:
        raise ValueError("invalid duration %r" % text)

    seconds = 0.0
    position = 0
    while position < len(source):
        if not (match := _DURATION.match(source, position)):
            raise ValueError("invalid duration %r (expected forms like 300ms, 1h30m)" % text)
        seconds += float(match["number"]) * _UNITS[match["unit"]]
        position = match.end()
    return timedelta(seconds=sign * seconds)


def parse_bool(text, /):
    """
    Parse a textual boolean (environment variables, string defaults).
    """
    if (lowered := str(text).strip().lower()) in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ValueError("invalid boolean %r (expected true or false)" % text)


def _sanitize_names(cls, metadata, /):
    """
    Validate name/aliases and stabilize aliases into a tuple (declaration order).

    Raises
    - TypeError: non-string entries.
    - ValueError: empty or malformed entries, or a spelling used twice.
    """
    spellings = set()
    for position, name in enumerate((metadata["name"], *metadata["aliases"])):
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} names must be strings")
        elif not (name := name.strip().lstrip("-")):
            raise ValueError(f"{cls.__typename__} names cannot be empty-strings")
        elif not _NAME.fullmatch(name):
            raise ValueError(f"{cls.__typename__} name {name!r} is not a valid flag name")
        elif name in spellings:
            raise ValueError(f"{cls.__typename__} names cannot contain duplicates")
        elif position == 0 and len(name) == 1:
            raise ValueError(f"{cls.__typename__} primary name {name!r} must be longer than one character")
        spellings.add(name)

    metadata["name"] = metadata["name"].strip().lstrip("-")
    metadata["aliases"] = tuple(alias.strip().lstrip("-") for alias in metadata["aliases"])


def _sanitize_kind(cls, metadata, /):
    """
    Validate kind and the fields that depend on it (choices, required, terminal).
    """
    try:
        kind = metadata["kind"] = Kind(metadata["kind"])
    except ValueError:
        raise ValueError(f"{cls.__typename__} 'kind' must be one of %s" % ", ".join(map(repr, map(str, Kind)))) from None

    choices = metadata["choices"]
    if isinstance(choices, str):
        raise TypeError(f"{cls.__typename__} 'choices' must be an iterable of strings")
    choices = tuple(choices)
    if kind is Kind.ENUM:
        if not choices:
            raise ValueError(f"{cls.__typename__} enum kind requires 'choices'")
        if not all(isinstance(choice, str) for choice in choices):
            raise TypeError(f"{cls.__typename__} 'choices' must be an iterable of strings")
        if len(set(choices)) != len(choices):
            raise ValueError(f"{cls.__typename__} 'choices' cannot contain duplicates")
    elif choices:
        raise TypeError(f"{cls.__typename__} only enum kind accepts 'choices'")
    metadata["choices"] = choices

    if metadata["terminal"] and kind is not Kind.BOOL:
        raise TypeError(f"{cls.__typename__} terminal flag must be of bool kind")
    if metadata["required"] and (kind is Kind.BOOL or metadata["terminal"]):
        raise TypeError(f"{cls.__typename__} {kind} flag cannot be required")
    if metadata["locked"] and metadata["terminal"]:
        raise TypeError(f"{cls.__typename__} terminal flag cannot be position-locked")


def _sanitize_strings(cls, metadata, /):
    """
    Validate descr/metavar/envar: Unset or non-empty strings (descr may be rich Text).
    """
    for name in ("descr", "metavar", "envar"):
        if not isinstance(object := metadata[name], str | Text | Unset) or (name != "descr" and isinstance(object, Text)):
            raise TypeError(f"{cls.__typename__} {name!r} must be a string")
        elif isinstance(object, str) and not (object := object.strip()):
            raise ValueError(f"{cls.__typename__} {name!r} cannot be empty")
        metadata[name] = object

    if metadata["envar"] and not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", metadata["envar"]):
        raise ValueError(f"{cls.__typename__} 'envar' must be a valid environment variable name")

    action = metadata["action"]
    if action is not Unset and not (isinstance(action, str) or callable(action)):
        raise TypeError(f"{cls.__typename__} 'action' must be a string or a callable")
    if action is not Unset and not metadata["terminal"]:
        raise TypeError(f"{cls.__typename__} only terminal flags accept an 'action'")


class FlagSpec(metaclass=IntrospectableType):
    """
    Named argument surface declared by a command node.

    Flags declared by a node are visible to every deeper node on a parsed path;
    deeper declarations of the same name shadow shallower ones.

    Properties
    - every name in __introspectable__ is a read-only attribute.
    - spellings: token forms that select this flag ("--port", "-p").
    - negation: "--no-<name>" for bool flags, None otherwise.
    - metavar defaults to the kind ("<int>", "<duration>") in help.
    """

    __introspectable__ = (
        "name",
        "aliases",
        "kind",
        "default",
        "required",
        "terminal",
        "descr",
        "envar",
        "choices",
        "metavar",
        "hidden",
        "locked",
        "action",
    )

    __displayable__ = (
        "name",
        "aliases",
        "kind",
        "default",
        "required",
        "terminal",
    )

    def __init__(
            self,
            name,
            /,
            *aliases,
            kind=Kind.STRING,
            default=Unset,
            required=False,
            terminal=False,
            descr=Unset,
            envar=Unset,
            choices=(),
            metavar=Unset,
            hidden=False,
            locked=False,
            action=Unset,
    ):
        metadata = {
            "name": name,
            "aliases": aliases,
            "kind": kind,
            "default": default,
            "required": bool(required),
            "terminal": bool(terminal),
            "descr": descr,
            "envar": envar,
            "choices": choices,
            "metavar": metavar,
            "hidden": bool(hidden),
            "locked": bool(locked),
            "action": action,
        }
        cls = type(self)
        _sanitize_names(cls, metadata)
        _sanitize_kind(cls, metadata)
        _sanitize_strings(cls, metadata)

        for name, object in metadata.items():
            setattr(self, "_" + name, object)

        if self.terminal:
            self._action = coalesce(self._action, self.name)
            if self.hidden and self.action in ("help", "version"):
                raise TypeError(f"{cls.__typename__} {self.action} flag cannot be hidden")

        # Defaults written as command-line text are converted through the kind.
        match self.kind, default:
            case _, UnsetType():
                self._default = False if self.kind is Kind.BOOL else [] if self.kind is Kind.STRINGS else Unset
            case Kind.BOOL, str():
                self._default = parse_bool(default)
            case Kind.STRINGS, str():
                self._default = [default]
            case Kind.STRINGS, _:
                if isinstance(default, bytes) or not hasattr(default, "__iter__"):
                    raise TypeError(f"{cls.__typename__} strings default must be an iterable of strings")
                self._default = list(default)
            case _, str():
                try:
                    self._default = self.convert(default)
                except ValueError as error:
                    raise ValueError(f"{cls.__typename__} {self.name!r} default: {error}") from None
            case Kind.ENUM, _:
                raise TypeError(f"{cls.__typename__} enum default must be one of its choices")

        if self.required and default is not Unset:
            raise TypeError(f"{cls.__typename__} {self.name!r} cannot be required and have a default")

    @property
    def spellings(self):
        """
        Token spellings selecting this flag, primary name first.
        """
        return ("--" + self.name, *(("-" if len(alias) == 1 else "--") + alias for alias in self.aliases))

    @property
    def negation(self):
        return "--no-" + self.name if self.kind is Kind.BOOL and not self.terminal else None

    @property
    def takes_value(self):
        return self.kind is not Kind.BOOL

    @property
    def repeatable(self):
        return self.kind is Kind.STRINGS

    @property
    def label(self):
        """
        Placeholder shown in help and messages: metavar, or the kind in angle brackets.
        """
        if self.metavar:
            return self.metavar
        if self.kind is Kind.ENUM:
            return "{%s}" % ",".join(self.choices)
        return "<%s>" % (Kind.STRING if self.kind is Kind.STRINGS else self.kind)

    def fresh_default(self):
        """
        A copy of the default, so repeatable flags never share list instances.
        """
        return copy.copy(self._default)

    def convert(self, raw, /):
        """
        Convert one textual value through the flag's kind.

        raises ValueError with a short, lowercased reason on failure.
        """
        if not isinstance(raw, str):
            raise TypeError(f"{type(self).__typename__} convert() argument must be a string")

        match self.kind:
            case Kind.BOOL:
                return parse_bool(raw)
            case Kind.STRING | Kind.STRINGS:
                return raw
            case Kind.INT:
                if not re.fullmatch(r"[+-]?\d+", raw.strip()):
                    raise ValueError("%r is not an integer" % raw)
                return int(raw)
            case Kind.FLOAT:
                try:
                    value = float(raw)
                except ValueError:
                    raise ValueError("%r is not a number" % raw) from None
                if not math.isfinite(value):
                    raise ValueError("%r is not a finite number" % raw)
                return value
            case Kind.DURATION:
                return parse_duration(raw)
            case Kind.ENUM:
                if raw not in self.choices:
                    raise ValueError("%r is not one of %s" % (raw, ", ".join(map(repr, self.choices))))
                return raw

        raise RuntimeError("unreachable")


def index_flags(flags, /, *, owner="command-node"):
    """
    Validate a sequence of FlagSpecs declared by one node.

    Returns a dict spelling → FlagSpec (including bool negations).

    Raises
    - TypeError: an entry is not a FlagSpec.
    - DuplicateFlagSpecError: a name or alias is declared twice on the node.
    """
    spellings = {}
    for flag in flags:
        if not isinstance(flag, FlagSpec):
            raise TypeError(f"{owner} 'flags' must be an iterable of flag specs")
        for spelling in filter(None, (*flag.spellings, flag.negation)):
            if spelling in spellings:
                raise DuplicateFlagSpecError(
                    "flag %r is declared twice on %s" % (spelling, owner),
                    spelling=spelling,
                    flag=flag,
                    hint="rename one of the flags or drop the duplicated alias",
                )
            spellings[spelling] = flag
    return spellings


HELP = FlagSpec(
    "help", "h",
    kind=Kind.BOOL,
    terminal=True,
    action="help",
    descr="show this help message and exit",
)

VERSION = FlagSpec(
    "version",
    kind=Kind.BOOL,
    terminal=True,
    action="version",
    descr="show the version and exit",
)


__all__ = (
    # Types
    "Kind",
    "FlagSpec",

    # Functions
    "parse_duration",
    "parse_bool",
    "index_flags",

    # Reserved terminal flags
    "HELP",
    "VERSION",
)
