"""
cmdtree faults (errors raised while registering, parsing and dispatching) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing fault,
  grouped by phase so logs and searches stay predictable.
- ExitCode: the process exit statuses the engine surfaces.
- CommandError: base type carrying a message plus read-only options; knows how
  to render itself through rich (header, message, hint).
- ParseError / RegistrationError / DispatchError: the three phases of the taxonomy.
- report(): central entry point to print a fault on the diagnostic stream.

Phases
- registration (12xxx): programming errors in a collaborator; never caught by
  the engine, they abort startup.
- parsing (11xxx): user input errors; recovered by the driver into a usage
  message and ExitCode.USAGE.
- dispatch (13xxx): the handler's own reported failure, or an unexpected fault
  converted to ExitCode.FAULT.

UX goals
- Position-first messages: "unknown flag '--prot' at third position".
- One short title, one-sentence body, a single actionable hint.
- Lowercased tone; palette configurable through __styles__ in __main__.
"""
import copy
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes (stable identifiers).

    grouping
    - routing (1110x): UNKNOWN_COMMAND, NO_HANDLER
    - flags (1120x/1121x): MALFORMED_TOKEN, UNKNOWN_FLAG, FLAG_ASSIGNMENT,
      FLAG_VALUE_REQUIRED, DUPLICATE_FLAG, MISSING_REQUIRED_FLAG,
      FLAG_CONVERSION, INVALID_CHOICE, LOCKED_FLAG
    - registration (1210x): DUPLICATE_COMMAND, DUPLICATE_FLAG_SPEC, SEALED_TREE,
      INCLUDE_FAILURE
    - dispatch (1310x): HANDLER_FAILURE, HANDLER_FAULT, CANCELLED

    normalize() lets the host remap codes to its own labels via __codes__ in __main__.
    """
    # --- routing (11xxx) ---
    UNKNOWN_COMMAND       = 11101
    NO_HANDLER            = 11102

    # --- flags (11xxx) ---
    MALFORMED_TOKEN       = 11201
    UNKNOWN_FLAG          = 11202
    FLAG_ASSIGNMENT       = 11203
    FLAG_VALUE_REQUIRED   = 11204
    DUPLICATE_FLAG        = 11205
    MISSING_REQUIRED_FLAG = 11206
    FLAG_CONVERSION       = 11207
    INVALID_CHOICE        = 11208
    LOCKED_FLAG           = 11209

    # --- registration (12xxx) ---
    DUPLICATE_COMMAND     = 12101
    DUPLICATE_FLAG_SPEC   = 12102
    SEALED_TREE           = 12103
    INCLUDE_FAILURE       = 12104

    # --- dispatch (13xxx) ---
    HANDLER_FAILURE       = 13101
    HANDLER_FAULT         = 13102
    CANCELLED             = 13103

    def normalize(self):
        """
        return the host label for this code, or its numeric value as a string.
        """
        return str(getattr(sys.modules.get("__main__"), "__codes__", {}).get(self, self.value))


class ExitCode(IntEnum):
    """
    process exit statuses.

    - OK: the handler succeeded, or an explicit help/version short-circuit ran.
    - FAILURE: default status of a handler-reported failure.
    - FAULT: the handler raised something unexpected.
    - USAGE: any parse error (EX_USAGE from sysexits.h).
    - INTERRUPTED: the run was cancelled by an interrupt (128 + SIGINT).
    """
    OK          = 0
    FAILURE     = 1
    FAULT       = 2
    USAGE       = 64
    INTERRUPTED = 130


class CommandError(Exception):
    """
    base of every fault the engine raises.

    a fault is a message plus read-only options. the options always make sense
    to a renderer (title, hint, prog, colorful, fancy) and otherwise carry the
    context of the fault (input, index, path, suggestions, flag, ...), which is
    also reachable as attributes: error.flag, error.suggestions.

    subclasses declare
    - __fault__: the FaultCode
    - __title__: short header title
    - exit_code: the status a driver should exit with
    """
    __fault__ = Unset
    __title__ = "command error"
    exit_code = ExitCode.FAULT

    def __init__(self, message, /, **options):
        if not isinstance(message, str):
            raise TypeError(f"{type(self).__name__}() message must be a string")
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __getattr__(self, name):
        try:
            return self.__dict__["options"][name]
        except KeyError:
            raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}") from None

    def __str__(self):
        return self.message

    @property
    def code(self):
        return self.__fault__

    @property
    def title(self):
        return self.options.get("title", self.__title__)

    @property
    def hint(self):
        return self.options.get("hint")

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})

    def __rich__(self):
        main = sys.modules.get("__main__")
        colorful = self.options.get("colorful", True)
        fancy = self.options.get("fancy", False)

        styles = defaultdict(str, {
            # header parts
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "error-title": "bold #FF4DA6",

            # body
            "error-message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        } | getattr(main, "__styles__", {}))

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            return Text(str(fragment), styles[style] if colorful else "")

        prog = getattr(main, "__prog__", self.options.get("prog") or "cmdtree")
        header = Text.assemble(
            "[ ",
            text(prog, "prog-name"),
            " - ",
            text(self.code.normalize() if self.code else "?", "code"),
            " | ",
            text(self.title.title(), "error-title"),
            " ]",
        )
        parts = [text(self.message, "error-message")]
        if self.hint:
            parts.append(Text.assemble(text(" → ", "hint-arrow"), text(self.hint, "hint")))

        if fancy:
            return Panel(Group(*parts), title=header, title_align="left")
        return Group(header, *parts)


# --- parse-time faults ----------------------------------------------------------------

class ParseError(CommandError):
    __title__ = "parse error"
    exit_code = ExitCode.USAGE


class UnknownCommandError(ParseError):
    __fault__ = FaultCode.UNKNOWN_COMMAND
    __title__ = "unknown command"


class NoHandlerError(ParseError):
    __fault__ = FaultCode.NO_HANDLER
    __title__ = "incomplete command"


class MalformedTokenError(ParseError):
    __fault__ = FaultCode.MALFORMED_TOKEN
    __title__ = "malformed flag"


class UnknownFlagError(ParseError):
    __fault__ = FaultCode.UNKNOWN_FLAG
    __title__ = "unknown flag"


class FlagAssignmentError(ParseError):
    __fault__ = FaultCode.FLAG_ASSIGNMENT
    __title__ = "flag cannot take a value"


class FlagValueRequiredError(ParseError):
    __fault__ = FaultCode.FLAG_VALUE_REQUIRED
    __title__ = "missing flag value"


class DuplicateFlagError(ParseError):
    __fault__ = FaultCode.DUPLICATE_FLAG
    __title__ = "duplicated flag"


class MissingRequiredFlagError(ParseError):
    __fault__ = FaultCode.MISSING_REQUIRED_FLAG
    __title__ = "missing required flag"


class FlagConversionError(ParseError):
    __fault__ = FaultCode.FLAG_CONVERSION
    __title__ = "invalid flag value"


class InvalidChoiceError(FlagConversionError):
    __fault__ = FaultCode.INVALID_CHOICE
    __title__ = "invalid choice"


class LockedFlagError(ParseError):
    __fault__ = FaultCode.LOCKED_FLAG
    __title__ = "misplaced flag"


# --- registration-time faults ---------------------------------------------------------

class RegistrationError(CommandError):
    __title__ = "registration error"
    exit_code = ExitCode.FAULT


class DuplicateCommandError(RegistrationError):
    __fault__ = FaultCode.DUPLICATE_COMMAND
    __title__ = "duplicated command"


class DuplicateFlagSpecError(RegistrationError):
    __fault__ = FaultCode.DUPLICATE_FLAG_SPEC
    __title__ = "duplicated flag declaration"


class SealedTreeError(RegistrationError):
    __fault__ = FaultCode.SEALED_TREE
    __title__ = "sealed command tree"


class IncludeError(RegistrationError):
    __fault__ = FaultCode.INCLUDE_FAILURE
    __title__ = "include failure"


# --- dispatch-time faults -------------------------------------------------------------

class DispatchError(CommandError):
    __title__ = "dispatch error"


class HandlerFailure(DispatchError):
    """
    a failure reported by the handler itself.

    handlers raise it to exit with a chosen status and a message:
        raise HandlerFailure("port 8080 already in use", status=3)
    status defaults to ExitCode.FAILURE; 0 and values a process cannot exit
    with (outside 1..255) become ExitCode.FAILURE.
    """
    __fault__ = FaultCode.HANDLER_FAILURE
    __title__ = "command failed"

    def __init__(self, message, /, **options):
        status = options.get("status", ExitCode.FAILURE)
        if isinstance(status, bool) or not isinstance(status, int):
            raise TypeError("HandlerFailure 'status' must be an integer")
        if not 0 < status < 256:
            status = ExitCode.FAILURE
        super().__init__(message, **options | {"status": status})

    @property
    def exit_code(self):
        return self.options["status"]


class HandlerFault(DispatchError):
    __fault__ = FaultCode.HANDLER_FAULT
    __title__ = "unexpected fault"
    exit_code = ExitCode.FAULT


class Cancelled(DispatchError):
    """
    raised by ExecutionContext.check() once the run was cancelled or its deadline passed.
    """
    __fault__ = FaultCode.CANCELLED
    __title__ = "cancelled"
    exit_code = ExitCode.INTERRUPTED


def report(fault, /, *, console=console, **options):
    """
    print a fault on the diagnostic stream.

    options are merged into the fault via copy.replace before rendering (prog,
    colorful, fancy, hint, ...). the fault is never raised from here.
    """
    if not isinstance(fault, CommandError):
        raise TypeError("report() argument must be a command error")
    console.print(copy.replace(fault, **options) if options else fault)


__all__ = (
    "FaultCode",
    "ExitCode",
    "CommandError",
    "ParseError",
    "UnknownCommandError",
    "NoHandlerError",
    "MalformedTokenError",
    "UnknownFlagError",
    "FlagAssignmentError",
    "FlagValueRequiredError",
    "DuplicateFlagError",
    "MissingRequiredFlagError",
    "FlagConversionError",
    "InvalidChoiceError",
    "LockedFlagError",
    "RegistrationError",
    "DuplicateCommandError",
    "DuplicateFlagSpecError",
    "SealedTreeError",
    "IncludeError",
    "DispatchError",
    "HandlerFailure",
    "HandlerFault",
    "Cancelled",
    "report",
)
