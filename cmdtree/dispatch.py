"""
cmdtree dispatcher: runs the matched handler once and maps its outcome to an exit code.

Outcome mapping
- returned None, 0 or True           → ExitCode.OK
- returned False                     → ExitCode.FAILURE
- returned an int in 1..255          → that int (reported failure, no message)
- returned any other int             → ExitCode.FAILURE (logged as a warning)
- returned (code, error)             → reported failure with str(error) as message
                                       (error None → code as-is)
- raised HandlerFailure              → its status, message on stderr
- raised Cancelled / KeyboardInterrupt, or cancelled by a signal and
  returned success                   → ExitCode.INTERRUPTED
- raised anything else, or returned an unsupported value
                                     → logged with traceback, ExitCode.FAULT

The handler runs on the calling thread, exactly once; there are no retries.
"""
import contextlib

from rich.console import Console

from .context import ExecutionContext, interruptible
from .faults import (
    ExitCode,
    HandlerFailure,
    HandlerFault,
    Cancelled,
    NoHandlerError,
    report,
)
from .logs import logger
from .parser import ResolvedInvocation
from .utils import *


class Dispatcher:
    """
    Runs handlers for resolved invocations.

    Options
    - console: rich console receiving failure reports (stderr by default).
    - colorful / fancy / prog: forwarded to fault rendering.
    - deadline: default deadline (timedelta or seconds) for contexts it builds.
    - signals: route SIGINT/SIGTERM to the context while the handler runs.
    """

    def __init__(self, *, console=Unset, colorful=True, fancy=False, prog=Unset, deadline=Unset, signals=True):
        self.console = Console(stderr=True) if console is Unset else console
        self.colorful = bool(colorful)
        self.fancy = bool(fancy)
        self.prog = coalesce(prog)
        self.deadline = deadline
        self.signals = bool(signals)

    def _report(self, fault):
        options = {"colorful": self.colorful, "fancy": self.fancy}
        if self.prog:
            options["prog"] = self.prog
        report(fault, console=self.console, **options)

    def dispatch(self, invocation, context=Unset, /):
        """
        Run invocation.leaf.handler(context, flags) and return the exit code.
        """
        if not isinstance(invocation, ResolvedInvocation):
            raise TypeError("dispatch() argument must be a resolved invocation")
        if not invocation.leaf.invocable:
            raise NoHandlerError(
                "command %r has no handler" % " ".join(invocation.route),
                path=invocation.path,
            )
        if context is Unset:
            context = ExecutionContext(invocation, self.deadline)
        elif not isinstance(context, ExecutionContext):
            raise TypeError("dispatch() context must be an execution context")

        route = " ".join(invocation.route)
        guard = interruptible(context) if self.signals else contextlib.nullcontext(context)
        try:
            with guard:
                outcome = invocation.leaf.handler(context, invocation.flags)
        except HandlerFailure as failure:
            logger.debug("command %r failed with status %d", route, failure.exit_code)
            self._report(failure)
            return failure.exit_code
        except Cancelled as cancelled:
            logger.debug("command %r was cancelled", route)
            self._report(cancelled)
            return ExitCode.INTERRUPTED
        except KeyboardInterrupt:
            context.cancel("interrupted")
            logger.debug("command %r was interrupted", route)
            self._report(Cancelled(
                "command %r was interrupted" % route,
                reason=context.reason,
                hint="the command stopped before completing",
            ))
            return ExitCode.INTERRUPTED
        except Exception as error:
            logger.exception("command %r raised an unexpected fault", route)
            self._report(HandlerFault(
                "command %r raised %s: %s" % (route, type(error).__name__, error),
                error=error,
                hint="this is a bug in the command; see the log for the traceback",
            ))
            return ExitCode.FAULT

        status = self._status(route, outcome)
        if status == ExitCode.OK and context.cancelled:
            logger.debug("command %r returned after cancellation (%s)", route, context.reason)
            return ExitCode.INTERRUPTED
        return status

    def _status(self, route, outcome):
        match outcome:
            case None:
                return ExitCode.OK
            case bool():
                return ExitCode.OK if outcome else ExitCode.FAILURE
            case int():
                return self._exit_status(route, outcome)
            case (int() as code, error) if not isinstance(code, bool):
                if error is None:
                    return self._exit_status(route, code)
                failure = HandlerFailure(str(error), status=code, error=error)
                logger.debug("command %r failed with status %d", route, failure.exit_code)
                self._report(failure)
                return failure.exit_code
            case _:
                logger.error("command %r returned an unsupported value %r", route, outcome)
                self._report(HandlerFault(
                    "command %r returned an unsupported value of type %s" % (route, type(outcome).__name__),
                    hint="handlers return None, an integer status, or raise HandlerFailure",
                ))
                return ExitCode.FAULT

    def _exit_status(self, route, status):
        # the OS keeps the low 8 bits only: 256 would read as success
        if not 0 <= status < 256:
            logger.warning("command %r returned status %d, exiting with %d", route, status, ExitCode.FAILURE)
            return ExitCode.FAILURE
        if status:
            logger.debug("command %r reported status %d", route, status)
        return status


def dispatch(invocation, context=Unset, /, **options):
    """
    Shorthand for Dispatcher(**options).dispatch(invocation, context).
    """
    return Dispatcher(**options).dispatch(invocation, context)


__all__ = (
    "Dispatcher",
    "dispatch",
)
