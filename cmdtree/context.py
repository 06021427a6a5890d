"""
cmdtree execution context: what a handler receives besides its flags.

What this module provides
- ExecutionContext: the ResolvedInvocation being run, a cancellation signal
  (a threading.Event, so worker threads started by a handler can observe it)
  and an optional deadline.
- interruptible(context): context manager routing SIGINT/SIGTERM to
  context.cancel() while a handler runs; a second signal falls back to
  KeyboardInterrupt so a stuck handler can still be stopped.

Handlers poll:
    def serve(context, flags):
        while not context.cancelled:
            ...
            context.wait(1.0)

or checkpoint:
    context.check()  # raises Cancelled once cancelled or past the deadline
"""
import contextlib
import signal
import threading
import time
from datetime import timedelta

from .faults import Cancelled
from .logs import logger
from .utils import *


class ExecutionContext:
    """
    Cancellation and deadline carrier for one dispatch.

    Properties
    - invocation: the ResolvedInvocation (None when built by hand).
    - flags / positionals / path: shortcuts into the invocation.
    - cancelled / reason: whether and why cancel() was called.
    - deadline: absolute clock() value, or None.
    - expired: the deadline has passed.
    """

    def __init__(self, invocation=Unset, /, deadline=Unset, *, clock=time.monotonic):
        self._invocation = coalesce(invocation)
        self._clock = clock
        self._event = threading.Event()
        self._reason = None

        match deadline:
            case UnsetType() | None:
                self._deadline = None
            case timedelta():
                self._deadline = clock() + deadline.total_seconds()
            case bool():
                raise TypeError("ExecutionContext 'deadline' must be a timedelta or a number of seconds")
            case int() | float():
                self._deadline = clock() + deadline
            case _:
                raise TypeError("ExecutionContext 'deadline' must be a timedelta or a number of seconds")

    def __repr__(self):
        return "execution-context(path=%r, cancelled=%r, deadline=%r)" % (
            self.path, self.cancelled, self._deadline,
        )

    @property
    def invocation(self):
        return self._invocation

    @property
    def flags(self):
        return self._invocation.flags if self._invocation is not None else {}

    @property
    def positionals(self):
        return self._invocation.positionals if self._invocation is not None else ()

    @property
    def path(self):
        return self._invocation.route if self._invocation is not None else ()

    @property
    def cancelled(self):
        return self._event.is_set()

    @property
    def reason(self):
        return self._reason

    @property
    def deadline(self):
        return self._deadline

    @property
    def expired(self):
        return self._deadline is not None and self._clock() >= self._deadline

    def cancel(self, reason="cancelled", /):
        """
        Signal cancellation; the first reason given is kept.
        """
        if not self._event.is_set():
            self._reason = reason
            self._event.set()
            logger.debug("context cancelled: %s", reason)

    def remaining(self):
        """
        Seconds left before the deadline (never negative), or None without one.
        """
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def wait(self, timeout=None, /):
        """
        Block until cancelled, the deadline passes, or timeout seconds elapse.

        Returns True when the context was cancelled; reaching the deadline
        cancels it with "deadline exceeded".
        """
        if (remaining := self.remaining()) is not None:
            timeout = remaining if timeout is None else min(timeout, remaining)
        if self._event.wait(timeout):
            return True
        if self.expired:
            self.cancel("deadline exceeded")
            return True
        return False

    def check(self):
        """
        Raise Cancelled when the context was cancelled or its deadline passed.
        """
        if self.expired and not self.cancelled:
            self.cancel("deadline exceeded")
        if self.cancelled:
            raise Cancelled(
                "command %r was cancelled: %s" % (" ".join(self.path), self._reason),
                reason=self._reason,
                hint="the command stopped before completing",
            )


@contextlib.contextmanager
def interruptible(context, /, signals=(signal.SIGINT, signal.SIGTERM)):
    """
    Route signals to context.cancel() for the duration of the block.

    The first signal cancels the context; a second one raises KeyboardInterrupt.
    Previous handlers are restored on exit. Outside the main thread, signal
    handlers cannot be installed and the block runs unchanged.
    """
    if not isinstance(context, ExecutionContext):
        raise TypeError("interruptible() argument must be an execution context")
    if threading.current_thread() is not threading.main_thread():
        yield context
        return

    def handler(number, frame):
        if context.cancelled:
            raise KeyboardInterrupt
        context.cancel("received %s" % signal.Signals(number).name)

    previous = {}
    try:
        for number in signals:
            previous[number] = signal.signal(number, handler)
        yield context
    finally:
        for number, restored in previous.items():
            signal.signal(number, signal.SIG_DFL if restored is None else restored)


__all__ = (
    "ExecutionContext",
    "interruptible",
)
