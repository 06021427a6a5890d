"""
Dispatcher tests (handler outcomes → exit codes, failure reports).

Conventions
- Test method names follow CamelCase per project convention.
- Reports are captured with an in-memory rich console.
"""
import io
import unittest
from unittest import TestCase

from rich.console import Console

from cmdtree import CommandNode, CommandTree, Dispatcher, ExecutionContext, dispatch, parse
from cmdtree.faults import Cancelled, ExitCode, HandlerFailure, NoHandlerError


def invocation(handler, *tokens):
    tree = CommandTree("app")
    tree.register((), CommandNode("run", handler=handler))
    return parse(tree, ["run", *tokens], environ={})


class DispatcherTest(TestCase):

    def setUp(self):
        self.stream = io.StringIO()
        self.dispatcher = Dispatcher(
            console=Console(file=self.stream, width=120),
            colorful=False,
            prog="app",
            signals=False,
        )

    def run_handler(self, handler, *tokens):
        return self.dispatcher.dispatch(invocation(handler, *tokens))

    def testNoneIsSuccess(self):
        self.assertEqual(self.run_handler(lambda context, flags: None), ExitCode.OK)
        self.assertEqual(self.stream.getvalue(), "")

    def testHandlerReceivesContextAndFlags(self):
        seen = {}

        def handler(context, flags):
            seen["context"] = context
            seen["flags"] = flags

        resolved = invocation(handler, "a")
        self.dispatcher.dispatch(resolved)
        self.assertIsInstance(seen["context"], ExecutionContext)
        self.assertIs(seen["context"].invocation, resolved)
        self.assertEqual(seen["context"].positionals, ("a",))
        self.assertIs(seen["flags"], resolved.flags)

    def testExplicitContextIsUsed(self):
        context = ExecutionContext()
        seen = []
        self.dispatcher.dispatch(invocation(lambda context, flags: seen.append(context)), context)
        self.assertIs(seen[0], context)

    def testIntegerStatus(self):
        self.assertEqual(self.run_handler(lambda context, flags: 0), 0)
        self.assertEqual(self.run_handler(lambda context, flags: 3), 3)

    def testStatusOutsideExitRangeIsFailure(self):
        for status in (256, 512, -1):
            with self.subTest(status=status):
                with self.assertLogs("cmdtree", level="WARNING"):
                    self.assertEqual(self.run_handler(lambda context, flags: status), ExitCode.FAILURE)
        with self.assertLogs("cmdtree", level="WARNING"):
            self.assertEqual(self.run_handler(lambda context, flags: (256, None)), ExitCode.FAILURE)
        self.assertEqual(self.run_handler(lambda context, flags: 255), 255)

    def testHandlerFailureStatusOutsideExitRange(self):
        def handler(context, flags):
            raise HandlerFailure("overflow", status=256)

        self.assertEqual(self.run_handler(handler), ExitCode.FAILURE)
        self.assertEqual(HandlerFailure("x", status=-3).exit_code, ExitCode.FAILURE)
        self.assertEqual(HandlerFailure("x", status=255).exit_code, 255)

    def testBoolStatus(self):
        self.assertEqual(self.run_handler(lambda context, flags: True), ExitCode.OK)
        self.assertEqual(self.run_handler(lambda context, flags: False), ExitCode.FAILURE)

    def testTupleWithError(self):
        status = self.run_handler(lambda context, flags: (4, ValueError("disk full")))
        self.assertEqual(status, 4)
        self.assertIn("disk full", self.stream.getvalue())

    def testTupleWithoutError(self):
        self.assertEqual(self.run_handler(lambda context, flags: (0, None)), 0)

    def testHandlerFailure(self):
        def handler(context, flags):
            raise HandlerFailure("port 8080 already in use", status=3)

        self.assertEqual(self.run_handler(handler), 3)
        output = self.stream.getvalue()
        self.assertIn("port 8080 already in use", output)
        self.assertIn("13101", output)

    def testHandlerFailureDefaultsToOne(self):
        def handler(context, flags):
            raise HandlerFailure("nope")

        self.assertEqual(self.run_handler(handler), ExitCode.FAILURE)

    def testHandlerFailureRejectsBadStatus(self):
        with self.assertRaises(TypeError):
            HandlerFailure("nope", status="3")
        with self.assertRaises(TypeError):
            HandlerFailure("nope", status=True)
        self.assertEqual(HandlerFailure("nope", status=0).exit_code, ExitCode.FAILURE)

    def testUnexpectedExceptionIsAFault(self):
        def handler(context, flags):
            raise RuntimeError("boom")

        with self.assertLogs("cmdtree", level="ERROR") as logs:
            self.assertEqual(self.run_handler(handler), ExitCode.FAULT)
        self.assertIn("unexpected fault", logs.output[0])
        self.assertIn("RuntimeError: boom", self.stream.getvalue())

    def testUnsupportedReturnIsAFault(self):
        with self.assertLogs("cmdtree", level="ERROR"):
            self.assertEqual(self.run_handler(lambda context, flags: "done"), ExitCode.FAULT)

    def testCancelledMapsToInterrupted(self):
        def handler(context, flags):
            context.cancel("shutting down")
            context.check()

        self.assertEqual(self.run_handler(handler), ExitCode.INTERRUPTED)
        self.assertIn("shutting down", self.stream.getvalue())

    def testKeyboardInterruptMapsToInterrupted(self):
        contexts = []

        def handler(context, flags):
            contexts.append(context)
            raise KeyboardInterrupt

        self.assertEqual(self.run_handler(handler), ExitCode.INTERRUPTED)
        self.assertTrue(contexts[0].cancelled)

    def testSuccessAfterCancellationIsInterrupted(self):
        def handler(context, flags):
            context.cancel("received SIGINT")

        self.assertEqual(self.run_handler(handler), ExitCode.INTERRUPTED)

    def testHandlerRunsOnce(self):
        calls = []

        def handler(context, flags):
            calls.append(1)
            raise RuntimeError("fail")

        with self.assertLogs("cmdtree", level="ERROR"):
            self.run_handler(handler)
        self.assertEqual(calls, [1])

    def testRejectsNonInvocation(self):
        with self.assertRaises(TypeError):
            self.dispatcher.dispatch(("run",))
        with self.assertRaises(TypeError):
            self.dispatcher.dispatch(invocation(lambda context, flags: None), "context")

    def testRejectsLeafWithoutHandler(self):
        resolved = invocation(lambda context, flags: None)
        stripped = resolved._replace(path=(CommandNode("bare"),))
        with self.assertRaises(NoHandlerError):
            self.dispatcher.dispatch(stripped)

    def testModuleLevelDispatch(self):
        status = dispatch(
            invocation(lambda context, flags: 5),
            console=Console(file=io.StringIO()),
            signals=False,
        )
        self.assertEqual(status, 5)

    def testDeadlineIsApplied(self):
        dispatcher = Dispatcher(console=Console(file=io.StringIO()), deadline=60, signals=False)
        seen = []
        dispatcher.dispatch(invocation(lambda context, flags: seen.append(context.remaining())))
        self.assertGreater(seen[0], 0)
        self.assertLessEqual(seen[0], 60)

    def testCancelledFaultIsADispatchError(self):
        self.assertEqual(Cancelled("x").exit_code, ExitCode.INTERRUPTED)


if __name__ == "__main__":
    unittest.main()
