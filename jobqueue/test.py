# Copyright (C) 2019-2026 Rhys Ulerich <rhys.ulerich@gmail.com>
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.
"""Tests for the Queue and related classes."""
import typing
import unittest

from .future import CallbackRaised, Future, resolved
from .impl import (
    InvalidConfiguration,
    JobCancelledBeforeStart,
    Queue,
    QueueFull,
)


class Recorder:
    """A handler recording every invocation and returning fresh Futures.

    Unless some Future is given at construction, each invocation returns
    a new pending Future whose canceller records cancellation requests and
    then raises whatever cancel_raises holds, if anything.
    """

    def __init__(
        self,
        future: typing.Optional[Future] = None,
        cancel_raises: typing.Optional[Exception] = None,
    ) -> None:
        self.calls = []  # type: typing.List[typing.Tuple]
        self.futures = []  # type: typing.List[Future]
        self.cancelled = []  # type: typing.List[Future]
        self._future = future
        self._cancel_raises = cancel_raises

    def _canceller(self, future: Future) -> None:
        self.cancelled.append(future)
        if self._cancel_raises is not None:
            raise self._cancel_raises

    def __call__(self, *args, **kwargs) -> Future:
        self.calls.append((args, kwargs))
        future = self._future or Future(canceller=self._canceller)
        self.futures.append(future)
        return future


def passthrough(future: Future) -> Future:
    """Handler returning its lone argument."""
    return future


def completing(
    started: typing.List[str], pending: typing.Dict[str, Future]
) -> typing.Callable[[str], Future]:
    """Handler recording jobs, done at once unless pending maps them."""

    def handler(job: str) -> Future:
        started.append(job)
        return pending[job] if job in pending else resolved(job)

    return handler


class QueueTest(unittest.TestCase):
    """Unit tests (doubling as examples) for Queue."""

    def test_construction(self) -> None:
        """Valid limits are accepted and reported?"""
        q = Queue(1, 2, Recorder())  # type: Queue[typing.Any]
        self.assertEqual(1, q.concurrency)
        self.assertEqual(2, q.limit)
        self.assertEqual(0, len(q))
        r = Queue(1, None, Recorder())  # type: Queue[typing.Any]
        self.assertIsNone(r.limit)
        s = Queue(3, 3, Recorder())  # type: Queue[typing.Any]
        self.assertEqual(3, s.limit)

    def test_construction_invalid(self) -> None:
        """Invalid configurations raise synchronously?"""
        for concurrency, limit, handler in (
            (0, 2, Recorder()),
            (-1, None, Recorder()),
            (3, 2, Recorder()),
            (1, 0, Recorder()),
            (1.5, None, Recorder()),
            (1, 2.5, Recorder()),
            (True, None, Recorder()),
            (1, True, Recorder()),
            (1, 2, None),
            (1, None, "not callable"),
        ):
            with self.subTest(concurrency=concurrency, limit=limit):
                with self.assertRaises(InvalidConfiguration):
                    Queue(concurrency, limit, handler)  # type: ignore

    def test_invalid_configuration_is_value_error(self) -> None:
        with self.assertRaises(ValueError):
            Queue(0, None, Recorder())

    def test_submit_invokes_handler(self) -> None:
        """Below the concurrency limit the handler is called at once?"""
        handler = Recorder()
        q = Queue(1, 2, handler)  # type: Queue[typing.Any]
        f = q.submit(42, key="value")
        self.assertEqual([((42,), {"key": "value"})], handler.calls)
        self.assertEqual(1, len(q))
        self.assertEqual(1, q.running)
        self.assertEqual(0, q.waiting)
        self.assertFalse(f.done())

    def test_call_shorthand(self) -> None:
        """Calling the Queue is shorthand for submit(...)?"""
        handler = Recorder()
        q = Queue(2, None, handler)  # type: Queue[typing.Any]
        q(1)
        q.submit(2)
        self.assertEqual([((1,), {}), ((2,), {})], handler.calls)

    def test_submit_resolves(self) -> None:
        """Results from the handler propagate verbatim?"""
        q = Queue(1, 2, resolved)  # type: Queue[int]
        f = q.submit(1)
        self.assertEqual(1, f.result())
        self.assertEqual(0, len(q))
        g = q.submit(2)
        self.assertEqual(2, g.result())

    def test_submit_rejects(self) -> None:
        """Rejections from the handler propagate verbatim?"""
        error = ArithmeticError("message123")
        handler = Recorder()
        q = Queue(1, 2, handler)  # type: Queue[typing.Any]
        f = q.submit()
        handler.futures[0].set_exception(error)
        self.assertIs(error, f.exception())
        self.assertEqual(0, len(q))

    def test_handler_raises(self) -> None:
        """A handler raising synchronously rejects, never raises?"""

        def handler(x: int) -> Future[int]:
            raise UnicodeError(x)

        q = Queue(1, 2, handler)  # type: Queue[int]
        f = q.submit(1)
        self.assertIsInstance(f.exception(), UnicodeError)
        self.assertEqual(0, len(q))

    def test_handler_returns_plain_value(self) -> None:
        """A handler returning a non-Future value fulfills with it?"""
        q = Queue(1, None, len)  # type: Queue[int]
        self.assertEqual(3, q.submit("abc").result())

    def test_concurrency_reached(self) -> None:
        """Exactly concurrency jobs run with the rest waiting?"""
        for concurrency, count in ((1, 1), (1, 5), (3, 2), (3, 3), (3, 10)):
            with self.subTest(concurrency=concurrency, count=count):
                handler = Recorder()
                q = Queue(concurrency, None, handler)  # type: Queue[int]
                fs = [q.submit(i) for i in range(count)]
                self.assertEqual(min(concurrency, count), q.running)
                self.assertEqual(max(0, count - concurrency), q.waiting)
                self.assertEqual(count, len(q))
                self.assertEqual(min(concurrency, count), len(handler.calls))
                self.assertFalse(any(f.done() for f in fs))

    def test_queued_job_starts_on_completion(self) -> None:
        """A waiting job starts only once a running job completes?"""
        handler = Recorder()
        q = Queue(1, 2, handler)  # type: Queue[int]
        f = q.submit("a")
        self.assertEqual(1, len(handler.calls))
        self.assertEqual(1, len(q))

        g = q.submit("b")
        self.assertEqual(1, len(handler.calls))
        self.assertEqual(2, len(q))

        handler.futures[0].set_result("A")
        self.assertEqual("A", f.result())
        self.assertEqual(2, len(handler.calls))
        self.assertEqual((("b",), {}), handler.calls[1])
        self.assertEqual(1, len(q))
        self.assertEqual(1, q.running)

        handler.futures[1].set_result("B")
        self.assertEqual("B", g.result())
        self.assertEqual(0, len(q))

    def test_limit_reached(self) -> None:
        """Submissions beyond the limit reject without changing state?"""
        handler = Recorder()
        q = Queue(1, 2, handler)  # type: Queue[str]
        a = q.submit("a")
        b = q.submit("b")
        self.assertEqual(2, len(q))
        c = q.submit("c")
        self.assertIsInstance(c.exception(), QueueFull)
        self.assertIsInstance(c.exception(), OverflowError)
        self.assertEqual(2, len(q))
        self.assertEqual(1, len(handler.calls))

        # Completing "a" starts "b" which then occupies the running slot
        handler.futures[0].set_result("A")
        self.assertEqual("A", a.result())
        self.assertEqual(2, len(handler.calls))
        self.assertEqual(1, len(q))
        self.assertFalse(b.done())

    def test_limit_equals_concurrency(self) -> None:
        """With limit equal to concurrency nothing ever waits?"""
        handler = Recorder()
        q = Queue(2, 2, handler)  # type: Queue[int]
        q.submit(1)
        q.submit(2)
        self.assertIsInstance(q.submit(3).exception(), QueueFull)
        self.assertEqual(0, q.waiting)
        self.assertEqual(2, len(handler.calls))

    def test_fifo(self) -> None:
        """Waiting jobs start in submission order as slots free up?"""
        handler = Recorder()
        q = Queue(2, None, handler)  # type: Queue[str]
        for job in ("r1", "r2", "j1", "j2", "j3"):
            q.submit(job)
        handler.futures[1].set_result(None)
        handler.futures[0].set_exception(KeyError())
        handler.futures[2].set_result(None)
        started = [args[0] for args, _ in handler.calls]
        self.assertEqual(["r1", "r2", "j1", "j2", "j3"], started)
        self.assertEqual(2, q.running)
        self.assertEqual(0, q.waiting)

    def test_one_start_per_completion(self) -> None:
        """Running jobs never exceed concurrency across completions?"""
        observed = []  # type: typing.List[int]
        handler = Recorder()
        q = Queue(3, None, handler)  # type: Queue[int]

        def observe() -> None:
            observed.append(q.running)

        fs = [q.submit(i) for i in range(20)]
        for f in fs:
            f.when_done(observe)
        index = 0
        while index < len(handler.futures):
            handler.futures[index].set_result(index)
            self.assertLessEqual(q.running, 3)
            index += 1
        self.assertEqual(20, len(handler.calls))
        self.assertEqual(list(range(20)), [f.result() for f in fs])
        self.assertTrue(all(running <= 3 for running in observed))
        self.assertEqual(0, len(q))

    def test_resubmit_from_callback_keeps_fifo(self) -> None:
        """Callbacks of jobs done at start never overtake waiting jobs?"""
        started = []  # type: typing.List[str]
        pending = {"A": Future(), "C": Future()}  # type: typing.Dict
        q = Queue(1, None, completing(started, pending))  # type: Queue[str]
        q.submit("A")
        b = q.submit("B")
        c = q.submit("C")
        observed = []  # type: typing.List[typing.Tuple[int, int]]
        resubmitted = []  # type: typing.List[Future[str]]

        def resubmit() -> None:
            observed.append((q.running, q.waiting))
            resubmitted.append(q.submit("D"))

        b.when_done(resubmit)
        pending["A"].set_result("A")
        self.assertEqual(["A", "B", "C"], started)
        self.assertEqual([(1, 0)], observed)
        self.assertEqual("B", b.result())
        self.assertFalse(c.done())
        self.assertEqual(1, q.waiting)

        pending["C"].set_result("C")
        self.assertEqual(["A", "B", "C", "D"], started)
        self.assertEqual("C", c.result())
        self.assertEqual("D", resubmitted[0].result())
        self.assertEqual(0, len(q))

    def test_raising_callback_still_starts_waiting(self) -> None:
        """Client callbacks raising never leave a free slot unused?"""
        started = []  # type: typing.List[str]
        pending = {"A": Future(), "C": Future()}  # type: typing.Dict
        q = Queue(1, None, completing(started, pending))  # type: Queue[str]
        q.submit("A")
        b = q.submit("B")
        c = q.submit("C")

        def explode() -> None:
            raise KeyError("B")

        b.when_done(explode)
        with self.assertRaises(CallbackRaised) as cm:
            pending["A"].set_result("A")
        self.assertIsInstance(cm.exception.__cause__, KeyError)
        self.assertEqual(["A", "B", "C"], started)
        self.assertEqual("B", b.result())
        self.assertEqual(1, q.running)
        self.assertEqual(0, q.waiting)

        pending["C"].set_result("C")
        self.assertEqual("C", c.result())
        self.assertEqual(0, len(q))

    def test_many_synchronous_completions(self) -> None:
        """Long queues of immediately-done jobs drain without recursion?"""
        gate = Future()  # type: Future[int]
        q = Queue(1, None, lambda x: gate if x < 0 else resolved(x))
        blocker = q.submit(-1)
        fs = [q.submit(i) for i in range(5000)]
        self.assertEqual(5001, len(q))
        gate.set_result(-1)
        self.assertEqual(-1, blocker.result())
        self.assertEqual(list(range(5000)), [f.result() for f in fs])
        self.assertEqual(0, len(q))

    def test_cancel_running(self) -> None:
        """Cancelling an immediately started job forwards to its handler?"""
        handler = Recorder()
        q = Queue(1, 2, handler)  # type: Queue[int]
        f = q.submit()
        f.cancel()
        self.assertEqual(handler.futures, handler.cancelled)
        self.assertFalse(f.done(), "Silent canceller leaves job pending")
        self.assertEqual(1, len(q))

    def test_cancel_running_rejects(self) -> None:
        """A rejecting handler canceller rejects the job and frees its slot?"""
        error = LookupError("stop")
        handler = Recorder(cancel_raises=error)
        q = Queue(1, None, handler)  # type: Queue[int]
        f = q.submit(1)
        g = q.submit(2)
        f.cancel()
        self.assertIs(error, f.exception())
        self.assertEqual(2, len(handler.calls), "Next job started")
        self.assertEqual(1, len(q))
        self.assertFalse(g.done())

    def test_cancel_waiting(self) -> None:
        """Cancelling a waiting job removes it without invoking handler?"""
        handler = Recorder()
        q = Queue(1, 3, handler)  # type: Queue[str]
        q.submit("a")
        b = q.submit("b")
        c = q.submit("c")
        self.assertEqual(3, len(q))

        b.cancel()
        self.assertIsInstance(b.exception(), JobCancelledBeforeStart)
        self.assertEqual(2, len(q))
        self.assertEqual(1, q.waiting)
        self.assertEqual([], handler.cancelled)

        # Cancelled jobs never start, so "c" follows "a" directly
        handler.futures[0].set_result("A")
        self.assertEqual(["a", "c"], [args[0] for args, _ in handler.calls])
        self.assertFalse(c.done())

        # Repeated cancellation is harmless
        b.cancel()
        self.assertEqual(1, len(q))

    def test_cancel_previously_queued_forwards(self) -> None:
        """Cancelling a formerly queued, now running job forwards?"""
        first = Future()  # type: Future[int]
        second = Recorder()
        q = Queue(1, None, passthrough)  # type: Queue[int]
        q.submit(first)
        f = q.submit(second(2))
        first.set_result(1)
        f.cancel()
        self.assertEqual(second.futures, second.cancelled)

    def test_cancel_previously_queued_rejects(self) -> None:
        """A formerly queued job rejects with the canceller's Exception?"""
        first = Future()  # type: Future[int]
        second = Recorder(cancel_raises=NotImplementedError())
        q = Queue(1, None, passthrough)  # type: Queue[int]
        q.submit(first)
        f = q.submit(second(2))
        first.set_result(1)
        f.cancel()
        self.assertIsInstance(f.exception(), NotImplementedError)
        self.assertEqual(0, len(q))

    def test_cancel_previously_queued_silent(self) -> None:
        """A formerly queued job stays pending given a silent canceller?"""
        first = Future()  # type: Future[int]
        second = Recorder()
        q = Queue(1, None, passthrough)  # type: Queue[int]
        q.submit(first)
        f = q.submit(second(2))
        first.set_result(1)
        f.cancel()
        self.assertFalse(f.done())
        self.assertEqual(1, len(q))

        # Settlement of the underlying operation still reaches the caller
        second.futures[0].set_result(2)
        self.assertEqual(2, f.result())
        self.assertEqual(0, len(q))

    def test_cancel_next_from_rejection_callback(self) -> None:
        """Cancelling from a callback reaches the job started just before?"""
        handler = Recorder(cancel_raises=RuntimeError())
        q = Queue(1, None, handler)  # type: Queue[int]
        first = q.submit()
        second = q.submit()
        first.when_done(second.cancel)
        first.cancel()
        self.assertEqual(2, len(handler.calls), "Second started first")
        self.assertIsInstance(first.exception(), RuntimeError)
        self.assertIsInstance(second.exception(), RuntimeError)
        self.assertEqual(0, len(q))

    def test_cancel_after_done(self) -> None:
        """Cancelling settled jobs never reaches their handler Futures?"""
        handler = Recorder()
        q = Queue(1, None, handler)  # type: Queue[int]
        f = q.submit()
        handler.futures[0].set_result(1)
        f.cancel()
        self.assertEqual([], handler.cancelled)
        self.assertEqual(1, f.result())

    def test_repr(self) -> None:
        q = Queue(2, 5, Recorder())  # type: Queue[int]
        q.submit()
        self.assertIn("running=1", repr(q))
        self.assertIn("limit=5", repr(q))


if __name__ == "__main__":
    unittest.main()
