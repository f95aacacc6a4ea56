# Copyright (C) 2019-2026 Rhys Ulerich <rhys.ulerich@gmail.com>
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.
"""Tests for Queue.all(...) and Queue.any(...)."""
import collections
import typing
import unittest

from .future import Future, rejected, resolved
from .impl import EmptyJobSet, InvalidConfiguration, Queue
from .test import Recorder, passthrough


class Counting:
    """Wraps a handler counting how many times it was invoked."""

    def __init__(self, handler: typing.Callable) -> None:
        self.started = 0
        self._handler = handler

    def __call__(self, *args, **kwargs) -> Future:
        self.started += 1
        return self._handler(*args, **kwargs)


def pending(cancelled: typing.List[str], name: str, raises: bool = False):
    """A pending Future whose canceller records name when invoked."""

    def canceller(_: Future) -> None:
        cancelled.append(name)
        if raises:
            raise RuntimeError(name)

    return Future(canceller=canceller)


class AllTest(unittest.TestCase):
    """Unit tests (doubling as examples) for Queue.all(...)."""

    def test_invalid_concurrency(self) -> None:
        f = Queue.all(0, [1], resolved)
        self.assertIsInstance(f.exception(), InvalidConfiguration)

    def test_invalid_handler(self) -> None:
        f = Queue.all(1, [1], "not callable")  # type: ignore
        self.assertIsInstance(f.exception(), InvalidConfiguration)

    def test_invalid_leaves_jobs_untouched(self) -> None:
        """Configuration is checked before jobs are consumed?"""
        jobs = iter([1, 2, 3])
        Queue.all(0, jobs, resolved)
        self.assertEqual([1, 2, 3], list(jobs))

    def test_empty(self) -> None:
        """No jobs fulfills at once without invoking the handler?"""
        handler = Recorder()
        self.assertEqual([], Queue.all(1, [], handler).result())
        self.assertEqual({}, Queue.all(1, {}, handler).result())
        self.assertEqual([], handler.calls)

    def test_single(self) -> None:
        self.assertEqual([1], Queue.all(1, [1], resolved).result())

    def test_values_in_order(self) -> None:
        """Results align with jobs even when completed out of order?"""
        handler = Recorder()
        f = Queue.all(3, ["a", "b", "c"], handler)
        handler.futures[2].set_result("C")
        handler.futures[0].set_result("A")
        self.assertFalse(f.done())
        handler.futures[1].set_result("B")
        self.assertEqual(["A", "B", "C"], f.result())

    def test_values_beyond_concurrency(self) -> None:
        self.assertEqual(
            [1, 2, 3, 4], Queue.all(1, (1, 2, 3, 4), resolved).result()
        )

    def test_mapping_keys(self) -> None:
        """Mapping jobs produce results under the same keys and order?"""
        jobs = collections.OrderedDict(
            [("zeta", "z"), ("alpha", "aa"), ("mu", "mmm")]
        )
        f = Queue.all(2, jobs, len)
        self.assertEqual({"zeta": 1, "alpha": 2, "mu": 3}, f.result())
        self.assertEqual(["zeta", "alpha", "mu"], list(f.result().keys()))

    def test_single_rejects(self) -> None:
        f = Queue.all(1, [1], lambda _: rejected(ArithmeticError()))
        self.assertIsInstance(f.exception(), ArithmeticError)

    def test_many_reject(self) -> None:
        """The first rejection wins when several jobs reject?"""
        handler = Counting(lambda x: rejected(KeyError(x)))
        f = Queue.all(1, [1, 2], handler)
        self.assertIsInstance(f.exception(), KeyError)
        self.assertEqual((1,), f.exception().args)

    def test_cancel_result(self) -> None:
        """Cancelling the result cancels running work?"""
        cancelled = []  # type: typing.List[str]
        operation = pending(cancelled, "operation")
        f = Queue.all(1, [1], lambda _: operation)
        f.cancel()
        self.assertEqual(["operation"], cancelled)

    def test_cancel_result_reverse_order(self) -> None:
        """Cancellation fans out to every job, last submitted first?"""
        cancelled = []  # type: typing.List[str]
        jobs = [pending(cancelled, name) for name in ("a", "b", "c")]
        f = Queue.all(3, jobs, passthrough)
        f.cancel()
        self.assertEqual(["c", "b", "a"], cancelled)

    def test_cancel_result_rejects_waiting(self) -> None:
        """Cancelling the result rejects it via the waiting jobs?"""
        cancelled = []  # type: typing.List[str]
        handler = Counting(passthrough)
        jobs = [pending(cancelled, name) for name in ("a", "b")]
        f = Queue.all(1, jobs, handler)
        f.cancel()
        self.assertEqual(["a"], cancelled, "Waiting 'b' never started")
        self.assertEqual(1, handler.started)
        self.assertTrue(f.done())

    def test_rejection_cancels_running(self) -> None:
        """A rejection cancels other running work?"""
        cancelled = []  # type: typing.List[str]
        first = Future()  # type: Future[int]
        second = pending(cancelled, "second")
        f = Queue.all(2, [first, second], passthrough)
        first.set_exception(RuntimeError())
        self.assertEqual(["second"], cancelled)
        self.assertIsInstance(f.exception(), RuntimeError)

    def test_rejection_cancels_started_next(self) -> None:
        """A rejection cancels the job started from the freed slot?"""
        cancelled = []  # type: typing.List[str]
        first = Future()  # type: Future[int]
        second = pending(cancelled, "second")
        f = Queue.all(1, [first, second], passthrough)
        self.assertEqual([], cancelled)
        first.set_exception(RuntimeError())
        self.assertEqual(["second"], cancelled)
        self.assertIsInstance(f.exception(), RuntimeError)

    def test_rejection_cancels_queued_and_running(self) -> None:
        """Queued work is dropped while running work is asked to cancel?"""
        cancelled = []  # type: typing.List[str]
        first = Future()  # type: Future[int]
        second = pending(cancelled, "second", raises=True)
        third = pending(cancelled, "third")
        fourth = pending(cancelled, "fourth")
        handler = Counting(passthrough)
        f = Queue.all(2, [first, second, third, fourth], handler)
        self.assertEqual(2, handler.started)
        first.set_exception(ValueError())
        self.assertEqual(3, handler.started)
        self.assertEqual(["third", "second"], cancelled)
        self.assertIsInstance(f.exception(), ValueError)


class AnyTest(unittest.TestCase):
    """Unit tests (doubling as examples) for Queue.any(...)."""

    def test_invalid_concurrency(self) -> None:
        f = Queue.any(0, [1], resolved)
        self.assertIsInstance(f.exception(), InvalidConfiguration)

    def test_invalid_handler(self) -> None:
        f = Queue.any(1, [1], "not callable")  # type: ignore
        self.assertIsInstance(f.exception(), InvalidConfiguration)

    def test_empty(self) -> None:
        """No jobs rejects at once without invoking the handler?"""
        handler = Recorder()
        self.assertIsInstance(
            Queue.any(1, [], handler).exception(), EmptyJobSet
        )
        self.assertIsInstance(
            Queue.any(1, {}, handler).exception(), EmptyJobSet
        )
        self.assertEqual([], handler.calls)

    def test_empty_checked_before_configuration(self) -> None:
        f = Queue.any(0, [], resolved)
        self.assertIsInstance(f.exception(), EmptyJobSet)

    def test_single(self) -> None:
        self.assertEqual(1, Queue.any(1, [1], resolved).result())

    def test_first_of_many(self) -> None:
        self.assertEqual(1, Queue.any(1, [1, 2], resolved).result())

    def test_mapping_values(self) -> None:
        f = Queue.any(1, {"x": "abc", "y": "de"}, len)
        self.assertEqual(3, f.result())

    def test_first_to_settle_wins(self) -> None:
        """The earliest success wins regardless of submission order?"""
        handler = Recorder()
        f = Queue.any(3, ["a", "b", "c"], handler)
        handler.futures[1].set_exception(KeyError())
        handler.futures[2].set_result("C")
        self.assertEqual("C", f.result())
        self.assertEqual([handler.futures[0]], handler.cancelled)

    def test_single_rejects(self) -> None:
        f = Queue.any(1, [1], lambda _: rejected(ArithmeticError()))
        self.assertIsInstance(f.exception(), ArithmeticError)

    def test_all_reject_last_wins(self) -> None:
        """Every job rejecting surfaces the last rejection observed?"""
        handler = Recorder()
        f = Queue.any(3, ["a", "b", "c"], handler)
        handler.futures[2].set_exception(KeyError())
        handler.futures[0].set_exception(IndexError())
        self.assertFalse(f.done())
        handler.futures[1].set_exception(UnicodeError())
        self.assertIsInstance(f.exception(), UnicodeError)

    def test_cancel_result(self) -> None:
        cancelled = []  # type: typing.List[str]
        operation = pending(cancelled, "operation")
        f = Queue.any(1, [1], lambda _: operation)
        f.cancel()
        self.assertEqual(["operation"], cancelled)

    def test_success_starts_and_cancels_waiting(self) -> None:
        """Waiting work starts in the freed slot and is then cancelled?"""
        cancelled = []  # type: typing.List[str]
        first = Future()  # type: Future[int]
        second = pending(cancelled, "second")
        f = Queue.any(1, [first, second], passthrough)
        first.set_result(1)
        self.assertEqual(["second"], cancelled)
        self.assertEqual(1, f.result())

    def test_success_cancels_running(self) -> None:
        cancelled = []  # type: typing.List[str]
        first = Future()  # type: Future[int]
        second = pending(cancelled, "second")
        f = Queue.any(2, [first, second], passthrough)
        first.set_result(1)
        self.assertEqual(["second"], cancelled)
        self.assertEqual(1, f.result())

    def test_success_cancels_queued_and_running(self) -> None:
        """Queued work is dropped while running work is asked to cancel?"""
        cancelled = []  # type: typing.List[str]
        first = Future()  # type: Future[int]
        second = pending(cancelled, "second", raises=True)
        third = pending(cancelled, "third")
        fourth = pending(cancelled, "fourth")
        handler = Counting(passthrough)
        f = Queue.any(2, [first, second, third, fourth], handler)
        first.set_result(1)
        self.assertEqual(3, handler.started)
        self.assertEqual(["third", "second"], cancelled)
        self.assertEqual(1, f.result())


if __name__ == "__main__":
    unittest.main()
