# Copyright (C) 2019-2026 Rhys Ulerich <rhys.ulerich@gmail.com>
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.
"""A Queue handler backed by any concurrent.futures.Executor."""
import concurrent.futures
import functools
import logging
import queue
import typing

from .future import Future

T = typing.TypeVar("T")

_LOGGER = logging.getLogger(__name__)


class ExecutorHandler(typing.Generic[T]):
    """Runs fn(...) on an Executor while settling Futures on one thread.

    Each call submits work to the Executor and returns a pending Future.
    Worker threads or processes only enqueue their completions.  Futures
    are settled, and hence Queue bookkeeping runs, solely within poll(...)
    on whichever thread owns the Queue using this handler.
    """

    __slots__ = ("_executor", "_fn", "_completed", "_in_flight")

    def __init__(
        self,
        executor: concurrent.futures.Executor,
        fn: typing.Callable[..., T],
    ) -> None:
        self._executor = executor
        self._fn = fn
        # Filled by Executor threads, drained by poll(...)
        self._completed = queue.SimpleQueue()  # type: queue.SimpleQueue
        # Mapping from c.f.Future to the Future returned by __call__
        self._in_flight = {}  # type: typing.Dict[typing.Any, Future[T]]

    def __len__(self) -> int:
        """Number of submissions whose Futures poll(...) has yet to settle."""
        return len(self._in_flight)

    def __call__(self, *args: typing.Any, **kwargs: typing.Any) -> Future[T]:
        """Submit fn(*args, **kwargs) to the Executor."""
        cf_future = self._executor.submit(self._fn, *args, **kwargs)
        future = Future(
            canceller=functools.partial(_cancel_bridged, cf_future)
        )  # type: Future[T]
        self._in_flight[cf_future] = future
        # Fires on the Executor's thread or, when already done, right here
        cf_future.add_done_callback(self._completed.put)
        return future

    def poll(self, timeout: typing.Optional[float] = None) -> int:
        """
        Settle Futures for completed work, returning how many were settled.

        Waits up to timeout seconds for the first completion with None
        meaning to wait indefinitely.  Returns 0 at once when nothing is in
        flight.  Callbacks registered on settled Futures, including any
        Queue starting further work, run on the calling thread.
        """
        settled = 0
        block = True
        while self._in_flight:
            try:
                cf_future = self._completed.get(block=block, timeout=timeout)
            except queue.Empty:
                break
            block, timeout = False, None
            future = self._in_flight.pop(cf_future, None)
            if future is not None and _bridge_result(cf_future, future):
                settled += 1
        return settled


def _cancel_bridged(
    cf_future: "concurrent.futures.Future", future: Future
) -> None:
    """Canceller rejecting only when the Executor never started the work."""
    if cf_future.cancel():
        _LOGGER.debug("Cancelled work before the Executor started it")
        raise concurrent.futures.CancelledError()
    _LOGGER.debug("Work already started so cancellation is not possible")


def _bridge_result(
    cf_future: "concurrent.futures.Future",
    future: Future,
) -> bool:
    """Transfer a completed c.f.Future's outcome, reporting if it settled."""
    if cf_future.cancelled():
        return future.set_exception(concurrent.futures.CancelledError())
    raised = cf_future.exception(timeout=0)
    if raised is None:
        return future.set_result(cf_future.result(timeout=0))
    if not isinstance(raised, Exception):
        # e.g. SystemExit from within a worker thread
        raised = RuntimeError("Work raised {!r}".format(raised))
    return future.set_exception(raised)
