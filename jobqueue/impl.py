# Copyright (C) 2019-2026 Rhys Ulerich <rhys.ulerich@gmail.com>
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.
"""Implementation of the Queue and related classes."""
import collections
import collections.abc
import functools
import logging
import typing

from .future import (
    CallbackRaised,
    Future,
    first,
    gather,
    maybe_future,
    rejected,
    transfer,
)

T = typing.TypeVar("T")

_LOGGER = logging.getLogger(__name__)


class InvalidConfiguration(ValueError):
    """Reports an unusable concurrency, limit, or handler for a Queue."""

    pass


class QueueFull(OverflowError):
    """Reports a submission refused because a Queue reached its limit."""

    pass


class JobCancelledBeforeStart(RuntimeError):
    """
    Reports a queued job was cancelled before its handler was invoked.

    Distinguishes cancellation of waiting work, where the handler never
    ran, from any Exception produced by the handler itself.
    """

    pass


class EmptyJobSet(ValueError):
    """Reports Queue.any(...) was given no jobs from which to pick."""

    pass


class _Waiting:
    """A queued job retaining the arguments for its eventual handler call."""

    __slots__ = ("args", "kwargs")

    def __init__(self, args: tuple, kwargs: dict) -> None:
        self.args = args
        self.kwargs = kwargs


class _Running:
    """A formerly queued job whose handler Future is now in flight."""

    __slots__ = ("future",)

    def __init__(self, future: Future) -> None:
        self.future = future


_State = typing.Union[_Waiting, _Running]


class _Job:
    """
    Bookkeeping for a submission that could not start immediately.

    The state is _Waiting until the job leaves the queue, _Running once its
    handler has been invoked, and None after cancellation while waiting.
    The Future was handed to the submitter and outlives every state.
    """

    __slots__ = ("future", "state")

    def __init__(self, args: tuple, kwargs: dict) -> None:
        self.state = _Waiting(args, kwargs)  # type: typing.Optional[_State]
        self.future = None  # type: typing.Optional[Future]


class Queue(typing.Generic[T]):
    """
    Limits how many handler invocations are in flight at once.

    Submissions below the concurrency limit invoke the handler immediately.
    Beyond it, submissions wait in first-in-first-out order and each
    completed invocation starts at most one waiting job.  When a limit is
    given, submissions that would make len(queue) exceed it are refused
    with a Future rejected by QueueFull.

    Instances are not thread-safe.  Handlers must return Futures which are
    settled on the thread owning the Queue (see ExecutorHandler).
    """

    __slots__ = (
        "_concurrency",
        "_limit",
        "_handler",
        "_running",
        "_waiting",
        "_owed",
        "_advancing",
        "_settling",
    )

    def __init__(
        self,
        concurrency: int,
        limit: typing.Optional[int],
        handler: typing.Callable[..., Future[T]],
    ) -> None:
        """
        Handle up to concurrency jobs at once keeping at most limit in memory.

        A limit of None places no bound on how many jobs may wait.
        Raises InvalidConfiguration when concurrency is below one, when
        limit is below one or below concurrency, or when handler is not
        callable.
        """
        if not _is_count(concurrency) or concurrency < 1:
            raise InvalidConfiguration("Invalid concurrency given")
        if limit is not None and (
            not _is_count(limit) or limit < 1 or limit < concurrency
        ):
            raise InvalidConfiguration("Invalid limit given")
        if not callable(handler):
            raise InvalidConfiguration("Invalid handler given")

        self._concurrency = concurrency
        self._limit = limit
        self._handler = handler

        # Mutated only by submit(...), _finished(), and _cancel(...)
        self._running = 0
        self._waiting = collections.deque()  # type: typing.Deque[_Job]

        # Completions re-entering _finished() are drained iteratively
        self._owed = 0
        self._advancing = False

        # Pairs whose transfer waits until every owed start has been honored
        self._settling = collections.deque()  # type: typing.Deque[tuple]

    def __len__(self) -> int:
        """Number of jobs either running or waiting."""
        return self._running + len(self._waiting)

    def __repr__(self) -> str:
        return "<{} running={} waiting={} concurrency={} limit={}>".format(
            type(self).__name__,
            self._running,
            len(self._waiting),
            self._concurrency,
            self._limit,
        )

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def limit(self) -> typing.Optional[int]:
        return self._limit

    @property
    def running(self) -> int:
        """Number of handler invocations currently in flight."""
        return self._running

    @property
    def waiting(self) -> int:
        """Number of submissions queued but not yet started."""
        return len(self._waiting)

    def __call__(self, *args, **kwargs) -> Future[T]:
        """Submit handler(*args, **kwargs) to this Queue.

        Shorthand for calling submit(*args, **kwargs).
        """
        return self.submit(*args, **kwargs)

    def submit(self, *args, **kwargs) -> Future[T]:
        """
        Submit handler(*args, **kwargs) to this Queue, never blocking.

        Below the concurrency limit the handler is invoked immediately.
        Otherwise the job waits until some running job completes, or, when
        the limit is already reached, the returned Future is rejected with
        QueueFull.  Cancelling the returned Future before the job starts
        rejects it with JobCancelledBeforeStart.  Afterwards, cancellation
        is forwarded to the handler's Future.
        """
        # Happy path: simply invoke handler if we're below concurrency limit
        if self._running < self._concurrency:
            self._running += 1
            inner = maybe_future(self._handler, *args, **kwargs)
            outer = Future(canceller=lambda _: inner.cancel())
            self._track(inner, outer)
            return outer

        # Above concurrency limit, so ensure we do not exceed the hard limit
        if self._limit is not None and len(self) >= self._limit:
            _LOGGER.debug("Refusing job as %d jobs are queued", len(self))
            return rejected(
                QueueFull(
                    "Maximum queue limit of {} exceeded".format(self._limit)
                )
            )

        # Otherwise, this job must wait for some running job to complete
        job = _Job(args, kwargs)
        job.future = Future(canceller=functools.partial(self._cancel, job))
        self._waiting.append(job)
        _LOGGER.debug("Queued job behind %d waiting", len(self._waiting) - 1)
        return job.future

    def _track(self, inner: Future[T], outer: Future[T]) -> None:
        """Free the slot held by inner when done, then settle outer alike."""
        # Ordering matters: the next job starts before outer's callbacks run
        inner.when_done(self._finished, _Future__internal=True)
        if self._advancing:
            self._settling.append((inner, outer))
        else:
            transfer(inner, outer)

    def _finished(self) -> None:
        """
        Completion hook starting at most one waiting job per completion.

        Jobs started here may themselves complete synchronously.  Their
        Futures are settled only once no slot is free while jobs wait, so
        client callbacks never observe, nor submit into, a stale Queue.
        Should client callbacks raise, settling continues and the first
        CallbackRaised is re-raised afterwards.
        """
        self._running -= 1
        self._owed += 1
        if self._advancing:
            # The loop below, further up this stack, will honor the start
            return
        self._advancing = True
        raised = None  # type: typing.Optional[CallbackRaised]
        try:
            while self._owed or self._settling:
                if self._owed:
                    self._owed -= 1
                    if self._running < self._concurrency and self._waiting:
                        self._start(self._waiting.popleft())
                    continue
                inner, outer = self._settling.popleft()
                try:
                    transfer(inner, outer)
                except CallbackRaised as e:
                    raised = raised or e
        finally:
            self._advancing = False
        if raised is not None:
            raise raised

    def _start(self, job: _Job) -> None:
        """Invoke the handler for some job just removed from the queue."""
        state = job.state
        assert isinstance(state, _Waiting), "Only waiting jobs may start"
        assert job.future is not None
        self._running += 1
        assert self._running <= self._concurrency, "Invariant"
        _LOGGER.debug("Starting job with %d waiting", len(self._waiting))
        inner = maybe_future(self._handler, *state.args, **state.kwargs)
        job.state = _Running(inner)
        self._track(inner, job.future)

    def _cancel(self, job: _Job, future: Future[T]) -> None:
        """Canceller for any Future returned for a queued job."""
        state = job.state
        if isinstance(state, _Running):
            # Forward the request, with future settling whenever inner does
            state.future.cancel()
        elif isinstance(state, _Waiting):
            self._waiting.remove(job)
            job.state = None
            _LOGGER.debug("Cancelled job with %d waiting", len(self._waiting))
            future.set_exception(
                JobCancelledBeforeStart(
                    "Cancelled queued job before processing started"
                )
            )

    @staticmethod
    def all(
        concurrency: int,
        jobs: typing.Union[typing.Iterable, typing.Mapping],
        handler: typing.Callable[..., Future[T]],
    ) -> Future:
        """
        Invoke handler(job) for every job, concurrency many at a time.

        Fulfills with every result once all succeed, as a list aligned
        with jobs or, when jobs is a Mapping, as a dict with the same keys.
        Rejects upon the first rejection after cancelling all outstanding
        jobs, last submitted first.  Cancelling the result does the same.
        No jobs fulfills with an empty list or dict without any handler
        invocation.  Invalid concurrency or handler rejects immediately.
        """
        try:
            queue = Queue(concurrency, None, handler)  # type: Queue[T]
        except InvalidConfiguration as e:
            return rejected(e)

        keys, futures = _submit_each(queue.submit, jobs)
        retval = Future(canceller=lambda _: _cancel_reversed(futures))

        def settled(combined: Future[typing.List[T]]) -> None:
            raised = combined.exception()
            if raised is not None:
                _cancel_reversed(futures)
                retval.set_exception(raised)
            elif keys is None:
                retval.set_result(combined.result())
            else:
                retval.set_result(dict(zip(keys, combined.result())))

        combined = gather(futures)
        combined.when_done(settled, combined, _Future__internal=True)
        return retval

    @staticmethod
    def any(
        concurrency: int,
        jobs: typing.Union[typing.Iterable, typing.Mapping],
        handler: typing.Callable[..., Future[T]],
    ) -> Future[T]:
        """
        Invoke handler(job) for jobs, concurrency many at a time, until one
        succeeds.

        Fulfills with the first successful result after cancelling all
        other jobs, whether running or waiting, last submitted first.
        Should every job reject, rejects with the last rejection observed.
        Cancelling the result cancels every job in the same order.
        No jobs rejects with EmptyJobSet without any handler invocation,
        unlike Queue.all(...) which then fulfills.  Invalid concurrency or
        handler rejects immediately.
        """
        if isinstance(jobs, collections.abc.Mapping):
            jobs = list(jobs.values())
        else:
            jobs = list(jobs)
        if not jobs:
            return rejected(EmptyJobSet("No jobs given"))

        try:
            queue = Queue(concurrency, None, handler)  # type: Queue[T]
        except InvalidConfiguration as e:
            return rejected(e)

        _, futures = _submit_each(queue.submit, jobs)
        retval = Future(canceller=lambda _: _cancel_reversed(futures))

        def settled(winner: Future[T]) -> None:
            raised = winner.exception()
            if raised is None:
                _cancel_reversed(futures)
                retval.set_result(winner.result())
            else:
                retval.set_exception(raised)

        winner = first(futures)
        winner.when_done(settled, winner, _Future__internal=True)
        return retval


def _is_count(value: typing.Any) -> bool:
    """Is value an int, excluding bool which int subclasses?"""
    return isinstance(value, int) and not isinstance(value, bool)


def _submit_each(
    submit: typing.Callable[..., Future[T]],
    jobs: typing.Union[typing.Iterable, typing.Mapping],
) -> typing.Tuple[typing.Optional[typing.List], typing.List[Future[T]]]:
    """Submit every job in order, retaining Mapping keys when present."""
    if isinstance(jobs, collections.abc.Mapping):
        keys = list(jobs.keys())  # type: typing.Optional[typing.List]
        return keys, [submit(jobs[key]) for key in keys]
    return None, [submit(job) for job in jobs]


def _cancel_reversed(futures: typing.Sequence[Future]) -> None:
    """Request cancellation of every Future, last submitted first."""
    for future in reversed(futures):
        future.cancel()
