# Copyright (C) 2019-2026 Rhys Ulerich <rhys.ulerich@gmail.com>
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.
"""Single-settlement Futures permitting callbacks and cancellation."""
import abc
import typing

T = typing.TypeVar("T")


class Blocked(Exception):
    """Reports that Future.result() or Future.exception() is not yet ready."""

    pass


class CallbackRaised(Exception):
    """
    Reports an Exception raised from callbacks registered with a Future.

    Instances of this type must have non-None __cause__ members (see PEP 3154).
    The __cause__ member will be the Exception raised by client code.

    Every registered callback is attempted before CallbackRaised is raised,
    so one failing callback never starves those registered after it.  When
    several client callbacks raise, only the first is reported.
    """

    pass


class Wrapper(abc.ABC, typing.Generic[T]):
    """Allows Futures to track whether a value was raised or returned."""

    __slots__ = ()

    @abc.abstractmethod
    def unwrap(self) -> T:
        """Raise any wrapped Exception otherwise return some result."""
        raise NotImplementedError()

    @abc.abstractmethod
    def exception(self) -> typing.Optional[Exception]:
        """Return any wrapped Exception otherwise return None."""
        raise NotImplementedError()


class ResultWrapper(Wrapper[T]):
    """Specialization of Wrapper for when a result is available."""

    __slots__ = ("_result",)

    def __init__(self, result: T) -> None:
        """Wrap the provided result for use during unwrap()."""
        self._result = result

    def unwrap(self) -> T:
        return self._result

    def exception(self) -> None:
        return None


class ExceptionWrapper(Wrapper[T]):
    """Specialization of Wrapper for when an Exception has been raised."""

    __slots__ = ("_raised",)

    def __init__(self, raised: Exception) -> None:
        """Wrap the provided Exception for use during unwrap()."""
        assert isinstance(raised, Exception), type(raised)
        self._raised = raised

    def unwrap(self) -> typing.NoReturn:
        raise self._raised

    def exception(self) -> Exception:
        return self._raised


class Future(typing.Generic[T]):
    """
    A placeholder for some value produced asynchronously.

    Futures are pending until set_result(...) or set_exception(...) is
    first called, after which they are done and never change again.
    Callbacks registered via when_done(...) fire exactly once after that.

    A pending Future may be asked to cancel().  Cancellation is a request
    handled by the canceller given at construction: whatever Exception
    the canceller raises rejects this Future, but a canceller which
    neither raises nor settles the Future leaves it pending.
    Futures can be neither copied nor pickled.
    """

    __slots__ = ("_wrapper", "_callbacks", "_canceller")

    def __init__(
        self,
        canceller: typing.Optional[typing.Callable[["Future"], None]] = None,
    ) -> None:
        """A pending instance with an optional canceller(future) hook."""
        # Becomes non-None after result is obtained
        self._wrapper = None  # type: typing.Optional[Wrapper[T]]

        # Populated by calls to when_done(...)
        self._callbacks = []  # type: typing.List[typing.Tuple]

        # Becomes None after the first cancel() or once done
        self._canceller = canceller

    def __copy__(self) -> typing.NoReturn:
        """Disallow copying as duplicates cannot sensibly share callbacks."""
        raise NotImplementedError("Futures cannot be copied.")

    def __reduce__(self) -> typing.NoReturn:
        """Disallow pickling as duplicates cannot sensibly share callbacks."""
        raise NotImplementedError("Futures cannot be pickled.")

    def __repr__(self) -> str:
        if self._wrapper is None:
            state = "pending"
        elif self._wrapper.exception() is None:
            state = "fulfilled"
        else:
            state = "rejected"
        return "<{} {}>".format(type(self).__name__, state)

    def when_done(
        self, fn: typing.Callable, *args, __internal: bool = False, **kwargs
    ) -> None:
        """
        Register a function for execution sometime after Future.done().

        When already done(), will immediately invoke the requested function.
        Registered callback functions can accept a Future as an argument.
        May raise CallbackRaised from at most this new callback.
        """
        self._callbacks.append((__internal, fn, args, kwargs))
        if self._wrapper is not None:
            self._issue_callbacks()

    def done(self) -> bool:
        """Is result ready?  Never blocks."""
        return self._wrapper is not None

    def result(self) -> T:
        """Obtain result when ready.  Raises Blocked if result unavailable."""
        if self._wrapper is None:
            raise Blocked()
        return self._wrapper.unwrap()

    def exception(self) -> typing.Optional[Exception]:
        """Obtain any rejection when ready.  Raises Blocked if unavailable."""
        if self._wrapper is None:
            raise Blocked()
        return self._wrapper.exception()

    def set_result(self, result: T) -> bool:
        """
        Fulfill with result and issue callbacks unless already done.

        Returns whether this call settled the Future.
        May raise CallbackRaised from registered callbacks.
        """
        return self._settle(ResultWrapper(result))

    def set_exception(self, raised: Exception) -> bool:
        """
        Reject with raised and issue callbacks unless already done.

        Returns whether this call settled the Future.
        May raise CallbackRaised from registered callbacks.
        """
        return self._settle(ExceptionWrapper(raised))

    def cancel(self) -> None:
        """
        Request cancellation of this Future, if still pending.

        The canceller is invoked at most once, receiving this Future.
        Any Exception it raises rejects this Future with that Exception.
        """
        canceller, self._canceller = self._canceller, None
        if canceller is None or self._wrapper is not None:
            return
        try:
            canceller(self)
        except CallbackRaised:
            # Raised by callbacks on some other Future, not a rejection
            raise
        except Exception as e:
            self.set_exception(e)

    def _settle(self, wrapper: Wrapper[T]) -> bool:
        if self._wrapper is not None:
            return False
        self._wrapper = wrapper
        self._canceller = None
        self._issue_callbacks()
        return True

    def _issue_callbacks(self) -> None:
        # Only a non-internal callback may originate CallbackRaised.
        # Otherwise, we might obfuscate bugs within this package's logic.
        assert self._wrapper is not None, "Invariant"
        raised = None  # type: typing.Optional[BaseException]
        while self._callbacks:
            internal, fn, args, kwargs = self._callbacks.pop(0)
            try:
                fn(*args, **kwargs)
            except CallbackRaised as e:
                # Propagated from some downstream Future's client callback
                raised = raised or e.__cause__
            except Exception as e:
                if internal:
                    raise
                raised = raised or e
        if raised is not None:
            raise CallbackRaised() from raised


def resolved(result: T) -> Future[T]:
    """A Future already fulfilled with result."""
    future = Future()  # type: Future[T]
    future.set_result(result)
    return future


def rejected(raised: Exception) -> Future[typing.Any]:
    """A Future already rejected with raised."""
    future = Future()  # type: Future[typing.Any]
    future.set_exception(raised)
    return future


def maybe_future(fn: typing.Callable, *args, **kwargs) -> Future[typing.Any]:
    """
    Invoke fn(*args, **kwargs) always producing a Future.

    Returned Futures pass through unchanged, other return values become
    fulfilled Futures, and any raised Exception becomes a rejected Future.
    """
    try:
        retval = fn(*args, **kwargs)
    except Exception as e:
        return rejected(e)
    return retval if isinstance(retval, Future) else resolved(retval)


def _copy_outcome(source: Future[T], target: Future[T]) -> None:
    raised = source.exception()
    if raised is None:
        target.set_result(source.result())
    else:
        target.set_exception(raised)


def transfer(source: Future[T], target: Future[T]) -> None:
    """Once source is done, settle target identically."""
    source.when_done(_copy_outcome, source, target, _Future__internal=True)


def gather(futures: typing.Iterable[Future[T]]) -> Future[typing.List[T]]:
    """
    Combine futures into one fulfilled with every result, in input order.

    Rejects with the first rejection observed among futures.
    Empty input produces a Future immediately fulfilled with [].
    """
    futures = list(futures)
    retval = Future()  # type: Future[typing.List[T]]
    results = [None] * len(futures)  # type: typing.List[typing.Any]
    remaining = len(futures)

    def settled(index: int, future: Future[T]) -> None:
        nonlocal remaining
        raised = future.exception()
        if raised is not None:
            retval.set_exception(raised)
            return
        results[index] = future.result()
        remaining -= 1
        if not remaining:
            retval.set_result(results)

    if not futures:
        retval.set_result(results)
    for index, future in enumerate(futures):
        future.when_done(settled, index, future, _Future__internal=True)
    return retval


def first(futures: typing.Iterable[Future[T]]) -> Future[T]:
    """
    Combine futures into one fulfilled by whichever first succeeds.

    Only after every future rejected does the result reject, and then with
    the last rejection observed.  Empty input rejects with ValueError.
    """
    futures = list(futures)
    retval = Future()  # type: Future[T]
    remaining = len(futures)

    def settled(future: Future[T]) -> None:
        nonlocal remaining
        remaining -= 1
        raised = future.exception()
        if raised is None:
            retval.set_result(future.result())
        elif not remaining:
            retval.set_exception(raised)

    if not futures:
        retval.set_exception(ValueError("No futures given"))
    for future in futures:
        future.when_done(settled, future, _Future__internal=True)
    return retval
