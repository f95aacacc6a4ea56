# Copyright (C) 2019-2026 Rhys Ulerich <rhys.ulerich@gmail.com>
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.
"""Handle configuration, capacity, handler, and callback errors."""
import logging

from jobqueue import (
    CallbackRaised,
    EmptyJobSet,
    Future,
    InvalidConfiguration,
    Queue,
    QueueFull,
)

log = logging.getLogger(__name__)


def raise_error(message: str) -> Future[None]:
    raise ValueError(message)


def bad_callback() -> None:
    raise RuntimeError("callback failed")


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)

    log.debug("Invalid configuration raises at construction")
    try:
        Queue(3, 2, raise_error)
        assert False, "Should have raised InvalidConfiguration"
    except InvalidConfiguration:
        pass

    log.debug("Aggregates report invalid configuration via their Future")
    assert isinstance(
        Queue.all(0, [1], raise_error).exception(), InvalidConfiguration
    )

    log.debug("Handler exceptions reject, never raise from submit()")
    queue = Queue(1, 1, raise_error)
    try:
        queue.submit("oops").result()
        assert False, "Should have raised ValueError"
    except ValueError as e:
        assert "oops" in str(e)

    log.debug("A full queue refuses work via QueueFull")
    queue = Queue(1, 1, lambda _: Future())
    queue.submit("occupies the only slot")
    assert isinstance(queue.submit("refused").exception(), QueueFull)

    log.debug("Queue.all() of nothing fulfills but Queue.any() rejects")
    assert Queue.all(1, [], raise_error).result() == []
    assert isinstance(Queue.any(1, [], raise_error).exception(), EmptyJobSet)

    log.debug("Callback exceptions are reported via CallbackRaised")
    future = Future()  # type: Future[int]
    future.when_done(bad_callback)
    try:
        future.set_result(5)
        assert False, "Should have raised CallbackRaised"
    except CallbackRaised as e:
        assert isinstance(e.__cause__, RuntimeError)

    log.debug("After callback error is reported, result is still available")
    assert future.result() == 5

    log.info("ex5_errors: OK")
