# Copyright (C) 2019-2026 Rhys Ulerich <rhys.ulerich@gmail.com>
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.
"""Example 4 shows cancelling waiting and running jobs."""
import logging

from jobqueue import Future, JobCancelledBeforeStart, Queue

log = logging.getLogger(__name__)


def stoppable(name: str) -> Future[str]:
    """An operation which rejects whenever asked to cancel."""

    def canceller(future: Future[str]) -> None:
        raise InterruptedError("{} interrupted".format(name))

    return Future(canceller=canceller)


def unstoppable(name: str) -> Future[str]:
    """An operation which silently ignores cancellation."""
    return Future(canceller=lambda future: None)


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)

    log.debug("Cancelling a waiting job rejects it and never starts it")
    queue = Queue(1, None, stoppable)
    running = queue.submit("first")
    waiting = queue.submit("second")
    waiting.cancel()
    assert isinstance(waiting.exception(), JobCancelledBeforeStart)
    assert len(queue) == 1

    log.debug("Cancelling a running job forwards to its operation")
    running.cancel()
    assert isinstance(running.exception(), InterruptedError)
    assert len(queue) == 0

    log.debug("Operations ignoring cancellation leave the job pending")
    queue = Queue(1, None, unstoppable)
    running = queue.submit("third")
    running.cancel()
    assert not running.done()
    assert len(queue) == 1

    log.info("ex4_cancel: OK")
