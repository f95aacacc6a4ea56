# Copyright (C) 2019-2026 Rhys Ulerich <rhys.ulerich@gmail.com>
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.
"""
An in-memory job Queue bounding how much asynchronous work is in flight.

A Queue wraps some handler returning Futures and is similar in spirit to
a leaky bucket or a semaphore guarding a concurrent.futures.Executor:

 * First, at most "concurrency" handler invocations are in flight at once.
 * Second, excess submissions wait in first-in-first-out order and start
   as running work completes, one start per completion.
 * Third, an optional "limit" caps running plus waiting work, with excess
   submissions refused via Futures rejected by QueueFull.
 * Fourth, submit(...) never blocks and never raises, always returning a
   Future which may be cancelled whether the job is waiting or running.
 * Fifth, Queue.all(...) and Queue.any(...) run whole collections of jobs
   through a Queue, cancelling leftover work once the outcome is known.
 * Lastly, no background threads are spun up.  Work elsewhere reports back
   only when ExecutorHandler.poll(...) is called.

Note that Queue.all(...) fulfills given no jobs whereas Queue.any(...)
rejects with EmptyJobSet.  Both behaviors are intentional.
"""
from .executor import ExecutorHandler
from .future import (
    Blocked,
    CallbackRaised,
    Future,
    first,
    gather,
    maybe_future,
    rejected,
    resolved,
    transfer,
)
from .impl import (
    EmptyJobSet,
    InvalidConfiguration,
    JobCancelledBeforeStart,
    Queue,
    QueueFull,
)

__all__ = [
    "Blocked",
    "CallbackRaised",
    "EmptyJobSet",
    "ExecutorHandler",
    "Future",
    "InvalidConfiguration",
    "JobCancelledBeforeStart",
    "Queue",
    "QueueFull",
    "first",
    "gather",
    "maybe_future",
    "rejected",
    "resolved",
    "transfer",
]
