# Copyright (C) 2019-2026 Rhys Ulerich <rhys.ulerich@gmail.com>
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.
"""Example 1 shows submitting jobs beyond the concurrency limit."""
import time
from concurrent.futures import ThreadPoolExecutor
from logging import DEBUG, basicConfig, info

from jobqueue import ExecutorHandler, Queue


def main() -> None:
    with ThreadPoolExecutor(max_workers=8) as executor:
        handler = ExecutorHandler(executor, task_square)

        # Handle up to 2 jobs concurrently, keeping no more than 5 in memory
        queue = Queue(2, 5, handler)

        # Shorthand and explicit submission behave identically
        futures = [queue(1), queue(2)] + [queue.submit(n) for n in (3, 4, 5)]
        info("running=%d waiting=%d", queue.running, queue.waiting)

        # A sixth job exceeds the limit and is refused right away
        refused = queue.submit(6)
        info("refused: %r", refused.exception())

        # Settle completed work on this thread until everything is done
        while not all(future.done() for future in futures):
            handler.poll()
            info("running=%d waiting=%d", queue.running, queue.waiting)

        info("results: %s", [future.result() for future in futures])


def task_square(n: int) -> int:
    """Square n slowly."""
    time.sleep(0.1)
    return n * n


if __name__ == "__main__":
    basicConfig(
        level=DEBUG,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    main()
