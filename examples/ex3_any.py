# Copyright (C) 2019-2026 Rhys Ulerich <rhys.ulerich@gmail.com>
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.
"""Example 3 takes whichever mirror answers first, cancelling the rest."""
import logging
import random
import time
from concurrent.futures import ThreadPoolExecutor

from jobqueue import ExecutorHandler, Queue

MIRRORS = ["alpha", "bravo", "charlie", "delta", "echo"]


def main() -> None:
    with ThreadPoolExecutor(max_workers=2) as executor:
        handler = ExecutorHandler(executor, task_probe)

        # Probing 2 mirrors at a time; queued probes are dropped on success
        future = Queue.any(2, MIRRORS, handler)
        while not future.done():
            handler.poll()
        try:
            logging.info("Fastest healthy mirror: %s", future.result())
        except ConnectionError as e:
            logging.error("Every mirror failed, last with: %s", e)

        # Let already running probes wind down before leaving
        while len(handler):
            handler.poll()


def task_probe(mirror: str) -> str:
    """Pretend to probe a mirror, failing now and again."""
    time.sleep(random.uniform(0.05, 0.2))
    if random.random() < 0.3:
        raise ConnectionError("{} unavailable".format(mirror))
    return mirror


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    main()
