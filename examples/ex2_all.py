# Copyright (C) 2019-2026 Rhys Ulerich <rhys.ulerich@gmail.com>
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.
"""Example 2 downloads many URLs, a few at a time, failing on any error."""
import logging
import urllib.request
from concurrent.futures import ThreadPoolExecutor

from jobqueue import ExecutorHandler, Queue

URLS = [
    "https://www.python.org/",
    "https://pypi.org/",
    "https://docs.python.org/3/",
    "https://peps.python.org/",
]


def main() -> None:
    with ThreadPoolExecutor(max_workers=len(URLS)) as executor:
        handler = ExecutorHandler(executor, fetch_size)

        # Results arrive keyed by URL because the jobs were given as a dict
        future = Queue.all(2, {url: url for url in URLS}, handler)
        while not future.done():
            handler.poll()

        try:
            for url, size in future.result().items():
                logging.info("%s has %d bytes", url, size)
        except OSError as e:
            logging.error("An error occurred: %s", e)


def fetch_size(url: str) -> int:
    """Download url returning the size of its body."""
    with urllib.request.urlopen(url, timeout=10) as response:
        return len(response.read())


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    main()
