"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/workers.py
Bounded thread pool helpers shared by the scan, read, link and prune stages.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait, FIRST_COMPLETED
from typing import Callable, Iterable, Iterator, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def bounded_map(
        fn: Callable[[T], R],
        items: Iterable[T],
        limit: int,
        stopped_flag: Optional[Callable[[], bool]] = None
) -> Iterator[R]:
    """
    Apply fn to every item on a pool of `limit` threads, yielding results as they complete.

    At most `limit` calls are outstanding at any moment and the input is pulled
    lazily, so `items` may be an unbounded generator. Once stopped_flag returns
    True no further items are submitted; calls already running are allowed to
    finish and their results are still yielded.
    """
    if limit < 1:
        raise ValueError("Concurrency limit must be at least 1")

    source = iter(items)
    exhausted = False
    pending = set()

    with ThreadPoolExecutor(max_workers=limit) as executor:
        while True:
            while not exhausted and len(pending) < limit:
                if stopped_flag and stopped_flag():
                    logger.debug("Stop requested, no further work submitted")
                    exhausted = True
                    break
                try:
                    item = next(source)
                except StopIteration:
                    exhausted = True
                    break
                pending.add(executor.submit(fn, item))

            if not pending:
                return

            done, pending = wait(pending, return_when=FIRST_COMPLETED)
            for future in done:
                yield future.result()
