"""
Bounded-parallelism batch scheduling for per-photo work.

Items are split into sequential chunks of `concurrency` items. Every item in
a chunk runs at once on a thread pool; the next chunk starts only when the
whole chunk has finished. Results come back in input order regardless of
completion order.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Callable, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')

ProgressCallback = Callable[[int, int], None]


class BatchScheduler:
    """
    Runs a function over many items, at most `concurrency` at a time.

    A task that raises does not abort the batch: the exception is logged
    and that item's result is None.
    """

    def __init__(self, concurrency: int = 4,
                 progress_callback: Optional[ProgressCallback] = None):
        """
        Initialize the scheduler.

        Args:
            concurrency: Chunk size and maximum number of tasks in flight
            progress_callback: Called with (completed, total) after each item
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.concurrency = concurrency
        self.progress_callback = progress_callback
        self._completed = 0

    def run(self, items: Sequence[T], func: Callable[[T], R],
            describe: Callable[[T], str] = str) -> List[Optional[R]]:
        """
        Process items and wait for all of them.

        Args:
            items: Work items
            func: Blocking function applied to each item in a worker thread
            describe: Label for an item in log messages

        Returns:
            One result per item, in the same order as items
        """
        if not items:
            return []
        return asyncio.run(self.run_async(items, func, describe))

    async def run_async(self, items: Sequence[T], func: Callable[[T], R],
                        describe: Callable[[T], str] = str) -> List[Optional[R]]:
        """Async form of run(); must be awaited inside a running loop."""
        items = list(items)
        total = len(items)
        results: List[Optional[R]] = [None] * total
        self._completed = 0

        loop = asyncio.get_running_loop()
        with ThreadPoolExecutor(max_workers=self.concurrency,
                                thread_name_prefix='gallery-worker') as pool:
            for start in range(0, total, self.concurrency):
                chunk = items[start:start + self.concurrency]
                tasks = [
                    self._run_one(loop, pool, func, item, describe, total)
                    for item in chunk
                ]
                chunk_results = await asyncio.gather(*tasks)
                results[start:start + len(chunk)] = chunk_results

                logger.debug(f"Completed chunk {start // self.concurrency + 1}, "
                             f"total progress: {self._completed}/{total}")

        return results

    async def _run_one(self, loop: asyncio.AbstractEventLoop, pool: ThreadPoolExecutor,
                       func: Callable[[T], R], item: T,
                       describe: Callable[[T], str], total: int) -> Optional[R]:
        result: Optional[R] = None
        try:
            result = await loop.run_in_executor(pool, partial(func, item))
        except Exception as e:
            logger.warning(f"Skipping {describe(item)}: {e}")
        finally:
            self._completed += 1
            self._report(self._completed, total)
        return result

    def _report(self, completed: int, total: int) -> None:
        if not self.progress_callback:
            return
        try:
            self.progress_callback(completed, total)
        except Exception as e:
            logger.warning(f"Progress callback error: {e}")
