"""Bounded fan-out helper for independent per-value operations."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')


@dataclass
class FanOutResult(Generic[T, R]):
    """Outcome of one item in a fan-out batch."""

    item: T
    value: Optional[R] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def fan_out(
    func: Callable[[T], R],
    items: Sequence[T],
    max_workers: int = 4,
) -> List[FanOutResult]:
    """
    Run func over items on a bounded thread pool and wait for all of them.

    Exceptions raised by func are captured per item instead of aborting the
    batch. Results come back in input order.

    Args:
        func: Callable applied to each item
        items: Items to process
        max_workers: Upper bound on concurrent calls

    Returns:
        One FanOutResult per item, same order as items
    """
    if not items:
        return []

    results: List[Optional[FanOutResult]] = [None] * len(items)
    workers = max(1, min(max_workers, len(items)))

    with ThreadPoolExecutor(max_workers=workers) as executor:
        future_to_index = {
            executor.submit(func, item): index for index, item in enumerate(items)
        }
        for future in as_completed(future_to_index):
            index = future_to_index[future]
            item = items[index]
            try:
                results[index] = FanOutResult(item=item, value=future.result())
            except Exception as e:
                logger.warning(f"{getattr(func, '__name__', 'task')} failed for item {index}: {e}")
                results[index] = FanOutResult(item=item, error=e)

    return results
