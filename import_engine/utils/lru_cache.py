"""LRU cache for per-company rule tables."""

import threading
from collections import OrderedDict
from typing import Dict, Generic, Optional, TypeVar

T = TypeVar('T')


class LRUCache(Generic[T]):
    """
    Size-limited, thread-safe LRU cache keyed by company id.

    Fan-out workers read concurrently while a decision write invalidates
    the writing company's entry. Each invalidation bumps the company's
    generation; a fill started under an older generation is dropped, so a
    reader that loaded rows before a write cannot cache them after it.
    """

    def __init__(self, max_size: int = 200):
        """
        Args:
            max_size: Maximum number of companies kept
        """
        self.cache: "OrderedDict[str, T]" = OrderedDict()
        self.max_size = max_size
        self._generations: Dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, company_id: str) -> Optional[T]:
        """Cached value for the company, or None; a hit marks it most recently used."""
        with self._lock:
            if company_id not in self.cache:
                return None
            self.cache.move_to_end(company_id)
            return self.cache[company_id]

    def generation(self, company_id: str) -> int:
        """Read this before loading a value to pass it back to set()."""
        with self._lock:
            return self._generations.get(company_id, 0)

    def set(self, company_id: str, value: T, generation: Optional[int] = None) -> bool:
        """
        Store a value, evicting the least recently used company when full.

        Args:
            company_id: Cache key
            value: Value to store
            generation: Generation read before the value was loaded, if any

        Returns:
            False when the company was invalidated after that generation was read
        """
        with self._lock:
            if generation is not None and self._generations.get(company_id, 0) != generation:
                return False
            self.cache[company_id] = value
            self.cache.move_to_end(company_id)
            while len(self.cache) > self.max_size:
                self.cache.popitem(last=False)
            return True

    def invalidate(self, company_id: str) -> None:
        with self._lock:
            self.cache.pop(company_id, None)
            self._generations[company_id] = self._generations.get(company_id, 0) + 1

    def __len__(self) -> int:
        with self._lock:
            return len(self.cache)
