"""Utility functions for the import intelligence engine."""

from import_engine.utils.concurrency import FanOutResult, fan_out
from import_engine.utils.lru_cache import LRUCache
from import_engine.utils.retry import retry_with_backoff
from import_engine.utils.sanitize import sanitize_for_logging, summarize_values

__all__ = [
    "FanOutResult",
    "fan_out",
    "LRUCache",
    "retry_with_backoff",
    "sanitize_for_logging",
    "summarize_values",
]
