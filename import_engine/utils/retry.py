"""Retry utilities for store writes that can hit transient lock errors."""

import logging
import time
from functools import wraps
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


def is_lock_error(exception: Exception) -> bool:
    """
    Check if an exception is a transient database lock that is worth retrying.

    Args:
        exception: Exception to check

    Returns:
        True if the error message points at a busy/locked database
    """
    error_str = str(exception).lower()

    lock_indicators = [
        'database is locked',
        'database table is locked',
        'database is busy',
        'could not obtain lock',
    ]

    return any(indicator in error_str for indicator in lock_indicators)


def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 0.05,
    backoff_factor: float = 2.0,
    exceptions: tuple = (Exception,),
    log_errors: bool = True,
    only_lock_errors: bool = True
):
    """
    Decorator for retrying functions with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts
        initial_delay: Initial delay in seconds before first retry
        backoff_factor: Multiplier for delay between retries
        exceptions: Tuple of exceptions to catch and retry on
        log_errors: Whether to log retry attempts
        only_lock_errors: If True, errors that are not lock errors are re-raised immediately

    Returns:
        Decorated function
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            delay = initial_delay
            last_exception = None

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e

                    # Constraint violations and the like will fail the same way again
                    if only_lock_errors and not is_lock_error(e):
                        raise

                    if attempt < max_retries:
                        if log_errors:
                            logger.warning(
                                f"{func.__name__} failed (attempt {attempt + 1}/{max_retries + 1}): {e}. "
                                f"Retrying in {delay:.2f}s..."
                            )
                        time.sleep(delay)
                        delay *= backoff_factor
                    else:
                        if log_errors:
                            logger.error(
                                f"{func.__name__} failed after {max_retries + 1} attempts: {e}"
                            )

            # If we get here, all retries failed
            raise last_exception

        return wrapper
    return decorator
