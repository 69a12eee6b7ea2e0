"""Utilities for keeping spreadsheet values short in logs."""

from typing import Iterable, Optional


def sanitize_for_logging(value: Optional[str], max_length: int = 200) -> str:
    """
    Sanitize any string value for logging.

    Args:
        value: Value to sanitize
        max_length: Maximum length to return

    Returns:
        Sanitized string
    """
    if value is None:
        return ""

    value_str = str(value)
    if len(value_str) > max_length:
        return value_str[:max_length] + "..."

    return value_str


def summarize_values(values: Iterable[str], limit: int = 5, max_length: int = 100) -> str:
    """
    Join the first few values for a log line or user message.

    Args:
        values: Values to summarize
        limit: How many values to show before eliding
        max_length: Maximum length of the joined text

    Returns:
        Comma separated preview, with "..." when values were dropped
    """
    values = list(values)
    preview = ", ".join(str(v) for v in values[:limit])
    if len(values) > limit:
        preview += "..."
    return sanitize_for_logging(preview, max_length=max_length)
