"""Custom exceptions for the supplier import workflow."""

from typing import Any, List, Optional


class ImportEngineError(Exception):
    """Base exception for import errors."""
    pass


class ParseError(ImportEngineError):
    """Source file is malformed, empty or of an unsupported type."""
    pass


class ValidationError(ImportEngineError):
    """Import cannot proceed; nothing was committed."""

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint


class ConflictError(ImportEngineError):
    """Serial numbers already exist in inventory; the whole commit is blocked."""

    def __init__(self, message: str, serials: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.serials = list(serials or [])


class PersistenceError(ImportEngineError):
    """A write for one item failed. Collected per item, never aborts a batch."""

    def __init__(self, message: str, item: Any = None):
        super().__init__(message)
        self.message = message
        self.item = item


class InvalidStepTransitionError(ImportEngineError):
    """Invalid import step transition attempted."""
    pass


class SessionNotFoundError(ImportEngineError):
    """No import session with the requested id."""
    pass
