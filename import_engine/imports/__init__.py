"""Supplier sheet import workflow: decoding, session state machine, line items and append."""

from import_engine.imports.append import AppendProcessor
from import_engine.imports.constants import ImportMode, ImportStep
from import_engine.imports.exceptions import (
    ConflictError,
    ImportEngineError,
    InvalidStepTransitionError,
    ParseError,
    PersistenceError,
    SessionNotFoundError,
    ValidationError,
)
from import_engine.imports.line_items import LineItemBuilder, parse_cost
from import_engine.imports.model import (
    AppendReport,
    BatchReport,
    ColumnMapping,
    CommitResult,
    LineItem,
    ParsedSheet,
    PreviewResult,
    SheetSource,
)
from import_engine.imports.session import ImportSession
from import_engine.imports.sheet_reader import build_parsed_sheet, read_sheet

__all__ = [
    "AppendProcessor",
    "AppendReport",
    "BatchReport",
    "ColumnMapping",
    "CommitResult",
    "ConflictError",
    "ImportEngineError",
    "ImportMode",
    "ImportSession",
    "ImportStep",
    "InvalidStepTransitionError",
    "LineItem",
    "LineItemBuilder",
    "ParseError",
    "ParsedSheet",
    "PersistenceError",
    "PreviewResult",
    "SessionNotFoundError",
    "SheetSource",
    "ValidationError",
    "build_parsed_sheet",
    "parse_cost",
    "read_sheet",
]
