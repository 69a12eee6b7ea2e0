"""Data models for import sessions: sheets, column mappings, line items and reports."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from import_engine.imports.exceptions import PersistenceError
from import_engine.intelligence.model import ComponentSpec


@dataclass
class ParsedSheet:
    """
    Decoded tabular data.

    Every row is at most len(headers) long and has at least one non-blank cell.
    """

    headers: List[str]
    rows: List[List[str]]

    @property
    def total_rows(self) -> int:
        return len(self.rows)

    def cell(self, row: List[str], column_index: int) -> str:
        """Cell value, "" for short rows."""
        return row[column_index] if column_index < len(row) else ""

    def column_values(self, column_index: int) -> List[str]:
        return [self.cell(row, column_index) for row in self.rows]


@dataclass
class SheetInfo:
    """One sheet of a multi-sheet workbook, as shown while choosing a sheet."""

    name: str
    row_count: int  # data rows, header excluded
    preview: List[List[str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"name": self.name, "row_count": self.row_count, "preview": self.preview}


@dataclass
class SheetListing:
    """Returned instead of a ParsedSheet when a workbook needs a sheet choice."""

    sheets: List[SheetInfo]

    @property
    def sheet_names(self) -> List[str]:
        return [s.name for s in self.sheets]


@dataclass
class SheetSource:
    """Raw uploaded file."""

    content: bytes
    filename: str


@dataclass
class ColumnMapping:
    """How one supplier column maps onto the canonical schema."""

    supplier_column: str
    system_field: Optional[str] = None  # None = unmapped
    sample_values: List[str] = field(default_factory=list)
    aliases: List[str] = field(default_factory=list)  # extra header keywords to learn at commit
    confidence: float = 0.0
    matched_keyword: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "supplier_column": self.supplier_column,
            "system_field": self.system_field,
            "sample_values": list(self.sample_values),
            "aliases": list(self.aliases),
            "confidence": round(self.confidence, 4),
            "matched_keyword": self.matched_keyword,
        }


@dataclass
class LineItem:
    """A materialized, validated supplier row."""

    line_number: int
    quantity_ordered: int = 1
    unit_cost: Optional[float] = None
    unit_cost_source: Optional[float] = None
    fields: Dict[str, str] = field(default_factory=dict)  # direct canonical fields
    reference_ids: Dict[str, int] = field(default_factory=dict)  # e.g. product_type_id
    specifications: Dict[str, Any] = field(default_factory=dict)
    components: Dict[str, List[ComponentSpec]] = field(default_factory=dict)  # spec key -> parsed parts

    @property
    def brand(self) -> str:
        return self.fields.get("brand", "")

    @property
    def serial_number(self) -> Optional[str]:
        return self.fields.get("serial_number") or None

    def to_dict(self) -> dict:
        data: Dict[str, Any] = {
            "line_number": self.line_number,
            "quantity_ordered": self.quantity_ordered,
            "unit_cost": self.unit_cost,
            "unit_cost_source": self.unit_cost_source,
            "specifications": dict(self.specifications),
        }
        data.update(self.fields)
        data.update(self.reference_ids)
        if self.components:
            data["components"] = {
                key: [c.to_dict() for c in parts] for key, parts in self.components.items()
            }
        return data

    def to_expected_record(self) -> Dict[str, Any]:
        """Columns for an expected receiving item."""
        return {
            "line_number": self.line_number,
            "serial_number": self.serial_number,
            "product_type_id": self.reference_ids.get("product_type_id"),
            "brand": self.fields.get("brand"),
            "model": self.fields.get("model"),
            "supplier_sku": self.fields.get("supplier_sku"),
            "description": self.fields.get("description"),
            "expected_condition": self.fields.get("expected_condition"),
            "unit_cost": self.unit_cost,
            "unit_cost_source": self.unit_cost_source,
            "quantity_ordered": self.quantity_ordered,
            "expected_specs": dict(self.specifications),
        }


@dataclass
class BatchReport:
    """Outcome of a fan-out batch: what succeeded and what failed per item."""

    succeeded: int = 0
    failures: List[PersistenceError] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict:
        return {
            "succeeded": self.succeeded,
            "failed": self.failed,
            "errors": [
                {"message": f.message, "item": str(f.item) if f.item is not None else None}
                for f in self.failures
            ],
        }


@dataclass
class PreviewResult:
    """Line items a commit would produce, plus per-row diagnostics."""

    items: List[LineItem]
    total_rows: int
    skipped_rows: List[int] = field(default_factory=list)  # 1-based line numbers
    exchange_rate: float = 1.0
    source_currency: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "total_rows": self.total_rows,
            "valid_rows": len(self.items),
            "skipped_rows": list(self.skipped_rows),
            "exchange_rate": self.exchange_rate,
            "source_currency": self.source_currency,
        }


@dataclass
class CommitResult:
    """Summary of a successful commit."""

    items: List[LineItem]
    exchange_rate: float
    source_currency: Optional[str] = None
    purchase_order_ref: Optional[str] = None
    persisted_items: int = 0
    learned_keywords: Dict[str, List[str]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "imported": len(self.items),
            "items": [item.to_dict() for item in self.items],
            "exchange_rate": self.exchange_rate,
            "source_currency": self.source_currency,
            "purchase_order_ref": self.purchase_order_ref,
            "persisted_items": self.persisted_items,
            "learned_keywords": {k: list(v) for k, v in self.learned_keywords.items()},
        }


@dataclass
class AppendReport:
    """Outcome of backfilling columns onto expected items."""

    updated: int = 0
    assets_updated: int = 0
    skipped: int = 0
    not_found: int = 0
    empty_serial_rows: List[int] = field(default_factory=list)  # spreadsheet row numbers
    not_found_serials: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    failures: List[PersistenceError] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "updated": self.updated,
            "assets_updated": self.assets_updated,
            "skipped": self.skipped,
            "not_found": self.not_found,
            "empty_serial_rows": list(self.empty_serial_rows),
            "not_found_serials": list(self.not_found_serials),
            "warnings": list(self.warnings),
            "errors": [
                {"message": f.message, "item": str(f.item) if f.item is not None else None}
                for f in self.failures
            ],
        }
