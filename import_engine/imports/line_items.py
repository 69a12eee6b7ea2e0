"""Materializing mapped sheet rows into validated line items."""

import logging
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from import_engine.imports.constants import COMPONENT_FIELDS
from import_engine.imports.model import ColumnMapping, LineItem, ParsedSheet, PreviewResult
from import_engine.imports.validators import spec_key
from import_engine.intelligence.component_parser import ComponentParser, parse_component_pattern
from import_engine.normalization.model import NormalizedMapping
from import_engine.normalization.passthrough import is_passthrough_spec

logger = logging.getLogger(__name__)

_NON_NUMERIC = re.compile(r"[^\d.,\-]")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_cost(value: str) -> Optional[float]:
    """
    Parse a money amount written in either locale.

    Currency symbols, letters and spaces are dropped. With both separators
    present the last one is the decimal point ("1.234,56", "1,234.56"). A
    lone comma is a decimal point unless it groups exactly three digits
    ("12,50" vs "1,234"). Repeated dots alone are thousands separators
    ("1.234.567").

    Returns:
        The amount, or None when nothing numeric remains
    """
    text = _NON_NUMERIC.sub("", value or "")
    if not text:
        return None

    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        parts = text.split(",")
        if len(parts) == 2 and len(parts[1]) != 3:
            text = f"{parts[0]}.{parts[1]}"
        else:
            text = text.replace(",", "")
    elif text.count(".") > 1:
        text = text.replace(".", "")

    try:
        return float(text)
    except ValueError:
        return None


def parse_quantity(value: str) -> Optional[int]:
    """Leading integer of value ("3 units" -> 3), None when there is none."""
    match = _LEADING_INT.match(value or "")
    return int(match.group(1)) if match else None


def round_money(amount: float) -> float:
    """Round half-up to 2 decimal places."""
    return float(Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class LineItemBuilder:
    """
    Builds line items from a sheet, its column mappings and resolved entity values.

    A row becomes a line item only with a positive converted unit cost and a
    non-blank brand; other non-empty rows are reported as skipped.
    """

    def __init__(
        self,
        mappings: List[ColumnMapping],
        normalized_mappings: Iterable[NormalizedMapping] = (),
        component_parser: Optional[ComponentParser] = None,
    ):
        self.mappings = mappings
        self.resolved: Dict[Tuple[str, str], NormalizedMapping] = {}
        for mapping in normalized_mappings:
            # First resolution of a value wins
            self.resolved.setdefault((mapping.field, mapping.original_value), mapping)
        self.component_parser = component_parser or ComponentParser([])

    def build(self, sheet: ParsedSheet, exchange_rate: float) -> PreviewResult:
        """
        Materialize every qualifying row.

        Args:
            sheet: Uploaded sheet
            exchange_rate: Multiplier from the supplier currency to the base currency

        Returns:
            PreviewResult with items and the line numbers of skipped rows
        """
        items: List[LineItem] = []
        skipped: List[int] = []

        for index, row in enumerate(sheet.rows):
            if not any(cell.strip() for cell in row):
                continue

            item = self.build_item(sheet, row, index + 1, exchange_rate)
            if item.unit_cost is not None and item.unit_cost > 0 and item.brand.strip():
                items.append(item)
            else:
                skipped.append(item.line_number)

        if skipped:
            logger.info(
                f"{len(skipped)} of {sheet.total_rows} rows skipped (missing brand or positive unit cost)"
            )
        return PreviewResult(
            items=items, total_rows=sheet.total_rows, skipped_rows=skipped, exchange_rate=exchange_rate
        )

    def build_item(self, sheet: ParsedSheet, row: List[str], line_number: int, exchange_rate: float) -> LineItem:
        item = LineItem(line_number=line_number)

        for column_index, mapping in enumerate(self.mappings):
            system_field = mapping.system_field
            if not system_field:
                continue

            raw = sheet.cell(row, column_index)
            value = raw.strip()
            if not value:
                continue

            resolved = self.resolved.get((system_field, value))
            if resolved is not None:
                value = resolved.resolved_value
                if resolved.resolved_id is not None:
                    item.reference_ids[f"{system_field}_id"] = resolved.resolved_id

            key = spec_key(system_field)
            if key is not None:
                key = key.lower()
                if is_passthrough_spec(key):
                    item.specifications[key] = raw
                else:
                    item.specifications[key] = value
                    self._parse_components(item, system_field, key, value)
            elif system_field == "quantity_ordered":
                quantity = parse_quantity(value)
                if quantity is not None:
                    item.quantity_ordered = quantity
            elif system_field == "unit_cost":
                cost = parse_cost(value)
                if cost is not None and cost > 0:
                    item.unit_cost_source = round_money(cost)
                    item.unit_cost = round_money(cost * exchange_rate)
            else:
                item.fields[system_field] = value

        # Quantity is confirmed during receiving
        if item.quantity_ordered <= 0:
            item.quantity_ordered = 1

        return item

    def _parse_components(self, item: LineItem, system_field: str, key: str, value: str) -> None:
        if system_field in self.component_parser.fields:
            item.components[key] = self.component_parser.parse_value(system_field, value).components
        elif system_field in COMPONENT_FIELDS:
            item.components[key] = parse_component_pattern(value)
