"""
Backfilling columns from a second supplier sheet onto expected receiving
items, matched by serial number.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from import_engine.database.entity_store import EntityStore, ExpectedItemRecord
from import_engine.database.rule_repository import RuleRepository
from import_engine.imports.constants import APPEND_BATCH_SIZE
from import_engine.imports.exceptions import PersistenceError, ValidationError
from import_engine.imports.line_items import parse_cost
from import_engine.imports.model import AppendReport, ColumnMapping, ParsedSheet
from import_engine.imports.validators import spec_key
from import_engine.utils.concurrency import fan_out
from import_engine.utils.sanitize import summarize_values

logger = logging.getLogger(__name__)

NUMERIC_FIELDS = ("unit_cost", "quantity_ordered")


@dataclass
class PendingUpdate:
    """Column updates prepared for one expected item."""

    item_id: int
    serial_number: str
    updates: Dict[str, Any] = field(default_factory=dict)


class AppendProcessor:
    """Applies an append sheet to one purchase order's expected items."""

    def __init__(
        self,
        company_id: str,
        entity_store: EntityStore,
        rule_repository: RuleRepository,
        max_workers: int = 4,
    ):
        self.company_id = company_id
        self.entity_store = entity_store
        self.rule_repository = rule_repository
        self.max_workers = max_workers

    def apply(
        self, sheet: ParsedSheet, mappings: List[ColumnMapping], purchase_order_ref: str
    ) -> AppendReport:
        """
        Update expected items from the sheet and mirror changes onto received assets.

        Args:
            sheet: Append sheet
            mappings: Column mappings; one must be serial_number
            purchase_order_ref: Purchase order whose expected items are updated

        Returns:
            AppendReport with counts, warnings and per-item failures

        Raises:
            ValidationError: If no serial column or no other column is mapped
        """
        serial_index = next(
            (i for i, m in enumerate(mappings) if m.system_field == "serial_number"), None
        )
        if serial_index is None:
            raise ValidationError(
                "Serial Number column must be mapped to match existing items",
                hint='Map a column to "Serial Number"',
            )

        update_columns = [
            (i, m) for i, m in enumerate(mappings) if m.system_field and i != serial_index
        ]
        if not update_columns:
            raise ValidationError(
                "Please map at least one column to append",
                hint="Map the columns that should be copied onto the expected items",
            )

        report = AppendReport()
        expected_by_serial: Dict[str, ExpectedItemRecord] = {}
        for item in self.entity_store.list_expected_items(self.company_id, purchase_order_ref):
            if item.serial_number:
                expected_by_serial.setdefault(item.serial_number.strip().lower(), item)

        product_types = {
            entity.name.lower(): entity.id
            for entity in self.entity_store.list_active_entities(self.company_id, "product_type")
        }

        pending: List[PendingUpdate] = []
        for row_index, row in enumerate(sheet.rows):
            row_number = row_index + 2  # header is spreadsheet row 1
            serial = sheet.cell(row, serial_index).strip()
            if not serial:
                report.empty_serial_rows.append(row_number)
                report.skipped += 1
                continue

            existing = expected_by_serial.get(serial.lower())
            if existing is None:
                report.not_found_serials.append(serial)
                report.not_found += 1
                continue

            updates = self._row_updates(
                sheet, row, row_number, update_columns, existing, product_types, report
            )
            if updates:
                pending.append(PendingUpdate(existing.id, existing.serial_number, updates))
            else:
                report.skipped += 1

        if report.empty_serial_rows:
            report.warnings.append(
                f"{len(report.empty_serial_rows)} rows with empty serial numbers "
                f"(rows: {summarize_values(report.empty_serial_rows)})"
            )
        if report.not_found_serials:
            report.warnings.append(
                f"{len(report.not_found_serials)} serial numbers not found in receiving "
                f"({summarize_values(report.not_found_serials)})"
            )

        if not pending:
            report.warnings.append(
                f"No items to update. {report.skipped} rows skipped, "
                f"{report.not_found} serials not found."
            )
            return report

        for start in range(0, len(pending), APPEND_BATCH_SIZE):
            self._apply_batch(pending[start:start + APPEND_BATCH_SIZE], report)

        logger.info(
            f"Append to PO {purchase_order_ref}: {report.updated} items updated, "
            f"{report.assets_updated} assets mirrored, {len(report.failures)} failures"
        )
        return report

    def _row_updates(
        self,
        sheet: ParsedSheet,
        row: List[str],
        row_number: int,
        update_columns: List[Tuple[int, ColumnMapping]],
        existing: ExpectedItemRecord,
        product_types: Dict[str, int],
        report: AppendReport,
    ) -> Dict[str, Any]:
        updates: Dict[str, Any] = {}
        specs = dict(existing.expected_specs)
        specs_changed = False

        for column_index, mapping in update_columns:
            value = sheet.cell(row, column_index).strip()
            if not value:
                continue

            system_field = mapping.system_field
            key = spec_key(system_field)
            if key is not None:
                specs[key] = value
                specs_changed = True
            elif system_field in NUMERIC_FIELDS:
                number = parse_cost(value)
                if number is None:
                    report.warnings.append(
                        f'Row {row_number}: Invalid number format for {system_field}: "{value}"'
                    )
                elif system_field == "quantity_ordered":
                    updates[system_field] = int(number)
                else:
                    updates[system_field] = number
            elif system_field == "product_type":
                product_type_id = self._resolve_product_type(value, product_types)
                if product_type_id is not None:
                    updates["product_type_id"] = product_type_id
                else:
                    available = ", ".join(sorted({name.title() for name in product_types})) or "none"
                    report.warnings.append(
                        f'Row {row_number}: Product type "{value}" not found. Available: {available}'
                    )
            else:
                updates[system_field] = value

        if specs_changed:
            updates["expected_specs"] = specs
        return updates

    def _resolve_product_type(self, value: str, product_types: Dict[str, int]) -> Optional[int]:
        rule = self.rule_repository.lookup_value(self.company_id, "product_type", value)
        if rule is not None and rule.output_reference_id is not None:
            return rule.output_reference_id
        return product_types.get(value.lower())

    def _apply_batch(self, batch: List[PendingUpdate], report: AppendReport) -> None:
        results = fan_out(self._update_item, batch, max_workers=self.max_workers)

        updated = []
        for result in results:
            if result.ok:
                report.updated += 1
                updated.append(result.item)
            else:
                logger.error(f"Error updating {result.item.serial_number}: {result.error}")
                report.failures.append(
                    PersistenceError(
                        f"Could not update {result.item.serial_number}: {result.error}",
                        item=result.item.serial_number,
                    )
                )

        mirrors = fan_out(self._mirror_item, updated, max_workers=self.max_workers)
        for result in mirrors:
            if not result.ok:
                report.warnings.append(
                    f"Asset {result.item.serial_number} was not updated: {result.error}"
                )
            elif result.value:
                report.assets_updated += 1

    def _update_item(self, pending: PendingUpdate) -> ExpectedItemRecord:
        return self.entity_store.update_expected_item(pending.item_id, pending.updates)

    def _mirror_item(self, pending: PendingUpdate) -> bool:
        return self.entity_store.mirror_to_asset(
            self.company_id, pending.serial_number, pending.updates
        )
