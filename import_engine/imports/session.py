"""
Import session state machine.

Sequences one supplier sheet through upload, column mapping, entity
normalization and preview to a commit, or through the append path that
backfills columns onto an existing purchase order.
"""

import logging
import uuid
from functools import partial
from typing import Dict, Iterable, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from import_engine.config import AppConfig, get_config
from import_engine.database.entity_store import EntityStore
from import_engine.database.rule_repository import RuleRepository
from import_engine.imports.append import AppendProcessor
from import_engine.imports.constants import (
    DUPLICATE_SERIALS_MESSAGE_LIMIT,
    MAPPING_SAMPLE_SIZE,
    NORMALIZATION_FIELDS,
    ImportMode,
    ImportStep,
)
from import_engine.imports.exceptions import (
    ConflictError,
    PersistenceError,
    ValidationError,
)
from import_engine.imports.line_items import LineItemBuilder
from import_engine.imports.model import (
    AppendReport,
    BatchReport,
    ColumnMapping,
    CommitResult,
    ParsedSheet,
    PreviewResult,
    SheetInfo,
    SheetListing,
    SheetSource,
)
from import_engine.imports.sheet_reader import read_sheet
from import_engine.imports.validators import (
    find_duplicate_mappings,
    require_step,
    validate_exchange_rate,
    validate_mapping_target,
    validate_required_mappings,
    validate_step_transition,
)
from import_engine.intelligence.column_mapper import ColumnMapper
from import_engine.intelligence.component_parser import ComponentParser
from import_engine.normalization.model import (
    EntityGroup,
    NormalizationDecision,
    NormalizedMapping,
)
from import_engine.normalization.normalizer import EntityNormalizer
from import_engine.normalization.resolver import AutoNormalizationResolver
from import_engine.utils.concurrency import fan_out
from import_engine.utils.sanitize import sanitize_for_logging

logger = logging.getLogger(__name__)


class ImportSession:
    """
    One user's import of one supplier sheet.

    A session has a single writer. Per-value checks and decision writes fan
    out on a bounded thread pool and are joined before the step advances.
    """

    def __init__(
        self,
        company_id: str,
        entity_store: EntityStore,
        rule_repository: RuleRepository,
        config: Optional[AppConfig] = None,
        session_id: Optional[str] = None,
    ):
        """
        Initialize session.

        Args:
            company_id: Company whose catalog and rules are used
            entity_store: Catalog, alias, inventory and receiving store
            rule_repository: Intelligence rule store
            config: Application configuration (defaults to the global one)
            session_id: Identifier to use instead of a generated one
        """
        self.id = session_id or uuid.uuid4().hex
        self.company_id = company_id
        self.entity_store = entity_store
        self.rule_repository = rule_repository
        self.config = config or get_config()

        self.normalizer = EntityNormalizer(
            company_id, entity_store, rule_repository, matching=self.config.matching
        )
        self.resolver = AutoNormalizationResolver(company_id, entity_store, rule_repository)

        self.step = ImportStep.UPLOAD
        self._reset()

    def _reset(self) -> None:
        self.mode = ImportMode.PURCHASE_ORDER
        self.source: Optional[SheetSource] = None
        self.sheets: List[SheetInfo] = []
        self.sheet: Optional[ParsedSheet] = None
        self.mappings: List[ColumnMapping] = []
        self.entity_groups: List[EntityGroup] = []
        self.normalized_mappings: List[NormalizedMapping] = []
        self.auto_normalized_count = 0
        self.normalization_warnings: List[str] = []
        self.last_batch_report: Optional[BatchReport] = None

    def _transition(self, new_step: str) -> None:
        validate_step_transition(self.step, new_step)
        logger.info(f"Import session {self.id}: {self.step} -> {new_step}")
        self.step = new_step

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def upload(
        self, source: Union[ParsedSheet, SheetSource], sheet_name: Optional[str] = None
    ) -> str:
        """
        Load a supplier sheet for a new purchase order import.

        Uploading again from a later step starts the session over.

        Args:
            source: Decoded sheet, or raw file bytes and name
            sheet_name: Sheet to read from a workbook

        Returns:
            The step the session moved to (choose_sheet or map)

        Raises:
            ParseError: If the file cannot be decoded
            InvalidStepTransitionError: If the session already completed
        """
        return self._start(source, sheet_name, ImportMode.PURCHASE_ORDER)

    def start_append(
        self, source: Union[ParsedSheet, SheetSource], sheet_name: Optional[str] = None
    ) -> str:
        """Load a sheet whose columns will be backfilled onto expected items by serial."""
        return self._start(source, sheet_name, ImportMode.APPEND)

    def _start(
        self, source: Union[ParsedSheet, SheetSource], sheet_name: Optional[str], mode: str
    ) -> str:
        if self.step != ImportStep.UPLOAD:
            self._transition(ImportStep.UPLOAD)
        self._reset()
        self.mode = mode

        if isinstance(source, ParsedSheet):
            self._load_sheet(source)
            return self.step

        self.source = source
        result = read_sheet(source, sheet_name)
        if isinstance(result, SheetListing):
            self.sheets = result.sheets
            self._transition(ImportStep.CHOOSE_SHEET)
            return self.step

        self._load_sheet(result)
        return self.step

    def choose_sheet(self, sheet_name: str) -> str:
        """
        Continue a multi-sheet upload with the chosen sheet.

        Raises:
            ParseError: If the sheet does not exist or has no data
        """
        require_step(self.step, ImportStep.CHOOSE_SHEET)
        result = read_sheet(self.source, sheet_name)
        self._load_sheet(result)
        return self.step

    def _load_sheet(self, sheet: ParsedSheet) -> None:
        self.sheet = sheet
        self.mappings = self._suggest_mappings(sheet)
        self._transition(ImportStep.APPEND if self.mode == ImportMode.APPEND else ImportStep.MAP)
        logger.info(
            f"Loaded sheet with {sheet.total_rows} rows and {len(sheet.headers)} columns, "
            f"{len(self.mapped_fields)} columns mapped automatically"
        )

    # ------------------------------------------------------------------
    # Column mapping
    # ------------------------------------------------------------------

    def _suggest_mappings(self, sheet: ParsedSheet) -> List[ColumnMapping]:
        mapper = ColumnMapper(self.rule_repository.get_column_mapping_rules(self.company_id))
        threshold = self.config.matching.auto_apply_threshold

        mappings = []
        for index, header in enumerate(sheet.headers):
            samples = [v for v in sheet.column_values(index) if v.strip()][:MAPPING_SAMPLE_SIZE]
            suggestion = mapper.suggest(header)
            mapping = ColumnMapping(supplier_column=header, sample_values=samples)
            if suggestion.suggested_field and suggestion.confidence > threshold:
                mapping.system_field = suggestion.suggested_field
                mapping.confidence = suggestion.confidence
                mapping.matched_keyword = suggestion.matched_keyword
            mappings.append(mapping)
        return mappings

    def _mapping_for(self, supplier_column: str) -> ColumnMapping:
        for mapping in self.mappings:
            if mapping.supplier_column == supplier_column:
                return mapping
        raise ValidationError(
            f"Unknown column '{supplier_column}'",
            hint=f"Columns in this sheet: {[m.supplier_column for m in self.mappings]}",
        )

    def update_mapping(self, supplier_column: str, system_field: Optional[str]) -> ColumnMapping:
        """
        Map a column to a field, or unmap it with None.

        Raises:
            ValidationError: If the column is unknown or the field is not usable
        """
        require_step(self.step, ImportStep.MAP, ImportStep.APPEND)
        mapping = self._mapping_for(supplier_column)
        validate_mapping_target(system_field)
        mapping.system_field = system_field or None
        mapping.confidence = 1.0 if system_field else 0.0
        mapping.matched_keyword = None
        return mapping

    def set_column_aliases(self, supplier_column: str, aliases: Iterable[str]) -> ColumnMapping:
        """Header keywords to learn for the column's field when the import commits."""
        require_step(self.step, ImportStep.MAP, ImportStep.APPEND)
        mapping = self._mapping_for(supplier_column)
        cleaned = []
        for alias in aliases:
            alias = alias.strip()
            if alias and alias.lower() not in [a.lower() for a in cleaned]:
                cleaned.append(alias)
        mapping.aliases = cleaned
        return mapping

    @property
    def mapped_fields(self) -> List[str]:
        return [m.system_field for m in self.mappings if m.system_field]

    def duplicate_mappings(self) -> Dict[str, List[str]]:
        """Fields mapped from more than one column. Flagged, not blocked."""
        return find_duplicate_mappings((m.supplier_column, m.system_field) for m in self.mappings)

    def _mapped_rows(self) -> List[Dict[str, str]]:
        """Rows keyed by mapped field; the first column mapped to a field wins."""
        rows = []
        for row in self.sheet.rows:
            mapped: Dict[str, str] = {}
            for index, mapping in enumerate(self.mappings):
                if mapping.system_field and mapping.system_field not in mapped:
                    mapped[mapping.system_field] = self.sheet.cell(row, index).strip()
            rows.append(mapped)
        return rows

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def proceed_to_normalization(self) -> List[EntityGroup]:
        """
        Resolve learned values and group the rest for human review.

        Values the company already taught the system are resolved without a
        decision. When nothing is left to decide the session moves straight
        on to preview.

        Returns:
            Groups that need a decision
        """
        require_step(self.step, ImportStep.MAP)
        self._transition(ImportStep.NORMALIZE)

        snapshot = self._mapped_rows()
        mapped = set(self.mapped_fields)
        self.entity_groups = []
        self.normalized_mappings = []
        self.auto_normalized_count = 0
        self.normalization_warnings = []

        for field_name in NORMALIZATION_FIELDS:
            if field_name not in mapped:
                continue

            values = []
            for row in snapshot:
                value = row.get(field_name, "")
                if value and value not in values:
                    values.append(value)
            if not values:
                continue

            pending = self._auto_normalize(field_name, values)
            if not pending:
                continue

            # Blank resolved values so row indices still line up with sheet rows
            rows = [
                {field_name: row.get(field_name, "") if row.get(field_name, "") in pending else ""}
                for row in snapshot
            ]
            self.entity_groups.extend(self.normalizer.analyze_field(field_name, rows))

        self._attach_existing_matches()

        logger.info(
            f"Import session {self.id}: {self.auto_normalized_count} values auto-normalized, "
            f"{len(self.entity_groups)} groups need review"
        )
        if not self.entity_groups:
            self._transition(ImportStep.PREVIEW)
        return self.entity_groups

    def _auto_normalize(self, field_name: str, values: List[str]) -> set:
        """Record learned resolutions and return the values still needing a decision."""
        check = partial(self.resolver.check_auto_normalization, field_name)
        pending = set()
        for result in fan_out(check, values, max_workers=self.config.max_workers):
            if not result.ok:
                self.normalization_warnings.append(
                    f"Could not check {field_name} value "
                    f"'{sanitize_for_logging(result.item, 80)}': {result.error}"
                )
                pending.add(result.item)
            elif result.value.auto_applied:
                self.auto_normalized_count += 1
                self.normalized_mappings.append(
                    NormalizedMapping(
                        field=field_name,
                        original_value=result.item,
                        resolved_value=result.value.resolved_value,
                        resolved_id=result.value.resolved_id,
                    )
                )
            else:
                pending.add(result.item)
        return pending

    def _attach_existing_matches(self) -> None:
        def scan(group: EntityGroup):
            return self.normalizer.check_existing_entities(group.field, group.variants)

        for result in fan_out(scan, self.entity_groups, max_workers=self.config.max_workers):
            if result.ok:
                result.item.existing_matches = result.value
            else:
                self.normalization_warnings.append(
                    f"Could not match {result.item.field} against the catalog: {result.error}"
                )

    def apply_decisions(self, decisions: List[NormalizationDecision]) -> BatchReport:
        """
        Apply human decisions and move to preview.

        Each decision is applied independently; a failed write is reported
        per decision and does not undo the others.

        Returns:
            BatchReport of succeeded and failed decisions
        """
        require_step(self.step, ImportStep.NORMALIZE)

        report = BatchReport()
        results = fan_out(
            self.normalizer.apply_decision, decisions, max_workers=self.config.max_workers
        )
        for result in results:
            if result.ok:
                report.succeeded += 1
                self.normalized_mappings.extend(result.value)
            else:
                decision = result.item
                report.failures.append(
                    PersistenceError(
                        f"Could not apply {decision.action} for {decision.field}: {result.error}",
                        item=", ".join(decision.variants),
                    )
                )

        if report.failures:
            logger.warning(
                f"Import session {self.id}: {report.failed} of {len(decisions)} decisions failed"
            )
        self.last_batch_report = report
        self._transition(ImportStep.PREVIEW)
        return report

    # ------------------------------------------------------------------
    # Preview and commit
    # ------------------------------------------------------------------

    def _builder(self) -> LineItemBuilder:
        return LineItemBuilder(
            self.mappings,
            self.normalized_mappings,
            ComponentParser(self.rule_repository.get_component_pattern_rules(self.company_id)),
        )

    def preview(self, exchange_rate: float, source_currency: Optional[str] = None) -> PreviewResult:
        """
        Line items a commit would produce at this exchange rate.

        Raises:
            ValidationError: If the exchange rate is not positive
        """
        require_step(self.step, ImportStep.MAP, ImportStep.PREVIEW)
        validate_exchange_rate(exchange_rate)
        if self.step == ImportStep.MAP:
            self._transition(ImportStep.PREVIEW)

        result = self._builder().build(self.sheet, exchange_rate)
        result.source_currency = source_currency
        return result

    def commit(
        self,
        exchange_rate: float,
        source_currency: Optional[str] = None,
        purchase_order_ref: Optional[str] = None,
    ) -> CommitResult:
        """
        Validate every row and complete the import.

        Args:
            exchange_rate: Multiplier from the supplier currency to the base currency
            source_currency: Supplier currency code, recorded on the result
            purchase_order_ref: When given, items are saved as expected receiving items

        Returns:
            CommitResult with the imported line items

        Raises:
            ValidationError: Bad rate, unmapped unit cost or brand, or no valid rows
            ConflictError: If any serial already exists in inventory
            PersistenceError: If the expected items cannot be saved
        """
        require_step(self.step, ImportStep.MAP, ImportStep.PREVIEW)
        validate_exchange_rate(exchange_rate)
        validate_required_mappings(self.mapped_fields)

        preview = self._builder().build(self.sheet, exchange_rate)
        items = preview.items

        serials = [item.serial_number for item in items if item.serial_number]
        if serials:
            duplicates = self.entity_store.find_existing_serials(self.company_id, serials)
            if duplicates:
                listed = ", ".join(duplicates)
                if len(listed) > DUPLICATE_SERIALS_MESSAGE_LIMIT:
                    listed = listed[:DUPLICATE_SERIALS_MESSAGE_LIMIT] + "..."
                raise ConflictError(
                    f"Cannot import: {len(duplicates)} serial(s) already exist in inventory: {listed}",
                    serials=duplicates,
                )

        if not items:
            raise ValidationError(
                f"No items imported. All {preview.total_rows} rows failed validation.",
                hint="Each row needs a brand and a unit cost greater than 0",
            )

        persisted = 0
        if purchase_order_ref:
            try:
                persisted = self.entity_store.save_expected_items(
                    self.company_id,
                    purchase_order_ref,
                    [item.to_expected_record() for item in items],
                )
            except SQLAlchemyError as e:
                raise PersistenceError(
                    f"Could not save expected items for PO {purchase_order_ref}: {e}",
                    item=purchase_order_ref,
                ) from e

        learned = self._learn_column_aliases()

        if self.step == ImportStep.MAP:
            self._transition(ImportStep.PREVIEW)
        self._transition(ImportStep.COMPLETE)

        logger.info(
            f"Import session {self.id} committed {len(items)} of {preview.total_rows} rows"
            + (f" to PO {purchase_order_ref}" if purchase_order_ref else "")
        )
        return CommitResult(
            items=items,
            exchange_rate=exchange_rate,
            source_currency=source_currency,
            purchase_order_ref=purchase_order_ref,
            persisted_items=persisted,
            learned_keywords=learned,
        )

    def _learn_column_aliases(self) -> Dict[str, List[str]]:
        learned: Dict[str, List[str]] = {}
        for mapping in self.mappings:
            if not mapping.system_field or not mapping.aliases:
                continue
            try:
                added = self.rule_repository.add_column_keywords(
                    self.company_id, mapping.system_field, mapping.aliases
                )
            except SQLAlchemyError as e:
                logger.warning(
                    f"Could not save header aliases for {mapping.system_field}: {e}", exc_info=True
                )
                continue
            if added:
                learned.setdefault(mapping.system_field, []).extend(added)
        return learned

    # ------------------------------------------------------------------
    # Append
    # ------------------------------------------------------------------

    def apply_append(self, purchase_order_ref: str) -> AppendReport:
        """
        Backfill mapped columns onto the purchase order's expected items.

        Raises:
            ValidationError: If the serial column or any other column is unmapped
        """
        require_step(self.step, ImportStep.APPEND)
        processor = AppendProcessor(
            self.company_id,
            self.entity_store,
            self.rule_repository,
            max_workers=self.config.max_workers,
        )
        report = processor.apply(self.sheet, self.mappings, purchase_order_ref)
        if report.updated > 0:
            self._transition(ImportStep.COMPLETE)
        return report

    def to_dict(self) -> dict:
        """Session state for API responses."""
        return {
            "session_id": self.id,
            "company_id": self.company_id,
            "step": self.step,
            "mode": self.mode,
            "sheets": [s.to_dict() for s in self.sheets],
            "headers": list(self.sheet.headers) if self.sheet else [],
            "total_rows": self.sheet.total_rows if self.sheet else 0,
            "mappings": [m.to_dict() for m in self.mappings],
            "duplicate_mappings": self.duplicate_mappings(),
            "entity_groups": [g.to_dict() for g in self.entity_groups],
            "auto_normalized_count": self.auto_normalized_count,
            "warnings": list(self.normalization_warnings),
        }
