"""Persistence and per-company caching of import intelligence rules."""

import logging
from typing import Any, Dict, Iterable, List, Optional

import yaml
from sqlalchemy.exc import OperationalError

from import_engine.database.base_store import BaseStore
from import_engine.database.models import CATALOG_MODELS, ImportIntelligenceRule
from import_engine.intelligence.canonical_fields import CANONICAL_FIELDS
from import_engine.intelligence.model import IntelligenceRule, RuleType
from import_engine.utils.lru_cache import LRUCache
from import_engine.utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)

# Priority given to rules learned from a human decision
LEARNED_RULE_PRIORITY = 100

# Seeded column rules start here and count down by sort order, so earlier
# canonical fields win keyword ties ("amount" maps to unit cost)
SEED_PRIORITY_BASE = 50

_EXPORTED_FIELDS = (
    "rule_type",
    "applies_to_field",
    "input_keywords",
    "priority",
    "output_value",
    "output_reference_id",
    "output_reference_table",
    "parse_with_function",
    "metadata",
    "is_active",
)


class RuleRepository(BaseStore):
    """
    Stores intelligence rules and serves each company's active rule table
    from an LRU cache.

    Every write invalidates the owning company's cache entry, so readers see
    new rules on their next lookup.
    """

    def __init__(self, session_factory, cache_size: int = 200):
        """
        Initialize repository.

        Args:
            session_factory: sessionmaker bound to the engine
            cache_size: Number of companies whose rule tables are kept in memory
        """
        super().__init__(session_factory)
        self._cache = LRUCache(max_size=cache_size)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_active_rules(self, company_id: str) -> List[IntelligenceRule]:
        """All active rules for a company, in stored (insertion) order."""
        cached = self._cache.get(company_id)
        if cached is not None:
            return list(cached)

        generation = self._cache.generation(company_id)
        with self._get_session(commit=False) as session:
            rows = (
                session.query(ImportIntelligenceRule)
                .filter(
                    ImportIntelligenceRule.company_id == company_id,
                    ImportIntelligenceRule.is_active.is_(True),
                )
                .order_by(ImportIntelligenceRule.id)
                .all()
            )
            rules = [self._to_rule(row) for row in rows]

        self._cache.set(company_id, rules, generation=generation)
        logger.debug(f"Loaded {len(rules)} active rules for company {company_id}")
        return list(rules)

    def get_column_mapping_rules(self, company_id: str) -> List[IntelligenceRule]:
        """Column-mapping rules, highest priority first (stored order among ties)."""
        rules = [r for r in self.get_active_rules(company_id) if r.rule_type == RuleType.COLUMN_MAPPING]
        return sorted(rules, key=lambda r: -r.priority)

    def get_value_lookup_rules(self, company_id: str, field_name: str) -> List[IntelligenceRule]:
        """
        Value-lookup rules for one field in stored order.

        These are deliberately not priority-sorted: the first stored rule
        whose keywords match wins.
        """
        return [
            r
            for r in self.get_active_rules(company_id)
            if r.rule_type == RuleType.VALUE_LOOKUP and r.applies_to_field == field_name
        ]

    def get_component_pattern_rules(self, company_id: str) -> List[IntelligenceRule]:
        return [
            r for r in self.get_active_rules(company_id) if r.rule_type == RuleType.COMPONENT_PATTERN
        ]

    def lookup_value(self, company_id: str, field_name: str, value: str) -> Optional[IntelligenceRule]:
        """
        Find the first value-lookup rule for a field whose keywords contain value.

        Args:
            company_id: Owning company
            field_name: Canonical field the value belongs to
            value: Raw value (compared trimmed and case-insensitively)

        Returns:
            The matching rule, or None
        """
        if not value or not value.strip():
            return None
        for rule in self.get_value_lookup_rules(company_id, field_name):
            if rule.matches_keyword(value):
                return rule
        return None

    def list_rules(
        self,
        company_id: str,
        rule_type: Optional[str] = None,
        include_inactive: bool = False,
    ) -> List[IntelligenceRule]:
        """List rules for administration, bypassing the cache."""
        with self._get_session(commit=False) as session:
            query = session.query(ImportIntelligenceRule).filter(
                ImportIntelligenceRule.company_id == company_id
            )
            if rule_type:
                query = query.filter(ImportIntelligenceRule.rule_type == rule_type)
            if not include_inactive:
                query = query.filter(ImportIntelligenceRule.is_active.is_(True))
            rows = query.order_by(
                ImportIntelligenceRule.priority.desc(), ImportIntelligenceRule.id
            ).all()
            return [self._to_rule(row) for row in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @retry_with_backoff(exceptions=(OperationalError,))
    def create_rule(self, rule: IntelligenceRule) -> IntelligenceRule:
        """
        Persist a new rule.

        Raises:
            ValueError: If the rule type is unknown or the rule has no keywords
        """
        if rule.rule_type not in RuleType.ALL:
            raise ValueError(f"Invalid rule_type: {rule.rule_type}. Must be one of {RuleType.ALL}")
        if rule.rule_type != RuleType.COMPONENT_PATTERN and not rule.input_keywords:
            raise ValueError(f"{rule.rule_type} rules need at least one input keyword")

        with self._get_session() as session:
            row = ImportIntelligenceRule(
                company_id=rule.company_id,
                rule_type=rule.rule_type,
                applies_to_field=rule.applies_to_field,
                input_keywords=list(rule.input_keywords),
                priority=rule.priority,
                output_value=rule.output_value,
                output_reference_id=rule.output_reference_id,
                output_reference_table=rule.output_reference_table,
                parse_with_function=rule.parse_with_function,
                rule_metadata=dict(rule.metadata or {}),
                is_active=rule.is_active,
            )
            session.add(row)
            session.flush()
            created = self._to_rule(row)

        self._cache.invalidate(rule.company_id)
        logger.info(
            f"Created {created.rule_type} rule {created.id} for {created.applies_to_field} "
            f"(company {created.company_id})"
        )
        return created

    def save_value_lookup_rule(
        self,
        company_id: str,
        field_name: str,
        variant: str,
        output_value: str,
        output_reference_id: Optional[int] = None,
        output_reference_table: Optional[str] = None,
    ) -> Optional[IntelligenceRule]:
        """
        Learn that variant means output_value for field_name.

        Returns:
            The new rule, or None if an identical active rule already exists
        """
        keyword = variant.strip().lower()
        for existing in self.get_value_lookup_rules(company_id, field_name):
            if (
                existing.matches_keyword(keyword)
                and existing.output_value == output_value
                and existing.output_reference_id == output_reference_id
            ):
                return None

        return self.create_rule(
            IntelligenceRule(
                company_id=company_id,
                rule_type=RuleType.VALUE_LOOKUP,
                applies_to_field=field_name,
                input_keywords=[keyword],
                priority=LEARNED_RULE_PRIORITY,
                output_value=output_value,
                output_reference_id=output_reference_id,
                output_reference_table=output_reference_table,
                is_active=True,
            )
        )

    @retry_with_backoff(exceptions=(OperationalError,))
    def seed_default_column_rules(self, company_id: str) -> int:
        """
        Create one column-mapping rule per canonical field from its keywords.

        Fields that already have a column-mapping rule are left alone.

        Returns:
            Number of rules created
        """
        with self._get_session() as session:
            seeded = {
                row[0]
                for row in session.query(ImportIntelligenceRule.applies_to_field)
                .filter(
                    ImportIntelligenceRule.company_id == company_id,
                    ImportIntelligenceRule.rule_type == RuleType.COLUMN_MAPPING,
                )
                .all()
            }
            created = 0
            for canonical in CANONICAL_FIELDS:
                if canonical.field_name in seeded:
                    continue
                session.add(
                    ImportIntelligenceRule(
                        company_id=company_id,
                        rule_type=RuleType.COLUMN_MAPPING,
                        applies_to_field=canonical.field_name,
                        input_keywords=list(canonical.keywords),
                        priority=SEED_PRIORITY_BASE - canonical.sort_order,
                        output_value=canonical.field_name,
                        rule_metadata={"seeded": True},
                        is_active=True,
                    )
                )
                created += 1

        self._cache.invalidate(company_id)
        if created:
            logger.info(f"Seeded {created} column mapping rules for company {company_id}")
        return created

    @retry_with_backoff(exceptions=(OperationalError,))
    def add_column_keywords(self, company_id: str, field_name: str, keywords: Iterable[str]) -> List[str]:
        """
        Merge header aliases into the field's column-mapping rule.

        A new rule is created when the field has none yet.

        Returns:
            The keywords that were actually added
        """
        wanted = []
        for keyword in keywords:
            normalized = (keyword or "").strip().lower()
            if normalized and normalized not in wanted:
                wanted.append(normalized)
        if not wanted:
            return []

        with self._get_session() as session:
            row = (
                session.query(ImportIntelligenceRule)
                .filter(
                    ImportIntelligenceRule.company_id == company_id,
                    ImportIntelligenceRule.rule_type == RuleType.COLUMN_MAPPING,
                    ImportIntelligenceRule.applies_to_field == field_name,
                    ImportIntelligenceRule.is_active.is_(True),
                )
                .order_by(ImportIntelligenceRule.priority.desc(), ImportIntelligenceRule.id)
                .first()
            )
            if row is None:
                added = wanted
                session.add(
                    ImportIntelligenceRule(
                        company_id=company_id,
                        rule_type=RuleType.COLUMN_MAPPING,
                        applies_to_field=field_name,
                        input_keywords=added,
                        priority=LEARNED_RULE_PRIORITY,
                        output_value=field_name,
                        rule_metadata={},
                        is_active=True,
                    )
                )
            else:
                existing = [k.strip().lower() for k in (row.input_keywords or [])]
                added = [k for k in wanted if k not in existing]
                if added:
                    # Reassign so the JSON column is flagged dirty
                    row.input_keywords = list(row.input_keywords or []) + added

        self._cache.invalidate(company_id)
        if added:
            logger.info(f"Learned header aliases {added} for {field_name} (company {company_id})")
        return added

    @retry_with_backoff(exceptions=(OperationalError,))
    def update_rule_priority(self, company_id: str, rule_id: int, priority: int) -> bool:
        with self._get_session() as session:
            row = (
                session.query(ImportIntelligenceRule)
                .filter(
                    ImportIntelligenceRule.company_id == company_id,
                    ImportIntelligenceRule.id == rule_id,
                )
                .first()
            )
            if row is None:
                return False
            row.priority = priority

        self._cache.invalidate(company_id)
        return True

    @retry_with_backoff(exceptions=(OperationalError,))
    def deactivate_rule(self, company_id: str, rule_id: int) -> bool:
        """
        Deactivate a rule. Rules are never deleted.

        Returns:
            True if the rule existed and was active
        """
        with self._get_session() as session:
            row = (
                session.query(ImportIntelligenceRule)
                .filter(
                    ImportIntelligenceRule.company_id == company_id,
                    ImportIntelligenceRule.id == rule_id,
                )
                .first()
            )
            if row is None or not row.is_active:
                return False
            row.is_active = False

        self._cache.invalidate(company_id)
        logger.info(f"Deactivated rule {rule_id} (company {company_id})")
        return True

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_rules_yaml(self, company_id: str) -> str:
        """Dump the company's active rules as a YAML list (ids and company dropped)."""
        documents = []
        for rule in self.get_active_rules(company_id):
            data = rule.to_dict()
            documents.append({key: data[key] for key in _EXPORTED_FIELDS})
        return yaml.safe_dump(documents, default_flow_style=False, sort_keys=False, allow_unicode=True)

    def import_rules_yaml(self, company_id: str, text: str) -> List[IntelligenceRule]:
        """
        Load rules exported from any company into this one.

        Raises:
            ValueError: If the document is not a list of rule mappings
        """
        try:
            documents = yaml.safe_load(text) or []
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid rules YAML: {e}") from e

        if not isinstance(documents, list) or not all(isinstance(d, dict) for d in documents):
            raise ValueError("Rules YAML must be a list of mappings")

        # Validate everything before writing anything
        rules = [self._rule_from_document(company_id, document) for document in documents]
        imported = [self.create_rule(rule) for rule in rules]
        logger.info(f"Imported {len(imported)} rules into company {company_id}")
        return imported

    def _rule_from_document(self, company_id: str, document: Dict[str, Any]) -> IntelligenceRule:
        missing = [key for key in ("rule_type", "applies_to_field") if not document.get(key)]
        if missing:
            raise ValueError(f"Rule is missing required keys: {', '.join(missing)}")
        if document["rule_type"] not in RuleType.ALL:
            raise ValueError(f"Invalid rule_type: {document['rule_type']}")
        if document["rule_type"] != RuleType.COMPONENT_PATTERN and not document.get("input_keywords"):
            raise ValueError(f"{document['rule_type']} rule for {document['applies_to_field']} has no input keywords")

        return IntelligenceRule(
            company_id=company_id,
            rule_type=document["rule_type"],
            applies_to_field=document["applies_to_field"],
            input_keywords=[str(k) for k in document.get("input_keywords") or []],
            priority=int(document.get("priority", 10)),
            output_value=document.get("output_value"),
            output_reference_id=self._resolve_reference(company_id, document),
            output_reference_table=document.get("output_reference_table"),
            parse_with_function=document.get("parse_with_function"),
            metadata=dict(document.get("metadata") or {}),
            is_active=bool(document.get("is_active", True)),
        )

    def _resolve_reference(self, company_id: str, document: Dict[str, Any]) -> Optional[int]:
        """
        Catalog ids belong to the exporting company, so an imported rule is
        pointed at the importing company's entity with the same name instead.
        Returns None when that company has no such entity.
        """
        table = document.get("output_reference_table")
        name = document.get("output_value")
        model = next((m for m in CATALOG_MODELS.values() if m.__tablename__ == table), None)
        if model is None or not name:
            return None

        with self._get_session(commit=False) as session:
            row = (
                session.query(model)
                .filter(model.company_id == company_id, model.name == name)
                .order_by(model.id)
                .first()
            )
            return row.id if row else None

    def _to_rule(self, row: ImportIntelligenceRule) -> IntelligenceRule:
        return IntelligenceRule(
            id=row.id,
            company_id=row.company_id,
            rule_type=row.rule_type,
            applies_to_field=row.applies_to_field,
            input_keywords=list(row.input_keywords or []),
            priority=row.priority,
            output_value=row.output_value,
            output_reference_id=row.output_reference_id,
            output_reference_table=row.output_reference_table,
            parse_with_function=row.parse_with_function,
            metadata=dict(row.rule_metadata or {}),
            is_active=row.is_active,
        )
