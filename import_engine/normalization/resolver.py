"""Fast path that resolves values the company has already taught the system."""

import logging

from import_engine.database.entity_store import EntityStore
from import_engine.database.rule_repository import RuleRepository
from import_engine.normalization.model import AutoNormalizationResult
from import_engine.normalization.normalizer import normalize_for_field
from import_engine.normalization.passthrough import is_passthrough_field

logger = logging.getLogger(__name__)


class AutoNormalizationResolver:
    """
    Checks aliases and value-lookup rules before a value is shown to a person.

    Lookup order: pass-through fields never resolve; then the field's alias
    table (product type, model); then value-lookup rules for the field in
    stored order.
    """

    def __init__(self, company_id: str, entity_store: EntityStore, rule_repository: RuleRepository):
        self.company_id = company_id
        self.entity_store = entity_store
        self.rule_repository = rule_repository

    def check_auto_normalization(self, field_name: str, value: str) -> AutoNormalizationResult:
        """
        Try to resolve a raw value without human input.

        Args:
            field_name: Canonical field
            value: Raw cell value

        Returns:
            AutoNormalizationResult; auto_applied is False when the value needs a decision
        """
        if is_passthrough_field(field_name):
            return AutoNormalizationResult(resolved_value=value, auto_applied=False)

        normalized = normalize_for_field(field_name, value)

        if field_name == "product_type":
            entity = self.entity_store.find_product_type_by_alias(self.company_id, normalized)
            if entity is not None:
                return AutoNormalizationResult(
                    resolved_value=entity.name, resolved_id=entity.id, auto_applied=True
                )
        elif field_name == "model":
            canonical = self.entity_store.find_model_by_alias(self.company_id, normalized)
            if canonical is not None:
                return AutoNormalizationResult(resolved_value=canonical, auto_applied=True)

        rule = self.rule_repository.lookup_value(self.company_id, field_name, normalized)
        if rule is not None:
            return AutoNormalizationResult(
                resolved_value=rule.output_value or normalized,
                resolved_id=rule.output_reference_id,
                auto_applied=True,
            )

        return AutoNormalizationResult(resolved_value=normalized, auto_applied=False)
