"""
Entity normalization: grouping spelling variants of free-text values,
matching them against the catalog and applying human decisions.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from import_engine.config import MatchingConfig
from import_engine.database.entity_store import EntityStore, catalog_table_name, is_catalog_field
from import_engine.database.rule_repository import RuleRepository
from import_engine.normalization.model import (
    EntityGroup,
    EntityVariant,
    ExistingMatch,
    NormalizationDecision,
    NormalizedMapping,
)
from import_engine.normalization.passthrough import is_passthrough_field
from import_engine.normalization.similarity import rank_candidates
from import_engine.utils.sanitize import sanitize_for_logging

logger = logging.getLogger(__name__)

# Identifiers whose case and punctuation are significant: trimmed only, one group per value
MODEL_LIKE_FIELDS = ("model", "specifications.cpu")


def normalize_value(value: str) -> str:
    """
    Title-case each whitespace-separated token and rejoin with single spaces.

    "  hEWLETT   packard " -> "Hewlett Packard"
    """
    return " ".join(token[:1].upper() + token[1:].lower() for token in value.split())


def normalize_model_name(value: str) -> str:
    return value.strip()


def normalize_for_field(field_name: str, value: str) -> str:
    """Apply the normalization a field uses (trim-only for model-like fields)."""
    if field_name in MODEL_LIKE_FIELDS:
        return normalize_model_name(value)
    return normalize_value(value)


def _collect_variants(
    field_name: str, rows: Sequence[Mapping[str, Any]], normalize
) -> Dict[str, EntityVariant]:
    variants: Dict[str, EntityVariant] = {}
    for index, row in enumerate(rows):
        value = row.get(field_name)
        if not isinstance(value, str) or not value.strip():
            continue
        normalized = normalize(value)
        variant = variants.get(normalized)
        if variant is None:
            variant = variants[normalized] = EntityVariant(normalized_value=normalized)
        variant.count += 1
        variant.row_indices.append(index)
        if value not in variant.original_values:
            variant.original_values.append(value)
    return variants


class EntityNormalizer:
    """
    Normalizes entity values for one company.

    Grouping and similarity are pure; catalog reads and decision writes go
    through the injected EntityStore and RuleRepository.
    """

    def __init__(
        self,
        company_id: str,
        entity_store: EntityStore,
        rule_repository: RuleRepository,
        matching: Optional[MatchingConfig] = None,
    ):
        """
        Initialize normalizer.

        Args:
            company_id: Company whose catalog and rules are used
            entity_store: Catalog and alias store
            rule_repository: Intelligence rule store
            matching: Similarity threshold and match limit (defaults from environment)
        """
        self.company_id = company_id
        self.entity_store = entity_store
        self.rule_repository = rule_repository
        self.matching = matching or MatchingConfig()

    # ------------------------------------------------------------------
    # Grouping
    # ------------------------------------------------------------------

    def analyze_entity_field(
        self, field_name: str, rows: Sequence[Mapping[str, Any]]
    ) -> Optional[EntityGroup]:
        """
        Group every spelling of a field into one EntityGroup.

        Pass-through fields and model are never grouped this way.

        Args:
            field_name: Canonical field
            rows: Mapped rows keyed by canonical field

        Returns:
            One group holding all variants, or None
        """
        if is_passthrough_field(field_name) or field_name == "model":
            return None

        variants = _collect_variants(field_name, rows, normalize_value)
        if not variants:
            return None

        # Highest count first, ties broken alphabetically
        ordered = sorted(variants.values(), key=lambda v: (-v.count, v.normalized_value))
        return EntityGroup(
            field=field_name,
            variants=ordered,
            suggested_canonical=ordered[0].normalized_value,
        )

    def analyze_model_like_field(
        self, field_name: str, rows: Sequence[Mapping[str, Any]]
    ) -> List[EntityGroup]:
        """
        One group per distinct trimmed value that repeats or has several spellings.

        Values seen once with a single spelling need no decision and are skipped.
        """
        if is_passthrough_field(field_name):
            return []

        variants = _collect_variants(field_name, rows, normalize_model_name)
        return [
            EntityGroup(field=field_name, variants=[variant], suggested_canonical=normalized)
            for normalized, variant in variants.items()
            if variant.count > 1 or len(variant.original_values) > 1
        ]

    def analyze_model_field(self, rows: Sequence[Mapping[str, Any]]) -> List[EntityGroup]:
        return self.analyze_model_like_field("model", rows)

    def analyze_field(self, field_name: str, rows: Sequence[Mapping[str, Any]]) -> List[EntityGroup]:
        """Dispatch to the grouping strategy the field uses."""
        if field_name in MODEL_LIKE_FIELDS:
            return self.analyze_model_like_field(field_name, rows)
        group = self.analyze_entity_field(field_name, rows)
        return [group] if group else []

    # ------------------------------------------------------------------
    # Catalog matching
    # ------------------------------------------------------------------

    def check_existing_entities(
        self, field_name: str, variants: Sequence[EntityVariant]
    ) -> List[ExistingMatch]:
        """
        Find catalog entities similar to any of the variants.

        Only catalog-backed fields (product type, supplier, location) are
        checked; brand, model and CPU have no catalog and return [].
        """
        if not is_catalog_field(field_name) or not variants:
            return []

        existing = self.entity_store.list_active_entities(self.company_id, field_name)
        ranked = rank_candidates(
            [v.normalized_value for v in variants],
            [(entity.id, entity.name) for entity in existing],
            threshold=self.matching.similarity_threshold,
            limit=self.matching.max_existing_matches,
        )
        return [ExistingMatch(id=i, name=name, similarity=score) for i, name, score in ranked]

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def apply_decision(self, decision: NormalizationDecision) -> List[NormalizedMapping]:
        """
        Resolve a decision to one mapping per variant, persisting what it asks for.

        create_new reuses an entity with the same exact name; link_existing
        takes the name stored on the linked entity, never the typed one.

        Raises:
            ValueError: If the decision is incomplete
        """
        if decision.action == "skip":
            return [
                NormalizedMapping(field=decision.field, original_value=v, resolved_value=v)
                for v in decision.variants
            ]

        resolved_id: Optional[int] = None

        if decision.action == "create_new":
            canonical = (decision.canonical_name or "").strip()
            if not canonical:
                raise ValueError(f"create_new decision for {decision.field} needs a canonical name")
            if is_catalog_field(decision.field):
                entity = self.entity_store.find_or_create_entity(
                    self.company_id, decision.field, canonical
                )
                resolved_id, resolved_value = entity.id, entity.name
            else:
                resolved_value = canonical

        elif decision.action == "link_existing":
            entity = None
            if is_catalog_field(decision.field):
                entity = self.entity_store.get_entity(
                    self.company_id, decision.field, decision.existing_id
                )
            if entity is not None:
                resolved_id, resolved_value = entity.id, entity.name
            else:
                logger.warning(
                    f"Linked {decision.field} entity {decision.existing_id} not found, "
                    f"falling back to the typed name"
                )
                resolved_value = decision.canonical_name or decision.variants[0]

        else:
            raise ValueError(f"Unknown decision action: {decision.action}")

        if decision.save_as_aliases:
            self._save_aliases(decision.field, decision.variants, resolved_value, resolved_id)

        if decision.create_intelligence_rules:
            self._save_value_lookup_rules(
                decision.field, decision.variants, resolved_value, resolved_id
            )

        logger.debug(
            f"Resolved {len(decision.variants)} {decision.field} variants to "
            f"'{sanitize_for_logging(resolved_value, 80)}' (id={resolved_id})"
        )
        return [
            NormalizedMapping(
                field=decision.field,
                original_value=variant,
                resolved_value=resolved_value,
                resolved_id=resolved_id,
            )
            for variant in decision.variants
        ]

    def _save_aliases(
        self,
        field_name: str,
        variants: Sequence[str],
        canonical_name: str,
        entity_id: Optional[int],
    ) -> int:
        """Persist variants as aliases; only product_type and model have alias tables."""
        aliases = [v for v in variants if v.strip().lower() != canonical_name.strip().lower()]
        saved = 0

        if field_name == "product_type" and entity_id is not None:
            for alias in aliases:
                saved += self.entity_store.save_product_type_alias(self.company_id, entity_id, alias)
        elif field_name == "model":
            for alias in aliases:
                saved += self.entity_store.save_model_alias(self.company_id, alias, canonical_name)

        if saved:
            logger.info(f"Saved {saved} {field_name} aliases for '{canonical_name}'")
        return saved

    def _save_value_lookup_rules(
        self,
        field_name: str,
        variants: Sequence[str],
        canonical_value: str,
        entity_id: Optional[int],
    ) -> int:
        saved = 0
        for variant in variants:
            rule = self.rule_repository.save_value_lookup_rule(
                self.company_id,
                field_name,
                variant,
                output_value=canonical_value,
                output_reference_id=entity_id,
                output_reference_table=catalog_table_name(field_name),
            )
            if rule is not None:
                saved += 1
        return saved
