"""Data models for entity grouping, human decisions and resolved mappings."""

from dataclasses import dataclass, field
from typing import List, Literal, Optional, Union


@dataclass
class EntityVariant:
    """One normalized spelling of a field value and the rows that carry it."""

    normalized_value: str
    original_values: List[str] = field(default_factory=list)  # distinct raw spellings, first-seen order
    count: int = 0
    row_indices: List[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "normalized_value": self.normalized_value,
            "original_values": list(self.original_values),
            "count": self.count,
            "row_indices": list(self.row_indices),
        }


@dataclass
class ExistingMatch:
    """Catalog entity similar to one of a group's variants."""

    id: int
    name: str
    similarity: float

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "similarity": round(self.similarity, 4)}


@dataclass
class EntityGroup:
    """Variants of one field that need a single human decision."""

    field: str
    variants: List[EntityVariant]
    suggested_canonical: str
    existing_matches: List[ExistingMatch] = field(default_factory=list)

    @property
    def original_values(self) -> List[str]:
        """Every raw spelling in the group, in variant order."""
        return [value for variant in self.variants for value in variant.original_values]

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "variants": [v.to_dict() for v in self.variants],
            "suggested_canonical": self.suggested_canonical,
            "existing_matches": [m.to_dict() for m in self.existing_matches],
        }


@dataclass
class SkipDecision:
    """Keep the variants exactly as written."""

    field: str
    variants: List[str]
    save_as_aliases: bool = False
    create_intelligence_rules: bool = False
    action: Literal["skip"] = "skip"


@dataclass
class CreateNewDecision:
    """Resolve the variants to a (possibly new) entity called canonical_name."""

    field: str
    variants: List[str]
    canonical_name: str
    save_as_aliases: bool = False
    create_intelligence_rules: bool = False
    action: Literal["create_new"] = "create_new"


@dataclass
class LinkExistingDecision:
    """Resolve the variants to an entity that already exists in the catalog."""

    field: str
    variants: List[str]
    existing_id: int
    canonical_name: Optional[str] = None
    save_as_aliases: bool = False
    create_intelligence_rules: bool = False
    action: Literal["link_existing"] = "link_existing"


NormalizationDecision = Union[SkipDecision, CreateNewDecision, LinkExistingDecision]


@dataclass
class NormalizedMapping:
    """How one raw value of a field resolves at commit time."""

    field: str
    original_value: str
    resolved_value: str
    resolved_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "original_value": self.original_value,
            "resolved_value": self.resolved_value,
            "resolved_id": self.resolved_id,
        }


@dataclass
class AutoNormalizationResult:
    """Outcome of the learned-knowledge fast path for one value."""

    resolved_value: str
    resolved_id: Optional[int] = None
    auto_applied: bool = False
