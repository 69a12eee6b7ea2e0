"""Data models for import intelligence rules, mapping suggestions and parsed components."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class RuleType:
    """Kinds of learned intelligence rules."""

    COLUMN_MAPPING = "column_mapping"
    VALUE_LOOKUP = "value_lookup"
    COMPONENT_PATTERN = "component_pattern"

    ALL = (COLUMN_MAPPING, VALUE_LOOKUP, COMPONENT_PATTERN)


# parse_with_function value that routes a field through the component parser
PARSE_COMPONENT_PATTERN = "parse_component_pattern"


@dataclass
class IntelligenceRule:
    """A persisted rule learned from (or seeded for) one company."""

    company_id: str
    rule_type: str
    applies_to_field: str
    input_keywords: List[str] = field(default_factory=list)
    priority: int = 10
    output_value: Optional[str] = None
    output_reference_id: Optional[int] = None
    output_reference_table: Optional[str] = None
    parse_with_function: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    id: Optional[int] = None

    def matches_keyword(self, value: str) -> bool:
        """Case-insensitive membership of value in the rule's keywords."""
        needle = value.strip().lower()
        return any(needle == keyword.strip().lower() for keyword in self.input_keywords)

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "company_id": self.company_id,
            "rule_type": self.rule_type,
            "applies_to_field": self.applies_to_field,
            "input_keywords": list(self.input_keywords),
            "priority": self.priority,
            "output_value": self.output_value,
            "output_reference_id": self.output_reference_id,
            "output_reference_table": self.output_reference_table,
            "parse_with_function": self.parse_with_function,
            "metadata": dict(self.metadata),
            "is_active": self.is_active,
        }


@dataclass
class ColumnMappingSuggestion:
    """Best canonical field for one supplier header."""

    column_name: str
    suggested_field: str = ""  # "" when nothing matched
    confidence: float = 0.0
    matched_keyword: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "column_name": self.column_name,
            "suggested_field": self.suggested_field,
            "confidence": self.confidence,
            "matched_keyword": self.matched_keyword,
        }


@dataclass
class ComponentSpec:
    """One parsed hardware component (e.g. a single 8GB RAM stick)."""

    capacity: str
    quantity: int = 1
    original_text: Optional[str] = None
    technology: Optional[str] = None
    component_type: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"capacity": self.capacity, "quantity": self.quantity}
        if self.original_text is not None:
            data["original_text"] = self.original_text
        if self.technology is not None:
            data["technology"] = self.technology
        if self.component_type is not None:
            data["component_type"] = self.component_type
        return data


@dataclass
class ComponentParseResult:
    """Components parsed from one cell value, and the rule function that produced them."""

    original_value: str
    components: List[ComponentSpec]
    parse_function: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "original_value": self.original_value,
            "components": [c.to_dict() for c in self.components],
            "parse_function": self.parse_function,
        }
