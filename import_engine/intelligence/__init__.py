"""Column mapping, canonical field catalog and component spec parsing."""

from import_engine.intelligence.canonical_fields import (
    CANONICAL_FIELDS,
    CORE_FIELDS,
    SPEC_FIELDS,
    CanonicalField,
    get_canonical_field,
    is_canonical_field,
    suggest_canonical_field,
    validate_custom_field_name,
)
from import_engine.intelligence.column_mapper import ColumnMapper
from import_engine.intelligence.component_parser import (
    ComponentParser,
    calculate_total_capacity,
    extract_technology_type,
    format_component_display,
    get_component_type,
    parse_component_pattern,
)
from import_engine.intelligence.model import (
    ColumnMappingSuggestion,
    ComponentParseResult,
    ComponentSpec,
    IntelligenceRule,
    RuleType,
)

__all__ = [
    "CANONICAL_FIELDS",
    "CORE_FIELDS",
    "SPEC_FIELDS",
    "CanonicalField",
    "ColumnMapper",
    "ColumnMappingSuggestion",
    "ComponentParseResult",
    "ComponentParser",
    "ComponentSpec",
    "IntelligenceRule",
    "RuleType",
    "calculate_total_capacity",
    "extract_technology_type",
    "format_component_display",
    "get_canonical_field",
    "get_component_type",
    "is_canonical_field",
    "parse_component_pattern",
    "suggest_canonical_field",
    "validate_custom_field_name",
]
