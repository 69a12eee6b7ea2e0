"""Pydantic response models for the import API."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class SheetInfoModel(BaseModel):
    name: str
    row_count: int
    preview: List[List[str]]


class ColumnMappingModel(BaseModel):
    """Response model for one column mapping."""

    supplier_column: str
    system_field: Optional[str]
    sample_values: List[str]
    aliases: List[str]
    confidence: float
    matched_keyword: Optional[str]


class SessionResponse(BaseModel):
    """Response model for the state of an import session."""

    session_id: str
    company_id: str
    step: str
    mode: str
    sheets: List[SheetInfoModel]
    headers: List[str]
    total_rows: int
    mappings: List[ColumnMappingModel]
    duplicate_mappings: Dict[str, List[str]]
    entity_groups: List[Dict[str, Any]]
    auto_normalized_count: int
    warnings: List[str]


class ItemError(BaseModel):
    message: str
    item: Optional[str]


class BatchReportResponse(BaseModel):
    """Response model for applied normalization decisions."""

    succeeded: int
    failed: int
    errors: List[ItemError]
    step: str


class PreviewResponse(BaseModel):
    """Response model for previewed line items."""

    items: List[Dict[str, Any]]
    total_rows: int
    valid_rows: int
    skipped_rows: List[int]
    exchange_rate: float
    source_currency: Optional[str]


class CommitResponse(BaseModel):
    """Response model for a committed import."""

    imported: int
    items: List[Dict[str, Any]]
    exchange_rate: float
    source_currency: Optional[str]
    purchase_order_ref: Optional[str]
    persisted_items: int
    learned_keywords: Dict[str, List[str]]


class AppendResponse(BaseModel):
    """Response model for an append run."""

    updated: int
    assets_updated: int
    skipped: int
    not_found: int
    empty_serial_rows: List[int]
    not_found_serials: List[str]
    warnings: List[str]
    errors: List[ItemError]
    step: str


class RuleResponse(BaseModel):
    """Response model for an intelligence rule."""

    id: Optional[int]
    company_id: str
    rule_type: str
    applies_to_field: str
    input_keywords: List[str]
    priority: int
    output_value: Optional[str]
    output_reference_id: Optional[int]
    output_reference_table: Optional[str]
    parse_with_function: Optional[str]
    metadata: Dict[str, Any]
    is_active: bool


class SeedRulesResponse(BaseModel):
    created: int


class ImportRulesResponse(BaseModel):
    imported: int
    rules: List[RuleResponse]


class SuggestionResponse(BaseModel):
    column_name: str
    suggested_field: str
    confidence: float
    matched_keyword: Optional[str]


class CanonicalFieldResponse(BaseModel):
    field_name: str
    display_name: str
    description: str
    field_type: str
    required: bool
    sort_order: int
    keywords: List[str]
    validation_hint: Optional[str]


class FieldNameValidationResponse(BaseModel):
    """Response model for custom field name validation."""

    valid: bool
    error: Optional[str] = None
    warning: Optional[str] = None
    suggestion: Optional[str] = None
