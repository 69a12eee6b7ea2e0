"""Pydantic request models for the import API."""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from import_engine.normalization.model import (
    CreateNewDecision,
    LinkExistingDecision,
    SkipDecision,
)


class ChooseSheetRequest(BaseModel):
    """Request model for picking a sheet of a multi-sheet workbook."""

    sheet_name: str = Field(..., min_length=1)


class MappingUpdate(BaseModel):
    """One column mapped to a field (or unmapped with null)."""

    supplier_column: str = Field(..., description="Header as it appears in the sheet")
    system_field: Optional[str] = Field(None, description="Canonical or specifications.* field, null to unmap")


class UpdateMappingsRequest(BaseModel):
    """Request model for changing column mappings."""

    mappings: List[MappingUpdate] = Field(..., min_length=1)


class SetAliasesRequest(BaseModel):
    """Request model for header aliases learned at commit."""

    supplier_column: str
    aliases: List[str] = Field(default_factory=list)

    @field_validator("aliases", mode="before")
    @classmethod
    def split_aliases(cls, v: Any) -> Any:
        """Accept a comma-separated string as well as a list."""
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v


class _DecisionBase(BaseModel):
    field: str
    variants: List[str] = Field(..., min_length=1)
    save_as_aliases: bool = False
    create_intelligence_rules: bool = False


class SkipDecisionModel(_DecisionBase):
    action: Literal["skip"]

    def to_decision(self) -> SkipDecision:
        return SkipDecision(
            field=self.field,
            variants=self.variants,
            save_as_aliases=self.save_as_aliases,
            create_intelligence_rules=self.create_intelligence_rules,
        )


class CreateNewDecisionModel(_DecisionBase):
    action: Literal["create_new"]
    canonical_name: str = Field(..., min_length=1)

    def to_decision(self) -> CreateNewDecision:
        return CreateNewDecision(
            field=self.field,
            variants=self.variants,
            canonical_name=self.canonical_name,
            save_as_aliases=self.save_as_aliases,
            create_intelligence_rules=self.create_intelligence_rules,
        )


class LinkExistingDecisionModel(_DecisionBase):
    action: Literal["link_existing"]
    existing_id: int
    canonical_name: Optional[str] = None

    def to_decision(self) -> LinkExistingDecision:
        return LinkExistingDecision(
            field=self.field,
            variants=self.variants,
            existing_id=self.existing_id,
            canonical_name=self.canonical_name,
            save_as_aliases=self.save_as_aliases,
            create_intelligence_rules=self.create_intelligence_rules,
        )


DecisionModel = Annotated[
    Union[SkipDecisionModel, CreateNewDecisionModel, LinkExistingDecisionModel],
    Field(discriminator="action"),
]


class ApplyDecisionsRequest(BaseModel):
    """Request model for submitting normalization decisions."""

    decisions: List[DecisionModel] = Field(default_factory=list)


class PreviewRequest(BaseModel):
    """Request model for previewing line items."""

    exchange_rate: float = Field(1.0, description="Multiplier from supplier currency to base currency")
    source_currency: Optional[str] = Field(None, max_length=8)


class CommitRequest(PreviewRequest):
    """Request model for committing an import."""

    purchase_order_ref: Optional[str] = Field(None, description="Save items as expected receiving items of this PO")


class AppendRequest(BaseModel):
    """Request model for backfilling an append sheet onto a purchase order."""

    purchase_order_ref: str = Field(..., min_length=1)


class CreateRuleRequest(BaseModel):
    """Request model for creating an intelligence rule."""

    rule_type: Literal["column_mapping", "value_lookup", "component_pattern"]
    applies_to_field: str = Field(..., min_length=1)
    input_keywords: List[str] = Field(default_factory=list)
    priority: int = 10
    output_value: Optional[str] = None
    output_reference_id: Optional[int] = None
    output_reference_table: Optional[str] = None
    parse_with_function: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class UpdateRulePriorityRequest(BaseModel):
    priority: int


class ImportRulesRequest(BaseModel):
    """Request model for importing rules exported as YAML."""

    content: str = Field(..., min_length=1, description="YAML document produced by the export endpoint")


class SuggestMappingRequest(BaseModel):
    headers: List[str] = Field(..., min_length=1)


class ValidateFieldNameRequest(BaseModel):
    field_name: str
