"""Intelligence rules API router: learned rules, canonical fields and mapping suggestions."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse

from api.dependencies import get_company_id, get_rule_repository
from api.models.requests import (
    CreateRuleRequest,
    ImportRulesRequest,
    SuggestMappingRequest,
    UpdateRulePriorityRequest,
    ValidateFieldNameRequest,
)
from api.models.responses import (
    CanonicalFieldResponse,
    FieldNameValidationResponse,
    ImportRulesResponse,
    RuleResponse,
    SeedRulesResponse,
    SuggestionResponse,
)
from import_engine.database.rule_repository import RuleRepository
from import_engine.intelligence.canonical_fields import (
    get_canonical_fields_metadata,
    validate_custom_field_name,
)
from import_engine.intelligence.column_mapper import ColumnMapper
from import_engine.intelligence.model import IntelligenceRule, RuleType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/intelligence", tags=["intelligence"])


@router.get("/rules", response_model=List[RuleResponse])
def list_rules(
    rule_type: Optional[str] = Query(None, description="Filter by rule type"),
    include_inactive: bool = Query(False),
    company_id: str = Depends(get_company_id),
    repository: RuleRepository = Depends(get_rule_repository),
):
    if rule_type and rule_type not in RuleType.ALL:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid rule_type: {rule_type}. Must be one of {list(RuleType.ALL)}",
        )
    rules = repository.list_rules(company_id, rule_type=rule_type, include_inactive=include_inactive)
    return [RuleResponse(**rule.to_dict()) for rule in rules]


@router.post("/rules", response_model=RuleResponse, status_code=201)
def create_rule(
    request: CreateRuleRequest,
    company_id: str = Depends(get_company_id),
    repository: RuleRepository = Depends(get_rule_repository),
):
    try:
        rule = repository.create_rule(
            IntelligenceRule(company_id=company_id, **request.model_dump())
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return RuleResponse(**rule.to_dict())


@router.put("/rules/{rule_id}/priority", response_model=dict)
def update_rule_priority(
    rule_id: int,
    request: UpdateRulePriorityRequest,
    company_id: str = Depends(get_company_id),
    repository: RuleRepository = Depends(get_rule_repository),
):
    if not repository.update_rule_priority(company_id, rule_id, request.priority):
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")
    return {"id": rule_id, "priority": request.priority}


@router.delete("/rules/{rule_id}", status_code=204)
def deactivate_rule(
    rule_id: int,
    company_id: str = Depends(get_company_id),
    repository: RuleRepository = Depends(get_rule_repository),
):
    """Deactivate a rule. Rules are kept for history and never deleted."""
    if not repository.deactivate_rule(company_id, rule_id):
        raise HTTPException(status_code=404, detail=f"Active rule {rule_id} not found")


@router.post("/rules/seed", response_model=SeedRulesResponse)
def seed_default_rules(
    company_id: str = Depends(get_company_id),
    repository: RuleRepository = Depends(get_rule_repository),
):
    """Create column-mapping rules from the canonical field keywords (idempotent)."""
    return SeedRulesResponse(created=repository.seed_default_column_rules(company_id))


@router.get("/rules/export", response_class=PlainTextResponse)
def export_rules(
    company_id: str = Depends(get_company_id),
    repository: RuleRepository = Depends(get_rule_repository),
):
    return PlainTextResponse(repository.export_rules_yaml(company_id), media_type="application/x-yaml")


@router.post("/rules/import", response_model=ImportRulesResponse, status_code=201)
def import_rules(
    request: ImportRulesRequest,
    company_id: str = Depends(get_company_id),
    repository: RuleRepository = Depends(get_rule_repository),
):
    try:
        rules = repository.import_rules_yaml(company_id, request.content)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ImportRulesResponse(
        imported=len(rules), rules=[RuleResponse(**rule.to_dict()) for rule in rules]
    )


@router.post("/suggest", response_model=List[SuggestionResponse])
def suggest_mappings(
    request: SuggestMappingRequest,
    company_id: str = Depends(get_company_id),
    repository: RuleRepository = Depends(get_rule_repository),
):
    """Best canonical field per header, from the company's column-mapping rules."""
    mapper = ColumnMapper(repository.get_column_mapping_rules(company_id))
    return [SuggestionResponse(**s.to_dict()) for s in mapper.suggest_many(request.headers)]


@router.get("/fields", response_model=List[CanonicalFieldResponse])
def list_canonical_fields():
    return [CanonicalFieldResponse(**f) for f in get_canonical_fields_metadata()]


@router.post("/fields/validate", response_model=FieldNameValidationResponse)
def validate_field_name(request: ValidateFieldNameRequest):
    return FieldNameValidationResponse(**validate_custom_field_name(request.field_name).to_dict())
