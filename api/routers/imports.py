"""Import sessions API router: upload, mapping, normalization, preview, commit and append."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from api.dependencies import (
    get_app_config,
    get_company_id,
    get_entity_store,
    get_rule_repository,
    get_session_registry,
)
from api.models.requests import (
    AppendRequest,
    ApplyDecisionsRequest,
    ChooseSheetRequest,
    CommitRequest,
    PreviewRequest,
    SetAliasesRequest,
    UpdateMappingsRequest,
)
from api.models.responses import (
    AppendResponse,
    BatchReportResponse,
    ColumnMappingModel,
    CommitResponse,
    PreviewResponse,
    SessionResponse,
)
from api.services.session_registry import SessionRegistry
from import_engine.config import AppConfig
from import_engine.database.entity_store import EntityStore
from import_engine.database.rule_repository import RuleRepository
from import_engine.imports.constants import ImportMode
from import_engine.imports.model import SheetSource
from import_engine.imports.session import ImportSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/imports", tags=["imports"])


def get_import_session(
    session_id: str,
    company_id: str = Depends(get_company_id),
    registry: SessionRegistry = Depends(get_session_registry),
) -> ImportSession:
    return registry.get(session_id, company_id)


@router.post("", response_model=SessionResponse, status_code=201)
def create_import(
    file: UploadFile = File(..., description="Supplier sheet (.csv, .xlsx)"),
    sheet_name: Optional[str] = Form(None, description="Sheet to read from a workbook"),
    mode: str = Form(ImportMode.PURCHASE_ORDER, description="purchase_order or append"),
    company_id: str = Depends(get_company_id),
    entity_store: EntityStore = Depends(get_entity_store),
    rule_repository: RuleRepository = Depends(get_rule_repository),
    registry: SessionRegistry = Depends(get_session_registry),
    config: AppConfig = Depends(get_app_config),
):
    """
    Start an import session by uploading a supplier sheet.

    Multi-sheet workbooks uploaded without a sheet name stop at the
    choose_sheet step; otherwise the session is ready for column mapping.
    The session is registered only once the sheet has been read.
    """
    source = SheetSource(content=file.file.read(), filename=file.filename or "")
    session = ImportSession(company_id, entity_store, rule_repository, config=config)

    if mode == ImportMode.APPEND:
        session.start_append(source, sheet_name=sheet_name)
    else:
        session.upload(source, sheet_name=sheet_name)
    registry.add(session)

    return SessionResponse(**session.to_dict())


@router.get("/{session_id}", response_model=SessionResponse)
def get_import(session: ImportSession = Depends(get_import_session)):
    return SessionResponse(**session.to_dict())


@router.delete("/{session_id}", status_code=204)
def discard_import(
    session_id: str,
    company_id: str = Depends(get_company_id),
    registry: SessionRegistry = Depends(get_session_registry),
):
    registry.discard(session_id, company_id)


@router.post("/{session_id}/sheet", response_model=SessionResponse)
def choose_sheet(
    request: ChooseSheetRequest,
    session: ImportSession = Depends(get_import_session),
):
    session.choose_sheet(request.sheet_name)
    return SessionResponse(**session.to_dict())


@router.get("/{session_id}/mappings", response_model=List[ColumnMappingModel])
def get_mappings(session: ImportSession = Depends(get_import_session)):
    return [ColumnMappingModel(**m.to_dict()) for m in session.mappings]


@router.put("/{session_id}/mappings", response_model=SessionResponse)
def update_mappings(
    request: UpdateMappingsRequest,
    session: ImportSession = Depends(get_import_session),
):
    """
    Map or unmap columns.

    Fields mapped from more than one column are reported in
    duplicate_mappings but not rejected.
    """
    for update in request.mappings:
        session.update_mapping(update.supplier_column, update.system_field)
    return SessionResponse(**session.to_dict())


@router.put("/{session_id}/aliases", response_model=ColumnMappingModel)
def set_aliases(
    request: SetAliasesRequest,
    session: ImportSession = Depends(get_import_session),
):
    mapping = session.set_column_aliases(request.supplier_column, request.aliases)
    return ColumnMappingModel(**mapping.to_dict())


@router.post("/{session_id}/normalize", response_model=SessionResponse)
def proceed_to_normalization(session: ImportSession = Depends(get_import_session)):
    """Resolve learned values and return the groups that still need a decision."""
    session.proceed_to_normalization()
    return SessionResponse(**session.to_dict())


@router.post("/{session_id}/decisions", response_model=BatchReportResponse)
def apply_decisions(
    request: ApplyDecisionsRequest,
    session: ImportSession = Depends(get_import_session),
):
    report = session.apply_decisions([d.to_decision() for d in request.decisions])
    return BatchReportResponse(**report.to_dict(), step=session.step)


@router.post("/{session_id}/preview", response_model=PreviewResponse)
def preview(
    request: PreviewRequest,
    session: ImportSession = Depends(get_import_session),
):
    result = session.preview(request.exchange_rate, source_currency=request.source_currency)
    return PreviewResponse(**result.to_dict())


@router.post("/{session_id}/commit", response_model=CommitResponse)
def commit(
    request: CommitRequest,
    session: ImportSession = Depends(get_import_session),
):
    """
    Commit the import.

    Blocked entirely when any serial number already exists in inventory.
    """
    result = session.commit(
        request.exchange_rate,
        source_currency=request.source_currency,
        purchase_order_ref=request.purchase_order_ref,
    )
    return CommitResponse(**result.to_dict())


@router.post("/{session_id}/append", response_model=AppendResponse)
def apply_append(
    request: AppendRequest,
    session: ImportSession = Depends(get_import_session),
):
    report = session.apply_append(request.purchase_order_ref)
    return AppendResponse(**report.to_dict(), step=session.step)
