from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.deps.request_identity import get_request_identity
from app.db.session import get_db
from app.schemas.request_identity import RequestIdentity
from app.schemas.sheet import (
    AdditionalEditRequest,
    CellEditRequest,
    CommentRequest,
    EvidenceRequest,
    LoadingDetails,
    LoadingDetailsRequest,
    LooseEditRequest,
    SheetCompleteRequest,
    SheetCreateRequest,
    SheetData,
    SheetDeleteRequest,
    SheetDeleteResponse,
    SheetDraftRequest,
    SheetListItem,
    SheetListResponse,
    SheetLockRequest,
    SheetResponse,
    SheetStatus,
)
from app.services.audit_service import AuditService
from app.services.cell_reconciliation_service import summarize
from app.services.sheet_errors import SheetOperationFailure
from app.services.sheet_export_service import (
    build_operations_register,
    build_sheet_workbook,
    xlsx_response,
)
from app.services.sheet_lifecycle_service import SheetLifecycleService
from app.services.sheet_lock_service import sheet_lock_manager
from app.services.sheet_repository import SqlAlchemySheetRepository
from app.services.transition_policy import can_annotate, can_delete, can_transition

router = APIRouter()


def get_sheet_service(db: Session = Depends(get_db)) -> SheetLifecycleService:
    return SheetLifecycleService(
        SqlAlchemySheetRepository(db),
        lock_manager=sheet_lock_manager,
        audit=AuditService(db),
    )


def _raise_sheet_failure(exc: SheetOperationFailure) -> None:
    raise HTTPException(status_code=exc.status_code, detail=exc.to_detail())


def _require_transition(
    identity: RequestIdentity,
    from_state: SheetStatus | None,
    to_state: SheetStatus,
) -> None:
    if can_transition(identity.role, from_state, to_state):
        return
    source = from_state.value if from_state is not None else "NEW"
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=f"Role {identity.role.value} may not move a sheet from {source} to {to_state.value}.",
    )


def _require_annotate(identity: RequestIdentity) -> None:
    if not can_annotate(identity.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Read-only role.")


def _to_response(sheet: SheetData) -> SheetResponse:
    return SheetResponse(sheet=sheet, summary=summarize(sheet))


def _to_list_item(sheet: SheetData) -> SheetListItem:
    return SheetListItem(
        id=sheet.id,
        status=sheet.status,
        version=sheet.version,
        date=sheet.date,
        shift=sheet.shift,
        destination=sheet.destination,
        supervisor_name=sheet.supervisor_name,
        created_by=sheet.created_by,
        created_at=sheet.created_at,
        locked_at=sheet.locked_at,
        completed_at=sheet.completed_at,
    )


@router.post("", response_model=SheetResponse, status_code=status.HTTP_201_CREATED)
def create_sheet(
    payload: SheetCreateRequest,
    service: SheetLifecycleService = Depends(get_sheet_service),
    identity: RequestIdentity = Depends(get_request_identity),
):
    _require_transition(identity, None, SheetStatus.DRAFT)
    try:
        sheet = service.create(identity.actor, header=payload.header, staging_items=payload.staging_items)
    except SheetOperationFailure as exc:
        _raise_sheet_failure(exc)
    return _to_response(sheet)


@router.get("", response_model=SheetListResponse)
def list_sheets(
    status_filter: Optional[SheetStatus] = Query(None, alias="status"),
    service: SheetLifecycleService = Depends(get_sheet_service),
):
    try:
        sheets = service.list_sheets(status_filter)
    except SheetOperationFailure as exc:
        _raise_sheet_failure(exc)
    return SheetListResponse(sheets=[_to_list_item(sheet) for sheet in sheets])


@router.get("/export")
def export_operations_register(
    status_filter: Optional[SheetStatus] = Query(None, alias="status"),
    service: SheetLifecycleService = Depends(get_sheet_service),
):
    try:
        sheets = service.list_sheets(status_filter)
    except SheetOperationFailure as exc:
        _raise_sheet_failure(exc)
    return xlsx_response(build_operations_register(sheets), "operations_register.xlsx")


@router.get("/{sheet_id}", response_model=SheetResponse)
def get_sheet(
    sheet_id: str,
    service: SheetLifecycleService = Depends(get_sheet_service),
):
    try:
        sheet = service.get(sheet_id)
    except SheetOperationFailure as exc:
        _raise_sheet_failure(exc)
    return _to_response(sheet)


@router.get("/{sheet_id}/export")
def export_sheet(
    sheet_id: str,
    service: SheetLifecycleService = Depends(get_sheet_service),
):
    try:
        sheet = service.get(sheet_id)
    except SheetOperationFailure as exc:
        _raise_sheet_failure(exc)
    return xlsx_response(build_sheet_workbook(sheet), f"{sheet.id}.xlsx")


@router.put("/{sheet_id}/draft", response_model=SheetResponse)
def save_draft(
    sheet_id: str,
    payload: SheetDraftRequest,
    service: SheetLifecycleService = Depends(get_sheet_service),
    identity: RequestIdentity = Depends(get_request_identity),
):
    _require_transition(identity, SheetStatus.DRAFT, SheetStatus.DRAFT)
    try:
        sheet = service.save_draft(
            sheet_id,
            identity.actor,
            header=payload.header,
            staging_items=payload.staging_items,
            expected_version=payload.expected_version,
        )
    except SheetOperationFailure as exc:
        _raise_sheet_failure(exc)
    return _to_response(sheet)


@router.post("/{sheet_id}/lock", response_model=SheetResponse)
def lock_sheet(
    sheet_id: str,
    payload: Optional[SheetLockRequest] = None,
    service: SheetLifecycleService = Depends(get_sheet_service),
    identity: RequestIdentity = Depends(get_request_identity),
):
    _require_transition(identity, SheetStatus.DRAFT, SheetStatus.LOCKED)
    payload = payload or SheetLockRequest()
    try:
        sheet = service.lock(
            sheet_id,
            identity.actor,
            header=payload.header,
            staging_items=payload.staging_items,
            expected_version=payload.expected_version,
        )
    except SheetOperationFailure as exc:
        _raise_sheet_failure(exc)
    return _to_response(sheet)


@router.put("/{sheet_id}/loading/cells", response_model=SheetResponse)
def edit_loading_cell(
    sheet_id: str,
    payload: CellEditRequest,
    service: SheetLifecycleService = Depends(get_sheet_service),
    identity: RequestIdentity = Depends(get_request_identity),
):
    _require_transition(identity, SheetStatus.LOCKED, SheetStatus.LOCKED)
    try:
        sheet = service.edit_cell(
            sheet_id,
            identity.actor,
            payload.sku_sr_no,
            payload.row,
            payload.col,
            payload.value,
            commit=payload.commit,
            expected_version=payload.expected_version,
        )
    except SheetOperationFailure as exc:
        _raise_sheet_failure(exc)
    return _to_response(sheet)


@router.put("/{sheet_id}/loading/loose", response_model=SheetResponse)
def edit_loading_loose(
    sheet_id: str,
    payload: LooseEditRequest,
    service: SheetLifecycleService = Depends(get_sheet_service),
    identity: RequestIdentity = Depends(get_request_identity),
):
    _require_transition(identity, SheetStatus.LOCKED, SheetStatus.LOCKED)
    try:
        sheet = service.edit_loose(
            sheet_id,
            identity.actor,
            payload.sku_sr_no,
            payload.value,
            expected_version=payload.expected_version,
        )
    except SheetOperationFailure as exc:
        _raise_sheet_failure(exc)
    return _to_response(sheet)


@router.put("/{sheet_id}/loading/additional", response_model=SheetResponse)
def edit_additional_item(
    sheet_id: str,
    payload: AdditionalEditRequest,
    service: SheetLifecycleService = Depends(get_sheet_service),
    identity: RequestIdentity = Depends(get_request_identity),
):
    _require_transition(identity, SheetStatus.LOCKED, SheetStatus.LOCKED)
    try:
        sheet = service.edit_additional(
            sheet_id,
            identity.actor,
            payload.item_id,
            slot=payload.slot,
            raw_value=payload.value,
            sku_name=payload.sku_name,
            expected_version=payload.expected_version,
        )
    except SheetOperationFailure as exc:
        _raise_sheet_failure(exc)
    return _to_response(sheet)


@router.put("/{sheet_id}/loading/details", response_model=SheetResponse)
def save_loading_details(
    sheet_id: str,
    payload: LoadingDetailsRequest,
    service: SheetLifecycleService = Depends(get_sheet_service),
    identity: RequestIdentity = Depends(get_request_identity),
):
    _require_transition(identity, SheetStatus.LOCKED, SheetStatus.LOCKED)
    sent = payload.model_dump(exclude_unset=True, exclude={"expected_version"})
    try:
        sheet = service.save_loading_progress(
            sheet_id,
            identity.actor,
            LoadingDetails(**sent),
            expected_version=payload.expected_version,
        )
    except SheetOperationFailure as exc:
        _raise_sheet_failure(exc)
    return _to_response(sheet)


@router.post("/{sheet_id}/complete", response_model=SheetResponse)
def complete_sheet(
    sheet_id: str,
    payload: Optional[SheetCompleteRequest] = None,
    service: SheetLifecycleService = Depends(get_sheet_service),
    identity: RequestIdentity = Depends(get_request_identity),
):
    _require_transition(identity, SheetStatus.LOCKED, SheetStatus.COMPLETED)
    payload = payload or SheetCompleteRequest()
    try:
        sheet = service.complete(
            sheet_id,
            identity.actor,
            details=payload.details,
            remarks=payload.remarks,
            expected_version=payload.expected_version,
        )
    except SheetOperationFailure as exc:
        _raise_sheet_failure(exc)
    return _to_response(sheet)


@router.post("/{sheet_id}/comments", response_model=SheetResponse)
def add_comment(
    sheet_id: str,
    payload: CommentRequest,
    service: SheetLifecycleService = Depends(get_sheet_service),
    identity: RequestIdentity = Depends(get_request_identity),
):
    _require_annotate(identity)
    try:
        sheet = service.add_comment(sheet_id, identity.actor, payload.text)
    except SheetOperationFailure as exc:
        _raise_sheet_failure(exc)
    return _to_response(sheet)


@router.post("/{sheet_id}/evidence", response_model=SheetResponse)
def attach_evidence(
    sheet_id: str,
    payload: EvidenceRequest,
    service: SheetLifecycleService = Depends(get_sheet_service),
    identity: RequestIdentity = Depends(get_request_identity),
):
    _require_annotate(identity)
    try:
        sheet = service.attach_evidence(sheet_id, identity.actor, payload.image)
    except SheetOperationFailure as exc:
        _raise_sheet_failure(exc)
    return _to_response(sheet)


@router.delete("/{sheet_id}", response_model=SheetDeleteResponse)
def delete_sheet(
    sheet_id: str,
    payload: Optional[SheetDeleteRequest] = None,
    service: SheetLifecycleService = Depends(get_sheet_service),
    identity: RequestIdentity = Depends(get_request_identity),
):
    if not can_delete(identity.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="ADMIN role is required.")
    reason = (payload.reason if payload else "") or ""
    try:
        service.delete(sheet_id, identity.actor, reason)
    except SheetOperationFailure as exc:
        _raise_sheet_failure(exc)
    return SheetDeleteResponse(
        id=sheet_id,
        deleted=True,
        message=f"Sheet {sheet_id} deleted.",
    )
