from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.sheet import (
    AuditLogListResponse,
    AuditLogView,
    NotificationListResponse,
    NotificationView,
)
from app.services.audit_service import AuditService

router = APIRouter()


@router.get("/audit-logs", response_model=AuditLogListResponse)
def list_audit_logs(
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    logs = AuditService(db).list_logs(limit)
    return AuditLogListResponse(logs=[AuditLogView.model_validate(row) for row in logs])


@router.get("/notifications", response_model=NotificationListResponse)
def list_notifications(
    unread_only: bool = False,
    db: Session = Depends(get_db),
):
    service = AuditService(db)
    rows = service.list_notifications(unread_only=unread_only)
    return NotificationListResponse(
        notifications=[NotificationView.model_validate(row) for row in rows],
        unread=service.unread_count(),
    )


@router.post("/notifications/mark-read")
def mark_notifications_read(db: Session = Depends(get_db)):
    updated = AuditService(db).mark_all_read()
    return {"updated": updated}
