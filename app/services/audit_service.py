from __future__ import annotations

import logging

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.audit_log import AuditLog
from app.models.notification import Notification

logger = logging.getLogger(__name__)

SHEET_CREATE = "SHEET_CREATE"
SHEET_UPDATE = "SHEET_UPDATE"
SHEET_DELETE = "SHEET_DELETE"
COMMENT = "COMMENT"


class AuditService:
    """
    Audit trail and in-app notifications.

    Writes are fire-and-forget from the caller's point of view: a failed
    insert is rolled back and logged, never raised.
    """

    def __init__(self, db: Session):
        self.db = db

    def _write(self, row, kind: str) -> bool:
        try:
            with self.db.begin_nested():
                self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("audit_write_failed kind=%s error=%s", kind, exc)
            return False
        return True

    def record(self, action: str, details: str, actor: str | None = None) -> bool:
        if not settings.AUDIT_LOG_ENABLED:
            return False
        return self._write(
            AuditLog(
                actor=(actor or "System").strip() or "System",
                action=(action or "").strip().upper(),
                details=details or "",
            ),
            "audit",
        )

    def notify(self, message: str) -> bool:
        if not settings.NOTIFICATIONS_ENABLED:
            return False
        return self._write(Notification(message=(message or "")[:500], is_read=False), "notification")

    def list_logs(self, limit: int = 100) -> list[AuditLog]:
        stmt = (
            select(AuditLog)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .limit(max(1, min(int(limit), 1000)))
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_notifications(self, unread_only: bool = False) -> list[Notification]:
        stmt = select(Notification)
        if unread_only:
            stmt = stmt.where(Notification.is_read == False)
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
        return list(self.db.execute(stmt).scalars().all())

    def unread_count(self) -> int:
        stmt = select(func.count(Notification.id)).where(Notification.is_read == False)
        return int(self.db.execute(stmt).scalar() or 0)

    def mark_all_read(self) -> int:
        result = self.db.execute(
            update(Notification).where(Notification.is_read == False).values(is_read=True)
        )
        self.db.commit()
        return int(result.rowcount or 0)
