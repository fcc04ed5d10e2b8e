from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.sheet import SheetRecord
from app.schemas.sheet import SheetData, SheetStatus
from app.services.sheet_errors import SheetPersistenceError

logger = logging.getLogger(__name__)


class SheetRepository(Protocol):
    def load_sheet(self, sheet_id: str) -> SheetData | None: ...

    def save_sheet(self, sheet: SheetData, actor: str | None = None) -> SheetData: ...

    def delete_sheet(self, sheet_id: str) -> bool: ...

    def list_sheets(self, status: SheetStatus | None = None) -> list[SheetData]: ...

    def exists(self, sheet_id: str) -> bool: ...


class SqlAlchemySheetRepository:
    """
    Sheet persistence over the `sheet` table.

    Every save replaces the whole stored document and commits; there are no
    partial-field patches.
    """

    def __init__(self, db: Session):
        self.db = db

    def _fail(self, operation: str, sheet_id: str | None, exc: SQLAlchemyError) -> SheetPersistenceError:
        self.db.rollback()
        logger.warning(
            "sheet_repository_failure operation=%s sheet_id=%s error=%s",
            operation,
            sheet_id or "-",
            exc,
        )
        return SheetPersistenceError()

    @staticmethod
    def _to_sheet(record: SheetRecord) -> SheetData:
        payload = dict(record.data or {})
        payload["id"] = record.id
        payload.setdefault("status", record.status or SheetStatus.DRAFT.value)
        return SheetData.model_validate(payload)

    def load_sheet(self, sheet_id: str) -> SheetData | None:
        try:
            record = self.db.get(SheetRecord, sheet_id)
        except SQLAlchemyError as exc:
            raise self._fail("load", sheet_id, exc) from exc
        if record is None:
            return None
        return self._to_sheet(record)

    def exists(self, sheet_id: str) -> bool:
        try:
            return self.db.get(SheetRecord, sheet_id) is not None
        except SQLAlchemyError as exc:
            raise self._fail("exists", sheet_id, exc) from exc

    def save_sheet(self, sheet: SheetData, actor: str | None = None) -> SheetData:
        payload = sheet.model_dump(mode="json")
        actor = actor or (sheet.history[0].actor if sheet.history else sheet.created_by)
        try:
            record = self.db.get(SheetRecord, sheet.id)
            if record is None:
                record = SheetRecord(id=sheet.id)
                self.db.add(record)
            record.status = sheet.status.value
            record.version = int(sheet.version)
            record.data = payload
            record.stamp(actor)
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("save", sheet.id, exc) from exc
        return sheet

    def delete_sheet(self, sheet_id: str) -> bool:
        try:
            record = self.db.get(SheetRecord, sheet_id)
            if record is None:
                return False
            self.db.delete(record)
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("delete", sheet_id, exc) from exc
        return True

    def list_sheets(self, status: SheetStatus | None = None) -> list[SheetData]:
        stmt = select(SheetRecord)
        if status is not None:
            stmt = stmt.where(SheetRecord.status == SheetStatus(status).value)
        stmt = stmt.order_by(SheetRecord.created_at.desc(), SheetRecord.id.desc())
        try:
            records = self.db.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            raise self._fail("list", None, exc) from exc
        return [self._to_sheet(record) for record in records]
