from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
import logging
import time
import uuid

from app.core.config import settings
from app.core.flow_logging import flow_info
from app.schemas.sheet import (
    Comment,
    HistoryLog,
    LoadingDetails,
    SheetData,
    SheetHeader,
    SheetStatus,
    StagingItem,
)
from app.services import audit_service as audit_actions
from app.services.cell_reconciliation_service import (
    apply_additional_edit,
    apply_cell_edit,
    apply_loose_edit,
    enforce_cell_contract,
    rename_additional_item,
    summarize,
)
from app.services.loading_matrix_service import generate, needs_generation
from app.services.quantity_calculator import recompute_staging_item
from app.services.sheet_errors import (
    SheetConflictError,
    SheetNotFoundError,
    SheetValidationError,
)
from app.services.sheet_lock_service import SheetLockManager
from app.services.sheet_repository import SheetRepository
from app.services.staging_validator import validate_for_lock

logger = logging.getLogger(__name__)


class _NullAudit:
    def record(self, action: str, details: str, actor: str | None = None) -> bool:
        return False

    def notify(self, message: str) -> bool:
        return False


def history_entry(
    previous_status: SheetStatus | None,
    current_status: SheetStatus,
    actor: str,
    timestamp: datetime,
) -> HistoryLog:
    """
    Label a persisted write.

    No previous status means the sheet is new. A status change is labelled
    with the target state; anything else is a plain update.
    """
    if previous_status is None:
        action, details = "CREATED", "Sheet Created"
    elif previous_status != current_status:
        action = f"STATUS_CHANGE_TO_{current_status.value}"
        details = f"Status changed from {previous_status.value} to {current_status.value}"
    else:
        action, details = "UPDATED", "Sheet updated"
    return HistoryLog(
        id=uuid.uuid4().hex,
        actor=actor,
        action=action,
        timestamp=timestamp,
        details=details,
    )


def pad_staging_items(items: Sequence[StagingItem] | None) -> list[StagingItem]:
    rows = [recompute_staging_item(item) for item in (items or [])]
    seen: set[int] = set()
    duplicates: list[int] = []
    for item in rows:
        if item.sr_no in seen and item.sr_no not in duplicates:
            duplicates.append(item.sr_no)
        seen.add(item.sr_no)
    if duplicates:
        raise SheetValidationError(
            message="Staging rows must have unique Sr No values.",
            violations=[f"Duplicate Sr No {sr_no} in staging rows." for sr_no in duplicates],
        )
    next_sr_no = max((item.sr_no for item in rows), default=0) + 1
    while len(rows) < max(0, int(settings.STAGING_MIN_ROWS)):
        rows.append(StagingItem(sr_no=next_sr_no))
        next_sr_no += 1
    return rows


class SheetLifecycleService:
    """
    Drives a sheet through DRAFT -> LOCKED -> COMPLETED.

    Every write loads the current document, derives a new one and saves it as
    a whole. Validation failures raise before anything is saved.
    """

    def __init__(
        self,
        repository: SheetRepository,
        lock_manager: SheetLockManager | None = None,
        audit=None,
    ):
        self.repository = repository
        self.lock_manager = lock_manager or SheetLockManager()
        self.audit = audit or _NullAudit()

    @staticmethod
    def _now() -> datetime:
        return datetime.utcnow()

    def _new_id(self) -> str:
        stamp = int(time.time() * 1000)
        while self.repository.exists(f"SH-{stamp}"):
            stamp += 1
        return f"SH-{stamp}"

    def _load(self, sheet_id: str) -> SheetData:
        sheet = self.repository.load_sheet(sheet_id)
        if sheet is None:
            raise SheetNotFoundError(
                message=f"Sheet {sheet_id} was not found.",
                sheet_id=sheet_id,
            )
        return sheet

    @staticmethod
    def _require_status(sheet: SheetData, *allowed: SheetStatus) -> None:
        if sheet.status in allowed:
            return
        expected = " or ".join(status.value for status in allowed)
        raise SheetConflictError(
            code="INVALID_STATE",
            message=f"Sheet {sheet.id} is {sheet.status.value}; this operation requires {expected}.",
            sheet_id=sheet.id,
        )

    @staticmethod
    def _check_version(sheet: SheetData, expected_version: int | None) -> None:
        if not settings.SHEET_VERSION_CHECK_ENABLED or expected_version is None:
            return
        if int(expected_version) != int(sheet.version):
            logger.warning(
                "sheet_version_conflict sheet_id=%s expected=%s current=%s",
                sheet.id,
                expected_version,
                sheet.version,
            )
            raise SheetConflictError(
                code="VERSION_CONFLICT",
                message=(
                    f"Sheet {sheet.id} was changed by someone else (now version {sheet.version}). "
                    "Reload and retry."
                ),
                sheet_id=sheet.id,
            )

    def _persist(
        self,
        sheet: SheetData,
        actor: str,
        previous_status: SheetStatus | None,
        *,
        with_history: bool = True,
    ) -> SheetData:
        update: dict = {"version": int(sheet.version) + 1}
        if with_history:
            entry = history_entry(previous_status, sheet.status, actor, self._now())
            update["history"] = [entry, *sheet.history]
        saved = sheet.model_copy(update=update)
        self.repository.save_sheet(saved, actor=actor)
        return saved

    def _ensure_matrix(self, sheet: SheetData) -> SheetData:
        if not needs_generation(sheet):
            return sheet
        logger.warning("sheet_matrix_regenerated sheet_id=%s", sheet.id)
        loading_items, additional_items = generate(
            sheet.staging_items,
            sheet.loading_items,
            sheet.additional_items,
        )
        return sheet.model_copy(
            update={"loading_items": loading_items, "additional_items": additional_items}
        )

    @staticmethod
    def _merge_draft(
        sheet: SheetData,
        header: SheetHeader | None,
        staging_items: Sequence[StagingItem] | None,
    ) -> SheetData:
        update: dict = {}
        if header is not None:
            update.update(header.model_dump())
        items = sheet.staging_items if staging_items is None else staging_items
        update["staging_items"] = pad_staging_items(items)
        return sheet.model_copy(update=update)

    @staticmethod
    def _unknown_row(sheet: SheetData, what: str, key: int) -> SheetValidationError:
        message = f"Sheet {sheet.id} has no {what} {key}."
        return SheetValidationError(message=message, violations=[message])

    # --- Staging -------------------------------------------------------------

    def create(
        self,
        actor: str,
        header: SheetHeader | None = None,
        staging_items: Sequence[StagingItem] | None = None,
    ) -> SheetData:
        values = (header or SheetHeader()).model_dump()
        sheet = SheetData(
            **values,
            id=self._new_id(),
            status=SheetStatus.DRAFT,
            version=0,
            staging_items=pad_staging_items(staging_items),
            created_by=actor,
            created_at=self._now(),
        )
        sheet = self._persist(sheet, actor, None)
        flow_info(logger, "sheet_created sheet_id=%s actor=%s", sheet.id, actor, category="lifecycle")
        self.audit.record(audit_actions.SHEET_CREATE, f"Created sheet {sheet.id}", actor)
        self.audit.notify(f"New Staging Sheet {sheet.id} created.")
        return sheet

    def save_draft(
        self,
        sheet_id: str,
        actor: str,
        header: SheetHeader | None = None,
        staging_items: Sequence[StagingItem] | None = None,
        expected_version: int | None = None,
    ) -> SheetData:
        sheet = self._load(sheet_id)
        self._require_status(sheet, SheetStatus.DRAFT)
        self._check_version(sheet, expected_version)
        previous_status = sheet.status

        sheet = self._persist(self._merge_draft(sheet, header, staging_items), actor, previous_status)
        flow_info(logger, "sheet_draft_saved sheet_id=%s version=%s", sheet.id, sheet.version, category="lifecycle")
        self.audit.record(audit_actions.SHEET_UPDATE, f"Updated sheet {sheet.id}", actor)
        return sheet

    def lock(
        self,
        sheet_id: str,
        actor: str,
        header: SheetHeader | None = None,
        staging_items: Sequence[StagingItem] | None = None,
        expected_version: int | None = None,
    ) -> SheetData:
        sheet = self._load(sheet_id)
        self._require_status(sheet, SheetStatus.DRAFT)
        self._check_version(sheet, expected_version)
        sheet = self._merge_draft(sheet, header, staging_items)

        violations = validate_for_lock(sheet.header(), sheet.staging_items, strict=True)
        if violations:
            logger.info("sheet_lock_rejected sheet_id=%s violations=%s", sheet.id, len(violations))
            raise SheetValidationError(
                message="Sheet is not ready to lock.",
                violations=violations,
            )

        with self.lock_manager.guard(sheet.id):
            # A lock that finished while this request was validating wins.
            self._require_status(self._load(sheet.id), SheetStatus.DRAFT)

            loading_items, additional_items = generate(
                sheet.staging_items,
                sheet.loading_items,
                sheet.additional_items,
            )
            locked = sheet.model_copy(
                update={
                    "status": SheetStatus.LOCKED,
                    "locked_by": actor,
                    "locked_at": self._now(),
                    "loading_items": loading_items,
                    "additional_items": additional_items,
                }
            )
            locked = self._persist(locked, actor, SheetStatus.DRAFT)

        flow_info(
            logger,
            "sheet_locked sheet_id=%s loading_rows=%s",
            locked.id,
            len(locked.loading_items),
            category="lifecycle",
        )
        self.audit.record(
            audit_actions.SHEET_UPDATE,
            f"Sheet {locked.id} locked and handed off to loading",
            actor,
        )
        return locked

    # --- Loading -------------------------------------------------------------

    def _loading_sheet(self, sheet_id: str, actor: str, expected_version: int | None) -> SheetData:
        sheet = self._load(sheet_id)
        self._require_status(sheet, SheetStatus.LOCKED)
        self._check_version(sheet, expected_version)
        repaired = self._ensure_matrix(sheet)
        if repaired is sheet:
            return sheet
        return self._persist(repaired, actor, sheet.status, with_history=False)

    def edit_cell(
        self,
        sheet_id: str,
        actor: str,
        sku_sr_no: int,
        row: int,
        col: int,
        raw_value,
        commit: bool = True,
        expected_version: int | None = None,
    ) -> SheetData:
        sheet = self._loading_sheet(sheet_id, actor, expected_version)
        contract = sheet.staging_item(sku_sr_no)
        loading_item = sheet.loading_item(sku_sr_no)
        if contract is None or loading_item is None:
            raise self._unknown_row(sheet, "loading row for SKU", sku_sr_no)

        outcome = apply_cell_edit(loading_item, row, col, raw_value, contract, commit=commit)
        if outcome.item != loading_item:
            sheet = sheet.model_copy(
                update={
                    "loading_items": [
                        outcome.item if item.sku_sr_no == sku_sr_no else item
                        for item in sheet.loading_items
                    ]
                }
            )
            sheet = self._persist(sheet, actor, sheet.status, with_history=False)
        if outcome.violation is not None:
            logger.info(
                "loading_cell_rejected sheet_id=%s sku_sr_no=%s row=%s col=%s expected=%s entered=%s",
                sheet.id,
                sku_sr_no,
                row,
                col,
                outcome.violation.expected,
                outcome.violation.entered,
            )
            raise outcome.violation
        flow_info(
            logger,
            "loading_cell_edited sheet_id=%s sku_sr_no=%s row=%s col=%s ignored=%s",
            sheet.id,
            sku_sr_no,
            row,
            col,
            outcome.ignored,
            category="loading",
        )
        return sheet

    def edit_loose(
        self,
        sheet_id: str,
        actor: str,
        sku_sr_no: int,
        raw_value,
        expected_version: int | None = None,
    ) -> SheetData:
        sheet = self._loading_sheet(sheet_id, actor, expected_version)
        contract = sheet.staging_item(sku_sr_no)
        loading_item = sheet.loading_item(sku_sr_no)
        if contract is None or loading_item is None:
            raise self._unknown_row(sheet, "loading row for SKU", sku_sr_no)

        updated = apply_loose_edit(loading_item, raw_value, contract)
        if updated == loading_item:
            return sheet
        sheet = sheet.model_copy(
            update={
                "loading_items": [
                    updated if item.sku_sr_no == sku_sr_no else item for item in sheet.loading_items
                ]
            }
        )
        flow_info(logger, "loading_loose_edited sheet_id=%s sku_sr_no=%s", sheet.id, sku_sr_no, category="loading")
        return self._persist(sheet, actor, sheet.status, with_history=False)

    def edit_additional(
        self,
        sheet_id: str,
        actor: str,
        item_id: int,
        slot: int | None = None,
        raw_value=None,
        sku_name: str | None = None,
        expected_version: int | None = None,
    ) -> SheetData:
        sheet = self._loading_sheet(sheet_id, actor, expected_version)
        current = next((item for item in sheet.additional_items if item.id == item_id), None)
        if current is None:
            raise self._unknown_row(sheet, "additional item", item_id)

        updated = current
        if sku_name is not None:
            updated = rename_additional_item(updated, sku_name)
        if slot is not None:
            updated = apply_additional_edit(updated, slot, raw_value)
        if updated == current:
            return sheet
        sheet = sheet.model_copy(
            update={
                "additional_items": [
                    updated if item.id == item_id else item for item in sheet.additional_items
                ]
            }
        )
        flow_info(logger, "loading_additional_edited sheet_id=%s item_id=%s", sheet.id, item_id, category="loading")
        return self._persist(sheet, actor, sheet.status, with_history=False)

    def save_loading_progress(
        self,
        sheet_id: str,
        actor: str,
        details: LoadingDetails | None = None,
        expected_version: int | None = None,
    ) -> SheetData:
        sheet = self._loading_sheet(sheet_id, actor, expected_version)
        if details is not None:
            sheet = sheet.model_copy(update=details.model_dump(exclude_unset=True))
        sheet = self._persist(sheet, actor, sheet.status)
        flow_info(logger, "loading_progress_saved sheet_id=%s version=%s", sheet.id, sheet.version, category="loading")
        self.audit.record(audit_actions.SHEET_UPDATE, f"Updated sheet {sheet.id}", actor)
        return sheet

    def _enforce_matrix_contract(self, sheet: SheetData, actor: str) -> SheetData:
        """Clear any stored cell that breaks its SKU's cases/PLT before completion."""
        cleaned = []
        violation = None
        for loading_item in sheet.loading_items:
            contract = sheet.staging_item(loading_item.sku_sr_no)
            if contract is None:
                cleaned.append(loading_item)
                continue
            outcome = enforce_cell_contract(loading_item, contract)
            cleaned.append(outcome.item)
            if violation is None:
                violation = outcome.violation
        if violation is None:
            return sheet
        sheet = self._persist(
            sheet.model_copy(update={"loading_items": cleaned}), actor, sheet.status, with_history=False
        )
        logger.info(
            "sheet_completion_rejected sheet_id=%s sku_sr_no=%s row=%s col=%s expected=%s entered=%s",
            sheet.id,
            violation.sku_sr_no,
            violation.row,
            violation.col,
            violation.expected,
            violation.entered,
        )
        raise violation

    def complete(
        self,
        sheet_id: str,
        actor: str,
        details: LoadingDetails | None = None,
        remarks: str | None = None,
        expected_version: int | None = None,
    ) -> SheetData:
        sheet = self._loading_sheet(sheet_id, actor, expected_version)
        sheet = self._enforce_matrix_contract(sheet, actor)
        if details is not None:
            sheet = sheet.model_copy(update=details.model_dump(exclude_unset=True))

        now = self._now()
        update: dict = {
            "status": SheetStatus.COMPLETED,
            "completed_by": actor,
            "completed_at": now,
        }
        if not (sheet.loading_end_time or "").strip():
            update["loading_end_time"] = now.strftime("%H:%M:%S")
        text = (remarks or "").strip()
        if text:
            remark = Comment(id=uuid.uuid4().hex, author=actor, text=text, timestamp=now)
            update["comments"] = [remark, *sheet.comments]

        completed = self._persist(sheet.model_copy(update=update), actor, SheetStatus.LOCKED)
        summary = summarize(completed)
        flow_info(
            logger,
            "sheet_completed sheet_id=%s shortage=%s overage=%s",
            completed.id,
            summary.shortage,
            summary.overage,
            category="lifecycle",
        )
        self.audit.record(
            audit_actions.SHEET_UPDATE,
            f"Sheet {completed.id} completed. Shortage: {summary.shortage}, Overage: {summary.overage}",
            actor,
        )
        return completed

    # --- Any status ----------------------------------------------------------

    def add_comment(self, sheet_id: str, actor: str, text: str) -> SheetData:
        body = (text or "").strip()
        if not body:
            raise SheetValidationError(
                message="Comment text is required.",
                violations=["Comment text is required."],
            )
        sheet = self._load(sheet_id)
        comment = Comment(id=uuid.uuid4().hex, author=actor, text=body, timestamp=self._now())
        sheet = sheet.model_copy(update={"comments": [comment, *sheet.comments]})
        sheet = self._persist(sheet, actor, sheet.status, with_history=False)
        self.audit.record(audit_actions.COMMENT, f"Comment on {sheet.id}: {body[:200]}", actor)
        return sheet

    def attach_evidence(self, sheet_id: str, actor: str, image: str) -> SheetData:
        reference = (image or "").strip()
        if not reference:
            raise SheetValidationError(
                message="Image is required.",
                violations=["Image is required."],
            )
        sheet = self._load(sheet_id)
        sheet = sheet.model_copy(update={"captured_images": [*sheet.captured_images, reference]})
        sheet = self._persist(sheet, actor, sheet.status, with_history=False)
        self.audit.record(audit_actions.SHEET_UPDATE, f"Evidence attached to sheet {sheet.id}", actor)
        return sheet

    def delete(self, sheet_id: str, actor: str, reason: str) -> None:
        text = (reason or "").strip()
        if not text:
            raise SheetValidationError(
                message="A reason is required to delete a sheet.",
                violations=["A reason is required to delete a sheet."],
            )
        sheet = self._load(sheet_id)
        if not self.repository.delete_sheet(sheet.id):
            raise SheetNotFoundError(message=f"Sheet {sheet.id} was not found.", sheet_id=sheet.id)
        flow_info(logger, "sheet_deleted sheet_id=%s actor=%s", sheet.id, actor, category="lifecycle")
        self.audit.record(
            audit_actions.SHEET_DELETE,
            f"Sheet {sheet.id} deleted. Reason: {text}",
            actor,
        )

    def get(self, sheet_id: str) -> SheetData:
        return self._load(sheet_id)

    def list_sheets(self, status: SheetStatus | None = None) -> list[SheetData]:
        return self.repository.list_sheets(status)
