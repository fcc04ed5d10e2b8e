from __future__ import annotations

import enum
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from .base import BaseSchema


class SheetStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    LOCKED = "LOCKED"  # handed off to loading
    COMPLETED = "COMPLETED"


def _blank_to_none(value):
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        return text or None
    return value


class StagingItem(BaseModel):
    """One SKU row of the staging grid. Blank quantities mean "not yet entered"."""

    sr_no: int = Field(ge=1)
    sku_name: str = ""
    cases_per_plt: Optional[int] = Field(default=None, ge=0)
    full_plt: Optional[int] = Field(default=None, ge=0)
    loose: Optional[int] = Field(default=None, ge=0)
    ttl_cases: int = 0

    @field_validator("sku_name", mode="before")
    @classmethod
    def normalize_sku_name(cls, value):
        return "" if value is None else str(value)

    @field_validator("cases_per_plt", "full_plt", "loose", mode="before")
    @classmethod
    def blank_quantity(cls, value):
        return _blank_to_none(value)

    @property
    def is_used(self) -> bool:
        return bool(self.sku_name.strip())


class LoadingCell(BaseModel):
    row: int = Field(ge=0)
    col: int = Field(ge=0)
    value: int = Field(ge=0)


class LoadingItemData(BaseModel):
    sku_sr_no: int
    cells: List[LoadingCell] = []
    loose_input: int = Field(default=0, ge=0)
    total: int = 0
    balance: int = 0


class AdditionalItem(BaseModel):
    id: int = Field(ge=1)
    sku_name: str = ""
    counts: List[int] = []
    total: int = 0


class Comment(BaseModel):
    id: str
    author: str
    text: str
    timestamp: datetime


class HistoryLog(BaseModel):
    id: str
    actor: str
    action: str
    timestamp: datetime
    details: str = ""


class SheetHeader(BaseModel):
    shift: str = "A"
    date: str = ""
    destination: str = ""
    supervisor_name: str = ""
    emp_code: str = ""
    loading_dock_no: str = ""
    loading_doc: str = ""

    @field_validator(
        "shift",
        "date",
        "destination",
        "supervisor_name",
        "emp_code",
        "loading_dock_no",
        "loading_doc",
        mode="before",
    )
    @classmethod
    def none_to_empty(cls, value):
        return "" if value is None else value


class LoadingDetails(BaseModel):
    """Loading-side header fields. Only fields that are sent are applied."""

    transporter: Optional[str] = None
    loading_dock_no: Optional[str] = None
    loading_start_time: Optional[str] = None
    loading_end_time: Optional[str] = None
    picking_by: Optional[str] = None
    picking_crosschecked_by: Optional[str] = None
    seal_no: Optional[str] = None
    vehicle_no: Optional[str] = None
    driver_name: Optional[str] = None
    reg_serial_no: Optional[str] = None
    loading_sv_name: Optional[str] = None
    loading_supervisor_sign: Optional[str] = None
    sl_sign: Optional[str] = None
    deo_sign: Optional[str] = None


class SheetData(SheetHeader):
    id: str
    status: SheetStatus = SheetStatus.DRAFT
    version: int = 1

    staging_items: List[StagingItem] = []
    loading_items: List[LoadingItemData] = []
    additional_items: List[AdditionalItem] = []

    transporter: Optional[str] = None
    loading_start_time: Optional[str] = None
    loading_end_time: Optional[str] = None
    picking_by: Optional[str] = None
    picking_crosschecked_by: Optional[str] = None
    seal_no: Optional[str] = None
    vehicle_no: Optional[str] = None
    driver_name: Optional[str] = None
    reg_serial_no: Optional[str] = None
    loading_sv_name: Optional[str] = None
    loading_supervisor_sign: Optional[str] = None
    sl_sign: Optional[str] = None
    deo_sign: Optional[str] = None

    created_by: str
    created_at: datetime
    locked_by: Optional[str] = None
    locked_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None

    captured_images: List[str] = []
    comments: List[Comment] = []
    history: List[HistoryLog] = []

    def header(self) -> SheetHeader:
        return SheetHeader(**{name: getattr(self, name) for name in SheetHeader.model_fields})

    def staging_item(self, sr_no: int) -> Optional[StagingItem]:
        for item in self.staging_items:
            if item.sr_no == sr_no:
                return item
        return None

    def loading_item(self, sku_sr_no: int) -> Optional[LoadingItemData]:
        for item in self.loading_items:
            if item.sku_sr_no == sku_sr_no:
                return item
        return None


# --- Reconciliation summary ---------------------------------------------------

class ShortItem(BaseModel):
    sku_sr_no: int
    sku_name: str
    balance: int


class SheetReconciliationSummary(BaseModel):
    total_staged: int = 0
    total_loaded_main: int = 0
    total_additional: int = 0
    grand_total_loaded: int = 0
    shortage: int = 0
    overage: int = 0
    short_items: List[ShortItem] = []


# --- Requests -----------------------------------------------------------------

RawCellValue = Union[int, str, None]


class SheetCreateRequest(BaseModel):
    header: Optional[SheetHeader] = None
    staging_items: List[StagingItem] = []


class SheetDraftRequest(BaseModel):
    # Omitted header/staging_items keep the stored values.
    header: Optional[SheetHeader] = None
    staging_items: Optional[List[StagingItem]] = None
    expected_version: Optional[int] = None


class SheetLockRequest(SheetDraftRequest):
    pass


class CellEditRequest(BaseModel):
    sku_sr_no: int = Field(ge=1)
    row: int = Field(ge=0)
    col: int = Field(ge=0)
    value: RawCellValue = None
    # false => keystroke-level edit, the cases/PLT contract is checked on commit only
    commit: bool = True
    expected_version: Optional[int] = None


class LooseEditRequest(BaseModel):
    sku_sr_no: int = Field(ge=1)
    value: RawCellValue = None
    expected_version: Optional[int] = None


class AdditionalEditRequest(BaseModel):
    item_id: int = Field(ge=1)
    slot: Optional[int] = Field(default=None, ge=0)
    value: RawCellValue = None
    sku_name: Optional[str] = None
    expected_version: Optional[int] = None


class LoadingDetailsRequest(LoadingDetails):
    expected_version: Optional[int] = None


class SheetCompleteRequest(BaseModel):
    details: Optional[LoadingDetails] = None
    remarks: Optional[str] = None
    expected_version: Optional[int] = None


class CommentRequest(BaseModel):
    text: str = Field(min_length=1, max_length=2000)


class EvidenceRequest(BaseModel):
    # Base64 data URL or an external file reference.
    image: str = Field(min_length=1)


class SheetDeleteRequest(BaseModel):
    reason: str = ""


# --- Responses ----------------------------------------------------------------

class SheetResponse(BaseModel):
    sheet: SheetData
    summary: SheetReconciliationSummary


class SheetListItem(BaseModel):
    id: str
    status: SheetStatus
    version: int
    date: str
    shift: str
    destination: str
    supervisor_name: str
    created_by: str
    created_at: datetime
    locked_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class SheetListResponse(BaseModel):
    sheets: List[SheetListItem]


class SheetDeleteResponse(BaseModel):
    id: str
    deleted: bool
    message: str


class AuditLogView(BaseSchema):
    id: int
    actor: str
    action: str
    details: str
    created_at: datetime


class NotificationView(BaseSchema):
    id: int
    message: str
    is_read: bool
    created_at: datetime


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogView]


class NotificationListResponse(BaseModel):
    notifications: List[NotificationView]
    unread: int
