from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from io import BytesIO

from fastapi.responses import StreamingResponse
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from app.core.config import settings
from app.schemas.sheet import SheetData
from app.services.cell_reconciliation_service import is_slot_enabled, summarize

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

REGISTER_SHEET = "Operations Register"
REGISTER_COLUMNS = [
    "ID",
    "Date",
    "Status",
    "Shift",
    "Supervisor",
    "Supervisor (Loading)",
    "Destination",
    "Loading Dock",
    "Transporter",
    "Vehicle No",
    "Driver Name",
    "Start Time",
    "End Time",
    "Created By",
    "Created At",
]

_HEADER_FILL = PatternFill("solid", fgColor="DDEBF7")
_HEADER_FONT = Font(bold=True)
_SHORT_FONT = Font(bold=True, color="9C0006")


def _append_header(ws, columns: list[str]) -> None:
    ws.append(columns)
    ws.freeze_panes = "A2"
    for idx, column_name in enumerate(columns, start=1):
        cell = ws.cell(row=1, column=idx)
        cell.fill = _HEADER_FILL
        cell.font = _HEADER_FONT
        ws.column_dimensions[get_column_letter(idx)].width = max(12, min(36, len(column_name) + 5))


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    return str(value)


def _to_buffer(wb: Workbook) -> BytesIO:
    buffer = BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer


def build_operations_register(sheets: Sequence[SheetData]) -> BytesIO:
    """One row per sheet, in the order given."""
    wb = Workbook()
    ws = wb.active
    ws.title = REGISTER_SHEET
    _append_header(ws, REGISTER_COLUMNS)
    for sheet in sheets:
        ws.append(
            [
                sheet.id,
                _text(sheet.date),
                sheet.status.value,
                _text(sheet.shift),
                _text(sheet.supervisor_name),
                _text(sheet.loading_sv_name),
                _text(sheet.destination),
                _text(sheet.loading_dock_no),
                _text(sheet.transporter),
                _text(sheet.vehicle_no),
                _text(sheet.driver_name),
                _text(sheet.loading_start_time),
                _text(sheet.loading_end_time),
                _text(sheet.created_by),
                _text(sheet.created_at),
            ]
        )
    return _to_buffer(wb)


def _slot_label(index: int) -> str:
    width = max(1, int(settings.LOADING_GRID_WIDTH))
    return f"R{index // width + 1}C{index % width + 1}"


def build_sheet_workbook(sheet: SheetData) -> BytesIO:
    """
    Full sheet export: staging rows, the loading matrix flattened to one row
    per SKU, the additional pool and the reconciliation totals.
    """
    wb = Workbook()
    ws_staging = wb.active
    ws_staging.title = "STAGING"
    _append_header(ws_staging, ["Sr No", "SKU Name", "Cases/PLT", "Full PLT", "Loose", "TTL Cases"])
    for item in sheet.staging_items:
        if not item.is_used:
            continue
        ws_staging.append(
            [item.sr_no, item.sku_name, item.cases_per_plt, item.full_plt, item.loose, item.ttl_cases]
        )

    width = max(1, int(settings.LOADING_GRID_WIDTH))
    max_slots = max((int(item.full_plt or 0) for item in sheet.staging_items), default=0)
    slot_columns = [_slot_label(index) for index in range(max_slots)]

    ws_loading = wb.create_sheet("LOADING")
    _append_header(ws_loading, ["Sr No", "SKU Name", *slot_columns, "Loose", "Total", "Balance"])
    for loading_item in sheet.loading_items:
        contract = sheet.staging_item(loading_item.sku_sr_no)
        values = {
            cell.row * width + cell.col: cell.value
            for cell in loading_item.cells
            if contract is not None and is_slot_enabled(cell.row, cell.col, contract)
        }
        ws_loading.append(
            [
                loading_item.sku_sr_no,
                contract.sku_name if contract else "",
                *[values.get(index) for index in range(max_slots)],
                loading_item.loose_input,
                loading_item.total,
                loading_item.balance,
            ]
        )
        if loading_item.balance > 0:
            ws_loading.cell(row=ws_loading.max_row, column=ws_loading.max_column).font = _SHORT_FONT

    ws_additional = wb.create_sheet("ADDITIONAL")
    pool_width = max((len(item.counts) for item in sheet.additional_items), default=0)
    _append_header(
        ws_additional,
        ["ID", "SKU Name", *[f"#{index + 1}" for index in range(pool_width)], "Total"],
    )
    for extra in sheet.additional_items:
        if not extra.sku_name and not extra.total:
            continue
        counts = list(extra.counts) + [None] * (pool_width - len(extra.counts))
        ws_additional.append([extra.id, extra.sku_name, *counts, extra.total])

    summary = summarize(sheet)
    ws_summary = wb.create_sheet("SUMMARY")
    _append_header(ws_summary, ["Metric", "Value"])
    for label, value in (
        ("Sheet", sheet.id),
        ("Status", sheet.status.value),
        ("Total Staged", summary.total_staged),
        ("Total Loaded (Main)", summary.total_loaded_main),
        ("Total Additional", summary.total_additional),
        ("Grand Total Loaded", summary.grand_total_loaded),
        ("Shortage", summary.shortage),
        ("Overage", summary.overage),
    ):
        ws_summary.append([label, value])
    return _to_buffer(wb)


def xlsx_response(buffer: BytesIO, filename: str) -> StreamingResponse:
    return StreamingResponse(
        buffer,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
