from __future__ import annotations

from datetime import datetime

from openpyxl import load_workbook

from app.schemas.sheet import (
    AdditionalItem,
    LoadingCell,
    LoadingItemData,
    SheetData,
    SheetStatus,
    StagingItem,
)
from app.services.sheet_export_service import (
    REGISTER_COLUMNS,
    build_operations_register,
    build_sheet_workbook,
)


def _sheet() -> SheetData:
    return SheetData(
        id="SH-1760860000000",
        status=SheetStatus.COMPLETED,
        shift="B",
        date="2026-10-19",
        destination="Pune DC",
        supervisor_name="Asha K",
        loading_dock_no="D-4",
        transporter="Swift",
        vehicle_no="MH12AB1234",
        driver_name="Mohan",
        loading_sv_name="Ravi P",
        loading_start_time="16:00:00",
        loading_end_time="17:45:00",
        staging_items=[
            StagingItem(sr_no=1, sku_name="A", cases_per_plt=10, full_plt=12, loose=0, ttl_cases=120),
            StagingItem(sr_no=2),
        ],
        loading_items=[
            LoadingItemData(
                sku_sr_no=1,
                cells=[LoadingCell(row=0, col=0, value=10), LoadingCell(row=1, col=1, value=10)],
                loose_input=3,
                total=23,
                balance=97,
            )
        ],
        additional_items=[
            AdditionalItem(id=1, sku_name="Promo", counts=[2, 5], total=7),
            AdditionalItem(id=2, sku_name="", counts=[0, 0], total=0),
        ],
        created_by="Asha K",
        created_at=datetime(2026, 10, 19, 9, 30, 0),
    )


def test_operations_register_has_one_row_per_sheet():
    buffer = build_operations_register([_sheet()])

    ws = load_workbook(buffer).active
    header = [cell.value for cell in ws[1]]
    row = [cell.value for cell in ws[2]]

    assert header == REGISTER_COLUMNS
    assert ws.max_row == 2
    assert row[:4] == ["SH-1760860000000", "2026-10-19", "COMPLETED", "B"]
    assert row[5] == "Ravi P"
    assert row[9] == "MH12AB1234"
    assert row[14] == "2026-10-19 09:30:00"


def test_sheet_workbook_flattens_loading_matrix():
    wb = load_workbook(build_sheet_workbook(_sheet()))

    staging = wb["STAGING"]
    assert staging.max_row == 2

    loading = wb["LOADING"]
    header = [cell.value for cell in loading[1]]
    assert header[:3] == ["Sr No", "SKU Name", "R1C1"]
    assert header[-3:] == ["Loose", "Total", "Balance"]
    assert "R2C2" in header
    row = [cell.value for cell in loading[2]]
    assert row[header.index("R1C1")] == 10
    assert row[header.index("R2C2")] == 10
    assert row[-3:] == [3, 23, 97]

    additional = wb["ADDITIONAL"]
    assert additional.max_row == 2
    assert additional.cell(row=2, column=2).value == "Promo"

    summary = {row[0].value: row[1].value for row in wb["SUMMARY"].iter_rows(min_row=2)}
    assert summary["Shortage"] == 97
    assert summary["Total Additional"] == 7
