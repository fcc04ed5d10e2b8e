from __future__ import annotations

from datetime import datetime

import pytest

from app.schemas.sheet import (
    AdditionalItem,
    LoadingCell,
    LoadingItemData,
    SheetData,
    SheetStatus,
    StagingItem,
)
from app.services.cell_reconciliation_service import (
    apply_additional_edit,
    apply_cell_edit,
    apply_loose_edit,
    enforce_cell_contract,
    is_slot_enabled,
    parse_count,
    rename_additional_item,
    summarize,
)


@pytest.fixture
def contract() -> StagingItem:
    return StagingItem(sr_no=1, sku_name="Water 500ml", cases_per_plt=10, full_plt=5, loose=0, ttl_cases=50)


@pytest.fixture
def loading_item() -> LoadingItemData:
    return LoadingItemData(sku_sr_no=1, cells=[], loose_input=0, total=0, balance=50)


def test_mismatched_value_is_cleared_on_commit(contract, loading_item):
    outcome = apply_cell_edit(loading_item, 0, 0, "7", contract)

    assert outcome.violation is not None
    assert outcome.violation.expected == 10
    assert outcome.violation.entered == 7
    assert "The defined Cases/PLT for this SKU is 10" in outcome.violation.message
    assert outcome.item.cells == []
    assert outcome.item.total == 0
    assert outcome.item.balance == 50


def test_mismatch_is_cleared_every_time(contract, loading_item):
    item = loading_item
    for _ in range(3):
        outcome = apply_cell_edit(item, 1, 2, 9, contract)
        item = outcome.item
        assert outcome.violation is not None
    assert item.cells == []


def test_keystroke_edit_defers_contract_check(contract, loading_item):
    draft = apply_cell_edit(loading_item, 0, 0, "1", contract, commit=False)
    assert draft.violation is None
    assert draft.item.cells == [LoadingCell(row=0, col=0, value=1)]

    committed = apply_cell_edit(draft.item, 0, 0, "1", contract, commit=True)
    assert committed.violation is not None
    assert committed.item.cells == []


def test_matching_cell_and_loose_reconcile(contract, loading_item):
    outcome = apply_cell_edit(loading_item, 0, 0, "10", contract)
    assert outcome.violation is None

    updated = apply_loose_edit(outcome.item, "5", contract)

    assert updated.total == 15
    assert updated.balance == 35


def test_cell_upsert_replaces_existing_slot(contract, loading_item):
    first = apply_cell_edit(loading_item, 0, 1, 10, contract).item
    second = apply_cell_edit(first, 0, 1, 10, contract).item
    assert len(second.cells) == 1
    assert second.total == 10


def test_blank_clears_cell(contract, loading_item):
    filled = apply_cell_edit(loading_item, 0, 0, 10, contract).item
    cleared = apply_cell_edit(filled, 0, 0, "", contract)

    assert cleared.violation is None
    assert cleared.item.cells == []
    assert cleared.item.balance == 50


def test_non_numeric_input_is_ignored(contract, loading_item):
    filled = apply_cell_edit(loading_item, 0, 0, 10, contract).item

    outcome = apply_cell_edit(filled, 0, 0, "ten", contract)

    assert outcome.ignored is True
    assert outcome.item == filled


def test_slots_beyond_full_plt_are_not_editable(contract, loading_item):
    assert is_slot_enabled(0, 4, contract) is True
    assert is_slot_enabled(0, 5, contract) is False
    assert is_slot_enabled(1, 0, contract) is False

    outcome = apply_cell_edit(loading_item, 0, 5, 10, contract)
    assert outcome.ignored is True
    assert outcome.item.cells == []


def test_cells_outside_current_contract_are_excluded_from_totals(loading_item):
    wide = StagingItem(sr_no=1, sku_name="A", cases_per_plt=10, full_plt=12, ttl_cases=120)
    narrow = wide.model_copy(update={"full_plt": 1, "ttl_cases": 10})
    item = apply_cell_edit(loading_item, 1, 1, 10, wide).item
    assert item.total == 10

    item = apply_loose_edit(item, 0, narrow)

    assert item.total == 0
    assert item.balance == 10


def test_zero_cases_per_plt_accepts_any_count(loading_item):
    open_contract = StagingItem(sr_no=1, sku_name="Mixed", cases_per_plt=0, full_plt=3, loose=20, ttl_cases=20)
    outcome = apply_cell_edit(loading_item, 0, 2, 17, open_contract)
    assert outcome.violation is None
    assert outcome.item.total == 17
    assert outcome.item.balance == 3


def test_balance_conservation_over_edit_sequence(contract, loading_item):
    item = loading_item
    edits = [(0, 0, 10), (0, 1, 3), (0, 2, 10), (0, 1, ""), (0, 9, 10), (0, 3, "x"), (0, 4, 10)]
    for row, col, value in edits:
        item = apply_cell_edit(item, row, col, value, contract).item
        assert item.total + item.balance == contract.ttl_cases
    for loose in ("4", "", "12", "-3"):
        item = apply_loose_edit(item, loose, contract)
        assert item.total + item.balance == contract.ttl_cases
    assert item.total == 42


def test_overage_is_allowed(contract, loading_item):
    item = loading_item
    for col in range(5):
        item = apply_cell_edit(item, 0, col, 10, contract).item
    item = apply_loose_edit(item, 4, contract)
    assert item.total == 54
    assert item.balance == -4


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, (True, None)),
        ("", (True, None)),
        ("  ", (True, None)),
        ("12", (True, 12)),
        (8, (True, 8)),
        (3.0, (True, 3)),
        (-1, (False, None)),
        ("1.5", (False, None)),
        ("abc", (False, None)),
        ("٣", (False, None)),
        (True, (False, None)),
    ],
)
def test_parse_count(raw, expected):
    assert parse_count(raw) == expected


def test_additional_edit_is_unconstrained():
    item = AdditionalItem(id=1, sku_name="", counts=[0] * 10, total=0)

    item = apply_additional_edit(item, 0, "7")
    item = apply_additional_edit(item, 9, 13)
    item = apply_additional_edit(item, 10, 99)
    item = apply_additional_edit(item, 2, "nope")
    item = rename_additional_item(item, "  Promo pack ")

    assert item.counts[0] == 7
    assert item.counts[9] == 13
    assert item.total == 20
    assert item.sku_name == "Promo pack"


def test_summary_splits_shortage_and_overage():
    sheet = SheetData(
        id="SH-1",
        status=SheetStatus.LOCKED,
        staging_items=[
            StagingItem(sr_no=1, sku_name="A", cases_per_plt=10, full_plt=2, ttl_cases=20),
            StagingItem(sr_no=2, sku_name="B", cases_per_plt=5, full_plt=1, ttl_cases=5),
        ],
        loading_items=[
            LoadingItemData(sku_sr_no=1, cells=[LoadingCell(row=0, col=0, value=10)], total=10, balance=10),
            LoadingItemData(sku_sr_no=2, cells=[], loose_input=8, total=8, balance=-3),
        ],
        additional_items=[AdditionalItem(id=1, sku_name="Promo", counts=[2, 1], total=3)],
        created_by="tester",
        created_at=datetime(2026, 1, 1),
    )

    summary = summarize(sheet)

    assert summary.total_staged == 25
    assert summary.total_loaded_main == 18
    assert summary.total_additional == 3
    assert summary.grand_total_loaded == 21
    assert summary.shortage == 10
    assert summary.overage == 3
    assert [(row.sku_sr_no, row.sku_name, row.balance) for row in summary.short_items] == [(1, "A", 10)]


def test_enforce_contract_clears_every_mismatched_cell(contract):
    item = LoadingItemData(
        sku_sr_no=1,
        cells=[
            LoadingCell(row=0, col=0, value=10),
            LoadingCell(row=0, col=1, value=7),
            LoadingCell(row=0, col=2, value=3),
        ],
        loose_input=2,
        total=22,
        balance=28,
    )

    outcome = enforce_cell_contract(item, contract)

    assert (outcome.violation.row, outcome.violation.col, outcome.violation.entered) == (0, 1, 7)
    assert outcome.item.cells == [LoadingCell(row=0, col=0, value=10)]
    assert outcome.item.total == 12
    assert outcome.item.balance == 38


def test_enforce_contract_keeps_clean_row(contract, loading_item):
    clean = apply_cell_edit(loading_item, 0, 0, "10", contract).item

    outcome = enforce_cell_contract(clean, contract)

    assert outcome.violation is None
    assert outcome.item is clean


def test_unnamed_rows_do_not_count_as_staged():
    sheet = SheetData(
        id="SH-2",
        status=SheetStatus.LOCKED,
        staging_items=[
            StagingItem(sr_no=1, sku_name="A", cases_per_plt=10, full_plt=2, ttl_cases=20),
            StagingItem(sr_no=2, sku_name="", cases_per_plt=5, full_plt=4, ttl_cases=20),
        ],
        loading_items=[LoadingItemData(sku_sr_no=1, cells=[], total=0, balance=20)],
        created_by="tester",
        created_at=datetime(2026, 1, 1),
    )

    summary = summarize(sheet)

    assert summary.total_staged == 20
    assert summary.shortage == 20
