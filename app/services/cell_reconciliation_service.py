"""Loading-matrix cell entry and balance reconciliation.

Every function here is pure: it takes the current rows and returns new ones.
Totals and balances are always recomputed from their inputs, never patched.

A grid cell sits at (row, col) in pallet groups of LOADING_GRID_WIDTH slots.
Only the first `full_plt` slots of an SKU are editable and counted; each
populated slot must hold exactly the SKU's cases/PLT once the edit is
committed. Loose cases and ad-hoc items are unconstrained.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.core.config import settings
from app.schemas.sheet import (
    AdditionalItem,
    LoadingCell,
    LoadingItemData,
    SheetData,
    SheetReconciliationSummary,
    ShortItem,
    StagingItem,
)
from app.services.sheet_errors import CellContractViolation


@dataclass
class CellEditOutcome:
    item: LoadingItemData
    violation: CellContractViolation | None = None
    ignored: bool = False


def _grid_width() -> int:
    return max(1, int(settings.LOADING_GRID_WIDTH))


def parse_count(raw_value) -> tuple[bool, int | None]:
    """
    Parse a user-entered count.

    Returns (accepted, value). Blank input is accepted as None ("clear");
    anything that is not a non-negative whole number is rejected.
    """
    if raw_value is None:
        return True, None
    if isinstance(raw_value, bool):
        return False, None
    if isinstance(raw_value, int):
        return (True, raw_value) if raw_value >= 0 else (False, None)
    if isinstance(raw_value, float):
        if raw_value.is_integer() and raw_value >= 0:
            return True, int(raw_value)
        return False, None
    text = str(raw_value).strip()
    if not text:
        return True, None
    if not (text.isascii() and text.isdigit()):
        return False, None
    return True, int(text)


def slot_index(row: int, col: int) -> int:
    return row * _grid_width() + col


def is_slot_enabled(row: int, col: int, contract: StagingItem) -> bool:
    if row < 0 or col < 0 or col >= _grid_width():
        return False
    return slot_index(row, col) < int(contract.full_plt or 0)


def recompute_totals(item: LoadingItemData, contract: StagingItem) -> LoadingItemData:
    cell_sum = sum(
        cell.value for cell in item.cells if is_slot_enabled(cell.row, cell.col, contract)
    )
    total = cell_sum + int(item.loose_input or 0)
    return item.model_copy(
        update={
            "total": total,
            "balance": int(contract.ttl_cases or 0) - total,
        }
    )


def _contract_violation(sku_sr_no: int, row: int, col: int, expected: int, entered: int) -> CellContractViolation:
    return CellContractViolation(
        message=(
            f"Incorrect Quantity! The defined Cases/PLT for this SKU is {expected}. "
            "Please fill this number."
        ),
        sku_sr_no=sku_sr_no,
        row=row,
        col=col,
        expected=expected,
        entered=entered,
    )


def _upsert_cell(cells: list[LoadingCell], row: int, col: int, value: int | None) -> list[LoadingCell]:
    updated: list[LoadingCell] = []
    replaced = False
    for cell in cells:
        if cell.row == row and cell.col == col:
            replaced = True
            if value is not None:
                updated.append(LoadingCell(row=row, col=col, value=value))
            continue
        updated.append(cell)
    if not replaced and value is not None:
        updated.append(LoadingCell(row=row, col=col, value=value))
    return updated


def apply_cell_edit(
    loading_item: LoadingItemData,
    row: int,
    col: int,
    raw_value,
    contract: StagingItem,
    *,
    commit: bool = True,
) -> CellEditOutcome:
    accepted, value = parse_count(raw_value)
    if not accepted or not is_slot_enabled(row, col, contract):
        return CellEditOutcome(item=loading_item, ignored=True)

    cells = _upsert_cell(list(loading_item.cells), row, col, value)
    violation = None

    expected = int(contract.cases_per_plt or 0)
    if commit and value is not None and expected > 0 and value != expected:
        cells = _upsert_cell(cells, row, col, None)
        violation = _contract_violation(loading_item.sku_sr_no, row, col, expected, value)

    updated = recompute_totals(loading_item.model_copy(update={"cells": cells}), contract)
    return CellEditOutcome(item=updated, violation=violation)


def enforce_cell_contract(loading_item: LoadingItemData, contract: StagingItem) -> CellEditOutcome:
    """
    Commit-time check over every stored cell of a row.

    Cells that disagree with the SKU's cases/PLT are cleared; the outcome carries
    a violation for the first one found.
    """
    expected = int(contract.cases_per_plt or 0)
    if expected <= 0:
        return CellEditOutcome(item=loading_item)
    offending = [
        cell
        for cell in loading_item.cells
        if is_slot_enabled(cell.row, cell.col, contract) and cell.value != expected
    ]
    if not offending:
        return CellEditOutcome(item=loading_item)
    first = offending[0]
    kept = [cell for cell in loading_item.cells if cell not in offending]
    updated = recompute_totals(loading_item.model_copy(update={"cells": kept}), contract)
    return CellEditOutcome(
        item=updated,
        violation=_contract_violation(loading_item.sku_sr_no, first.row, first.col, expected, first.value),
    )


def apply_loose_edit(
    loading_item: LoadingItemData,
    raw_value,
    contract: StagingItem,
) -> LoadingItemData:
    accepted, value = parse_count(raw_value)
    if not accepted:
        return loading_item
    return recompute_totals(
        loading_item.model_copy(update={"loose_input": value or 0}),
        contract,
    )


def apply_additional_edit(item: AdditionalItem, slot: int, raw_value) -> AdditionalItem:
    accepted, value = parse_count(raw_value)
    if not accepted or slot < 0 or slot >= len(item.counts):
        return item
    counts = list(item.counts)
    counts[slot] = value or 0
    return item.model_copy(update={"counts": counts, "total": sum(counts)})


def rename_additional_item(item: AdditionalItem, sku_name: str) -> AdditionalItem:
    return item.model_copy(update={"sku_name": (sku_name or "").strip()})


def summarize(sheet: SheetData) -> SheetReconciliationSummary:
    # Shortage counts only positive balances; overage on one SKU does not offset another.
    total_staged = sum(int(item.ttl_cases or 0) for item in sheet.staging_items if item.is_used)
    total_loaded_main = sum(int(item.total) for item in sheet.loading_items)
    total_additional = sum(int(item.total) for item in sheet.additional_items)

    short_items: list[ShortItem] = []
    shortage = 0
    overage = 0
    for item in sheet.loading_items:
        if item.balance > 0:
            shortage += item.balance
            staged = sheet.staging_item(item.sku_sr_no)
            short_items.append(
                ShortItem(
                    sku_sr_no=item.sku_sr_no,
                    sku_name=staged.sku_name if staged else "",
                    balance=item.balance,
                )
            )
        elif item.balance < 0:
            overage += -item.balance

    return SheetReconciliationSummary(
        total_staged=total_staged,
        total_loaded_main=total_loaded_main,
        total_additional=total_additional,
        grand_total_loaded=total_loaded_main + total_additional,
        shortage=shortage,
        overage=overage,
        short_items=short_items,
    )
