from __future__ import annotations

from collections.abc import Sequence

from app.core.config import settings
from app.schemas.sheet import (
    AdditionalItem,
    LoadingItemData,
    SheetData,
    SheetStatus,
    StagingItem,
)


def _pool_slots() -> int:
    return max(1, int(settings.ADDITIONAL_ITEM_SLOTS))


def _pool_width() -> int:
    return max(1, int(settings.ADDITIONAL_ITEM_WIDTH))


def is_loadable(item: StagingItem) -> bool:
    return item.is_used and int(item.ttl_cases or 0) > 0


def build_additional_pool() -> list[AdditionalItem]:
    width = _pool_width()
    return [
        AdditionalItem(id=slot_id, sku_name="", counts=[0] * width, total=0)
        for slot_id in range(1, _pool_slots() + 1)
    ]


def generate(
    staging_items: Sequence[StagingItem],
    existing_loading_items: Sequence[LoadingItemData] | None = None,
    existing_additional_items: Sequence[AdditionalItem] | None = None,
) -> tuple[list[LoadingItemData], list[AdditionalItem]]:
    """
    Derive the loading-side structure from a staging snapshot.

    One LoadingItemData per loadable staging row, in staging order. Entries that
    already exist for a row keep their cells and loose count; only the balance
    is recomputed against the current staged total. Rows that stopped being
    loadable are dropped.
    """
    existing_by_sr_no = {item.sku_sr_no: item for item in (existing_loading_items or [])}

    loading_items: list[LoadingItemData] = []
    for staged in staging_items:
        if not is_loadable(staged):
            continue
        ttl_cases = int(staged.ttl_cases)
        previous = existing_by_sr_no.get(staged.sr_no)
        if previous is not None:
            loading_items.append(
                previous.model_copy(update={"balance": ttl_cases - int(previous.total)})
            )
            continue
        loading_items.append(
            LoadingItemData(
                sku_sr_no=staged.sr_no,
                cells=[],
                loose_input=0,
                total=0,
                balance=ttl_cases,
            )
        )

    if existing_additional_items:
        additional_items = [item.model_copy() for item in existing_additional_items]
    else:
        additional_items = build_additional_pool()

    return loading_items, additional_items


def needs_generation(sheet: SheetData) -> bool:
    """True for a LOCKED sheet left without its loading structure (interrupted lock)."""
    if sheet.status != SheetStatus.LOCKED:
        return False
    has_staging_data = any(is_loadable(item) for item in sheet.staging_items)
    if not has_staging_data:
        return not sheet.additional_items
    return not sheet.loading_items or not sheet.additional_items
