from __future__ import annotations

from collections.abc import Iterable

from app.schemas.sheet import StagingItem


def _as_count(value) -> int:
    # Blank means "not yet entered" and counts as zero.
    if value is None:
        return 0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError:
            return 0
    return int(value)


def compute_total_cases(cases_per_plt, full_plt, loose) -> int:
    """Total cases for a staged SKU: full pallets times cases per pallet, plus loose cases."""
    return _as_count(cases_per_plt) * _as_count(full_plt) + _as_count(loose)


def recompute_staging_item(item: StagingItem) -> StagingItem:
    return item.model_copy(
        update={
            "ttl_cases": compute_total_cases(item.cases_per_plt, item.full_plt, item.loose),
        }
    )


def staged_total(items: Iterable[StagingItem]) -> int:
    return sum(int(item.ttl_cases or 0) for item in items)
