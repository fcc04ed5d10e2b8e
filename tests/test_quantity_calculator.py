from __future__ import annotations

import pytest

from app.schemas.sheet import StagingItem
from app.services.quantity_calculator import (
    compute_total_cases,
    recompute_staging_item,
    staged_total,
)


@pytest.mark.parametrize(
    "cases_per_plt, full_plt, loose, expected",
    [
        (10, 5, 3, 53),
        (0, 0, 0, 0),
        (24, 1, 0, 24),
        (12, 0, 7, 7),
    ],
)
def test_total_cases_is_cases_times_pallets_plus_loose(cases_per_plt, full_plt, loose, expected):
    assert compute_total_cases(cases_per_plt, full_plt, loose) == expected


def test_blank_inputs_count_as_zero():
    assert compute_total_cases(None, 4, None) == 0
    assert compute_total_cases("", "", "6") == 6
    assert compute_total_cases(" 10 ", "2", "abc") == 20


def test_recompute_staging_item_returns_new_row():
    item = StagingItem(sr_no=1, sku_name="Cola 330ml", cases_per_plt=10, full_plt=5, loose=3, ttl_cases=0)

    updated = recompute_staging_item(item)

    assert updated.ttl_cases == 53
    assert item.ttl_cases == 0


def test_staging_item_blank_strings_become_none():
    item = StagingItem(sr_no=2, sku_name=None, cases_per_plt="", full_plt=" ", loose=None)

    assert item.cases_per_plt is None
    assert item.full_plt is None
    assert item.sku_name == ""
    assert recompute_staging_item(item).ttl_cases == 0


def test_staged_total_sums_rows():
    rows = [
        recompute_staging_item(StagingItem(sr_no=1, sku_name="A", cases_per_plt=10, full_plt=2, loose=1)),
        recompute_staging_item(StagingItem(sr_no=2, sku_name="B", cases_per_plt=5, full_plt=1, loose=0)),
        StagingItem(sr_no=3),
    ]
    assert staged_total(rows) == 26
