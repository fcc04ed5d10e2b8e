from __future__ import annotations

from itertools import product

import pytest

from app.schemas.sheet import SheetHeader, StagingItem
from app.services.staging_validator import (
    DESTINATION_REQUIRED,
    ITEM_REQUIRED,
    LOADING_DOCK_REQUIRED,
    validate_for_lock,
)


def _header(destination: str = "Pune DC", dock: str = "D-4") -> SheetHeader:
    return SheetHeader(destination=destination, loading_dock_no=dock)


def _items(with_sku: bool) -> list[StagingItem]:
    rows = [StagingItem(sr_no=1), StagingItem(sr_no=2, sku_name="   ")]
    if with_sku:
        rows.append(StagingItem(sr_no=3, sku_name="Juice 1L", cases_per_plt=12, full_plt=2))
    return rows


def test_complete_sheet_has_no_violations():
    assert validate_for_lock(_header(), _items(True)) == []


def test_empty_destination_is_reported():
    violations = validate_for_lock(_header(destination=""), _items(True))
    assert violations == [DESTINATION_REQUIRED]
    assert "Destination is required" in violations


def test_whitespace_only_fields_count_as_blank():
    violations = validate_for_lock(_header(destination="  ", dock="\t"), _items(True))
    assert violations == [DESTINATION_REQUIRED, LOADING_DOCK_REQUIRED]


def test_all_rules_are_reported_together():
    violations = validate_for_lock(_header(destination="", dock=""), _items(False))
    assert violations == [DESTINATION_REQUIRED, LOADING_DOCK_REQUIRED, ITEM_REQUIRED]


@pytest.mark.parametrize(
    "has_destination, has_dock, has_item",
    list(product([True, False], repeat=3)),
)
def test_violations_match_failed_predicates_exactly(has_destination, has_dock, has_item):
    header = _header(
        destination="Pune DC" if has_destination else "",
        dock="D-4" if has_dock else "",
    )
    expected = []
    if not has_destination:
        expected.append(DESTINATION_REQUIRED)
    if not has_dock:
        expected.append(LOADING_DOCK_REQUIRED)
    if not has_item:
        expected.append(ITEM_REQUIRED)

    assert validate_for_lock(header, _items(has_item)) == expected


def test_non_strict_mode_accepts_blank_sheet():
    assert validate_for_lock(SheetHeader(), [], strict=False) == []
