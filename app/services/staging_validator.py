from __future__ import annotations

from collections.abc import Sequence

from app.schemas.sheet import SheetHeader, StagingItem

DESTINATION_REQUIRED = "Destination is required"
LOADING_DOCK_REQUIRED = "Loading Dock No is required"
ITEM_REQUIRED = "At least one valid item row (SKU Name) is required to lock."


def validate_for_lock(
    header: SheetHeader,
    items: Sequence[StagingItem],
    *,
    strict: bool = True,
) -> list[str]:
    """
    Lock-readiness check for a staging sheet.

    Every rule is evaluated so the caller can report the full list at once.
    Draft saves (strict=False) accept blank or partial sheets.
    """
    if not strict:
        return []

    violations: list[str] = []
    if not (header.destination or "").strip():
        violations.append(DESTINATION_REQUIRED)
    if not (header.loading_dock_no or "").strip():
        violations.append(LOADING_DOCK_REQUIRED)
    if not any(item.is_used for item in items):
        violations.append(ITEM_REQUIRED)
    return violations
