from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class SheetOperationFailure(Exception):
    code: str
    message: str
    status_code: int = 400

    def __str__(self) -> str:
        return self.message

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


@dataclass
class SheetValidationError(SheetOperationFailure):
    """Lock (or another write) attempted on incomplete input. Nothing was written."""

    code: str = "VALIDATION_FAILED"
    message: str = "Validation failed."
    status_code: int = 422
    violations: list[str] = field(default_factory=list)

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["violations"] = list(self.violations)
        return detail


@dataclass
class SheetConflictError(SheetOperationFailure):
    code: str = "LOCK_IN_PROGRESS"
    message: str = "Sheet is locked by another operation."
    status_code: int = 409
    sheet_id: str | None = None

    def to_detail(self) -> dict:
        detail = super().to_detail()
        if self.sheet_id:
            detail["sheet_id"] = self.sheet_id
        return detail


@dataclass
class CellContractViolation(SheetOperationFailure):
    """A grid cell disagreed with the SKU's cases/PLT; the cell has been cleared."""

    code: str = "CELL_CONTRACT_VIOLATION"
    message: str = "Incorrect quantity."
    status_code: int = 422
    sku_sr_no: int | None = None
    row: int | None = None
    col: int | None = None
    expected: int | None = None
    entered: int | None = None

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail.update(
            {
                "sku_sr_no": self.sku_sr_no,
                "row": self.row,
                "col": self.col,
                "expected": self.expected,
                "entered": self.entered,
            }
        )
        return detail


@dataclass
class SheetNotFoundError(SheetOperationFailure):
    code: str = "SHEET_NOT_FOUND"
    message: str = "Sheet was not found."
    status_code: int = 404
    sheet_id: str | None = None


@dataclass
class SheetPersistenceError(SheetOperationFailure):
    code: str = "PERSISTENCE_FAILED"
    message: str = "Operation failed, please retry."
    status_code: int = 503
