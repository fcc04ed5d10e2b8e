from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import logging
import threading

from app.services.sheet_errors import SheetConflictError

logger = logging.getLogger(__name__)


class SheetLockManager:
    """
    Set of sheet ids currently undergoing a DRAFT -> LOCKED transition.

    Guards against two lock transitions racing on the same sheet inside one
    process. It is not a distributed lock.
    """

    def __init__(self) -> None:
        self._active: set[str] = set()
        self._mutex = threading.Lock()

    @staticmethod
    def _normalized_id(sheet_id: str | None) -> str:
        return (sheet_id or "").strip()

    def acquire(self, sheet_id: str) -> bool:
        key = self._normalized_id(sheet_id)
        with self._mutex:
            if key in self._active:
                return False
            self._active.add(key)
        return True

    def release(self, sheet_id: str) -> None:
        key = self._normalized_id(sheet_id)
        with self._mutex:
            self._active.discard(key)

    def is_held(self, sheet_id: str) -> bool:
        key = self._normalized_id(sheet_id)
        with self._mutex:
            return key in self._active

    def active(self) -> list[str]:
        with self._mutex:
            return sorted(self._active)

    @contextmanager
    def guard(self, sheet_id: str) -> Iterator[None]:
        if not self.acquire(sheet_id):
            logger.warning("sheet_lock_conflict sheet_id=%s", sheet_id)
            raise SheetConflictError(
                code="LOCK_IN_PROGRESS",
                message="Cannot Lock: This sheet is currently locked by another user.",
                sheet_id=sheet_id,
            )
        try:
            yield
        finally:
            self.release(sheet_id)


# Process-wide instance used by the HTTP layer.
sheet_lock_manager = SheetLockManager()
