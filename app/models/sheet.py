from __future__ import annotations

from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.mixins import StampMixin


class SheetRecord(StampMixin, Base):
    """
    Staging/loading check sheet.

    The whole document lives in `data`; `status` and `version` are mirrored
    into columns so lists can be filtered without decoding JSON.
    """
    __tablename__ = "sheet"

    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True, default="DRAFT")
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    data: Mapped[dict] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:
        return f"<SheetRecord(id={self.id}, status={self.status}, version={self.version})>"
