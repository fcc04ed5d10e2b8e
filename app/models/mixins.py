from datetime import datetime

from sqlalchemy import DateTime, String, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

SYSTEM_ACTOR = "system@local"


class StampMixin:
    """Row-level who/when columns, separate from the sheet's own history."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
    created_by: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default=SYSTEM_ACTOR,
        server_default=text(f"'{SYSTEM_ACTOR}'"),
    )
    last_changed_by: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default=SYSTEM_ACTOR,
        server_default=text(f"'{SYSTEM_ACTOR}'"),
    )

    def stamp(self, actor: str | None) -> None:
        name = (actor or "").strip()[:255] or SYSTEM_ACTOR
        if not self.created_by:
            self.created_by = name
        self.last_changed_by = name
