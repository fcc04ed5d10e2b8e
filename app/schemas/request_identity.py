from __future__ import annotations

import enum

from pydantic import BaseModel, Field


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    STAGING_SUPERVISOR = "STAGING_SUPERVISOR"
    LOADING_SUPERVISOR = "LOADING_SUPERVISOR"
    VIEWER = "VIEWER"


class RequestIdentity(BaseModel):
    email: str | None = None
    display_name: str | None = None
    role: Role = Role.VIEWER
    auth_source: str = "anonymous"
    role_names: list[str] = Field(default_factory=list)

    @property
    def actor(self) -> str:
        """Name stamped into createdBy/lockedBy/completedBy and history entries."""
        return (self.display_name or self.email or "Unknown").strip() or "Unknown"
