from __future__ import annotations

import logging

from fastapi import Request

from app.core.config import settings
from app.schemas.request_identity import RequestIdentity, Role

logger = logging.getLogger(__name__)


def _normalized_role(raw: str | None) -> Role:
    value = (raw or "").strip().upper()
    if not value:
        value = settings.DEFAULT_REQUEST_ROLE
    try:
        return Role(value)
    except ValueError:
        logger.warning("request_identity_unknown_role role=%s", value)
        return Role.VIEWER


def _identity_from_legacy_header(request: Request) -> RequestIdentity:
    email = (
        request.headers.get("X-User-Email")
        or request.headers.get("X-User")
        or "system@local"
    )
    display_name = (request.headers.get("X-User-Name") or "").strip()
    role = _normalized_role(request.headers.get("X-User-Role"))
    return RequestIdentity(
        email=(email or "").strip().lower() or None,
        display_name=display_name or None,
        role=role,
        auth_source="legacy_header",
        role_names=[role.value],
    )


def resolve_request_identity(request: Request) -> RequestIdentity:
    return _identity_from_legacy_header(request)


def get_request_identity(request: Request) -> RequestIdentity:
    return resolve_request_identity(request)
