from __future__ import annotations

from app.schemas.request_identity import Role
from app.schemas.sheet import SheetStatus

_STAGING_ROLES = frozenset({Role.ADMIN, Role.STAGING_SUPERVISOR})
_LOADING_ROLES = frozenset({Role.ADMIN, Role.LOADING_SUPERVISOR})

# (from_state, to_state) -> roles allowed to drive it. None means "no sheet yet".
_TRANSITION_ROLES: dict[tuple[SheetStatus | None, SheetStatus], frozenset[Role]] = {
    (None, SheetStatus.DRAFT): _STAGING_ROLES,
    (SheetStatus.DRAFT, SheetStatus.DRAFT): _STAGING_ROLES,
    (SheetStatus.DRAFT, SheetStatus.LOCKED): _STAGING_ROLES,
    (SheetStatus.LOCKED, SheetStatus.LOCKED): _LOADING_ROLES,
    (SheetStatus.LOCKED, SheetStatus.COMPLETED): _LOADING_ROLES,
}


def _as_role(role: Role | str | None) -> Role | None:
    if role is None:
        return None
    try:
        return Role(str(getattr(role, "value", role)).strip().upper())
    except ValueError:
        return None


def can_transition(
    role: Role | str | None,
    from_state: SheetStatus | None,
    to_state: SheetStatus,
) -> bool:
    """
    Whether a role may drive a sheet from `from_state` to `to_state`.

    Same-state pairs cover edits: DRAFT->DRAFT is a draft save,
    LOCKED->LOCKED is a loading-matrix edit. COMPLETED sheets accept no
    transition at all.
    """
    resolved = _as_role(role)
    if resolved is None:
        return False
    allowed = _TRANSITION_ROLES.get((from_state, to_state))
    return bool(allowed) and resolved in allowed


def can_delete(role: Role | str | None) -> bool:
    return _as_role(role) == Role.ADMIN


def can_annotate(role: Role | str | None) -> bool:
    resolved = _as_role(role)
    return resolved is not None and resolved != Role.VIEWER
