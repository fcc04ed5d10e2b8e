import logging

from app.core.config import settings

# Category -> settings switch. Unlisted categories follow FLOW_LOGS_ENABLED only.
_CATEGORY_SWITCHES = {
    "lifecycle": "FLOW_LOGS_LIFECYCLE_ENABLED",
    "loading": "FLOW_LOGS_LOADING_ENABLED",
}


def _category_enabled(category: str | None) -> bool:
    if not settings.FLOW_LOGS_ENABLED:
        return False
    switch = _CATEGORY_SWITCHES.get(category or "")
    if switch is None:
        return True
    return bool(getattr(settings, switch))


def flow_info(
    logger: logging.Logger,
    msg: str,
    *args,
    category: str | None = None,
    **kwargs,
) -> None:
    """INFO trace of sheet activity, muted per category from settings."""
    if _category_enabled(category):
        logger.info(msg, *args, **kwargs)
