"""
FastAPI dependencies (DB session, calendar, settings)
"""
from fastapi import HTTPException, status

from offshore.config import Settings, get_settings
from offshore.domain.calendar import CalendarProvider
from offshore.infrastructure.db.session import get_db as _get_db


# Re-export get_db for routers
get_db = _get_db


def get_calendar() -> CalendarProvider:
    """
    Calendar configured from settings (timezone, first weekday)

    Usage:
        @router.post("/budgets")
        def create(cal: CalendarProvider = Depends(get_calendar)):
            ...
    """
    return CalendarProvider.from_settings(get_settings())


def get_app_settings() -> Settings:
    return get_settings()


def raise_for(exc: ValueError) -> None:
    """
    Translate a use-case ValueError into an HTTP error.

    "not found" messages become 404, everything else 400.
    """
    message = str(exc)
    if "not found" in message:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=message) from exc
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message) from exc
