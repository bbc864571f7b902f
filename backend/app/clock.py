from datetime import date, datetime
from zoneinfo import ZoneInfo

from app.db.base import as_utc, utcnow
from app.settings import get_settings


def business_tz() -> ZoneInfo:
    return ZoneInfo(get_settings().APP_TIMEZONE)


def local_date(value: datetime) -> date:
    """Calendar date of an instant as seen in the business timezone."""
    return as_utc(value).astimezone(business_tz()).date()


def business_today(now: datetime | None = None) -> date:
    return local_date(now or utcnow())
