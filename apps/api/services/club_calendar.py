"""
Club calendar helpers.

Every "which day was this run on" question in the club is answered in one
fixed offset (UTC+9 by default, CLUB_UTC_OFFSET_HOURS). Activities are stored
in UTC; these helpers convert in both directions so that queries can filter on
UTC bounds while results stay correct at local midnight.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

from core.config import settings

CLUB_TZ = timezone(timedelta(hours=settings.CLUB_UTC_OFFSET_HOURS))


def as_utc(dt: datetime) -> datetime:
    """Normalize a datetime to aware UTC. Naive values are taken to already be UTC (SQLite returns them that way)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_strava_datetime(value: str) -> datetime:
    """Parse Strava's ISO8601 `start_date` ("2025-01-01T12:00:00Z") into aware UTC."""
    return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def local_date(dt: datetime) -> date:
    """Calendar date of an instant in the club timezone."""
    return as_utc(dt).astimezone(CLUB_TZ).date()


def club_today(now: Optional[datetime] = None) -> date:
    if now is None:
        now = datetime.now(timezone.utc)
    return local_date(now)


def local_day_bounds_utc(start: date, end: date) -> Tuple[datetime, datetime]:
    """
    UTC instants for local midnight at the start of `start` and local midnight
    after `end`.

    The window is half-open: filter with `>= start_utc` and `< end_utc`.
    """
    start_local = datetime.combine(start, time.min, tzinfo=CLUB_TZ)
    end_local = datetime.combine(end + timedelta(days=1), time.min, tzinfo=CLUB_TZ)
    return start_local.astimezone(timezone.utc), end_local.astimezone(timezone.utc)
