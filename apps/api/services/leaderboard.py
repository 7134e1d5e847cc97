"""
Club leaderboard and personal records.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from models import Activity, User
from services.club_calendar import local_day_bounds_utc

# Inclusive windows (meters) a run must fall in to count toward a record.
RECORD_DISTANCES = [
    ("5K", 4500, 5500),
    ("10K", 9500, 10500),
    ("Half", 20500, 22000),
    ("Full", 41500, 43000),
]


def get_stats_by_date_range(db: Session, start: date, end: date) -> List[Dict[str, Any]]:
    """
    Per-user totals for runs between two club-local dates (inclusive),
    highest total distance first. Users without runs in the window are omitted.
    """
    start_utc, end_utc = local_day_bounds_utc(start, end)
    total_distance = func.sum(Activity.distance)

    rows = (
        db.query(
            User.id.label("id"),
            func.coalesce(User.nickname, User.name).label("name"),
            func.count(Activity.id).label("activity_count"),
            total_distance.label("total_distance"),
            func.sum(Activity.moving_time).label("total_time"),
            func.sum(Activity.total_elevation_gain).label("total_elevation"),
            func.avg(Activity.average_heartrate).label("avg_heartrate"),
            func.avg(Activity.average_cadence).label("avg_cadence"),
        )
        .join(Activity, Activity.user_id == User.id)
        .filter(
            Activity.type == "Run",
            Activity.start_date >= start_utc,
            Activity.start_date < end_utc,
        )
        .group_by(User.id, User.nickname, User.name)
        .order_by(total_distance.desc())
        .all()
    )
    return [dict(row._mapping) for row in rows]


def get_personal_records(db: Session, user_id: int) -> Dict[str, Optional[Activity]]:
    """Fastest run (moving time) per standard distance, or None when there is none."""
    records: Dict[str, Optional[Activity]] = {}
    for label, low, high in RECORD_DISTANCES:
        records[label] = (
            db.query(Activity)
            .filter(
                Activity.user_id == user_id,
                Activity.type == "Run",
                Activity.distance >= low,
                Activity.distance <= high,
                Activity.moving_time.isnot(None),
            )
            .order_by(Activity.moving_time.asc(), Activity.start_date.asc())
            .first()
        )
    return records


def get_recent_activities(db: Session, limit: int = 20) -> List[Activity]:
    return (
        db.query(Activity)
        .join(User, Activity.user_id == User.id)
        .order_by(Activity.start_date.desc(), Activity.id.desc())
        .limit(limit)
        .all()
    )
