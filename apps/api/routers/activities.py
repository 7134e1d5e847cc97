"""
Activities API Router

Recent club activity, per-member history, manual entry and the leaderboard.
"""
import time
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import NotFoundError, ValidationError
from models import Activity, User
from schemas import ActivityCreate, ActivityResponse, RecentActivityResponse, StatsRow
from services.club_calendar import as_utc, club_today
from services.leaderboard import get_recent_activities, get_stats_by_date_range
from services.strava_sync import upsert_activity

router = APIRouter(prefix="/v1", tags=["activities"])


@router.get("/activities/recent", response_model=List[RecentActivityResponse])
def recent_activities(
    db: Session = Depends(get_db),
    limit: int = Query(20, ge=1, le=200, description="Number of activities to return"),
):
    result = []
    for activity in get_recent_activities(db, limit=limit):
        row = ActivityResponse.model_validate(activity).model_dump()
        row["user_name"] = activity.user.display_name
        result.append(RecentActivityResponse(**row))
    return result


@router.get("/activities/user/{user_id}", response_model=List[ActivityResponse])
def user_activities(user_id: int, db: Session = Depends(get_db)):
    if db.query(User.id).filter(User.id == user_id).first() is None:
        raise NotFoundError("User", user_id)
    return (
        db.query(Activity)
        .filter(Activity.user_id == user_id)
        .order_by(Activity.start_date.desc(), Activity.id.desc())
        .all()
    )


@router.get("/activities/{external_activity_id}", response_model=ActivityResponse)
def activity_detail(external_activity_id: str, db: Session = Depends(get_db)):
    activity = db.query(Activity).filter(Activity.external_activity_id == external_activity_id).first()
    if activity is None:
        raise NotFoundError("Activity", external_activity_id)
    return activity


@router.post("/activities", response_model=ActivityResponse, status_code=status.HTTP_201_CREATED)
def create_activity(payload: ActivityCreate, db: Session = Depends(get_db)):
    """Manual run entry (members without Strava, or corrections)."""
    if db.query(User.id).filter(User.id == payload.user_id).first() is None:
        raise NotFoundError("User", payload.user_id)

    external_id = payload.external_activity_id or f"manual_{int(time.time() * 1000)}"
    start = as_utc(payload.start_date) if payload.start_date else datetime.now(timezone.utc)
    speed = payload.distance / payload.moving_time

    activity, _ = upsert_activity(
        db,
        payload.user_id,
        external_id,
        {
            "name": payload.name,
            "type": "Run",
            "distance": payload.distance,
            "moving_time": payload.moving_time,
            "elapsed_time": payload.moving_time,
            "total_elevation_gain": 0.0,
            "start_date": start,
            "average_speed": speed,
            "max_speed": speed * 1.2,
        },
    )
    db.flush()
    return activity


@router.get("/stats", response_model=List[StatsRow])
def club_stats(
    db: Session = Depends(get_db),
    start: date = Query(..., description="First club-local day (YYYY-MM-DD)"),
    end: Optional[date] = Query(None, description="Last club-local day, defaults to today"),
):
    """Leaderboard: per-member run totals over [start, end], most distance first."""
    if end is None:
        end = club_today()
    if end < start:
        raise ValidationError("end must not be before start", field="end")
    return get_stats_by_date_range(db, start, end)
