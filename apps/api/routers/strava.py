"""
Strava sync endpoints.

/v1/sync pulls the incremental window, /v1/sync/full the backfill window.
Which one runs is the caller's choice; it is not inferred from history.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.config import settings
from core.database import get_db
from core.exceptions import NotFoundError
from models import User
from schemas import SyncRequest, SyncResponse
from services.strava_sync import sync_user_activities

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/sync", tags=["strava"])


def _run_sync(db: Session, user_id: int, window_days: int) -> SyncResponse:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFoundError("User", user_id)

    result = sync_user_activities(db, user, window_days=window_days)
    return SyncResponse(
        message=f"Synced {result.synced_count} run(s) from {result.total_activities} Strava activities",
        **result.to_dict(),
    )


@router.post("", response_model=SyncResponse)
def trigger_sync(payload: SyncRequest, db: Session = Depends(get_db)):
    return _run_sync(db, payload.user_id, settings.SYNC_INCREMENTAL_DAYS)


@router.post("/full", response_model=SyncResponse)
def trigger_full_sync(payload: SyncRequest, db: Session = Depends(get_db)):
    return _run_sync(db, payload.user_id, settings.SYNC_BACKFILL_DAYS)
