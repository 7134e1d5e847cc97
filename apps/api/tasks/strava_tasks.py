"""
Celery tasks for Strava synchronization.

These tasks run in the background worker to prevent blocking the API.
"""
import logging
from typing import Dict, Optional

from core.config import settings
from core.database import get_db_sync
from core.exceptions import APIException
from models import User
from services.strava_sync import sync_user_activities
from tasks import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="tasks.sync_user_activities")
def sync_user_activities_task(user_id: int, full: bool = False) -> Dict:
    """Sync one member. `full` selects the backfill window instead of the incremental one."""
    window_days = settings.SYNC_BACKFILL_DAYS if full else settings.SYNC_INCREMENTAL_DAYS
    db = get_db_sync()
    try:
        user = db.query(User).filter(User.id == user_id).first()
        if user is None:
            return {"status": "error", "error": f"User {user_id} not found"}

        result = sync_user_activities(db, user, window_days=window_days)
        db.commit()
        return {"status": "success", **result.to_dict()}
    except APIException as e:
        db.rollback()
        logger.warning("Sync failed for user %s: %s", user_id, e.detail)
        return {"status": "error", "error": e.detail}
    except Exception:
        db.rollback()
        logger.exception("Sync crashed for user %s", user_id)
        raise
    finally:
        db.close()


@celery_app.task(name="tasks.sync_all_users")
def sync_all_users(limit: Optional[int] = None) -> Dict:
    """Incremental sync for every member with a Strava token. One failure does not stop the rest."""
    db = get_db_sync()
    try:
        q = db.query(User.id).filter(User.strava_access_token.isnot(None)).order_by(User.id)
        if limit:
            q = q.limit(limit)
        user_ids = [row.id for row in q.all()]
    finally:
        db.close()

    summary = {"total": len(user_ids), "succeeded": 0, "failed": 0}
    for user_id in user_ids:
        outcome = sync_user_activities_task(user_id)
        if outcome.get("status") == "success":
            summary["succeeded"] += 1
        else:
            summary["failed"] += 1

    logger.info("Nightly sync finished: %s", summary)
    return summary
