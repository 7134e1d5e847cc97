"""
Strava activity sync

Pulls activity summaries for one user and upserts them into the activity
store keyed by the Strava activity id. Only public runs are kept.

The look-back window is an explicit argument. Callers pick it:
- incremental sync: settings.SYNC_INCREMENTAL_DAYS
- full backfill:    settings.SYNC_BACKFILL_DAYS
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from core.exceptions import UpstreamUnavailableError, ValidationError
from models import Activity, User
from services.club_calendar import parse_strava_datetime
from services.strava_service import StravaRateLimitError, fetch_all_activities
from services.token_encryption import decrypt_token

logger = logging.getLogger(__name__)

# Summary fields copied verbatim onto Activity.
_SUMMARY_FIELDS = (
    "name",
    "distance",
    "moving_time",
    "elapsed_time",
    "total_elevation_gain",
    "average_speed",
    "max_speed",
    "average_heartrate",
    "max_heartrate",
    "average_cadence",
    "average_temp",
    "calories",
    "suffer_score",
    "workout_type",
)


@dataclass
class UpsertResult:
    created: int
    updated: int
    skipped: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
        }


@dataclass
class SyncResult:
    user_id: int
    window_days: int
    total_activities: int
    synced_count: int
    created: int
    updated: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "window_days": self.window_days,
            "total_activities": self.total_activities,
            "synced_count": self.synced_count,
            "created": self.created,
            "updated": self.updated,
        }


def upsert_activity(db: Session, user_id: int, external_activity_id: str, fields: Dict[str, Any]) -> Tuple[Activity, bool]:
    """
    Insert or update the activity with this external id.

    Returns (activity, created).
    """
    existing = (
        db.query(Activity)
        .filter(Activity.external_activity_id == external_activity_id)
        .first()
    )
    if existing is None:
        act = Activity(external_activity_id=external_activity_id, user_id=user_id, **fields)
        db.add(act)
        return act, True

    existing.user_id = user_id
    for key, value in fields.items():
        setattr(existing, key, value)
    return existing, False


def _is_public_run(summary: Dict[str, Any]) -> bool:
    return summary.get("type") == "Run" and summary.get("private") is False


def upsert_strava_activity_summaries(user: User, db: Session, summaries: List[Dict[str, Any]]) -> UpsertResult:
    created = 0
    updated = 0
    skipped = 0

    for a in summaries or []:
        strava_activity_id = a.get("id")
        start_date = a.get("start_date")
        if not _is_public_run(a) or not strava_activity_id or not start_date:
            skipped += 1
            continue

        fields = {key: a.get(key) for key in _SUMMARY_FIELDS}
        fields["type"] = a.get("type")
        fields["start_date"] = parse_strava_datetime(start_date)

        _, was_created = upsert_activity(db, user.id, str(strava_activity_id), fields)
        if was_created:
            created += 1
        else:
            updated += 1

    db.flush()
    return UpsertResult(created=created, updated=updated, skipped=skipped)


def sync_user_activities(
    db: Session,
    user: User,
    window_days: int,
    now: Optional[datetime] = None,
    fetch: Callable[[str, Optional[int]], List[Dict[str, Any]]] = fetch_all_activities,
) -> SyncResult:
    """
    Fetch the last `window_days` of activities for `user` and upsert public runs.

    Raises ValidationError if the user has no usable Strava token and
    UpstreamUnavailableError if Strava cannot be reached or keeps rate limiting.
    """
    if window_days <= 0:
        raise ValidationError("window_days must be positive", field="window_days")

    access_token = decrypt_token(user.strava_access_token)
    if not access_token:
        raise ValidationError(f"User {user.id} has no Strava access token", field="strava_access_token")

    if now is None:
        now = datetime.now(timezone.utc)
    after = int((now - timedelta(days=window_days)).timestamp())

    logger.info("Syncing user %s: last %s days", user.id, window_days)
    try:
        summaries = fetch(access_token, after)
    except StravaRateLimitError as e:
        raise UpstreamUnavailableError(f"Strava rate limit reached, retry after {e.retry_after_s}s") from e

    result = upsert_strava_activity_summaries(user, db, summaries)
    user.last_sync_at = now

    synced = result.created + result.updated
    logger.info(
        "Sync complete for user %s: %s activities stored (of %s fetched)",
        user.id,
        synced,
        len(summaries),
    )
    return SyncResult(
        user_id=user.id,
        window_days=window_days,
        total_activities=len(summaries),
        synced_count=synced,
        created=result.created,
        updated=result.updated,
    )
