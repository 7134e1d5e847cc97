"""
Gift ledger

Participants of a challenge can hand part of their target distance to another
participant. Each user gets a random number of gifts per club-local day.

Every mutating operation runs as one transaction on the caller's session:
all updates are relative (target = target +/- distance) and either commit
together or are rolled back together. A storage failure surfaces as
TransientStorageError with nothing applied.
"""

from __future__ import annotations

import logging
import random
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import (
    APIException,
    NotFoundError,
    QuotaExhaustedError,
    TransientStorageError,
    ValidationError,
)
from models import Challenge, ChallengeParticipant, GiftLog, GiftQuota, User
from services.club_calendar import club_today

logger = logging.getLogger(__name__)


@dataclass
class TargetAdjustment:
    user_id: int
    distance: float  # signed km


def _roll_daily_quota() -> int:
    return random.randint(0, settings.GIFT_QUOTA_CEILING)


def _find_quota(db: Session, user_id: int, day: date, for_update: bool = False) -> Optional[GiftQuota]:
    q = db.query(GiftQuota).filter(GiftQuota.user_id == user_id, GiftQuota.quota_date == day)
    if for_update:
        q = q.with_for_update().populate_existing()
    return q.first()


def ensure_daily_quota(db: Session, user_id: int, day: Optional[date] = None, for_update: bool = False) -> GiftQuota:
    """
    Today's quota row for a user, created on first use.

    Two requests racing to create the row both end up reading the same one:
    the loser's insert hits the unique (user, day) constraint, its savepoint
    is rolled back and the winner's row is read instead.
    """
    if day is None:
        day = club_today()

    quota = _find_quota(db, user_id, day, for_update=for_update)
    if quota is not None:
        return quota

    try:
        with db.begin_nested():
            quota = GiftQuota(user_id=user_id, quota_date=day, max_count=_roll_daily_quota(), used_count=0)
            db.add(quota)
        logger.info("Created gift quota for user %s on %s: max %s", user_id, day, quota.max_count)
        return quota
    except IntegrityError:
        logger.info("Gift quota for user %s on %s created concurrently, reusing it", user_id, day)
        quota = _find_quota(db, user_id, day, for_update=for_update)
        if quota is None:
            raise
        return quota


@contextmanager
def _storage_guard(db: Session, operation: str):
    """Roll back and raise TransientStorageError on any storage failure inside the block."""
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("%s rolled back: %s", operation, e)
        raise TransientStorageError() from e


def check_gift_availability(db: Session, user_id: int, day: Optional[date] = None) -> bool:
    """True while the user still has gifts left today."""
    with _storage_guard(db, "check_gift_availability"):
        if db.query(User.id).filter(User.id == user_id).first() is None:
            raise NotFoundError("User", user_id)
        quota = ensure_daily_quota(db, user_id, day)
        db.commit()
    return quota.used_count < quota.max_count


def _get_challenge(db: Session, challenge_id: int) -> Challenge:
    challenge = db.query(Challenge).filter(Challenge.id == challenge_id).first()
    if challenge is None:
        raise NotFoundError("Challenge", challenge_id)
    return challenge


def _require_participant(db: Session, challenge_id: int, user_id: int) -> None:
    exists = (
        db.query(ChallengeParticipant.id)
        .filter(ChallengeParticipant.challenge_id == challenge_id, ChallengeParticipant.user_id == user_id)
        .first()
    )
    if exists is None:
        raise NotFoundError("Challenge participant", f"user {user_id} in challenge {challenge_id}")


def _shift_target(db: Session, challenge_id: int, user_id: int, delta_km: float) -> None:
    res = db.execute(
        update(ChallengeParticipant)
        .where(ChallengeParticipant.challenge_id == challenge_id, ChallengeParticipant.user_id == user_id)
        .values(target_distance=ChallengeParticipant.target_distance + delta_km)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise NotFoundError("Challenge participant", f"user {user_id} in challenge {challenge_id}")


def _increment_quota_usage(db: Session, quota: GiftQuota) -> None:
    db.execute(
        update(GiftQuota)
        .where(GiftQuota.id == quota.id)
        .values(used_count=GiftQuota.used_count + 1)
        .execution_options(synchronize_session=False)
    )


def _run_atomically(db: Session, operation: str, fn) -> None:
    """Commit fn's writes, or roll all of them back and re-raise."""
    try:
        fn()
        db.commit()
    except APIException:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("%s rolled back: %s", operation, e)
        raise TransientStorageError() from e
    finally:
        db.expire_all()


def give_gift(
    db: Session,
    from_user_id: int,
    to_user_id: int,
    distance_km: float,
    challenge_id: int,
    day: Optional[date] = None,
) -> GiftLog:
    """
    Move `distance_km` of target from one participant to another.

    Rejected before any write if the distance is not positive, the users are
    the same, either user is not in the challenge, or today's quota is used up.
    """
    if distance_km is None or distance_km <= 0:
        raise ValidationError("Gift distance must be positive", field="distance")
    if from_user_id == to_user_id:
        raise ValidationError("Cannot gift distance to yourself", field="to_user_id")

    if day is None:
        day = club_today()

    _get_challenge(db, challenge_id)
    _require_participant(db, challenge_id, from_user_id)
    _require_participant(db, challenge_id, to_user_id)

    # The day's roll is kept even if this gift is rejected below.
    with _storage_guard(db, "give_gift quota"):
        ensure_daily_quota(db, from_user_id, day)
        db.commit()

    log_entry = GiftLog(challenge_id=challenge_id, from_user_id=from_user_id, to_user_id=to_user_id, distance=distance_km)

    def _apply():
        quota = _find_quota(db, from_user_id, day, for_update=True)
        if quota is None:
            raise QuotaExhaustedError()
        if quota.used_count >= quota.max_count:
            raise QuotaExhaustedError(
                f"Daily gift quota exhausted ({quota.used_count}/{quota.max_count})"
            )

        _shift_target(db, challenge_id, from_user_id, -distance_km)
        _shift_target(db, challenge_id, to_user_id, distance_km)
        db.add(log_entry)
        _increment_quota_usage(db, quota)
        db.flush()

    _run_atomically(db, "give_gift", _apply)
    logger.info(
        "Gift in challenge %s: user %s -> user %s, %.2f km",
        challenge_id,
        from_user_id,
        to_user_id,
        distance_km,
    )
    return log_entry


def admin_adjust_targets(
    db: Session,
    adjustments: Sequence[TargetAdjustment],
    admin_user_id: int,
    challenge_id: int,
) -> List[GiftLog]:
    """
    Apply a batch of signed target changes on behalf of an admin.

    Each change is logged as a gift from the admin. One bad entry (unknown
    participant, zero delta) cancels the whole batch.
    """
    if not adjustments:
        raise ValidationError("At least one adjustment is required", field="adjustments")
    for adj in adjustments:
        if adj.distance is None or adj.distance == 0:
            raise ValidationError("Adjustment distance must be non-zero", field="distance")

    entries: List[GiftLog] = []

    def _apply():
        _get_challenge(db, challenge_id)
        if db.query(User.id).filter(User.id == admin_user_id).first() is None:
            raise NotFoundError("User", admin_user_id)
        for adj in adjustments:
            _shift_target(db, challenge_id, adj.user_id, adj.distance)
            entry = GiftLog(
                challenge_id=challenge_id,
                from_user_id=admin_user_id,
                to_user_id=adj.user_id,
                distance=adj.distance,
            )
            db.add(entry)
            entries.append(entry)
        db.flush()

    _run_atomically(db, "admin_adjust_targets", _apply)
    logger.info(
        "Admin %s adjusted %s target(s) in challenge %s",
        admin_user_id,
        len(entries),
        challenge_id,
    )
    return entries
