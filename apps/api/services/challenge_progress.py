"""
Challenge progress

Achieved distance for each joined participant over the challenge window,
measured in club-local days. Ordering is left to the caller.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from models import Activity, Challenge, ChallengeParticipant
from services.club_calendar import local_day_bounds_utc

logger = logging.getLogger(__name__)


@dataclass
class ParticipantProgress:
    user_id: int
    name: str
    target_km: float
    achieved_km: float
    activity_count: int
    progress_percent: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def progress_percent(achieved_km: float, target_km: float) -> int:
    """Percent of target reached; any target at or below zero reads as 0%."""
    if target_km is None or target_km <= 0:
        return 0
    return round_half_up(achieved_km / target_km * 100)


def challenge_activities_query(db: Session, challenge: Challenge, user_id: int):
    start_utc, end_utc = local_day_bounds_utc(challenge.start_date, challenge.end_date)
    return db.query(Activity).filter(
        Activity.user_id == user_id,
        Activity.type == "Run",
        Activity.start_date >= start_utc,
        Activity.start_date < end_utc,
    )


def get_challenge_progress(db: Session, challenge_id: int) -> List[ParticipantProgress]:
    """
    Progress for every participant of a challenge.

    An unknown challenge id yields an empty list.
    """
    challenge = db.query(Challenge).filter(Challenge.id == challenge_id).first()
    if challenge is None:
        return []

    start_utc, end_utc = local_day_bounds_utc(challenge.start_date, challenge.end_date)

    totals = dict(
        (row.user_id, (row.total_m or 0.0, row.activity_count))
        for row in (
            db.query(
                Activity.user_id.label("user_id"),
                func.sum(Activity.distance).label("total_m"),
                func.count(Activity.id).label("activity_count"),
            )
            .join(ChallengeParticipant, ChallengeParticipant.user_id == Activity.user_id)
            .filter(
                ChallengeParticipant.challenge_id == challenge.id,
                Activity.type == "Run",
                Activity.start_date >= start_utc,
                Activity.start_date < end_utc,
            )
            .group_by(Activity.user_id)
            .all()
        )
    )

    participants = (
        db.query(ChallengeParticipant)
        .filter(ChallengeParticipant.challenge_id == challenge.id)
        .order_by(ChallengeParticipant.id)
        .all()
    )

    results: List[ParticipantProgress] = []
    for p in participants:
        total_m, count = totals.get(p.user_id, (0.0, 0))
        achieved_km = total_m / 1000.0
        results.append(
            ParticipantProgress(
                user_id=p.user_id,
                name=p.user.display_name if p.user else str(p.user_id),
                target_km=p.target_distance,
                achieved_km=round(achieved_km, 2),
                activity_count=int(count),
                progress_percent=progress_percent(achieved_km, p.target_distance),
            )
        )

    logger.debug("Computed progress for challenge %s (%s participants)", challenge.id, len(results))
    return results
