"""
Competition result matcher

Fills in a participant's race result from their synced Strava runs once the
competition day has passed.

Selection for one participant (athlete linked, no result yet):
1. Runs whose club-local start date equals the competition date.
2. First run (in query order) whose name contains the competition name.
3. Otherwise, runs inside the category distance window; the one closest to
   the window midpoint wins, earlier candidates win ties.

Matching is best-effort and idempotent: a participant with a result is never
touched again, a participant without a match is simply retried next time.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import NotFoundError, UpstreamUnavailableError
from models import Activity, Competition, CompetitionParticipant, User
from services.club_calendar import club_today, local_date

logger = logging.getLogger(__name__)

CATEGORIES = ("5K", "10K", "Half", "32K", "Full")

# Inclusive distance windows in meters.
CATEGORY_DISTANCE_RANGES: Dict[str, Tuple[float, float]] = {
    "5K": (4600, 5400),
    "10K": (9200, 10800),
    "Half": (20000, 22000),
    "32K": (30000, 34000),
    "Full": (40000, 46000),
}

RunHistory = Callable[[int], Sequence[Activity]]


def format_result_time(moving_time_s: int) -> str:
    """H:MM:SS from one hour up, M:SS below."""
    seconds = int(moving_time_s or 0)
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def runs_for_athlete(db: Session, strava_athlete_id: int) -> List[Activity]:
    return (
        db.query(Activity)
        .join(User, Activity.user_id == User.id)
        .filter(User.strava_athlete_id == strava_athlete_id, Activity.type == "Run")
        .order_by(Activity.start_date.desc(), Activity.id.desc())
        .all()
    )


def select_competition_activity(
    activities: Sequence[Activity],
    competition_date: date,
    competition_name: str,
    category: str,
) -> Optional[Activity]:
    same_day = [
        a for a in activities
        if a.type == "Run" and a.start_date is not None and local_date(a.start_date) == competition_date
    ]
    if not same_day:
        return None

    for a in same_day:
        if a.name and competition_name in a.name:
            return a

    distance_range = CATEGORY_DISTANCE_RANGES.get(category)
    if distance_range is None:
        return None
    low, high = distance_range
    midpoint = (low + high) / 2

    best: Optional[Activity] = None
    for a in same_day:
        if a.distance is None or not (low <= a.distance <= high):
            continue
        if best is None or abs(a.distance - midpoint) < abs(best.distance - midpoint):
            best = a
    return best


def match_participant(
    participant: CompetitionParticipant,
    competition: Competition,
    history: RunHistory,
) -> bool:
    """Assign a result to one participant. Returns True if a match was written."""
    activity = select_competition_activity(
        history(participant.strava_athlete_id),
        competition.date,
        competition.name,
        participant.category,
    )
    if activity is None:
        return False

    participant.activity_id = activity.external_activity_id
    participant.result = format_result_time(activity.moving_time)
    logger.info(
        "Matched competition %s participant %s to activity %s (%s)",
        competition.id,
        participant.id,
        activity.external_activity_id,
        participant.result,
    )
    return True


def match_competition(
    db: Session,
    competition: Competition,
    today: Optional[date] = None,
    history: Optional[RunHistory] = None,
) -> int:
    """
    Match every eligible participant of one competition.

    Future competitions are left alone. Per-participant failures are logged
    and skipped. Returns the number of participants matched in this run.
    """
    if today is None:
        today = club_today()
    if competition.date > today:
        return 0
    if history is None:
        def history(athlete_id: int) -> Sequence[Activity]:
            return runs_for_athlete(db, athlete_id)

    matched = 0
    for participant in competition.participants:
        if participant.strava_athlete_id is None or participant.result:
            continue
        try:
            with db.begin_nested():
                if match_participant(participant, competition, history):
                    matched += 1
        except (SQLAlchemyError, UpstreamUnavailableError) as e:
            logger.warning(
                "Result matching skipped for competition %s participant %s: %s",
                competition.id,
                participant.id,
                e,
            )
    return matched


def match_competition_results(db: Session, competition_id: int, today: Optional[date] = None) -> Competition:
    """Run the matcher for one competition and return it with participants refreshed."""
    competition = db.query(Competition).filter(Competition.id == competition_id).first()
    if competition is None:
        raise NotFoundError("Competition", competition_id)
    match_competition(db, competition, today=today)
    return competition


def match_past_competitions(db: Session, competitions: Sequence[Competition], today: Optional[date] = None) -> int:
    if today is None:
        today = club_today()
    return sum(match_competition(db, c, today=today) for c in competitions if c.date <= today)
