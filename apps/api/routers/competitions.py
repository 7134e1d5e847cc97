"""
Competitions API Router

Organizers register races with entrants; results fill in automatically from
Strava once race day has passed (see services.result_matcher).
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import ConflictError, NotFoundError, ValidationError
from models import Competition, CompetitionParticipant, User
from schemas import (
    CompetitionCreate,
    CompetitionJoinRequest,
    CompetitionLeaveRequest,
    CompetitionResponse,
)
from services.result_matcher import match_competition_results, match_past_competitions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/competitions", tags=["competitions"])


def _get_competition(db: Session, competition_id: int) -> Competition:
    competition = db.query(Competition).filter(Competition.id == competition_id).first()
    if competition is None:
        raise NotFoundError("Competition", competition_id)
    return competition


def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def _replace_participants(competition: Competition, payload: CompetitionCreate) -> None:
    competition.participants = [
        CompetitionParticipant(
            name=p.name,
            category=p.category,
            strava_athlete_id=p.strava_athlete_id,
        )
        for p in payload.participants
    ]


@router.get("", response_model=List[CompetitionResponse])
def list_competitions(db: Session = Depends(get_db)):
    """All competitions by date. Past ones get their missing results matched first."""
    competitions = db.query(Competition).order_by(Competition.date.asc(), Competition.id.asc()).all()
    matched = match_past_competitions(db, competitions)
    if matched:
        db.commit()
        logger.info("Matched %s competition result(s) while listing", matched)
    return competitions


@router.post("", response_model=CompetitionResponse, status_code=status.HTTP_201_CREATED)
def create_competition(payload: CompetitionCreate, db: Session = Depends(get_db)):
    competition = Competition(date=payload.date, name=payload.name)
    _replace_participants(competition, payload)
    db.add(competition)
    db.flush()
    logger.info("Created competition %s (%s participants)", competition.id, len(competition.participants))
    return competition


@router.get("/{competition_id}", response_model=CompetitionResponse)
def get_competition(competition_id: int, db: Session = Depends(get_db)):
    return _get_competition(db, competition_id)


@router.put("/{competition_id}", response_model=CompetitionResponse)
def update_competition(competition_id: int, payload: CompetitionCreate, db: Session = Depends(get_db)):
    """Edit replaces the entrant list wholesale, dropping any matched results."""
    competition = _get_competition(db, competition_id)
    competition.date = payload.date
    competition.name = payload.name
    _replace_participants(competition, payload)
    db.flush()
    return competition


@router.delete("/{competition_id}")
def delete_competition(competition_id: int, db: Session = Depends(get_db)):
    competition = _get_competition(db, competition_id)
    db.delete(competition)
    db.flush()
    return {"success": True}


@router.post("/{competition_id}/match", response_model=CompetitionResponse)
def match_results(competition_id: int, db: Session = Depends(get_db)):
    competition = match_competition_results(db, competition_id)
    db.commit()
    return competition


@router.post("/{competition_id}/join", response_model=CompetitionResponse)
def join_competition(competition_id: int, payload: CompetitionJoinRequest, db: Session = Depends(get_db)):
    competition = _get_competition(db, competition_id)
    user = _get_user(db, payload.user_id)
    if user.strava_athlete_id is None:
        raise ValidationError("Connect Strava before joining a competition", field="strava_athlete_id")
    if any(p.strava_athlete_id == user.strava_athlete_id for p in competition.participants):
        raise ConflictError(f"User {user.id} already entered competition {competition_id}")

    competition.participants.append(
        CompetitionParticipant(
            name=user.display_name,
            category=payload.category,
            strava_athlete_id=user.strava_athlete_id,
        )
    )
    db.flush()
    return competition


@router.post("/{competition_id}/leave", response_model=CompetitionResponse)
def leave_competition(competition_id: int, payload: CompetitionLeaveRequest, db: Session = Depends(get_db)):
    competition = _get_competition(db, competition_id)
    user = _get_user(db, payload.user_id)
    entries = [
        p for p in competition.participants
        if user.strava_athlete_id is not None and p.strava_athlete_id == user.strava_athlete_id
    ]
    if not entries:
        raise NotFoundError("Competition participant", f"user {user.id} in competition {competition_id}")

    for entry in entries:
        competition.participants.remove(entry)
    db.flush()
    return competition
