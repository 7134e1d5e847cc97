"""
Challenges API Router

Head-to-head distance challenges: join with a target, watch progress, trade
target distance through gifts.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from core.auth import require_admin
from core.database import get_db
from core.exceptions import NotFoundError
from models import Activity, Challenge, ChallengeParticipant, GiftLog, User
from schemas import (
    ActivityResponse,
    AdminAdjustRequest,
    ChallengeCreate,
    ChallengeJoinRequest,
    ChallengeParticipantResponse,
    ChallengeProgressRow,
    ChallengeResponse,
    GiftLogResponse,
    GiftRequest,
)
from services.challenge_progress import challenge_activities_query, get_challenge_progress
from services.gift_ledger import TargetAdjustment, admin_adjust_targets, give_gift

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/challenges", tags=["challenges"])


def _get_challenge(db: Session, challenge_id: int) -> Challenge:
    challenge = db.query(Challenge).filter(Challenge.id == challenge_id).first()
    if challenge is None:
        raise NotFoundError("Challenge", challenge_id)
    return challenge


@router.get("", response_model=List[ChallengeResponse])
def list_challenges(db: Session = Depends(get_db)):
    """Newest challenge first."""
    return db.query(Challenge).order_by(Challenge.created_at.desc(), Challenge.id.desc()).all()


@router.post("", response_model=ChallengeResponse, status_code=status.HTTP_201_CREATED)
def create_challenge(payload: ChallengeCreate, db: Session = Depends(get_db)):
    challenge = Challenge(name=payload.name, start_date=payload.start_date, end_date=payload.end_date)
    db.add(challenge)
    db.flush()
    logger.info("Created challenge %s (%s to %s)", challenge.id, challenge.start_date, challenge.end_date)
    return challenge


@router.get("/{challenge_id}", response_model=ChallengeResponse)
def get_challenge(challenge_id: int, db: Session = Depends(get_db)):
    return _get_challenge(db, challenge_id)


@router.post("/{challenge_id}/join", response_model=ChallengeParticipantResponse)
def join_challenge(challenge_id: int, payload: ChallengeJoinRequest, db: Session = Depends(get_db)):
    """Join, or reset the target if already joined."""
    _get_challenge(db, challenge_id)
    if db.query(User.id).filter(User.id == payload.user_id).first() is None:
        raise NotFoundError("User", payload.user_id)

    participant = (
        db.query(ChallengeParticipant)
        .filter(ChallengeParticipant.challenge_id == challenge_id, ChallengeParticipant.user_id == payload.user_id)
        .first()
    )
    if participant is None:
        participant = ChallengeParticipant(
            challenge_id=challenge_id,
            user_id=payload.user_id,
            target_distance=payload.target_distance,
        )
        db.add(participant)
    else:
        participant.target_distance = payload.target_distance
    db.flush()
    return participant


@router.get("/{challenge_id}/progress", response_model=List[ChallengeProgressRow])
def challenge_progress(challenge_id: int, db: Session = Depends(get_db)):
    """Participants ranked by progress, best first. Unknown challenge gives []."""
    rows = get_challenge_progress(db, challenge_id)
    rows.sort(key=lambda r: r.progress_percent, reverse=True)
    return [r.to_dict() for r in rows]


@router.get("/{challenge_id}/user/{user_id}/activities", response_model=List[ActivityResponse])
def participant_activities(challenge_id: int, user_id: int, db: Session = Depends(get_db)):
    challenge = _get_challenge(db, challenge_id)
    return (
        challenge_activities_query(db, challenge, user_id)
        .order_by(Activity.start_date.desc(), Activity.id.desc())
        .all()
    )


@router.post("/{challenge_id}/gifts", response_model=GiftLogResponse, status_code=status.HTTP_201_CREATED)
def send_gift(challenge_id: int, payload: GiftRequest, db: Session = Depends(get_db)):
    return give_gift(
        db,
        from_user_id=payload.from_user_id,
        to_user_id=payload.to_user_id,
        distance_km=payload.distance,
        challenge_id=challenge_id,
    )


@router.post(
    "/{challenge_id}/adjustments",
    response_model=List[GiftLogResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def adjust_targets(challenge_id: int, payload: AdminAdjustRequest, db: Session = Depends(get_db)):
    return admin_adjust_targets(
        db,
        [TargetAdjustment(user_id=a.user_id, distance=a.distance) for a in payload.adjustments],
        admin_user_id=payload.admin_user_id,
        challenge_id=challenge_id,
    )


@router.get("/{challenge_id}/gifts", response_model=List[GiftLogResponse])
def gift_log(challenge_id: int, db: Session = Depends(get_db)):
    _get_challenge(db, challenge_id)
    return (
        db.query(GiftLog)
        .filter(GiftLog.challenge_id == challenge_id)
        .order_by(GiftLog.created_at.desc(), GiftLog.id.desc())
        .all()
    )
