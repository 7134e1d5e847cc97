"""
Club members.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Request, status
from sqlalchemy.orm import Session

from core.auth import is_admin_request, require_admin
from core.database import get_db
from core.exceptions import ConflictError, ForbiddenError, NotFoundError
from models import User
from schemas import (
    ActivityResponse,
    GiftAvailabilityResponse,
    NicknameUpdate,
    PersonalRecordsResponse,
    UserCreate,
    UserResponse,
)
from services.gift_ledger import check_gift_availability
from services.leaderboard import get_personal_records
from services.token_encryption import encrypt_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/users", tags=["users"])


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFoundError("User", user_id)
    return user


@router.get("", response_model=List[UserResponse])
def list_users(db: Session = Depends(get_db)):
    return db.query(User).order_by(User.id).all()


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    if payload.strava_athlete_id is not None:
        existing = db.query(User).filter(User.strava_athlete_id == payload.strava_athlete_id).first()
        if existing:
            raise ConflictError(f"Strava athlete {payload.strava_athlete_id} is already linked to user {existing.id}")

    user = User(
        name=payload.name,
        nickname=payload.nickname,
        strava_athlete_id=payload.strava_athlete_id,
        strava_access_token=encrypt_token(payload.access_token),
        strava_refresh_token=encrypt_token(payload.refresh_token),
    )
    db.add(user)
    db.flush()
    logger.info("Created user %s", user.id)
    return user


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: int, db: Session = Depends(get_db)):
    return get_user_or_404(db, user_id)


@router.delete("/{user_id}", dependencies=[Depends(require_admin)])
def delete_user(user_id: int, db: Session = Depends(get_db)):
    """Remove a member together with their activities and challenge entries."""
    user = get_user_or_404(db, user_id)
    db.delete(user)
    db.flush()
    logger.info("Deleted user %s", user_id)
    return {"success": True, "message": f"User {user_id} deleted"}


@router.put("/{user_id}/nickname", response_model=UserResponse)
def update_nickname(
    user_id: int,
    payload: NicknameUpdate,
    request: Request,
    db: Session = Depends(get_db),
    x_admin_password: Optional[str] = Header(default=None),
):
    user = get_user_or_404(db, user_id)
    if payload.acting_user_id != user_id and not is_admin_request(request, x_admin_password):
        raise ForbiddenError("Changing another member's nickname requires the admin password")

    user.nickname = payload.nickname.strip()
    db.flush()
    return user


@router.get("/{user_id}/records", response_model=PersonalRecordsResponse)
def personal_records(user_id: int, db: Session = Depends(get_db)):
    get_user_or_404(db, user_id)
    records = get_personal_records(db, user_id)
    return {
        label: ActivityResponse.model_validate(activity) if activity else None
        for label, activity in records.items()
    }


@router.get("/{user_id}/gift-availability", response_model=GiftAvailabilityResponse)
def gift_availability(user_id: int, db: Session = Depends(get_db)):
    available = check_gift_availability(db, user_id)
    return GiftAvailabilityResponse(user_id=user_id, available=available)
