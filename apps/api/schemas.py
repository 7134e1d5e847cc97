from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import datetime, date
from typing import Optional, List, Dict, Literal


CompetitionCategory = Literal["5K", "10K", "Half", "32K", "Full"]


# --- Users ---

class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    nickname: Optional[str] = None
    strava_athlete_id: Optional[int] = None
    # Issued by the OAuth collaborator; stored encrypted
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


class UserResponse(BaseModel):
    id: int
    name: str
    nickname: Optional[str] = None
    display_name: str
    strava_athlete_id: Optional[int] = None
    created_at: Optional[datetime] = None
    last_sync_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class NicknameUpdate(BaseModel):
    """Users rename themselves; renaming someone else needs the admin password."""
    acting_user_id: int
    nickname: str = Field(min_length=1, max_length=50)


# --- Activities ---

class ActivityCreate(BaseModel):
    """Manual activity entry. Re-posting the same external id updates it."""
    user_id: int
    external_activity_id: Optional[str] = None
    name: str = "Run"
    distance: float = Field(gt=0)  # meters
    moving_time: int = Field(gt=0)  # seconds
    start_date: Optional[datetime] = None


class ActivityResponse(BaseModel):
    id: int
    external_activity_id: str
    user_id: int
    name: Optional[str] = None
    type: str
    distance: Optional[float] = None  # meters
    moving_time: Optional[int] = None  # seconds
    elapsed_time: Optional[int] = None
    total_elevation_gain: Optional[float] = None
    start_date: datetime
    average_speed: Optional[float] = None
    max_speed: Optional[float] = None
    average_heartrate: Optional[float] = None
    max_heartrate: Optional[float] = None
    average_cadence: Optional[float] = None
    average_temp: Optional[float] = None
    calories: Optional[float] = None
    suffer_score: Optional[float] = None
    workout_type: Optional[int] = None
    pace_seconds_per_km: Optional[float] = None

    model_config = ConfigDict(from_attributes=True)


class RecentActivityResponse(ActivityResponse):
    user_name: str


class StatsRow(BaseModel):
    id: int
    name: str
    activity_count: int
    total_distance: Optional[float] = None
    total_time: Optional[int] = None
    total_elevation: Optional[float] = None
    avg_heartrate: Optional[float] = None
    avg_cadence: Optional[float] = None


PersonalRecordsResponse = Dict[str, Optional[ActivityResponse]]


# --- Sync ---

class SyncRequest(BaseModel):
    user_id: int


class SyncResponse(BaseModel):
    success: bool = True
    message: str
    user_id: int
    window_days: int
    total_activities: int
    synced_count: int
    created: int
    updated: int


# --- Competitions ---

class CompetitionParticipantIn(BaseModel):
    name: str = Field(min_length=1)
    category: CompetitionCategory
    strava_athlete_id: Optional[int] = None


class CompetitionParticipantResponse(BaseModel):
    id: int
    name: str
    category: str
    strava_athlete_id: Optional[int] = None
    result: Optional[str] = None
    activity_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CompetitionCreate(BaseModel):
    date: date
    name: str = Field(min_length=1)
    participants: List[CompetitionParticipantIn] = Field(default_factory=list)


class CompetitionResponse(BaseModel):
    id: int
    date: date
    name: str
    participants: List[CompetitionParticipantResponse] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class CompetitionJoinRequest(BaseModel):
    user_id: int
    category: CompetitionCategory


class CompetitionLeaveRequest(BaseModel):
    user_id: int


# --- Challenges ---

class ChallengeCreate(BaseModel):
    name: str = Field(min_length=1)
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _window_is_ordered(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ChallengeResponse(BaseModel):
    id: int
    name: str
    start_date: date
    end_date: date

    model_config = ConfigDict(from_attributes=True)


class ChallengeJoinRequest(BaseModel):
    user_id: int
    target_distance: float = Field(gt=0)  # km


class ChallengeParticipantResponse(BaseModel):
    challenge_id: int
    user_id: int
    target_distance: float

    model_config = ConfigDict(from_attributes=True)


class ChallengeProgressRow(BaseModel):
    user_id: int
    name: str
    target_km: float
    achieved_km: float
    activity_count: int
    progress_percent: int


class GiftAvailabilityResponse(BaseModel):
    user_id: int
    available: bool


class GiftRequest(BaseModel):
    from_user_id: int
    to_user_id: int
    distance: float = Field(gt=0)  # km


class TargetAdjustmentIn(BaseModel):
    user_id: int
    distance: float  # signed km


class AdminAdjustRequest(BaseModel):
    admin_user_id: int
    adjustments: List[TargetAdjustmentIn] = Field(min_length=1)


class GiftLogResponse(BaseModel):
    id: int
    challenge_id: int
    from_user_id: int
    to_user_id: int
    distance: float
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
