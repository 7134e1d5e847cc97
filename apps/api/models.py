from sqlalchemy import Column, Integer, BigInteger, Float, Date, DateTime, ForeignKey, Text, Index, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from core.database import Base


class User(Base):
    __tablename__ = "club_user"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    name = Column(Text, nullable=False)
    nickname = Column(Text, nullable=True)

    strava_athlete_id = Column(BigInteger, unique=True, nullable=True, index=True)
    strava_access_token = Column(Text, nullable=True)  # Encrypted
    strava_refresh_token = Column(Text, nullable=True)  # Encrypted
    last_sync_at = Column(DateTime(timezone=True), nullable=True)

    activities = relationship(
        "Activity",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def display_name(self) -> str:
        return self.nickname or self.name


class Activity(Base):
    """
    Normalized Strava activity summary.

    start_date is always stored in UTC. Calendar-day questions are answered in
    the club timezone (see services.club_calendar).
    """

    __tablename__ = "activity"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_activity_id = Column(Text, unique=True, nullable=False)  # Strava activity id, upsert key
    user_id = Column(Integer, ForeignKey("club_user.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=True)
    type = Column(Text, nullable=False, default="Run")
    distance = Column(Float, nullable=True)  # meters
    moving_time = Column(Integer, nullable=True)  # seconds
    elapsed_time = Column(Integer, nullable=True)  # seconds
    total_elevation_gain = Column(Float, nullable=True)  # meters
    start_date = Column(DateTime(timezone=True), nullable=False)
    average_speed = Column(Float, nullable=True)  # m/s
    max_speed = Column(Float, nullable=True)  # m/s

    # Optional sensor / derived metrics
    average_heartrate = Column(Float, nullable=True)
    max_heartrate = Column(Float, nullable=True)
    average_cadence = Column(Float, nullable=True)
    average_temp = Column(Float, nullable=True)
    calories = Column(Float, nullable=True)
    suffer_score = Column(Float, nullable=True)
    workout_type = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="activities")

    __table_args__ = (
        Index("ix_activity_user_start", "user_id", "start_date"),
    )

    @property
    def pace_seconds_per_km(self):
        if not self.distance or not self.moving_time:
            return None
        return self.moving_time / (self.distance / 1000.0)


class Competition(Base):
    __tablename__ = "competition"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False)
    name = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    participants = relationship(
        "CompetitionParticipant",
        back_populates="competition",
        order_by="CompetitionParticipant.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class CompetitionParticipant(Base):
    __tablename__ = "competition_participant"

    id = Column(Integer, primary_key=True, autoincrement=True)
    competition_id = Column(Integer, ForeignKey("competition.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    category = Column(Text, nullable=False)  # 5K | 10K | Half | 32K | Full
    strava_athlete_id = Column(BigInteger, nullable=True)
    result = Column(Text, nullable=True)  # "H:MM:SS" or "M:SS"
    activity_id = Column(Text, nullable=True)  # external id of the matched activity
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    competition = relationship("Competition", back_populates="participants")


class Challenge(Base):
    __tablename__ = "challenge"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)  # inclusive
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    participants = relationship(
        "ChallengeParticipant",
        back_populates="challenge",
        order_by="ChallengeParticipant.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_challenge_window"),
    )


class ChallengeParticipant(Base):
    __tablename__ = "challenge_participant"

    id = Column(Integer, primary_key=True, autoincrement=True)
    challenge_id = Column(Integer, ForeignKey("challenge.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("club_user.id", ondelete="CASCADE"), nullable=False, index=True)
    # Kilometers. Gifts and admin adjustments may push this below zero.
    target_distance = Column(Float, nullable=False)
    joined_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    challenge = relationship("Challenge", back_populates="participants")
    user = relationship("User", lazy="joined")

    __table_args__ = (
        UniqueConstraint("challenge_id", "user_id", name="uq_challenge_participant"),
    )


class GiftQuota(Base):
    """One row per (user, club-local day). max_count is rolled once, when the row is created."""

    __tablename__ = "gift_quota"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("club_user.id", ondelete="CASCADE"), nullable=False)
    quota_date = Column(Date, nullable=False)
    max_count = Column(Integer, nullable=False)
    used_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "quota_date", name="uq_gift_quota_user_day"),
        CheckConstraint("used_count <= max_count", name="ck_gift_quota_used_le_max"),
    )


class GiftLog(Base):
    """Append-only audit trail of target-distance transfers and admin adjustments."""

    __tablename__ = "gift_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    challenge_id = Column(Integer, ForeignKey("challenge.id", ondelete="CASCADE"), nullable=False, index=True)
    from_user_id = Column(Integer, ForeignKey("club_user.id", ondelete="CASCADE"), nullable=False)
    to_user_id = Column(Integer, ForeignKey("club_user.id", ondelete="CASCADE"), nullable=False)
    distance = Column(Float, nullable=False)  # km, signed for admin adjustments
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
