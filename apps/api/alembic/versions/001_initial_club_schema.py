"""initial club schema

Revision ID: 001
Revises:
Create Date: 2025-11-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'club_user',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('nickname', sa.Text(), nullable=True),
        sa.Column('strava_athlete_id', sa.BigInteger(), nullable=True),
        sa.Column('strava_access_token', sa.Text(), nullable=True),
        sa.Column('strava_refresh_token', sa.Text(), nullable=True),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_club_user_strava_athlete_id', 'club_user', ['strava_athlete_id'], unique=True)

    op.create_table(
        'activity',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('external_activity_id', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.Text(), nullable=True),
        sa.Column('type', sa.Text(), nullable=False),
        sa.Column('distance', sa.Float(), nullable=True),
        sa.Column('moving_time', sa.Integer(), nullable=True),
        sa.Column('elapsed_time', sa.Integer(), nullable=True),
        sa.Column('total_elevation_gain', sa.Float(), nullable=True),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('average_speed', sa.Float(), nullable=True),
        sa.Column('max_speed', sa.Float(), nullable=True),
        sa.Column('average_heartrate', sa.Float(), nullable=True),
        sa.Column('max_heartrate', sa.Float(), nullable=True),
        sa.Column('average_cadence', sa.Float(), nullable=True),
        sa.Column('average_temp', sa.Float(), nullable=True),
        sa.Column('calories', sa.Float(), nullable=True),
        sa.Column('suffer_score', sa.Float(), nullable=True),
        sa.Column('workout_type', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['club_user.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('external_activity_id'),
    )
    op.create_index('ix_activity_user_id', 'activity', ['user_id'])
    op.create_index('ix_activity_user_start', 'activity', ['user_id', 'start_date'])

    op.create_table(
        'competition',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'competition_participant',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('competition_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('category', sa.Text(), nullable=False),
        sa.Column('strava_athlete_id', sa.BigInteger(), nullable=True),
        sa.Column('result', sa.Text(), nullable=True),
        sa.Column('activity_id', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['competition_id'], ['competition.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_competition_participant_competition_id', 'competition_participant', ['competition_id'])

    op.create_table(
        'challenge',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('end_date >= start_date', name='ck_challenge_window'),
    )

    op.create_table(
        'challenge_participant',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('challenge_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('target_distance', sa.Float(), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['challenge_id'], ['challenge.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['club_user.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('challenge_id', 'user_id', name='uq_challenge_participant'),
    )
    op.create_index('ix_challenge_participant_challenge_id', 'challenge_participant', ['challenge_id'])
    op.create_index('ix_challenge_participant_user_id', 'challenge_participant', ['user_id'])

    op.create_table(
        'gift_quota',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('quota_date', sa.Date(), nullable=False),
        sa.Column('max_count', sa.Integer(), nullable=False),
        sa.Column('used_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['club_user.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'quota_date', name='uq_gift_quota_user_day'),
        sa.CheckConstraint('used_count <= max_count', name='ck_gift_quota_used_le_max'),
    )

    op.create_table(
        'gift_log',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('challenge_id', sa.Integer(), nullable=False),
        sa.Column('from_user_id', sa.Integer(), nullable=False),
        sa.Column('to_user_id', sa.Integer(), nullable=False),
        sa.Column('distance', sa.Float(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['challenge_id'], ['challenge.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['from_user_id'], ['club_user.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['to_user_id'], ['club_user.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_gift_log_challenge_id', 'gift_log', ['challenge_id'])


def downgrade() -> None:
    op.drop_index('ix_gift_log_challenge_id', table_name='gift_log')
    op.drop_table('gift_log')
    op.drop_table('gift_quota')
    op.drop_index('ix_challenge_participant_user_id', table_name='challenge_participant')
    op.drop_index('ix_challenge_participant_challenge_id', table_name='challenge_participant')
    op.drop_table('challenge_participant')
    op.drop_table('challenge')
    op.drop_index('ix_competition_participant_competition_id', table_name='competition_participant')
    op.drop_table('competition_participant')
    op.drop_table('competition')
    op.drop_index('ix_activity_user_start', table_name='activity')
    op.drop_index('ix_activity_user_id', table_name='activity')
    op.drop_table('activity')
    op.drop_index('ix_club_user_strava_athlete_id', table_name='club_user')
    op.drop_table('club_user')
