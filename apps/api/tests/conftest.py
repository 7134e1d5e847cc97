"""
Shared fixtures for the club API suite.

Each test runs inside a transaction that is rolled back afterwards,
so nothing a test writes is visible to the next one.

Without DATABASE_URL the suite runs against a throwaway SQLite file; CI can
point it at Postgres instead.
"""
import os
import sys
import tempfile
from datetime import date
from pathlib import Path

import pytest
from cryptography.fernet import Fernet

# Settings are read once at import, so the environment must be in place first.
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite:///" + os.path.join(tempfile.mkdtemp(prefix="runclub-tests-"), "test.db"),
)
os.environ.setdefault("TOKEN_ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ.setdefault("ADMIN_PASSWORD", "test-admin-password")
os.environ.setdefault("STRAVA_PAGE_PAUSE_S", "0")

# apps/api for the application modules, tests/ for fixtures.club_fixtures.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

ADMIN_PASSWORD = os.environ["ADMIN_PASSWORD"]


@pytest.fixture(scope="session", autouse=True)
def _ensure_db_schema_is_at_head():
    """
    Bring the test database up to the latest Alembic migration.
    """
    try:
        from alembic import command
        from alembic.config import Config

        api_root = Path(__file__).resolve().parents[1]
        alembic_ini = api_root / "alembic.ini"

        cfg = Config(str(alembic_ini))
        # Alembic's script_location in alembic.ini is relative ("alembic")
        # so we set the working directory explicitly.
        cfg.set_main_option("script_location", str(api_root / "alembic"))
        # Keep pytest's log capture in charge of logging.
        cfg.attributes["configure_logger"] = False
        command.upgrade(cfg, "head")
    except Exception as e:
        # Tests should fail loudly if migrations cannot be applied.
        raise RuntimeError(f"Failed to upgrade DB to Alembic head: {e}") from e


from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from core.database import engine, get_db
from models import Challenge, ChallengeParticipant
from fixtures.club_fixtures import make_user


@pytest.fixture(scope="function")
def db_session():
    """
    Database session with transactional rollback.

    Application code may call session.commit() and session.rollback() freely:
    the session runs inside a savepoint of an outer transaction that is
    rolled back after the test.
    """
    connection = engine.connect()
    transaction = connection.begin()

    session = Session(bind=connection, join_transaction_mode="create_savepoint")

    yield session

    # Discards the savepoints and everything under them.
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def client(db_session):
    """TestClient sharing the test's session via dependency override."""
    from main import app

    def _override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db
    previous_password = app.state.admin_password
    app.state.admin_password = ADMIN_PASSWORD
    yield TestClient(app)
    app.state.admin_password = previous_password
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def admin_headers():
    return {"X-Admin-Password": ADMIN_PASSWORD}


@pytest.fixture
def runner(db_session):
    """Member with a linked Strava athlete and a stored access token."""
    user = make_user(db_session, "Kim Runner", strava_athlete_id=9001, access_token="fake_token")
    db_session.commit()
    return user


@pytest.fixture
def other_runner(db_session):
    user = make_user(db_session, "Lee Runner", strava_athlete_id=9002, nickname="Lee")
    db_session.commit()
    return user


@pytest.fixture
def challenge_pair(db_session, runner, other_runner):
    """A challenge both runners joined with a 100 km target."""
    challenge = Challenge(name="October 100", start_date=date(2025, 10, 1), end_date=date(2025, 10, 31))
    db_session.add(challenge)
    db_session.flush()
    db_session.add_all([
        ChallengeParticipant(challenge_id=challenge.id, user_id=runner.id, target_distance=100.0),
        ChallengeParticipant(challenge_id=challenge.id, user_id=other_runner.id, target_distance=100.0),
    ])
    db_session.commit()
    return challenge
