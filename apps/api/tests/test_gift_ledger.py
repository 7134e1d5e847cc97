"""
Gift ledger: target transfers, daily quota, admin adjustments.

Every rejected or failed operation must leave targets, log and quota usage
exactly as they were.
"""
import threading
from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

import services.gift_ledger as gift_ledger
from core.exceptions import (
    NotFoundError,
    QuotaExhaustedError,
    TransientStorageError,
    ValidationError,
)
from core.database import SessionLocal
from models import ChallengeParticipant, GiftLog, GiftQuota, User
from services.gift_ledger import (
    TargetAdjustment,
    admin_adjust_targets,
    check_gift_availability,
    ensure_daily_quota,
    give_gift,
)
from fixtures.club_fixtures import make_user

GIFT_DAY = date(2025, 10, 10)


@pytest.fixture
def quota_of(monkeypatch):
    """Fix the daily roll to a known value."""
    def _set(value):
        monkeypatch.setattr(gift_ledger, "_roll_daily_quota", lambda: value)
    return _set


def _target(db, challenge_id, user_id):
    return (
        db.query(ChallengeParticipant.target_distance)
        .filter(ChallengeParticipant.challenge_id == challenge_id, ChallengeParticipant.user_id == user_id)
        .scalar()
    )


def _quota(db, user_id, day=GIFT_DAY):
    return db.query(GiftQuota).filter(GiftQuota.user_id == user_id, GiftQuota.quota_date == day).one()


def _log_count(db, challenge_id):
    return db.query(GiftLog).filter(GiftLog.challenge_id == challenge_id).count()


class TestGiveGift:
    def test_moves_distance_between_targets(self, db_session, challenge_pair, runner, other_runner, quota_of):
        quota_of(2)

        entry = give_gift(db_session, runner.id, other_runner.id, 5.0, challenge_pair.id, day=GIFT_DAY)

        assert _target(db_session, challenge_pair.id, runner.id) == 95.0
        assert _target(db_session, challenge_pair.id, other_runner.id) == 105.0
        assert entry.id is not None
        assert entry.from_user_id == runner.id
        assert entry.to_user_id == other_runner.id
        assert entry.distance == 5.0
        assert _quota(db_session, runner.id).used_count == 1

    def test_total_target_is_conserved(self, db_session, challenge_pair, runner, other_runner, quota_of):
        quota_of(3)

        give_gift(db_session, runner.id, other_runner.id, 2.5, challenge_pair.id, day=GIFT_DAY)
        give_gift(db_session, other_runner.id, runner.id, 7.25, challenge_pair.id, day=GIFT_DAY)

        total = _target(db_session, challenge_pair.id, runner.id) + _target(db_session, challenge_pair.id, other_runner.id)
        assert total == pytest.approx(200.0)

    def test_target_may_go_negative(self, db_session, challenge_pair, runner, other_runner, quota_of):
        quota_of(1)

        give_gift(db_session, runner.id, other_runner.id, 150.0, challenge_pair.id, day=GIFT_DAY)

        assert _target(db_session, challenge_pair.id, runner.id) == -50.0
        assert _target(db_session, challenge_pair.id, other_runner.id) == 250.0

    def test_exhausted_quota_rejects_without_changes(self, db_session, challenge_pair, runner, other_runner, quota_of):
        quota_of(1)
        give_gift(db_session, runner.id, other_runner.id, 5.0, challenge_pair.id, day=GIFT_DAY)

        with pytest.raises(QuotaExhaustedError):
            give_gift(db_session, runner.id, other_runner.id, 5.0, challenge_pair.id, day=GIFT_DAY)

        assert _target(db_session, challenge_pair.id, runner.id) == 95.0
        assert _target(db_session, challenge_pair.id, other_runner.id) == 105.0
        assert _log_count(db_session, challenge_pair.id) == 1
        assert _quota(db_session, runner.id).used_count == 1

    def test_zero_quota_day_keeps_its_roll(self, db_session, challenge_pair, runner, other_runner, quota_of):
        quota_of(0)

        with pytest.raises(QuotaExhaustedError) as exc_info:
            give_gift(db_session, runner.id, other_runner.id, 1.0, challenge_pair.id, day=GIFT_DAY)

        assert exc_info.value.error_code == "QUOTA_EXHAUSTED"
        assert _target(db_session, challenge_pair.id, runner.id) == 100.0
        # The day's roll was stored even though the gift was refused.
        quota = _quota(db_session, runner.id)
        assert (quota.max_count, quota.used_count) == (0, 0)

    def test_quota_is_per_sender_and_per_day(self, db_session, challenge_pair, runner, other_runner, quota_of):
        quota_of(1)
        give_gift(db_session, runner.id, other_runner.id, 1.0, challenge_pair.id, day=GIFT_DAY)
        give_gift(db_session, other_runner.id, runner.id, 1.0, challenge_pair.id, day=GIFT_DAY)
        give_gift(db_session, runner.id, other_runner.id, 1.0, challenge_pair.id, day=date(2025, 10, 11))

        assert _log_count(db_session, challenge_pair.id) == 3

    @pytest.mark.parametrize("distance", [0, -3.0])
    def test_rejects_non_positive_distance(self, db_session, challenge_pair, runner, other_runner, distance):
        with pytest.raises(ValidationError):
            give_gift(db_session, runner.id, other_runner.id, distance, challenge_pair.id, day=GIFT_DAY)
        assert _log_count(db_session, challenge_pair.id) == 0

    def test_rejects_gift_to_self(self, db_session, challenge_pair, runner):
        with pytest.raises(ValidationError):
            give_gift(db_session, runner.id, runner.id, 1.0, challenge_pair.id, day=GIFT_DAY)

    def test_receiver_must_be_participant(self, db_session, challenge_pair, runner, quota_of):
        quota_of(3)
        outsider = make_user(db_session, "Outsider")
        db_session.commit()

        with pytest.raises(NotFoundError):
            give_gift(db_session, runner.id, outsider.id, 1.0, challenge_pair.id, day=GIFT_DAY)
        assert _target(db_session, challenge_pair.id, runner.id) == 100.0

    def test_unknown_challenge(self, db_session, runner, other_runner):
        with pytest.raises(NotFoundError):
            give_gift(db_session, runner.id, other_runner.id, 1.0, 987654, day=GIFT_DAY)

    def test_storage_failure_rolls_back_everything(
        self, db_session, challenge_pair, runner, other_runner, quota_of, monkeypatch
    ):
        quota_of(2)

        def _fail(db, quota):
            raise OperationalError("UPDATE gift_quota", {}, Exception("disk I/O error"))

        monkeypatch.setattr(gift_ledger, "_increment_quota_usage", _fail)

        with pytest.raises(TransientStorageError):
            give_gift(db_session, runner.id, other_runner.id, 5.0, challenge_pair.id, day=GIFT_DAY)

        assert _target(db_session, challenge_pair.id, runner.id) == 100.0
        assert _target(db_session, challenge_pair.id, other_runner.id) == 100.0
        assert _log_count(db_session, challenge_pair.id) == 0
        assert _quota(db_session, runner.id).used_count == 0


class TestDailyQuota:
    def test_roll_happens_once_per_day(self, db_session, runner, monkeypatch):
        rolls = iter([2, 3])
        monkeypatch.setattr(gift_ledger, "_roll_daily_quota", lambda: next(rolls))

        first = ensure_daily_quota(db_session, runner.id, GIFT_DAY)
        second = ensure_daily_quota(db_session, runner.id, GIFT_DAY)

        assert first.id == second.id
        assert second.max_count == 2

    def test_concurrent_creation_reuses_existing_row(self, db_session, runner, monkeypatch):
        db_session.add(GiftQuota(user_id=runner.id, quota_date=GIFT_DAY, max_count=1, used_count=0))
        db_session.commit()

        real_find = gift_ledger._find_quota
        calls = {"n": 0}

        def _stale_first_read(db, user_id, day, for_update=False):
            # The first lookup misses the row another request just inserted.
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return real_find(db, user_id, day, for_update=for_update)

        monkeypatch.setattr(gift_ledger, "_find_quota", _stale_first_read)
        monkeypatch.setattr(gift_ledger, "_roll_daily_quota", lambda: 3)

        quota = ensure_daily_quota(db_session, runner.id, GIFT_DAY)

        assert quota.max_count == 1
        assert db_session.query(GiftQuota).filter(GiftQuota.user_id == runner.id).count() == 1

    def test_storage_failure_on_first_check_is_transient(self, db_session, runner, monkeypatch):
        def _locked(db, user_id, day, for_update=False):
            raise OperationalError("SELECT gift_quota", {}, Exception("database is locked"))

        monkeypatch.setattr(gift_ledger, "_find_quota", _locked)

        with pytest.raises(TransientStorageError):
            check_gift_availability(db_session, runner.id, GIFT_DAY)

        assert db_session.query(GiftQuota).filter(GiftQuota.user_id == runner.id).count() == 0

    def test_concurrent_first_checks_share_one_row(self, quota_of):
        quota_of(2)
        workers = 8
        day = date(2031, 1, 1)

        setup = SessionLocal()
        user = make_user(setup, "Concurrent Runner")
        setup.commit()
        user_id = user.id
        setup.close()

        barrier = threading.Barrier(workers)
        results, transient, unexpected = [], [], []

        def _check():
            db = SessionLocal()
            try:
                barrier.wait()
                results.append(check_gift_availability(db, user_id, day))
            except TransientStorageError:
                transient.append(True)
            except Exception as e:
                unexpected.append(repr(e))
            finally:
                db.close()

        threads = [threading.Thread(target=_check) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        cleanup = SessionLocal()
        try:
            rows = cleanup.query(GiftQuota).filter(GiftQuota.user_id == user_id).count()
            cleanup.query(GiftQuota).filter(GiftQuota.user_id == user_id).delete()
            cleanup.query(User).filter(User.id == user_id).delete()
            cleanup.commit()
        finally:
            cleanup.close()

        assert unexpected == []
        assert len(results) + len(transient) == workers
        assert rows == 1
        assert results and all(results)

    def test_availability(self, db_session, runner, quota_of):
        quota_of(0)
        assert check_gift_availability(db_session, runner.id, GIFT_DAY) is False

        quota_of(2)
        assert check_gift_availability(db_session, runner.id, date(2025, 10, 11)) is True

    def test_availability_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            check_gift_availability(db_session, 987654, GIFT_DAY)

    def test_availability_turns_false_when_used_up(self, db_session, challenge_pair, runner, other_runner, quota_of):
        quota_of(1)
        assert check_gift_availability(db_session, runner.id, GIFT_DAY) is True

        give_gift(db_session, runner.id, other_runner.id, 1.0, challenge_pair.id, day=GIFT_DAY)

        assert check_gift_availability(db_session, runner.id, GIFT_DAY) is False


class TestAdminAdjust:
    @pytest.fixture
    def admin(self, db_session):
        user = make_user(db_session, "Club Admin")
        db_session.commit()
        return user

    def test_applies_signed_batch(self, db_session, challenge_pair, runner, other_runner, admin):
        entries = admin_adjust_targets(
            db_session,
            [TargetAdjustment(runner.id, 10.0), TargetAdjustment(other_runner.id, -5.0)],
            admin_user_id=admin.id,
            challenge_id=challenge_pair.id,
        )

        assert _target(db_session, challenge_pair.id, runner.id) == 110.0
        assert _target(db_session, challenge_pair.id, other_runner.id) == 95.0
        assert [(e.from_user_id, e.to_user_id, e.distance) for e in entries] == [
            (admin.id, runner.id, 10.0),
            (admin.id, other_runner.id, -5.0),
        ]

    def test_admin_batch_ignores_gift_quota(self, db_session, challenge_pair, runner, admin, quota_of):
        quota_of(0)
        admin_adjust_targets(db_session, [TargetAdjustment(runner.id, 1.0)], admin.id, challenge_pair.id)
        assert _target(db_session, challenge_pair.id, runner.id) == 101.0

    def test_one_bad_entry_cancels_the_batch(self, db_session, challenge_pair, runner, admin):
        with pytest.raises(NotFoundError):
            admin_adjust_targets(
                db_session,
                [TargetAdjustment(runner.id, 10.0), TargetAdjustment(987654, 5.0)],
                admin_user_id=admin.id,
                challenge_id=challenge_pair.id,
            )

        assert _target(db_session, challenge_pair.id, runner.id) == 100.0
        assert _log_count(db_session, challenge_pair.id) == 0

    def test_rejects_empty_batch(self, db_session, challenge_pair, admin):
        with pytest.raises(ValidationError):
            admin_adjust_targets(db_session, [], admin.id, challenge_pair.id)

    def test_rejects_zero_delta(self, db_session, challenge_pair, runner, admin):
        with pytest.raises(ValidationError):
            admin_adjust_targets(db_session, [TargetAdjustment(runner.id, 0.0)], admin.id, challenge_pair.id)

    def test_unknown_admin_user(self, db_session, challenge_pair, runner):
        with pytest.raises(NotFoundError):
            admin_adjust_targets(db_session, [TargetAdjustment(runner.id, 1.0)], 987654, challenge_pair.id)
        assert _target(db_session, challenge_pair.id, runner.id) == 100.0
