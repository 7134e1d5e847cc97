"""
Users API: members, nicknames, admin-guarded deletion and personal records.
"""
from models import Activity, ChallengeParticipant, User
from services.token_encryption import decrypt_token
from fixtures.club_fixtures import make_run, utc


def test_create_user_encrypts_tokens(client, db_session):
    resp = client.post(
        "/v1/users",
        json={"name": "Choi", "strava_athlete_id": 9100, "access_token": "acc", "refresh_token": "ref"},
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["display_name"] == "Choi"
    assert "access_token" not in body and "strava_access_token" not in body

    stored = db_session.query(User).filter(User.id == body["id"]).one()
    assert stored.strava_access_token != "acc"
    assert decrypt_token(stored.strava_access_token) == "acc"
    assert decrypt_token(stored.strava_refresh_token) == "ref"


def test_duplicate_strava_athlete(client, runner):
    resp = client.post("/v1/users", json={"name": "Imposter", "strava_athlete_id": runner.strava_athlete_id})
    assert resp.status_code == 409
    assert resp.json()["error_code"] == "CONFLICT"


def test_get_unknown_user(client):
    assert client.get("/v1/users/987654").status_code == 404


class TestNickname:
    def test_member_renames_self(self, client, runner):
        resp = client.put(f"/v1/users/{runner.id}/nickname", json={"acting_user_id": runner.id, "nickname": " Kimmy "})
        assert resp.status_code == 200
        assert resp.json()["display_name"] == "Kimmy"

    def test_renaming_someone_else_needs_admin(self, client, runner, other_runner):
        resp = client.put(
            f"/v1/users/{other_runner.id}/nickname",
            json={"acting_user_id": runner.id, "nickname": "Slowpoke"},
        )
        assert resp.status_code == 403

    def test_admin_renames_anyone(self, client, runner, other_runner, admin_headers):
        resp = client.put(
            f"/v1/users/{other_runner.id}/nickname",
            json={"acting_user_id": runner.id, "nickname": "Captain"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["nickname"] == "Captain"


class TestDelete:
    def test_requires_admin(self, client, runner):
        assert client.delete(f"/v1/users/{runner.id}").status_code == 403

    def test_disabled_without_configured_password(self, client, runner, admin_headers):
        client.app.state.admin_password = None
        assert client.delete(f"/v1/users/{runner.id}", headers=admin_headers).status_code == 403

    def test_removes_member_and_their_data(self, client, db_session, challenge_pair, runner, admin_headers):
        make_run(db_session, runner, "r1", utc(2025, 10, 2, 0, 0, 0))
        db_session.commit()

        resp = client.delete(f"/v1/users/{runner.id}", headers=admin_headers)

        assert resp.status_code == 200
        db_session.expire_all()
        assert db_session.query(User).filter(User.id == runner.id).count() == 0
        assert db_session.query(Activity).filter(Activity.external_activity_id == "r1").count() == 0
        assert (
            db_session.query(ChallengeParticipant)
            .filter(ChallengeParticipant.challenge_id == challenge_pair.id)
            .count()
        ) == 1


def test_personal_records(client, db_session, runner):
    make_run(db_session, runner, "5k-slow", utc(2025, 9, 1, 0, 0, 0), distance=5000, moving_time=1500)
    make_run(db_session, runner, "5k-fast", utc(2025, 9, 8, 0, 0, 0), distance=5020, moving_time=1380)
    make_run(db_session, runner, "5k-ride", utc(2025, 9, 9, 0, 0, 0), distance=5000, moving_time=600, type="Ride")

    records = client.get(f"/v1/users/{runner.id}/records").json()

    assert records["5K"]["external_activity_id"] == "5k-fast"
    assert records["10K"] is None
    assert set(records) == {"5K", "10K", "Half", "Full"}
