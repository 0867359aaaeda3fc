"""Tests for bearer token handling."""

from datetime import datetime, timedelta, timezone

from slotplan.auth.jwt import create_access_token, decode_access_token, get_user_id_from_token


class TestTokens:
    def test_round_trip_subject(self):
        token = create_access_token("user-1")
        assert get_user_id_from_token(token) == "user-1"

    def test_expired_token_is_rejected(self):
        token = create_access_token("user-1", issued_at=datetime.now(timezone.utc) - timedelta(days=30))
        assert decode_access_token(token) is None

    def test_garbage_token_is_rejected(self):
        assert get_user_id_from_token("not-a-token") is None


class TestCurrentUserDependency:
    def test_requests_without_token_are_unauthorized(self, db_session):
        from fastapi.testclient import TestClient
        from slotplan.api.app import app
        from slotplan.database.database import get_db

        app.dependency_overrides[get_db] = lambda: db_session
        try:
            with TestClient(app) as client:
                assert client.get("/schedule/day").status_code == 401
        finally:
            app.dependency_overrides.clear()

    def test_valid_token_resolves_user(self, db_session, test_user_id):
        from fastapi.testclient import TestClient
        from slotplan.api.app import app
        from slotplan.database.database import get_db

        app.dependency_overrides[get_db] = lambda: db_session
        headers = {"Authorization": f"Bearer {create_access_token(test_user_id)}"}
        try:
            with TestClient(app) as client:
                response = client.get("/timetable/slots", headers=headers)
                assert response.status_code == 200
                assert response.json() == []
        finally:
            app.dependency_overrides.clear()
