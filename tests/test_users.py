from datetime import timedelta

from fastapi.testclient import TestClient

from conftest import TEST_PASSWORD, bearer, create_user
from phishnet_app.database.connection import utcnow
from phishnet_app.models.scan_history import URLCheckHistory
from phishnet_app.models.user import AuthToken, User
from phishnet_app.services.user_service import UserService


def add_record(db_session, user, domain="example.com", is_safe=True, threat_type="safe", **fields):
    record = URLCheckHistory(
        user_id=user.id,
        url=f"https://{domain}/",
        domain=domain,
        is_safe=is_safe,
        threat_type=threat_type,
        threat_level="safe" if is_safe else "medium",
        user_warned=not is_safe,
        **fields,
    )
    db_session.add(record)
    db_session.commit()
    return record


class TestProfile:
    """Profile read and update"""

    def test_requires_authentication(self, client: TestClient):
        response = client.get("/api/users/profile")
        assert response.status_code == 401

    def test_update_profile(self, client: TestClient, auth_headers):
        response = client.put("/api/users/profile", json={"firstName": "Janet", "email": "Janet@Example.com"},
                              headers=auth_headers)
        assert response.status_code == 200

        user = response.json()["data"]["user"]
        assert user["firstName"] == "Janet"
        assert user["lastName"] == "Doe"
        assert user["email"] == "janet@example.com"

    def test_short_name(self, client: TestClient, auth_headers):
        response = client.put("/api/users/profile", json={"lastName": "D"}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Last name must be at least 2 characters"

    def test_email_taken(self, client: TestClient, auth_headers, db_session):
        create_user(db_session, email="taken@example.com")
        response = client.put("/api/users/profile", json={"email": "taken@example.com"}, headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["message"] == "Email already in use"

    def test_email_claimed_after_check(self, client: TestClient, auth_headers, db_session, monkeypatch):
        """A duplicate that slips past the lookup is still a conflict"""
        create_user(db_session, email="taken@example.com")
        monkeypatch.setattr(UserService, "_email_taken", lambda self, email, user_id: False)

        response = client.put("/api/users/profile", json={"email": "taken@example.com"}, headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["message"] == "Email already in use"


class TestPassword:
    """PUT /api/users/password"""

    def test_change_password_revokes_tokens(self, client: TestClient, auth_headers, user, db_session):
        response = client.put("/api/users/password", json={
            "currentPassword": TEST_PASSWORD,
            "newPassword": "Another@Pass2",
            "confirmPassword": "Another@Pass2",
        }, headers=auth_headers)
        assert response.status_code == 200
        assert db_session.query(AuthToken).filter_by(user_id=user.id).count() == 0

        assert client.get("/api/users/profile", headers=auth_headers).status_code == 401
        login = client.post("/api/auth/login", json={"email": user.email, "password": "Another@Pass2"})
        assert login.status_code == 200

    def test_wrong_current_password(self, client: TestClient, auth_headers):
        response = client.put("/api/users/password", json={
            "currentPassword": "Wrong@Pass1",
            "newPassword": "Another@Pass2",
            "confirmPassword": "Another@Pass2",
        }, headers=auth_headers)
        assert response.status_code == 401
        assert response.json()["message"] == "Current password is incorrect"

    def test_mismatch(self, client: TestClient, auth_headers):
        response = client.put("/api/users/password", json={
            "currentPassword": TEST_PASSWORD,
            "newPassword": "Another@Pass2",
            "confirmPassword": "Another@Pass3",
        }, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "New passwords do not match"

    def test_same_as_old(self, client: TestClient, auth_headers):
        response = client.put("/api/users/password", json={
            "currentPassword": TEST_PASSWORD,
            "newPassword": TEST_PASSWORD,
            "confirmPassword": TEST_PASSWORD,
        }, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "New password must be different from current password"

    def test_weak_new_password(self, client: TestClient, auth_headers):
        response = client.put("/api/users/password", json={
            "currentPassword": TEST_PASSWORD,
            "newPassword": "weak",
            "confirmPassword": "weak",
        }, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["errors"]


class TestPreferences:
    def test_partial_update(self, client: TestClient, auth_headers):
        response = client.put("/api/users/preferences", json={"twoFactorEnabled": True}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["preferences"] == {
            "emailNotifications": True,
            "weeklyReportEmail": True,
            "twoFactorEnabled": True,
        }


class TestHistory:
    """GET /api/users/history"""

    def test_pagination_newest_first(self, client: TestClient, auth_headers, user, db_session):
        now = utcnow()
        for n in range(5):
            add_record(db_session, user, domain=f"site{n}.com", checked_at=now - timedelta(minutes=5 - n))

        response = client.get("/api/users/history?page=1&limit=2", headers=auth_headers)
        assert response.status_code == 200

        data = response.json()["data"]
        assert [item["domain"] for item in data["history"]] == ["site4.com", "site3.com"]
        assert data["pagination"] == {"total": 5, "page": 1, "limit": 2, "pages": 3}

    def test_filters(self, client: TestClient, auth_headers, user, db_session):
        add_record(db_session, user, domain="ok.com")
        add_record(db_session, user, domain="bad.xyz", is_safe=False, threat_type="suspicious")
        add_record(db_session, user, domain="phish.xyz", is_safe=False, threat_type="phishing")

        unsafe = client.get("/api/users/history?isSafe=false", headers=auth_headers).json()["data"]
        assert unsafe["pagination"]["total"] == 2

        phishing = client.get("/api/users/history?threatType=phishing", headers=auth_headers).json()["data"]
        assert [item["domain"] for item in phishing["history"]] == ["phish.xyz"]

    def test_only_own_records(self, client: TestClient, auth_headers, db_session):
        other = create_user(db_session, email="other@example.com")
        add_record(db_session, other)

        data = client.get("/api/users/history", headers=auth_headers).json()["data"]
        assert data["history"] == []
        assert data["pagination"]["pages"] == 0


class TestStats:
    def test_stats(self, client: TestClient, auth_headers, user, db_session):
        add_record(db_session, user)
        add_record(db_session, user, domain="phish.xyz", is_safe=False, threat_type="phishing")
        add_record(db_session, user, domain="mal.xyz", is_safe=False, threat_type="malware")

        data = client.get("/api/users/stats", headers=auth_headers).json()["data"]
        assert data["stats"] == {
            "totalChecks": 3,
            "safeUrls": 1,
            "unsafeUrls": 2,
            "phishingDetected": 1,
            "malwareDetected": 1,
            "warningsTriggered": 2,
        }
        assert data["userMetrics"]["totalUrlsChecked"] == 0

    def test_empty_stats(self, client: TestClient, auth_headers):
        data = client.get("/api/users/stats", headers=auth_headers).json()["data"]
        assert data["stats"]["totalChecks"] == 0


class TestActivity:
    def test_recent_window(self, client: TestClient, auth_headers, user, db_session):
        add_record(db_session, user, domain="recent.com")
        add_record(db_session, user, domain="stale.com", checked_at=utcnow() - timedelta(days=10))

        data = client.get("/api/users/activity?days=7", headers=auth_headers).json()["data"]
        assert data["days"] == 7
        assert [item["domain"] for item in data["activity"]] == ["recent.com"]


class TestDeleteAccount:
    def test_password_required(self, client: TestClient, auth_headers):
        response = client.request("DELETE", "/api/users/account", json={}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Password is required to delete account"

    def test_wrong_password(self, client: TestClient, auth_headers):
        response = client.request("DELETE", "/api/users/account", json={"password": "Wrong@Pass1"},
                                  headers=auth_headers)
        assert response.status_code == 401

    def test_delete(self, client: TestClient, user, db_session):
        headers = bearer(db_session, user)
        add_record(db_session, user)
        user_id = user.id

        response = client.request("DELETE", "/api/users/account", json={"password": TEST_PASSWORD},
                                  headers=headers)
        assert response.status_code == 200

        assert db_session.get(User, user_id) is None
        assert db_session.query(URLCheckHistory).count() == 0
        assert db_session.query(AuthToken).count() == 0
        assert client.get("/api/users/profile", headers=headers).status_code == 401
