import asyncio

from fastapi.testclient import TestClient

from phishnet_app.database.connection import utcnow
from phishnet_app.models.analytics import Analytics, PhishingDomainStat
from phishnet_app.models.scan_history import URLCheckHistory
from phishnet_app.services.scan_service import ScanService, extract_urls

UNSAFE_URL = "http://192.168.1.1/verify-account-now"


class TestUrlScan:
    """POST /api/scan/url"""

    def test_anonymous_safe_scan(self, client: TestClient, queue, db_session):
        response = client.post("/api/scan/url", json={"url": "  HTTPS://Example.com/  "})
        assert response.status_code == 200

        body = response.json()
        assert body["message"] == "URL is safe"
        data = body["data"]
        assert data["url"] == "https://example.com/"
        assert data["domain"] == "example.com"
        assert data["isSafe"] is True
        assert data["threatLevel"] == "safe"
        assert data["suspicionScore"] == 0
        assert data["confidence"] == 100
        assert data["checkId"] is None

        # Nothing persisted, one analytics event published
        assert db_session.query(URLCheckHistory).count() == 0
        assert asyncio.run(queue.get_queue_length("analytics_events")) == 1

    def test_authenticated_unsafe_scan(self, client: TestClient, auth_headers, user, db_session):
        response = client.post("/api/scan/url", json={"url": UNSAFE_URL}, headers=auth_headers)
        assert response.status_code == 200

        data = response.json()["data"]
        assert data["isSafe"] is False
        assert data["threatType"] == "suspicious"
        assert data["threatLevel"] == "medium"
        assert data["suspicionScore"] == 45
        assert data["confidence"] == 55
        assert data["checkId"] is not None

        record = db_session.get(URLCheckHistory, data["checkId"])
        assert record.user_id == user.id
        assert record.domain == "192.168.1.1"
        assert record.user_warned is True
        assert record.warning_type == "banner"
        assert record.detection_source == "database"

        db_session.refresh(user)
        assert user.unsafe_urls_detected == 1
        assert user.threat_urls_detected == 1
        assert user.phishing_urls_detected == 0
        assert user.total_protection_warnings == 1

    def test_safe_scan_updates_safe_counter(self, client: TestClient, auth_headers, user, db_session):
        client.post("/api/scan/url", json={"url": "https://example.com/"}, headers=auth_headers)

        db_session.refresh(user)
        assert user.safe_websites_visited == 1
        assert user.total_urls_checked == 1
        assert user.protection_ratio == 0.0

    def test_missing_url(self, client: TestClient):
        response = client.post("/api/scan/url", json={})
        assert response.status_code == 400
        assert response.json()["message"] == "URL is required and must be a string"

    def test_non_string_url(self, client: TestClient):
        response = client.post("/api/scan/url", json={"url": 42})
        assert response.status_code == 400

    def test_invalid_url(self, client: TestClient):
        response = client.post("/api/scan/url", json={"url": "not a url"})
        assert response.status_code == 400
        assert response.json()["message"].startswith("Invalid URL format")

    def test_bad_token_is_treated_as_anonymous(self, client: TestClient, db_session):
        response = client.post(
            "/api/scan/url",
            json={"url": UNSAFE_URL},
            headers={"Authorization": "Bearer nope"},
        )
        assert response.status_code == 200
        assert response.json()["data"]["checkId"] is None

    def test_scan_feeds_platform_analytics(self, client: TestClient, drain_analytics, db_session):
        client.post("/api/scan/url", json={"url": UNSAFE_URL})
        client.post("/api/scan/url", json={"url": UNSAFE_URL})
        client.post("/api/scan/url", json={"url": "https://example.com/"})
        assert drain_analytics() == 3

        analytics = db_session.query(Analytics).one()
        assert analytics.total_safe_websites_visited == 1
        assert analytics.total_unsafe_urls_detected == 2
        assert analytics.total_protection_warnings == 2
        assert analytics.total_urls_checked == 3
        assert analytics.platform_threat_detection_rate == 66.67

        domain = db_session.query(PhishingDomainStat).one()
        assert domain.domain == "192.168.1.1"
        assert domain.detection_count == 2


class TestEmailScan:
    """POST /api/scan/email"""

    def test_clean_email(self, client: TestClient):
        response = client.post("/api/scan/email", json={
            "senderEmail": "jane@example.com",
            "emailContent": "Lunch tomorrow? Menu at https://example.com/ and https://example.com/",
            "subject": "Lunch",
        })
        assert response.status_code == 200

        data = response.json()["data"]
        assert data["isSafe"] is True
        assert data["senderDomain"] == "example.com"
        assert data["isSuspiciousSender"] is False
        assert data["urlsFound"] == 1
        assert data["recordId"] is None

    def test_suspicious_sender(self, client: TestClient, auth_headers, user, db_session):
        response = client.post("/api/scan/email", json={
            "senderEmail": "alerts@security-update.example.com",
            "emailContent": "Please review your account.",
        }, headers=auth_headers)
        data = response.json()["data"]
        assert data["isSafe"] is False
        assert data["isSuspiciousSender"] is True
        assert response.json()["message"] == "Email contains suspicious elements"

        record = db_session.get(URLCheckHistory, data["recordId"])
        assert record.scan_type == "email"
        assert record.threat_type == "phishing"
        assert record.threat_level == "high"
        assert record.detection_source == "machine_learning"
        assert record.confidence == 70

        db_session.refresh(user)
        assert user.phishing_urls_detected == 1
        assert user.total_protection_warnings == 1

    def test_unsafe_link_from_normal_sender(self, client: TestClient, auth_headers, db_session):
        response = client.post("/api/scan/email", json={
            "senderEmail": "jane@example.com",
            "emailContent": f"Click here: {UNSAFE_URL}",
        }, headers=auth_headers)
        data = response.json()["data"]
        assert data["isSafe"] is False
        assert data["urlChecks"][0]["suspicionScore"] == 45

        record = db_session.get(URLCheckHistory, data["recordId"])
        assert record.threat_level == "medium"

    def test_required_fields(self, client: TestClient):
        response = client.post("/api/scan/email", json={"senderEmail": "jane@example.com"})
        assert response.status_code == 400
        assert response.json()["message"] == "Sender email and email content are required"

    def test_sender_without_at_sign(self, client: TestClient):
        response = client.post("/api/scan/email", json={"senderEmail": "jane", "emailContent": "hi"})
        assert response.status_code == 400

    def test_extract_urls_dedupes_in_order(self):
        text = "a https://b.com/x then http://c.org and https://b.com/x again"
        assert extract_urls(text, None, "see https://d.net") == [
            "https://b.com/x", "http://c.org", "https://d.net",
        ]


class TestBatchScan:
    """POST /api/scan/batch"""

    def test_requires_authentication(self, client: TestClient):
        response = client.post("/api/scan/batch", json={"urls": ["https://example.com"]})
        assert response.status_code == 401

    def test_batch(self, client: TestClient, auth_headers, user, db_session, queue):
        response = client.post("/api/scan/batch", json={
            "urls": ["https://example.com/", UNSAFE_URL, "not a url", 7],
        }, headers=auth_headers)
        assert response.status_code == 200

        data = response.json()["data"]
        assert data["total"] == 4
        assert data["safeCount"] == 1
        assert data["unsafeCount"] == 1
        errors = [item for item in data["results"] if item.get("error")]
        assert len(errors) == 2

        assert db_session.query(URLCheckHistory).filter_by(user_id=user.id).count() == 2
        assert asyncio.run(queue.get_queue_length("analytics_events")) == 2

        db_session.refresh(user)
        assert user.safe_websites_visited == 1
        assert user.unsafe_urls_detected == 1

    def test_empty_batch(self, client: TestClient, auth_headers):
        response = client.post("/api/scan/batch", json={"urls": []}, headers=auth_headers)
        assert response.status_code == 400

    def test_batch_limit(self, client: TestClient, auth_headers):
        urls = [f"https://example.com/{n}" for n in range(101)]
        response = client.post("/api/scan/batch", json={"urls": urls}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Maximum 100 URLs can be checked at once"


class TestHistoryRetention:
    def test_purge_expired_history(self, db_session, user):
        from datetime import timedelta

        old = URLCheckHistory(
            user_id=user.id, url="https://old.com/", domain="old.com",
            created_at=utcnow() - timedelta(days=400),
        )
        recent = URLCheckHistory(user_id=user.id, url="https://new.com/", domain="new.com")
        db_session.add_all([old, recent])
        db_session.commit()

        assert ScanService(db_session).purge_expired_history() == 1
        assert [r.domain for r in db_session.query(URLCheckHistory).all()] == ["new.com"]
