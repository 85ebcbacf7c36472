import asyncio
import time
from datetime import timedelta

import pytest

from fastapi.testclient import TestClient

from conftest import bearer, create_user
from main import app
from phishnet_app.analytics_processor.analytics_worker import AnalyticsWorker
from phishnet_app.config import settings
from phishnet_app.database.connection import get_db, utcnow
from phishnet_app.models.analytics import AnalyticsDailyStat, PhishingDomainStat
from phishnet_app.models.scan_history import URLCheckHistory
from phishnet_app.queue.models import AnalyticsEvent, EventType
from phishnet_app.services.analytics_service import AnalyticsService

UNSAFE_URL = "http://192.168.1.1/verify-account-now"

ADMIN_ROUTES = [
    "/api/analytics/trends",
    "/api/analytics/summary",
    "/api/analytics/top-domains",
    "/api/analytics/dangerous-today",
    "/api/analytics/rankings",
    "/api/analytics/threat-distribution",
    "/api/analytics/recent-activity",
    "/api/analytics/overview",
]


@pytest.fixture
def live_client(db_session, queue, cache, monkeypatch):
    """A client whose app runs the analytics worker in the background."""
    monkeypatch.setattr(settings, "analytics_worker_in_process", True)
    monkeypatch.setattr(settings, "queue_worker_interval", 0.05)

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def scan_event(domain="evil.xyz", is_safe=False, threat_type="suspicious", scan_type="url", **fields):
    return AnalyticsEvent(
        event_type=EventType.SCAN,
        scan_type=scan_type,
        domain=domain,
        is_safe=is_safe,
        threat_type=threat_type,
        threat_level="safe" if is_safe else "medium",
        **fields,
    )


class TestEventApplication:
    """Folding queued events into the platform aggregate"""

    def test_phishing_and_unsafe_totals(self, db_session):
        service = AnalyticsService(db_session)
        service.apply_events([
            scan_event(threat_type="phishing"),
            scan_event(),
            scan_event(domain="example.com", is_safe=True, threat_type="safe"),
        ])

        analytics = service.get_or_create()
        assert analytics.total_phishing_urls_detected == 1
        assert analytics.total_unsafe_urls_detected == 1
        assert analytics.total_safe_websites_visited == 1
        assert analytics.total_urls_checked == 3
        assert analytics.total_protection_warnings == 2

        today = db_session.query(AnalyticsDailyStat).one()
        assert today.urls_checked == 3
        assert today.threats_detected == 2

    def test_email_scans_do_not_rank_sender_domains(self, db_session):
        service = AnalyticsService(db_session)
        service.apply_events([scan_event(domain="mailer.example.com", scan_type="email", threat_type="phishing")])
        assert db_session.query(PhishingDomainStat).count() == 0

    def test_top_domains_are_capped(self, db_session, monkeypatch):
        from phishnet_app.config import settings
        monkeypatch.setattr(settings, "top_domains_limit", 3)

        service = AnalyticsService(db_session)
        events = [scan_event(domain="hot.xyz") for _ in range(3)]
        events += [scan_event(domain=f"cold{n}.xyz") for n in range(5)]
        service.apply_events(events)

        domains = service.top_phishing_domains(10)
        assert len(domains) == 3
        assert domains[0].domain == "hot.xyz"
        assert domains[0].detection_count == 3

    def test_old_daily_stats_are_dropped(self, db_session):
        db_session.add(AnalyticsDailyStat(date=utcnow().date() - timedelta(days=120), urls_checked=9))
        db_session.commit()

        AnalyticsService(db_session).apply_events([scan_event()])
        assert [stat.date for stat in db_session.query(AnalyticsDailyStat).all()] == [utcnow().date()]

    def test_worker_drains_queue(self, db_session, queue, drain_analytics):
        for _ in range(3):
            asyncio.run(queue.publish("analytics_events", scan_event()))
        asyncio.run(queue.publish("analytics_events", AnalyticsEvent(event_type=EventType.USER_REGISTERED)))

        assert drain_analytics() == 4
        assert asyncio.run(queue.get_queue_length("analytics_events")) == 0

        analytics = AnalyticsService(db_session).get_or_create()
        assert analytics.total_users_onboarded == 1
        assert analytics.total_unsafe_urls_detected == 3

    def test_failed_batch_is_not_acknowledged(self, db_session, queue, monkeypatch):
        acked = []

        async def record_ack(queue_name, message_ids):
            acked.extend(message_ids)
            return True

        def broken_session():
            raise RuntimeError("database down")

        monkeypatch.setattr(queue, "ack", record_ack)
        worker = AnalyticsWorker(queue=queue, db_session_factory=broken_session)
        event = scan_event(message_id="1-0")

        with pytest.raises(RuntimeError):
            asyncio.run(worker.handle_batch([event]))
        assert acked == []


class TestDashboard:
    def test_dashboard(self, client: TestClient, auth_headers, drain_analytics):
        client.post("/api/scan/url", json={"url": UNSAFE_URL}, headers=auth_headers)
        drain_analytics()

        response = client.get("/api/analytics/dashboard", headers=auth_headers)
        assert response.status_code == 200

        data = response.json()["data"]
        platform = data["platformMetrics"]
        assert platform["overview"]["totalUrlsChecked"] == 1
        assert platform["threats"]["totalThreatsDetected"] == 1
        assert platform["platformThreatDetectionRate"] == 100.0
        assert platform["topPhishingDomains"][0]["domain"] == "192.168.1.1"
        assert data["userMetrics"]["unsafeUrlsDetected"] == 1
        assert data["userStats"]["email"] == "jane@example.com"

    def test_dashboard_requires_authentication(self, client: TestClient):
        assert client.get("/api/analytics/dashboard").status_code == 401

    def test_platform_stats_is_public(self, client: TestClient, drain_analytics):
        client.post("/api/scan/url", json={"url": "https://example.com/"})
        drain_analytics()

        response = client.get("/api/analytics/platform-stats")
        assert response.status_code == 200
        assert response.json()["data"]["totalSafeWebsitesVisited"] == 1

    def test_platform_stats_update_without_manual_drain(self, live_client: TestClient, db_session):
        AnalyticsService(db_session).get_or_create()
        for _ in range(3):
            live_client.post("/api/scan/url", json={"url": UNSAFE_URL})

        data = {}
        for _ in range(100):
            # The worker commits through its own session
            db_session.expire_all()
            data = live_client.get("/api/analytics/platform-stats").json()["data"]
            if data["totalUrlsChecked"] == 3:
                break
            time.sleep(0.05)

        assert data["totalUrlsChecked"] == 3
        assert data["totalProtectionWarnings"] == 3


class TestAdminRoutes:
    def test_admin_only(self, client: TestClient, auth_headers):
        for route in ADMIN_ROUTES:
            response = client.get(route, headers=auth_headers)
            assert response.status_code == 403, route
            assert response.json()["message"] == "Admin privileges required"

    def test_admin_can_read_everything(self, client: TestClient, admin_headers):
        for route in ADMIN_ROUTES:
            response = client.get(route, headers=admin_headers)
            assert response.status_code == 200, route
            assert response.json()["success"] is True

    def test_trends(self, client: TestClient, admin_headers, auth_headers, drain_analytics):
        client.post("/api/scan/url", json={"url": UNSAFE_URL}, headers=auth_headers)
        client.post("/api/scan/url", json={"url": "https://example.com/"}, headers=auth_headers)
        drain_analytics()

        data = client.get("/api/analytics/trends?days=7", headers=admin_headers).json()["data"]
        assert data["days"] == 7
        assert len(data["trends"]) == 1
        assert data["trends"][0]["urlsChecked"] == 2
        assert data["summary"] == {
            "totalUrlsChecked": 2,
            "totalThreatsDetected": 1,
            "averageUrlsPerDay": 2,
            "averageThreatsPerDay": 1,
        }

    def test_top_domains_from_history(self, client: TestClient, admin_headers, auth_headers):
        client.post("/api/scan/url", json={"url": UNSAFE_URL}, headers=auth_headers)
        client.post("/api/scan/url", json={"url": UNSAFE_URL}, headers=auth_headers)
        client.post("/api/scan/url", json={"url": "http://10.0.0.1/login"}, headers=auth_headers)

        data = client.get("/api/analytics/top-domains?limit=1", headers=admin_headers).json()["data"]
        assert data["totalDomains"] == 1
        assert data["topDomains"][0]["domain"] == "192.168.1.1"
        assert data["topDomains"][0]["detectionCount"] == 2
        assert data["topDomains"][0]["threatTypes"] == ["suspicious", "suspicious"]

    def test_dangerous_today_and_recent_activity(self, client: TestClient, admin_headers, auth_headers):
        client.post("/api/scan/url", json={"url": UNSAFE_URL}, headers=auth_headers)
        client.post("/api/scan/url", json={"url": "https://example.com/"}, headers=auth_headers)

        today = client.get("/api/analytics/dangerous-today", headers=admin_headers).json()["data"]
        assert today["count"] == 1
        assert today["urls"][0]["domain"] == "192.168.1.1"

        activity = client.get("/api/analytics/recent-activity", headers=admin_headers).json()["data"]
        assert activity["count"] == 1
        assert activity["activity"][0]["user"]["email"] == "jane@example.com"

    def test_rankings(self, client: TestClient, admin_headers, db_session):
        create_user(db_session, email="busy@example.com", total_urls_checked=12)
        create_user(db_session, email="idle@example.com", total_urls_checked=1)

        data = client.get("/api/analytics/rankings?type=urls_checked&limit=2", headers=admin_headers).json()["data"]
        assert data["label"] == "Most URLs Checked"
        assert [entry["email"] for entry in data["rankings"]] == ["busy@example.com", "idle@example.com"]
        assert data["rankings"][0]["rank"] == 1
        assert data["rankings"][0]["value"] == 12

        protection = client.get("/api/analytics/rankings?type=protection", headers=admin_headers).json()["data"]
        assert protection["label"] == "Most Protected"

    def test_threat_distribution(self, client: TestClient, admin_headers, db_session):
        user = create_user(db_session, email="dist@example.com")
        for threat_type in ("safe", "safe", "suspicious", "phishing"):
            db_session.add(URLCheckHistory(
                user_id=user.id, url="https://x.com/", domain="x.com",
                is_safe=threat_type == "safe", threat_type=threat_type,
            ))
        db_session.commit()

        data = client.get("/api/analytics/threat-distribution", headers=admin_headers).json()["data"]
        assert data["totalThreats"] == 4
        assert data["distribution"][0] == {"threatType": "safe", "count": 2, "percentage": 50.0}

    def test_overview_week_over_week(self, client: TestClient, admin_headers, db_session):
        today = utcnow().date()
        db_session.add_all([
            AnalyticsDailyStat(date=today, urls_checked=30),
            AnalyticsDailyStat(date=today - timedelta(days=3), urls_checked=10),
            AnalyticsDailyStat(date=today - timedelta(days=8), urls_checked=20),
        ])
        db_session.commit()

        data = client.get("/api/analytics/overview", headers=admin_headers).json()["data"]
        assert data["last7Days"] == {"totalChecks": 40, "avgPerDay": 6, "percentageChange": 100.0}
        assert "totalThreatsDetected" in data["overview"]

    def test_user_token_after_admin_demotion(self, client: TestClient, db_session):
        admin = create_user(db_session, email="boss@example.com", is_admin=True)
        headers = bearer(db_session, admin)
        admin.is_admin = False
        db_session.commit()

        assert client.get("/api/analytics/summary", headers=headers).status_code == 403
