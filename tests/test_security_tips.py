from fastapi.testclient import TestClient

from phishnet_app.models.scan_history import URLCheckHistory
from phishnet_app.schemas.user import ThreatStats
from phishnet_app.services.security_tips import (
    ALL_SAFE_TIP,
    CONFIRMED_THREAT_TIP,
    EMAIL_TIP,
    NO_HISTORY_TIP,
    SUSPICIOUS_TIP,
    TWO_FACTOR_TIP,
    build_security_tips,
)


class TestBuildSecurityTips:
    """Tip selection and priority"""

    def test_no_history_without_2fa(self):
        assert build_security_tips(ThreatStats(), False, False) == [TWO_FACTOR_TIP]

    def test_no_history_with_2fa(self):
        assert build_security_tips(ThreatStats(), False, True) == [NO_HISTORY_TIP]

    def test_all_safe(self):
        stats = ThreatStats(total_checks=4, safe_urls=4)
        assert build_security_tips(stats, False, True) == [ALL_SAFE_TIP]

    def test_priority_and_cap(self):
        stats = ThreatStats(total_checks=3, safe_urls=1, unsafe_urls=2, phishing_detected=1)
        assert build_security_tips(stats, True, False) == [CONFIRMED_THREAT_TIP, SUSPICIOUS_TIP, EMAIL_TIP]

    def test_mixed_history_with_2fa(self):
        stats = ThreatStats(total_checks=2, safe_urls=1, unsafe_urls=1)
        assert build_security_tips(stats, False, True) == [SUSPICIOUS_TIP]


class TestSecurityTipsRoute:
    """GET /api/dashboard/security-tips"""

    def test_requires_authentication(self, client: TestClient):
        assert client.get("/api/dashboard/security-tips").status_code == 401

    def test_tips_for_user(self, client: TestClient, auth_headers, user, db_session):
        db_session.add(URLCheckHistory(
            user_id=user.id, url="https://x.xyz/", domain="x.xyz", scan_type="email",
            is_safe=False, threat_type="phishing", threat_level="high",
        ))
        db_session.commit()

        body = client.get("/api/dashboard/security-tips", headers=auth_headers).json()
        assert body["success"] is True
        assert [tip["type"] for tip in body["tips"]] == ["warning", "info", "info"]
        assert body["tips"][2]["message"] == EMAIL_TIP.message
