from datetime import datetime
from typing import List, Optional

from phishnet_app.schemas.auth import Preferences
from phishnet_app.schemas.common import CamelModel, Pagination


class ProfileUpdate(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None


class PasswordUpdate(CamelModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None


class PreferencesUpdate(CamelModel):
    email_notifications: Optional[bool] = None
    weekly_report_email: Optional[bool] = None
    two_factor_enabled: Optional[bool] = None


class PreferencesData(CamelModel):
    preferences: Preferences


class DeleteAccountRequest(CamelModel):
    password: Optional[str] = None


class UserMetrics(CamelModel):
    safe_websites_visited: int = 0
    unsafe_urls_detected: int = 0
    phishing_urls_detected: int = 0
    threat_urls_detected: int = 0
    total_protection_warnings: int = 0
    total_urls_checked: int = 0
    protection_ratio: float = 0.0


class HistoryRecord(CamelModel):
    id: int
    url: str
    domain: str
    scan_type: str
    is_safe: bool
    threat_type: str
    threat_level: str
    suspicion_score: int
    detection_source: str
    confidence: int
    user_warned: bool
    warning_type: str
    user_action: str
    checked_at: datetime


class HistoryPage(CamelModel):
    history: List[HistoryRecord]
    pagination: Pagination


class ThreatStats(CamelModel):
    total_checks: int = 0
    safe_urls: int = 0
    unsafe_urls: int = 0
    phishing_detected: int = 0
    malware_detected: int = 0
    warnings_triggered: int = 0


class UserStatsData(CamelModel):
    stats: ThreatStats
    user_metrics: UserMetrics


class ActivityItem(CamelModel):
    url: str
    domain: str
    is_safe: bool
    threat_type: str
    checked_at: datetime
    user_warned: bool
    user_action: str


class ActivityData(CamelModel):
    days: int
    activity: List[ActivityItem]


class SecurityTip(CamelModel):
    type: str
    message: str


class SecurityTipsResponse(CamelModel):
    success: bool = True
    tips: List[SecurityTip]
