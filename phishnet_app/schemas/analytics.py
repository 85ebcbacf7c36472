from datetime import datetime
from typing import List, Optional

from pydantic import Field

from phishnet_app.schemas.common import CamelModel
from phishnet_app.schemas.user import UserMetrics


class TopDomain(CamelModel):
    domain: str
    detection_count: int
    last_detected: Optional[datetime] = None


class OverviewCounts(CamelModel):
    total_users: int
    active_users: int
    total_urls_checked: int
    total_protection_warnings: int


class ThreatCounts(CamelModel):
    phishing_urls: int
    unsafe_urls: int
    threat_urls: int
    total_threats_detected: int


class DashboardSummary(CamelModel):
    overview: OverviewCounts
    threats: ThreatCounts
    safe_websites: int
    platform_threat_detection_rate: float
    top_phishing_domains: List[TopDomain]
    last_updated: Optional[datetime] = None


class UserAccountStats(CamelModel):
    last_login: Optional[datetime] = None
    account_created: Optional[datetime] = None
    email: str


class DashboardData(CamelModel):
    platform_metrics: DashboardSummary
    user_metrics: UserMetrics
    user_stats: UserAccountStats


class TrendPoint(CamelModel):
    date: str
    urls_checked: int
    threats_detected: int
    protection_warnings: int
    active_users: int
    new_users: int


class TrendSummary(CamelModel):
    total_urls_checked: int
    total_threats_detected: int
    average_urls_per_day: int
    average_threats_per_day: int


class TrendsData(CamelModel):
    days: int
    trends: List[TrendPoint]
    summary: TrendSummary


class DangerousDomain(CamelModel):
    domain: str
    detection_count: int
    threat_types: List[str]
    last_detected: datetime


class TopDomainsData(CamelModel):
    top_domains: List[DangerousDomain]
    total_domains: int


class DangerousUrl(CamelModel):
    id: int
    url: str
    domain: str
    threat_type: str
    threat_level: str
    checked_at: datetime


class DangerousTodayData(CamelModel):
    count: int
    urls: List[DangerousUrl]


class RankingEntry(CamelModel):
    rank: int
    name: str
    email: str
    value: float
    joined_at: Optional[datetime] = None


class RankingsData(CamelModel):
    type: str
    label: str
    rankings: List[RankingEntry]


class DistributionEntry(CamelModel):
    threat_type: str
    count: int
    percentage: float


class ThreatDistributionData(CamelModel):
    distribution: List[DistributionEntry]
    total_threats: int


class ActivityUser(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str


class PlatformActivityItem(CamelModel):
    domain: str
    threat_type: str
    threat_level: str
    checked_at: datetime
    user_warned: bool
    user: Optional[ActivityUser] = None


class RecentActivityData(CamelModel):
    activity: List[PlatformActivityItem]
    count: int


class PlatformOverview(CamelModel):
    total_users: int
    active_users: int
    total_urls_checked: int
    total_threats_detected: int
    total_protection_warnings: int
    platform_threat_detection_rate: float


class WeeklyComparison(CamelModel):
    total_checks: int
    avg_per_day: int
    percentage_change: float


class OverviewData(CamelModel):
    overview: PlatformOverview
    last_7_days: WeeklyComparison = Field(alias="last7Days")
    top_domains: List[TopDomain]
    last_updated: Optional[datetime] = None


class PlatformStats(CamelModel):
    total_users_onboarded: int
    active_users: int
    total_urls_checked: int
    total_phishing_urls_detected: int
    total_unsafe_urls_detected: int
    total_threat_urls_detected: int
    total_safe_websites_visited: int
    total_protection_warnings: int
    platform_threat_detection_rate: float
