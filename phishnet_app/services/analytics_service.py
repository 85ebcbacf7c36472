"""
Platform analytics: folding queued events into the aggregate, and the
admin/dashboard read models built from it and from scan history.
"""

import logging
import math
from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from phishnet_app.config import settings
from phishnet_app.database.connection import utcnow
from phishnet_app.models.analytics import Analytics, AnalyticsDailyStat, PhishingDomainStat
from phishnet_app.models.scan_history import URLCheckHistory
from phishnet_app.models.user import User
from phishnet_app.queue.models import AnalyticsEvent, EventType
from phishnet_app.schemas.analytics import (
    ActivityUser,
    DangerousDomain,
    DangerousTodayData,
    DangerousUrl,
    DashboardData,
    DashboardSummary,
    DistributionEntry,
    OverviewCounts,
    OverviewData,
    PlatformActivityItem,
    PlatformOverview,
    PlatformStats,
    RankingEntry,
    RankingsData,
    RecentActivityData,
    ThreatCounts,
    ThreatDistributionData,
    TopDomain,
    TopDomainsData,
    TrendPoint,
    TrendsData,
    TrendSummary,
    UserAccountStats,
    WeeklyComparison,
)
from phishnet_app.schemas.user import UserMetrics

logger = logging.getLogger(__name__)

# ranking type -> (User column, label)
RANKING_TYPES = {
    "urls_checked": (User.total_urls_checked, "Most URLs Checked"),
    "threats_detected": (User.unsafe_urls_detected, "Most Threats Detected"),
    "protection": (User.total_protection_warnings, "Most Protected"),
}

TOP_DOMAINS_WINDOW_DAYS = 30
DANGEROUS_TODAY_LIMIT = 100
SUMMARY_TOP_DOMAINS = 10
OVERVIEW_TOP_DOMAINS = 5


def _event_day(event: AnalyticsEvent) -> date:
    ts = event.timestamp
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc)
    return ts.date()


class AnalyticsService:
    """
    Reads and writes the platform aggregate.

    `apply_events` is the only writer of the aggregate tables; it is called
    by the analytics worker with a batch of consumed events.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_or_create(self) -> Analytics:
        analytics = self.db.query(Analytics).order_by(Analytics.id).first()
        if analytics is None:
            analytics = Analytics()
            self.db.add(analytics)
            self.db.commit()
            self.db.refresh(analytics)
        return analytics

    # ---- writes ----

    def apply_events(self, events: Iterable[AnalyticsEvent]) -> int:
        """
        Fold a batch of events into the aggregate in one transaction.

        Returns:
            Number of events applied
        """
        analytics = self.get_or_create()
        applied = 0

        for event in events:
            if event.event_type == EventType.USER_REGISTERED:
                analytics.total_users_onboarded += 1
                self._daily_stat(_event_day(event)).users_onboarded += 1
            elif event.event_type == EventType.SCAN:
                self._apply_scan(analytics, event)
            else:
                logger.warning("⚠️  Unknown analytics event type: %s", event.event_type)
                continue
            applied += 1

        if applied:
            active_users = self.db.query(func.count(User.id)).filter(User.is_active.is_(True)).scalar() or 0
            analytics.active_users = active_users
            self._recalculate(analytics)
            self._daily_stat(utcnow().date()).active_users = active_users
            self._trim_daily_stats()
            self._trim_top_domains()

        self.db.commit()
        return applied

    def _apply_scan(self, analytics: Analytics, event: AnalyticsEvent) -> None:
        daily = self._daily_stat(_event_day(event))
        daily.urls_checked += 1

        if event.is_safe:
            analytics.total_safe_websites_visited += 1
            return

        analytics.total_protection_warnings += 1
        if event.threat_type == "phishing":
            analytics.total_phishing_urls_detected += 1
        else:
            analytics.total_unsafe_urls_detected += 1
        daily.threats_detected += 1
        daily.protection_warnings += 1

        # Email scans report the sender domain, which is not a URL detection
        if event.scan_type == "url" and event.domain:
            self._bump_domain(event.domain)

    def _recalculate(self, analytics: Analytics) -> None:
        analytics.total_urls_checked = analytics.total_threats_detected + analytics.total_safe_websites_visited
        analytics.platform_threat_detection_rate = (
            round(analytics.total_threats_detected / analytics.total_urls_checked * 100, 2)
            if analytics.total_urls_checked > 0
            else 0.0
        )
        analytics.last_updated = utcnow()

    def _daily_stat(self, day: date) -> AnalyticsDailyStat:
        stat = self.db.query(AnalyticsDailyStat).filter(AnalyticsDailyStat.date == day).first()
        if stat is None:
            stat = AnalyticsDailyStat(
                date=day,
                users_onboarded=0,
                urls_checked=0,
                threats_detected=0,
                protection_warnings=0,
                active_users=0,
            )
            self.db.add(stat)
            self.db.flush()
        return stat

    def _bump_domain(self, domain: str) -> None:
        stat = self.db.query(PhishingDomainStat).filter(PhishingDomainStat.domain == domain).first()
        if stat is None:
            stat = PhishingDomainStat(domain=domain, detection_count=0)
            self.db.add(stat)
        stat.detection_count += 1
        stat.last_detected = utcnow()
        self.db.flush()

    def _trim_daily_stats(self) -> None:
        cutoff = utcnow().date() - timedelta(days=settings.daily_stats_retention_days)
        self.db.query(AnalyticsDailyStat).filter(AnalyticsDailyStat.date < cutoff).delete()

    def _trim_top_domains(self) -> None:
        keep = [
            row.id for row in self.db.query(PhishingDomainStat.id)
            .order_by(PhishingDomainStat.detection_count.desc(), PhishingDomainStat.last_detected.desc())
            .limit(settings.top_domains_limit)
        ]
        self.db.query(PhishingDomainStat).filter(
            PhishingDomainStat.id.notin_(keep)
        ).delete(synchronize_session=False)

    # ---- reads ----

    def top_phishing_domains(self, limit: int) -> List[TopDomain]:
        rows = (
            self.db.query(PhishingDomainStat)
            .order_by(PhishingDomainStat.detection_count.desc(), PhishingDomainStat.last_detected.desc())
            .limit(limit)
            .all()
        )
        return [TopDomain.model_validate(row) for row in rows]

    def summary(self) -> DashboardSummary:
        analytics = self.get_or_create()
        return DashboardSummary(
            overview=OverviewCounts(
                total_users=analytics.total_users_onboarded,
                active_users=analytics.active_users,
                total_urls_checked=analytics.total_urls_checked,
                total_protection_warnings=analytics.total_protection_warnings,
            ),
            threats=ThreatCounts(
                phishing_urls=analytics.total_phishing_urls_detected,
                unsafe_urls=analytics.total_unsafe_urls_detected,
                threat_urls=analytics.total_threat_urls_detected,
                total_threats_detected=analytics.total_threats_detected,
            ),
            safe_websites=analytics.total_safe_websites_visited,
            platform_threat_detection_rate=analytics.platform_threat_detection_rate,
            top_phishing_domains=self.top_phishing_domains(SUMMARY_TOP_DOMAINS),
            last_updated=analytics.last_updated,
        )

    def dashboard(self, user: User) -> DashboardData:
        return DashboardData(
            platform_metrics=self.summary(),
            user_metrics=UserMetrics.model_validate(user),
            user_stats=UserAccountStats(
                last_login=user.last_login,
                account_created=user.created_at,
                email=user.email,
            ),
        )

    def trend_points(self, days: int) -> List[TrendPoint]:
        cutoff = utcnow().date() - timedelta(days=days)
        stats = (
            self.db.query(AnalyticsDailyStat)
            .filter(AnalyticsDailyStat.date >= cutoff)
            .order_by(AnalyticsDailyStat.date)
            .all()
        )
        return [
            TrendPoint(
                date=stat.date.isoformat(),
                urls_checked=stat.urls_checked,
                threats_detected=stat.threats_detected,
                protection_warnings=stat.protection_warnings,
                active_users=stat.active_users,
                new_users=stat.users_onboarded,
            )
            for stat in stats
        ]

    def trends(self, days: int = 30) -> TrendsData:
        points = self.trend_points(days)
        total_urls = sum(point.urls_checked for point in points)
        total_threats = sum(point.threats_detected for point in points)
        count = len(points)
        return TrendsData(
            days=days,
            trends=points,
            summary=TrendSummary(
                total_urls_checked=total_urls,
                total_threats_detected=total_threats,
                average_urls_per_day=math.ceil(total_urls / count) if count else 0,
                average_threats_per_day=math.ceil(total_threats / count) if count else 0,
            ),
        )

    def most_dangerous_domains(self, limit: int = 10, days: int = TOP_DOMAINS_WINDOW_DAYS) -> TopDomainsData:
        """Unsafe domains seen in history over the last `days`, by detection count."""
        since = utcnow() - timedelta(days=days)
        records = (
            self.db.query(URLCheckHistory.domain, URLCheckHistory.threat_type, URLCheckHistory.checked_at)
            .filter(URLCheckHistory.is_safe.is_(False), URLCheckHistory.checked_at >= since)
            .order_by(URLCheckHistory.checked_at)
            .all()
        )

        grouped: Dict[str, dict] = defaultdict(lambda: {"count": 0, "types": [], "last": None})
        for domain, threat_type, checked_at in records:
            entry = grouped[domain]
            entry["count"] += 1
            entry["types"].append(threat_type)
            entry["last"] = checked_at

        ranked = sorted(grouped.items(), key=lambda item: item[1]["count"], reverse=True)[:limit]
        top_domains = [
            DangerousDomain(
                domain=domain,
                detection_count=entry["count"],
                threat_types=entry["types"],
                last_detected=entry["last"],
            )
            for domain, entry in ranked
        ]
        return TopDomainsData(top_domains=top_domains, total_domains=len(top_domains))

    def dangerous_today(self) -> DangerousTodayData:
        start_of_day = datetime.combine(utcnow().date(), time.min)
        records = (
            self.db.query(URLCheckHistory)
            .filter(URLCheckHistory.is_safe.is_(False), URLCheckHistory.checked_at >= start_of_day)
            .order_by(URLCheckHistory.checked_at.desc())
            .limit(DANGEROUS_TODAY_LIMIT)
            .all()
        )
        return DangerousTodayData(
            count=len(records),
            urls=[DangerousUrl.model_validate(record) for record in records],
        )

    def rankings(self, ranking_type: str = "urls_checked", limit: int = 10) -> RankingsData:
        # Unknown types fall back to urls_checked
        if ranking_type not in RANKING_TYPES:
            column, label = RANKING_TYPES["urls_checked"]
        else:
            column, label = RANKING_TYPES[ranking_type]

        users = (
            self.db.query(User)
            .filter(User.is_active.is_(True))
            .order_by(column.desc(), User.id)
            .limit(limit)
            .all()
        )
        return RankingsData(
            type=ranking_type,
            label=label,
            rankings=[
                RankingEntry(
                    rank=index + 1,
                    name=user.full_name,
                    email=user.email,
                    value=getattr(user, column.key) or 0,
                    joined_at=user.created_at,
                )
                for index, user in enumerate(users)
            ],
        )

    def threat_distribution(self) -> ThreatDistributionData:
        rows = (
            self.db.query(URLCheckHistory.threat_type, func.count(URLCheckHistory.id))
            .group_by(URLCheckHistory.threat_type)
            .order_by(func.count(URLCheckHistory.id).desc())
            .all()
        )
        total = sum(count for _, count in rows)
        return ThreatDistributionData(
            distribution=[
                DistributionEntry(
                    threat_type=threat_type,
                    count=count,
                    percentage=round(count / total * 100, 2) if total else 0.0,
                )
                for threat_type, count in rows
            ],
            total_threats=total,
        )

    def recent_activity(self, limit: int = 20) -> RecentActivityData:
        records = (
            self.db.query(URLCheckHistory)
            .filter(URLCheckHistory.is_safe.is_(False))
            .order_by(URLCheckHistory.checked_at.desc(), URLCheckHistory.id.desc())
            .limit(limit)
            .all()
        )
        activity = [
            PlatformActivityItem(
                domain=record.domain,
                threat_type=record.threat_type,
                threat_level=record.threat_level,
                checked_at=record.checked_at,
                user_warned=record.user_warned,
                user=ActivityUser.model_validate(record.user) if record.user else None,
            )
            for record in records
        ]
        return RecentActivityData(activity=activity, count=len(activity))

    def overview(self) -> OverviewData:
        """Totals plus this week's checks compared with the week before."""
        analytics = self.get_or_create()
        today = utcnow().date()

        last_week = 0
        previous_week = 0
        since = today - timedelta(days=13)
        for stat in self.db.query(AnalyticsDailyStat).filter(AnalyticsDailyStat.date >= since):
            age = (today - stat.date).days
            if 0 <= age < 7:
                last_week += stat.urls_checked
            elif 7 <= age < 14:
                previous_week += stat.urls_checked

        percentage_change = (
            round((last_week - previous_week) / previous_week * 100, 2)
            if previous_week > 0
            else 0.0
        )

        return OverviewData(
            overview=PlatformOverview(
                total_users=analytics.total_users_onboarded,
                active_users=analytics.active_users,
                total_urls_checked=analytics.total_urls_checked,
                total_threats_detected=analytics.total_threats_detected,
                total_protection_warnings=analytics.total_protection_warnings,
                platform_threat_detection_rate=analytics.platform_threat_detection_rate,
            ),
            last_7_days=WeeklyComparison(
                total_checks=last_week,
                avg_per_day=math.ceil(last_week / 7),
                percentage_change=percentage_change,
            ),
            top_domains=self.top_phishing_domains(OVERVIEW_TOP_DOMAINS),
            last_updated=analytics.last_updated,
        )

    def platform_stats(self) -> PlatformStats:
        return PlatformStats.model_validate(self.get_or_create())
