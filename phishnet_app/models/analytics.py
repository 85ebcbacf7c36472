from sqlalchemy import Column, Integer, String, DateTime, Date, Float

from phishnet_app.database.connection import Base, utcnow


class Analytics(Base):
    """
    Platform-wide aggregate (a single row).

    Updated only by the analytics worker from queued events, so request
    handlers never contend on this row.
    """
    __tablename__ = "analytics"

    id = Column(Integer, primary_key=True, autoincrement=True)

    total_users_onboarded = Column(Integer, default=0, nullable=False)
    active_users = Column(Integer, default=0, nullable=False)

    total_phishing_urls_detected = Column(Integer, default=0, nullable=False)
    total_unsafe_urls_detected = Column(Integer, default=0, nullable=False)
    total_threat_urls_detected = Column(Integer, default=0, nullable=False)
    total_safe_websites_visited = Column(Integer, default=0, nullable=False)

    total_protection_warnings = Column(Integer, default=0, nullable=False)
    total_urls_checked = Column(Integer, default=0, nullable=False)
    platform_threat_detection_rate = Column(Float, default=0.0, nullable=False)

    last_updated = Column(DateTime, default=utcnow, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    @property
    def total_threats_detected(self) -> int:
        return (
            (self.total_phishing_urls_detected or 0)
            + (self.total_unsafe_urls_detected or 0)
            + (self.total_threat_urls_detected or 0)
        )


class AnalyticsDailyStat(Base):
    """Per-day platform counters, kept for `daily_stats_retention_days`."""
    __tablename__ = "analytics_daily_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, unique=True, nullable=False, index=True)
    users_onboarded = Column(Integer, default=0, nullable=False)
    urls_checked = Column(Integer, default=0, nullable=False)
    threats_detected = Column(Integer, default=0, nullable=False)
    protection_warnings = Column(Integer, default=0, nullable=False)
    active_users = Column(Integer, default=0, nullable=False)


class PhishingDomainStat(Base):
    """Detection count per unsafe domain; trimmed to the top N by count."""
    __tablename__ = "phishing_domain_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    domain = Column(String, unique=True, nullable=False, index=True)
    detection_count = Column(Integer, default=0, nullable=False, index=True)
    last_detected = Column(DateTime, default=utcnow, nullable=False)
