from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship

from phishnet_app.database.connection import Base, utcnow

THREAT_TYPES = ("safe", "phishing", "malware", "unsafe", "suspicious", "unknown")
THREAT_LEVELS = ("safe", "low", "medium", "high", "critical")
DETECTION_SOURCES = ("database", "api", "machine_learning", "user_report")
WARNING_TYPES = ("none", "banner", "modal", "block")
USER_ACTIONS = ("proceeded", "blocked", "reported", "whitelisted", "pending")
SCAN_TYPES = ("url", "email")


class URLCheckHistory(Base):
    """
    One scan performed by a signed-in user.

    Records belong to the user that created them and are purged once they
    are older than `settings.history_retention_days`
    (see ScanService.purge_expired_history).
    """
    __tablename__ = "url_check_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    url = Column(String, nullable=False)
    domain = Column(String, nullable=False, index=True)
    scan_type = Column(String(10), default="url", nullable=False)

    # Threat assessment
    is_safe = Column(Boolean, default=True, nullable=False)
    threat_type = Column(String(20), default="unknown", nullable=False, index=True)
    threat_level = Column(String(10), default="safe", nullable=False)
    suspicion_score = Column(Integer, default=0, nullable=False)

    # Detection metadata
    detection_source = Column(String(20), default="database", nullable=False)
    confidence = Column(Integer, default=100, nullable=False)

    # Warning shown to the user and what they did next
    user_warned = Column(Boolean, default=False, nullable=False)
    warning_type = Column(String(10), default="none", nullable=False)
    user_action = Column(String(20), default="pending", nullable=False)

    checked_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    user = relationship("User")

    __table_args__ = (
        Index("ix_history_user_checked", "user_id", "checked_at"),
        Index("ix_history_domain_threat", "domain", "threat_type"),
        Index("ix_history_safe_checked", "is_safe", "checked_at"),
    )


def validate_check_record(record: URLCheckHistory) -> list:
    """
    Return the list of validation errors for a history record.

    Enumerated columns are plain strings in the database, so the allowed
    values are enforced here before a record is persisted.
    """
    errors = []
    if not record.url:
        errors.append("url is required")
    if not record.domain:
        errors.append("domain is required")
    if record.scan_type not in SCAN_TYPES:
        errors.append(f"invalid scan type: {record.scan_type}")
    if record.threat_type not in THREAT_TYPES:
        errors.append(f"invalid threat type: {record.threat_type}")
    if record.threat_level not in THREAT_LEVELS:
        errors.append(f"invalid threat level: {record.threat_level}")
    if record.detection_source not in DETECTION_SOURCES:
        errors.append(f"invalid detection source: {record.detection_source}")
    if record.warning_type not in WARNING_TYPES:
        errors.append(f"invalid warning type: {record.warning_type}")
    if record.user_action not in USER_ACTIONS:
        errors.append(f"invalid user action: {record.user_action}")
    if record.confidence is None or not 0 <= record.confidence <= 100:
        errors.append("confidence must be between 0 and 100")
    return errors
