from datetime import timedelta

from sqlalchemy import Column, Integer, String, DateTime, Boolean, Float, ForeignKey
from sqlalchemy.orm import relationship

from phishnet_app.database.connection import Base, utcnow


class User(Base):
    """
    Registered PhishNet user.

    Besides identity and credentials, the row carries denormalized safety
    counters so the dashboard can show per-user metrics without scanning
    the whole check history.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    # unique=True creates the index that backs the "one account per email" rule
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)

    # Account status
    is_verified = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    last_login = Column(DateTime, nullable=True)
    login_attempts = Column(Integer, default=0, nullable=False)
    account_locked_until = Column(DateTime, nullable=True)

    # Per-user safety metrics
    safe_websites_visited = Column(Integer, default=0, nullable=False)
    unsafe_urls_detected = Column(Integer, default=0, nullable=False)
    phishing_urls_detected = Column(Integer, default=0, nullable=False)
    threat_urls_detected = Column(Integer, default=0, nullable=False)
    total_protection_warnings = Column(Integer, default=0, nullable=False)
    total_urls_checked = Column(Integer, default=0, nullable=False, index=True)
    protection_ratio = Column(Float, default=0.0, nullable=False)

    # Preferences
    email_notifications = Column(Boolean, default=True, nullable=False)
    weekly_report_email = Column(Boolean, default=True, nullable=False)
    two_factor_enabled = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    tokens = relationship("AuthToken", back_populates="user", cascade="all, delete-orphan")
    ip_addresses = relationship("LoginIPAddress", back_populates="user", cascade="all, delete-orphan")

    def update_metrics(
        self,
        safe_websites: int = 0,
        unsafe_urls: int = 0,
        phishing_urls: int = 0,
        threat_urls: int = 0,
        protection_warnings: int = 0,
    ) -> None:
        """Add scan outcomes to the counters and recompute derived totals."""
        self.safe_websites_visited = (self.safe_websites_visited or 0) + safe_websites
        self.unsafe_urls_detected = (self.unsafe_urls_detected or 0) + unsafe_urls
        self.phishing_urls_detected = (self.phishing_urls_detected or 0) + phishing_urls
        self.threat_urls_detected = (self.threat_urls_detected or 0) + threat_urls
        self.total_protection_warnings = (self.total_protection_warnings or 0) + protection_warnings

        threats_detected = (
            self.unsafe_urls_detected
            + self.phishing_urls_detected
            + self.threat_urls_detected
        )
        self.total_urls_checked = threats_detected + self.safe_websites_visited
        self.protection_ratio = (
            round(threats_detected / self.total_urls_checked * 100, 2)
            if self.total_urls_checked > 0
            else 0.0
        )

    def is_account_locked(self) -> bool:
        return self.account_locked_until is not None and self.account_locked_until > utcnow()

    def lock_account(self, minutes: int = 30) -> None:
        self.account_locked_until = utcnow() + timedelta(minutes=minutes)

    def unlock_account(self) -> None:
        self.account_locked_until = None
        self.login_attempts = 0

    @property
    def preferences(self) -> dict:
        return {
            "email_notifications": self.email_notifications,
            "weekly_report_email": self.weekly_report_email,
            "two_factor_enabled": self.two_factor_enabled,
        }

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class AuthToken(Base):
    """
    Issued bearer token.

    A JWT is only honoured while its `jti` is present here, so logout and
    password changes revoke tokens by deleting rows.
    """
    __tablename__ = "auth_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    jti = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)

    user = relationship("User", back_populates="tokens")


class LoginIPAddress(Base):
    """Client addresses seen on successful logins (audit trail)."""
    __tablename__ = "login_ip_addresses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    ip = Column(String(64), nullable=False)
    last_seen = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="ip_addresses")
