from datetime import datetime
from typing import Optional

from phishnet_app.schemas.common import CamelModel


class RegisterRequest(CamelModel):
    # Optional so missing fields produce the "All fields are required" message
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class Preferences(CamelModel):
    email_notifications: bool = True
    weekly_report_email: bool = True
    two_factor_enabled: bool = False


class UserProfile(CamelModel):
    """Public view of a user (no credentials)."""
    id: int
    first_name: str
    last_name: str
    email: str
    is_verified: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    safe_websites_visited: int = 0
    unsafe_urls_detected: int = 0
    phishing_urls_detected: int = 0
    threat_urls_detected: int = 0
    total_protection_warnings: int = 0
    total_urls_checked: int = 0
    protection_ratio: float = 0.0
    preferences: Preferences


class AuthData(CamelModel):
    user: UserProfile
    token: str


class ProfileData(CamelModel):
    user: UserProfile


class TokenData(CamelModel):
    token: str
