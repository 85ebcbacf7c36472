"""
Database models for PhishNet.

Note: platform analytics rows are written only by the analytics worker,
never directly by request handlers. Request handlers publish events.
"""

from .user import User, AuthToken, LoginIPAddress
from .scan_history import URLCheckHistory
from .analytics import Analytics, AnalyticsDailyStat, PhishingDomainStat

__all__ = [
    "User",
    "AuthToken",
    "LoginIPAddress",
    "URLCheckHistory",
    "Analytics",
    "AnalyticsDailyStat",
    "PhishingDomainStat",
]
