"""
Personalised security tips for the dashboard.

Tips are added in priority order and the list is cut at three.
"""

from typing import List

from phishnet_app.schemas.user import SecurityTip, ThreatStats

MAX_TIPS = 3

CONFIRMED_THREAT_TIP = SecurityTip(
    type="warning",
    message="One or more recent scans detected confirmed malicious or phishing content. "
            "Review those reports immediately.",
)
SUSPICIOUS_TIP = SecurityTip(
    type="info",
    message="Some of your recent scans showed suspicious indicators. Avoid visiting unfamiliar "
            "links and verify the domain before entering credentials.",
)
EMAIL_TIP = SecurityTip(
    type="info",
    message="Be cautious with emails containing links or urgent requests. "
            "Avoid clicking links from unknown senders.",
)
TWO_FACTOR_TIP = SecurityTip(
    type="success",
    message="Enable Two-Factor Authentication (2FA) to improve your account security.",
)
ALL_SAFE_TIP = SecurityTip(
    type="success",
    message="All recent scans look safe. Continue following best practices to stay protected.",
)
NO_HISTORY_TIP = SecurityTip(
    type="info",
    message="No scan history available. Perform a scan on the homepage to get personalized recommendations.",
)


def build_security_tips(stats: ThreatStats, has_email_scans: bool, two_factor_enabled: bool) -> List[SecurityTip]:
    tips = []

    if stats.phishing_detected + stats.malware_detected > 0:
        tips.append(CONFIRMED_THREAT_TIP)
    if stats.unsafe_urls > 0:
        tips.append(SUSPICIOUS_TIP)
    if has_email_scans:
        tips.append(EMAIL_TIP)
    if not two_factor_enabled:
        tips.append(TWO_FACTOR_TIP)

    # Positive tips only when nothing else applies
    if not tips:
        if stats.total_checks > 0 and stats.safe_urls == stats.total_checks:
            tips.append(ALL_SAFE_TIP)
        elif stats.total_checks == 0:
            tips.append(NO_HISTORY_TIP)

    return tips[:MAX_TIPS]
