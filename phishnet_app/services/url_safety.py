"""
Heuristic URL risk scoring.

A weighted keyword/pattern scorer, not a detection engine: each signal adds
a fixed number of points, the total is clamped to 0-100 and mapped to a
threat level.
"""

import re
from enum import Enum
from urllib.parse import urlsplit

from pydantic import BaseModel

PHISHING_KEYWORDS = (
    "verify", "confirm", "urgent", "update", "alert", "suspended",
    "restricted", "unusual", "activity", "click", "act", "now",
    "limited", "access", "security", "login", "account",
)

COMMON_TLDS = (".com", ".org", ".net", ".edu", ".gov", ".co.uk", ".de", ".fr")

IP_HOST_SCORE = 20
SUBDOMAIN_SCORE = 15
KEYWORD_SCORE = 5
UNCOMMON_TLD_SCORE = 10
MAX_SUBDOMAIN_DOTS = 3

_IPV4_PREFIX = re.compile(r"^\d+\.\d+\.\d+\.\d+")
_SCHEME_AND_WWW = re.compile(r"^(https?://)?(www\.)?")


class ThreatLevel(str, Enum):
    SAFE = "safe"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class UrlSafetyResult(BaseModel):
    is_safe: bool
    threat_level: ThreatLevel
    suspicion_score: int
    threat_type: str


def extract_domain(url: str) -> str:
    """
    Return the lowercased host of `url`.

    Inputs that don't parse as an absolute URL (no scheme or no host) fall
    back to stripping the scheme and "www." by hand and taking everything
    up to the first slash.
    """
    try:
        parts = urlsplit(url)
        if parts.scheme and parts.hostname:
            return parts.hostname.lower()
    except ValueError:
        pass

    stripped = _SCHEME_AND_WWW.sub("", url.lower(), count=1)
    return stripped.split("/")[0]


def threat_level_for(score: int) -> ThreatLevel:
    if score < 10:
        return ThreatLevel.SAFE
    if score < 30:
        return ThreatLevel.LOW
    if score < 60:
        return ThreatLevel.MEDIUM
    if score < 80:
        return ThreatLevel.HIGH
    return ThreatLevel.CRITICAL


def score_url(url: str) -> int:
    """Sum the signal weights for `url`, clamped to 0-100."""
    domain = extract_domain(url)
    lower_url = url.lower()
    score = 0

    if _IPV4_PREFIX.match(domain):
        score += IP_HOST_SCORE

    if domain.count(".") > MAX_SUBDOMAIN_DOTS:
        score += SUBDOMAIN_SCORE

    score += KEYWORD_SCORE * sum(1 for keyword in PHISHING_KEYWORDS if keyword in lower_url)

    if not domain.endswith(COMMON_TLDS):
        score += UNCOMMON_TLD_SCORE

    return max(0, min(score, 100))


def check_url_safety(url: str) -> UrlSafetyResult:
    """Score `url` and classify it. Never raises for string input."""
    score = score_url(url)
    return UrlSafetyResult(
        is_safe=score < 30,
        threat_level=threat_level_for(score),
        suspicion_score=score,
        threat_type="suspicious" if score > 0 else "safe",
    )
