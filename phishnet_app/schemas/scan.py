from typing import Any, List, Optional

from phishnet_app.schemas.common import CamelModel


class UrlScanRequest(CamelModel):
    # Any, so a non-string gets the envelope's 400 instead of a schema error
    url: Any = None


class EmailScanRequest(CamelModel):
    sender_email: Optional[str] = None
    email_content: Optional[str] = None
    subject: Optional[str] = None


class BatchScanRequest(CamelModel):
    urls: Any = None


class UrlScanResult(CamelModel):
    url: str
    domain: str
    is_safe: bool
    threat_type: str
    threat_level: str
    suspicion_score: int
    confidence: int
    recommendation: str
    check_id: Optional[int] = None


class EmailUrlCheck(CamelModel):
    url: str
    is_safe: bool
    threat_level: str
    suspicion_score: int
    threat_type: str


class EmailScanResult(CamelModel):
    is_safe: bool
    sender_email: str
    sender_domain: str
    is_suspicious_sender: bool
    urls_found: int
    url_checks: List[EmailUrlCheck]
    recommendation: str
    record_id: Optional[int] = None


class BatchItem(CamelModel):
    url: str
    domain: Optional[str] = None
    is_safe: Optional[bool] = None
    threat_type: Optional[str] = None
    threat_level: Optional[str] = None
    suspicion_score: Optional[int] = None
    confidence: Optional[int] = None
    error: Optional[str] = None


class BatchScanResult(CamelModel):
    total: int
    safe_count: int
    unsafe_count: int
    results: List[BatchItem]
