import logging
import re
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from phishnet_app.config import settings
from phishnet_app.database.connection import utcnow
from phishnet_app.models.scan_history import URLCheckHistory, validate_check_record
from phishnet_app.models.user import User
from phishnet_app.queue.models import AnalyticsEvent, EventType
from phishnet_app.queue.strategies import QueueStrategy
from phishnet_app.schemas.scan import (
    BatchItem,
    BatchScanResult,
    EmailScanRequest,
    EmailScanResult,
    EmailUrlCheck,
    UrlScanResult,
)
from phishnet_app.services.errors import ValidationError
from phishnet_app.services.url_safety import UrlSafetyResult, check_url_safety, extract_domain
from phishnet_app.services.validators import is_valid_url, sanitize_url

logger = logging.getLogger(__name__)

URL_IN_TEXT = re.compile(r"https?://\S+")

SUSPICIOUS_SENDER_INDICATORS = (
    "noreply", "alert", "urgent", "confirm", "verify",
    "update", "security", "action", "required", "support",
)

MAX_BATCH_SIZE = 100

SAFE_RECOMMENDATION = "This URL appears to be safe. However, always exercise caution online."
UNSAFE_RECOMMENDATION = "We recommend not visiting this URL. It may be a phishing or malicious site."
SAFE_EMAIL_RECOMMENDATION = "This email appears to be legitimate."
UNSAFE_EMAIL_RECOMMENDATION = (
    "This email shows signs of being a phishing attempt. "
    "Do not click links or provide personal information."
)


def confidence_for(result: UrlSafetyResult) -> int:
    if result.is_safe:
        return 100
    return max(50, 100 - result.suspicion_score)


def extract_urls(*texts: Optional[str]) -> List[str]:
    """All http(s) URLs in `texts`, de-duplicated in first-seen order."""
    found = []
    for text in texts:
        if text:
            found.extend(URL_IN_TEXT.findall(text))
    return list(dict.fromkeys(found))


class ScanService:
    """
    Scan submission and the history-record lifecycle around the scorer.

    Scans by signed-in users are persisted and update the user's counters
    synchronously; platform analytics are updated from queued events.
    """

    def __init__(self, db: Session, queue: Optional[QueueStrategy] = None):
        self.db = db
        self.queue = queue

    async def scan_url(self, url, user: Optional[User] = None) -> UrlScanResult:
        if not url or not isinstance(url, str):
            raise ValidationError("URL is required and must be a string")

        sanitized = sanitize_url(url)
        if not is_valid_url(sanitized):
            raise ValidationError(
                "Invalid URL format. Please provide a valid URL (e.g., https://example.com)"
            )

        domain = extract_domain(sanitized)
        result = check_url_safety(sanitized)
        confidence = confidence_for(result)

        record = None
        if user is not None:
            record = self._record_check(user, sanitized, domain, result, confidence)
            self._update_user_metrics(user, result)
            self.db.commit()
            self.db.refresh(record)

        await self._publish_scan(user, "url", domain, result.is_safe, result.threat_type, result.threat_level.value)

        return UrlScanResult(
            url=sanitized,
            domain=domain,
            is_safe=result.is_safe,
            threat_type=result.threat_type,
            threat_level=result.threat_level.value,
            suspicion_score=result.suspicion_score,
            confidence=confidence,
            recommendation=SAFE_RECOMMENDATION if result.is_safe else UNSAFE_RECOMMENDATION,
            check_id=record.id if record else None,
        )

    async def scan_email(self, data: EmailScanRequest, user: Optional[User] = None) -> EmailScanResult:
        if not data.sender_email or not data.email_content:
            raise ValidationError("Sender email and email content are required")
        if "@" not in data.sender_email:
            raise ValidationError("Invalid sender email address")

        urls = extract_urls(data.email_content, data.subject)
        url_checks = []
        has_threats = False
        for url in urls:
            if not is_valid_url(url):
                continue
            result = check_url_safety(url)
            url_checks.append(EmailUrlCheck(
                url=url,
                is_safe=result.is_safe,
                threat_level=result.threat_level.value,
                suspicion_score=result.suspicion_score,
                threat_type=result.threat_type,
            ))
            has_threats = has_threats or not result.is_safe

        sender_domain = data.sender_email.split("@", 1)[1].lower()
        is_suspicious_sender = any(
            indicator in sender_domain for indicator in SUSPICIOUS_SENDER_INDICATORS
        )
        is_safe = not has_threats and not is_suspicious_sender
        threat_level = "high" if is_suspicious_sender else "medium"

        record = None
        if not is_safe:
            if user is not None:
                record = URLCheckHistory(
                    user_id=user.id,
                    url=data.sender_email.strip().lower(),
                    domain=sender_domain,
                    scan_type="email",
                    is_safe=False,
                    threat_type="phishing",
                    threat_level=threat_level,
                    suspicion_score=max((check.suspicion_score for check in url_checks), default=0),
                    detection_source="machine_learning",
                    confidence=70,
                    user_warned=True,
                    warning_type="banner",
                    user_action="pending",
                )
                self._persist(record)
                user.update_metrics(phishing_urls=1, protection_warnings=1)
                self.db.commit()
                self.db.refresh(record)

            await self._publish_scan(user, "email", sender_domain, False, "phishing", threat_level)

        return EmailScanResult(
            is_safe=is_safe,
            sender_email=data.sender_email,
            sender_domain=sender_domain,
            is_suspicious_sender=is_suspicious_sender,
            urls_found=len(urls),
            url_checks=url_checks,
            recommendation=SAFE_EMAIL_RECOMMENDATION if is_safe else UNSAFE_EMAIL_RECOMMENDATION,
            record_id=record.id if record else None,
        )

    async def scan_batch(self, urls, user: User) -> BatchScanResult:
        if not isinstance(urls, list) or len(urls) == 0:
            raise ValidationError("URLs must be an array with at least one URL")
        if len(urls) > MAX_BATCH_SIZE:
            raise ValidationError(f"Maximum {MAX_BATCH_SIZE} URLs can be checked at once")

        results = []
        safe_count = 0
        unsafe_count = 0
        events = []

        for url in urls:
            if not isinstance(url, str):
                results.append(BatchItem(url=str(url), error="Invalid URL format"))
                continue

            sanitized = sanitize_url(url)
            if not is_valid_url(sanitized):
                results.append(BatchItem(url=url, error="Invalid URL format"))
                continue

            domain = extract_domain(sanitized)
            result = check_url_safety(sanitized)
            confidence = confidence_for(result)
            self._record_check(user, sanitized, domain, result, confidence)

            results.append(BatchItem(
                url=sanitized,
                domain=domain,
                is_safe=result.is_safe,
                threat_type=result.threat_type,
                threat_level=result.threat_level.value,
                suspicion_score=result.suspicion_score,
                confidence=confidence,
            ))
            events.append((domain, result))
            if result.is_safe:
                safe_count += 1
            else:
                unsafe_count += 1

        if safe_count or unsafe_count:
            user.update_metrics(
                safe_websites=safe_count,
                unsafe_urls=unsafe_count,
                protection_warnings=unsafe_count,
            )
        self.db.commit()

        for domain, result in events:
            await self._publish_scan(user, "url", domain, result.is_safe, result.threat_type, result.threat_level.value)

        return BatchScanResult(
            total=len(urls),
            safe_count=safe_count,
            unsafe_count=unsafe_count,
            results=results,
        )

    def purge_expired_history(self) -> int:
        """Delete history records older than the retention window."""
        cutoff = utcnow() - timedelta(days=settings.history_retention_days)
        deleted = self.db.query(URLCheckHistory).filter(URLCheckHistory.created_at < cutoff).delete()
        self.db.commit()
        if deleted:
            logger.info("🧹 Purged %s expired history records", deleted)
        return deleted

    def _record_check(
        self,
        user: User,
        url: str,
        domain: str,
        result: UrlSafetyResult,
        confidence: int,
    ) -> URLCheckHistory:
        record = URLCheckHistory(
            user_id=user.id,
            url=url,
            domain=domain,
            scan_type="url",
            is_safe=result.is_safe,
            threat_type=result.threat_type,
            threat_level=result.threat_level.value,
            suspicion_score=result.suspicion_score,
            detection_source="database",
            confidence=confidence,
            user_warned=not result.is_safe,
            warning_type="none" if result.is_safe else "banner",
            user_action="pending",
        )
        self._persist(record)
        return record

    def _persist(self, record: URLCheckHistory) -> None:
        errors = validate_check_record(record)
        if errors:
            raise ValidationError(errors[0], errors=errors)
        self.db.add(record)

    @staticmethod
    def _update_user_metrics(user: User, result: UrlSafetyResult) -> None:
        if result.is_safe:
            user.update_metrics(safe_websites=1)
        else:
            user.update_metrics(
                unsafe_urls=1,
                phishing_urls=1 if result.threat_type == "phishing" else 0,
                threat_urls=1 if result.threat_type == "suspicious" else 0,
                protection_warnings=1,
            )

    async def _publish_scan(
        self,
        user: Optional[User],
        scan_type: str,
        domain: str,
        is_safe: bool,
        threat_type: str,
        threat_level: str,
    ) -> None:
        if not self.queue:
            return
        event = AnalyticsEvent(
            event_type=EventType.SCAN,
            user_id=user.id if user else None,
            scan_type=scan_type,
            domain=domain,
            is_safe=is_safe,
            threat_type=threat_type,
            threat_level=threat_level,
        )
        if not await self.queue.publish(settings.queue_name, event):
            logger.warning("⚠️  Analytics event dropped for %s", domain)
