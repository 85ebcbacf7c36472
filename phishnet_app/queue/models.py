"""
Data models for queue messages.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class EventType(str, Enum):
    SCAN = "scan"
    USER_REGISTERED = "user_registered"


class AnalyticsEvent(BaseModel):
    """
    Event model for platform analytics.

    Published by request handlers (a scan finished, a user signed up) and
    folded into the platform aggregate by the analytics worker.
    """

    event_type: EventType = Field(..., description="What happened")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When it happened"
    )
    user_id: Optional[int] = Field(None, description="Signed-in user, if any")

    # Scan outcome (event_type == scan)
    scan_type: Optional[str] = Field(None, description="url or email")
    domain: Optional[str] = Field(None, description="Scanned domain")
    is_safe: Optional[bool] = Field(None, description="Scorer verdict")
    threat_type: Optional[str] = Field(None, description="safe, suspicious, phishing, ...")
    threat_level: Optional[str] = Field(None, description="safe, low, medium, high, critical")

    # Set by the queue on consume, used for acknowledgment
    message_id: Optional[str] = Field(None, exclude=True)

    model_config = {
        "json_schema_extra": {
            "example": {
                "event_type": "scan",
                "timestamp": "2025-10-29T10:30:00Z",
                "user_id": 1,
                "scan_type": "url",
                "domain": "192.168.1.1",
                "is_safe": False,
                "threat_type": "suspicious",
                "threat_level": "medium",
            }
        }
    }
