import logging
import math
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from phishnet_app.database.connection import utcnow
from phishnet_app.models.scan_history import URLCheckHistory
from phishnet_app.models.user import AuthToken, User
from phishnet_app.schemas.common import Pagination
from phishnet_app.schemas.user import (
    HistoryPage,
    HistoryRecord,
    PasswordUpdate,
    PreferencesUpdate,
    ProfileUpdate,
    ThreatStats,
    UserMetrics,
    UserStatsData,
)
from phishnet_app.services.auth_service import hash_password, verify_password
from phishnet_app.services.errors import AuthenticationError, ConflictError, ValidationError
from phishnet_app.services.validators import is_valid_email, validate_name, validate_password

logger = logging.getLogger(__name__)

MAX_ACTIVITY_ITEMS = 50


class UserService:
    """Profile, preferences and scan history of the signed-in user."""

    def __init__(self, db: Session):
        self.db = db

    def update_profile(self, user: User, data: ProfileUpdate) -> User:
        # Only fields that were provided (and non-empty) are changed
        if data.first_name:
            error = validate_name(data.first_name, "First name")
            if error:
                raise ValidationError(error)
            user.first_name = data.first_name.strip()

        if data.last_name:
            error = validate_name(data.last_name, "Last name")
            if error:
                raise ValidationError(error)
            user.last_name = data.last_name.strip()

        if data.email:
            email = data.email.strip().lower()
            if not is_valid_email(email):
                raise ValidationError("Invalid email format")

            if self._email_taken(email, user.id):
                raise ConflictError("Email already in use")
            user.email = email

        try:
            self.db.commit()
        except IntegrityError:
            # Another account claimed the email after the check above
            self.db.rollback()
            raise ConflictError("Email already in use")
        self.db.refresh(user)
        return user

    def _email_taken(self, email: str, user_id: int) -> bool:
        return self.db.query(User.id).filter(User.email == email, User.id != user_id).first() is not None

    def change_password(self, user: User, data: PasswordUpdate) -> None:
        """Replace the password and revoke every issued token."""
        if not data.current_password or not data.new_password or not data.confirm_password:
            raise ValidationError("All password fields are required")

        if data.new_password != data.confirm_password:
            raise ValidationError("New passwords do not match")

        if not verify_password(data.current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")

        is_valid, errors = validate_password(data.new_password)
        if not is_valid:
            raise ValidationError("New password does not meet requirements", errors=errors)

        if verify_password(data.new_password, user.password_hash):
            raise ValidationError("New password must be different from current password")

        user.password_hash = hash_password(data.new_password)
        self.db.query(AuthToken).filter(AuthToken.user_id == user.id).delete()
        self.db.commit()
        logger.info("🔑 Password changed for user %s, sessions revoked", user.id)

    def update_preferences(self, user: User, data: PreferencesUpdate) -> dict:
        for field, value in data.model_dump(exclude_none=True).items():
            setattr(user, field, bool(value))
        self.db.commit()
        self.db.refresh(user)
        return user.preferences

    def get_history(
        self,
        user: User,
        page: int = 1,
        limit: int = 20,
        threat_type: Optional[str] = None,
        is_safe: Optional[bool] = None,
    ) -> HistoryPage:
        """Newest-first page of the user's scan records."""
        page = max(page, 1)
        limit = max(limit, 1)

        query = self.db.query(URLCheckHistory).filter(URLCheckHistory.user_id == user.id)
        if threat_type:
            query = query.filter(URLCheckHistory.threat_type == threat_type)
        if is_safe is not None:
            query = query.filter(URLCheckHistory.is_safe == is_safe)

        total = query.count()
        records = (
            query.order_by(URLCheckHistory.checked_at.desc(), URLCheckHistory.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        return HistoryPage(
            history=[HistoryRecord.model_validate(record) for record in records],
            pagination=Pagination(
                total=total,
                page=page,
                limit=limit,
                pages=math.ceil(total / limit),
            ),
        )

    def threat_stats(self, user: User) -> ThreatStats:
        """Aggregate counts over every stored record of `user`."""
        row = self.db.query(
            func.count(URLCheckHistory.id),
            func.sum(case((URLCheckHistory.is_safe.is_(True), 1), else_=0)),
            func.sum(case((URLCheckHistory.is_safe.is_(False), 1), else_=0)),
            func.sum(case((URLCheckHistory.threat_type == "phishing", 1), else_=0)),
            func.sum(case((URLCheckHistory.threat_type == "malware", 1), else_=0)),
            func.sum(case((URLCheckHistory.user_warned.is_(True), 1), else_=0)),
        ).filter(URLCheckHistory.user_id == user.id).one()

        total, safe, unsafe, phishing, malware, warned = row
        return ThreatStats(
            total_checks=total or 0,
            safe_urls=safe or 0,
            unsafe_urls=unsafe or 0,
            phishing_detected=phishing or 0,
            malware_detected=malware or 0,
            warnings_triggered=warned or 0,
        )

    def get_stats(self, user: User) -> UserStatsData:
        return UserStatsData(
            stats=self.threat_stats(user),
            user_metrics=UserMetrics.model_validate(user),
        )

    def has_email_scans(self, user: User) -> bool:
        return self.db.query(URLCheckHistory.id).filter(
            URLCheckHistory.user_id == user.id,
            URLCheckHistory.scan_type == "email",
        ).first() is not None

    def delete_account(self, user: User, password: Optional[str]) -> None:
        """Delete the user together with their history, tokens and IPs."""
        if not password:
            raise ValidationError("Password is required to delete account")
        if not verify_password(password, user.password_hash):
            raise AuthenticationError("Password is incorrect")

        user_id = user.id
        self.db.query(URLCheckHistory).filter(URLCheckHistory.user_id == user_id).delete()
        self.db.delete(user)
        self.db.commit()
        logger.info("🗑️  Deleted account %s", user_id)

    def recent_activity(self, user: User, days: int = 7) -> List[URLCheckHistory]:
        since = utcnow() - timedelta(days=days)
        return (
            self.db.query(URLCheckHistory)
            .filter(
                URLCheckHistory.user_id == user.id,
                URLCheckHistory.checked_at >= since,
            )
            .order_by(URLCheckHistory.checked_at.desc(), URLCheckHistory.id.desc())
            .limit(MAX_ACTIVITY_ITEMS)
            .all()
        )
