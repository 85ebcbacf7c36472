"""
Registration, login and bearer-token lifecycle.

Tokens are HS256 JWTs carrying `userId`, `email` and a `jti`. A token is
accepted only while its jti has a row in `auth_tokens`, which is how
logout and password changes revoke sessions before expiry.
"""

import logging
import math
import uuid
from datetime import timedelta
from typing import Optional, Tuple

import bcrypt
import jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from phishnet_app.config import settings
from phishnet_app.database.connection import utcnow
from phishnet_app.models.user import AuthToken, LoginIPAddress, User
from phishnet_app.queue.models import AnalyticsEvent, EventType
from phishnet_app.queue.strategies import QueueStrategy
from phishnet_app.schemas.auth import LoginRequest, RegisterRequest
from phishnet_app.services.errors import (
    AccountLockedError,
    AuthenticationError,
    ConflictError,
    ValidationError,
)
from phishnet_app.services.validators import (
    is_valid_email,
    validate_password,
    validate_user_fields,
)

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


def decode_token(token: str) -> dict:
    """
    Verify signature and expiry.

    Raises:
        AuthenticationError: token expired or invalid
    """
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")


class AuthService:
    """Account creation, credential checks and token issuing."""

    def __init__(self, db: Session, queue: Optional[QueueStrategy] = None):
        self.db = db
        self.queue = queue

    def issue_token(self, user: User) -> str:
        """Sign a new JWT for `user` and record its jti."""
        now = utcnow()
        expires_at = now + timedelta(days=settings.jwt_expiry_days)
        jti = uuid.uuid4().hex
        payload = {
            "userId": user.id,
            "email": user.email,
            "jti": jti,
            "iat": now,
            "exp": expires_at,
        }
        token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)

        self.db.add(AuthToken(jti=jti, user_id=user.id, created_at=now, expires_at=expires_at))
        self.db.commit()
        return token

    def authenticate_token(self, token: str) -> Tuple[User, str]:
        """
        Resolve a bearer token to its user.

        Returns:
            (user, jti)

        Raises:
            AuthenticationError: invalid, expired or revoked token, or unknown user
        """
        payload = decode_token(token)
        user = self.db.query(User).filter(User.id == payload.get("userId")).first()
        if not user:
            raise AuthenticationError("User not found")

        jti = payload.get("jti")
        record = self.db.query(AuthToken).filter(
            AuthToken.jti == jti,
            AuthToken.user_id == user.id
        ).first()
        if not record or record.expires_at <= utcnow():
            raise AuthenticationError("Invalid or expired token")

        return user, jti

    def _email_taken(self, email: str) -> bool:
        return self.db.query(User.id).filter(User.email == email).first() is not None

    async def register(self, data: RegisterRequest) -> Tuple[User, str]:
        if not all([data.first_name, data.last_name, data.email, data.password, data.confirm_password]):
            raise ValidationError("All fields are required")

        if not is_valid_email(data.email):
            raise ValidationError("Invalid email format")

        if data.password != data.confirm_password:
            raise ValidationError("Passwords do not match")

        is_valid, errors = validate_password(data.password)
        if not is_valid:
            raise ValidationError("Password does not meet requirements", errors=errors)

        email = data.email.strip().lower()
        field_errors = validate_user_fields(data.first_name, data.last_name, email)
        if field_errors:
            raise ValidationError(field_errors[0], errors=field_errors)

        if self._email_taken(email):
            raise ConflictError("Email already registered")

        # bcrypt is CPU-bound; keep it off the event loop
        password_hash = await run_in_threadpool(hash_password, data.password)

        user = User(
            first_name=data.first_name.strip(),
            last_name=data.last_name.strip(),
            email=email,
            password_hash=password_hash,
            is_verified=True,  # No email verification flow
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration for the same email
            self.db.rollback()
            raise ConflictError("Email already registered")
        self.db.refresh(user)
        logger.info("👤 Registered user %s", user.id)

        token = self.issue_token(user)

        if self.queue:
            await self.queue.publish(
                settings.queue_name,
                AnalyticsEvent(event_type=EventType.USER_REGISTERED, user_id=user.id)
            )

        return user, token

    def login(self, data: LoginRequest, client_ip: Optional[str] = None) -> Tuple[User, str]:
        if not data.email or not data.password:
            raise ValidationError("Email and password are required")

        user = self.db.query(User).filter(User.email == data.email.strip().lower()).first()
        if not user:
            raise AuthenticationError("Invalid email or password")

        if user.is_account_locked():
            minutes_left = math.ceil((user.account_locked_until - utcnow()).total_seconds() / 60)
            raise AccountLockedError(f"Account is locked. Try again in {minutes_left} minutes")

        if not verify_password(data.password, user.password_hash):
            user.login_attempts = (user.login_attempts or 0) + 1

            if user.login_attempts >= settings.max_login_attempts:
                user.lock_account(settings.account_lock_minutes)
                self.db.commit()
                logger.warning("🔒 Locked account %s after %s failed logins", user.id, user.login_attempts)
                raise AccountLockedError(
                    f"Too many failed login attempts. Account locked for {settings.account_lock_minutes} minutes."
                )

            self.db.commit()
            raise AuthenticationError(
                "Invalid email or password",
                extra={"attemptsLeft": settings.max_login_attempts - user.login_attempts},
            )

        user.unlock_account()
        user.last_login = utcnow()
        if client_ip:
            self._track_ip(user, client_ip)
        self.db.commit()

        return user, self.issue_token(user)

    def _track_ip(self, user: User, ip: str) -> None:
        entry = next((item for item in user.ip_addresses if item.ip == ip), None)
        if entry:
            entry.last_seen = utcnow()
        else:
            user.ip_addresses.append(LoginIPAddress(ip=ip, last_seen=utcnow()))

    def logout(self, user: User, jti: str) -> None:
        self.db.query(AuthToken).filter(
            AuthToken.user_id == user.id,
            AuthToken.jti == jti
        ).delete()
        self.db.commit()

    def purge_expired_tokens(self) -> int:
        deleted = self.db.query(AuthToken).filter(AuthToken.expires_at <= utcnow()).delete()
        self.db.commit()
        return deleted
