"""
FastAPI dependencies for dependency injection.

Provides the cache and queue singletons, the service objects built on top
of them, and the bearer-token authentication dependencies.
"""

from functools import lru_cache
from typing import NamedTuple, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from phishnet_app.cache.factory import CacheFactory, CacheBackend
from phishnet_app.cache.strategies import CacheStrategy
from phishnet_app.config import settings
from phishnet_app.database.connection import get_db
from phishnet_app.models.user import User
from phishnet_app.queue.factory import QueueFactory, QueueBackend
from phishnet_app.queue.strategies import QueueStrategy
from phishnet_app.services.analytics_service import AnalyticsService
from phishnet_app.services.auth_service import AuthService
from phishnet_app.services.blog_service import BlogService
from phishnet_app.services.chatbot_service import ChatbotService
from phishnet_app.services.errors import AuthenticationError, PermissionDeniedError
from phishnet_app.services.scan_service import ScanService
from phishnet_app.services.user_service import UserService


@lru_cache()
def get_cache() -> CacheStrategy:
    """
    Get cache instance (singleton).

    Returns:
        CacheStrategy instance based on settings
    """
    backend = CacheBackend(settings.cache_backend)
    return CacheFactory.create(backend)


@lru_cache()
def get_queue() -> QueueStrategy:
    """
    Get queue instance (singleton).

    Returns:
        QueueStrategy instance based on settings
    """
    backend = QueueBackend(settings.queue_backend)
    return QueueFactory.create(backend)


def get_auth_service(
    db: Session = Depends(get_db),
    queue: QueueStrategy = Depends(get_queue)
) -> AuthService:
    return AuthService(db=db, queue=queue)


def get_scan_service(
    db: Session = Depends(get_db),
    queue: QueueStrategy = Depends(get_queue)
) -> ScanService:
    return ScanService(db=db, queue=queue)


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db=db)


def get_analytics_service(db: Session = Depends(get_db)) -> AnalyticsService:
    return AnalyticsService(db=db)


def get_blog_service(cache: CacheStrategy = Depends(get_cache)) -> BlogService:
    return BlogService(cache=cache)


def get_chatbot_service() -> ChatbotService:
    return ChatbotService(api_key=settings.gemini_api_key)


# ---- authentication ----

class AuthContext(NamedTuple):
    user: User
    jti: str


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_auth_context(
    authorization: Optional[str] = Header(None),
    auth_service: AuthService = Depends(get_auth_service)
) -> AuthContext:
    """
    Resolve the `Authorization: Bearer <token>` header.

    Raises:
        AuthenticationError: missing, invalid, expired or revoked token
    """
    token = _bearer_token(authorization)
    if not token:
        raise AuthenticationError("No authentication token, access denied")
    user, jti = auth_service.authenticate_token(token)
    return AuthContext(user=user, jti=jti)


def get_current_user(context: AuthContext = Depends(get_auth_context)) -> User:
    return context.user


def get_optional_user(
    authorization: Optional[str] = Header(None),
    auth_service: AuthService = Depends(get_auth_service)
) -> Optional[User]:
    """Like get_current_user, but anonymous callers get None instead of a 401."""
    token = _bearer_token(authorization)
    if not token:
        return None
    try:
        user, _ = auth_service.authenticate_token(token)
    except AuthenticationError:
        return None
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise PermissionDeniedError("Admin privileges required")
    return user
