"""
Service-layer error taxonomy.

Services raise these; the handler registered in main.py turns them into
the `{success: false, message, ...}` envelope with the matching status.
"""

from typing import Any, Dict, List, Optional


class ServiceError(Exception):
    status_code = 500

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.errors = errors
        self.extra = extra or {}


class ValidationError(ServiceError):
    status_code = 400


class AuthenticationError(ServiceError):
    status_code = 401


class PermissionDeniedError(ServiceError):
    status_code = 403


class ConflictError(ServiceError):
    status_code = 409


class AccountLockedError(ServiceError):
    status_code = 429
