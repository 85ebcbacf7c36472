"""
Input validation helpers shared by the auth, user and scan routes.
"""

import re
from typing import List, Optional, Tuple
from urllib.parse import urlsplit

EMAIL_REGEX = re.compile(r"^\w+([.-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,3})+$")
PASSWORD_SPECIAL_CHARS = "!@#$%^&*"
PASSWORD_MAX_BYTES = 72  # bcrypt refuses longer input
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50


def is_valid_email(email: str) -> bool:
    return bool(email) and EMAIL_REGEX.match(email) is not None


def validate_password(password: str) -> Tuple[bool, List[str]]:
    """Check password strength; returns (is_valid, errors)."""
    errors = []

    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        errors.append(f"Password cannot be longer than {PASSWORD_MAX_BYTES} bytes")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", password):
        errors.append("Password must contain at least one number")
    if not any(char in PASSWORD_SPECIAL_CHARS for char in password):
        errors.append(f"Password must contain at least one special character ({PASSWORD_SPECIAL_CHARS})")

    return len(errors) == 0, errors


def validate_name(value: Optional[str], label: str) -> Optional[str]:
    """Return an error message for an invalid first/last name, else None."""
    if not isinstance(value, str) or len(value.strip()) < NAME_MIN_LENGTH:
        return f"{label} must be at least {NAME_MIN_LENGTH} characters"
    if len(value.strip()) > NAME_MAX_LENGTH:
        return f"{label} cannot exceed {NAME_MAX_LENGTH} characters"
    return None


def validate_user_fields(first_name: str, last_name: str, email: str) -> List[str]:
    """Explicit validation for a User row before it is persisted."""
    errors = []
    for value, label in ((first_name, "First name"), (last_name, "Last name")):
        error = validate_name(value, label)
        if error:
            errors.append(error)
    if not is_valid_email(email):
        errors.append("Please provide a valid email address")
    return errors


def is_valid_url(url: str) -> bool:
    """An absolute URL with both a scheme and a host."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc and parts.hostname)


def sanitize_url(url: str) -> str:
    return url.strip().lower()
