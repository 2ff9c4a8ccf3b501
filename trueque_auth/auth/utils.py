from __future__ import annotations

import re
from datetime import datetime, timezone

from passlib.context import CryptContext

from trueque_auth.auth.constants import BCRYPT_ROUNDS, PHONE_SEPARATORS

context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=BCRYPT_ROUNDS,
)


def hash_password(password: str) -> str:
    return context.hash(password)


def verify_password(plain: str, hashed: str | None) -> bool:
    """An account without a password hash can only sign in with an OTP."""
    if not hashed:
        return False
    try:
        return context.verify(plain, hashed)
    except ValueError:
        # malformed or unknown hash format
        return False


def clean_identifier(value: str | None) -> str | None:
    """Blank strings are treated as absent."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def normalize_email(value: str | None) -> str | None:
    value = clean_identifier(value)
    return value.lower() if value else None


def normalize_phone(value: str | None) -> str | None:
    value = clean_identifier(value)
    return re.sub(PHONE_SEPARATORS, "", value) if value else None


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def mask_identifier(value: str | None) -> str:
    """Log-safe form of an email or phone number."""
    if not value:
        return "-"
    if "@" in value:
        local, _, domain = value.partition("@")
        return f"{local[:2]}***@{domain}"
    return f"{value[:3]}***{value[-2:]}"
