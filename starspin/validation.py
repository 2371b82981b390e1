"""Input validation helpers shared by the workflows."""

from __future__ import annotations

import hashlib
import os
import re
import uuid
from typing import Optional

from dotenv import load_dotenv

_PHONE_RE = re.compile(r"^\+?[1-9]\d{7,14}$")
_PHONE_SEPARATORS = re.compile(r"[\s().-]")


def is_valid_uuid(value: Optional[str]) -> bool:
    """Return ``True`` when ``value`` is a canonical UUID string."""
    if not value or not isinstance(value, str):
        return False
    try:
        return str(uuid.UUID(value)) == value.lower()
    except ValueError:
        return False


def normalize_phone(value: str) -> str:
    """Strip spaces, dots, dashes and parentheses from a phone number."""
    return _PHONE_SEPARATORS.sub("", value.strip())


def is_valid_phone(value: Optional[str]) -> bool:
    """Accept international numbers of 8 to 15 digits with an optional ``+``."""
    if not value or not isinstance(value, str):
        return False
    return bool(_PHONE_RE.match(normalize_phone(value)))


def mask_phone(value: str) -> str:
    """Hide all but the last three digits of a phone number for logs."""
    digits = normalize_phone(value)
    if len(digits) <= 3:
        return "***"
    return "*" * (len(digits) - 3) + digits[-3:]


def hash_ip(ip: Optional[str], salt: Optional[str] = None) -> Optional[str]:
    """Return a salted SHA-256 hex digest of a client IP address.

    The salt defaults to the ``STARSPIN_IP_SALT`` environment variable.
    """
    if not ip:
        return None
    if salt is None:
        load_dotenv()
        salt = os.getenv("STARSPIN_IP_SALT", "")
    return hashlib.sha256(f"{salt}:{ip.strip()}".encode("utf-8")).hexdigest()


__all__ = ["hash_ip", "is_valid_phone", "is_valid_uuid", "mask_phone", "normalize_phone"]
