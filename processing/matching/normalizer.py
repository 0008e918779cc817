"""
Canonical forms of names, emails and phone numbers for comparison.
"""

import re
from typing import Optional

from rapidfuzz.distance import Levenshtein


def normalize_name(name: Optional[str]) -> str:
    """
    Normalize a person name for comparison.

    - Lowercase
    - Replace punctuation with spaces
    - Collapse whitespace
    """
    if not name:
        return ""
    normalized = name.lower()
    normalized = re.sub(r"[^\w\s]", " ", normalized)
    normalized = re.sub(r"\s+", " ", normalized).strip()
    return normalized


def normalize_phone(phone: Optional[str]) -> str:
    """
    Reduce a phone number to digits with a US country code.

    10 digits get a leading "1", 11 digits starting with "1" are kept.
    Anything else comes back as the bare digit string.
    """
    if not phone:
        return ""
    digits = re.sub(r"\D", "", phone)
    if len(digits) == 10:
        return f"1{digits}"
    return digits


def normalize_email(email: Optional[str]) -> str:
    if not email:
        return ""
    return email.strip().lower()


def split_email(email: Optional[str]) -> tuple[str, str]:
    """Split a normalized email into (local part, domain)."""
    local, _, domain = normalize_email(email).partition("@")
    return local, domain


def mail_provider(domain: str) -> str:
    """First label of a domain, e.g. "gmail" for "gmail.com"."""
    return domain.split(".")[0] if domain else ""


def format_phone(phone: Optional[str]) -> str:
    """Human readable US phone number; other formats are returned unchanged."""
    if not phone:
        return ""
    digits = re.sub(r"\D", "", phone)
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+1 ({digits[1:4]}) {digits[4:7]}-{digits[7:]}"
    return phone


def similarity(a: str, b: str) -> float:
    """
    Edit-distance similarity in [0, 1].

    (max_len - levenshtein) / max_len, with unit costs for insert, delete
    and substitute. Empty input on either side scores 0.0.
    """
    if not a or not b:
        return 0.0
    max_len = max(len(a), len(b))
    return (max_len - Levenshtein.distance(a, b)) / max_len
