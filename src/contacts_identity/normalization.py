from __future__ import annotations

import re
import unicodedata
from typing import Optional

_NON_NAME_CHARS = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")
_NON_DIGITS = re.compile(r"\D")


def normalize_name(value: Optional[str]) -> str:
    """Lowercase, strip diacritics and punctuation, collapse whitespace."""
    s = (value or "").lower()
    if not s:
        return ""
    s = unicodedata.normalize("NFD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = _NON_NAME_CHARS.sub("", s)
    return _WHITESPACE.sub(" ", s).strip()


def normalize_phone(value: Optional[str]) -> str:
    """Digits only, keeping a leading ``+`` when the input had one.

    Purely syntactic: ``+14155550100`` and ``14155550100`` are different keys.
    """
    s = (value or "").strip()
    digits = _NON_DIGITS.sub("", s)
    if not digits:
        return ""
    if s.startswith("+"):
        return "+" + digits
    return digits


def phone_digit_count(key: str) -> int:
    return len(key.lstrip("+"))


def phone_key(value: Optional[str], min_digits: int = 7) -> str:
    """Normalized phone, or ``""`` when it is too short to identify anyone."""
    key = normalize_phone(value)
    return key if phone_digit_count(key) >= min_digits else ""


def normalize_email(value: Optional[str]) -> str:
    return (value or "").strip().lower()
