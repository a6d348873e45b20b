from __future__ import annotations

from typing import Optional

from .config_loader import MatchingConfig
from .models import Contact, MatchEvidence, MatchField
from .normalization import normalize_email, normalize_name, phone_key


def levenshtein(a: str, b: str) -> int:
    m, n = len(a), len(b)
    previous = list(range(n + 1))
    for i in range(1, m + 1):
        current = [i] + [0] * n
        for j in range(1, n + 1):
            if a[i - 1] == b[j - 1]:
                current[j] = previous[j - 1]
            else:
                current[j] = 1 + min(previous[j], current[j - 1], previous[j - 1])
        previous = current
    return previous[n]


def names_match(
    a: Optional[str], b: Optional[str], min_length: int = 4, max_distance: int = 2
) -> bool:
    na = normalize_name(a)
    nb = normalize_name(b)
    if not na or not nb:
        return False
    if na == nb:
        return True
    shorter, longer = (na, nb) if len(na) <= len(nb) else (nb, na)
    if len(shorter) >= min_length and shorter in longer:
        return True
    return len(shorter) >= min_length and levenshtein(na, nb) <= max_distance


def exact_match(a: Contact, b: Contact, min_phone_digits: int = 7) -> Optional[MatchEvidence]:
    email_a = normalize_email(a.email)
    if email_a and email_a == normalize_email(b.email):
        return MatchEvidence.exact(MatchField.EMAIL)
    phone_a = phone_key(a.phone, min_phone_digits)
    if phone_a and phone_a == phone_key(b.phone, min_phone_digits):
        return MatchEvidence.exact(MatchField.PHONE)
    return None


class MatchEvaluator:
    """Pairwise duplicate decision: exact identifiers first, fuzzy name second."""

    def __init__(self, config: Optional[MatchingConfig] = None):
        self.config = config or MatchingConfig()

    def names_match(self, a: Optional[str], b: Optional[str]) -> bool:
        return names_match(
            a,
            b,
            min_length=self.config.fuzzy_min_length,
            max_distance=self.config.max_edit_distance,
        )

    def exact(self, a: Contact, b: Contact) -> Optional[MatchEvidence]:
        return exact_match(a, b, self.config.min_phone_digits)

    def compare(self, a: Contact, b: Contact) -> Optional[MatchEvidence]:
        evidence = self.exact(a, b)
        if evidence is not None:
            return evidence
        if self.names_match(a.name, b.name):
            return MatchEvidence.possible()
        return None


def match_contacts(
    a: Contact, b: Contact, config: Optional[MatchingConfig] = None
) -> Optional[MatchEvidence]:
    return MatchEvaluator(config).compare(a, b)
