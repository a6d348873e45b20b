from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .common import ensure_contact, ensure_parsed_contact
from .config_loader import MatchingConfig
from .matching import MatchEvaluator
from .models import (
    BatchDedupResult,
    Contact,
    DedupMatch,
    ImportAction,
    ImportEntry,
    ImportPlan,
    MatchEvidence,
    MatchField,
    ParsedContact,
)
from .normalization import normalize_email, normalize_name, normalize_phone, phone_key

logger = logging.getLogger(__name__)


def dedupe_batch(parsed: Iterable[Any]) -> BatchDedupResult:
    """Drop records that repeat an earlier record of the same batch.

    Email collisions are checked when the record has an email, phone
    collisions when it has a phone, and the name is only used for records
    carrying neither. The first occurrence is kept.
    """
    result = BatchDedupResult()
    seen_emails: set[str] = set()
    seen_phones: set[str] = set()
    seen_names: set[str] = set()
    for item in parsed:
        record = ensure_parsed_contact(item)
        email = normalize_email(record.email)
        phone = normalize_phone(record.phone)
        name = normalize_name(record.name) if not (email or phone) else ""

        if (email and email in seen_emails) or (phone and phone in seen_phones) or (
            name and name in seen_names
        ):
            result.dropped.append(record)
            continue

        if email:
            seen_emails.add(email)
        if phone:
            seen_phones.add(phone)
        if name:
            seen_names.add(name)
        result.kept.append(record)

    if result.dropped:
        logger.info(
            "Dropped %d in-batch duplicate(s), %d record(s) remain",
            result.dropped_count,
            len(result.kept),
        )
    return result


def build_lookup_maps(
    existing: Sequence[Contact], min_phone_digits: int = 7
) -> Tuple[Dict[str, Contact], Dict[str, Contact]]:
    by_email: Dict[str, Contact] = {}
    by_phone: Dict[str, Contact] = {}
    for contact in existing:
        email = normalize_email(contact.email)
        if email:
            by_email[email] = contact
        phone = phone_key(contact.phone, min_phone_digits)
        if phone:
            by_phone[phone] = contact
    return by_email, by_phone


class ImportMatcher:
    """Classify freshly parsed records against the stored corpus."""

    def __init__(self, existing: Iterable[Any], config: Optional[MatchingConfig] = None):
        self.config = config or MatchingConfig()
        self.evaluator = MatchEvaluator(self.config)
        self.existing: List[Contact] = [ensure_contact(item) for item in existing]
        self.by_email, self.by_phone = build_lookup_maps(
            self.existing, self.config.min_phone_digits
        )

    def find_match(self, record: ParsedContact) -> Optional[DedupMatch]:
        email = normalize_email(record.email)
        if email and email in self.by_email:
            return DedupMatch(self.by_email[email], MatchEvidence.exact(MatchField.EMAIL))

        phone = phone_key(record.phone, self.config.min_phone_digits)
        if phone and phone in self.by_phone:
            return DedupMatch(self.by_phone[phone], MatchEvidence.exact(MatchField.PHONE))

        # First name hit wins, not the closest one.
        for contact in self.existing:
            if self.evaluator.names_match(record.name, contact.name):
                return DedupMatch(contact, MatchEvidence.possible())
        return None

    def classify(self, record: ParsedContact) -> ImportEntry:
        match = self.find_match(record)
        action = ImportAction.SKIP if match is not None else ImportAction.CREATE
        return ImportEntry(parsed=record, match=match, action=action)


def find_import_duplicates(
    parsed: Iterable[Any], existing: Iterable[Any], config: Optional[MatchingConfig] = None
) -> ImportPlan:
    batch = dedupe_batch(parsed)
    matcher = ImportMatcher(existing, config)
    entries = [matcher.classify(record) for record in batch.kept]
    plan = ImportPlan(entries=entries, dropped_in_batch=batch.dropped_count)
    logger.info(
        "Import plan: %d to create, %d duplicate(s) of stored contacts, %d dropped in batch",
        len(plan.to_create),
        len(plan.to_skip),
        plan.dropped_in_batch,
    )
    return plan
