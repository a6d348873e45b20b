from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .common import ensure_contact
from .config_loader import MatchingConfig
from .matching import MatchEvaluator
from .models import Contact, DuplicateGroup, MatchEvidence, MatchField
from .normalization import normalize_email, phone_key

logger = logging.getLogger(__name__)

PairKey = Tuple[str, str]


class DisjointSet:
    """Union-find over dense indices ``0..size-1``."""

    def __init__(self, size: int):
        self.parent = list(range(size))
        self.rank = [0] * size

    def find(self, x: int) -> int:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, a: int, b: int) -> bool:
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return False
        if self.rank[root_a] < self.rank[root_b]:
            root_a, root_b = root_b, root_a
        self.parent[root_b] = root_a
        if self.rank[root_a] == self.rank[root_b]:
            self.rank[root_a] += 1
        return True


def _pair_key(a: str, b: str) -> PairKey:
    return (a, b) if a <= b else (b, a)


def strongest_evidence(pairs: Iterable[MatchEvidence]) -> MatchEvidence:
    """Exact evidence outranks possible; a later pair of equal rank replaces an earlier one."""
    best = MatchEvidence.possible()
    for info in pairs:
        if info.is_exact or not best.is_exact:
            best = info
    return best


class DuplicateClusterer:
    def __init__(self, contacts: Iterable[Any], config: Optional[MatchingConfig] = None):
        self.config = config or MatchingConfig()
        self.evaluator = MatchEvaluator(self.config)
        self.contacts: List[Contact] = []
        seen: set[str] = set()
        for item in contacts:
            contact = ensure_contact(item)
            if contact.id in seen:
                logger.debug("Ignoring repeated contact id %s", contact.id)
                continue
            seen.add(contact.id)
            self.contacts.append(contact)
        self.sets = DisjointSet(len(self.contacts))
        self.evidence: Dict[PairKey, MatchEvidence] = {}
        self.matched: set[int] = set()

    def _record(self, i: int, j: int, evidence: MatchEvidence) -> None:
        self.sets.union(i, j)
        key = _pair_key(self.contacts[i].id, self.contacts[j].id)
        self.evidence.setdefault(key, evidence)

    def _union_buckets(self, buckets: Dict[str, List[int]], match_field: MatchField) -> None:
        evidence = MatchEvidence.exact(match_field)
        for indices in buckets.values():
            if len(indices) < 2:
                continue
            first = indices[0]
            for other in indices[1:]:
                self._record(first, other, evidence)
                self.matched.add(first)
                self.matched.add(other)

    def _exact_pass(self) -> None:
        email_buckets: Dict[str, List[int]] = defaultdict(list)
        phone_buckets: Dict[str, List[int]] = defaultdict(list)
        for idx, contact in enumerate(self.contacts):
            email = normalize_email(contact.email)
            if email:
                email_buckets[email].append(idx)
            phone = phone_key(contact.phone, self.config.min_phone_digits)
            if phone:
                phone_buckets[phone].append(idx)
        self._union_buckets(email_buckets, MatchField.EMAIL)
        self._union_buckets(phone_buckets, MatchField.PHONE)

    def _fuzzy_pass(self) -> None:
        # Contacts already tied by email/phone never take part in name matching.
        unmatched = [idx for idx in range(len(self.contacts)) if idx not in self.matched]
        possible = MatchEvidence.possible()
        for pos, i in enumerate(unmatched):
            name_i = self.contacts[i].name
            for j in unmatched[pos + 1 :]:
                if self.evaluator.names_match(name_i, self.contacts[j].name):
                    logger.debug(
                        "Possible duplicate by name: %s ~ %s",
                        self.contacts[i].id,
                        self.contacts[j].id,
                    )
                    self._record(i, j, possible)

    def _group_evidence(self, members: List[Contact]) -> MatchEvidence:
        pairs = (
            self.evidence.get(_pair_key(members[i].id, members[j].id))
            for i in range(len(members))
            for j in range(i + 1, len(members))
        )
        return strongest_evidence(info for info in pairs if info is not None)

    def groups(self) -> List[DuplicateGroup]:
        self._exact_pass()
        self._fuzzy_pass()

        by_root: Dict[int, List[Contact]] = defaultdict(list)
        for idx, contact in enumerate(self.contacts):
            by_root[self.sets.find(idx)].append(contact)

        result: List[DuplicateGroup] = []
        for members in by_root.values():
            if len(members) < 2:
                continue
            result.append(
                DuplicateGroup(
                    id="-".join(sorted(member.id for member in members)),
                    contacts=members,
                    evidence=self._group_evidence(members),
                )
            )
        result.sort(key=lambda group: group.size, reverse=True)
        logger.info(
            "Found %d duplicate group(s) across %d contact(s) (%d exact-matched)",
            len(result),
            len(self.contacts),
            len(self.matched),
        )
        return result


def find_duplicate_groups(
    contacts: Iterable[Any], config: Optional[MatchingConfig] = None
) -> List[DuplicateGroup]:
    """Cluster a contact corpus into duplicate groups of two or more records.

    Email and phone buckets are unioned first and count as exact evidence.
    Only contacts that matched nothing exactly are then compared pairwise by
    name, so a contact tied to a peer by email is never fuzzy-linked to a
    third record. Groups come back largest first.
    """
    return DuplicateClusterer(contacts, config).groups()
