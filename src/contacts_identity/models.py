from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def snake_key(key: str) -> str:
    """``lastContactedAt`` -> ``last_contacted_at``; snake_case keys pass through."""
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _str_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


CONTACT_CORE_FIELDS: Tuple[str, ...] = (
    "id",
    "name",
    "email",
    "phone",
    "user_id",
    "is_self",
    "tags",
    "created_at",
    "updated_at",
)


@dataclass
class Contact:
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    user_id: Optional[str] = None
    is_self: bool = False
    tags: List[str] = field(default_factory=list)
    created_at: Any = None
    updated_at: Any = None
    profile: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, payload: Dict[str, Any]) -> "Contact":
        data = {snake_key(str(key)): value for key, value in payload.items()}
        profile = dict(data.pop("profile", None) or {})
        for key in list(data):
            if key not in CONTACT_CORE_FIELDS:
                profile[key] = data.pop(key)
        return cls(
            id=str(data.get("id", "") or "").strip(),
            name=str(data.get("name", "") or "").strip(),
            email=_opt_str(data.get("email")),
            phone=_opt_str(data.get("phone")),
            user_id=_opt_str(data.get("user_id")),
            is_self=bool(data.get("is_self") or False),
            tags=_str_list(data.get("tags")),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            profile=profile,
        )

    def get(self, name: str, default: Any = None) -> Any:
        key = snake_key(name)
        if key in CONTACT_CORE_FIELDS:
            value = getattr(self, key)
        else:
            value = self.profile.get(key)
        return default if value is None else value

    def field_names(self) -> List[str]:
        return [*CONTACT_CORE_FIELDS, *self.profile.keys()]

    def with_changes(self, changes: Dict[str, Any]) -> "Contact":
        core: Dict[str, Any] = {}
        profile = dict(self.profile)
        for name, value in changes.items():
            key = snake_key(name)
            if key in CONTACT_CORE_FIELDS:
                core[key] = value
            else:
                profile[key] = value
        return replace(self, profile=profile, **core)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {name: getattr(self, name) for name in CONTACT_CORE_FIELDS}
        payload["tags"] = list(self.tags)
        payload.update(self.profile)
        return payload


PARSED_CONTACT_FIELDS: Tuple[str, ...] = (
    "company",
    "role",
    "city",
    "country",
    "address",
    "birthday",
    "website",
    "notes",
    "timezone",
    "gender",
    "telegram",
    "linkedin",
    "twitter",
    "instagram",
    "github",
)


@dataclass
class ParsedContact:
    """Parser output for one external record, before it touches storage."""

    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    role: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    address: Optional[str] = None
    birthday: Optional[str] = None
    website: Optional[str] = None
    notes: Optional[str] = None
    timezone: Optional[str] = None
    gender: Optional[str] = None
    telegram: Optional[str] = None
    linkedin: Optional[str] = None
    twitter: Optional[str] = None
    instagram: Optional[str] = None
    github: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, payload: Dict[str, Any]) -> "ParsedContact":
        data = {snake_key(str(key)): value for key, value in payload.items()}
        known = {"name", "email", "phone", "tags", "extra", *PARSED_CONTACT_FIELDS}
        extra = dict(data.get("extra", {}) or {})
        extra.update({key: value for key, value in data.items() if key not in known})
        return cls(
            name=str(data.get("name", "") or "").strip(),
            email=_opt_str(data.get("email")),
            phone=_opt_str(data.get("phone")),
            tags=_str_list(data.get("tags")),
            extra=extra,
            **{key: _opt_str(data.get(key)) for key in PARSED_CONTACT_FIELDS},
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": self.name, "email": self.email, "phone": self.phone}
        payload.update({key: getattr(self, key) for key in PARSED_CONTACT_FIELDS})
        payload["tags"] = list(self.tags)
        payload.update(self.extra)
        return payload


class MatchConfidence(str, Enum):
    EXACT = "exact"
    POSSIBLE = "possible"


class MatchField(str, Enum):
    EMAIL = "email"
    PHONE = "phone"
    NAME = "name"


_EXACT_FIELDS = (MatchField.EMAIL, MatchField.PHONE)


@dataclass(frozen=True)
class MatchEvidence:
    """Why two records were judged to be the same person.

    Exact evidence only ever comes from email or phone, possible evidence only
    from the name; any other pairing is rejected at construction.
    """

    confidence: MatchConfidence
    match_field: MatchField

    def __post_init__(self) -> None:
        if self.confidence is MatchConfidence.EXACT and self.match_field not in _EXACT_FIELDS:
            raise ValueError(f"exact evidence cannot come from {self.match_field.value!r}")
        if self.confidence is MatchConfidence.POSSIBLE and self.match_field is not MatchField.NAME:
            raise ValueError(f"possible evidence cannot come from {self.match_field.value!r}")

    @classmethod
    def exact(cls, match_field: MatchField) -> "MatchEvidence":
        return cls(MatchConfidence.EXACT, match_field)

    @classmethod
    def possible(cls) -> "MatchEvidence":
        return cls(MatchConfidence.POSSIBLE, MatchField.NAME)

    @property
    def is_exact(self) -> bool:
        return self.confidence is MatchConfidence.EXACT

    def to_dict(self) -> Dict[str, str]:
        return {"confidence": self.confidence.value, "matchField": self.match_field.value}


@dataclass
class DuplicateGroup:
    id: str
    contacts: List[Contact]
    evidence: MatchEvidence

    @property
    def confidence(self) -> MatchConfidence:
        return self.evidence.confidence

    @property
    def match_field(self) -> MatchField:
        return self.evidence.match_field

    @property
    def contact_ids(self) -> List[str]:
        return [contact.id for contact in self.contacts]

    @property
    def size(self) -> int:
        return len(self.contacts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "contacts": [contact.to_dict() for contact in self.contacts],
            **self.evidence.to_dict(),
        }


class ImportAction(str, Enum):
    CREATE = "create"
    SKIP = "skip"


@dataclass(frozen=True)
class DedupMatch:
    existing_contact: Contact
    evidence: MatchEvidence


@dataclass
class ImportEntry:
    parsed: ParsedContact
    match: Optional[DedupMatch]
    action: ImportAction


@dataclass
class BatchDedupResult:
    kept: List[ParsedContact] = field(default_factory=list)
    dropped: List[ParsedContact] = field(default_factory=list)

    @property
    def dropped_count(self) -> int:
        return len(self.dropped)


@dataclass
class ImportPlan:
    entries: List[ImportEntry]
    dropped_in_batch: int = 0

    @property
    def to_create(self) -> List[ParsedContact]:
        return [entry.parsed for entry in self.entries if entry.action is ImportAction.CREATE]

    @property
    def to_skip(self) -> List[ImportEntry]:
        return [entry for entry in self.entries if entry.action is ImportAction.SKIP]


@dataclass
class SnapshotContact:
    ref: str
    name: str
    email: Optional[str] = None
    is_self: bool = False
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, payload: Dict[str, Any]) -> "SnapshotContact":
        data = dict(payload)
        ref = data.pop("_ref", None)
        if ref is None:
            ref = data.pop("ref", "")
        return cls(
            ref="" if ref is None else str(ref),
            name=str(data.pop("name", "") or ""),
            email=_opt_str(data.pop("email", None)),
            is_self=bool(data.pop("isSelf", False) or False),
            data=data,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"_ref": self.ref, "name": self.name, "email": self.email}
        payload.update(self.data)
        if self.is_self:
            payload["isSelf"] = True
        return payload


@dataclass
class PortableSnapshot:
    version: int
    exported_at: Optional[str]
    contacts: List[SnapshotContact]
    connections: List[Dict[str, Any]] = field(default_factory=list)
    interactions: List[Dict[str, Any]] = field(default_factory=list)
    favors: List[Dict[str, Any]] = field(default_factory=list)
    introductions: List[Dict[str, Any]] = field(default_factory=list)
    country_connections: List[Dict[str, Any]] = field(default_factory=list)
    tags: List[Dict[str, Any]] = field(default_factory=list)
    visited_countries: List[str] = field(default_factory=list)

    @property
    def self_ref(self) -> Optional[str]:
        for contact in self.contacts:
            if contact.is_self:
                return contact.ref
        return None

    def edges(self, key: str) -> List[Dict[str, Any]]:
        return getattr(self, snake_key(key))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "exportedAt": self.exported_at,
            "contacts": [contact.to_dict() for contact in self.contacts],
            "connections": list(self.connections),
            "interactions": list(self.interactions),
            "favors": list(self.favors),
            "introductions": list(self.introductions),
            "countryConnections": list(self.country_connections),
            "tags": list(self.tags),
            "visitedCountries": list(self.visited_countries),
        }


@dataclass
class SnapshotImportSummary:
    created: Dict[str, int] = field(default_factory=dict)
    dropped: Dict[str, int] = field(default_factory=dict)
    tags_created: int = 0
    visited_countries_added: int = 0
    errors: List[str] = field(default_factory=list)

    def created_for(self, relation: str) -> int:
        return self.created.get(relation, 0)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            f"{relation}Created": count for relation, count in self.created.items()
        }
        payload.update({f"{relation}Dropped": count for relation, count in self.dropped.items()})
        payload["tagsCreated"] = self.tags_created
        payload["visitedCountriesAdded"] = self.visited_countries_added
        payload["errors"] = list(self.errors)
        return payload


def contacts_by_id(contacts: Sequence[Contact]) -> Dict[str, Contact]:
    return {contact.id: contact for contact in contacts}
