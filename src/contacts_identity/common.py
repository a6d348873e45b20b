from __future__ import annotations

from typing import Any, Optional

from .config_loader import IdentityConfig, load_identity_config
from .errors import IdentityError, MergeError, SnapshotValidationError
from .matching import MatchEvaluator, levenshtein, match_contacts, names_match
from .models import (
    Contact,
    DuplicateGroup,
    ImportAction,
    ImportEntry,
    MatchConfidence,
    MatchEvidence,
    MatchField,
    ParsedContact,
    PortableSnapshot,
    SnapshotImportSummary,
)
from .normalization import normalize_email, normalize_name, normalize_phone, phone_key

__all__ = [
    "Contact",
    "DuplicateGroup",
    "IdentityConfig",
    "IdentityError",
    "ImportAction",
    "ImportEntry",
    "MatchConfidence",
    "MatchEvaluator",
    "MatchEvidence",
    "MatchField",
    "MergeError",
    "ParsedContact",
    "PortableSnapshot",
    "SnapshotImportSummary",
    "SnapshotValidationError",
    "ensure_contact",
    "ensure_parsed_contact",
    "levenshtein",
    "load_config",
    "match_contacts",
    "names_match",
    "normalize_email",
    "normalize_name",
    "normalize_phone",
    "phone_key",
]


def load_config(args: Any = None, path: Optional[str] = None) -> IdentityConfig:
    return load_identity_config(args, path)


def ensure_contact(obj: Any) -> Contact:
    if isinstance(obj, Contact):
        return obj
    if isinstance(obj, dict):
        return Contact.from_mapping(obj)
    raise TypeError(f"Unsupported contact payload type: {type(obj)!r}")


def ensure_parsed_contact(obj: Any) -> ParsedContact:
    if isinstance(obj, ParsedContact):
        return obj
    if isinstance(obj, dict):
        return ParsedContact.from_mapping(obj)
    raise TypeError(f"Unsupported parsed contact payload type: {type(obj)!r}")
