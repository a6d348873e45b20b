from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import yaml  # type: ignore[import-untyped]

# Never taken from a merge loser, whatever the configuration says.
BUILTIN_PROTECTED_FIELDS: Tuple[str, ...] = (
    "id",
    "user_id",
    "is_self",
    "created_at",
    "updated_at",
    "tags",
)

DEFAULT_CONFLICT_FIELDS: Tuple[str, ...] = (
    "name",
    "email",
    "phone",
    "company",
    "role",
    "city",
    "country",
    "website",
    "notes",
    "linkedin",
    "twitter",
    "telegram",
    "instagram",
    "github",
    "timezone",
)


@dataclass
class MatchingConfig:
    min_phone_digits: int = 7
    fuzzy_min_length: int = 4
    max_edit_distance: int = 2


@dataclass
class MergeConfig:
    protected_fields: Tuple[str, ...] = BUILTIN_PROTECTED_FIELDS
    conflict_fields: Tuple[str, ...] = DEFAULT_CONFLICT_FIELDS


@dataclass
class SnapshotConfig:
    supported_version: int = 1
    self_contact_name: str = "Me"


@dataclass
class IdentityConfig:
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    merge: MergeConfig = field(default_factory=MergeConfig)
    snapshot: SnapshotConfig = field(default_factory=SnapshotConfig)


def _load_yaml(path: Optional[str]) -> Dict[str, Any]:
    if not path:
        return {}
    with open(path, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def _pick(args: Any, attr: str, section: Dict[str, Any], key: str, default: Any) -> Any:
    value = getattr(args, attr, None)
    if value is not None:
        return value
    value = section.get(key)
    return default if value is None else value


def load_identity_config(
    args: Optional[argparse.Namespace] = None, path: Optional[str] = None
) -> IdentityConfig:
    config_data = _load_yaml(path or getattr(args, "config", None))
    matching_cfg = config_data.get("matching", {}) or {}
    merge_cfg = config_data.get("merge", {}) or {}
    snapshot_cfg = config_data.get("snapshot", {}) or {}

    matching = MatchingConfig(
        min_phone_digits=int(_pick(args, "min_phone_digits", matching_cfg, "min_phone_digits", 7)),
        fuzzy_min_length=int(_pick(args, "fuzzy_min_length", matching_cfg, "fuzzy_min_length", 4)),
        max_edit_distance=int(
            _pick(args, "max_edit_distance", matching_cfg, "max_edit_distance", 2)
        ),
    )

    extra_protected = merge_cfg.get("protected_fields") or []
    protected = tuple(dict.fromkeys([*BUILTIN_PROTECTED_FIELDS, *extra_protected]))
    merge = MergeConfig(
        protected_fields=protected,
        conflict_fields=tuple(merge_cfg.get("conflict_fields") or DEFAULT_CONFLICT_FIELDS),
    )

    snapshot = SnapshotConfig(
        supported_version=int(snapshot_cfg.get("supported_version", 1)),
        self_contact_name=_pick(args, "self_contact_name", snapshot_cfg, "self_contact_name", "Me"),
    )

    return IdentityConfig(matching=matching, merge=merge, snapshot=snapshot)
