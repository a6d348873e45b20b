from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .common import ensure_contact
from .config_loader import BUILTIN_PROTECTED_FIELDS, MergeConfig
from .errors import MergeError
from .models import Contact, contacts_by_id, snake_key
from .storage import ContactStorage

logger = logging.getLogger(__name__)


def _display_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()[:10]
    text = str(value)
    return text or None


def conflicting_fields(
    winner: Contact, loser: Contact, fields: Optional[Iterable[str]] = None
) -> List[str]:
    """Fields set on both records with different values; the caller must pick one."""
    candidates = fields if fields is not None else MergeConfig().conflict_fields
    conflicts: List[str] = []
    for name in candidates:
        winner_value = _display_value(winner.get(name))
        loser_value = _display_value(loser.get(name))
        if winner_value and loser_value and winner_value != loser_value:
            conflicts.append(name)
    return conflicts


def resolve_merge_fields(
    winner: Contact,
    loser: Contact,
    overrides: Optional[Mapping[str, str]] = None,
    protected: Iterable[str] = BUILTIN_PROTECTED_FIELDS,
) -> Dict[str, Any]:
    """Field changes to apply to ``winner`` so it absorbs ``loser``.

    Per field: an override naming the loser takes the loser's value, an empty
    winner field is gap-filled from the loser, anything else keeps the winner.
    Protected fields never change, overrides included. Only changed fields
    are returned.
    """
    blocked = {snake_key(name) for name in protected} | set(BUILTIN_PROTECTED_FIELDS)
    chosen = {snake_key(name): contact_id for name, contact_id in (overrides or {}).items()}
    for name in sorted(chosen.keys() & blocked):
        logger.debug("Ignoring merge override for protected field %s", name)

    changes: Dict[str, Any] = {}
    names = list(dict.fromkeys([*winner.field_names(), *loser.field_names()]))
    for name in names:
        if name in blocked:
            continue
        winner_value = winner.get(name)
        loser_value = loser.get(name)
        if chosen.get(name) == loser.id:
            if loser_value != winner_value:
                changes[name] = loser_value
        elif winner_value is None and loser_value is not None:
            changes[name] = loser_value
    return changes


@dataclass
class MergeOutcome:
    winner: Contact
    deleted_id: str
    changes: Dict[str, Any] = field(default_factory=dict)


class MergeResolver:
    def __init__(self, storage: ContactStorage, config: Optional[MergeConfig] = None):
        self.storage = storage
        self.config = config or MergeConfig()

    def conflicts(self, winner: Contact, loser: Contact) -> List[str]:
        return conflicting_fields(winner, loser, self.config.conflict_fields)

    def _validate(self, winner_id: str, loser_id: str, overrides: Mapping[str, str]) -> None:
        if not winner_id or not loser_id:
            raise MergeError("winnerId and loserId are required")
        if winner_id == loser_id:
            raise MergeError("winnerId and loserId must be different")
        for name, contact_id in overrides.items():
            if contact_id not in (winner_id, loser_id):
                raise MergeError(
                    f"override for {name!r} names {contact_id!r}, which is not part of this merge"
                )

    async def merge(
        self,
        user_id: str,
        winner_id: str,
        loser_id: str,
        overrides: Optional[Mapping[str, str]] = None,
    ) -> MergeOutcome:
        overrides = dict(overrides or {})
        self._validate(winner_id, loser_id, overrides)

        owned = contacts_by_id(
            [ensure_contact(item) for item in await self.storage.list_contacts(user_id)]
        )
        winner = owned.get(winner_id)
        loser = owned.get(loser_id)
        if winner is None or loser is None:
            raise MergeError("Contacts not found or not owned by user")

        changes = resolve_merge_fields(winner, loser, overrides, self.config.protected_fields)
        updated = await self.storage.update_contact(winner_id, changes)
        # Loser goes only after the winner holds its data.
        await self.storage.delete_contact(loser_id)
        logger.info(
            "Merged contact %s into %s (%d field(s) taken)", loser_id, winner_id, len(changes)
        )

        merged = ensure_contact(updated) if updated is not None else winner.with_changes(changes)
        return MergeOutcome(winner=merged, deleted_id=loser_id, changes=changes)


async def merge_contacts(
    storage: ContactStorage,
    user_id: str,
    winner_id: str,
    loser_id: str,
    overrides: Optional[Mapping[str, str]] = None,
    config: Optional[MergeConfig] = None,
) -> MergeOutcome:
    return await MergeResolver(storage, config).merge(user_id, winner_id, loser_id, overrides)
