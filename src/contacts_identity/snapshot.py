from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .common import ensure_contact
from .config_loader import SnapshotConfig
from .errors import SnapshotValidationError
from .models import (
    Contact,
    ParsedContact,
    PortableSnapshot,
    SnapshotContact,
    SnapshotImportSummary,
)
from .storage import ContactStorage

logger = logging.getLogger(__name__)

RefMap = Dict[str, str]


@dataclass(frozen=True)
class RelationSpec:
    key: str
    label: str
    ref_fields: Tuple[Tuple[str, str], ...]
    insert: str
    attach_user: bool = True
    required_dates: Tuple[str, ...] = ()
    optional_dates: Tuple[str, ...] = ()


RELATIONS: Tuple[RelationSpec, ...] = (
    RelationSpec(
        key="connections",
        label="Connections",
        ref_fields=(("source", "sourceContactId"), ("target", "targetContactId")),
        insert="create_connections_bulk",
    ),
    RelationSpec(
        key="interactions",
        label="Interactions",
        ref_fields=(("contact", "contactId"),),
        insert="create_interactions_bulk",
        attach_user=False,
        required_dates=("date",),
    ),
    RelationSpec(
        key="favors",
        label="Favors",
        ref_fields=(("contact", "contactId"),),
        insert="create_favors_bulk",
        optional_dates=("date", "resolvedAt"),
    ),
    RelationSpec(
        key="introductions",
        label="Introductions",
        ref_fields=(("contactA", "contactAId"), ("contactB", "contactBId")),
        insert="create_introductions_bulk",
        optional_dates=("date",),
    ),
    RelationSpec(
        key="countryConnections",
        label="Country connections",
        ref_fields=(("contact", "contactId"),),
        insert="create_country_connections_bulk",
    ),
)


def _edge_list(document: Mapping[str, Any], key: str) -> List[Dict[str, Any]]:
    value = document.get(key)
    if not value:
        return []
    if not isinstance(value, list):
        raise SnapshotValidationError(f"{key} must be a list")
    return [dict(edge) for edge in value if isinstance(edge, Mapping)]


def _country_list(document: Mapping[str, Any]) -> List[str]:
    value = document.get("visitedCountries")
    if not value:
        return []
    if not isinstance(value, list):
        raise SnapshotValidationError("visitedCountries must be a list")
    return [str(code) for code in value]


def validate_snapshot(
    document: Any, config: Optional[SnapshotConfig] = None
) -> PortableSnapshot:
    """Parse a portable export document, rejecting it before anything is written."""
    config = config or SnapshotConfig()
    if not isinstance(document, Mapping):
        raise SnapshotValidationError("Invalid export data: expected an object")
    version = document.get("version")
    if isinstance(version, bool) or version != config.supported_version:
        raise SnapshotValidationError(f"Unsupported export version: {version!r}")
    contacts = document.get("contacts")
    if not isinstance(contacts, list):
        raise SnapshotValidationError("Invalid export data: contacts must be a list")

    return PortableSnapshot(
        version=int(version),
        exported_at=document.get("exportedAt"),
        contacts=[
            SnapshotContact.from_mapping(item) for item in contacts if isinstance(item, Mapping)
        ],
        connections=_edge_list(document, "connections"),
        interactions=_edge_list(document, "interactions"),
        favors=_edge_list(document, "favors"),
        introductions=_edge_list(document, "introductions"),
        country_connections=_edge_list(document, "countryConnections"),
        tags=_edge_list(document, "tags"),
        visited_countries=_country_list(document),
    )


def snapshot_parsed_contacts(snapshot: PortableSnapshot) -> List[ParsedContact]:
    """Non-self snapshot contacts as import records, each keeping its ref in ``extra``."""
    parsed: List[ParsedContact] = []
    for item in snapshot.contacts:
        if item.is_self:
            continue
        payload = dict(item.data)
        payload.update(name=item.name, email=item.email)
        record = ParsedContact.from_mapping(payload)
        record.extra["ref"] = item.ref
        parsed.append(record)
    return parsed


def build_ref_map(
    snapshot: PortableSnapshot, destination: Sequence[Contact], self_contact_id: str
) -> RefMap:
    """Map snapshot refs onto destination contact ids.

    The self ref always maps to the destination's own self contact. Other refs
    resolve by lowercased name+email, then by lowercased name alone (first
    destination contact with that name). Unresolvable refs are left out.
    """
    ref_map: RefMap = {}
    self_ref = snapshot.self_ref
    if self_ref:
        ref_map[self_ref] = self_contact_id

    by_name_email: Dict[str, str] = {}
    by_name: Dict[str, str] = {}
    for contact in destination:
        if contact.is_self:
            continue
        name_key = contact.name.lower()
        if contact.email:
            by_name_email[f"{name_key}|{contact.email.lower()}"] = contact.id
        by_name.setdefault(name_key, contact.id)

    for item in snapshot.contacts:
        if item.is_self or not item.ref or item.ref in ref_map:
            continue
        name_key = item.name.lower()
        composite = f"{name_key}|{item.email.lower()}" if item.email else None
        if composite and composite in by_name_email:
            ref_map[item.ref] = by_name_email[composite]
        elif name_key in by_name:
            ref_map[item.ref] = by_name[name_key]

    logger.debug("Resolved %d of %d snapshot ref(s)", len(ref_map), len(snapshot.contacts))
    return ref_map


def _to_datetime(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, (str, datetime)):
        return None
    parsed = pd.to_datetime(value, errors="coerce", utc=True)
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def _resolve_ref(edge: Mapping[str, Any], ref_key: str, ref_map: RefMap) -> Optional[str]:
    ref = edge.get(ref_key)
    if ref is None or ref == "":
        return None
    return ref_map.get(str(ref))


def rewrite_edges(
    edges: Sequence[Mapping[str, Any]],
    relation: RelationSpec,
    ref_map: RefMap,
    user_id: Optional[str] = None,
) -> Tuple[List[Dict[str, Any]], int]:
    """Keep edges whose refs all resolve, swapping refs for destination ids.

    Returns the rewritten rows and how many edges were dropped.
    """
    rows: List[Dict[str, Any]] = []
    dropped = 0
    ref_keys = {ref_key for ref_key, _ in relation.ref_fields}
    for edge in edges:
        resolved = [_resolve_ref(edge, ref_key, ref_map) for ref_key, _ in relation.ref_fields]
        if not all(resolved):
            dropped += 1
            continue

        row = {key: value for key, value in edge.items() if key not in ref_keys}
        for (_, id_key), contact_id in zip(relation.ref_fields, resolved):
            row[id_key] = contact_id

        when = {key: _to_datetime(row.get(key)) for key in relation.required_dates}
        if not all(when.values()):
            dropped += 1
            continue
        row.update(when)
        row.update({key: _to_datetime(row.get(key)) for key in relation.optional_dates})

        if relation.attach_user and user_id is not None:
            row["userId"] = user_id
        rows.append(row)
    return rows, dropped


async def _guarded(label: str, call: Awaitable[Any]) -> Tuple[Any, Optional[str]]:
    try:
        return await call, None
    except Exception as exc:
        logger.warning("%s import failed: %s", label, exc)
        return None, f"{label}: {str(exc) or type(exc).__name__}"


class SnapshotImporter:
    def __init__(self, storage: ContactStorage, config: Optional[SnapshotConfig] = None):
        self.storage = storage
        self.config = config or SnapshotConfig()

    async def _import_relation(
        self, relation: RelationSpec, snapshot: PortableSnapshot, ref_map: RefMap, user_id: str
    ) -> Tuple[int, int, Optional[str]]:
        edges = snapshot.edges(relation.key)
        if not edges:
            return 0, 0, None
        rows, dropped = rewrite_edges(edges, relation, ref_map, user_id)
        if dropped:
            logger.info("%s: dropped %d edge(s) with unresolved refs", relation.label, dropped)
        insert = getattr(self.storage, relation.insert)
        created, error = await _guarded(relation.label, insert(rows))
        return (len(created) if created is not None else 0), dropped, error

    async def _import_tags(
        self, snapshot: PortableSnapshot, user_id: str
    ) -> Tuple[int, Optional[str]]:
        if not snapshot.tags:
            return 0, None
        created, error = await _guarded(
            "Tags", self.storage.create_tags_bulk(user_id, list(snapshot.tags))
        )
        return (len(created) if created is not None else 0), error

    async def _import_visited(
        self, snapshot: PortableSnapshot, user_id: str
    ) -> Tuple[int, Optional[str]]:
        if not snapshot.visited_countries:
            return 0, None
        countries = list(snapshot.visited_countries)
        _, error = await _guarded(
            "Visited countries", self.storage.add_visited_countries_bulk(user_id, countries)
        )
        return (0 if error else len(countries)), error

    async def run(self, user_id: str, document: Any) -> SnapshotImportSummary:
        snapshot = validate_snapshot(document, self.config)

        stored, self_contact = await asyncio.gather(
            self.storage.list_contacts(user_id),
            self.storage.get_or_create_self_contact(user_id, self.config.self_contact_name),
        )
        destination = [ensure_contact(item) for item in stored]
        ref_map = build_ref_map(snapshot, destination, ensure_contact(self_contact).id)

        relation_results, tags_result, visited_result = await asyncio.gather(
            asyncio.gather(
                *(
                    self._import_relation(relation, snapshot, ref_map, user_id)
                    for relation in RELATIONS
                )
            ),
            self._import_tags(snapshot, user_id),
            self._import_visited(snapshot, user_id),
        )

        summary = SnapshotImportSummary()
        for relation, (created, dropped, error) in zip(RELATIONS, relation_results):
            summary.created[relation.key] = created
            summary.dropped[relation.key] = dropped
            if error:
                summary.errors.append(error)
        summary.tags_created, tags_error = tags_result
        summary.visited_countries_added, visited_error = visited_result
        summary.errors.extend(error for error in (tags_error, visited_error) if error)

        logger.info(
            "Snapshot import for %s: %s created, %d error(s)",
            user_id,
            ", ".join(f"{key}={count}" for key, count in summary.created.items()),
            len(summary.errors),
        )
        return summary


async def import_snapshot(
    storage: ContactStorage,
    user_id: str,
    document: Any,
    config: Optional[SnapshotConfig] = None,
) -> SnapshotImportSummary:
    return await SnapshotImporter(storage, config).run(user_id, document)
