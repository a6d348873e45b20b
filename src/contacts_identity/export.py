from __future__ import annotations

import csv
import json
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from .common import ensure_contact
from .models import Contact, PortableSnapshot, SnapshotContact

CSV_HEADERS = [
    "First Name",
    "Middle Name",
    "Last Name",
    "E-mail 1 - Value",
    "Phone 1 - Value",
    "Organization 1 - Name",
    "Organization 1 - Title",
    "Address 1 - City",
    "Address 1 - Country",
    "Address 1 - Formatted",
    "Birthday",
    "Website 1 - Value",
    "Notes",
    "Group Membership",
]

# Contact profile fields written to the snapshot, in wire (camelCase) form.
SNAPSHOT_PROFILE_FIELDS = (
    "company",
    "role",
    "city",
    "country",
    "address",
    "photo",
    "lat",
    "lng",
    "linkedin",
    "twitter",
    "telegram",
    "instagram",
    "github",
    "website",
    "notes",
    "meta",
    "secondaryLocations",
    "rating",
    "gender",
    "relationshipType",
    "metAt",
    "metDate",
    "lastContactedAt",
    "nextFollowUp",
    "communicationStyle",
    "preferredChannel",
    "responseSpeed",
    "timezone",
    "language",
    "birthday",
    "personalInterests",
    "professionalGoals",
    "painPoints",
    "influenceLevel",
    "networkReach",
    "trustLevel",
    "loyaltyIndicator",
    "financialCapacity",
    "motivations",
)


def to_iso(value: Any) -> Optional[str]:
    if not value:
        return None
    if isinstance(value, (datetime, date)):
        moment = pd.Timestamp(value)
    else:
        moment = pd.to_datetime(value, errors="coerce", utc=True)
    if pd.isna(moment):
        return None
    if moment.tzinfo is None:
        moment = moment.tz_localize("UTC")
    return moment.tz_convert("UTC").strftime("%Y-%m-%dT%H:%M:%S.") + (
        f"{moment.microsecond // 1000:03d}Z"
    )


def _snapshot_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return to_iso(value)
    return value


def _remap(
    rows: Iterable[Mapping[str, Any]],
    refs: Dict[str, str],
    id_fields: Sequence[Tuple[str, str]],
    keep: Sequence[str],
    date_fields: Sequence[str] = (),
) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for row in rows:
        ids = [row.get(id_key) for id_key, _ in id_fields]
        if not all(contact_id in refs for contact_id in ids):
            continue
        item: Dict[str, Any] = {
            ref_key: refs[str(contact_id)] for (_, ref_key), contact_id in zip(id_fields, ids)
        }
        for key in keep:
            value = row.get(key)
            item[key] = to_iso(value) if key in date_fields else value
        out.append(item)
    return out


def build_snapshot(
    contacts: Sequence[Any],
    connections: Iterable[Mapping[str, Any]] = (),
    interactions: Iterable[Mapping[str, Any]] = (),
    favors: Iterable[Mapping[str, Any]] = (),
    introductions: Iterable[Mapping[str, Any]] = (),
    country_connections: Iterable[Mapping[str, Any]] = (),
    tags: Iterable[Mapping[str, Any]] = (),
    visited_countries: Iterable[str] = (),
    exported_at: Optional[datetime] = None,
) -> PortableSnapshot:
    """Serialize an account into a portable snapshot.

    Contacts get document-local refs ``c0``, ``c1``... in the order given;
    relation rows are rewritten from contact ids to refs, and rows pointing
    at contacts outside ``contacts`` are left out.
    """
    records = [ensure_contact(item) for item in contacts]
    refs = {contact.id: f"c{index}" for index, contact in enumerate(records)}

    snapshot_contacts = []
    for contact in records:
        data = {key: _snapshot_value(contact.get(key)) for key in SNAPSHOT_PROFILE_FIELDS}
        data["tags"] = list(contact.tags) or None
        snapshot_contacts.append(
            SnapshotContact(
                ref=refs[contact.id],
                name=contact.name,
                email=contact.email,
                is_self=contact.is_self,
                data={"phone": contact.phone, **data},
            )
        )

    return PortableSnapshot(
        version=1,
        exported_at=to_iso(exported_at or datetime.now(timezone.utc)),
        contacts=snapshot_contacts,
        connections=_remap(
            connections,
            refs,
            (("sourceContactId", "source"), ("targetContactId", "target")),
            ("connectionType", "strength", "bidirectional", "notes"),
        ),
        interactions=_remap(
            interactions,
            refs,
            (("contactId", "contact"),),
            ("type", "date", "location", "notes"),
            date_fields=("date",),
        ),
        favors=_remap(
            favors,
            refs,
            (("contactId", "contact"),),
            ("direction", "type", "description", "value", "status", "date", "resolvedAt"),
            date_fields=("date", "resolvedAt"),
        ),
        introductions=_remap(
            introductions,
            refs,
            (("contactAId", "contactA"), ("contactBId", "contactB")),
            ("initiatedBy", "status", "date", "outcome", "notes"),
            date_fields=("date",),
        ),
        country_connections=_remap(
            country_connections,
            refs,
            (("contactId", "contact"),),
            ("country", "notes", "tags"),
        ),
        tags=[{"name": tag.get("name"), "color": tag.get("color")} for tag in tags],
        visited_countries=list(visited_countries),
    )


def dumps_snapshot(snapshot: PortableSnapshot) -> str:
    return json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False)


def split_name(name: str) -> Tuple[str, str, str]:
    parts = name.split()
    if not parts:
        return "", "", ""
    if len(parts) == 1:
        return parts[0], "", ""
    if len(parts) == 2:
        return parts[0], "", parts[1]
    return parts[0], " ".join(parts[1:-1]), parts[-1]


def _csv_row(contact: Contact) -> Dict[str, str]:
    first, middle, last = split_name(contact.name)
    groups = " ::: ".join(contact.tags)
    birthday = to_iso(contact.get("birthday"))

    def text(name: str) -> str:
        return str(contact.get(name, "") or "")

    return dict(
        zip(
            CSV_HEADERS,
            [
                first,
                middle,
                last,
                text("email"),
                text("phone"),
                text("company"),
                text("role"),
                text("city"),
                text("country"),
                text("address"),
                birthday[:10] if birthday else "",
                text("website"),
                text("notes"),
                f"{groups} ::: * myContacts" if groups else "* myContacts",
            ],
        )
    )


def contacts_frame(contacts: Iterable[Any]) -> pd.DataFrame:
    """Google-contacts style table of every contact except the account's self record."""
    rows = [_csv_row(contact) for contact in map(ensure_contact, contacts) if not contact.is_self]
    return pd.DataFrame(rows, columns=CSV_HEADERS)


def write_contacts_csv(contacts: Iterable[Any], path: Union[str, Path]) -> Path:
    target = Path(path)
    contacts_frame(contacts).to_csv(
        str(target), index=False, encoding="utf-8", quoting=csv.QUOTE_ALL
    )
    return target


_VCARD_ESCAPES = str.maketrans({"\\": "\\\\", ";": "\\;", ",": "\\,", "\n": "\\n"})
_VCARD_GENDERS = {"male": "M", "female": "F"}
_VCARD_SOCIAL = ("linkedin", "twitter", "telegram", "instagram", "github")


def _escape_vcard(value: Any) -> str:
    return str(value).translate(_VCARD_ESCAPES)


def _vcard(contact: Contact) -> str:
    first, middle, last = split_name(contact.name)
    lines = [
        "BEGIN:VCARD",
        "VERSION:4.0",
        f"FN:{_escape_vcard(contact.name)}",
        f"N:{_escape_vcard(last)};{_escape_vcard(first)};{_escape_vcard(middle)};;",
    ]
    value = contact.get

    if contact.email:
        lines.append(f"EMAIL:{contact.email}")
    if contact.phone:
        lines.append(f"TEL:{contact.phone}")
    if value("company"):
        lines.append(f"ORG:{_escape_vcard(value('company'))}")
    if value("role"):
        lines.append(f"TITLE:{_escape_vcard(value('role'))}")

    address = [_escape_vcard(value(key) or "") for key in ("address", "city", "country")]
    if any(address):
        street, city, country = address
        lines.append(f"ADR:;;{street};{city};;;{country}")

    birthday = to_iso(value("birthday"))
    if birthday:
        lines.append(f"BDAY:{birthday[:10].replace('-', '')}")
    if value("notes"):
        lines.append(f"NOTE:{_escape_vcard(value('notes'))}")
    if value("website"):
        lines.append(f"URL:{value('website')}")
    if value("timezone"):
        lines.append(f"TZ:{value('timezone')}")

    gender = _VCARD_GENDERS.get(str(value("gender") or ""))
    if gender:
        lines.append(f"GENDER:{gender}")
    if contact.tags:
        lines.append("CATEGORIES:" + ",".join(_escape_vcard(tag) for tag in contact.tags))
    for network in _VCARD_SOCIAL:
        if value(network):
            lines.append(f"X-SOCIALPROFILE;TYPE={network}:{value(network)}")

    lines.append("END:VCARD")
    return "\r\n".join(lines)


def dumps_vcards(contacts: Iterable[Any]) -> str:
    """vCard 4.0 cards for every contact except the account's self record."""
    cards = [_vcard(contact) for contact in map(ensure_contact, contacts) if not contact.is_self]
    return "\r\n".join(cards)


def write_vcards(contacts: Iterable[Any], path: Union[str, Path]) -> Path:
    target = Path(path)
    target.write_text(dumps_vcards(contacts), encoding="utf-8", newline="")
    return target
