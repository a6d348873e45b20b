from typing import Any, Dict, List, Optional

import pytest

from contacts_identity.models import Contact


class FakeStorage:
    """In-memory stand-in for the persistence layer."""

    def __init__(self, contacts: Optional[List[Contact]] = None):
        self.contacts: Dict[str, Contact] = {c.id: c for c in contacts or []}
        self.calls: List[str] = []
        self.inserted: Dict[str, List[Dict[str, Any]]] = {}
        self.failing: Dict[str, Exception] = {}
        self.visited: List[str] = []

    async def list_contacts(self, user_id):
        self.calls.append("list_contacts")
        return [c for c in self.contacts.values() if c.user_id in (None, user_id)]

    async def update_contact(self, contact_id, fields):
        self.calls.append("update_contact")
        if "update_contact" in self.failing:
            raise self.failing["update_contact"]
        updated = self.contacts[contact_id].with_changes(fields)
        self.contacts[contact_id] = updated
        return updated

    async def delete_contact(self, contact_id):
        self.calls.append("delete_contact")
        del self.contacts[contact_id]

    async def get_or_create_self_contact(self, user_id, name):
        self.calls.append("get_or_create_self_contact")
        for contact in self.contacts.values():
            if contact.is_self:
                return contact
        me = Contact(id="self-1", name=name, user_id=user_id, is_self=True)
        self.contacts[me.id] = me
        return me

    async def _bulk(self, kind, rows):
        self.calls.append(kind)
        if kind in self.failing:
            raise self.failing[kind]
        self.inserted.setdefault(kind, []).extend(rows)
        return list(rows)

    async def create_connections_bulk(self, rows):
        return await self._bulk("connections", rows)

    async def create_interactions_bulk(self, rows):
        return await self._bulk("interactions", rows)

    async def create_favors_bulk(self, rows):
        return await self._bulk("favors", rows)

    async def create_introductions_bulk(self, rows):
        return await self._bulk("introductions", rows)

    async def create_country_connections_bulk(self, rows):
        return await self._bulk("countryConnections", rows)

    async def create_tags_bulk(self, user_id, tags):
        return await self._bulk("tags", tags)

    async def add_visited_countries_bulk(self, user_id, countries):
        self.calls.append("visitedCountries")
        if "visitedCountries" in self.failing:
            raise self.failing["visitedCountries"]
        self.visited.extend(countries)


@pytest.fixture
def make_storage():
    def factory(*contacts: Contact) -> FakeStorage:
        return FakeStorage(list(contacts))

    return factory
