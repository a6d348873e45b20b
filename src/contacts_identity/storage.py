from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from .models import Contact

ContactLike = Union[Contact, Mapping[str, Any]]


class ContactStorage(Protocol):
    """Persistence operations this package awaits but never implements.

    Bulk methods receive fully rewritten rows (destination contact ids, not
    snapshot refs) and return the rows they created.
    """

    async def list_contacts(self, user_id: str) -> Sequence[ContactLike]: ...

    async def update_contact(
        self, contact_id: str, fields: Dict[str, Any]
    ) -> Optional[ContactLike]: ...

    async def delete_contact(self, contact_id: str) -> None: ...

    async def get_or_create_self_contact(self, user_id: str, name: str) -> ContactLike: ...

    async def create_connections_bulk(self, rows: List[Dict[str, Any]]) -> Sequence[Any]: ...

    async def create_interactions_bulk(self, rows: List[Dict[str, Any]]) -> Sequence[Any]: ...

    async def create_favors_bulk(self, rows: List[Dict[str, Any]]) -> Sequence[Any]: ...

    async def create_introductions_bulk(self, rows: List[Dict[str, Any]]) -> Sequence[Any]: ...

    async def create_country_connections_bulk(
        self, rows: List[Dict[str, Any]]
    ) -> Sequence[Any]: ...

    async def create_tags_bulk(
        self, user_id: str, tags: List[Dict[str, Any]]
    ) -> Sequence[Any]: ...

    async def add_visited_countries_bulk(self, user_id: str, countries: List[str]) -> None: ...
