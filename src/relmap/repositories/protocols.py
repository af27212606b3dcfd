"""Protocol for the per-owner persons/relations table service.

Both the synchronous in-memory repository and the async Postgres
repository satisfy it. Every call is scoped by owner id: a caller only
ever sees or mutates rows it owns.
"""

from __future__ import annotations

from typing import Any, Iterable, Protocol, runtime_checkable

from relmap.graph.models import Person, Relation


@runtime_checkable
class KnowledgeRepository(Protocol):
    """Protocol for persons and relations storage."""

    def list_persons(self, owner_id: str) -> list[Person]: ...

    def list_relations(self, owner_id: str) -> list[Relation]: ...

    def insert_person(self, person: Person) -> None: ...

    def insert_relation(self, relation: Relation) -> None: ...

    def update_person(self, person_id: str, owner_id: str, changes: dict[str, Any]) -> bool: ...

    def update_relation(self, relation_id: str, owner_id: str, changes: dict[str, Any]) -> bool: ...

    def delete_person(self, person_id: str, owner_id: str) -> int: ...

    def delete_relation(self, relation_id: str, owner_id: str) -> int: ...

    def delete_relations_for_person(self, person_id: str, owner_id: str) -> int: ...

    def delete_persons(self, person_ids: Iterable[str], owner_id: str) -> int: ...

    def delete_relations(self, relation_ids: Iterable[str], owner_id: str) -> int: ...
