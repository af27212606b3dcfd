"""In-memory persons/relations table service."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from relmap.graph.models import Person, Relation
from relmap.repositories.rows import (
    person_changes_to_columns,
    person_to_row,
    relation_changes_to_columns,
    relation_to_row,
    row_to_person,
    row_to_relation,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryKnowledgeRepository:
    """Dict-backed table service with owner-scoped row access.

    Rows are kept in their column form, so the same mapping is exercised
    as for the SQL tables. Suitable for single-instance deployment and
    tests.
    """

    def __init__(self) -> None:
        self._persons: dict[str, dict[str, Any]] = {}
        self._relations: dict[str, dict[str, Any]] = {}

    # -- Reads --

    def list_persons(self, owner_id: str) -> list[Person]:
        return [
            row_to_person(row) for row in self._persons.values()
            if row["owner_id"] == owner_id
        ]

    def list_relations(self, owner_id: str) -> list[Relation]:
        return [
            row_to_relation(row) for row in self._relations.values()
            if row["owner_id"] == owner_id
        ]

    # -- Inserts --

    def insert_person(self, person: Person) -> None:
        if person.id in self._persons:
            raise ValueError(f"Duplicate person id {person.id!r}")
        now = _utcnow()
        self._persons[person.id] = {**person_to_row(person), "created_at": now, "updated_at": now}

    def insert_relation(self, relation: Relation) -> None:
        if relation.id in self._relations:
            raise ValueError(f"Duplicate relation id {relation.id!r}")
        now = _utcnow()
        self._relations[relation.id] = {
            **relation_to_row(relation), "created_at": now, "updated_at": now,
        }

    # -- Updates --

    def update_person(self, person_id: str, owner_id: str, changes: dict[str, Any]) -> bool:
        row = self._persons.get(person_id)
        if row is None or row["owner_id"] != owner_id:
            return False
        row.update(person_changes_to_columns(changes))
        row["updated_at"] = _utcnow()
        return True

    def update_relation(self, relation_id: str, owner_id: str, changes: dict[str, Any]) -> bool:
        row = self._relations.get(relation_id)
        if row is None or row["owner_id"] != owner_id:
            return False
        row.update(relation_changes_to_columns(changes))
        row["updated_at"] = _utcnow()
        return True

    # -- Deletes --

    def delete_person(self, person_id: str, owner_id: str) -> int:
        return self.delete_persons([person_id], owner_id)

    def delete_relation(self, relation_id: str, owner_id: str) -> int:
        return self.delete_relations([relation_id], owner_id)

    def delete_relations_for_person(self, person_id: str, owner_id: str) -> int:
        doomed = [
            rid for rid, row in self._relations.items()
            if row["owner_id"] == owner_id
            and (row["source_id"] == person_id or row["target_id"] == person_id)
        ]
        for rid in doomed:
            del self._relations[rid]
        return len(doomed)

    def delete_persons(self, person_ids: Iterable[str], owner_id: str) -> int:
        return self._delete_ids(self._persons, person_ids, owner_id)

    def delete_relations(self, relation_ids: Iterable[str], owner_id: str) -> int:
        return self._delete_ids(self._relations, relation_ids, owner_id)

    @staticmethod
    def _delete_ids(table: dict[str, dict[str, Any]], ids: Iterable[str], owner_id: str) -> int:
        deleted = 0
        for row_id in set(ids):
            row = table.get(row_id)
            if row is not None and row["owner_id"] == owner_id:
                del table[row_id]
                deleted += 1
        return deleted

    @property
    def person_count(self) -> int:
        return len(self._persons)

    @property
    def relation_count(self) -> int:
        return len(self._relations)
