"""PostgreSQL persons/relations repository."""

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy import delete, or_, select, update

from relmap.db.engine import DatabaseManager
from relmap.db.models import PersonRow, RelationRow
from relmap.graph.models import Person, Relation
from relmap.repositories.rows import (
    person_changes_to_columns,
    person_to_row,
    relation_changes_to_columns,
    relation_to_row,
    row_to_person,
    row_to_relation,
)


class PostgresKnowledgeRepository:
    """Postgres-backed persons and relations storage.

    Every statement filters on ``owner_id``; updates and deletes keyed by
    id alone never touch another account's rows.
    """

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def list_persons(self, owner_id: str) -> list[Person]:
        async with self._db.session() as db:
            result = await db.execute(
                select(PersonRow).where(PersonRow.owner_id == owner_id)
            )
            return [self._person(r) for r in result.scalars().all()]

    async def list_relations(self, owner_id: str) -> list[Relation]:
        async with self._db.session() as db:
            result = await db.execute(
                select(RelationRow).where(RelationRow.owner_id == owner_id)
            )
            return [self._relation(r) for r in result.scalars().all()]

    async def insert_person(self, person: Person) -> None:
        async with self._db.session() as db:
            db.add(PersonRow(**person_to_row(person)))
            await db.commit()

    async def insert_relation(self, relation: Relation) -> None:
        async with self._db.session() as db:
            db.add(RelationRow(**relation_to_row(relation)))
            await db.commit()

    async def update_person(
        self, person_id: str, owner_id: str, changes: dict[str, Any]
    ) -> bool:
        columns = person_changes_to_columns(changes)
        if not columns:
            return False
        async with self._db.session() as db:
            result = await db.execute(
                update(PersonRow)
                .where(PersonRow.id == person_id, PersonRow.owner_id == owner_id)
                .values(**columns)
            )
            await db.commit()
            return result.rowcount > 0

    async def update_relation(
        self, relation_id: str, owner_id: str, changes: dict[str, Any]
    ) -> bool:
        columns = relation_changes_to_columns(changes)
        if not columns:
            return False
        async with self._db.session() as db:
            result = await db.execute(
                update(RelationRow)
                .where(RelationRow.id == relation_id, RelationRow.owner_id == owner_id)
                .values(**columns)
            )
            await db.commit()
            return result.rowcount > 0

    async def delete_person(self, person_id: str, owner_id: str) -> int:
        return await self.delete_persons([person_id], owner_id)

    async def delete_relation(self, relation_id: str, owner_id: str) -> int:
        return await self.delete_relations([relation_id], owner_id)

    async def delete_relations_for_person(self, person_id: str, owner_id: str) -> int:
        async with self._db.session() as db:
            result = await db.execute(
                delete(RelationRow).where(
                    RelationRow.owner_id == owner_id,
                    or_(
                        RelationRow.source_id == person_id,
                        RelationRow.target_id == person_id,
                    ),
                )
            )
            await db.commit()
            return result.rowcount

    async def delete_persons(self, person_ids: Iterable[str], owner_id: str) -> int:
        ids = list(person_ids)
        if not ids:
            return 0
        async with self._db.session() as db:
            result = await db.execute(
                delete(PersonRow).where(
                    PersonRow.id.in_(ids), PersonRow.owner_id == owner_id
                )
            )
            await db.commit()
            return result.rowcount

    async def delete_relations(self, relation_ids: Iterable[str], owner_id: str) -> int:
        ids = list(relation_ids)
        if not ids:
            return 0
        async with self._db.session() as db:
            result = await db.execute(
                delete(RelationRow).where(
                    RelationRow.id.in_(ids), RelationRow.owner_id == owner_id
                )
            )
            await db.commit()
            return result.rowcount

    @staticmethod
    def _person(row: PersonRow) -> Person:
        return row_to_person({
            "id": row.id,
            "first_name": row.first_name,
            "last_name": row.last_name,
            "company": row.company,
            "comment": row.comment,
            "proximity": row.proximity,
            "categories": row.categories,
            "position_x": row.position_x,
            "position_y": row.position_y,
            "owner_id": row.owner_id,
        })

    @staticmethod
    def _relation(row: RelationRow) -> Relation:
        return row_to_relation({
            "id": row.id,
            "source_id": row.source_id,
            "target_id": row.target_id,
            "proximity": row.proximity,
            "owner_id": row.owner_id,
        })
