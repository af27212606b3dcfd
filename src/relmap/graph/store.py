"""In-memory graph store: the single source of truth for one map session."""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from relmap.core.errors import EntityNotFoundError, ReferentialError, ValidationError
from relmap.core.ids import PERSON_PREFIX, RELATION_PREFIX, generate_id
from relmap.core.types import Proximity
from relmap.graph.events import MutationEvent, MutationKind
from relmap.graph.models import Person, PersonData, Position, Relation

logger = logging.getLogger(__name__)

MutationListener = Callable[[MutationEvent], None]


class GraphStore:
    """Persons and relations of a single owner, with cascade-safe mutations.

    Every mutation is applied synchronously to the in-memory collections
    and only then published to subscribers as a ``MutationEvent``.
    Subscribers never block or undo the local change.
    """

    def __init__(self, owner_id: str = "") -> None:
        self._owner_id = owner_id
        self._persons: dict[str, Person] = {}
        self._relations: dict[str, Relation] = {}
        self._listeners: list[MutationListener] = []

    @property
    def owner_id(self) -> str:
        return self._owner_id

    def subscribe(self, listener: MutationListener) -> None:
        self._listeners.append(listener)

    def _emit(self, event: MutationEvent) -> None:
        for listener in self._listeners:
            listener(event)

    # -- Reads --

    @property
    def persons(self) -> list[Person]:
        return list(self._persons.values())

    @property
    def relations(self) -> list[Relation]:
        return list(self._relations.values())

    def get_person(self, person_id: str) -> Person | None:
        return self._persons.get(person_id)

    def get_relation(self, relation_id: str) -> Relation | None:
        return self._relations.get(relation_id)

    def relations_of(self, person_id: str) -> list[Relation]:
        return [r for r in self._relations.values() if r.touches(person_id)]

    @property
    def person_count(self) -> int:
        return len(self._persons)

    @property
    def relation_count(self) -> int:
        return len(self._relations)

    # -- Persons --

    def add_person(self, data: PersonData, person_id: str | None = None) -> Person:
        """Create a person from form data. Duplicate names are allowed."""
        self._validate(data)
        person_id = person_id or generate_id(PERSON_PREFIX)
        if person_id in self._persons:
            raise ValidationError(
                "Identifiant déjà utilisé", detail=f"person id {person_id!r} exists"
            )
        person = Person(id=person_id, owner_id=self._owner_id, **data.model_dump())
        self._persons[person.id] = person
        self._emit(MutationEvent(
            kind=MutationKind.PERSON_ADDED,
            owner_id=self._owner_id,
            entity_id=person.id,
            person=person,
        ))
        return person

    def update_person(self, person_id: str, data: PersonData) -> Person:
        """Replace the descriptive fields of a person.

        The stored position is kept unless ``data`` carries one; it is
        otherwise only changed by ``set_person_position``.
        """
        current = self._require_person(person_id)
        self._validate(data)
        fields = data.model_dump(exclude={"position"})
        position = data.position or current.position
        updated = Person(id=current.id, owner_id=current.owner_id, position=position, **fields)
        self._persons[person_id] = updated

        changes = dict(fields)
        if data.position is not None:
            changes["position"] = data.position.model_dump()
        self._emit(MutationEvent(
            kind=MutationKind.PERSON_UPDATED,
            owner_id=self._owner_id,
            entity_id=person_id,
            person=updated,
            changes=changes,
        ))
        return updated

    def set_person_position(self, person_id: str, position: Position) -> Person:
        current = self._require_person(person_id)
        updated = current.model_copy(update={"position": position})
        self._persons[person_id] = updated
        self._emit(MutationEvent(
            kind=MutationKind.PERSON_MOVED,
            owner_id=self._owner_id,
            entity_id=person_id,
            person=updated,
            changes={"position": position.model_dump()},
        ))
        return updated

    def delete_person(self, person_id: str) -> list[Relation]:
        """Remove a person and every relation naming it as an endpoint.

        Both collections are swapped in a single step, so no reader can
        observe a relation pointing at the removed person. Returns the
        relations removed by the cascade.
        """
        person = self._require_person(person_id)
        removed = [r for r in self._relations.values() if r.touches(person_id)]
        persons = {pid: p for pid, p in self._persons.items() if pid != person_id}
        relations = {
            rid: r for rid, r in self._relations.items() if not r.touches(person_id)
        }
        self._persons, self._relations = persons, relations

        self._emit(MutationEvent(
            kind=MutationKind.PERSON_DELETED,
            owner_id=self._owner_id,
            entity_id=person_id,
            person=person,
            removed_person_ids=[person_id],
            removed_relation_ids=[r.id for r in removed],
        ))
        return removed

    # -- Relations --

    def add_relation(
        self,
        source_id: str,
        target_id: str,
        proximity: Proximity = Proximity.MOYEN,
        relation_id: str | None = None,
    ) -> Relation:
        """Create a relation between two known persons.

        Self-loops and repeated pairs are accepted.
        """
        for endpoint in (source_id, target_id):
            if endpoint not in self._persons:
                raise ReferentialError(
                    "Personne inconnue",
                    detail=f"relation endpoint {endpoint!r} is not a known person",
                )
        relation_id = relation_id or generate_id(RELATION_PREFIX)
        if relation_id in self._relations:
            raise ValidationError(
                "Identifiant déjà utilisé", detail=f"relation id {relation_id!r} exists"
            )
        relation = Relation(
            id=relation_id,
            source_id=source_id,
            target_id=target_id,
            proximity=Proximity.parse(proximity),
            owner_id=self._owner_id,
        )
        self._relations[relation.id] = relation
        self._emit(MutationEvent(
            kind=MutationKind.RELATION_ADDED,
            owner_id=self._owner_id,
            entity_id=relation.id,
            relation=relation,
        ))
        return relation

    def update_relation_proximity(self, relation_id: str, proximity: Proximity) -> Relation:
        current = self._require_relation(relation_id)
        updated = current.model_copy(update={"proximity": Proximity.parse(proximity)})
        self._relations[relation_id] = updated
        self._emit(MutationEvent(
            kind=MutationKind.RELATION_UPDATED,
            owner_id=self._owner_id,
            entity_id=relation_id,
            relation=updated,
            changes={"proximity": updated.proximity.value},
        ))
        return updated

    def delete_relation(self, relation_id: str) -> Relation:
        relation = self._require_relation(relation_id)
        del self._relations[relation_id]
        self._emit(MutationEvent(
            kind=MutationKind.RELATION_DELETED,
            owner_id=self._owner_id,
            entity_id=relation_id,
            relation=relation,
            removed_relation_ids=[relation_id],
        ))
        return relation

    # -- Whole-graph operations --

    def replace_all(
        self,
        persons: Iterable[Person],
        relations: Iterable[Relation],
        *,
        emit: bool = True,
    ) -> int:
        """Overwrite both collections (full replace, not a merge).

        Relations whose endpoints are not among ``persons`` are dropped.
        Loads from the backing store pass ``emit=False`` since the data
        already lives there. Returns the number of dropped relations.
        """
        new_persons: dict[str, Person] = {}
        for person in persons:
            new_persons[person.id] = person.model_copy(update={"owner_id": self._owner_id})

        new_relations: dict[str, Relation] = {}
        dropped = 0
        for relation in relations:
            if relation.source_id not in new_persons or relation.target_id not in new_persons:
                dropped += 1
                logger.warning(
                    "Dropping relation %s with unknown endpoint(s) %s -> %s",
                    relation.id, relation.source_id, relation.target_id,
                )
                continue
            new_relations[relation.id] = relation.model_copy(
                update={"owner_id": self._owner_id}
            )

        previous_persons = list(self._persons)
        previous_relations = list(self._relations)
        self._persons, self._relations = new_persons, new_relations

        if emit:
            self._emit(MutationEvent(
                kind=MutationKind.GRAPH_REPLACED,
                owner_id=self._owner_id,
                removed_person_ids=previous_persons,
                removed_relation_ids=previous_relations,
                persons=list(new_persons.values()),
                relations=list(new_relations.values()),
            ))
        return dropped

    def clear(self, *, emit: bool = True) -> None:
        previous_persons = list(self._persons)
        previous_relations = list(self._relations)
        self._persons, self._relations = {}, {}
        if emit:
            self._emit(MutationEvent(
                kind=MutationKind.GRAPH_CLEARED,
                owner_id=self._owner_id,
                removed_person_ids=previous_persons,
                removed_relation_ids=previous_relations,
            ))

    # -- Helpers --

    @staticmethod
    def _validate(data: PersonData) -> None:
        if not data.first_name or not data.last_name:
            raise ValidationError("Prénom et nom sont obligatoires")

    def _require_person(self, person_id: str) -> Person:
        person = self._persons.get(person_id)
        if person is None:
            raise EntityNotFoundError(
                "Personne introuvable", detail=f"person {person_id!r} not found"
            )
        return person

    def _require_relation(self, relation_id: str) -> Relation:
        relation = self._relations.get(relation_id)
        if relation is None:
            raise EntityNotFoundError(
                "Lien introuvable", detail=f"relation {relation_id!r} not found"
            )
        return relation
