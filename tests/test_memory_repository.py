"""Tests for the in-memory table service."""

from __future__ import annotations

import pytest

from relmap.core.types import PersonCategory, Proximity
from relmap.graph.models import Person, Position, Relation
from relmap.repositories.memory import InMemoryKnowledgeRepository
from relmap.repositories.protocols import KnowledgeRepository


def _person(pid: str, owner: str = "u1", **kw) -> Person:
    return Person(id=pid, first_name="A", last_name="B", owner_id=owner, **kw)


class TestInMemoryKnowledgeRepository:
    def setup_method(self):
        self.repo = InMemoryKnowledgeRepository()

    def test_satisfies_protocol(self):
        assert isinstance(self.repo, KnowledgeRepository)

    def test_insert_and_list_round_trip(self):
        person = _person(
            "p1",
            company="Acme",
            proximity=Proximity.FORT,
            categories=[PersonCategory.ADVISOR],
            position=Position(x=1, y=2),
        )
        self.repo.insert_person(person)
        [loaded] = self.repo.list_persons("u1")
        assert loaded == person

    def test_duplicate_insert_rejected(self):
        self.repo.insert_person(_person("p1"))
        with pytest.raises(ValueError):
            self.repo.insert_person(_person("p1"))

    def test_rows_are_owner_scoped(self):
        self.repo.insert_person(_person("p1", owner="u1"))
        self.repo.insert_person(_person("p2", owner="u2"))
        assert [p.id for p in self.repo.list_persons("u1")] == ["p1"]
        assert [p.id for p in self.repo.list_persons("u2")] == ["p2"]

    def test_update_requires_matching_owner(self):
        self.repo.insert_person(_person("p1", owner="u1"))
        assert self.repo.update_person("p1", "u2", {"last_name": "Z"}) is False
        assert self.repo.update_person("p1", "u1", {"last_name": "Z"}) is True
        assert self.repo.list_persons("u1")[0].last_name == "Z"

    def test_update_position_columns(self):
        self.repo.insert_person(_person("p1"))
        self.repo.update_person("p1", "u1", {"position": {"x": 7.0, "y": 8.0}})
        assert self.repo.list_persons("u1")[0].position == Position(x=7, y=8)

    def test_update_relation_proximity(self):
        self.repo.insert_relation(Relation(id="r1", source_id="a", target_id="b", owner_id="u1"))
        assert self.repo.update_relation("r1", "u1", {"proximity": "faible"})
        assert self.repo.list_relations("u1")[0].proximity == Proximity.FAIBLE

    def test_delete_relations_for_person(self):
        for rid, src, dst in [("r1", "a", "b"), ("r2", "b", "a"), ("r3", "b", "c")]:
            self.repo.insert_relation(Relation(id=rid, source_id=src, target_id=dst, owner_id="u1"))
        self.repo.insert_relation(Relation(id="r4", source_id="a", target_id="b", owner_id="u2"))
        assert self.repo.delete_relations_for_person("a", "u1") == 2
        assert [r.id for r in self.repo.list_relations("u1")] == ["r3"]
        assert self.repo.relation_count == 2

    def test_bulk_delete_ignores_other_owners(self):
        self.repo.insert_person(_person("p1", owner="u1"))
        self.repo.insert_person(_person("p2", owner="u2"))
        assert self.repo.delete_persons(["p1", "p2", "missing"], "u1") == 1
        assert self.repo.person_count == 1

    def test_delete_missing_is_zero(self):
        assert self.repo.delete_person("nope", "u1") == 0
        assert self.repo.delete_relation("nope", "u1") == 0
