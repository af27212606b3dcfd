"""Tests for the graph store."""

from __future__ import annotations

import pytest

from relmap.core.errors import EntityNotFoundError, ReferentialError, ValidationError
from relmap.core.types import PersonCategory, Proximity
from relmap.graph.events import MutationKind
from relmap.graph.models import Person, PersonData, Position, Relation
from relmap.graph.store import GraphStore

from conftest import OWNER, person_data


@pytest.fixture
def graph():
    return GraphStore(owner_id=OWNER)


@pytest.fixture
def events(graph):
    received = []
    graph.subscribe(received.append)
    return received


class TestPersons:
    def test_add_person_assigns_id_and_owner(self, graph):
        person = graph.add_person(person_data())
        assert person.id.startswith("p-")
        assert person.owner_id == OWNER
        assert graph.get_person(person.id) is person
        assert graph.person_count == 1

    def test_duplicate_names_allowed(self, graph):
        a = graph.add_person(person_data())
        b = graph.add_person(person_data())
        assert a.id != b.id
        assert graph.person_count == 2

    @pytest.mark.parametrize("first,last", [("", "Dupont"), ("Marie", ""), ("  ", "Dupont")])
    def test_missing_names_rejected(self, graph, events, first, last):
        with pytest.raises(ValidationError):
            graph.add_person(PersonData(first_name=first, last_name=last))
        assert graph.person_count == 0
        assert events == []

    def test_explicit_id_must_be_unique(self, graph):
        graph.add_person(person_data(), person_id="p-1")
        with pytest.raises(ValidationError):
            graph.add_person(person_data(), person_id="p-1")

    def test_update_person_replaces_fields_keeps_position(self, graph, events):
        person = graph.add_person(person_data(company="Acme"))
        graph.set_person_position(person.id, Position(x=10, y=20))
        updated = graph.update_person(
            person.id,
            PersonData(
                first_name="Marie",
                last_name="Curie",
                proximity=Proximity.FORT,
                categories=[PersonCategory.ADVISOR],
            ),
        )
        assert updated.last_name == "Curie"
        assert updated.company is None
        assert updated.proximity == Proximity.FORT
        assert updated.categories == [PersonCategory.ADVISOR]
        assert updated.position == Position(x=10, y=20)
        assert events[-1].kind == MutationKind.PERSON_UPDATED
        assert "position" not in events[-1].changes

    def test_update_unknown_person(self, graph):
        with pytest.raises(EntityNotFoundError):
            graph.update_person("nope", person_data())

    def test_update_validates_names(self, graph):
        person = graph.add_person(person_data())
        with pytest.raises(ValidationError):
            graph.update_person(person.id, PersonData(first_name="", last_name="X"))
        assert graph.get_person(person.id).first_name == "Marie"

    def test_set_position_only_touches_position(self, graph, events):
        person = graph.add_person(person_data(comment="note"))
        moved = graph.set_person_position(person.id, Position(x=1.5, y=-2))
        assert moved.position == Position(x=1.5, y=-2)
        assert moved.comment == "note"
        assert events[-1].kind == MutationKind.PERSON_MOVED
        assert events[-1].changes == {"position": {"x": 1.5, "y": -2.0}}


class TestRelations:
    def test_add_relation(self, graph, events):
        a = graph.add_person(person_data("Marie", "Dupont"))
        b = graph.add_person(person_data("Jean", "Martin"))
        rel = graph.add_relation(a.id, b.id, Proximity.FORT)
        assert rel.source_id == a.id
        assert rel.target_id == b.id
        assert rel.proximity == Proximity.FORT
        assert rel.id.startswith("rel-")
        assert events[-1].kind == MutationKind.RELATION_ADDED

    def test_unknown_endpoint_rejected(self, graph, events):
        a = graph.add_person(person_data())
        with pytest.raises(ReferentialError):
            graph.add_relation(a.id, "ghost", Proximity.MOYEN)
        with pytest.raises(ReferentialError):
            graph.add_relation("ghost", a.id, Proximity.MOYEN)
        assert graph.relation_count == 0
        assert [e.kind for e in events] == [MutationKind.PERSON_ADDED]

    def test_self_loop_and_parallel_relations_allowed(self, graph):
        a = graph.add_person(person_data())
        b = graph.add_person(person_data("Jean", "Martin"))
        graph.add_relation(a.id, a.id)
        graph.add_relation(a.id, b.id)
        graph.add_relation(a.id, b.id)
        assert graph.relation_count == 3

    def test_update_and_delete_relation(self, graph):
        a = graph.add_person(person_data())
        b = graph.add_person(person_data("Jean", "Martin"))
        rel = graph.add_relation(a.id, b.id)
        assert graph.update_relation_proximity(rel.id, Proximity.FAIBLE).proximity == Proximity.FAIBLE
        graph.delete_relation(rel.id)
        assert graph.relation_count == 0
        with pytest.raises(EntityNotFoundError):
            graph.delete_relation(rel.id)


class TestCascadeDelete:
    def test_delete_person_removes_touching_relations(self, graph, events):
        a = graph.add_person(person_data("Marie", "Dupont"))
        b = graph.add_person(person_data("Jean", "Martin"))
        c = graph.add_person(person_data("Luc", "Petit"))
        r1 = graph.add_relation(a.id, b.id)
        r2 = graph.add_relation(c.id, a.id)
        r3 = graph.add_relation(b.id, c.id)

        removed = graph.delete_person(a.id)

        assert {r.id for r in removed} == {r1.id, r2.id}
        assert [r.id for r in graph.relations] == [r3.id]
        assert graph.get_person(a.id) is None
        event = events[-1]
        assert event.kind == MutationKind.PERSON_DELETED
        assert set(event.removed_relation_ids) == {r1.id, r2.id}

    def test_listener_never_sees_dangling_relation(self, graph):
        a = graph.add_person(person_data())
        b = graph.add_person(person_data("Jean", "Martin"))
        graph.add_relation(a.id, b.id)
        graph.add_relation(b.id, a.id)

        observed = []

        def check(_event):
            ids = {p.id for p in graph.persons}
            observed.append(all(
                r.source_id in ids and r.target_id in ids for r in graph.relations
            ))

        graph.subscribe(check)
        graph.delete_person(a.id)
        assert observed == [True]

    def test_random_sequences_keep_endpoints_valid(self, graph):
        people = [graph.add_person(person_data(f"P{i}", "X")) for i in range(6)]
        for i, src in enumerate(people):
            for dst in people[i:]:
                graph.add_relation(src.id, dst.id)
        for victim in people[::2]:
            graph.delete_person(victim.id)
        ids = {p.id for p in graph.persons}
        assert graph.relations
        assert all(r.source_id in ids and r.target_id in ids for r in graph.relations)


class TestWholeGraph:
    def test_replace_all_drops_dangling_relations(self, graph, events):
        graph.add_person(person_data())
        persons = [Person(id="a", first_name="A", last_name="A"), Person(id="b", first_name="B", last_name="B")]
        relations = [
            Relation(id="r1", source_id="a", target_id="b"),
            Relation(id="r2", source_id="a", target_id="zzz"),
        ]
        dropped = graph.replace_all(persons, relations)
        assert dropped == 1
        assert [p.id for p in graph.persons] == ["a", "b"]
        assert [r.id for r in graph.relations] == ["r1"]
        assert all(p.owner_id == OWNER for p in graph.persons)
        assert events[-1].kind == MutationKind.GRAPH_REPLACED
        assert len(events[-1].removed_person_ids) == 1

    def test_replace_all_without_emit(self, graph, events):
        graph.replace_all([Person(id="a", first_name="A", last_name="A")], [], emit=False)
        assert events == []
        assert graph.person_count == 1

    def test_clear(self, graph, events):
        a = graph.add_person(person_data())
        rel = graph.add_relation(a.id, a.id)
        graph.clear()
        assert graph.person_count == 0
        assert graph.relation_count == 0
        assert events[-1].kind == MutationKind.GRAPH_CLEARED
        assert events[-1].removed_relation_ids == [rel.id]
        assert events[-1].removed_person_ids == [a.id]


class TestPersonData:
    def test_normalisation(self):
        data = PersonData(
            first_name="  Marie ",
            last_name="Dupont",
            company="   ",
            comment="",
            categories=[PersonCategory.ADVISOR, PersonCategory.PARTENAIRE, PersonCategory.ADVISOR],
        )
        assert data.first_name == "Marie"
        assert data.company is None
        assert data.comment is None
        assert data.proximity == Proximity.MOYEN
        assert data.categories == [PersonCategory.PARTENAIRE, PersonCategory.ADVISOR]

    def test_control_characters_stripped(self):
        data = PersonData(
            first_name="Ma\x0brie",
            last_name="Dupont\x00",
            company="\x1f",
            comment="ligne\x0bdeux\nfin",
        )
        assert data.first_name == "Marie"
        assert data.last_name == "Dupont"
        assert data.company is None
        assert data.comment == "lignedeux\nfin"

    def test_proximity_parse(self):
        assert Proximity.parse("FORT") == Proximity.FORT
        assert Proximity.parse("bogus") == Proximity.MOYEN
        assert Proximity.parse(None) == Proximity.MOYEN
        assert Proximity.FAIBLE.label == "Faible"
