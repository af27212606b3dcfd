"""Tests for the knowledge map service."""

from __future__ import annotations

import pytest

from relmap.auth.identity import StaticIdentity
from relmap.core.config import Settings, SyncConfig
from relmap.core.errors import AuthRequiredError, DocumentFormatError, ReferentialError, ValidationError
from relmap.core.types import PersonCategory, Proximity
from relmap.graph.models import Person, PersonData, Relation
from relmap.mapping.service import KnowledgeMapService
from relmap.notifications.models import NotificationLevel
from relmap.repositories.memory import InMemoryKnowledgeRepository

from conftest import OWNER, person_data


@pytest.fixture
def repo():
    return InMemoryKnowledgeRepository()


@pytest.fixture
def identity():
    return StaticIdentity(OWNER)


@pytest.fixture
def service(identity, repo):
    settings = Settings(sync=SyncConfig(max_retries=0, retry_backoff_seconds=0))
    return KnowledgeMapService(identity, repo, settings=settings)


class TestAuthentication:
    def test_mutations_require_principal(self, repo):
        service = KnowledgeMapService(StaticIdentity(None), repo)
        with pytest.raises(AuthRequiredError):
            service.add_person(person_data())
        [note] = service.notifier.drain()
        assert note.level == NotificationLevel.ERROR
        assert note.description == "Utilisateur non connecté"

    async def test_load_requires_principal(self, repo):
        service = KnowledgeMapService(StaticIdentity(None), repo)
        with pytest.raises(AuthRequiredError):
            await service.load()

    def test_views_are_empty_without_principal(self, repo):
        service = KnowledgeMapService(StaticIdentity(None), repo)
        assert service.persons == []
        assert service.render() == {"nodes": [], "edges": []}

    def test_sign_out_clears_local_state(self, service, identity):
        service.add_person(person_data())
        identity.sign_out()
        assert service.persons == []
        with pytest.raises(AuthRequiredError):
            service.add_person(person_data())

    def test_switching_principal_starts_empty(self, service, identity, repo):
        service.add_person(person_data())
        other = KnowledgeMapService(StaticIdentity("someone-else"), repo)
        assert other.persons == []


class TestPersistence:
    async def test_mutations_persist_after_sync(self, service, repo, identity):
        marie = service.add_person(person_data("Marie", "Dupont", proximity=Proximity.FORT))
        jean = service.add_person(person_data("Jean", "Martin"))
        service.add_relation(marie.id, jean.id, Proximity.FORT)
        report = await service.sync()
        assert report.ok

        fresh = KnowledgeMapService(StaticIdentity(OWNER), repo)
        await fresh.load()
        assert {p.display_name for p in fresh.persons} == {"Marie Dupont", "Jean Martin"}
        assert [(r.source_id, r.target_id) for r in fresh.relations] == [(marie.id, jean.id)]

    async def test_load_hides_orphan_relations(self, service, repo):
        repo.insert_person(Person(id="a", first_name="A", last_name="A", owner_id=OWNER))
        repo.insert_relation(Relation(id="r", source_id="a", target_id="gone", owner_id=OWNER))
        await service.load()
        assert [p.id for p in service.persons] == ["a"]
        assert service.relations == []
        assert service.sync_adapter.pending == 0

    async def test_load_keeps_local_table_when_one_fails(self, service, repo):
        class NoRelations(InMemoryKnowledgeRepository):
            def list_relations(self, owner_id):
                raise ConnectionError("down")

        broken = NoRelations()
        broken.insert_person(Person(id="a", first_name="A", last_name="A", owner_id=OWNER))
        settings = Settings(sync=SyncConfig(max_retries=0))
        svc = KnowledgeMapService(StaticIdentity(OWNER), broken, settings=settings)
        await svc.load()
        assert [p.id for p in svc.persons] == ["a"]
        assert svc.relations == []
        descriptions = [n.description for n in svc.notifier.drain()]
        assert descriptions == ["Impossible de charger les relations"]

    async def test_remote_failure_keeps_local_mutation(self, identity):
        class ReadOnly(InMemoryKnowledgeRepository):
            def insert_person(self, person):
                raise PermissionError("read only")

        settings = Settings(sync=SyncConfig(max_retries=0))
        svc = KnowledgeMapService(identity, ReadOnly(), settings=settings)
        person = svc.add_person(person_data())
        report = await svc.sync()
        assert not report.ok
        assert [p.id for p in svc.persons] == [person.id]
        levels = [n.level for n in svc.notifier.drain()]
        assert levels == [NotificationLevel.SUCCESS, NotificationLevel.ERROR]


class TestMutations:
    def test_add_person_notifies(self, service):
        person = service.add_person(person_data("Marie", "Dupont"))
        [note] = service.notifier.drain()
        assert note.title == "Personne ajoutée"
        assert note.description == "Marie Dupont"
        assert person.owner_id == OWNER

    def test_validation_error_notifies(self, service):
        with pytest.raises(ValidationError):
            service.add_person(PersonData(first_name="", last_name="Dupont"))
        [note] = service.notifier.drain()
        assert note.title == "Champs requis"
        assert service.persons == []

    def test_relation_to_unknown_person(self, service):
        a = service.add_person(person_data())
        with pytest.raises(ReferentialError):
            service.add_relation(a.id, "ghost", Proximity.FORT)
        assert service.relations == []

    def test_delete_person_cascades(self, service):
        a = service.add_person(person_data("Marie", "Dupont"))
        b = service.add_person(person_data("Jean", "Martin"))
        service.add_relation(a.id, b.id, Proximity.MOYEN)
        removed = service.delete_person(a.id)
        assert len(removed) == 1
        assert service.relations == []
        assert service.notifier.list_all()[-1].title == "Supprimé"

    def test_add_relation_notifies_with_proximity(self, service):
        a = service.add_person(person_data())
        service.notifier.drain()
        service.add_relation(a.id, a.id, Proximity.FAIBLE)
        [note] = service.notifier.drain()
        assert note.title == "Lien ajouté"
        assert note.description == "Proximité: Faible"

    def test_filter_scenario(self, service):
        marie = service.add_person(person_data(
            "Marie", "Dupont", proximity=Proximity.FORT, company="Acme Corp",
            categories=[PersonCategory.PARTENAIRE],
        ))
        jean = service.add_person(person_data("Jean", "Martin", proximity=Proximity.MOYEN))
        service.add_relation(marie.id, jean.id, Proximity.FORT)

        view = service.filter(proximity_filter=Proximity.FORT)
        assert [p.id for p in view.persons] == [marie.id]
        assert view.relations == []
        assert len(service.relations) == 1

        payload = service.render(search_term="acme")
        assert [n["label"] for n in payload["nodes"]] == ["Marie Dupont — Acme Corp"]


class TestWholeGraph:
    async def test_export_then_import_replaces_map(self, service, repo):
        a = service.add_person(person_data("Marie", "Dupont"))
        b = service.add_person(person_data("Jean", "Martin"))
        service.add_relation(a.id, b.id, Proximity.FORT)
        document = service.export_document()

        service.reset_all()
        assert service.persons == []

        imported = service.import_document(document)
        assert len(imported.persons) == 2
        assert {p.id for p in service.persons} == {a.id, b.id}
        assert service.notifier.list_all()[-1].description == "2 personnes, 1 liens"

        report = await service.sync()
        assert report.ok
        assert repo.person_count == 2
        assert repo.relation_count == 1

    def test_failed_import_leaves_state_untouched(self, service):
        person = service.add_person(person_data())
        pending = service.sync_adapter.pending
        with pytest.raises(DocumentFormatError):
            service.import_document(b"garbage")
        assert [p.id for p in service.persons] == [person.id]
        assert service.sync_adapter.pending == pending
        assert service.notifier.list_all()[-1].title == "Fichier invalide"

    async def test_reset_all_clears_remote_rows(self, service, repo):
        a = service.add_person(person_data())
        service.add_relation(a.id, a.id, Proximity.MOYEN)
        await service.sync()
        service.reset_all()
        await service.sync()
        assert repo.person_count == 0
        assert repo.relation_count == 0
        note = service.notifier.list_all()[-1]
        assert note.level == NotificationLevel.INFO
        assert note.title == "Réinitialisé"

    def test_export_without_principal_is_empty(self, repo):
        service = KnowledgeMapService(StaticIdentity(None), repo)
        imported = service.codec.import_bytes(service.export_document())
        assert imported.persons == []
        assert imported.relations == []
