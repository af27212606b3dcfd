"""Knowledge map service: the user-facing operations of one map session.

Wires the graph store, sync adapter, workbook codec and notification
center together for the current principal. Local mutations take effect
immediately; persistence happens when the sync adapter drains its queue.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterable, Iterator

from relmap.auth.identity import IdentityProvider
from relmap.core.config import Settings
from relmap.core.errors import AuthRequiredError, KnowledgeMapError
from relmap.core.types import PROXIMITY_ALL, PersonCategory, Proximity
from relmap.export.workbook import ImportedGraph, WorkbookCodec
from relmap.graph.filter import GraphView, filter_graph
from relmap.graph.models import Person, PersonData, Position, Relation
from relmap.graph.render import render_view
from relmap.graph.store import GraphStore
from relmap.notifications.center import NotificationCenter
from relmap.repositories.protocols import KnowledgeRepository
from relmap.sync.adapter import SyncAdapter, SyncReport

logger = logging.getLogger(__name__)


class KnowledgeMapService:
    """Persons/relations session for whichever principal is signed in.

    Without a principal no data is presented and every mutation or load
    raises ``AuthRequiredError``.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        repository: KnowledgeRepository,
        notifier: NotificationCenter | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._identity = identity
        self._settings = settings or Settings()
        self._notifier = notifier or NotificationCenter()
        self._sync = SyncAdapter(repository, self._notifier, self._settings.sync)
        self._codec = WorkbookCodec(self._settings.export)
        self._store: GraphStore | None = None

    @property
    def notifier(self) -> NotificationCenter:
        return self._notifier

    @property
    def sync_adapter(self) -> SyncAdapter:
        return self._sync

    @property
    def codec(self) -> WorkbookCodec:
        return self._codec

    # -- Session --

    def _current_store(self) -> GraphStore | None:
        owner = self._identity.current_user_id()
        if owner is None:
            if self._store is not None:
                self._store.clear(emit=False)
                self._store = None
            return None
        if self._store is None or self._store.owner_id != owner:
            self._store = GraphStore(owner_id=owner)
            self._store.subscribe(self._sync.enqueue)
        return self._store

    def _require_store(self) -> GraphStore:
        store = self._current_store()
        if store is None:
            error = AuthRequiredError()
            self._notifier.from_error(error)
            raise error
        return store

    @property
    def store(self) -> GraphStore:
        return self._require_store()

    @property
    def persons(self) -> list[Person]:
        store = self._current_store()
        return store.persons if store else []

    @property
    def relations(self) -> list[Relation]:
        store = self._current_store()
        return store.relations if store else []

    async def load(self) -> None:
        """Bulk load the principal's rows, replacing local state.

        A table that fails to load leaves its local collection as is.
        """
        store = self._require_store()
        result = await self._sync.load(store.owner_id)
        if result.persons is None and result.relations is None:
            return
        persons = result.persons if result.persons is not None else store.persons
        relations = result.relations if result.relations is not None else store.relations
        dropped = store.replace_all(persons, relations, emit=False)
        logger.info(
            "Loaded %d persons and %d relations for %s (%d orphan relations hidden)",
            store.person_count, store.relation_count, store.owner_id, dropped,
        )

    def sign_out(self) -> None:
        """Forget local state; the next principal starts empty."""
        if self._store is not None:
            self._store.clear(emit=False)
        self._store = None

    async def sync(self) -> SyncReport:
        """Replay queued mutations against the backing store."""
        return await self._sync.drain()

    @contextmanager
    def _reporting(self) -> Iterator[None]:
        try:
            yield
        except KnowledgeMapError as exc:
            if not isinstance(exc, AuthRequiredError):
                self._notifier.from_error(exc)
            logger.info("Rejected operation: %s (%s)", exc.message, exc.detail or "-")
            raise

    # -- Persons --

    def add_person(self, data: PersonData) -> Person:
        with self._reporting():
            person = self._require_store().add_person(data)
        self._notifier.success("Personne ajoutée", person.display_name)
        return person

    def update_person(self, person_id: str, data: PersonData) -> Person:
        with self._reporting():
            person = self._require_store().update_person(person_id, data)
        self._notifier.success("Modifié", person.display_name)
        return person

    def delete_person(self, person_id: str) -> list[Relation]:
        with self._reporting():
            removed = self._require_store().delete_person(person_id)
        self._notifier.success("Supprimé", "Personne et liens supprimés")
        return removed

    def set_person_position(self, person_id: str, x: float, y: float) -> Person:
        with self._reporting():
            return self._require_store().set_person_position(person_id, Position(x=x, y=y))

    # -- Relations --

    def add_relation(self, source_id: str, target_id: str, proximity: Proximity) -> Relation:
        with self._reporting():
            relation = self._require_store().add_relation(source_id, target_id, proximity)
        self._notifier.success("Lien ajouté", f"Proximité: {relation.proximity.label}")
        return relation

    def update_relation_proximity(self, relation_id: str, proximity: Proximity) -> Relation:
        with self._reporting():
            return self._require_store().update_relation_proximity(relation_id, proximity)

    def delete_relation(self, relation_id: str) -> Relation:
        with self._reporting():
            return self._require_store().delete_relation(relation_id)

    # -- Views --

    def filter(
        self,
        search_term: str = "",
        proximity_filter: Proximity | str = PROXIMITY_ALL,
        category_filter: Iterable[PersonCategory | str] = (),
    ) -> GraphView:
        return filter_graph(
            self.persons, self.relations, search_term, proximity_filter, category_filter
        )

    def render(self, **filters) -> dict:
        return render_view(self.filter(**filters))

    # -- Whole graph --

    def export_document(self) -> bytes:
        return self._codec.export_bytes(self.persons, self.relations)

    def import_document(self, data: bytes) -> ImportedGraph:
        """Replace the whole map with a document's content.

        The document is fully parsed before anything changes, so a format
        error leaves the current map untouched.
        """
        with self._reporting():
            store = self._require_store()
            imported = self._codec.import_bytes(data)
        store.replace_all(imported.persons, imported.relations)
        logger.info(
            "Imported %d persons and %d relations (%d/%d rows skipped)",
            len(imported.persons), len(imported.relations),
            imported.skipped_persons, imported.skipped_relations,
        )
        self._notifier.success(
            "Import réussi",
            f"{len(imported.persons)} personnes, {len(imported.relations)} liens",
        )
        return imported

    def reset_all(self) -> None:
        with self._reporting():
            self._require_store().clear()
        self._notifier.info("Réinitialisé", "Toutes les données ont été supprimées")
