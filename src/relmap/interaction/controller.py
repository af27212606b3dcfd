"""Gesture-to-mutation translation for the map canvas.

The only state held here is the pending connection: a connect gesture
that still needs a proximity before its relation is created.
"""

from __future__ import annotations

import logging
from enum import StrEnum

from pydantic import BaseModel

from relmap.core.types import Proximity
from relmap.graph.models import Person, PersonData, Relation
from relmap.mapping.service import KnowledgeMapService

logger = logging.getLogger(__name__)


class ControllerState(StrEnum):
    IDLE = "idle"
    AWAITING_CONNECTION_PROXIMITY = "awaiting_connection_proximity"


class PendingConnection(BaseModel):
    source_id: str
    target_id: str


class PersonEditView(BaseModel):
    """Snapshot bound to the person-edit dialog."""

    person: Person
    relation_count: int = 0


class RelationEditView(BaseModel):
    """Snapshot bound to the relation-edit dialog."""

    relation: Relation
    source: Person | None = None
    target: Person | None = None


class InteractionController:
    """Turns canvas gestures into service calls."""

    def __init__(self, service: KnowledgeMapService) -> None:
        self._service = service
        self._pending: PendingConnection | None = None

    @property
    def state(self) -> ControllerState:
        if self._pending is None:
            return ControllerState.IDLE
        return ControllerState.AWAITING_CONNECTION_PROXIMITY

    @property
    def pending(self) -> PendingConnection | None:
        return self._pending

    # -- Connection flow --

    def connect(self, source_id: str | None, target_id: str | None) -> PendingConnection | None:
        """Start a pending connection. A newer gesture replaces an older one.

        Gestures missing either end are ignored.
        """
        if not source_id or not target_id:
            logger.debug("Ignoring incomplete connect gesture %r -> %r", source_id, target_id)
            return None
        self._pending = PendingConnection(source_id=source_id, target_id=target_id)
        return self._pending

    def choose_proximity(self, proximity: Proximity) -> Relation | None:
        """Commit the pending connection with the chosen proximity."""
        pending = self._pending
        if pending is None:
            return None
        # Cleared first: a rejected commit does not leave the dialog stuck.
        self._pending = None
        return self._service.add_relation(pending.source_id, pending.target_id, proximity)

    def cancel(self) -> None:
        self._pending = None

    # -- Clicks --

    def click_node(self, person_id: str) -> PersonEditView | None:
        person = self._find_person(person_id)
        if person is None:
            return None
        relation_count = sum(1 for r in self._service.relations if r.touches(person_id))
        return PersonEditView(person=person, relation_count=relation_count)

    def click_edge(self, relation_id: str) -> RelationEditView | None:
        relation = next((r for r in self._service.relations if r.id == relation_id), None)
        if relation is None:
            return None
        return RelationEditView(
            relation=relation,
            source=self._find_person(relation.source_id),
            target=self._find_person(relation.target_id),
        )

    def _find_person(self, person_id: str) -> Person | None:
        return next((p for p in self._service.persons if p.id == person_id), None)

    # -- Edit dialogs --

    def save_person(self, person_id: str, data: PersonData) -> Person:
        return self._service.update_person(person_id, data)

    def remove_person(self, person_id: str) -> list[Relation]:
        return self._service.delete_person(person_id)

    def change_relation_proximity(self, relation_id: str, proximity: Proximity) -> Relation:
        return self._service.update_relation_proximity(relation_id, proximity)

    def remove_relation(self, relation_id: str) -> Relation:
        return self._service.delete_relation(relation_id)

    # -- Drag --

    def drag_end(self, person_id: str, x: float, y: float) -> Person:
        return self._service.set_person_position(person_id, x, y)
