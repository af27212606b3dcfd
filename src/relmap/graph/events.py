"""Outbound mutation events emitted by the graph store.

The store appends one event per successful local mutation. Consumers
(the sync adapter) translate them into backing-store calls.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from relmap.graph.models import Person, Relation


class MutationKind(StrEnum):
    PERSON_ADDED = "person_added"
    PERSON_UPDATED = "person_updated"
    PERSON_MOVED = "person_moved"
    PERSON_DELETED = "person_deleted"
    RELATION_ADDED = "relation_added"
    RELATION_UPDATED = "relation_updated"
    RELATION_DELETED = "relation_deleted"
    GRAPH_REPLACED = "graph_replaced"
    GRAPH_CLEARED = "graph_cleared"


class MutationEvent(BaseModel):
    """A single local mutation awaiting persistence."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    kind: MutationKind
    owner_id: str
    entity_id: str | None = None
    person: Person | None = None
    relation: Relation | None = None
    changes: dict[str, Any] = Field(default_factory=dict)
    removed_person_ids: list[str] = Field(default_factory=list)
    removed_relation_ids: list[str] = Field(default_factory=list)
    persons: list[Person] = Field(default_factory=list)
    relations: list[Relation] = Field(default_factory=list)
