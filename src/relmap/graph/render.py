"""Node/edge payloads handed to the external graph rendering layer."""

from __future__ import annotations

from typing import Any

from relmap.core.types import Proximity
from relmap.graph.filter import GraphView
from relmap.graph.models import Person, Relation

EDGE_STYLES: dict[Proximity, dict[str, Any]] = {
    Proximity.FORT: {"stroke_width": 3},
    Proximity.MOYEN: {"stroke_width": 2},
    Proximity.FAIBLE: {"stroke_width": 1, "stroke_dasharray": "6 6"},
}


def node_label(person: Person) -> str:
    label = person.display_name
    if person.company:
        label += f" — {person.company}"
    return label


def to_node(person: Person) -> dict[str, Any]:
    return {
        "id": person.id,
        "label": node_label(person),
        "proximity": person.proximity.value,
        # None leaves placement to the layout engine
        "position": person.position.model_dump() if person.position else None,
        "person": person.model_dump(mode="json"),
    }


def to_edge(relation: Relation) -> dict[str, Any]:
    return {
        "id": relation.id,
        "source": relation.source_id,
        "target": relation.target_id,
        "label": relation.proximity.label,
        "animated": relation.proximity == Proximity.FORT,
        "style": dict(EDGE_STYLES[relation.proximity]),
    }


def render_view(view: GraphView) -> dict[str, list[dict[str, Any]]]:
    return {
        "nodes": [to_node(p) for p in view.persons],
        "edges": [to_edge(r) for r in view.relations],
    }
