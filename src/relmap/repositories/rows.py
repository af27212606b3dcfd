"""Column mapping between domain models and table rows."""

from __future__ import annotations

from typing import Any, Mapping

from relmap.core.types import PersonCategory, Proximity
from relmap.graph.models import Person, Position, Relation

_PERSON_FIELDS = {
    "first_name": "first_name",
    "last_name": "last_name",
    "company": "company",
    "comment": "comment",
    "proximity": "proximity",
    "categories": "categories",
}


def person_to_row(person: Person) -> dict[str, Any]:
    return {
        "id": person.id,
        "first_name": person.first_name,
        "last_name": person.last_name,
        "company": person.company,
        "comment": person.comment,
        "proximity": person.proximity.value,
        "categories": [c.value for c in person.categories],
        "position_x": person.position.x if person.position else None,
        "position_y": person.position.y if person.position else None,
        "owner_id": person.owner_id,
    }


def relation_to_row(relation: Relation) -> dict[str, Any]:
    return {
        "id": relation.id,
        "source_id": relation.source_id,
        "target_id": relation.target_id,
        "proximity": relation.proximity.value,
        "owner_id": relation.owner_id,
    }


def person_changes_to_columns(changes: Mapping[str, Any]) -> dict[str, Any]:
    """Translate a field-level change set into person column values."""
    columns: dict[str, Any] = {}
    for field, column in _PERSON_FIELDS.items():
        if field not in changes:
            continue
        value = changes[field]
        if field == "proximity":
            value = Proximity.parse(value).value
        elif field == "categories":
            value = [PersonCategory(c).value for c in value or []]
        columns[column] = value
    if "position" in changes:
        position = changes["position"]
        if position is None:
            columns["position_x"] = columns["position_y"] = None
        else:
            columns["position_x"] = position["x"]
            columns["position_y"] = position["y"]
    return columns


def relation_changes_to_columns(changes: Mapping[str, Any]) -> dict[str, Any]:
    columns: dict[str, Any] = {}
    if "proximity" in changes:
        columns["proximity"] = Proximity.parse(changes["proximity"]).value
    for key in ("source_id", "target_id"):
        if key in changes:
            columns[key] = changes[key]
    return columns


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def row_to_person(row: Mapping[str, Any]) -> Person:
    x, y = row.get("position_x"), row.get("position_y")
    categories = []
    for raw in row.get("categories") or []:
        try:
            categories.append(PersonCategory(raw))
        except ValueError:
            continue
    return Person(
        id=str(row["id"]),
        first_name=str(row.get("first_name") or ""),
        last_name=str(row.get("last_name") or ""),
        company=row.get("company"),
        comment=row.get("comment"),
        proximity=Proximity.parse(row.get("proximity")),
        categories=categories,
        position=Position(x=x, y=y) if _is_number(x) and _is_number(y) else None,
        owner_id=str(row.get("owner_id") or ""),
    )


def row_to_relation(row: Mapping[str, Any]) -> Relation:
    return Relation(
        id=str(row["id"]),
        source_id=str(row.get("source_id") or ""),
        target_id=str(row.get("target_id") or ""),
        proximity=Proximity.parse(row.get("proximity")),
        owner_id=str(row.get("owner_id") or ""),
    )
