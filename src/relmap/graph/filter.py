"""Visible-subset computation for search, proximity and category filters."""

from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, Field

from relmap.core.types import PROXIMITY_ALL, PersonCategory, Proximity
from relmap.graph.models import Person, Relation


class GraphView(BaseModel):
    """Persons passing the filters and the relations fully inside them."""

    persons: list[Person] = Field(default_factory=list)
    relations: list[Relation] = Field(default_factory=list)


def _haystack(person: Person) -> str:
    parts = [
        person.first_name,
        person.last_name,
        person.company or "",
        person.comment or "",
        person.proximity.value,
        *(c.value for c in person.categories),
    ]
    return " ".join(parts).lower()


def person_matches(
    person: Person,
    search_term: str = "",
    proximity_filter: Proximity | str = PROXIMITY_ALL,
    category_filter: Iterable[PersonCategory | str] = (),
) -> bool:
    if proximity_filter != PROXIMITY_ALL and person.proximity != proximity_filter:
        return False

    wanted = set(category_filter)
    if wanted and not wanted.intersection(person.categories):
        return False

    term = search_term.strip().lower()
    if not term:
        return True
    return term in _haystack(person)


def filter_graph(
    persons: Iterable[Person],
    relations: Iterable[Relation],
    search_term: str = "",
    proximity_filter: Proximity | str = PROXIMITY_ALL,
    category_filter: Iterable[PersonCategory | str] = (),
) -> GraphView:
    """Derive the visible subset. Hidden relations are not deleted."""
    categories = list(category_filter)
    visible = [
        p for p in persons
        if person_matches(p, search_term, proximity_filter, categories)
    ]
    keep_ids = {p.id for p in visible}
    return GraphView(
        persons=visible,
        relations=[
            r for r in relations
            if r.source_id in keep_ids and r.target_id in keep_ids
        ],
    )
