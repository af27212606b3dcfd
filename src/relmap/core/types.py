"""Core type definitions shared across all relmap modules."""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class Proximity(StrEnum):
    """Closeness level, for a person (vs. the map owner) or a relation."""

    FORT = "fort"
    MOYEN = "moyen"
    FAIBLE = "faible"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, value: Any, default: Proximity | None = None) -> Proximity:
        """Coerce free input to a proximity, falling back to ``default`` (moyen)."""
        fallback = default if default is not None else cls.MOYEN
        if isinstance(value, cls):
            return value
        if value is None:
            return fallback
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return fallback


class PersonCategory(StrEnum):
    """Role tags a person may carry."""

    PARTENAIRE = "Partenaire"
    INVESTISSEUR = "Investisseur"
    AUTRE = "Autre"
    ORGANISME_DE_FORMATION = "Organisme de formation"
    ADVISOR = "Advisor"


ALL_CATEGORIES: tuple[PersonCategory, ...] = tuple(PersonCategory)

# Sentinel accepted by the proximity filter
PROXIMITY_ALL = "all"
