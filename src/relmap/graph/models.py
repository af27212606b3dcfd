"""Graph data models: persons, relations and their input payloads."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator

from relmap.core.types import PersonCategory, Proximity

# C0 control characters other than tab, newline and carriage return
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


class Position(BaseModel):
    x: float
    y: float


class PersonData(BaseModel):
    """Mutable fields of a person, as supplied by an add or edit form."""

    first_name: str
    last_name: str
    company: str | None = None
    comment: str | None = None
    proximity: Proximity = Proximity.MOYEN
    categories: list[PersonCategory] = Field(default_factory=list)
    position: Position | None = None

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def _strip_name(cls, value: object) -> object:
        return _CONTROL_CHARS.sub("", value).strip() if isinstance(value, str) else value

    @field_validator("company", "comment", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        value = _CONTROL_CHARS.sub("", value)
        return value if value.strip() else None

    @field_validator("categories")
    @classmethod
    def _dedupe_categories(cls, value: list[PersonCategory]) -> list[PersonCategory]:
        # Set semantics, canonical order
        return [c for c in PersonCategory if c in value]


class Person(PersonData):
    id: str
    owner_id: str = ""

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def data(self) -> PersonData:
        return PersonData.model_validate(self.model_dump(exclude={"id", "owner_id"}))


class Relation(BaseModel):
    id: str
    source_id: str
    target_id: str
    proximity: Proximity = Proximity.MOYEN
    owner_id: str = ""

    def touches(self, person_id: str) -> bool:
        return self.source_id == person_id or self.target_id == person_id
