"""Two-sheet spreadsheet export and import of the whole graph.

The document holds a ``Persons`` sheet and a ``Relations`` sheet, each
with a header row. Categories are flattened into one delimited cell.
"""

from __future__ import annotations

import logging
import zipfile
from io import BytesIO
from typing import Any, Iterable, Iterator

from openpyxl import Workbook, load_workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.utils.exceptions import InvalidFileException
from pydantic import BaseModel, Field

from relmap.core.config import ExportConfig
from relmap.core.errors import DocumentFormatError
from relmap.core.ids import PERSON_PREFIX, RELATION_PREFIX, generate_id
from relmap.core.types import PersonCategory, Proximity
from relmap.graph.models import Person, Position, Relation

logger = logging.getLogger(__name__)

PERSON_COLUMNS = ["id", "firstName", "lastName", "company", "comment", "proximity", "categories", "x", "y"]
RELATION_COLUMNS = ["id", "sourceId", "targetId", "proximity"]


class ImportedGraph(BaseModel):
    """Parsed document content plus what was skipped along the way."""

    persons: list[Person] = Field(default_factory=list)
    relations: list[Relation] = Field(default_factory=list)
    skipped_persons: int = 0
    skipped_relations: int = 0


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _optional_text(value: Any) -> str | None:
    text = _text(value)
    return text if text.strip() else None


def _append_literal(ws: Any, values: list[Any]) -> None:
    """Append a data row whose strings are stored as plain text.

    Characters a worksheet cannot hold are removed, and text starting
    with "=" stays text instead of becoming a formula.
    """
    ws.append([
        ILLEGAL_CHARACTERS_RE.sub("", v) if isinstance(v, str) else v for v in values
    ])
    for cell in ws[ws.max_row]:
        if isinstance(cell.value, str):
            cell.data_type = "s"


def _number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


class WorkbookCodec:
    """Encodes a graph to xlsx bytes and decodes it back."""

    def __init__(self, config: ExportConfig | None = None) -> None:
        self._config = config or ExportConfig()

    @property
    def filename(self) -> str:
        return self._config.filename

    # -- Export --

    def export_bytes(self, persons: Iterable[Person], relations: Iterable[Relation]) -> bytes:
        wb = Workbook()
        persons_ws = wb.active
        persons_ws.title = self._config.persons_sheet
        persons_ws.append(PERSON_COLUMNS)
        for person in persons:
            _append_literal(persons_ws, self._person_row(person))

        relations_ws = wb.create_sheet(self._config.relations_sheet)
        relations_ws.append(RELATION_COLUMNS)
        for relation in relations:
            _append_literal(relations_ws, [
                relation.id,
                relation.source_id,
                relation.target_id,
                relation.proximity.value,
            ])

        buffer = BytesIO()
        wb.save(buffer)
        return buffer.getvalue()

    def _person_row(self, person: Person) -> list[Any]:
        return [
            person.id,
            person.first_name,
            person.last_name,
            person.company,
            person.comment,
            person.proximity.value,
            self.encode_categories(person.categories),
            person.position.x if person.position else None,
            person.position.y if person.position else None,
        ]

    def encode_categories(self, categories: Iterable[PersonCategory]) -> str:
        chosen = set(categories)
        return self._config.category_delimiter.join(c.value for c in PersonCategory if c in chosen)

    def decode_categories(self, raw: Any) -> list[PersonCategory]:
        """Split a delimited cell; unknown tokens are dropped and logged."""
        categories: list[PersonCategory] = []
        for token in _text(raw).split(self._config.category_delimiter):
            token = token.strip()
            if not token:
                continue
            try:
                category = PersonCategory(token)
            except ValueError:
                logger.warning("Dropping unknown category %r on import", token)
                continue
            if category not in categories:
                categories.append(category)
        return categories

    # -- Import --

    def import_bytes(self, data: bytes) -> ImportedGraph:
        """Parse a document. Raises DocumentFormatError, never partially."""
        try:
            wb = load_workbook(BytesIO(data), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
            raise DocumentFormatError(
                "Fichier illisible", detail=f"not a readable workbook: {exc}"
            ) from exc

        try:
            missing = [
                name for name in (self._config.persons_sheet, self._config.relations_sheet)
                if name not in wb.sheetnames
            ]
            if missing:
                raise DocumentFormatError(
                    f"Feuilles attendues: {self._config.persons_sheet}, {self._config.relations_sheet}",
                    detail=f"missing sheet(s): {', '.join(missing)}",
                )
            person_rows = list(self._records(wb[self._config.persons_sheet]))
            relation_rows = list(self._records(wb[self._config.relations_sheet]))
        finally:
            wb.close()

        result = ImportedGraph()
        known: set[str] = set()
        for row in person_rows:
            person = self._parse_person(row)
            if person.id in known:
                logger.warning("Dropping person row with duplicate id %s", person.id)
                result.skipped_persons += 1
                continue
            known.add(person.id)
            result.persons.append(person)

        seen: set[str] = set()
        for row in relation_rows:
            relation = self._parse_relation(row)
            if relation.id in seen:
                logger.warning("Dropping relation row with duplicate id %s", relation.id)
                result.skipped_relations += 1
                continue
            if relation.source_id not in known or relation.target_id not in known:
                logger.warning(
                    "Dropping relation %s: endpoint(s) %r -> %r not among imported persons",
                    relation.id, relation.source_id, relation.target_id,
                )
                result.skipped_relations += 1
                continue
            seen.add(relation.id)
            result.relations.append(relation)
        return result

    @staticmethod
    def _records(ws: Any) -> Iterator[dict[str, Any]]:
        """Yield one dict per non-empty data row, keyed by header."""
        rows = ws.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return
        keys = [_text(h).strip() for h in header]
        for values in rows:
            record = {
                key: value for key, value in zip(keys, values)
                if key and value is not None and value != ""
            }
            if record:
                yield record

    def _parse_person(self, row: dict[str, Any]) -> Person:
        x, y = _number(row.get("x")), _number(row.get("y"))
        return Person(
            id=_optional_text(row.get("id")) or generate_id(PERSON_PREFIX),
            first_name=_text(row.get("firstName")),
            last_name=_text(row.get("lastName")),
            company=_optional_text(row.get("company")),
            comment=_optional_text(row.get("comment")),
            proximity=Proximity.parse(row.get("proximity")),
            categories=self.decode_categories(row.get("categories")),
            position=Position(x=x, y=y) if x is not None and y is not None else None,
        )

    @staticmethod
    def _parse_relation(row: dict[str, Any]) -> Relation:
        return Relation(
            id=_optional_text(row.get("id")) or generate_id(RELATION_PREFIX),
            source_id=_text(row.get("sourceId")),
            target_id=_text(row.get("targetId")),
            proximity=Proximity.parse(row.get("proximity")),
        )
