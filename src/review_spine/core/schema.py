"""
Table schema registry.

The only place in review-spine that knows the physical column order of a
review table.  Every other component reads and writes row fields by name;
this module maps names to positions per table variant.

Architecture:
    ::

        Variant            Columns
        ─────────────────  ───────────────────────────────────────────────
        INTAKE (16)        FileID .. ReviewerNotes | RoutedOn LastAction Error
        SECONDARY_REVIEW   FileID .. ReviewerNotes | MedicalComment MedicalRisk
          / ARCHIVE (22)     RegulatoryComment RegulatoryRisk LegalComment
                             LegalRisk | RoutedOn LastAction Error

    Remapping INTAKE → ARCHIVE pads the six reviewer columns with their
    defaults at the right named positions; RoutedOn/LastAction/Error keep
    their values even though their indices shift.

Tags:
    schema, registry, column-mapping, review-spine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from review_spine.core.errors import SchemaMismatchError


class TableVariant(str, Enum):
    """Review table layouts."""

    INTAKE = "intake"
    SECONDARY_REVIEW = "secondary_review"
    ARCHIVE = "archive"


@dataclass(frozen=True)
class Column:
    """One column: logical field name, physical header, default value."""

    field: str
    header: str
    default: Any = ""


NOT_ASSESSED = "Not assessed"

_LEADING: tuple[Column, ...] = (
    Column("file_id", "FileID"),
    Column("file_name", "FileName"),
    Column("file_url", "FileURL"),
    Column("target_audience", "TargetAudience"),
    Column("purpose", "Purpose"),
    Column("descriptive_name", "DescriptiveName"),
    Column("version_date", "VersionDate"),
    Column("version", "Version"),
    Column("uploader", "Uploader"),
    Column("created_at", "CreatedAt"),
    Column("priority", "Priority", "Normal"),
    Column("status", "Status"),
    Column("reviewer_notes", "ReviewerNotes"),
)

_REVIEWER: tuple[Column, ...] = (
    Column("medical_comment", "MedicalComment"),
    Column("medical_risk", "MedicalRisk", NOT_ASSESSED),
    Column("regulatory_comment", "RegulatoryComment"),
    Column("regulatory_risk", "RegulatoryRisk", NOT_ASSESSED),
    Column("legal_comment", "LegalComment"),
    Column("legal_risk", "LegalRisk", NOT_ASSESSED),
)

_TRAILING: tuple[Column, ...] = (
    Column("routed_on", "RoutedOn"),
    Column("last_action", "LastAction"),
    Column("error", "Error"),
)


class TableSchema:
    """Name↔index map for one table variant."""

    def __init__(self, variant: TableVariant, columns: Iterable[Column]):
        self.variant = variant
        self.columns: tuple[Column, ...] = tuple(columns)
        self._index = {col.field: i for i, col in enumerate(self.columns)}
        if len(self._index) != len(self.columns):
            raise ValueError(f"Duplicate field in schema {variant.value}")

    def __len__(self) -> int:
        return len(self.columns)

    def __contains__(self, field_name: object) -> bool:
        return field_name in self._index

    def __repr__(self) -> str:
        return f"TableSchema({self.variant.value}, {len(self.columns)} columns)"

    @property
    def fields(self) -> list[str]:
        return [col.field for col in self.columns]

    @property
    def headers(self) -> list[str]:
        return [col.header for col in self.columns]

    def index_of(self, field_name: str) -> int:
        """Column index of ``field_name``; ``KeyError`` if the variant lacks it."""
        try:
            return self._index[field_name]
        except KeyError:
            raise KeyError(f"{self.variant.value} has no field {field_name!r}") from None

    def defaults(self) -> dict[str, Any]:
        return {col.field: col.default for col in self.columns}

    def to_values(self, fields: Mapping[str, Any]) -> list[Any]:
        """Physical row for ``fields``; missing fields take their defaults.

        Raises:
            KeyError: ``fields`` names a field this variant does not have.
        """
        unknown = set(fields) - set(self._index)
        if unknown:
            raise KeyError(f"{self.variant.value} has no fields {sorted(unknown)}")
        return [fields.get(col.field, col.default) for col in self.columns]

    def from_values(self, values: list[Any]) -> dict[str, Any]:
        """Field dict for a physical row; short rows are padded with defaults."""
        result: dict[str, Any] = {}
        for i, col in enumerate(self.columns):
            result[col.field] = values[i] if i < len(values) else col.default
        return result

    def partial_update(self, fields: Mapping[str, Any]) -> dict[int, Any]:
        """Translate a field→value patch into a column-index→value patch."""
        return {self.index_of(name): value for name, value in fields.items()}

    def remap(self, fields: Mapping[str, Any], target: TableSchema) -> dict[str, Any]:
        """Re-express a row of this variant in ``target``'s layout, by name.

        Fields the target lacks are dropped; fields this variant lacks are
        filled with the target's defaults.
        """
        result: dict[str, Any] = {}
        for col in target.columns:
            if col.field in self._index and col.field in fields:
                result[col.field] = fields[col.field]
            else:
                result[col.field] = col.default
        return result

    def verify(self, headers: list[str]) -> None:
        """Raise :class:`SchemaMismatchError` unless ``headers`` match exactly."""
        expected = self.headers
        if list(headers) == expected:
            return
        missing = [h for h in expected if h not in headers]
        extra = [h for h in headers if h not in expected]
        raise SchemaMismatchError(
            f"{self.variant.value} columns differ from registry "
            f"(missing={missing}, unexpected={extra})"
        ).with_context(expected=expected, actual=list(headers))


SCHEMAS: dict[TableVariant, TableSchema] = {
    TableVariant.INTAKE: TableSchema(TableVariant.INTAKE, _LEADING + _TRAILING),
    TableVariant.SECONDARY_REVIEW: TableSchema(TableVariant.SECONDARY_REVIEW, _LEADING + _REVIEWER + _TRAILING),
    TableVariant.ARCHIVE: TableSchema(TableVariant.ARCHIVE, _LEADING + _REVIEWER + _TRAILING),
}


def get_schema(variant: TableVariant) -> TableSchema:
    """Get the registered schema for a table variant."""
    return SCHEMAS[variant]


__all__ = [
    "Column",
    "NOT_ASSESSED",
    "SCHEMAS",
    "TableSchema",
    "TableVariant",
    "get_schema",
]
