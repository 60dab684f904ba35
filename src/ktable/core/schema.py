"""
Pydantic v2 models for the resolved table schema handed over by the catalog layer.

Responsibilities
- Model the three column variants (physical, computed, metadata) as a discriminated union.
- Model the optional primary-key constraint and watermark.
- Enforce structural rules: unique column names, primary-key columns exist and are
  physical, watermark column exists.
- Derive the physical, source-produced, and sink-consumed row types.

Style
- Zero-IO (stdlib + pydantic + polars only).
- Column types accept SQL-style strings (``"STRING NOT NULL"``) and are normalized to
  polars dtypes plus a nullability flag via ``ktable.core.types``.

Examples
    >>> from ktable.core.schema import TableSchema, physical, metadata
    >>> schema = TableSchema.of(
    ...     physical("name", "STRING NOT NULL"),
    ...     physical("count", "DECIMAL(38, 18)"),
    ...     metadata("ts", "TIMESTAMP_LTZ(3)", key="timestamp"),
    ... )
    >>> schema.physical_row_type().names
    ('name', 'count')
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Literal

import polars as pl
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import SchemaError
from .types import DataField, RowType, parse_data_type

__all__ = [
    "PhysicalColumn",
    "ComputedColumn",
    "MetadataColumn",
    "Column",
    "UniqueConstraint",
    "WatermarkSpec",
    "TableSchema",
    "ObjectIdentifier",
    "physical",
    "computed",
    "metadata",
]

_MODEL_CONFIG = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)


class _TypedColumn(BaseModel):
    """Shared handling of ``data_type`` given as a string or a polars dtype."""

    model_config = _MODEL_CONFIG

    name: str
    data_type: pl.DataType
    nullable: bool = True

    @model_validator(mode="before")
    @classmethod
    def _parse_data_type(cls, data: Any) -> Any:
        """
        Normalize a string ``data_type`` into a polars dtype and nullability.

        Raises:
            SchemaError: If the type string cannot be parsed.
        """
        if not isinstance(data, dict):
            return data
        raw = data.get("data_type")
        if isinstance(raw, str):
            try:
                dtype, nullable = parse_data_type(raw)
            except ValueError as e:
                raise SchemaError(f"column {data.get('name')!r}: {e}") from e
            data = {**data, "data_type": dtype}
            data.setdefault("nullable", nullable)
        elif isinstance(raw, type):
            data = {**data, "data_type": raw()}
        return data

    def to_field(self) -> DataField:
        return DataField(self.name, self.data_type, self.nullable)


class PhysicalColumn(_TypedColumn):
    """
    Column stored in the message payload (key and/or value).

    Attributes:
        kind (Literal["physical"]): Discriminator.
        name (str): Column name.
        data_type (pl.DataType): Column dtype.
        nullable (bool): Whether NULL is allowed.
    """

    kind: Literal["physical"] = "physical"


class ComputedColumn(_TypedColumn):
    """
    Column derived from an expression; never read from or written to messages.

    Attributes:
        expression (str): SQL expression text, kept verbatim.
    """

    kind: Literal["computed"] = "computed"
    expression: str


class MetadataColumn(_TypedColumn):
    """
    Column backed by connector or format metadata (e.g. the record timestamp).

    Attributes:
        key (str | None): Metadata key; the column name is used when None.
        virtual (bool): Virtual columns are read-only and never written by a sink.
    """

    kind: Literal["metadata"] = "metadata"
    key: str | None = None
    virtual: bool = False

    @property
    def metadata_key(self) -> str:
        return self.key if self.key is not None else self.name


Column = Annotated[
    PhysicalColumn | ComputedColumn | MetadataColumn,
    Field(discriminator="kind"),
]


class UniqueConstraint(BaseModel):
    """
    Primary-key constraint.

    Attributes:
        name (str): Constraint name.
        columns (tuple[str, ...]): Ordered key column names.
    """

    model_config = _MODEL_CONFIG

    name: str
    columns: tuple[str, ...]

    @model_validator(mode="after")
    def _non_empty(self) -> UniqueConstraint:
        if not self.columns:
            raise SchemaError(f"primary key {self.name!r} must list at least one column")
        return self


class WatermarkSpec(BaseModel):
    """
    Watermark declaration; carried for completeness, not interpreted by resolution.

    Attributes:
        column (str): Rowtime column name.
        expression (str): Watermark expression text.
    """

    model_config = _MODEL_CONFIG

    column: str
    expression: str


class TableSchema(BaseModel):
    """
    Ordered columns plus optional primary key and watermark.

    Attributes:
        columns (tuple[Column, ...]): Columns in declaration order. The order of physical
            columns defines projection indices.
        primary_key (UniqueConstraint | None): Optional primary key.
        watermark (WatermarkSpec | None): Optional watermark.

    Raises:
        ktable.core.errors.SchemaError: On duplicate column names, primary-key columns that
            are missing or not physical, or a watermark on an unknown column. Surfaces as
            ``pydantic.ValidationError``.
    """

    model_config = _MODEL_CONFIG

    columns: tuple[Column, ...]
    primary_key: UniqueConstraint | None = None
    watermark: WatermarkSpec | None = None

    @classmethod
    def of(
        cls,
        *columns: PhysicalColumn | ComputedColumn | MetadataColumn,
        primary_key: UniqueConstraint | None = None,
        watermark: WatermarkSpec | None = None,
    ) -> TableSchema:
        return cls(columns=columns, primary_key=primary_key, watermark=watermark)

    @model_validator(mode="after")
    def _validate_structure(self) -> TableSchema:
        seen: set[str] = set()
        for col in self.columns:
            if col.name in seen:
                raise SchemaError(f"duplicate column name {col.name!r}")
            seen.add(col.name)

        if self.primary_key is not None:
            by_name = {c.name: c for c in self.columns}
            for name in self.primary_key.columns:
                col = by_name.get(name)
                if col is None:
                    raise SchemaError(
                        f"primary key {self.primary_key.name!r} references unknown column {name!r}"
                    )
                if col.kind != "physical":
                    raise SchemaError(
                        f"primary key {self.primary_key.name!r} column {name!r} must be physical, "
                        f"got {col.kind}"
                    )

        if self.watermark is not None and self.watermark.column not in seen:
            raise SchemaError(f"watermark references unknown column {self.watermark.column!r}")
        return self

    def physical_columns(self) -> list[PhysicalColumn]:
        return [c for c in self.columns if isinstance(c, PhysicalColumn)]

    def metadata_columns(self) -> list[MetadataColumn]:
        return [c for c in self.columns if isinstance(c, MetadataColumn)]

    def physical_row_type(self) -> RowType:
        """Row type of the physical columns in declaration order."""
        return RowType(tuple(c.to_field() for c in self.physical_columns()))

    def source_row_type(self) -> RowType:
        """Physical fields followed by all metadata columns (what a source produces)."""
        return self.physical_row_type().append(*(c.to_field() for c in self.metadata_columns()))

    def sink_row_type(self) -> RowType:
        """Physical fields followed by persisted (non-virtual) metadata columns."""
        persisted = (c.to_field() for c in self.metadata_columns() if not c.virtual)
        return self.physical_row_type().append(*persisted)


def physical(name: str, data_type: str | pl.DataType, nullable: bool | None = None) -> PhysicalColumn:
    """Shorthand for PhysicalColumn; ``nullable`` overrides a NOT NULL in the type string."""
    data: dict[str, Any] = {"name": name, "data_type": data_type}
    if nullable is not None:
        data["nullable"] = nullable
    return PhysicalColumn.model_validate(data)


def computed(name: str, data_type: str | pl.DataType, expression: str) -> ComputedColumn:
    return ComputedColumn.model_validate(
        {"name": name, "data_type": data_type, "expression": expression}
    )


def metadata(
    name: str,
    data_type: str | pl.DataType,
    key: str | None = None,
    virtual: bool = False,
) -> MetadataColumn:
    return MetadataColumn.model_validate(
        {"name": name, "data_type": data_type, "key": key, "virtual": virtual}
    )


@dataclass(frozen=True)
class ObjectIdentifier:
    """
    Fully qualified table identifier (catalog, database, table).

    Examples:
        >>> ObjectIdentifier.parse("t1", "default", "default").as_summary_string()
        'default.default.t1'
    """

    catalog: str
    database: str
    name: str

    @classmethod
    def parse(cls, text: str, default_catalog: str, default_database: str) -> ObjectIdentifier:
        """
        Parse ``name``, ``database.name`` or ``catalog.database.name``.

        Raises:
            ValueError: On empty parts or more than three parts.
        """
        parts = (text or "").split(".")
        if any(not p for p in parts) or len(parts) > 3:
            raise ValueError(f"invalid table identifier {text!r}")
        if len(parts) == 1:
            return cls(default_catalog, default_database, parts[0])
        if len(parts) == 2:
            return cls(default_catalog, parts[0], parts[1])
        return cls(parts[0], parts[1], parts[2])

    def as_summary_string(self) -> str:
        return f"{self.catalog}.{self.database}.{self.name}"
