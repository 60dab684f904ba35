"""
Split physical columns between the key and value formats and plan metadata.

Key projection
- No key format: no key fields; ``key.fields`` must then be absent.
- Key format: ``key.fields`` lists physical columns in key order. With
  ``key.fields-prefix`` every listed name must carry the prefix, and the key format
  sees the names with the prefix removed.

Value projection
- ``ALL``: every physical column, including key columns.
- ``EXCEPT_KEY``: physical columns not used by the key, in declaration order.

Metadata
- Sources read connector-level keys (``topic``, ``timestamp``, ...) and value format
  keys addressed as ``value.<key>``; value format keys are appended to the value
  format's produced row type.
- Sinks write connector-level keys of persisted (non-virtual) metadata columns.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from ktable.core.constants import READABLE_METADATA, VALUE_METADATA_PREFIX, WRITABLE_METADATA
from ktable.core.errors import MissingRequiredOption, UnsupportedCombination
from ktable.core.grammar import ValueFieldsStrategy
from ktable.core.options import (
    KEY_FIELDS,
    KEY_FIELDS_PREFIX,
    KEY_FORMAT,
    VALUE_FIELDS_INCLUDE,
    TableOptions,
)
from ktable.core.schema import ObjectIdentifier, TableSchema
from ktable.core.types import DataField, RowType

__all__ = [
    "Projection",
    "SourceMetadata",
    "project_fields",
    "plan_source_metadata",
    "plan_sink_metadata",
]


@dataclass(frozen=True)
class Projection:
    """
    Key/value split of the physical row.

    Attributes:
        key_indices (tuple[int, ...]): Physical indices in key order.
        value_indices (tuple[int, ...]): Physical indices in declaration order.
        key_prefix (str | None): Prefix removed from key field names.
        key_row_type (RowType): Row type the key format sees.
        value_row_type (RowType): Row type the value format sees (before metadata).
    """

    key_indices: tuple[int, ...]
    value_indices: tuple[int, ...]
    key_prefix: str | None
    key_row_type: RowType
    value_row_type: RowType


@dataclass(frozen=True)
class SourceMetadata:
    """Metadata keys a source reads, split by who provides them."""

    connector_keys: tuple[str, ...] = ()
    format_keys: tuple[str, ...] = ()


def _key_indices(
    physical: RowType,
    options: TableOptions,
    has_key_format: bool,
    prefix: str,
) -> tuple[int, ...]:
    key_fields = options.get_optional(KEY_FIELDS)
    if not has_key_format:
        if key_fields is not None:
            raise UnsupportedCombination(
                f"The option '{KEY_FIELDS.key}' can only be declared if a key format is "
                f"defined using '{KEY_FORMAT.key}'.",
                options=(KEY_FIELDS.key, KEY_FORMAT.key),
            )
        return ()
    if not key_fields:
        raise MissingRequiredOption(
            f"A key format '{KEY_FORMAT.key}' requires the declaration of one or more of "
            f"key fields using '{KEY_FIELDS.key}'.",
            options=(KEY_FORMAT.key, KEY_FIELDS.key),
        )

    indices: list[int] = []
    for name in key_fields:
        pos = physical.index_of(name)
        if pos is None:
            selectable = ", ".join(physical.names)
            raise UnsupportedCombination(
                f"Could not find the field '{name}' in the table schema for usage in the key "
                "format. A key field must be a regular, physical column. The following "
                f"columns can be selected in the '{KEY_FIELDS.key}' option:\n[{selectable}]",
                options=(KEY_FIELDS.key,),
            )
        if not name.startswith(prefix):
            raise UnsupportedCombination(
                f"All fields in '{KEY_FIELDS.key}' must be prefixed with '{prefix}' when option "
                f"'{KEY_FIELDS_PREFIX.key}' is set but field '{name}' is not prefixed.",
                options=(KEY_FIELDS.key, KEY_FIELDS_PREFIX.key),
            )
        if pos in indices:
            raise UnsupportedCombination(
                f"The field '{name}' is declared more than once in '{KEY_FIELDS.key}'.",
                options=(KEY_FIELDS.key,),
            )
        indices.append(pos)
    return tuple(indices)


def _value_indices(
    physical: RowType,
    options: TableOptions,
    key_indices: tuple[int, ...],
    prefix: str,
) -> tuple[int, ...]:
    strategy = options.get(VALUE_FIELDS_INCLUDE)
    if strategy is ValueFieldsStrategy.ALL:
        if prefix:
            raise UnsupportedCombination(
                f"A key prefix is not allowed when option '{VALUE_FIELDS_INCLUDE.key}' is set "
                f"to '{ValueFieldsStrategy.ALL.value}'. Set it to "
                f"'{ValueFieldsStrategy.EXCEPT_KEY.value}' instead to avoid field overlaps.",
                options=(KEY_FIELDS_PREFIX.key, VALUE_FIELDS_INCLUDE.key),
            )
        return tuple(range(len(physical)))
    excluded = set(key_indices)
    return tuple(i for i in range(len(physical)) if i not in excluded)


def project_fields(schema: TableSchema, options: TableOptions, has_key_format: bool) -> Projection:
    """
    Compute key and value projections of the schema's physical columns.

    Raises:
        MissingRequiredOption: If a key format is set without key fields.
        UnsupportedCombination: If key fields are set without a key format, name a
            column that is not physical, repeat a column, or violate the prefix rules.
    """
    physical = schema.physical_row_type()
    prefix = options.get_optional(KEY_FIELDS_PREFIX) or ""
    key_indices = _key_indices(physical, options, has_key_format, prefix)
    value_indices = _value_indices(physical, options, key_indices, prefix)

    key_row = physical.project(key_indices)
    if prefix:
        key_row = key_row.with_names([n[len(prefix) :] for n in key_row.names])
    return Projection(
        key_indices=key_indices,
        value_indices=value_indices,
        key_prefix=prefix or None,
        key_row_type=key_row,
        value_row_type=physical.project(value_indices),
    )


def _invalid_key(
    column: str, key: str, table: ObjectIdentifier, role: str, keys: list[str]
) -> UnsupportedCombination:
    direction = "reading" if role == "source" else "writing"
    listing = "\n".join(keys)
    return UnsupportedCombination(
        f"Invalid metadata key '{key}' in column '{column}' of table "
        f"'{table.as_summary_string()}'. The Kafka {role} supports the following metadata "
        f"keys for {direction}:\n{listing}"
    )


def plan_source_metadata(
    schema: TableSchema,
    value_metadata: Mapping[str, DataField],
    table: ObjectIdentifier,
) -> SourceMetadata:
    """
    Assign each metadata column's key to the value format or the connector.

    Keys are deduplicated and ordered as the format and connector declare them.

    Raises:
        UnsupportedCombination: If a column uses a key nobody provides.
    """
    available = [VALUE_METADATA_PREFIX + k for k in value_metadata] + list(READABLE_METADATA)
    required: set[str] = set()
    for col in schema.metadata_columns():
        key = col.metadata_key
        if key not in available:
            raise _invalid_key(col.name, key, table, "source", available)
        required.add(key)

    format_keys = tuple(
        k for k in value_metadata if VALUE_METADATA_PREFIX + k in required
    )
    connector_keys = tuple(k for k in READABLE_METADATA if k in required)
    return SourceMetadata(connector_keys=connector_keys, format_keys=format_keys)


def plan_sink_metadata(schema: TableSchema, table: ObjectIdentifier) -> tuple[str, ...]:
    """
    Connector-level metadata keys written by a sink, in ``WRITABLE_METADATA`` order.

    Virtual metadata columns are read-only and skipped.

    Raises:
        UnsupportedCombination: If a persisted column uses a non-writable key.
    """
    available = list(WRITABLE_METADATA)
    required: set[str] = set()
    for col in schema.metadata_columns():
        if col.virtual:
            continue
        key = col.metadata_key
        if key not in WRITABLE_METADATA:
            raise _invalid_key(col.name, key, table, "sink", available)
        required.add(key)
    return tuple(k for k in WRITABLE_METADATA if k in required)
