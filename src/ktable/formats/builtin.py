"""
Capability declarations for the formats commonly paired with the connector.

Only capabilities live here (accepted options, changelog mode, readable metadata, row
type restrictions). The actual encode/decode work belongs to the execution engine,
which receives a RuntimeCodec naming the format and its options.
"""

from __future__ import annotations

from collections.abc import Mapping

from ktable.core.constants import AVRO_CONFLUENT, DEBEZIUM_AVRO_CONFLUENT
from ktable.core.errors import UnsupportedCombination
from ktable.core.grammar import ALL_CHANGES, ChangeKind
from ktable.core.types import DataField, RowType

from .base import FormatFactory, InsertOnlyFormat, metadata_fields

__all__ = [
    "RawFormat",
    "CsvFormat",
    "JsonFormat",
    "AvroFormat",
    "AvroConfluentFormat",
    "DebeziumJsonFormat",
    "DebeziumAvroConfluentFormat",
    "CanalJsonFormat",
    "MaxwellJsonFormat",
    "BUILTIN_FORMATS",
]

_JSON_OPTIONS = frozenset(
    {
        "fail-on-missing-field",
        "ignore-parse-errors",
        "timestamp-format.standard",
        "map-null-key.mode",
        "map-null-key.literal",
        "encode.decimal-as-plain-number",
    }
)

_REGISTRY_OPTIONS = frozenset(
    {
        "subject",
        "schema",
        "basic-auth.credentials-source",
        "basic-auth.user-info",
        "bearer-auth.credentials-source",
        "bearer-auth.token",
        "ssl.keystore.location",
        "ssl.keystore.password",
        "ssl.truststore.location",
        "ssl.truststore.password",
    }
)


class RawFormat(InsertOnlyFormat):
    """Single-column payload copied as raw bytes or a string."""

    identifier = "raw"
    optional_options = frozenset({"charset", "endianness"})

    def check_row_type(self, row_type: RowType, options: Mapping[str, str]) -> None:
        if len(row_type) != 1:
            described = ", ".join(f"`{f.name}` {f.type_string()}" for f in row_type)
            raise UnsupportedCombination(
                "The 'raw' format only supports single physical column. "
                f"However the defined schema contains multiple physical columns: [{described}]"
            )


class CsvFormat(InsertOnlyFormat):
    identifier = "csv"
    optional_options = frozenset(
        {
            "field-delimiter",
            "disable-quote-character",
            "quote-character",
            "allow-comments",
            "ignore-parse-errors",
            "array-element-delimiter",
            "escape-character",
            "null-literal",
            "write-bigdecimal-in-scientific-notation",
        }
    )


class JsonFormat(InsertOnlyFormat):
    identifier = "json"
    optional_options = _JSON_OPTIONS | {"encode.ignore-null-fields"}


class AvroFormat(InsertOnlyFormat):
    identifier = "avro"
    optional_options = frozenset({"encoding", "timestamp_mapping.legacy"})


class AvroConfluentFormat(InsertOnlyFormat):
    """Avro with schemas registered in a schema registry under a subject."""

    identifier = AVRO_CONFLUENT
    required_options = frozenset({"url"})
    optional_options = _REGISTRY_OPTIONS
    option_prefixes = frozenset({"properties."})


class _ChangelogFormat(FormatFactory):
    """CDC envelope formats: decode inserts, updates and deletes."""

    metadata_declaration = ""

    def changelog_mode(self, options: Mapping[str, str]) -> frozenset[ChangeKind]:
        return ALL_CHANGES

    def readable_metadata(self, options: Mapping[str, str]) -> dict[str, DataField]:
        return metadata_fields(self.metadata_declaration)


class DebeziumJsonFormat(_ChangelogFormat):
    identifier = "debezium-json"
    optional_options = (_JSON_OPTIONS - {"fail-on-missing-field"}) | {"schema-include"}
    metadata_declaration = (
        "schema:STRING, ingestion-timestamp:TIMESTAMP_LTZ(3), source.timestamp:TIMESTAMP_LTZ(3), "
        "source.database:STRING, source.schema:STRING, source.table:STRING, "
        "source.properties:MAP<STRING, STRING>"
    )


class DebeziumAvroConfluentFormat(_ChangelogFormat):
    identifier = DEBEZIUM_AVRO_CONFLUENT
    required_options = frozenset({"url"})
    optional_options = _REGISTRY_OPTIONS
    option_prefixes = frozenset({"properties."})


class CanalJsonFormat(_ChangelogFormat):
    identifier = "canal-json"
    optional_options = (_JSON_OPTIONS - {"fail-on-missing-field"}) | {
        "database.include",
        "table.include",
    }
    metadata_declaration = (
        "database:STRING, table:STRING, sql-type:MAP<STRING, INT>, pk-names:ARRAY<STRING>, "
        "ingestion-timestamp:TIMESTAMP_LTZ(3), event-timestamp:TIMESTAMP_LTZ(3)"
    )


class MaxwellJsonFormat(_ChangelogFormat):
    identifier = "maxwell-json"
    optional_options = _JSON_OPTIONS - {"fail-on-missing-field"}
    metadata_declaration = (
        "database:STRING, table:STRING, primary-key-columns:ARRAY<STRING>, "
        "ingestion-timestamp:TIMESTAMP_LTZ(3)"
    )


BUILTIN_FORMATS: tuple[FormatFactory, ...] = (
    RawFormat(),
    CsvFormat(),
    JsonFormat(),
    AvroFormat(),
    AvroConfluentFormat(),
    DebeziumJsonFormat(),
    DebeziumAvroConfluentFormat(),
    CanalJsonFormat(),
    MaxwellJsonFormat(),
)
