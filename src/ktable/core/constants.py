"""
Connector-wide identifiers, client property names, and defaults.

Defines the connector identifier, the format identifiers that receive schema-registry
subject defaults, the client properties added when a spec is handed to a runtime, and
the metadata keys the connector itself reads or writes. This module is zero-IO.

Notes:
    - Metadata types are SQL-style strings parsed with ``ktable.core.types``.
    - Changes to metadata keys change which metadata columns a schema may declare.
"""

from __future__ import annotations

from typing import Final

__all__ = [
    "CONNECTOR_IDENTIFIER",
    "AVRO_CONFLUENT",
    "DEBEZIUM_AVRO_CONFLUENT",
    "AVRO_FORMATS",
    "PARTITION_DISCOVERY_PROPERTY",
    "KEY_DESERIALIZER",
    "VALUE_DESERIALIZER",
    "KEY_SERIALIZER",
    "VALUE_SERIALIZER",
    "BYTE_ARRAY_DESERIALIZER",
    "BYTE_ARRAY_SERIALIZER",
    "TRANSACTION_TIMEOUT",
    "DEFAULT_TRANSACTION_TIMEOUT_MS",
    "KEY_PREFIX",
    "VALUE_PREFIX",
    "VALUE_METADATA_PREFIX",
    "READABLE_METADATA",
    "WRITABLE_METADATA",
]

# Value of the ``connector`` option this resolver handles.
CONNECTOR_IDENTIFIER: Final[str] = "kafka"

# Formats that register schemas under a subject in a schema registry.
AVRO_CONFLUENT: Final[str] = "avro-confluent"
DEBEZIUM_AVRO_CONFLUENT: Final[str] = "debezium-avro-confluent"
AVRO_FORMATS: Final[frozenset[str]] = frozenset({AVRO_CONFLUENT, DEBEZIUM_AVRO_CONFLUENT})

# Source property derived from 'scan.topic-partition-discovery.interval'.
PARTITION_DISCOVERY_PROPERTY: Final[str] = "flink.partition-discovery.interval-millis"

# Client properties for raw byte payloads; formats do the actual (de)serialization.
KEY_DESERIALIZER: Final[str] = "key.deserializer"
VALUE_DESERIALIZER: Final[str] = "value.deserializer"
KEY_SERIALIZER: Final[str] = "key.serializer"
VALUE_SERIALIZER: Final[str] = "value.serializer"
BYTE_ARRAY_DESERIALIZER: Final[str] = "org.apache.kafka.common.serialization.ByteArrayDeserializer"
BYTE_ARRAY_SERIALIZER: Final[str] = "org.apache.kafka.common.serialization.ByteArraySerializer"

# Exactly-once sinks need a transaction timeout above the broker's default of 1 minute.
TRANSACTION_TIMEOUT: Final[str] = "transaction.timeout.ms"
DEFAULT_TRANSACTION_TIMEOUT_MS: Final[int] = 60 * 60 * 1000

# Option prefixes of the key- and value-scoped formats.
KEY_PREFIX: Final[str] = "key."
VALUE_PREFIX: Final[str] = "value."

# Metadata keys with this prefix address the value format's readable metadata.
VALUE_METADATA_PREFIX: Final[str] = "value."

# Connector-level metadata readable by a source, in declaration order.
READABLE_METADATA: Final[dict[str, str]] = {
    "topic": "STRING NOT NULL",
    "partition": "INT NOT NULL",
    "headers": "MAP<STRING, BYTES> NOT NULL",
    "leader-epoch": "INT",
    "offset": "BIGINT NOT NULL",
    "timestamp": "TIMESTAMP_LTZ(3) NOT NULL",
    "timestamp-type": "STRING NOT NULL",
}

# Connector-level metadata writable by a sink.
WRITABLE_METADATA: Final[dict[str, str]] = {
    "headers": "MAP<STRING, BYTES>",
    "timestamp": "TIMESTAMP_LTZ(3)",
}
