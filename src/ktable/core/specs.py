"""
Immutable value objects produced by table resolution.

A resolved table is either a SourceSpec or a SinkSpec. Both are frozen dataclasses with
structural equality: resolving the same schema and options twice yields two equal specs,
and tests build an expected spec and compare it with ``==``.

Responsibilities
- Startup offset variants (earliest, latest, group offsets, specific offsets, timestamp).
- FormatHandle, the per-side (key or value) reference to a format with its stripped
  options, changelog mode, declared readable metadata, applied metadata keys, and the
  projected row type.
- SinkBufferFlushMode, the sink buffering policy.
- JSON-safe descriptions (``to_dict``) and SHA-256 fingerprints.

Notes:
    - FormatHandle.factory is excluded from equality and repr; the identifier already
      names the provider.
    - Handles are complete when constructed. ``create_decoder``/``create_encoder`` are
      pure and may be called any number of times.
    - Mapping fields are stored as read-only views, so a resolved spec cannot change
      after the fact. They still compare equal to plain dicts, and make specs unhashable.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, ClassVar

from .constants import (
    BYTE_ARRAY_DESERIALIZER,
    BYTE_ARRAY_SERIALIZER,
    DEFAULT_TRANSACTION_TIMEOUT_MS,
    KEY_DESERIALIZER,
    KEY_SERIALIZER,
    TRANSACTION_TIMEOUT,
    VALUE_DESERIALIZER,
    VALUE_SERIALIZER,
)
from .grammar import ChangeKind, DeliveryGuarantee, format_changelog_mode
from .hashing import hash_mapping
from .types import DataField, RowType

if TYPE_CHECKING:
    from ktable.formats.base import FormatFactory, RuntimeCodec
    from ktable.partitioners import TablePartitioner

__all__ = [
    "TopicPartition",
    "EarliestOffsets",
    "LatestOffsets",
    "GroupOffsets",
    "SpecificOffsets",
    "TimestampOffsets",
    "StartupOffsets",
    "SinkBufferFlushMode",
    "FormatHandle",
    "SourceSpec",
    "SinkSpec",
    "freeze_mappings",
]


def freeze_mappings(obj: Any, *names: str) -> None:
    """Replace the named mapping fields of a frozen dataclass with read-only copies."""
    for name in names:
        object.__setattr__(obj, name, MappingProxyType(dict(getattr(obj, name))))


@dataclass(frozen=True, order=True)
class TopicPartition:
    """A (topic, partition) pair; orders by topic, then partition."""

    topic: str
    partition: int

    def __str__(self) -> str:
        return f"{self.topic}-{self.partition}"


# ----------------------------------------------------------------------------
# Startup offsets
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class EarliestOffsets:
    """Start from the earliest retained offset of every partition."""

    mode: ClassVar[str] = "earliest-offset"

    def to_dict(self) -> dict[str, Any]:
        return {"mode": self.mode}


@dataclass(frozen=True)
class LatestOffsets:
    """Start from the end of every partition."""

    mode: ClassVar[str] = "latest-offset"

    def to_dict(self) -> dict[str, Any]:
        return {"mode": self.mode}


@dataclass(frozen=True)
class GroupOffsets:
    """Start from the offsets committed for the consumer group."""

    mode: ClassVar[str] = "group-offsets"

    def to_dict(self) -> dict[str, Any]:
        return {"mode": self.mode}


@dataclass(frozen=True)
class SpecificOffsets:
    """
    Start from explicit per-partition offsets.

    Attributes:
        offsets (Mapping[TopicPartition, int]): Offset to start from for each partition.
    """

    offsets: Mapping[TopicPartition, int]
    mode: ClassVar[str] = "specific-offsets"

    def __post_init__(self) -> None:
        freeze_mappings(self, "offsets")

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "offsets": [
                {"topic": tp.topic, "partition": tp.partition, "offset": off}
                for tp, off in sorted(self.offsets.items())
            ],
        }


@dataclass(frozen=True)
class TimestampOffsets:
    """
    Start from the first record whose timestamp is at or after ``millis``.

    Attributes:
        millis (int): Epoch milliseconds.
    """

    millis: int
    mode: ClassVar[str] = "timestamp"

    def to_dict(self) -> dict[str, Any]:
        return {"mode": self.mode, "timestamp_millis": self.millis}


StartupOffsets = EarliestOffsets | LatestOffsets | GroupOffsets | SpecificOffsets | TimestampOffsets


# ----------------------------------------------------------------------------
# Sink buffering
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class SinkBufferFlushMode:
    """
    Sink buffering policy; both values must be positive for buffering to be enabled.

    Attributes:
        max_rows (int): Rows buffered per key before a flush.
        interval_ms (int): Milliseconds between periodic flushes.
    """

    max_rows: int = 0
    interval_ms: int = 0

    DISABLED: ClassVar[SinkBufferFlushMode]

    @property
    def enabled(self) -> bool:
        return self.max_rows > 0 and self.interval_ms > 0

    def to_dict(self) -> dict[str, Any]:
        return {"max_rows": self.max_rows, "interval_ms": self.interval_ms}


SinkBufferFlushMode.DISABLED = SinkBufferFlushMode()


# ----------------------------------------------------------------------------
# Format handles
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class FormatHandle:
    """
    Resolved reference to a format on one side (key or value) of a table.

    Attributes:
        identifier (str): Format identifier, e.g. ``"avro-confluent"``.
        option_prefix (str): ``"key."``, ``"value."`` or ``""`` for the connector-wide
            ``format`` option.
        options (Mapping[str, str]): Format options with ``<prefix><identifier>.`` stripped.
        changelog_mode (frozenset[ChangeKind]): Change kinds the format supports.
        readable_metadata (Mapping[str, DataField]): Metadata the format declares readable.
        metadata_keys (tuple[str, ...]): Metadata keys applied to this handle; their
            fields follow the physical fields in ``produced_row_type``.
        row_type (RowType): Projected physical row type the format sees.
        factory (FormatFactory | None): Provider; not part of equality.
    """

    identifier: str
    option_prefix: str
    options: Mapping[str, str]
    changelog_mode: frozenset[ChangeKind]
    readable_metadata: Mapping[str, DataField]
    metadata_keys: tuple[str, ...]
    row_type: RowType
    factory: FormatFactory | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        freeze_mappings(self, "options", "readable_metadata")

    @property
    def produced_row_type(self) -> RowType:
        """Physical row type followed by one field per applied metadata key."""
        extra = (self.readable_metadata[k].renamed(k) for k in self.metadata_keys)
        return self.row_type.append(*extra)

    @property
    def subject(self) -> str | None:
        """Schema-registry subject, when the format has one."""
        return self.options.get("subject")

    def create_decoder(self) -> RuntimeCodec:
        """Ask the provider for a decoder of ``produced_row_type``."""
        if self.factory is None:
            raise RuntimeError(f"format handle {self.identifier!r} has no factory attached")
        return self.factory.decoder(self.produced_row_type, self.options, self.metadata_keys)

    def create_encoder(self) -> RuntimeCodec:
        """Ask the provider for an encoder of ``row_type``."""
        if self.factory is None:
            raise RuntimeError(f"format handle {self.identifier!r} has no factory attached")
        return self.factory.encoder(self.row_type, self.options)

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "option_prefix": self.option_prefix,
            "options": dict(self.options),
            "changelog_mode": format_changelog_mode(self.changelog_mode),
            "metadata_keys": list(self.metadata_keys),
            "row_type": self.produced_row_type.describe(),
        }


def _handle_dict(handle: FormatHandle | None) -> dict[str, Any] | None:
    return None if handle is None else handle.to_dict()


# ----------------------------------------------------------------------------
# Specs
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceSpec:
    """
    Everything a runtime needs to read a table from topics.

    Attributes:
        physical_row_type (RowType): Physical columns in declaration order.
        produced_row_type (RowType): Physical fields followed by metadata columns.
        key_format (FormatHandle | None): Key format, if configured.
        value_format (FormatHandle): Value format.
        key_projection (tuple[int, ...]): Physical indices feeding the key, in key order.
        value_projection (tuple[int, ...]): Physical indices feeding the value.
        key_prefix (str | None): Prefix stripped from key field names.
        topics (tuple[str, ...] | None): Literal topic names.
        topic_pattern (str | None): Regular expression for topic names.
        properties (Mapping[str, str]): Client properties (``properties.*`` stripped, plus
            the partition discovery interval).
        startup (StartupOffsets): Initial read position.
        metadata_keys (tuple[str, ...]): Connector-level metadata keys to read.
        commit_offsets_on_checkpoint (bool): True iff a consumer group id is configured.
    """

    physical_row_type: RowType
    produced_row_type: RowType
    key_format: FormatHandle | None
    value_format: FormatHandle
    key_projection: tuple[int, ...]
    value_projection: tuple[int, ...]
    key_prefix: str | None
    topics: tuple[str, ...] | None
    topic_pattern: str | None
    properties: Mapping[str, str]
    startup: StartupOffsets
    metadata_keys: tuple[str, ...] = ()
    commit_offsets_on_checkpoint: bool = False

    def __post_init__(self) -> None:
        freeze_mappings(self, "properties")

    @property
    def changelog_mode(self) -> frozenset[ChangeKind]:
        return self.value_format.changelog_mode

    def compiled_topic_pattern(self) -> re.Pattern[str] | None:
        return None if self.topic_pattern is None else re.compile(self.topic_pattern)

    def client_properties(self) -> dict[str, str]:
        """Client properties with byte-array deserializers for key and value."""
        props = dict(self.properties)
        props[KEY_DESERIALIZER] = BYTE_ARRAY_DESERIALIZER
        props[VALUE_DESERIALIZER] = BYTE_ARRAY_DESERIALIZER
        return props

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "source",
            "physical_row_type": self.physical_row_type.describe(),
            "produced_row_type": self.produced_row_type.describe(),
            "key_format": _handle_dict(self.key_format),
            "value_format": _handle_dict(self.value_format),
            "key_projection": list(self.key_projection),
            "value_projection": list(self.value_projection),
            "key_prefix": self.key_prefix,
            "topics": None if self.topics is None else list(self.topics),
            "topic_pattern": self.topic_pattern,
            "properties": dict(self.properties),
            "startup": self.startup.to_dict(),
            "metadata_keys": list(self.metadata_keys),
            "commit_offsets_on_checkpoint": self.commit_offsets_on_checkpoint,
            "changelog_mode": format_changelog_mode(self.changelog_mode),
        }

    def fingerprint(self) -> str:
        return hash_mapping(self.to_dict())


@dataclass(frozen=True)
class SinkSpec:
    """
    Everything a runtime needs to write a table to a topic.

    Attributes:
        physical_row_type (RowType): Physical columns in declaration order.
        consumed_row_type (RowType): Physical fields followed by persisted metadata.
        key_format (FormatHandle | None): Key format, if configured.
        value_format (FormatHandle): Value format.
        key_projection (tuple[int, ...]): Physical indices feeding the key, in key order.
        value_projection (tuple[int, ...]): Physical indices feeding the value.
        key_prefix (str | None): Prefix stripped from key field names.
        topic (str): The single target topic.
        properties (Mapping[str, str]): Client properties with ``properties.`` stripped.
        partitioner (TablePartitioner | None): None means engine-default partitioning.
        delivery_guarantee (DeliveryGuarantee): Write guarantee.
        transactional_id_prefix (str | None): Base of transactional ids.
        parallelism (int | None): Sink parallelism, None to inherit.
        buffer_flush (SinkBufferFlushMode): Buffering policy.
        metadata_keys (tuple[str, ...]): Connector-level metadata keys to write.
    """

    physical_row_type: RowType
    consumed_row_type: RowType
    key_format: FormatHandle | None
    value_format: FormatHandle
    key_projection: tuple[int, ...]
    value_projection: tuple[int, ...]
    key_prefix: str | None
    topic: str
    properties: Mapping[str, str]
    partitioner: TablePartitioner | None
    delivery_guarantee: DeliveryGuarantee
    transactional_id_prefix: str | None = None
    parallelism: int | None = None
    buffer_flush: SinkBufferFlushMode = SinkBufferFlushMode.DISABLED
    metadata_keys: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        freeze_mappings(self, "properties")

    @property
    def changelog_mode(self) -> frozenset[ChangeKind]:
        return self.value_format.changelog_mode

    def client_properties(self) -> dict[str, str]:
        """
        Client properties with byte-array serializers for key and value.

        Exactly-once sinks also get ``transaction.timeout.ms`` unless it is configured.
        """
        props = dict(self.properties)
        props[KEY_SERIALIZER] = BYTE_ARRAY_SERIALIZER
        props[VALUE_SERIALIZER] = BYTE_ARRAY_SERIALIZER
        if self.delivery_guarantee is DeliveryGuarantee.EXACTLY_ONCE:
            props.setdefault(TRANSACTION_TIMEOUT, str(DEFAULT_TRANSACTION_TIMEOUT_MS))
        return props

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "sink",
            "physical_row_type": self.physical_row_type.describe(),
            "consumed_row_type": self.consumed_row_type.describe(),
            "key_format": _handle_dict(self.key_format),
            "value_format": _handle_dict(self.value_format),
            "key_projection": list(self.key_projection),
            "value_projection": list(self.value_projection),
            "key_prefix": self.key_prefix,
            "topic": self.topic,
            "properties": dict(self.properties),
            "partitioner": None if self.partitioner is None else self.partitioner.describe(),
            "delivery_guarantee": self.delivery_guarantee.value,
            "transactional_id_prefix": self.transactional_id_prefix,
            "parallelism": self.parallelism,
            "buffer_flush": self.buffer_flush.to_dict(),
            "metadata_keys": list(self.metadata_keys),
            "changelog_mode": format_changelog_mode(self.changelog_mode),
        }

    def fingerprint(self) -> str:
        return hash_mapping(self.to_dict())
