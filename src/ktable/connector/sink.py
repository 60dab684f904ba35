"""
Sink-only rules: topic cardinality, partitioner, delivery guarantee, buffering.

Notes:
    - ``sink.semantic`` is the legacy spelling of ``sink.delivery-guarantee``; when both
      are present the legacy option wins and a deprecation warning is logged.
    - ``sink.partitioner`` accepts ``default`` (engine partitioning), ``fixed``,
      ``round-robin`` or a fully qualified TablePartitioner subclass.
"""

from __future__ import annotations

import logging

from ktable.core.errors import (
    CardinalityViolation,
    MissingRequiredOption,
    UnsupportedCombination,
)
from ktable.core.grammar import DeliveryGuarantee, PartitionerKind, partitioner_kind_from_value
from ktable.core.options import (
    DELIVERY_GUARANTEE,
    KEY_FIELDS,
    SINK_BUFFER_FLUSH_INTERVAL,
    SINK_BUFFER_FLUSH_MAX_ROWS,
    SINK_PARTITIONER,
    SINK_SEMANTIC,
    TOPIC,
    TOPIC_PATTERN,
    TRANSACTIONAL_ID_PREFIX,
    TableOptions,
)
from ktable.core.specs import SinkBufferFlushMode
from ktable.partitioners import (
    FixedPartitioner,
    RoundRobinPartitioner,
    TablePartitioner,
    load_partitioner,
)

__all__ = [
    "resolve_sink_topic",
    "resolve_partitioner",
    "resolve_delivery_guarantee",
    "resolve_buffer_flush",
]

logger = logging.getLogger(__name__)


def resolve_sink_topic(topics: tuple[str, ...] | None, pattern: str | None) -> str:
    """
    Raises:
        CardinalityViolation: If the sink would address a topic list or a pattern.
    """
    if pattern is not None:
        raise CardinalityViolation(
            "Flink Kafka sink currently only supports single topic, but got "
            f"'{TOPIC_PATTERN.key}': {pattern}.",
            options=(TOPIC_PATTERN.key,),
        )
    if topics is None or len(topics) != 1:
        raise CardinalityViolation(
            "Flink Kafka sink currently only supports single topic, but got "
            f"'{TOPIC.key}': [{', '.join(topics or ())}].",
            options=(TOPIC.key,),
        )
    return topics[0]


def resolve_partitioner(options: TableOptions) -> TablePartitioner | None:
    """
    Resolve ``sink.partitioner``; None means the engine's default partitioning.

    Raises:
        MissingRequiredOption: If the option is set to an empty string.
        UnsupportedCombination: If ``round-robin`` is combined with key fields.
        InstantiationFailure: If a class name cannot be loaded.
    """
    raw = options.get(SINK_PARTITIONER) or ""
    value = raw.strip()
    if not value:
        raise MissingRequiredOption(
            f"Option '{SINK_PARTITIONER.key}' should be a non-empty string.",
            options=(SINK_PARTITIONER.key,),
        )
    kind = partitioner_kind_from_value(value)
    if kind is PartitionerKind.DEFAULT:
        partitioner = None
    elif kind is PartitionerKind.FIXED:
        partitioner = FixedPartitioner()
    elif kind is PartitionerKind.ROUND_ROBIN:
        if options.get_optional(KEY_FIELDS):
            raise UnsupportedCombination(
                f"Currently '{PartitionerKind.ROUND_ROBIN.value}' partitioner only works when "
                f"option '{KEY_FIELDS.key}' is not specified.",
                options=(SINK_PARTITIONER.key, KEY_FIELDS.key),
            )
        partitioner = RoundRobinPartitioner()
    else:
        partitioner = load_partitioner(value)
    logger.debug("sink partitioner %r resolved to %r", value, partitioner)
    return partitioner


def resolve_delivery_guarantee(options: TableOptions) -> tuple[DeliveryGuarantee, str | None]:
    """
    Return the delivery guarantee and the transactional-id prefix.

    Raises:
        MissingRequiredOption: If exactly-once is requested without a transactional-id
            prefix, or a guarantee value is unknown.
    """
    legacy = options.get_optional(SINK_SEMANTIC)
    if legacy is not None:
        logger.warning(
            "option '%s' is deprecated, use '%s' instead",
            SINK_SEMANTIC.key,
            DELIVERY_GUARANTEE.key,
        )
        guarantee = legacy
    else:
        guarantee = options.get(DELIVERY_GUARANTEE)

    prefix = options.get_optional(TRANSACTIONAL_ID_PREFIX)
    if prefix is not None and not prefix.strip():
        prefix = None
    if guarantee is DeliveryGuarantee.EXACTLY_ONCE and prefix is None:
        raise MissingRequiredOption(
            f"{TRANSACTIONAL_ID_PREFIX.key} must be specified when using "
            f"{guarantee.qualified_name()}.",
            options=(TRANSACTIONAL_ID_PREFIX.key,),
        )
    return guarantee, prefix


def resolve_buffer_flush(options: TableOptions) -> SinkBufferFlushMode:
    """
    Raises:
        MissingRequiredOption: If only one of the two buffering options is positive.
    """
    max_rows = options.get(SINK_BUFFER_FLUSH_MAX_ROWS) or 0
    interval = options.get(SINK_BUFFER_FLUSH_INTERVAL) or 0
    if (max_rows > 0) != (interval > 0):
        raise MissingRequiredOption(
            f"'{SINK_BUFFER_FLUSH_MAX_ROWS.key}' and '{SINK_BUFFER_FLUSH_INTERVAL.key}' must be "
            "set to be greater than zero together to enable sink buffer flushing.",
            options=(SINK_BUFFER_FLUSH_MAX_ROWS.key, SINK_BUFFER_FLUSH_INTERVAL.key),
        )
    if max_rows == 0:
        return SinkBufferFlushMode.DISABLED
    return SinkBufferFlushMode(max_rows=max_rows, interval_ms=interval)
