from __future__ import annotations

import logging

import pytest

from conftest import SINK_PROPERTIES, TOPIC, TOPIC_REGEX, TOPICS, handle, physical_row
from ktable.core.errors import (
    CardinalityViolation,
    ConfigurationConflict,
    InstantiationFailure,
    MissingRequiredOption,
    UnsupportedCombination,
)
from ktable.core.grammar import DeliveryGuarantee
from ktable.core.schema import TableSchema, metadata, physical
from ktable.core.specs import SinkBufferFlushMode, SinkSpec
from ktable.core.types import field, row
from ktable.partitioners import FixedPartitioner, RoundRobinPartitioner, TablePartitioner


class RegionPartitioner(TablePartitioner):
    def partition(self, record, key, value, topic, partitions) -> int:
        return partitions[0]


class NotAPartitioner:
    pass


def test_basic_sink(factory, schema, sink_options) -> None:
    spec = factory.create_sink(schema, sink_options, table="t1")

    physical = physical_row()
    expected = SinkSpec(
        physical_row_type=physical,
        consumed_row_type=physical,
        key_format=None,
        value_format=handle("test-format", "", {"delimiter": ","}, physical),
        key_projection=(),
        value_projection=(0, 1, 2),
        key_prefix=None,
        topic=TOPIC,
        properties=SINK_PROPERTIES,
        partitioner=FixedPartitioner(),
        delivery_guarantee=DeliveryGuarantee.EXACTLY_ONCE,
        transactional_id_prefix="kafka-sink",
        parallelism=None,
        buffer_flush=SinkBufferFlushMode.DISABLED,
        metadata_keys=(),
    )
    assert spec == expected


def test_sink_value_format_handle_creates_encoder(factory, schema, sink_options) -> None:
    spec = factory.create_sink(schema, sink_options, table="t1")
    encoder = spec.value_format.create_encoder()

    assert encoder.direction == "encode"
    assert encoder.row_type == physical_row()


def test_sink_with_key_and_value_formats(factory, schema, key_value_options) -> None:
    spec = factory.create_sink(schema, key_value_options, table="t1")

    physical = physical_row()
    expected = SinkSpec(
        physical_row_type=physical,
        consumed_row_type=physical,
        key_format=handle(
            "test-format", "key.", {"delimiter": "#"}, row(field("name", "STRING NOT NULL"))
        ),
        value_format=handle("test-format", "value.", {"delimiter": "|"}, physical.project([1, 2])),
        key_projection=(0,),
        value_projection=(1, 2),
        key_prefix=None,
        topic=TOPIC,
        properties=SINK_PROPERTIES,
        partitioner=FixedPartitioner(),
        delivery_guarantee=DeliveryGuarantee.EXACTLY_ONCE,
        transactional_id_prefix="kafka-sink",
    )
    assert spec == expected


def test_sink_defaults(factory, schema) -> None:
    options = {
        "connector": "kafka",
        "topic": TOPIC,
        "properties.bootstrap.servers": "dummy",
        "value.format": "test-format",
        "value.test-format.delimiter": ",",
    }

    spec = factory.create_sink(schema, options, table="t1")

    assert spec.partitioner is None
    assert spec.delivery_guarantee is DeliveryGuarantee.AT_LEAST_ONCE
    assert spec.transactional_id_prefix is None
    assert spec.parallelism is None
    assert spec.buffer_flush == SinkBufferFlushMode.DISABLED
    assert spec.value_format.option_prefix == "value."
    assert "transaction.timeout.ms" not in spec.client_properties()


def test_sink_with_parallelism_and_buffer_flush(factory, schema, sink_options) -> None:
    options = dict(sink_options)
    options["sink.parallelism"] = "100"
    options["sink.buffer-flush.max-rows"] = "1000"
    options["sink.buffer-flush.interval"] = "1 s"

    spec = factory.create_sink(schema, options, table="t1")

    assert spec.parallelism == 100
    assert spec.buffer_flush == SinkBufferFlushMode(max_rows=1000, interval_ms=1000)
    assert spec.buffer_flush.enabled


@pytest.mark.parametrize(
    ("max_rows", "interval"),
    [("1000", "0"), ("0", "1 s"), ("100", None), (None, "2 s")],
)
def test_buffer_flush_options_must_be_set_together(
    factory, schema, sink_options, max_rows, interval
) -> None:
    options = dict(sink_options)
    if max_rows is not None:
        options["sink.buffer-flush.max-rows"] = max_rows
    if interval is not None:
        options["sink.buffer-flush.interval"] = interval

    with pytest.raises(MissingRequiredOption) as ei:
        factory.create_sink(schema, options, table="t1")
    assert str(ei.value) == (
        "'sink.buffer-flush.max-rows' and 'sink.buffer-flush.interval' must be set to be "
        "greater than zero together to enable sink buffer flushing."
    )


def test_invalid_parallelism(factory, schema, sink_options) -> None:
    options = dict(sink_options)
    options["sink.parallelism"] = "0"

    with pytest.raises(MissingRequiredOption, match="Invalid value for option 'sink.parallelism'"):
        factory.create_sink(schema, options, table="t1")


def test_sink_with_persisted_metadata(factory, sink_options) -> None:
    schema = TableSchema.of(
        physical("name", "STRING NOT NULL"),
        physical("count", "BIGINT"),
        metadata("ts", "TIMESTAMP_LTZ(3)", key="timestamp"),
        metadata("hdrs", "MAP<STRING, BYTES>", key="headers"),
        metadata("off", "BIGINT", key="offset", virtual=True),
    )

    spec = factory.create_sink(schema, sink_options, table="t1")

    # writable-key order, not column order; virtual columns skipped
    assert spec.metadata_keys == ("headers", "timestamp")
    assert spec.consumed_row_type.names == ("name", "count", "ts", "hdrs")
    assert spec.value_projection == (0, 1)


def test_sink_rejects_non_writable_metadata(factory, sink_options) -> None:
    schema = TableSchema.of(
        physical("name", "STRING NOT NULL"),
        metadata("off", "BIGINT", key="offset"),
    )

    with pytest.raises(UnsupportedCombination) as ei:
        factory.create_sink(schema, sink_options, table="t1")
    assert str(ei.value) == (
        "Invalid metadata key 'offset' in column 'off' of table 'default.default.t1'. "
        "The Kafka sink supports the following metadata keys for writing:\nheaders\ntimestamp"
    )


# ----------------------------------------------------------------------------
# Topics
# ----------------------------------------------------------------------------


def test_sink_rejects_topic_list(factory, schema, sink_options) -> None:
    options = dict(sink_options)
    options["topic"] = TOPICS

    with pytest.raises(CardinalityViolation) as ei:
        factory.create_sink(schema, options, table="t1")
    assert str(ei.value) == (
        "Flink Kafka sink currently only supports single topic, but got 'topic': "
        "[myTopic-1, myTopic-2, myTopic-3]."
    )


def test_sink_rejects_topic_pattern(factory, schema, sink_options) -> None:
    options = dict(sink_options)
    del options["topic"]
    options["topic-pattern"] = TOPIC_REGEX

    with pytest.raises(CardinalityViolation) as ei:
        factory.create_sink(schema, options, table="t1")
    assert str(ei.value) == (
        "Flink Kafka sink currently only supports single topic, but got 'topic-pattern': "
        "myTopic-\\d+."
    )


def test_sink_topic_conflict_is_reported_first(factory, schema, sink_options) -> None:
    options = dict(sink_options)
    options["topic-pattern"] = TOPIC_REGEX

    with pytest.raises(ConfigurationConflict):
        factory.create_sink(schema, options, table="t1")


def test_sink_value_format_required(factory, schema, sink_options) -> None:
    options = dict(sink_options)
    del options["format"]

    with pytest.raises(MissingRequiredOption) as ei:
        factory.create_sink(schema, options, table="t1")
    assert str(ei.value) == "Could not find required sink format 'value.format'."


# ----------------------------------------------------------------------------
# Partitioners
# ----------------------------------------------------------------------------


def test_round_robin_partitioner(factory, schema, sink_options) -> None:
    options = dict(sink_options)
    options["sink.partitioner"] = "round-robin"

    spec = factory.create_sink(schema, options, table="t1")
    assert spec.partitioner == RoundRobinPartitioner()
    assert spec.to_dict()["partitioner"] == "round-robin"


def test_round_robin_partitioner_rejects_key_fields(factory, schema, key_value_options) -> None:
    options = dict(key_value_options)
    options["sink.partitioner"] = "round-robin"

    with pytest.raises(UnsupportedCombination) as ei:
        factory.create_sink(schema, options, table="t1")
    assert str(ei.value) == (
        "Currently 'round-robin' partitioner only works when option 'key.fields' is not "
        "specified."
    )


def test_custom_partitioner_class(factory, schema, sink_options) -> None:
    options = dict(sink_options)
    options["sink.partitioner"] = f"{__name__}.RegionPartitioner"

    spec = factory.create_sink(schema, options, table="t1")
    assert isinstance(spec.partitioner, RegionPartitioner)
    assert spec.to_dict()["partitioner"] == f"{__name__}.RegionPartitioner"


def test_unknown_partitioner_class(factory, schema, sink_options) -> None:
    options = dict(sink_options)
    options["sink.partitioner"] = "abc"

    with pytest.raises(InstantiationFailure) as ei:
        factory.create_sink(schema, options, table="t1")
    assert str(ei.value) == "Could not find and instantiate partitioner class 'abc'"


def test_partitioner_class_of_wrong_type(factory, schema, sink_options) -> None:
    options = dict(sink_options)
    options["sink.partitioner"] = f"{__name__}.NotAPartitioner"

    with pytest.raises(InstantiationFailure) as ei:
        factory.create_sink(schema, options, table="t1")
    assert str(ei.value) == (
        f"Sink partitioner class '{__name__}.NotAPartitioner' should extend from the required "
        "class ktable.partitioners.TablePartitioner"
    )


def test_empty_partitioner(factory, schema, sink_options) -> None:
    options = dict(sink_options)
    options["sink.partitioner"] = "  "

    with pytest.raises(MissingRequiredOption) as ei:
        factory.create_sink(schema, options, table="t1")
    assert str(ei.value) == "Option 'sink.partitioner' should be a non-empty string."


# ----------------------------------------------------------------------------
# Delivery guarantee
# ----------------------------------------------------------------------------


def test_exactly_once_requires_transactional_id_prefix(factory, schema, sink_options) -> None:
    options = dict(sink_options)
    del options["sink.transactional-id-prefix"]

    with pytest.raises(MissingRequiredOption) as ei:
        factory.create_sink(schema, options, table="t1")
    assert str(ei.value) == (
        "sink.transactional-id-prefix must be specified when using "
        "DeliveryGuarantee.EXACTLY_ONCE."
    )


def test_blank_transactional_id_prefix_counts_as_missing(factory, schema, sink_options) -> None:
    options = dict(sink_options)
    options["sink.transactional-id-prefix"] = " "

    with pytest.raises(MissingRequiredOption, match="must be specified"):
        factory.create_sink(schema, options, table="t1")


def test_legacy_semantic_option_takes_precedence(factory, schema, sink_options, caplog) -> None:
    options = dict(sink_options)
    options["sink.semantic"] = "at-least-once"

    with caplog.at_level(logging.WARNING, logger="ktable"):
        spec = factory.create_sink(schema, options, table="t1")

    assert spec.delivery_guarantee is DeliveryGuarantee.AT_LEAST_ONCE
    assert "deprecated" in caplog.text


def test_legacy_semantic_exactly_once_requires_prefix(factory, schema, sink_options) -> None:
    options = dict(sink_options)
    del options["sink.delivery-guarantee"]
    del options["sink.transactional-id-prefix"]
    options["sink.semantic"] = "exactly-once"

    with pytest.raises(MissingRequiredOption, match="DeliveryGuarantee.EXACTLY_ONCE"):
        factory.create_sink(schema, options, table="t1")


def test_delivery_guarantee_none(factory, schema, sink_options) -> None:
    options = dict(sink_options)
    options["sink.delivery-guarantee"] = "none"

    spec = factory.create_sink(schema, options, table="t1")
    assert spec.delivery_guarantee is DeliveryGuarantee.NONE
    assert spec.transactional_id_prefix == "kafka-sink"


# ----------------------------------------------------------------------------
# Primary keys
# ----------------------------------------------------------------------------


def test_primary_key_requires_updating_format(factory, pk_schema, sink_options) -> None:
    with pytest.raises(UnsupportedCombination) as ei:
        factory.create_sink(pk_schema, sink_options, table="t1")
    assert str(ei.value) == (
        "The Kafka table 'default.default.t1' with 'test-format' format doesn't support "
        "defining PRIMARY KEY constraint on the table, because it can't guarantee the "
        "semantic of primary key."
    )


def test_primary_key_with_changelog_format(factory, pk_schema, sink_options) -> None:
    options = dict(sink_options)
    options["test-format.changelog-mode"] = "I;UA;UB;D"

    spec = factory.create_sink(pk_schema, options, table="t1")
    assert spec.physical_row_type == physical_row()
    assert spec.value_format.options["changelog-mode"] == "I;UA;UB;D"
