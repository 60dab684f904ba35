from __future__ import annotations

import json

import pytest

from ktable.core.grammar import ALL_CHANGES, INSERT_ONLY, DeliveryGuarantee
from ktable.core.hashing import hash_mapping, json_dumps_canonical
from ktable.core.specs import (
    FormatHandle,
    GroupOffsets,
    SinkBufferFlushMode,
    SinkSpec,
    SourceSpec,
    SpecificOffsets,
    TimestampOffsets,
    TopicPartition,
)
from ktable.core.types import field, row
from ktable.formats.testing import MockFormat
from ktable.partitioners import FixedPartitioner

ROW = row(field("id", "BIGINT NOT NULL"), field("payload", "STRING"))


def _value_handle(**overrides) -> FormatHandle:
    kwargs = dict(
        identifier="test-format",
        option_prefix="value.",
        options={"delimiter": "|", "readable-metadata": "m1:INT"},
        changelog_mode=INSERT_ONLY,
        readable_metadata={"m1": field("m1", "INT")},
        metadata_keys=("m1",),
        row_type=ROW,
    )
    kwargs.update(overrides)
    return FormatHandle(**kwargs)


def _source(**overrides) -> SourceSpec:
    kwargs = dict(
        physical_row_type=ROW,
        produced_row_type=ROW,
        key_format=None,
        value_format=_value_handle(),
        key_projection=(),
        value_projection=(0, 1),
        key_prefix=None,
        topics=("orders",),
        topic_pattern=None,
        properties={"bootstrap.servers": "b:9092"},
        startup=GroupOffsets(),
    )
    kwargs.update(overrides)
    return SourceSpec(**kwargs)


def _sink(**overrides) -> SinkSpec:
    kwargs = dict(
        physical_row_type=ROW,
        consumed_row_type=ROW,
        key_format=None,
        value_format=_value_handle(metadata_keys=(), readable_metadata={}),
        key_projection=(),
        value_projection=(0, 1),
        key_prefix=None,
        topic="orders",
        properties={"bootstrap.servers": "b:9092"},
        partitioner=FixedPartitioner(),
        delivery_guarantee=DeliveryGuarantee.EXACTLY_ONCE,
        transactional_id_prefix="tx",
    )
    kwargs.update(overrides)
    return SinkSpec(**kwargs)


def test_topic_partitions_order_by_topic_then_partition() -> None:
    tps = [TopicPartition("b", 0), TopicPartition("a", 2), TopicPartition("a", 1)]
    assert sorted(tps) == [TopicPartition("a", 1), TopicPartition("a", 2), TopicPartition("b", 0)]
    assert str(TopicPartition("orders", 3)) == "orders-3"


def test_startup_variants_describe_themselves() -> None:
    offsets = SpecificOffsets({TopicPartition("t", 1): 123, TopicPartition("t", 0): 100})

    assert offsets.mode == "specific-offsets"
    assert offsets.to_dict()["offsets"] == [
        {"topic": "t", "partition": 0, "offset": 100},
        {"topic": "t", "partition": 1, "offset": 123},
    ]
    assert TimestampOffsets(1700000000000).to_dict() == {
        "mode": "timestamp",
        "timestamp_millis": 1700000000000,
    }
    assert GroupOffsets() == GroupOffsets()


def test_buffer_flush_mode_enabled_only_when_both_positive() -> None:
    assert not SinkBufferFlushMode.DISABLED.enabled
    assert SinkBufferFlushMode(100, 1000).enabled
    assert not SinkBufferFlushMode(100, 0).enabled


def test_format_handle_produced_row_type_appends_metadata() -> None:
    h = _value_handle()

    assert h.produced_row_type == ROW.append(field("m1", "INT"))
    assert h.subject is None
    assert _value_handle(options={"subject": "orders-value"}).subject == "orders-value"


def test_format_handle_equality_ignores_factory() -> None:
    assert _value_handle(factory=MockFormat()) == _value_handle()


def test_format_handle_codecs_require_a_factory() -> None:
    with pytest.raises(RuntimeError, match="no factory attached"):
        _value_handle().create_decoder()

    h = _value_handle(factory=MockFormat())
    decoder = h.create_decoder()
    assert decoder.direction == "decode"
    assert decoder.row_type == h.produced_row_type
    assert decoder.metadata_keys == ("m1",)
    assert list(decoder.polars_schema().names()) == ["id", "payload", "m1"]

    encoder = h.create_encoder()
    assert encoder.direction == "encode"
    assert encoder.row_type == ROW


def test_source_spec_changelog_mode_follows_value_format() -> None:
    spec = _source(value_format=_value_handle(changelog_mode=ALL_CHANGES))
    assert spec.changelog_mode == ALL_CHANGES


def test_source_client_properties_add_byte_array_deserializers() -> None:
    spec = _source()
    props = spec.client_properties()

    assert props["key.deserializer"] == "org.apache.kafka.common.serialization.ByteArrayDeserializer"
    assert props["value.deserializer"] == props["key.deserializer"]
    assert props["bootstrap.servers"] == "b:9092"
    # stored properties are untouched
    assert spec.properties == {"bootstrap.servers": "b:9092"}


def test_source_topic_pattern_compiles() -> None:
    spec = _source(topics=None, topic_pattern=r"orders-\d+")
    pattern = spec.compiled_topic_pattern()

    assert pattern is not None and pattern.fullmatch("orders-12")
    assert _source().compiled_topic_pattern() is None


def test_exactly_once_sink_gets_transaction_timeout_default() -> None:
    props = _sink().client_properties()
    assert props["transaction.timeout.ms"] == "3600000"
    assert props["value.serializer"] == "org.apache.kafka.common.serialization.ByteArraySerializer"

    configured = _sink(properties={"transaction.timeout.ms": "60000"}).client_properties()
    assert configured["transaction.timeout.ms"] == "60000"

    at_least_once = _sink(delivery_guarantee=DeliveryGuarantee.AT_LEAST_ONCE)
    assert "transaction.timeout.ms" not in at_least_once.client_properties()


def test_spec_dicts_are_json_safe_and_fingerprints_stable() -> None:
    source = _source(startup=SpecificOffsets({TopicPartition("orders", 0): 5}))
    sink = _sink()

    for spec in (source, sink):
        text = json_dumps_canonical(spec.to_dict())
        assert json.loads(text) == spec.to_dict()
        assert spec.fingerprint() == hash_mapping(json.loads(text))
        assert len(spec.fingerprint()) == 64

    assert sink.to_dict()["partitioner"] == "fixed"
    assert sink.to_dict()["delivery_guarantee"] == "exactly-once"
    assert source.to_dict()["value_format"]["row_type"][-1] == {"name": "m1", "type": "INT"}
    assert _source(topics=("other",)).fingerprint() != source.fingerprint()


def test_canonical_json_is_key_order_independent() -> None:
    assert json_dumps_canonical({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'
    assert hash_mapping({"a": 1, "b": 2}) == hash_mapping({"b": 2, "a": 1})


def test_mapping_fields_are_read_only_copies() -> None:
    properties = {"bootstrap.servers": "b:9092"}
    offsets = {TopicPartition("orders", 0): 5}
    sink = _sink(properties=properties)
    startup = SpecificOffsets(offsets)

    # later changes to the caller's dicts do not leak in
    properties["bootstrap.servers"] = "other:9092"
    offsets[TopicPartition("orders", 1)] = 7

    assert sink.properties == {"bootstrap.servers": "b:9092"}
    assert startup.offsets == {TopicPartition("orders", 0): 5}
    with pytest.raises(TypeError):
        sink.properties["acks"] = "all"
    with pytest.raises(TypeError):
        _value_handle().readable_metadata["m2"] = field("m2", "INT")
    with pytest.raises(TypeError):
        startup.offsets[TopicPartition("orders", 2)] = 1


def test_codec_options_are_read_only() -> None:
    handle = _value_handle(factory=MockFormat())
    codec = handle.create_decoder()

    with pytest.raises(TypeError):
        codec.options["delimiter"] = ";"
    assert codec.options == handle.options
