from __future__ import annotations

import pytest

from ktable.config import ResolverSettings
from ktable.connector import ConnectorFactory
from ktable.core.grammar import INSERT_ONLY, ChangeKind
from ktable.core.schema import (
    TableSchema,
    UniqueConstraint,
    WatermarkSpec,
    computed,
    metadata,
    physical,
)
from ktable.core.specs import FormatHandle
from ktable.core.types import DataField, RowType, field, row
from ktable.formats import MockFormat, default_registry

TOPIC = "myTopic"
TOPICS = "myTopic-1;myTopic-2;myTopic-3"
TOPIC_REGEX = r"myTopic-\d+"
REGISTRY_URL = "http://localhost:8081"
OFFSETS = "partition:0,offset:100;partition:1,offset:123"

SOURCE_PROPERTIES = {
    "group.id": "dummy",
    "bootstrap.servers": "dummy",
    "flink.partition-discovery.interval-millis": "1000",
}
SINK_PROPERTIES = {"group.id": "dummy", "bootstrap.servers": "dummy"}


def physical_row() -> RowType:
    return row(
        field("name", "STRING NOT NULL"),
        field("count", "DECIMAL(38, 18)"),
        field("time", "TIMESTAMP(3)"),
    )


def handle(
    identifier: str,
    prefix: str,
    options: dict[str, str],
    row_type: RowType,
    *,
    changelog: frozenset[ChangeKind] = INSERT_ONLY,
    readable: dict[str, DataField] | None = None,
    keys: tuple[str, ...] = (),
) -> FormatHandle:
    return FormatHandle(
        identifier=identifier,
        option_prefix=prefix,
        options=options,
        changelog_mode=changelog,
        readable_metadata=readable or {},
        metadata_keys=keys,
        row_type=row_type,
    )


@pytest.fixture
def schema() -> TableSchema:
    return TableSchema.of(
        physical("name", "STRING NOT NULL"),
        physical("count", "DECIMAL(38, 18)"),
        physical("time", "TIMESTAMP(3)"),
        computed("computed-column", "DECIMAL(10, 3)", "count + 1.0"),
        watermark=WatermarkSpec(column="time", expression="time - INTERVAL '5' SECOND"),
    )


@pytest.fixture
def schema_with_metadata() -> TableSchema:
    return TableSchema.of(
        physical("name", "STRING"),
        physical("count", "DECIMAL(38, 18)"),
        metadata("time", "TIMESTAMP(3)", key="timestamp"),
        metadata("metadata", "STRING", key="value.metadata_2"),
    )


@pytest.fixture
def pk_schema() -> TableSchema:
    return TableSchema.of(
        physical("name", "STRING NOT NULL"),
        physical("count", "DECIMAL(38, 18)"),
        physical("time", "TIMESTAMP(3)"),
        primary_key=UniqueConstraint(name="name", columns=("name",)),
    )


@pytest.fixture
def factory() -> ConnectorFactory:
    return ConnectorFactory(ResolverSettings(), default_registry().extended(MockFormat()))


@pytest.fixture
def source_options() -> dict[str, str]:
    return {
        "connector": "kafka",
        "topic": TOPIC,
        "properties.group.id": "dummy",
        "properties.bootstrap.servers": "dummy",
        "scan.startup.mode": "specific-offsets",
        "scan.startup.specific-offsets": OFFSETS,
        "scan.topic-partition-discovery.interval": "1000 ms",
        "format": "test-format",
        "test-format.delimiter": ",",
        "test-format.fail-on-missing": "true",
    }


@pytest.fixture
def sink_options() -> dict[str, str]:
    return {
        "connector": "kafka",
        "topic": TOPIC,
        "properties.group.id": "dummy",
        "properties.bootstrap.servers": "dummy",
        "sink.partitioner": "fixed",
        "sink.delivery-guarantee": "EXACTLY_ONCE",
        "sink.transactional-id-prefix": "kafka-sink",
        "format": "test-format",
        "test-format.delimiter": ",",
    }


@pytest.fixture
def key_value_options() -> dict[str, str]:
    return {
        "connector": "kafka",
        "topic": TOPIC,
        "properties.group.id": "dummy",
        "properties.bootstrap.servers": "dummy",
        "scan.topic-partition-discovery.interval": "1000 ms",
        "sink.partitioner": "fixed",
        "sink.delivery-guarantee": "EXACTLY_ONCE",
        "sink.transactional-id-prefix": "kafka-sink",
        "key.format": "test-format",
        "key.test-format.delimiter": "#",
        "key.fields": "name",
        "value.format": "test-format",
        "value.test-format.delimiter": "|",
        "value.fields-include": "EXCEPT_KEY",
    }
