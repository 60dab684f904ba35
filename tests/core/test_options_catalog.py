from __future__ import annotations

import pytest

from ktable.core.errors import MissingRequiredOption
from ktable.core.grammar import DeliveryGuarantee, ScanStartupMode, ValueFieldsStrategy
from ktable.core.options import (
    CONNECTOR_OPTIONS,
    DELIVERY_GUARANTEE,
    KEY_FIELDS,
    PROPS_GROUP_ID,
    SCAN_STARTUP_MODE,
    SCAN_TOPIC_PARTITION_DISCOVERY,
    SINK_PARALLELISM,
    TOPIC,
    VALUE_FIELDS_INCLUDE,
    TableOptions,
    parse_duration_ms,
    parse_list,
)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("1000 ms", 1000),
        ("1000", 1000),
        ("5 s", 5000),
        ("2min", 120000),
        ("1 h", 3600000),
        ("1d", 86400000),
    ],
)
def test_parse_duration_ms(text: str, expected: int) -> None:
    assert parse_duration_ms(text) == expected


def test_parse_duration_rejects_unknown_units() -> None:
    with pytest.raises(ValueError):
        parse_duration_ms("5 fortnights")
    with pytest.raises(ValueError):
        parse_duration_ms("soon")


def test_parse_list_strips_and_drops_empty_entries() -> None:
    assert parse_list(" a; b ;;c; ") == ["a", "b", "c"]
    assert parse_list("a,b;c", ";,") == ["a", "b", "c"]
    assert parse_list("") == []


def test_defaults_apply_only_through_get() -> None:
    opts = TableOptions({})

    assert opts.get(SCAN_STARTUP_MODE) is ScanStartupMode.GROUP_OFFSETS
    assert opts.get(DELIVERY_GUARANTEE) is DeliveryGuarantee.AT_LEAST_ONCE
    assert opts.get(VALUE_FIELDS_INCLUDE) is ValueFieldsStrategy.ALL
    assert opts.get_optional(SCAN_STARTUP_MODE) is None
    assert opts.get(SINK_PARALLELISM) is None


def test_options_are_parsed_by_declaration() -> None:
    opts = TableOptions(
        {
            "topic": "a;b",
            "key.fields": "id,name",
            "scan.topic-partition-discovery.interval": "10 s",
        }
    )

    assert opts.get(TOPIC) == ["a", "b"]
    assert opts.get(KEY_FIELDS) == ["id", "name"]
    assert opts.get(SCAN_TOPIC_PARTITION_DISCOVERY) == 10000


def test_invalid_values_name_the_option() -> None:
    opts = TableOptions({"sink.parallelism": "0", "scan.startup.mode": "whenever"})

    with pytest.raises(MissingRequiredOption, match="Invalid value for option 'sink.parallelism'"):
        opts.get(SINK_PARALLELISM)
    with pytest.raises(MissingRequiredOption) as ei:
        opts.get(SCAN_STARTUP_MODE)
    assert ei.value.options == ("scan.startup.mode",)


def test_consumed_key_bookkeeping() -> None:
    opts = TableOptions(
        {
            "properties.group.id": "g",
            "properties.bootstrap.servers": "b:9092",
            "topic": "t",
            "mystery": "x",
        }
    )

    assert opts.unconsumed() == [
        "mystery",
        "properties.bootstrap.servers",
        "properties.group.id",
        "topic",
    ]
    assert opts.with_prefix("properties.") == {"group.id": "g", "bootstrap.servers": "b:9092"}
    opts.get(TOPIC)
    assert opts.unconsumed() == ["mystery"]

    extended = opts.with_entries({"value.avro-confluent.subject": "t-value"})
    assert extended.unconsumed() == ["mystery", "value.avro-confluent.subject"]
    # the original view is untouched
    assert "value.avro-confluent.subject" not in opts


def test_group_id_is_not_a_standalone_connector_option() -> None:
    keys = {o.key for o in CONNECTOR_OPTIONS}
    assert PROPS_GROUP_ID.key not in keys
    assert len(keys) == len(CONNECTOR_OPTIONS)
