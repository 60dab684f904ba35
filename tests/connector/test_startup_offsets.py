from __future__ import annotations

import pytest

from ktable.connector.startup import parse_specific_offsets, resolve_startup
from ktable.core.errors import MissingRequiredOption
from ktable.core.options import TableOptions
from ktable.core.specs import GroupOffsets, SpecificOffsets, TimestampOffsets, TopicPartition


def test_parse_specific_offsets() -> None:
    offsets = parse_specific_offsets("partition:0,offset:42;partition:1,offset:300", "t")
    assert offsets == {TopicPartition("t", 0): 42, TopicPartition("t", 1): 300}


def test_parse_specific_offsets_tolerates_whitespace_and_trailing_separator() -> None:
    offsets = parse_specific_offsets(" partition:0 , offset:7 ;", "t")
    assert offsets == {TopicPartition("t", 0): 7}


@pytest.mark.parametrize(
    "text",
    [
        "",
        "partition:0",
        "partition:0,offset:x",
        "partition:-1,offset:5",
        "offset:5,partition:0",
        "partition:0,offset:1;;partition:1,offset:2",
    ],
)
def test_parse_specific_offsets_rejects_malformed_entries(text: str) -> None:
    with pytest.raises(MissingRequiredOption) as ei:
        parse_specific_offsets(text, "t")
    assert str(ei.value) == (
        "Invalid properties 'scan.startup.specific-offsets' should follow the format "
        f"'partition:0,offset:42;partition:1,offset:300', but is '{text}'."
    )


def test_default_startup_is_group_offsets() -> None:
    assert resolve_startup(TableOptions({}), ("t",)) == GroupOffsets()


def test_timestamp_startup() -> None:
    opts = TableOptions({"scan.startup.mode": "timestamp", "scan.startup.timestamp-millis": "0"})
    assert resolve_startup(opts, None) == TimestampOffsets(0)


def test_negative_timestamp_is_rejected() -> None:
    opts = TableOptions({"scan.startup.mode": "timestamp", "scan.startup.timestamp-millis": "-5"})
    with pytest.raises(MissingRequiredOption, match="scan.startup.timestamp-millis"):
        resolve_startup(opts, ("t",))


def test_specific_offsets_use_the_single_topic() -> None:
    opts = TableOptions(
        {
            "scan.startup.mode": "specific-offsets",
            "scan.startup.specific-offsets": "partition:2,offset:10",
        }
    )
    assert resolve_startup(opts, ("orders",)) == SpecificOffsets({TopicPartition("orders", 2): 10})
