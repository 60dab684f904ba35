"""
Startup offsets for sources.

``scan.startup.mode`` selects one of five strategies. Only the option belonging to the
selected mode is read; offsets or timestamps configured for other modes are ignored.

Examples:
    >>> from ktable.connector.startup import parse_specific_offsets
    >>> parse_specific_offsets("partition:0,offset:42;partition:1,offset:300", "t")
    {TopicPartition(topic='t', partition=0): 42, TopicPartition(topic='t', partition=1): 300}
"""

from __future__ import annotations

import logging
import re

from ktable.core.errors import MissingRequiredOption, UnsupportedCombination
from ktable.core.grammar import ScanStartupMode
from ktable.core.options import (
    SCAN_STARTUP_MODE,
    SCAN_STARTUP_SPECIFIC_OFFSETS,
    SCAN_STARTUP_TIMESTAMP_MILLIS,
    TableOptions,
)
from ktable.core.specs import (
    EarliestOffsets,
    GroupOffsets,
    LatestOffsets,
    SpecificOffsets,
    StartupOffsets,
    TimestampOffsets,
    TopicPartition,
)

__all__ = ["resolve_startup", "parse_specific_offsets"]

logger = logging.getLogger(__name__)

_OFFSET_ENTRY_RE = re.compile(r"^\s*partition:(\d+)\s*,\s*offset:(\d+)\s*$")


def parse_specific_offsets(text: str, topic: str) -> dict[TopicPartition, int]:
    """
    Parse ``partition:<int>,offset:<long>;...`` into per-partition offsets of ``topic``.

    Raises:
        MissingRequiredOption: If any entry does not follow the grammar.
    """
    key = SCAN_STARTUP_SPECIFIC_OFFSETS.key
    malformed = MissingRequiredOption(
        f"Invalid properties '{key}' should follow the format "
        f"'partition:0,offset:42;partition:1,offset:300', but is '{text}'.",
        options=(key,),
    )
    entries = (text or "").rstrip().rstrip(";").split(";")
    offsets: dict[TopicPartition, int] = {}
    for entry in entries:
        m = _OFFSET_ENTRY_RE.match(entry)
        if m is None:
            raise malformed
        offsets[TopicPartition(topic, int(m.group(1)))] = int(m.group(2))
    return offsets


def resolve_startup(
    options: TableOptions,
    topics: tuple[str, ...] | None,
) -> StartupOffsets:
    """
    Materialize the configured startup mode.

    Args:
        options (TableOptions): Table options.
        topics (tuple[str, ...] | None): Literal topics, None when a pattern is used.

    Raises:
        MissingRequiredOption: If the mode's option is missing or malformed, or the
            mode itself is unknown.
        UnsupportedCombination: If specific offsets are used without a single topic.
    """
    mode = options.get(SCAN_STARTUP_MODE)
    logger.debug("startup mode %s", mode.value)
    if mode is ScanStartupMode.EARLIEST_OFFSET:
        return EarliestOffsets()
    if mode is ScanStartupMode.LATEST_OFFSET:
        return LatestOffsets()
    if mode is ScanStartupMode.GROUP_OFFSETS:
        return GroupOffsets()
    if mode is ScanStartupMode.TIMESTAMP:
        millis = options.get_optional(SCAN_STARTUP_TIMESTAMP_MILLIS)
        if millis is None:
            raise MissingRequiredOption(
                f"'{SCAN_STARTUP_TIMESTAMP_MILLIS.key}' is required in "
                f"'{mode.value}' startup mode but missing.",
                options=(SCAN_STARTUP_TIMESTAMP_MILLIS.key,),
            )
        return TimestampOffsets(millis)

    raw = options.get_optional(SCAN_STARTUP_SPECIFIC_OFFSETS)
    if raw is None:
        raise MissingRequiredOption(
            f"'{SCAN_STARTUP_SPECIFIC_OFFSETS.key}' is required in "
            f"'{mode.value}' startup mode but missing.",
            options=(SCAN_STARTUP_SPECIFIC_OFFSETS.key,),
        )
    if topics is None or len(topics) != 1:
        raise UnsupportedCombination(
            "Currently Kafka source only supports specific offset for single topic.",
            options=(SCAN_STARTUP_SPECIFIC_OFFSETS.key,),
        )
    return SpecificOffsets(parse_specific_offsets(raw, topics[0]))
