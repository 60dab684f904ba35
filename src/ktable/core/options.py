"""
Typed option schema for the connector's flat string option map.

Every recognized key is declared once as a ConfigOption (key, parser, default). Resolvers
read options exclusively through TableOptions, which parses values, applies defaults,
and records which keys were consumed so that leftovers can be reported.

Notes:
    - Parsers raise ValueError; ConfigOption.parse re-raises as MissingRequiredOption
      naming the key (malformed values count as missing a valid value).
    - ``properties.*`` keys are pass-through client properties and are read by prefix.
    - Format options (``<prefix><format>.<name>``) are consumed by the format resolver.

Examples:
    >>> from ktable.core.options import TableOptions, SCAN_STARTUP_MODE
    >>> opts = TableOptions({"scan.startup.mode": "earliest-offset"})
    >>> opts.get(SCAN_STARTUP_MODE).value
    'earliest-offset'
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .errors import MissingRequiredOption
from .grammar import (
    DeliveryGuarantee,
    ScanStartupMode,
    ValueFieldsStrategy,
    delivery_guarantee_from_value,
    startup_mode_from_value,
    value_fields_strategy_from_value,
)

__all__ = [
    "ConfigOption",
    "TableOptions",
    "PROPERTIES_PREFIX",
    "CONNECTOR",
    "TOPIC",
    "TOPIC_PATTERN",
    "PROPS_GROUP_ID",
    "FORMAT",
    "KEY_FORMAT",
    "VALUE_FORMAT",
    "KEY_FIELDS",
    "KEY_FIELDS_PREFIX",
    "VALUE_FIELDS_INCLUDE",
    "SCAN_STARTUP_MODE",
    "SCAN_STARTUP_SPECIFIC_OFFSETS",
    "SCAN_STARTUP_TIMESTAMP_MILLIS",
    "SCAN_TOPIC_PARTITION_DISCOVERY",
    "SINK_PARTITIONER",
    "SINK_SEMANTIC",
    "DELIVERY_GUARANTEE",
    "TRANSACTIONAL_ID_PREFIX",
    "SINK_PARALLELISM",
    "SINK_BUFFER_FLUSH_MAX_ROWS",
    "SINK_BUFFER_FLUSH_INTERVAL",
    "CONNECTOR_OPTIONS",
    "parse_duration_ms",
    "parse_list",
]

T = TypeVar("T")

PROPERTIES_PREFIX = "properties."


# -----------------------------------------------------------------------------
# Value parsers
# -----------------------------------------------------------------------------

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([A-Za-z]*)\s*$")
_DURATION_UNITS: dict[str, int] = {
    "": 1,
    "ms": 1,
    "milli": 1,
    "millis": 1,
    "millisecond": 1,
    "milliseconds": 1,
    "s": 1000,
    "sec": 1000,
    "secs": 1000,
    "second": 1000,
    "seconds": 1000,
    "min": 60_000,
    "mins": 60_000,
    "minute": 60_000,
    "minutes": 60_000,
    "h": 3_600_000,
    "hour": 3_600_000,
    "hours": 3_600_000,
    "d": 86_400_000,
    "day": 86_400_000,
    "days": 86_400_000,
}


def parse_duration_ms(text: str) -> int:
    """
    Parse a duration such as ``"1000 ms"``, ``"5 s"`` or ``"1min"`` into milliseconds.

    A bare number is interpreted as milliseconds.

    Raises:
        ValueError: On a malformed value or unknown unit.
    """
    m = _DURATION_RE.match(text or "")
    if m is None:
        raise ValueError(f"expected a duration like '1000 ms' or '5 s' but was {text!r}")
    unit = m.group(2).lower()
    if unit not in _DURATION_UNITS:
        raise ValueError(f"unknown duration unit {m.group(2)!r} in {text!r}")
    return int(m.group(1)) * _DURATION_UNITS[unit]


def parse_list(text: str, separators: str = ";") -> list[str]:
    """Split on any of ``separators``, strip entries, drop empty ones."""
    pattern = "[" + re.escape(separators) + "]"
    return [p.strip() for p in re.split(pattern, text or "") if p.strip()]


def _topics(text: str) -> list[str]:
    return parse_list(text, ";")


def _field_names(text: str) -> list[str]:
    return parse_list(text, ";,")


def _integer(text: str) -> int:
    try:
        return int((text or "").strip())
    except ValueError:
        raise ValueError(f"expected an integer but was {text!r}") from None


def _non_negative_int(text: str) -> int:
    value = _integer(text)
    if value < 0:
        raise ValueError(f"expected a non-negative integer but was {text!r}")
    return value


def _positive_int(text: str) -> int:
    value = _integer(text)
    if value <= 0:
        raise ValueError(f"expected a positive integer but was {text!r}")
    return value


def _string(text: str) -> str:
    return text


# -----------------------------------------------------------------------------
# Option declarations
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ConfigOption(Generic[T]):
    """
    Declaration of one recognized option key.

    Attributes:
        key (str): Dotted option key.
        parser (Callable[[str], T]): Converts the raw string; raises ValueError.
        default (T | None): Value used when the key is absent.
        description (str): Human-readable summary.
    """

    key: str
    parser: Callable[[str], T]
    default: T | None = None
    description: str = ""

    def parse(self, raw: str) -> T:
        """
        Parse a raw string for this option.

        Raises:
            MissingRequiredOption: If the parser rejects the value.
        """
        try:
            return self.parser(raw)
        except ValueError as e:
            raise MissingRequiredOption(
                f"Invalid value for option '{self.key}': {e}", options=(self.key,)
            ) from e


CONNECTOR: ConfigOption[str] = ConfigOption("connector", _string, None, "Connector identifier.")
TOPIC: ConfigOption[list[str]] = ConfigOption(
    "topic", _topics, None, "Topic name(s), separated by ';'."
)
TOPIC_PATTERN: ConfigOption[str] = ConfigOption(
    "topic-pattern", _string, None, "Regular expression matching topic names to read."
)
PROPS_GROUP_ID: ConfigOption[str] = ConfigOption(
    "properties.group.id", _string, None, "Consumer group id."
)
FORMAT: ConfigOption[str] = ConfigOption(
    "format", _string, None, "Value format identifier (connector-wide shorthand)."
)
KEY_FORMAT: ConfigOption[str] = ConfigOption("key.format", _string, None, "Key format identifier.")
VALUE_FORMAT: ConfigOption[str] = ConfigOption(
    "value.format", _string, None, "Value format identifier."
)
KEY_FIELDS: ConfigOption[list[str]] = ConfigOption(
    "key.fields", _field_names, None, "Physical columns that form the key, in key order."
)
KEY_FIELDS_PREFIX: ConfigOption[str] = ConfigOption(
    "key.fields-prefix", _string, None, "Prefix stripped from key field names."
)
VALUE_FIELDS_INCLUDE: ConfigOption[ValueFieldsStrategy] = ConfigOption(
    "value.fields-include",
    value_fields_strategy_from_value,
    ValueFieldsStrategy.ALL,
    "Which physical columns the value format sees.",
)
SCAN_STARTUP_MODE: ConfigOption[ScanStartupMode] = ConfigOption(
    "scan.startup.mode", startup_mode_from_value, ScanStartupMode.GROUP_OFFSETS, "Startup mode."
)
SCAN_STARTUP_SPECIFIC_OFFSETS: ConfigOption[str] = ConfigOption(
    "scan.startup.specific-offsets",
    _string,
    None,
    "Offsets as 'partition:<int>,offset:<long>;...'.",
)
SCAN_STARTUP_TIMESTAMP_MILLIS: ConfigOption[int] = ConfigOption(
    "scan.startup.timestamp-millis", _non_negative_int, None, "Startup epoch milliseconds."
)
SCAN_TOPIC_PARTITION_DISCOVERY: ConfigOption[int] = ConfigOption(
    "scan.topic-partition-discovery.interval",
    parse_duration_ms,
    None,
    "Interval for discovering new partitions.",
)
SINK_PARTITIONER: ConfigOption[str] = ConfigOption(
    "sink.partitioner",
    _string,
    "default",
    "'default', 'fixed', 'round-robin' or a partitioner class name.",
)
SINK_SEMANTIC: ConfigOption[DeliveryGuarantee] = ConfigOption(
    "sink.semantic",
    delivery_guarantee_from_value,
    None,
    "Deprecated alias of 'sink.delivery-guarantee'.",
)
DELIVERY_GUARANTEE: ConfigOption[DeliveryGuarantee] = ConfigOption(
    "sink.delivery-guarantee",
    delivery_guarantee_from_value,
    DeliveryGuarantee.AT_LEAST_ONCE,
    "Delivery guarantee of the sink.",
)
TRANSACTIONAL_ID_PREFIX: ConfigOption[str] = ConfigOption(
    "sink.transactional-id-prefix", _string, None, "Base of transactional ids."
)
SINK_PARALLELISM: ConfigOption[int] = ConfigOption(
    "sink.parallelism", _positive_int, None, "Sink operator parallelism."
)
SINK_BUFFER_FLUSH_MAX_ROWS: ConfigOption[int] = ConfigOption(
    "sink.buffer-flush.max-rows", _non_negative_int, 0, "Rows buffered before a flush."
)
SINK_BUFFER_FLUSH_INTERVAL: ConfigOption[int] = ConfigOption(
    "sink.buffer-flush.interval", parse_duration_ms, 0, "Interval between buffer flushes."
)

CONNECTOR_OPTIONS: tuple[ConfigOption[Any], ...] = (
    CONNECTOR,
    TOPIC,
    TOPIC_PATTERN,
    FORMAT,
    KEY_FORMAT,
    VALUE_FORMAT,
    KEY_FIELDS,
    KEY_FIELDS_PREFIX,
    VALUE_FIELDS_INCLUDE,
    SCAN_STARTUP_MODE,
    SCAN_STARTUP_SPECIFIC_OFFSETS,
    SCAN_STARTUP_TIMESTAMP_MILLIS,
    SCAN_TOPIC_PARTITION_DISCOVERY,
    SINK_PARTITIONER,
    SINK_SEMANTIC,
    DELIVERY_GUARANTEE,
    TRANSACTIONAL_ID_PREFIX,
    SINK_PARALLELISM,
    SINK_BUFFER_FLUSH_MAX_ROWS,
    SINK_BUFFER_FLUSH_INTERVAL,
)


class TableOptions:
    """
    Read-only view over the flat option map that tracks consumed keys.

    Keys are case-sensitive. Only one TableOptions instance is used per resolution, so
    the consumed-key bookkeeping never leaks between tables.
    """

    def __init__(self, raw: Mapping[str, str]) -> None:
        self._raw: dict[str, str] = {str(k): str(v) for k, v in raw.items()}
        self._consumed: set[str] = set()

    def __contains__(self, key: object) -> bool:
        return key in self._raw

    def raw(self, key: str) -> str | None:
        """Raw string value for ``key`` (marks it consumed)."""
        if key in self._raw:
            self._consumed.add(key)
        return self._raw.get(key)

    def get_optional(self, option: ConfigOption[T]) -> T | None:
        """Parsed value, or None when absent (ignores the default)."""
        raw = self.raw(option.key)
        if raw is None:
            return None
        return option.parse(raw)

    def get(self, option: ConfigOption[T]) -> T | None:
        """Parsed value, or the option's default when absent."""
        value = self.get_optional(option)
        return option.default if value is None else value

    def with_prefix(self, prefix: str) -> dict[str, str]:
        """All entries under ``prefix`` with the prefix stripped (marks them consumed)."""
        out: dict[str, str] = {}
        for key, value in self._raw.items():
            if key.startswith(prefix):
                self._consumed.add(key)
                out[key[len(prefix) :]] = value
        return out

    def consume(self, keys: Iterable[str]) -> None:
        self._consumed.update(k for k in keys if k in self._raw)

    def unconsumed(self) -> list[str]:
        return sorted(k for k in self._raw if k not in self._consumed)

    def with_entries(self, entries: Mapping[str, str]) -> TableOptions:
        """New view with ``entries`` added; consumed keys carry over."""
        merged = TableOptions({**self._raw, **entries})
        merged._consumed = set(self._consumed)
        return merged

    def as_dict(self) -> dict[str, str]:
        return dict(self._raw)
