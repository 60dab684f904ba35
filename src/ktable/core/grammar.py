"""
Closed vocabularies for connector options and helpers to normalize them.

Defines the tagged variants that resolution dispatches on (startup mode, delivery
guarantee, value-fields strategy, partitioner kind) and the row change kinds a format
may encode or decode. Resolution code matches on these enums and never compares raw
option strings.

Design principles
-----------------
1) One naming standard:
   - Enum classes: PascalCase
   - Enum member names: UPPER_SNAKE (Python constants)
   - Enum serialized values: exactly what users write in the option map
     (kebab-case for modes, upper snake for ``value.fields-include``, short codes for
     change kinds)

2) Lenient input, canonical output:
   - ``*_from_value`` helpers accept surrounding whitespace, any letter case, and
     ``_`` in place of ``-`` (``EXACTLY_ONCE`` == ``exactly-once``).
   - Helpers raise ValueError; the connector layer re-raises with the option key.

Examples
--------
>>> from ktable.core.grammar import (
...     ChangeKind,
...     DeliveryGuarantee,
...     delivery_guarantee_from_value,
...     parse_changelog_mode,
... )
>>> delivery_guarantee_from_value("EXACTLY_ONCE") is DeliveryGuarantee.EXACTLY_ONCE
True
>>> sorted(k.value for k in parse_changelog_mode("I;UA;UB;D"))
['D', 'I', 'UA', 'UB']
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Final

__all__ = [
    "ChangeKind",
    "INSERT_ONLY",
    "ALL_CHANGES",
    "ScanStartupMode",
    "DeliveryGuarantee",
    "ValueFieldsStrategy",
    "PartitionerKind",
    # helpers
    "normalize_token",
    "startup_mode_from_value",
    "delivery_guarantee_from_value",
    "value_fields_strategy_from_value",
    "partitioner_kind_from_value",
    "parse_changelog_mode",
    "format_changelog_mode",
    "is_insert_only",
]


# ============================================================================
# CHANGELOG
# ============================================================================


class ChangeKind(Enum):
    """
    Row change kinds a format can encode or decode.

    Serialized values are the short codes used by the ``changelog-mode`` format option
    (e.g. ``"I;UA;UB;D"``).
    """

    INSERT = "I"
    UPDATE_BEFORE = "UB"
    UPDATE_AFTER = "UA"
    DELETE = "D"


INSERT_ONLY: Final[frozenset[ChangeKind]] = frozenset({ChangeKind.INSERT})
ALL_CHANGES: Final[frozenset[ChangeKind]] = frozenset(ChangeKind)


# ============================================================================
# SOURCE / SINK MODES
# ============================================================================


class ScanStartupMode(Enum):
    """
    Startup strategies accepted by ``scan.startup.mode``.

    Notes:
      GROUP_OFFSETS is the default when the option is unset.
    """

    EARLIEST_OFFSET = "earliest-offset"
    LATEST_OFFSET = "latest-offset"
    GROUP_OFFSETS = "group-offsets"
    TIMESTAMP = "timestamp"
    SPECIFIC_OFFSETS = "specific-offsets"


class DeliveryGuarantee(Enum):
    """
    Sink delivery guarantees accepted by ``sink.delivery-guarantee`` and the legacy
    ``sink.semantic`` option.
    """

    EXACTLY_ONCE = "exactly-once"
    AT_LEAST_ONCE = "at-least-once"
    NONE = "none"

    def qualified_name(self) -> str:
        """Name used in user-facing messages, e.g. ``DeliveryGuarantee.EXACTLY_ONCE``."""
        return f"{type(self).__name__}.{self.name}"


class ValueFieldsStrategy(Enum):
    """
    Which physical columns the value format sees (``value.fields-include``).

    Notes:
      ALL includes columns that also feed the key format; EXCEPT_KEY drops them.
    """

    ALL = "ALL"
    EXCEPT_KEY = "EXCEPT_KEY"


class PartitionerKind(Enum):
    """
    Built-in partitioner shortcuts for ``sink.partitioner``.

    Any other non-empty value is treated as a fully qualified class name.
    """

    DEFAULT = "default"
    FIXED = "fixed"
    ROUND_ROBIN = "round-robin"


# ============================================================================
# Helpers & Validators (zero I/O)
# ============================================================================


def normalize_token(value: str) -> str:
    """
    Lower-case a mode token and map ``_`` to ``-``.

    Examples:
      >>> normalize_token(" EXACTLY_ONCE ")
      'exactly-once'
    """
    return (value or "").strip().lower().replace("_", "-")


def _choices(enum_cls: type[Enum]) -> list[str]:
    return [m.value for m in enum_cls]


def startup_mode_from_value(s: str) -> ScanStartupMode:
    """
    Parse a ``scan.startup.mode`` value.

    Raises:
      ValueError: If the value is not a known startup mode.
    """
    token = normalize_token(s)
    for mode in ScanStartupMode:
        if mode.value == token:
            return mode
    raise ValueError(f"expected one of {_choices(ScanStartupMode)} but was {s!r}")


def delivery_guarantee_from_value(s: str) -> DeliveryGuarantee:
    """
    Parse a delivery guarantee from ``sink.delivery-guarantee`` or ``sink.semantic``.

    Raises:
      ValueError: If the value is not a known guarantee.
    """
    token = normalize_token(s)
    for guarantee in DeliveryGuarantee:
        if guarantee.value == token:
            return guarantee
    raise ValueError(f"expected one of {_choices(DeliveryGuarantee)} but was {s!r}")


def value_fields_strategy_from_value(s: str) -> ValueFieldsStrategy:
    """
    Parse a ``value.fields-include`` value (case-insensitive, ``-`` or ``_``).

    Raises:
      ValueError: If the value is neither ALL nor EXCEPT_KEY.
    """
    token = (s or "").strip().upper().replace("-", "_")
    try:
        return ValueFieldsStrategy(token)
    except ValueError:
        raise ValueError(
            f"expected one of {_choices(ValueFieldsStrategy)} but was {s!r}"
        ) from None


def partitioner_kind_from_value(s: str) -> PartitionerKind | None:
    """
    Map a ``sink.partitioner`` value onto a built-in partitioner kind.

    Returns:
      PartitionerKind | None: The built-in kind, or None when the value should be
      treated as a class name.
    """
    token = (s or "").strip()
    for kind in PartitionerKind:
        if kind.value == token.lower():
            return kind
    return None


def parse_changelog_mode(s: str) -> frozenset[ChangeKind]:
    """
    Parse a ``;``-separated list of change kind codes.

    Args:
      s (str): Value such as ``"I"`` or ``"I;UA;UB;D"``.

    Returns:
      frozenset[ChangeKind]: Parsed change kinds.

    Raises:
      ValueError: On an empty list or an unknown code.
    """
    kinds: set[ChangeKind] = set()
    for part in (s or "").split(";"):
        code = part.strip().upper()
        if not code:
            continue
        try:
            kinds.add(ChangeKind(code))
        except ValueError:
            raise ValueError(
                f"unknown change kind {part.strip()!r}, expected one of {_choices(ChangeKind)}"
            ) from None
    if not kinds:
        raise ValueError(f"changelog mode must list at least one change kind, got {s!r}")
    return frozenset(kinds)


def format_changelog_mode(kinds: Iterable[ChangeKind]) -> str:
    """
    Render change kinds in canonical I;UB;UA;D order.

    Examples:
      >>> format_changelog_mode(ALL_CHANGES)
      'I;UB;UA;D'
    """
    present = set(kinds)
    return ";".join(k.value for k in ChangeKind if k in present)


def is_insert_only(kinds: Iterable[ChangeKind]) -> bool:
    """True when the changelog mode contains nothing but INSERT."""
    return set(kinds) <= INSERT_ONLY
