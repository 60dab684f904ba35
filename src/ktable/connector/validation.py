"""
Option rules shared by the source and sink paths.

- ``connector`` must name this connector when present.
- ``topic`` and ``topic-pattern`` are mutually exclusive and one of them is required.
- Option keys that no connector option, ``properties.*`` entry or resolved format
  consumes are rejected (strict) or logged.
- A primary key requires a value format that can encode updates and deletes.

Rules are checked in a fixed order and the first violation is raised.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from ktable.core.errors import (
    ConfigurationConflict,
    MissingRequiredOption,
    UnsupportedCombination,
    UnsupportedOptions,
)
from ktable.core.grammar import ChangeKind, is_insert_only
from ktable.core.options import (
    CONNECTOR,
    CONNECTOR_OPTIONS,
    PROPERTIES_PREFIX,
    TOPIC,
    TOPIC_PATTERN,
    TableOptions,
)
from ktable.core.schema import ObjectIdentifier, TableSchema

__all__ = [
    "validate_connector",
    "resolve_topics",
    "check_unknown_options",
    "validate_primary_key",
]

logger = logging.getLogger(__name__)


def validate_connector(options: TableOptions, identifier: str) -> None:
    """
    Raises:
        UnsupportedCombination: If ``connector`` is set to another connector.
    """
    value = options.get_optional(CONNECTOR)
    if value is not None and value.strip() != identifier:
        raise UnsupportedCombination(
            f"Option '{CONNECTOR.key}' must be '{identifier}' but was '{value}'.",
            options=(CONNECTOR.key,),
        )


def resolve_topics(options: TableOptions) -> tuple[tuple[str, ...] | None, str | None]:
    """
    Return ``(topics, pattern)``; exactly one of them is not None.

    Raises:
        ConfigurationConflict: If both ``topic`` and ``topic-pattern`` are set.
        MissingRequiredOption: If neither is set, the topic list is empty, or the
            pattern is not a valid regular expression.
    """
    topics = options.get_optional(TOPIC)
    pattern = options.get_optional(TOPIC_PATTERN)
    if topics is not None and pattern is not None:
        raise ConfigurationConflict(
            f"Option '{TOPIC.key}' and '{TOPIC_PATTERN.key}' shouldn't be set together.",
            options=(TOPIC.key, TOPIC_PATTERN.key),
        )
    if pattern is not None:
        try:
            re.compile(pattern)
        except re.error as e:
            raise MissingRequiredOption(
                f"Invalid value for option '{TOPIC_PATTERN.key}': {e}",
                options=(TOPIC_PATTERN.key,),
            ) from e
        return None, pattern
    if not topics:
        raise MissingRequiredOption(
            f"Either '{TOPIC.key}' or '{TOPIC_PATTERN.key}' must be set.",
            options=(TOPIC.key, TOPIC_PATTERN.key),
        )
    return tuple(topics), None


def check_unknown_options(options: TableOptions, connector: str, *, strict: bool) -> None:
    """
    Reject (or log) keys nothing has consumed.

    Connector options are accepted on both paths, so a table definition shared by a
    source and a sink resolves either way. Format options must already be consumed.

    Raises:
        UnsupportedOptions: If unknown keys remain and ``strict``.
    """
    options.consume(opt.key for opt in CONNECTOR_OPTIONS)
    options.with_prefix(PROPERTIES_PREFIX)
    unknown = options.unconsumed()
    if not unknown:
        return
    if strict:
        listing = "\n".join(unknown)
        raise UnsupportedOptions(
            f"Unsupported options found for '{connector}'.\n\nUnsupported options:\n\n{listing}",
            options=unknown,
        )
    logger.warning("ignoring unsupported options for %r: %s", connector, unknown)


def validate_primary_key(
    schema: TableSchema,
    changelog_mode: Iterable[ChangeKind],
    table: ObjectIdentifier,
    format_identifier: str,
) -> None:
    """
    Raises:
        UnsupportedCombination: If a primary key is declared on an insert-only format.
    """
    if schema.primary_key is None or not is_insert_only(changelog_mode):
        return
    raise UnsupportedCombination(
        f"The Kafka table '{table.as_summary_string()}' with '{format_identifier}' format "
        "doesn't support defining PRIMARY KEY constraint on the table, because it can't "
        "guarantee the semantic of primary key."
    )
