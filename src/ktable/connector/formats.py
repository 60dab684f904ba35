"""
Format resolution: pick the key/value format identifiers, read their scoped options,
and build frozen FormatHandles once the projected row type is known.

Option addressing
- ``format`` (connector-wide): options under ``<identifier>.``; handle prefix ``""``.
- ``value.format``: options under ``value.<identifier>.``; handle prefix ``"value."``.
- ``key.format``: options under ``key.<identifier>.``; handle prefix ``"key."``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from ktable.core.constants import VALUE_PREFIX
from ktable.core.errors import (
    ConfigurationConflict,
    MissingRequiredOption,
    UnsupportedOptions,
)
from ktable.core.options import FORMAT, KEY_FORMAT, VALUE_FORMAT, TableOptions
from ktable.core.specs import FormatHandle
from ktable.core.types import RowType
from ktable.formats.base import FormatFactory, FormatRegistry

__all__ = [
    "ResolvedFormat",
    "value_format_choice",
    "key_format_choice",
    "resolve_format",
    "build_handle",
]

logger = logging.getLogger(__name__)

Direction = Literal["scan", "sink"]


@dataclass(frozen=True)
class ResolvedFormat:
    """A looked-up provider together with its stripped options."""

    identifier: str
    prefix: str
    factory: FormatFactory
    options: dict[str, str]


def value_format_choice(options: TableOptions, direction: Direction) -> tuple[str, str]:
    """
    Return ``(identifier, prefix)`` of the value format.

    Raises:
        ConfigurationConflict: If both ``format`` and ``value.format`` are set.
        MissingRequiredOption: If neither is set.
    """
    connector_wide = options.get_optional(FORMAT)
    scoped = options.get_optional(VALUE_FORMAT)
    if connector_wide is not None and scoped is not None:
        raise ConfigurationConflict(
            f"Option '{FORMAT.key}' and '{VALUE_FORMAT.key}' shouldn't be set together.",
            options=(FORMAT.key, VALUE_FORMAT.key),
        )
    if connector_wide is not None:
        return connector_wide.strip(), ""
    if scoped is not None:
        return scoped.strip(), VALUE_PREFIX
    raise MissingRequiredOption(
        f"Could not find required {direction} format '{VALUE_FORMAT.key}'.",
        options=(VALUE_FORMAT.key,),
    )


def key_format_choice(options: TableOptions) -> str | None:
    value = options.get_optional(KEY_FORMAT)
    return None if value is None else value.strip()


def _listing(keys: Iterable[str]) -> str:
    return "\n".join(keys)


def resolve_format(
    registry: FormatRegistry,
    options: TableOptions,
    identifier: str,
    prefix: str,
    *,
    strict: bool = True,
) -> ResolvedFormat:
    """
    Look up ``identifier`` and read its options under ``<prefix><identifier>.``.

    Raises:
        FormatNotFound: If the identifier is not registered.
        MissingRequiredOption: If required format options are absent.
        UnsupportedOptions: If unknown format options are present and ``strict``.
    """
    factory = registry.lookup(identifier)
    namespace = f"{prefix}{identifier}."
    fmt_options = options.with_prefix(namespace)

    missing = [namespace + k for k in factory.missing_options(fmt_options)]
    if missing:
        raise MissingRequiredOption(
            "One or more required options are missing.\n\n"
            f"Missing required options are:\n\n{_listing(missing)}",
            options=missing,
        )

    unknown = [namespace + k for k in factory.unknown_options(fmt_options)]
    if unknown:
        if strict:
            raise UnsupportedOptions(
                f"Unsupported options found for '{identifier}'.\n\n"
                f"Unsupported options:\n\n{_listing(unknown)}",
                options=unknown,
            )
        logger.warning("ignoring unsupported options for format %r: %s", identifier, unknown)

    logger.debug("resolved format %r under %r with options %s", identifier, namespace, fmt_options)
    return ResolvedFormat(identifier, prefix, factory, fmt_options)


def build_handle(
    resolved: ResolvedFormat,
    row_type: RowType,
    metadata_keys: Iterable[str] = (),
) -> FormatHandle:
    """
    Freeze a resolved format into a FormatHandle for the projected ``row_type``.

    Metadata keys must already be validated against the format's readable metadata.

    Raises:
        UnsupportedCombination: If the format rejects the row type.
    """
    factory = resolved.factory
    factory.check_row_type(row_type, resolved.options)
    return FormatHandle(
        identifier=resolved.identifier,
        option_prefix=resolved.prefix,
        options=dict(resolved.options),
        changelog_mode=factory.changelog_mode(resolved.options),
        readable_metadata=factory.readable_metadata(resolved.options),
        metadata_keys=tuple(metadata_keys),
        row_type=row_type,
        factory=factory,
    )
