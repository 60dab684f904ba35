"""
Options-driven format used by conformance tests.

``test-format`` accepts a required ``delimiter`` and lets the option map choose its
changelog mode and readable metadata, so tests can exercise primary-key checks and
metadata projection without a real codec.

Examples:
    >>> from ktable.formats.testing import MockFormat
    >>> sorted(MockFormat().readable_metadata({"readable-metadata": "m1:INT, m2:STRING"}))
    ['m1', 'm2']
"""

from __future__ import annotations

from collections.abc import Mapping

from ktable.core.errors import MissingRequiredOption
from ktable.core.grammar import INSERT_ONLY, ChangeKind, parse_changelog_mode
from ktable.core.types import DataField

from .base import FormatFactory, metadata_fields

__all__ = ["MockFormat"]


class MockFormat(FormatFactory):
    identifier = "test-format"
    required_options = frozenset({"delimiter"})
    optional_options = frozenset({"fail-on-missing", "changelog-mode", "readable-metadata"})

    def changelog_mode(self, options: Mapping[str, str]) -> frozenset[ChangeKind]:
        raw = options.get("changelog-mode")
        if raw is None:
            return INSERT_ONLY
        try:
            return parse_changelog_mode(raw)
        except ValueError as e:
            raise MissingRequiredOption(
                f"Invalid value for format option 'changelog-mode': {e}"
            ) from e

    def readable_metadata(self, options: Mapping[str, str]) -> dict[str, DataField]:
        raw = options.get("readable-metadata")
        if not raw:
            return {}
        try:
            return metadata_fields(raw)
        except ValueError as e:
            raise MissingRequiredOption(
                f"Invalid value for format option 'readable-metadata': {e}"
            ) from e
