"""
Exception types raised while resolving table definitions into connector specs.

Provides typed exceptions for resolution failures:
- ConfigurationConflict for mutually exclusive options that are both set.
- MissingRequiredOption for conditionally required options that are absent or malformed.
- UnsupportedCombination for semantically incompatible option/schema combinations.
- InstantiationFailure for partitioner classes that cannot be loaded or constructed.
- CardinalityViolation for sinks that address more than one topic.
- FormatNotFound for format identifiers without a registered factory.
- UnsupportedOptions for option keys nothing consumes (strict mode).

Schema-shape failures in the pydantic input models raise SchemaError, which pydantic
surfaces wrapped in a ``pydantic.ValidationError``.

Notes:
    - Every ResolutionError is a ValueError; resolution is all-or-nothing and never
      returns a partially built spec.
    - Messages are part of the public contract and are asserted verbatim in tests.

Examples:
    Catch any resolution failure and inspect the options involved.

    >>> from ktable.core.errors import ConfigurationConflict, ResolutionError
    >>> try:
    ...     raise ConfigurationConflict(
    ...         "Option 'topic' and 'topic-pattern' shouldn't be set together.",
    ...         options=("topic", "topic-pattern"),
    ...     )
    ... except ResolutionError as e:
    ...     e.options
    ('topic', 'topic-pattern')
"""

from __future__ import annotations

from collections.abc import Iterable

__all__ = [
    "ResolutionError",
    "ConfigurationConflict",
    "MissingRequiredOption",
    "UnsupportedCombination",
    "InstantiationFailure",
    "CardinalityViolation",
    "FormatNotFound",
    "UnsupportedOptions",
    "SchemaError",
    "SettingsError",
]


class ResolutionError(ValueError):
    """
    Base class for failures while resolving a table definition.

    Attributes:
        options (tuple[str, ...]): Option keys the failure refers to (may be empty).
    """

    def __init__(self, message: str, *, options: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.options: tuple[str, ...] = tuple(options)


class ConfigurationConflict(ResolutionError):
    """Mutually exclusive options were set together."""


class MissingRequiredOption(ResolutionError):
    """A conditionally required option is absent or its value is malformed."""


class UnsupportedCombination(ResolutionError):
    """Options and/or schema are individually valid but cannot be combined."""


class InstantiationFailure(ResolutionError):
    """A configured class could not be imported, constructed, or has the wrong type."""


class CardinalityViolation(ResolutionError):
    """A sink was configured with a topic list or a topic pattern."""


class FormatNotFound(ResolutionError):
    """No format factory is registered for the requested identifier."""


class UnsupportedOptions(ResolutionError):
    """Option keys were supplied that no connector option or format consumes."""


class SchemaError(ValueError):
    """Table schema failed structural validation (columns, primary key, watermark)."""


class SettingsError(ValueError):
    """Resolver settings from env/TOML carried an invalid value."""
