"""
Format providers and the registry resolution looks them up in.

Examples:
    >>> from ktable.formats import default_registry
    >>> default_registry().lookup("debezium-json").identifier
    'debezium-json'
"""

from __future__ import annotations

from .base import FormatFactory, FormatRegistry, RuntimeCodec
from .builtin import BUILTIN_FORMATS
from .testing import MockFormat

__all__ = [
    "FormatFactory",
    "FormatRegistry",
    "RuntimeCodec",
    "MockFormat",
    "default_registry",
]

_DEFAULT = FormatRegistry(BUILTIN_FORMATS)


def default_registry() -> FormatRegistry:
    """Registry holding the built-in formats."""
    return _DEFAULT
