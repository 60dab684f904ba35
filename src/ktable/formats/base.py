"""
Format capability interface and the registry that maps identifiers to providers.

A format provider declares which options it accepts, which change kinds it can encode
or decode, and which metadata it can expose. Resolution queries these capabilities,
projects the row type the format will see, and only then asks for a decoder or encoder.

Notes:
    - Providers are stateless; every answer is a function of the (stripped) options.
    - The registry is immutable. ``extended`` returns a new registry, so a process-wide
      default can be shared safely.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal

from ktable.core.errors import FormatNotFound
from ktable.core.grammar import INSERT_ONLY, ChangeKind
from ktable.core.specs import freeze_mappings
from ktable.core.types import DataField, RowType, parse_field_list

__all__ = [
    "FormatFactory",
    "InsertOnlyFormat",
    "RuntimeCodec",
    "FormatRegistry",
    "metadata_fields",
]


@dataclass(frozen=True)
class RuntimeCodec:
    """
    Description of a decoder or encoder handed to the execution engine.

    Attributes:
        identifier (str): Format identifier.
        direction (Literal["decode", "encode"]): Whether the codec reads or writes.
        row_type (RowType): Row type produced (decode) or consumed (encode).
        options (Mapping[str, str]): Format options with prefixes stripped.
        metadata_keys (tuple[str, ...]): Metadata the decoder appends to each row.
    """

    identifier: str
    direction: Literal["decode", "encode"]
    row_type: RowType
    options: Mapping[str, str] = field(default_factory=dict)
    metadata_keys: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        freeze_mappings(self, "options")

    def polars_schema(self) -> Any:
        """Polars schema of the rows this codec produces or consumes."""
        return self.row_type.to_polars()


class FormatFactory(ABC):
    """
    Base class for format providers.

    Subclasses set ``identifier`` and the accepted option names (relative to
    ``<prefix><identifier>.``), and override the capability methods they support.

    Attributes:
        identifier (ClassVar[str]): Value of ``format``/``key.format``/``value.format``.
        required_options (ClassVar[frozenset[str]]): Options that must be present.
        optional_options (ClassVar[frozenset[str]]): Options that may be present.
        option_prefixes (ClassVar[frozenset[str]]): Pass-through option namespaces,
            e.g. ``"properties."`` for schema-registry client settings.
    """

    identifier: ClassVar[str]
    required_options: ClassVar[frozenset[str]] = frozenset()
    optional_options: ClassVar[frozenset[str]] = frozenset()
    option_prefixes: ClassVar[frozenset[str]] = frozenset()

    @abstractmethod
    def changelog_mode(self, options: Mapping[str, str]) -> frozenset[ChangeKind]:
        """Change kinds this format can decode or encode."""

    def readable_metadata(self, options: Mapping[str, str]) -> dict[str, DataField]:
        """Metadata keys (with types) a decoder can append to each row."""
        return {}

    def check_row_type(self, row_type: RowType, options: Mapping[str, str]) -> None:
        """
        Reject row types the format cannot handle.

        Raises:
            ktable.core.errors.UnsupportedCombination: If the row type is not supported.
        """
        return None

    def missing_options(self, options: Mapping[str, str]) -> list[str]:
        return sorted(k for k in self.required_options if k not in options)

    def unknown_options(self, options: Mapping[str, str]) -> list[str]:
        known = self.required_options | self.optional_options
        return sorted(
            k
            for k in options
            if k not in known and not any(k.startswith(p) for p in self.option_prefixes)
        )

    def decoder(
        self,
        row_type: RowType,
        options: Mapping[str, str],
        metadata_keys: Iterable[str] = (),
    ) -> RuntimeCodec:
        return RuntimeCodec(self.identifier, "decode", row_type, dict(options), tuple(metadata_keys))

    def encoder(self, row_type: RowType, options: Mapping[str, str]) -> RuntimeCodec:
        return RuntimeCodec(self.identifier, "encode", row_type, dict(options))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(identifier={self.identifier!r})"


class InsertOnlyFormat(FormatFactory):
    """Format that only ever produces or accepts inserts."""

    def changelog_mode(self, options: Mapping[str, str]) -> frozenset[ChangeKind]:
        return INSERT_ONLY


def metadata_fields(declarations: str) -> dict[str, DataField]:
    """Parse ``"key:TYPE, key:TYPE"`` metadata declarations."""
    return parse_field_list(declarations)


class FormatRegistry:
    """
    Immutable mapping from format identifier to provider.

    Examples:
        >>> from ktable.formats import default_registry
        >>> "avro-confluent" in default_registry().identifiers()
        True
    """

    def __init__(self, factories: Iterable[FormatFactory] = ()) -> None:
        entries: dict[str, FormatFactory] = {}
        for factory in factories:
            entries[factory.identifier] = factory
        self._entries = entries

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def identifiers(self) -> list[str]:
        return sorted(self._entries)

    def lookup(self, identifier: str) -> FormatFactory:
        """
        Return the provider registered for ``identifier``.

        Raises:
            FormatNotFound: If no provider is registered.
        """
        factory = self._entries.get(identifier)
        if factory is None:
            raise FormatNotFound(
                f"Could not find any format factory for identifier '{identifier}'. "
                f"Available format identifiers are: {self.identifiers()}"
            )
        return factory

    def extended(self, *factories: FormatFactory) -> FormatRegistry:
        """New registry with ``factories`` added (replacing same identifiers)."""
        return FormatRegistry([*self._entries.values(), *factories])
