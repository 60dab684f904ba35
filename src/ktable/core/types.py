"""
Logical row types built on polars dtypes.

Columns, format row types, and metadata declarations share one type vocabulary: a polars
``DataType`` plus a nullability flag (polars itself has no NOT NULL). Types can be written
as SQL-style strings, which is how schemas arrive from the catalog layer and how formats
declare readable metadata (``"metadata_1:INT, metadata_2:STRING"``).

Supported type strings
- STRING / VARCHAR(n) / CHAR(n), BOOLEAN, TINYINT, SMALLINT, INT, BIGINT, FLOAT, DOUBLE
- DECIMAL(p, s), DATE, TIME
- TIMESTAMP(p), TIMESTAMP(p) WITH LOCAL TIME ZONE, TIMESTAMP_LTZ(p)
- BYTES / BINARY(n) / VARBINARY(n)
- ARRAY<T>, MAP<K, V> (a list of key/value structs)
- an optional trailing NOT NULL / NULL

Notes:
    - Timestamp precision maps to a polars time unit (<=3 ms, <=6 us, else ns).
    - Inner nullability of ARRAY/MAP elements is accepted but not tracked.

Examples:
    >>> import polars as pl
    >>> from ktable.core.types import parse_data_type, format_data_type
    >>> dtype, nullable = parse_data_type("DECIMAL(38, 18) NOT NULL")
    >>> dtype == pl.Decimal(38, 18), nullable
    (True, False)
    >>> format_data_type(pl.Datetime("ms"))
    'TIMESTAMP(3)'
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any

import polars as pl

__all__ = [
    "DataField",
    "RowType",
    "parse_data_type",
    "format_data_type",
    "parse_field_list",
    "field",
    "row",
]

_SIMPLE_TYPES: dict[str, Any] = {
    "STRING": pl.String,
    "VARCHAR": pl.String,
    "CHAR": pl.String,
    "BOOLEAN": pl.Boolean,
    "BOOL": pl.Boolean,
    "TINYINT": pl.Int8,
    "SMALLINT": pl.Int16,
    "INT": pl.Int32,
    "INTEGER": pl.Int32,
    "BIGINT": pl.Int64,
    "FLOAT": pl.Float32,
    "DOUBLE": pl.Float64,
    "DATE": pl.Date,
    "TIME": pl.Time,
    "BYTES": pl.Binary,
    "BINARY": pl.Binary,
    "VARBINARY": pl.Binary,
}

# Reverse mapping used for rendering; first name wins.
_SIMPLE_NAMES: dict[Any, str] = {
    pl.String: "STRING",
    pl.Boolean: "BOOLEAN",
    pl.Int8: "TINYINT",
    pl.Int16: "SMALLINT",
    pl.Int32: "INT",
    pl.Int64: "BIGINT",
    pl.Float32: "FLOAT",
    pl.Float64: "DOUBLE",
    pl.Date: "DATE",
    pl.Time: "TIME",
    pl.Binary: "BYTES",
}

_TOKEN_RE = re.compile(r"\s*(?:([A-Za-z_][A-Za-z0-9_]*)|(\d+)|([(),<>]))")


def _time_unit(precision: int) -> str:
    if precision <= 3:
        return "ms"
    if precision <= 6:
        return "us"
    return "ns"


_UNIT_PRECISION = {"ms": 3, "us": 6, "ns": 9}


class _TypeParser:
    """Recursive-descent parser over a tokenized type string."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens: list[str] = []
        pos = 0
        stripped = text.rstrip()
        while pos < len(stripped):
            m = _TOKEN_RE.match(stripped, pos)
            if m is None or m.end() == pos:
                raise ValueError(f"unexpected character in data type {text!r} at {pos}")
            self.tokens.append(m.group(m.lastindex or 0))
            pos = m.end()
        self.pos = 0

    def peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self) -> str:
        tok = self.peek()
        if tok is None:
            raise ValueError(f"unexpected end of data type {self.text!r}")
        self.pos += 1
        return tok

    def expect(self, tok: str) -> None:
        got = self.take()
        if got.upper() != tok:
            raise ValueError(f"expected {tok!r} in data type {self.text!r}, got {got!r}")

    def accept_words(self, *words: str) -> bool:
        end = self.pos + len(words)
        if end > len(self.tokens):
            return False
        if [t.upper() for t in self.tokens[self.pos : end]] == list(words):
            self.pos = end
            return True
        return False

    def int_args(self) -> list[int]:
        args: list[int] = []
        if self.peek() != "(":
            return args
        self.take()
        while True:
            tok = self.take()
            if not tok.isdigit():
                raise ValueError(f"expected integer argument in data type {self.text!r}")
            args.append(int(tok))
            nxt = self.take()
            if nxt == ")":
                return args
            if nxt != ",":
                raise ValueError(f"expected ',' or ')' in data type {self.text!r}")

    def parse(self) -> tuple[pl.DataType, bool]:
        dtype, nullable = self.parse_type()
        if self.peek() is not None:
            raise ValueError(f"trailing input {self.peek()!r} in data type {self.text!r}")
        return dtype, nullable

    def parse_type(self) -> tuple[pl.DataType, bool]:
        name = self.take().upper()
        dtype: pl.DataType
        if name in ("DECIMAL", "DEC", "NUMERIC"):
            args = self.int_args()
            precision = args[0] if args else 10
            scale = args[1] if len(args) > 1 else 0
            dtype = pl.Decimal(precision, scale)
        elif name in ("TIMESTAMP", "TIMESTAMP_LTZ"):
            args = self.int_args()
            unit = _time_unit(args[0] if args else 6)
            local = name == "TIMESTAMP_LTZ" or self.accept_words("WITH", "LOCAL", "TIME", "ZONE")
            if not local:
                self.accept_words("WITHOUT", "TIME", "ZONE")
            dtype = pl.Datetime(unit, "UTC") if local else pl.Datetime(unit)
        elif name == "ARRAY":
            self.expect("<")
            inner, _ = self.parse_type()
            self.expect(">")
            dtype = pl.List(inner)
        elif name == "MAP":
            self.expect("<")
            key, _ = self.parse_type()
            self.expect(",")
            value, _ = self.parse_type()
            self.expect(">")
            dtype = pl.List(pl.Struct([pl.Field("key", key), pl.Field("value", value)]))
        elif name in _SIMPLE_TYPES:
            self.int_args()  # VARCHAR(n), BINARY(n): length is not tracked
            dtype = _SIMPLE_TYPES[name]()
        else:
            raise ValueError(f"unsupported data type {name!r} in {self.text!r}")

        nullable = True
        if self.accept_words("NOT", "NULL"):
            nullable = False
        else:
            self.accept_words("NULL")
        return dtype, nullable


def parse_data_type(text: str) -> tuple[pl.DataType, bool]:
    """
    Parse a SQL-style type string into a polars dtype and nullability.

    Args:
        text (str): Type string, e.g. ``"STRING NOT NULL"`` or ``"TIMESTAMP(3)"``.

    Returns:
        tuple[pl.DataType, bool]: The dtype and whether NULL is allowed.

    Raises:
        ValueError: If the string is empty or not a supported type.
    """
    if not text or not text.strip():
        raise ValueError("data type must be a non-empty string")
    return _TypeParser(text).parse()


def format_data_type(dtype: Any, nullable: bool = True) -> str:
    """
    Render a polars dtype back into the SQL-style vocabulary.

    Args:
        dtype (Any): Polars dtype instance or class.
        nullable (bool): Append ``NOT NULL`` when False.

    Returns:
        str: Type string accepted by parse_data_type.
    """
    if isinstance(dtype, type):
        dtype = dtype()
    if isinstance(dtype, pl.Decimal):
        if dtype.precision is None:
            text = "DECIMAL"
        else:
            text = f"DECIMAL({dtype.precision}, {dtype.scale})"
    elif isinstance(dtype, pl.Datetime):
        precision = _UNIT_PRECISION.get(dtype.time_unit or "us", 6)
        text = f"TIMESTAMP_LTZ({precision})" if dtype.time_zone else f"TIMESTAMP({precision})"
    elif isinstance(dtype, pl.List):
        inner = dtype.inner
        if isinstance(inner, pl.Struct) and [f.name for f in inner.fields] == ["key", "value"]:
            key, value = inner.fields
            text = f"MAP<{format_data_type(key.dtype)}, {format_data_type(value.dtype)}>"
        else:
            text = f"ARRAY<{format_data_type(inner)}>"
    elif type(dtype) in _SIMPLE_NAMES:
        text = _SIMPLE_NAMES[type(dtype)]
    else:
        raise ValueError(f"data type {dtype!r} has no SQL rendering")
    return text if nullable else f"{text} NOT NULL"


@dataclass(frozen=True)
class DataField:
    """
    Named, typed field of a row.

    Attributes:
        name (str): Field name.
        dtype (pl.DataType): Polars dtype.
        nullable (bool): Whether NULL values are permitted.
    """

    name: str
    dtype: pl.DataType
    nullable: bool = True

    def renamed(self, name: str) -> DataField:
        return DataField(name, self.dtype, self.nullable)

    def type_string(self) -> str:
        return format_data_type(self.dtype, self.nullable)


@dataclass(frozen=True)
class RowType:
    """
    Ordered sequence of DataFields, the logical type a format encodes or decodes.

    Attributes:
        fields (tuple[DataField, ...]): Fields in row order.

    Examples:
        >>> from ktable.core.types import row, field
        >>> rt = row(field("name", "STRING NOT NULL"), field("count", "BIGINT"))
        >>> rt.project([1]).names
        ('count',)
    """

    fields: tuple[DataField, ...] = ()

    def __len__(self) -> int:
        return len(self.fields)

    def __iter__(self) -> Iterator[DataField]:
        return iter(self.fields)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def index_of(self, name: str) -> int | None:
        for i, f in enumerate(self.fields):
            if f.name == name:
                return i
        return None

    def project(self, indices: Iterable[int]) -> RowType:
        """Return the fields at ``indices`` in the given order."""
        return RowType(tuple(self.fields[i] for i in indices))

    def with_names(self, names: Sequence[str]) -> RowType:
        if len(names) != len(self.fields):
            raise ValueError(f"expected {len(self.fields)} names, got {len(names)}")
        return RowType(tuple(f.renamed(n) for f, n in zip(self.fields, names)))

    def append(self, *fields: DataField) -> RowType:
        return RowType(self.fields + tuple(fields))

    def to_polars(self) -> pl.Schema:
        """Polars schema (name -> dtype) for engines that materialize frames."""
        return pl.Schema([(f.name, f.dtype) for f in self.fields])

    def describe(self) -> list[dict[str, str]]:
        """JSON-safe description used by spec summaries."""
        return [{"name": f.name, "type": f.type_string()} for f in self.fields]


def field(name: str, data_type: str | pl.DataType, nullable: bool | None = None) -> DataField:
    """
    Build a DataField from a type string or a polars dtype.

    Args:
        name (str): Field name.
        data_type (str | pl.DataType): Type string (may include NOT NULL) or dtype.
        nullable (bool | None): Overrides the nullability parsed from the string.
    """
    if isinstance(data_type, str):
        dtype, parsed_nullable = parse_data_type(data_type)
    else:
        dtype, parsed_nullable = data_type, True
        if isinstance(dtype, type):
            dtype = dtype()
    return DataField(name, dtype, parsed_nullable if nullable is None else nullable)


def row(*fields: DataField) -> RowType:
    return RowType(tuple(fields))


def parse_field_list(text: str) -> dict[str, DataField]:
    """
    Parse ``"name:TYPE, name:TYPE"`` declarations.

    Commas inside ``(...)`` or ``<...>`` belong to the type, so
    ``"a:DECIMAL(10, 2), b:MAP<STRING, INT>"`` yields two fields.

    Raises:
        ValueError: On an entry without ``:`` or an unparseable type.
    """
    result: dict[str, DataField] = {}
    depth = 0
    start = 0
    parts: list[str] = []
    for i, ch in enumerate(text or ""):
        if ch in "(<":
            depth += 1
        elif ch in ")>":
            depth = max(0, depth - 1)
        elif ch == "," and depth == 0:
            parts.append(text[start:i])
            start = i + 1
    parts.append((text or "")[start:])
    for part in parts:
        entry = part.strip()
        if not entry:
            continue
        name, sep, type_text = entry.partition(":")
        if not sep or not name.strip():
            raise ValueError(f"field declaration must be 'name:TYPE', got {entry!r}")
        result[name.strip()] = field(name.strip(), type_text.strip())
    return result
