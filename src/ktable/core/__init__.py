"""
Core contracts for table resolution (errors, enums, types, schema, options, specs).

## Notes
- Zero-IO policy: stdlib + pydantic + polars only; no file or network IO.
- Enum ``.value``s are exactly what users write in the option map.
- Output specs are frozen dataclasses compared by value.

## Downstream usage
- ktable.formats declares format capabilities with ``types`` and ``grammar``.
- ktable.connector reads options through ``options`` and builds ``specs``.
"""
