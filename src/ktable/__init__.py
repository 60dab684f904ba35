"""
ktable: resolve topic-backed table definitions into immutable connector specs.

A resolved table schema plus a flat map of string options goes in; a SourceSpec or
SinkSpec comes out, or a ResolutionError explaining which options conflict.

## Packages
- ktable.core: zero-IO contracts (errors, enums, types, schema models, option catalog,
  output specs, hashing).
- ktable.formats: format capability interface, built-in formats, registry.
- ktable.connector: the resolvers and ConnectorFactory.
- ktable.partitioners: sink partitioners.
- ktable.config / ktable.cli: settings and the ``ktable`` command.

## Examples
```python
from ktable import ConnectorFactory
from ktable.core.schema import TableSchema, physical

schema = TableSchema.of(physical("id", "BIGINT NOT NULL"), physical("payload", "STRING"))
spec = ConnectorFactory().create_sink(
    schema,
    {"connector": "kafka", "topic": "events", "value.format": "json"},
    table="events",
)
spec.delivery_guarantee  # DeliveryGuarantee.AT_LEAST_ONCE
```
"""

from ktable.config import ResolverSettings
from ktable.connector import ConnectorFactory
from ktable.core.errors import ResolutionError
from ktable.core.specs import SinkSpec, SourceSpec

__all__ = [
    "ConnectorFactory",
    "ResolverSettings",
    "ResolutionError",
    "SourceSpec",
    "SinkSpec",
]
