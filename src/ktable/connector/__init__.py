"""
Resolution of table definitions into connector specs.

Modules
- formats: pick formats, read their scoped options, build FormatHandles.
- validation: connector identifier, topics, unknown options, primary key.
- startup: source startup offsets.
- projection: key/value field split and metadata planning.
- subjects: default schema-registry subjects.
- sink: topic cardinality, partitioner, delivery guarantee, buffering.
- factory: ConnectorFactory composing the above.
"""

from __future__ import annotations

from .factory import ConnectorFactory

__all__ = ["ConnectorFactory"]
