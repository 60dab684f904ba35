"""
ConnectorFactory: resolve a table schema plus options into a SourceSpec or SinkSpec.

Resolution is a pure function of (schema, options, settings, registry). It either
returns a complete, immutable spec or raises a ResolutionError; nothing partial is ever
returned and the inputs are never modified.

Order of resolution (first violation wins)
1) ``connector`` identifier
2) format identifiers (``format``/``value.format``/``key.format``)
3) topics (and, for sinks, default schema-registry subjects)
4) format options, then unknown option keys
5) source: startup mode / sink: topic cardinality, partitioner, delivery guarantee,
   buffering, parallelism
6) primary key against the value format's changelog mode
7) key/value projection, metadata, format handles

Examples:
    >>> from ktable.connector import ConnectorFactory
    >>> from ktable.core.schema import TableSchema, physical
    >>> spec = ConnectorFactory().create_source(
    ...     TableSchema.of(physical("line", "STRING")),
    ...     {"connector": "kafka", "topic": "logs", "format": "raw"},
    ...     table="logs",
    ... )
    >>> spec.value_projection, spec.startup.mode
    ((0,), 'group-offsets')
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from ktable.config import ResolverSettings
from ktable.core.constants import KEY_PREFIX, PARTITION_DISCOVERY_PROPERTY
from ktable.core.options import (
    PROPERTIES_PREFIX,
    PROPS_GROUP_ID,
    SCAN_TOPIC_PARTITION_DISCOVERY,
    SINK_PARALLELISM,
    TableOptions,
)
from ktable.core.schema import ObjectIdentifier, TableSchema
from ktable.core.specs import SinkSpec, SourceSpec
from ktable.formats import default_registry
from ktable.formats.base import FormatRegistry

from .formats import (
    ResolvedFormat,
    build_handle,
    key_format_choice,
    resolve_format,
    value_format_choice,
)
from .projection import plan_sink_metadata, plan_source_metadata, project_fields
from .sink import (
    resolve_buffer_flush,
    resolve_delivery_guarantee,
    resolve_partitioner,
    resolve_sink_topic,
)
from .startup import resolve_startup
from .subjects import default_subjects
from .validation import (
    check_unknown_options,
    resolve_topics,
    validate_connector,
    validate_primary_key,
)

__all__ = ["ConnectorFactory"]

logger = logging.getLogger(__name__)


class ConnectorFactory:
    """
    Top-level resolver for topic-backed tables.

    Args:
        settings (ResolverSettings | None): Connector identifier, identifier defaults,
            strictness. Defaults to ``ResolverSettings()``.
        registry (FormatRegistry | None): Format providers. Defaults to the built-ins.
    """

    def __init__(
        self,
        settings: ResolverSettings | None = None,
        registry: FormatRegistry | None = None,
    ) -> None:
        self.settings = settings or ResolverSettings()
        self.registry = registry or default_registry()

    def _identifier(self, table: str | ObjectIdentifier) -> ObjectIdentifier:
        if isinstance(table, ObjectIdentifier):
            return table
        return ObjectIdentifier.parse(
            table, self.settings.default_catalog, self.settings.default_database
        )

    def _resolve_formats(
        self,
        options: TableOptions,
        value_choice: tuple[str, str],
        key_identifier: str | None,
    ) -> tuple[ResolvedFormat | None, ResolvedFormat]:
        strict = self.settings.strict_options
        key = None
        if key_identifier is not None:
            key = resolve_format(self.registry, options, key_identifier, KEY_PREFIX, strict=strict)
        value_identifier, value_prefix = value_choice
        value = resolve_format(self.registry, options, value_identifier, value_prefix, strict=strict)
        return key, value

    def create_source(
        self,
        schema: TableSchema,
        options: Mapping[str, str],
        *,
        table: str | ObjectIdentifier,
    ) -> SourceSpec:
        """
        Resolve a scan source.

        Args:
            schema (TableSchema): Resolved table schema.
            options (Mapping[str, str]): Flat table options.
            table (str | ObjectIdentifier): Table identifier, used in messages.

        Returns:
            SourceSpec: Immutable source specification.

        Raises:
            ktable.core.errors.ResolutionError: On any invalid option or combination.
        """
        table_id = self._identifier(table)
        opts = TableOptions(options)
        validate_connector(opts, self.settings.connector_identifier)

        value_choice = value_format_choice(opts, "scan")
        key_identifier = key_format_choice(opts)
        topics, pattern = resolve_topics(opts)

        key_fmt, value_fmt = self._resolve_formats(opts, value_choice, key_identifier)
        check_unknown_options(
            opts, self.settings.connector_identifier, strict=self.settings.strict_options
        )

        startup = resolve_startup(opts, topics)

        validate_primary_key(
            schema,
            value_fmt.factory.changelog_mode(value_fmt.options),
            table_id,
            value_fmt.identifier,
        )

        projection = project_fields(schema, opts, key_fmt is not None)
        metadata = plan_source_metadata(
            schema, value_fmt.factory.readable_metadata(value_fmt.options), table_id
        )
        key_handle = None if key_fmt is None else build_handle(key_fmt, projection.key_row_type)
        value_handle = build_handle(value_fmt, projection.value_row_type, metadata.format_keys)

        properties = opts.with_prefix(PROPERTIES_PREFIX)
        discovery_ms = opts.get_optional(SCAN_TOPIC_PARTITION_DISCOVERY)
        if discovery_ms is not None:
            properties.setdefault(PARTITION_DISCOVERY_PROPERTY, str(discovery_ms))

        spec = SourceSpec(
            physical_row_type=schema.physical_row_type(),
            produced_row_type=schema.source_row_type(),
            key_format=key_handle,
            value_format=value_handle,
            key_projection=projection.key_indices,
            value_projection=projection.value_indices,
            key_prefix=projection.key_prefix,
            topics=topics,
            topic_pattern=pattern,
            properties=properties,
            startup=startup,
            metadata_keys=metadata.connector_keys,
            commit_offsets_on_checkpoint=PROPS_GROUP_ID.key in opts,
        )
        logger.debug(
            "resolved source %s: value format %r, key format %r, startup %s",
            table_id.as_summary_string(),
            value_handle.identifier,
            None if key_handle is None else key_handle.identifier,
            startup.mode,
        )
        return spec

    def create_sink(
        self,
        schema: TableSchema,
        options: Mapping[str, str],
        *,
        table: str | ObjectIdentifier,
    ) -> SinkSpec:
        """
        Resolve a sink.

        Args:
            schema (TableSchema): Resolved table schema.
            options (Mapping[str, str]): Flat table options.
            table (str | ObjectIdentifier): Table identifier, used in messages.

        Returns:
            SinkSpec: Immutable sink specification.

        Raises:
            ktable.core.errors.ResolutionError: On any invalid option or combination.
        """
        table_id = self._identifier(table)
        opts = TableOptions(options)
        validate_connector(opts, self.settings.connector_identifier)

        value_choice = value_format_choice(opts, "sink")
        key_identifier = key_format_choice(opts)
        topics, pattern = resolve_topics(opts)

        subjects = default_subjects(
            set(opts.as_dict()), topics, value_choice[0], value_choice[1], key_identifier
        )
        opts = opts.with_entries(subjects)

        key_fmt, value_fmt = self._resolve_formats(opts, value_choice, key_identifier)
        check_unknown_options(
            opts, self.settings.connector_identifier, strict=self.settings.strict_options
        )

        topic = resolve_sink_topic(topics, pattern)
        partitioner = resolve_partitioner(opts)
        guarantee, transactional_id_prefix = resolve_delivery_guarantee(opts)
        buffer_flush = resolve_buffer_flush(opts)
        parallelism = opts.get_optional(SINK_PARALLELISM)

        validate_primary_key(
            schema,
            value_fmt.factory.changelog_mode(value_fmt.options),
            table_id,
            value_fmt.identifier,
        )

        projection = project_fields(schema, opts, key_fmt is not None)
        metadata_keys = plan_sink_metadata(schema, table_id)
        key_handle = None if key_fmt is None else build_handle(key_fmt, projection.key_row_type)
        value_handle = build_handle(value_fmt, projection.value_row_type)

        spec = SinkSpec(
            physical_row_type=schema.physical_row_type(),
            consumed_row_type=schema.sink_row_type(),
            key_format=key_handle,
            value_format=value_handle,
            key_projection=projection.key_indices,
            value_projection=projection.value_indices,
            key_prefix=projection.key_prefix,
            topic=topic,
            properties=opts.with_prefix(PROPERTIES_PREFIX),
            partitioner=partitioner,
            delivery_guarantee=guarantee,
            transactional_id_prefix=transactional_id_prefix,
            parallelism=parallelism,
            buffer_flush=buffer_flush,
            metadata_keys=metadata_keys,
        )
        logger.debug(
            "resolved sink %s: topic %r, value format %r, guarantee %s, partitioner %r",
            table_id.as_summary_string(),
            topic,
            value_handle.identifier,
            guarantee.value,
            partitioner,
        )
        return spec
