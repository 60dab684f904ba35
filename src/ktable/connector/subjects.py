"""
Default schema-registry subjects for Avro-family formats.

When a sink writes a single literal topic with an Avro-family format and no explicit
``subject`` option, the subject defaults to ``<topic>-value`` for the value format and
``<topic>-key`` for the key format.

Precedence
1) An explicit ``<prefix><format>.subject`` option always wins for its side.
2) The value side (``format`` or ``value.format``) and ``key.format`` each derive their
   own subject, independently of each other.
Non-Avro formats never get a subject.
"""

from __future__ import annotations

import logging

from ktable.core.constants import AVRO_FORMATS, KEY_PREFIX

__all__ = ["default_subjects"]

logger = logging.getLogger(__name__)

SUBJECT = "subject"


def default_subjects(
    existing: set[str] | frozenset[str],
    topics: tuple[str, ...] | None,
    value_format: str,
    value_prefix: str,
    key_format: str | None,
) -> dict[str, str]:
    """
    Compute subject options to add to the option map.

    Args:
        existing: Option keys already present.
        topics: Literal topics; defaults are only derived for exactly one.
        value_format: Value format identifier.
        value_prefix: ``""`` for the connector-wide ``format`` option, else ``"value."``.
        key_format: Key format identifier, if any.

    Returns:
        dict[str, str]: Full option keys (e.g. ``"value.avro-confluent.subject"``) to add.

    Examples:
        >>> default_subjects(set(), ("orders",), "avro-confluent", "value.", "avro-confluent")
        {'value.avro-confluent.subject': 'orders-value', 'key.avro-confluent.subject': 'orders-key'}
    """
    if topics is None or len(topics) != 1:
        return {}
    topic = topics[0]

    subjects: dict[str, str] = {}
    candidates = [(value_prefix, value_format, f"{topic}-value")]
    if key_format is not None:
        candidates.append((KEY_PREFIX, key_format, f"{topic}-key"))
    for prefix, identifier, subject in candidates:
        if identifier not in AVRO_FORMATS:
            continue
        key = f"{prefix}{identifier}.{SUBJECT}"
        if key not in existing:
            subjects[key] = subject
    if subjects:
        logger.debug("derived schema-registry subjects %s", subjects)
    return subjects
