"""
Sink partitioners: map each written row to a topic partition.

Built-ins
- FixedPartitioner: every parallel sink instance writes to one partition,
  ``partitions[subtask_index % len(partitions)]``.
- RoundRobinPartitioner: cycles through partitions; only valid for unkeyed records.

Custom partitioners subclass TablePartitioner and are referenced by fully qualified
class name in ``sink.partitioner``; ``load_partitioner`` imports and constructs them.

Notes:
    - Partitioners compare equal by type. Runtime state set by ``open`` (subtask index,
      counters) is not part of a resolved spec's identity.
"""

from __future__ import annotations

import importlib
from collections.abc import Sequence
from typing import Any

from ktable.core.errors import InstantiationFailure

__all__ = [
    "TablePartitioner",
    "FixedPartitioner",
    "RoundRobinPartitioner",
    "load_partitioner",
]


class TablePartitioner:
    """Base class for partitioners referenced by ``sink.partitioner``."""

    name: str | None = None

    def open(self, subtask_index: int, parallelism: int) -> None:
        """Called once per parallel sink instance before the first ``partition`` call."""
        if subtask_index < 0 or parallelism <= 0 or subtask_index >= parallelism:
            raise ValueError(
                f"invalid subtask index {subtask_index} for parallelism {parallelism}"
            )

    def partition(
        self,
        record: Any,
        key: bytes | None,
        value: bytes | None,
        topic: str,
        partitions: Sequence[int],
    ) -> int:
        raise NotImplementedError

    def describe(self) -> str:
        """Short name for built-ins, otherwise the qualified class name."""
        if self.name is not None:
            return self.name
        cls = type(self)
        return f"{cls.__module__}.{cls.__qualname__}"

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other)

    def __hash__(self) -> int:
        return hash(type(self))

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class FixedPartitioner(TablePartitioner):
    """
    Pin each parallel sink instance to a single partition.

    Examples:
        >>> p = FixedPartitioner()
        >>> p.open(subtask_index=3, parallelism=4)
        >>> p.partition(None, None, b"v", "t", [0, 1])
        1
    """

    name = "fixed"

    def __init__(self) -> None:
        self._subtask_index: int | None = None

    def open(self, subtask_index: int, parallelism: int) -> None:
        super().open(subtask_index, parallelism)
        self._subtask_index = subtask_index

    def partition(
        self,
        record: Any,
        key: bytes | None,
        value: bytes | None,
        topic: str,
        partitions: Sequence[int],
    ) -> int:
        if self._subtask_index is None:
            raise RuntimeError("FixedPartitioner.open() must be called before partition()")
        if not partitions:
            raise ValueError(f"topic {topic!r} has no partitions")
        return partitions[self._subtask_index % len(partitions)]


class RoundRobinPartitioner(TablePartitioner):
    """Cycle through the available partitions, starting at the subtask index."""

    name = "round-robin"

    def __init__(self) -> None:
        self._next = 0

    def open(self, subtask_index: int, parallelism: int) -> None:
        super().open(subtask_index, parallelism)
        self._next = subtask_index

    def partition(
        self,
        record: Any,
        key: bytes | None,
        value: bytes | None,
        topic: str,
        partitions: Sequence[int],
    ) -> int:
        if not partitions:
            raise ValueError(f"topic {topic!r} has no partitions")
        chosen = partitions[self._next % len(partitions)]
        self._next += 1
        return chosen


def load_partitioner(class_name: str) -> TablePartitioner:
    """
    Import and construct a partitioner from its fully qualified class name.

    Args:
        class_name (str): e.g. ``"mypkg.partitioning.ByRegion"``.

    Returns:
        TablePartitioner: A new instance.

    Raises:
        InstantiationFailure: If the class cannot be imported or constructed, or does
            not subclass TablePartitioner.
    """
    option = ("sink.partitioner",)
    module_name, _, attr = class_name.rpartition(".")
    cls: Any = None
    if module_name and attr:
        try:
            cls = getattr(importlib.import_module(module_name), attr, None)
        except Exception as e:
            raise InstantiationFailure(
                f"Could not find and instantiate partitioner class '{class_name}'", options=option
            ) from e
    if cls is None:
        raise InstantiationFailure(
            f"Could not find and instantiate partitioner class '{class_name}'", options=option
        )
    if not (isinstance(cls, type) and issubclass(cls, TablePartitioner)):
        raise InstantiationFailure(
            f"Sink partitioner class '{class_name}' should extend from the required class "
            f"{TablePartitioner.__module__}.{TablePartitioner.__qualname__}",
            options=option,
        )
    try:
        return cls()
    except Exception as e:
        raise InstantiationFailure(
            f"Could not find and instantiate partitioner class '{class_name}'", options=option
        ) from e
