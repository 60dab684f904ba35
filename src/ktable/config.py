"""
Configuration for the table resolver.

Defines ResolverSettings, a frozen dataclass carrying the settings that are not part of a
table definition: the connector identifier this resolver answers to, the catalog and
database used to qualify bare table names, whether unknown options are fatal, and the
CLI log level.

Precedence
- environment (``KTABLE_*``) > TOML > defaults
- TOML search order: ``./ktable.toml`` (``[resolver]`` table or top-level keys), then
  ``./pyproject.toml`` under ``[tool.ktable]``

Notes
- Malformed values raise SettingsError naming the setting and its source.
- Settings are read once by the caller and passed to ConnectorFactory; resolution itself
  never reads the environment or the filesystem.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from ktable.core.constants import CONNECTOR_IDENTIFIER
from ktable.core.errors import SettingsError

__all__ = ["ResolverSettings"]

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_TRUE = {"1", "true", "t", "yes", "y", "on"}
_FALSE = {"0", "false", "f", "no", "n", "off"}


def _bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lo = value.strip().lower()
        if lo in _TRUE:
            return True
        if lo in _FALSE:
            return False
    raise SettingsError(f"setting {name!r} expects a boolean, got {value!r}")


def _text(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise SettingsError(f"setting {name!r} expects a non-empty string, got {value!r}")
    return value.strip()


@dataclass(frozen=True)
class ResolverSettings:
    """
    Runtime settings for ConnectorFactory and the CLI.

    Attributes:
        connector_identifier (str): Accepted value of the ``connector`` option.
        default_catalog (str): Catalog used to qualify ``db.table`` and ``table`` names.
        default_database (str): Database used to qualify bare ``table`` names.
        strict_options (bool): If True, option keys nothing consumes fail resolution;
            otherwise they are logged as warnings.
        log_level (str): Level the CLI configures logging with.

    Examples:
        >>> ResolverSettings(strict_options=False).strict_options
        False
    """

    connector_identifier: str = CONNECTOR_IDENTIFIER
    default_catalog: str = "default"
    default_database: str = "default"
    strict_options: bool = True
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        if self.log_level.upper() not in _LOG_LEVELS:
            raise SettingsError(
                f"setting 'log_level' expects one of {list(_LOG_LEVELS)}, got {self.log_level!r}"
            )
        object.__setattr__(self, "log_level", self.log_level.upper())

    @property
    def logging_level(self) -> int:
        return logging.getLevelName(self.log_level)

    @classmethod
    def _apply_mapping(cls, base: ResolverSettings, cfg: dict[str, Any] | None) -> ResolverSettings:
        """Apply a loose config mapping onto ResolverSettings, returning a new instance."""
        if not isinstance(cfg, dict):
            return base

        s = base
        for name in ("connector_identifier", "default_catalog", "default_database", "log_level"):
            if name in cfg:
                s = replace(s, **{name: _text(name, cfg[name])})
        if "strict_options" in cfg:
            s = replace(s, strict_options=_bool("strict_options", cfg["strict_options"]))
        return s

    @classmethod
    def from_env(cls, base: ResolverSettings | None = None, prefix: str = "KTABLE_") -> ResolverSettings:
        """
        Build ResolverSettings from environment variables. Precedence is env > base > defaults.

        Recognized variables:
            - KTABLE_CONNECTOR_IDENTIFIER
            - KTABLE_DEFAULT_CATALOG
            - KTABLE_DEFAULT_DATABASE
            - KTABLE_STRICT_OPTIONS (1/0/true/false/yes/no/on/off)
            - KTABLE_LOG_LEVEL
        """
        s = base or cls()
        mapping: dict[str, Any] = {}
        for name in (
            "connector_identifier",
            "default_catalog",
            "default_database",
            "strict_options",
            "log_level",
        ):
            v = os.getenv(prefix + name.upper())
            if v:
                mapping[name] = v
        return cls._apply_mapping(s, mapping)

    @classmethod
    def from_toml(cls, path: str | os.PathLike[str] | None = None) -> ResolverSettings:
        """
        Build ResolverSettings from a TOML file.

        Search order when ``path`` is None:
            1) ./ktable.toml (with either a [resolver] table or direct keys)
            2) ./pyproject.toml under [tool.ktable]

        Returns defaults if no file is present.

        Raises:
            SettingsError: If a file exists but is not valid TOML.
        """
        s = cls()
        cand: list[Path] = []
        if path is not None:
            cand.append(Path(path))
        else:
            cand.append(Path.cwd() / "ktable.toml")
            cand.append(Path.cwd() / "pyproject.toml")

        cfg: dict[str, Any] | None = None
        for p in cand:
            if not p.exists():
                continue
            try:
                with p.open("rb") as fh:
                    data = tomllib.load(fh)
            except tomllib.TOMLDecodeError as e:
                raise SettingsError(f"invalid TOML in {p}: {e}") from e
            if p.name == "pyproject.toml":
                tool = data.get("tool", {})
                cfg = tool.get("ktable") if isinstance(tool, dict) else None
            elif isinstance(data.get("resolver"), dict):
                cfg = data["resolver"]
            else:
                cfg = data
            if cfg:
                break

        return cls._apply_mapping(s, cfg)

    @classmethod
    def load(cls, path: str | os.PathLike[str] | None = None) -> ResolverSettings:
        """
        Load ResolverSettings applying precedence: environment > TOML > defaults.

        Args:
            path: Optional explicit TOML path. If None, search ktable.toml then pyproject.toml.
        """
        s = cls.from_toml(path)
        return cls.from_env(base=s)
