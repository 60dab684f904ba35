"""
Command-line entry point: resolve a table definition and print the spec.

Commands
- ``source`` / ``sink``: read ``--schema`` (JSON) and ``--options`` (JSON object), apply
  ``-o key=value`` overrides, and print the resolved spec as canonical JSON, or only its
  SHA-256 with ``--fingerprint``.

Resolution, schema, settings and usage errors print ``error: <message>`` to stderr and
exit with status 2.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from ktable.config import ResolverSettings
from ktable.connector import ConnectorFactory
from ktable.core.hashing import json_dumps_canonical
from ktable.core.schema import TableSchema


class _UsageError(ValueError):
    """Bad command-line input (unreadable file, malformed -o pair)."""


def _read_json(path: Path) -> Any:
    """Load a JSON document from ``path``.

    Args:
        path: File to read.
    """
    try:
        return json.loads(path.read_text())
    except OSError as e:
        raise _UsageError(f"cannot read {path}: {e.strerror}") from e
    except json.JSONDecodeError as e:
        raise _UsageError(f"{path} is not valid JSON: {e}") from e


def _collect_options(options_path: str | None, pairs: list[str]) -> dict[str, str]:
    """Merge an options JSON object with ``-o key=value`` overrides (overrides win)."""
    options: dict[str, str] = {}
    if options_path:
        data = _read_json(Path(options_path))
        if not isinstance(data, dict):
            raise _UsageError(f"{options_path} must contain a JSON object of option strings")
        options.update({str(k): str(v) for k, v in data.items()})
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise _UsageError(f"option override must look like key=value, got {pair!r}")
        options[key.strip()] = value
    return options


def _cmd_resolve(kind: str, argv: list[str]) -> int:
    p = argparse.ArgumentParser(
        prog=f"ktable {kind}",
        description=f"Resolve a table definition into a {kind} spec and print it as JSON.",
    )
    p.add_argument("--schema", type=str, required=True, help="Path to the table schema JSON.")
    p.add_argument("--options", type=str, default=None, help="Path to a JSON object of options.")
    p.add_argument(
        "-o",
        "--option",
        dest="pairs",
        action="append",
        default=[],
        help="Option override as key=value (repeatable).",
    )
    p.add_argument(
        "--table", type=str, required=True, help="Table identifier: [catalog.][database.]name."
    )
    p.add_argument("--config", type=str, default=None, help="Explicit TOML settings file.")
    p.add_argument("--log-level", type=str, default=None, help="Overrides the settings level.")
    p.add_argument(
        "--fingerprint", action="store_true", help="Print only the spec's SHA-256 fingerprint."
    )
    args = p.parse_args(argv)

    try:
        settings = ResolverSettings.load(args.config)
        level = (args.log_level or settings.log_level).upper()
        logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

        schema = TableSchema.model_validate(_read_json(Path(args.schema)))
        options = _collect_options(args.options, args.pairs)
        factory = ConnectorFactory(settings)
        if kind == "source":
            spec = factory.create_source(schema, options, table=args.table)
        else:
            spec = factory.create_sink(schema, options, table=args.table)
    except ValueError as e:
        # ResolutionError, SettingsError, pydantic.ValidationError and _UsageError
        print(f"error: {e}", file=sys.stderr)
        return 2

    if args.fingerprint:
        print(spec.fingerprint())
    else:
        print(json_dumps_canonical(spec.to_dict()))
    return 0


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ktable", description="Resolve topic-backed table definitions into connector specs."
    )
    sub = p.add_subparsers(dest="cmd", required=True)
    sub.add_parser("source", help="Resolve a scan source.")
    sub.add_parser("sink", help="Resolve a sink.")
    return p


def main(argv: list[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        build_argparser().print_help()
        return
    cmd, rest = argv[0], argv[1:]
    if cmd in ("source", "sink"):
        code = _cmd_resolve(cmd, rest)
    else:
        print(f"Unknown command: {cmd}", file=sys.stderr)
        code = 2
    raise SystemExit(code)


if __name__ == "__main__":
    main()
