"""Helpers shared by histvault commands: global options, output and errors."""

from __future__ import annotations

import json
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TextIO

import typer

from histvault.core.exceptions import HistVaultError

from .constants import VALIDATION_EXIT_CODE
from .formatters import OutputFormatter, create_formatter


@dataclass(slots=True, frozen=True)
class CLIOptions:
    """Global options stored on the Typer context by the app callback."""

    format: str = "table"
    output_path: Path | None = None
    log_level: str = "INFO"
    no_color: bool = False

    @classmethod
    def from_context(cls, ctx: typer.Context) -> CLIOptions:
        data: Mapping[str, Any] = ctx.obj or {}
        return cls(
            format=str(data.get("format", "table")),
            output_path=data.get("output_path"),
            log_level=str(data.get("log_level", "INFO")),
            no_color=bool(data.get("no_color", False)),
        )


@contextmanager
def report_output(options: CLIOptions) -> Iterator[tuple[OutputFormatter, TextIO]]:
    """Yield the formatter and the stream outcome rows are rendered to.

    The ``--output`` file is opened before the block runs, so an unwritable
    path is reported before any data is downloaded.
    """

    formatter = create_formatter(options.format, no_color=options.no_color)
    if options.output_path is None:
        yield formatter, sys.stdout
        return

    try:
        handle = options.output_path.open("w", encoding="utf-8")
    except OSError as exc:
        emit_error("OUTPUT_WRITE_ERROR", f"Unable to open '{options.output_path}': {exc}")
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc
    with handle:
        yield formatter, handle


def _plain(value: object) -> object:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [str(item) for item in value]
    return str(value)


def emit_error(code: str, message: str, details: Mapping[str, object] | None = None) -> None:
    """Write one JSON error object to stderr."""

    payload: dict[str, object] = {"code": code, "message": message}
    if details:
        payload["details"] = {key: _plain(value) for key, value in details.items()}
    typer.echo(json.dumps(payload, ensure_ascii=False), err=True)


def emit_exception(error: HistVaultError) -> None:
    emit_error(error.error_code, error.message, error.details)


__all__ = ["CLIOptions", "emit_error", "emit_exception", "report_output"]
