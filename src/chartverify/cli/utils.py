"""CLI utility functions and error handling.

This module provides shared utilities for the chartverify CLI, including:
- Error handling and formatting
- Exit code constants
- Output helpers for consistent stderr/stdout usage

Example:
    from chartverify.cli.utils import error_exit, ExitCode

    if not path.exists():
        error_exit("Chart not found", exit_code=ExitCode.FILE_NOT_FOUND, path=str(path))
"""

from __future__ import annotations

import sys
from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING

import click

from chartverify.errors import (
    AssertionMismatch,
    ChartVerifyError,
    ConfigurationError,
    DecodeFailure,
    RenderFailure,
)

if TYPE_CHECKING:
    from typing import NoReturn


class ExitCode(IntEnum):
    """Exit codes for CLI commands.

    CI pipelines can tell a broken chart (render/decode) apart from a
    chart that renders the wrong values (assertion).
    """

    SUCCESS = 0
    """Command completed successfully."""

    GENERAL_ERROR = 1
    """General error (catch-all for failures)."""

    USAGE_ERROR = 2
    """Invalid usage (bad arguments, invalid configuration)."""

    FILE_NOT_FOUND = 3
    """Chart or config file not found."""

    RENDER_ERROR = 4
    """A positive scenario failed to render."""

    DECODE_ERROR = 5
    """Rendered output did not decode as the expected resource."""

    ASSERTION_ERROR = 6
    """Rendered fields differ from the expected values."""


def exit_code_for(exc: ChartVerifyError | None) -> ExitCode:
    """Map a verification error to its exit code."""
    if exc is None:
        return ExitCode.SUCCESS
    if isinstance(exc, RenderFailure):
        return ExitCode.RENDER_ERROR
    if isinstance(exc, DecodeFailure):
        return ExitCode.DECODE_ERROR
    if isinstance(exc, AssertionMismatch):
        return ExitCode.ASSERTION_ERROR
    if isinstance(exc, ConfigurationError):
        return ExitCode.USAGE_ERROR
    return ExitCode.GENERAL_ERROR


def error(message: str, **context: str | int | bool | None) -> None:
    """Print an error message to stderr.

    Args:
        message: Error message to display.
        **context: Optional context key-value pairs to include.

    Example:
        error("Chart not found", path="/path/to/chart")
        # Output: Error: Chart not found (path=/path/to/chart)
    """
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items() if v is not None)
        full_message = f"Error: {message} ({context_str})"
    else:
        full_message = f"Error: {message}"

    click.echo(full_message, err=True)


def error_exit(
    message: str,
    exit_code: ExitCode = ExitCode.GENERAL_ERROR,
    **context: str | int | bool | None,
) -> NoReturn:
    """Print an error message to stderr and exit with a code.

    Raises:
        SystemExit: Always exits with the specified code.
    """
    error(message, **context)
    sys.exit(exit_code)


def success(message: str) -> None:
    """Print a result line to stdout."""
    click.echo(message)


def info(message: str) -> None:
    """Print an informational message to stderr.

    Used for progress updates that should not be captured by stdout
    redirection.
    """
    click.echo(message, err=True)


def validate_chart_dir(path: Path) -> None:
    """Require a chart directory holding a ``Chart.yaml``.

    Raises:
        SystemExit: If the directory or its ``Chart.yaml`` is missing.
    """
    if not path.is_dir():
        error_exit("Chart directory not found", exit_code=ExitCode.FILE_NOT_FOUND, path=str(path))
    if not (path / "Chart.yaml").is_file():
        error_exit("Chart.yaml not found in chart directory", exit_code=ExitCode.FILE_NOT_FOUND, path=str(path))


def parse_set_values(values: tuple[str, ...]) -> dict[str, str]:
    """Parse repeated ``--set key=value`` options.

    Raises:
        SystemExit: If an entry has no ``=`` or an empty key.
    """
    parsed: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            error_exit(f"Invalid --set value '{item}', expected key=value", exit_code=ExitCode.USAGE_ERROR)
        parsed[key.strip()] = value
    return parsed


__all__: list[str] = [
    "ExitCode",
    "error",
    "error_exit",
    "exit_code_for",
    "info",
    "parse_set_values",
    "success",
    "validate_chart_dir",
]
