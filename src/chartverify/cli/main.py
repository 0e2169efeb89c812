"""Main entry point for the chartverify CLI.

This module provides the Click-based CLI with its command groups.

Commands:
    chartverify readiness: Print init-container readiness scripts (service, infra)
    chartverify verify: Render the FeatBit chart scenarios and verify them

Example:
    $ chartverify --help
    $ chartverify readiness service --namespace ns --release featbit
    $ chartverify verify --chart charts/featbit
"""

from __future__ import annotations

import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

import click

from chartverify.cli.readiness import readiness
from chartverify.cli.verify import verify_command


def _get_version() -> str:
    """Get the chartverify package version.

    Returns:
        Version string from package metadata, or 'unknown' if not installed.
    """
    try:
        return get_version("chartverify")
    except PackageNotFoundError:
        return "unknown"


@click.group(
    name="chartverify",
    help="chartverify - Render-and-verify harness for the FeatBit Helm chart.",
    epilog="Use 'chartverify <command> --help' for command-specific help.",
    context_settings={
        "help_option_names": ["-h", "--help"],
    },
)
@click.version_option(
    version=_get_version(),
    prog_name="chartverify",
    message="%(prog)s %(version)s",
)
def cli() -> None:
    """Root command group for the chartverify CLI."""


cli.add_command(readiness)
cli.add_command(verify_command)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the chartverify CLI.

    Args:
        argv: Command-line arguments (uses sys.argv if None).
    """
    try:
        cli(args=argv, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
