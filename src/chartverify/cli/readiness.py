"""Readiness script commands.

Print the wait scripts the chart embeds in its init containers, exactly as
the chart renders them, for debugging or for pasting into manifests.

Example:
    $ chartverify readiness service --namespace ns --release featbit
    $ chartverify readiness infra --namespace ns --release helm-basic --fullname featbit
"""

from __future__ import annotations

import click

from chartverify.readiness import (
    DEFAULT_API_PORT,
    DEFAULT_DAS_PORT,
    DEFAULT_EVAL_PORT,
    build_infra_readiness_script,
    build_service_readiness_script,
)


@click.group(
    name="readiness",
    help="Print init-container readiness scripts.",
)
def readiness() -> None:
    """Readiness script command group."""
    pass


@click.command(
    name="service",
    help="Print the script waiting for the API, Evaluation Server and DA Server.",
)
@click.option("--namespace", "-n", required=True, help="Namespace of the services.", metavar="TEXT")
@click.option("--release", "-r", required=True, help="Name prefix of the services.", metavar="TEXT")
@click.option("--api-port", type=int, default=DEFAULT_API_PORT, show_default=True, help="API port.")
@click.option("--eval-port", type=int, default=DEFAULT_EVAL_PORT, show_default=True, help="Evaluation Server port.")
@click.option("--das-port", type=int, default=DEFAULT_DAS_PORT, show_default=True, help="DA Server port.")
def service_command(namespace: str, release: str, api_port: int, eval_port: int, das_port: int) -> None:
    """Print the service readiness script without a trailing extra newline."""
    click.echo(build_service_readiness_script(namespace, release, api_port, eval_port, das_port), nl=False)


@click.command(
    name="infra",
    help="Print the script waiting for Redis and MongoDB.",
)
@click.option("--namespace", "-n", required=True, help="Namespace of the release.", metavar="TEXT")
@click.option("--release", "-r", required=True, help="Helm release name.", metavar="TEXT")
@click.option("--fullname", "-f", required=True, help="Chart full name.", metavar="TEXT")
def infra_command(namespace: str, release: str, fullname: str) -> None:
    click.echo(build_infra_readiness_script(namespace, release, fullname), nl=False)


readiness.add_command(service_command)
readiness.add_command(infra_command)


__all__: list[str] = ["readiness"]
