"""Verify command implementation.

This module implements the `chartverify verify` command which:
- Builds the FeatBit scenarios for a chart directory
- Renders every scenario concurrently with ``helm template``
- Prints one line per scenario plus every field mismatch
- Exits non-zero if any scenario did not pass

Example:
    $ chartverify verify --chart charts/featbit
    $ chartverify verify --chart charts/featbit --scenario api-deployment --set api.image.tag=2.4.2
    $ chartverify verify --config chartverify.yaml --output json
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click
import structlog

from chartverify.cli.utils import (
    ExitCode,
    error_exit,
    exit_code_for,
    info,
    parse_set_values,
    success,
    validate_chart_dir,
)
from chartverify.config import HarnessConfig, load_config
from chartverify.errors import ConfigurationError
from chartverify.featbit import featbit_scenarios
from chartverify.harness import Scenario, ScenarioKind, ScenarioResult, ScenarioStatus, run_scenarios
from chartverify.logging import configure_logging
from chartverify.renderer import HelmRenderer, helm_available


def _resolve_config(config_path: Path | None, **options: Any) -> HarnessConfig:
    """Merge file, environment and command-line settings."""
    try:
        return load_config(config_path).merged(**options)
    except ConfigurationError as e:
        error_exit(str(e), exit_code=ExitCode.USAGE_ERROR)


def _select_scenarios(
    scenarios: list[Scenario],
    names: tuple[str, ...],
    set_values: dict[str, str],
) -> list[Scenario]:
    """Filter scenarios by name and apply extra ``--set`` values.

    ``--set`` values override a positive scenario's own values. A negative
    scenario keeps the values that make it fail to render, so a global
    ``--set`` never turns it into a render.
    """
    if names:
        available = {scenario.name for scenario in scenarios}
        unknown = sorted(set(names) - available)
        if unknown:
            error_exit(
                f"Unknown scenario(s): {', '.join(unknown)}",
                exit_code=ExitCode.USAGE_ERROR,
                available=", ".join(sorted(available)),
            )
        scenarios = [scenario for scenario in scenarios if scenario.name in names]

    if not set_values:
        return scenarios

    selected = []
    for scenario in scenarios:
        own = scenario.input.service_config_overrides
        if scenario.kind is ScenarioKind.FAILS_TO_RENDER:
            overrides = {**set_values, **own}
        else:
            overrides = {**own, **set_values}
        scenario_input = scenario.input.model_copy(update={"service_config_overrides": overrides})
        selected.append(scenario.with_input(scenario_input))
    return selected


def _overall_exit_code(results: list[ScenarioResult]) -> ExitCode:
    """Exit code of the first scenario that errored, else of the first failure."""
    for result in results:
        if result.status is ScenarioStatus.ERROR:
            return exit_code_for(result.error)
    if any(result.status is ScenarioStatus.FAILED for result in results):
        return ExitCode.ASSERTION_ERROR
    return ExitCode.SUCCESS


def _print_text(results: list[ScenarioResult]) -> None:
    for result in results:
        success(
            f"{result.status.value.upper():<7} {result.scenario} "
            f"(namespace={result.namespace}, release={result.release}, {result.duration_seconds:.2f}s)"
        )
        for mismatch in result.mismatches:
            success(f"    - {mismatch}")
        if result.error is not None:
            success(f"    ! {result.error}")

    passed = sum(1 for r in results if r.status is ScenarioStatus.PASSED)
    failed = sum(1 for r in results if r.status is ScenarioStatus.FAILED)
    errors = sum(1 for r in results if r.status is ScenarioStatus.ERROR)
    success(f"{passed} passed, {failed} failed, {errors} errors")


def _print_json(results: list[ScenarioResult]) -> None:
    payload = [
        {
            "scenario": result.scenario,
            "namespace": result.namespace,
            "release": result.release,
            "status": result.status.value,
            "duration_seconds": round(result.duration_seconds, 3),
            "mismatches": [
                {
                    "kind": m.kind,
                    "path": m.path,
                    "expected": repr(m.expected),
                    "actual": repr(m.actual),
                    "reason": m.reason,
                }
                for m in result.mismatches
            ],
            "error": str(result.error) if result.error is not None else None,
        }
        for result in results
    ]
    success(json.dumps(payload, indent=2))


@click.command(
    name="verify",
    help="Render the FeatBit chart scenarios and verify the manifests.",
    epilog="""
Every scenario renders one template into its own randomized namespace
and is compared field by field with the values derived from its input.

Examples:
    $ chartverify verify --chart charts/featbit
    $ chartverify verify --chart charts/featbit --scenario das-service
    $ chartverify verify --config chartverify.yaml --output json
""",
)
@click.option(
    "--chart",
    "-c",
    "chart_path",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Chart directory (default: from config, else charts/featbit).",
    metavar="PATH",
)
@click.option("--release", "-r", default=None, help="Release name of the component scenarios.", metavar="TEXT")
@click.option("--scenario", "-s", "scenario_names", multiple=True, help="Run only this scenario (repeatable).")
@click.option("--set", "set_values", multiple=True, help="Extra chart value key=value (repeatable).", metavar="KEY=VALUE")
@click.option("--helm-binary", default=None, help="Helm executable.", metavar="PATH")
@click.option("--timeout", "render_timeout", type=int, default=None, help="Seconds per render.")
@click.option("--workers", "-w", "max_workers", type=int, default=None, help="Scenarios rendered in parallel.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML configuration file.",
    metavar="PATH",
)
@click.option("--json-logs/--console-logs", "json_logs", default=None, help="Log format.")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Minimum log level.",
)
@click.option(
    "--output",
    "-o",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    show_default=True,
    help="Report format.",
)
def verify_command(
    chart_path: Path | None,
    release: str | None,
    scenario_names: tuple[str, ...],
    set_values: tuple[str, ...],
    helm_binary: str | None,
    render_timeout: int | None,
    max_workers: int | None,
    config_path: Path | None,
    json_logs: bool | None,
    log_level: str | None,
    output: str,
) -> None:
    """Run the FeatBit chart scenarios."""
    if config_path is not None and not config_path.is_file():
        error_exit("Config file not found", exit_code=ExitCode.FILE_NOT_FOUND, path=str(config_path))

    config = _resolve_config(
        config_path,
        chart_path=chart_path,
        release_name=release,
        helm_binary=helm_binary,
        render_timeout=render_timeout,
        max_workers=max_workers,
        json_logs=json_logs,
        log_level=log_level,
    )
    configure_logging(config.log_level, json_output=config.json_logs)
    log = structlog.get_logger("chartverify.cli.verify")

    validate_chart_dir(config.chart_path)
    overrides = parse_set_values(set_values)

    if not helm_available(config.helm_binary):
        error_exit("Helm binary not available", exit_code=ExitCode.FILE_NOT_FOUND, binary=config.helm_binary)

    scenarios = _select_scenarios(
        featbit_scenarios(config.chart_path, config.release_name, namespace_prefix=config.namespace_prefix),
        scenario_names,
        overrides,
    )
    info(f"Verifying {len(scenarios)} scenario(s) in {config.chart_path}")
    log.info("cli.verify_started", chart=str(config.chart_path), scenarios=len(scenarios))

    renderer = HelmRenderer(helm_binary=config.helm_binary, timeout=config.render_timeout)
    results = run_scenarios(scenarios, renderer, max_workers=config.max_workers, log=log)

    if output.lower() == "json":
        _print_json(results)
    else:
        _print_text(results)

    code = _overall_exit_code(results)
    log.info("cli.verify_finished", exit_code=int(code))
    if code is not ExitCode.SUCCESS:
        raise SystemExit(int(code))


__all__: list[str] = ["verify_command"]
