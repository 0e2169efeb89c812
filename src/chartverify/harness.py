"""Render-and-verify harness.

A scenario is one chart template rendered with one configuration, plus
either an expected resource (positive scenario) or the expectation that the
chart refuses to render (negative scenario). The harness renders the
template, decodes the output into a typed resource and compares it with the
expectation, collecting every mismatch.

Scenarios are independent: each owns a randomized namespace, the chart
directory is only read. ``run_scenarios`` runs them on a thread pool.

Logging is passed in explicitly. The harness never configures structlog;
callers hand it a logger (or ``discard_logger()`` for silence).

Example:
    >>> from chartverify.harness import Scenario, ScenarioInput, verify_scenario
    >>> scenario = Scenario(
    ...     name="api-deployment",
    ...     input=ScenarioInput.create("featbit"),
    ...     chart_path="charts/featbit",
    ...     template="templates/api-deployment.yaml",
    ...     expectation=api_deployment_expectation,
    ... )
    >>> result = verify_scenario(scenario, HelmRenderer())  # doctest: +SKIP
    >>> result.raise_for_status()  # doctest: +SKIP
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from chartverify.comparator import (
    ExpectedResource,
    Mismatch,
    compare_resource,
    compare_values,
)
from chartverify.decoder import decode_resource
from chartverify.errors import (
    AssertionMismatch,
    ChartVerifyError,
    DecodeFailure,
    RenderFailure,
)
from chartverify.naming import (
    DEFAULT_CHART_NAME,
    DEFAULT_NAMESPACE_PREFIX,
    chart_fullname,
    generate_unique_namespace,
    require_valid_namespace,
)
from chartverify.renderer import TemplateRenderer
from chartverify.resources import Deployment, Service

logger = structlog.get_logger(__name__)

DEFAULT_MAX_WORKERS = 4

FULLNAME_OVERRIDE_KEY = "fullnameOverride"


def _drop_event(_logger: Any, _method: str, _event: Any) -> Any:
    raise structlog.DropEvent


def discard_logger() -> Any:
    """Return a structlog logger that drops every event."""
    return structlog.wrap_logger(
        structlog.ReturnLogger(),
        processors=[_drop_event],
        wrapper_class=structlog.BoundLogger,
    )


# =============================================================================
# Scenario model
# =============================================================================


class ScenarioInput(BaseModel):
    """Configuration one scenario renders with.

    Attributes:
        namespace_name: Isolation namespace (DNS-1123 label).
        release_name: Helm release name.
        fullname_override: Optional override of the chart full name.
        service_config_overrides: Dotted-key values passed as ``--set``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    namespace_name: str = Field(..., description="Isolation namespace")
    release_name: str = Field(..., min_length=1, description="Helm release name")
    fullname_override: str | None = Field(default=None, description="Chart full name override")
    service_config_overrides: dict[str, str] = Field(
        default_factory=dict,
        description="Dotted-key --set values",
    )

    @field_validator("namespace_name")
    @classmethod
    def _validate_namespace(cls, value: str) -> str:
        return require_valid_namespace(value)

    @classmethod
    def create(
        cls,
        release_name: str,
        *,
        overrides: dict[str, str] | None = None,
        fullname_override: str | None = None,
        namespace_prefix: str = DEFAULT_NAMESPACE_PREFIX,
    ) -> ScenarioInput:
        """Build an input with a fresh randomized namespace.

        Example:
            >>> inp = ScenarioInput.create("featbit")
            >>> inp.namespace_name.startswith("medieval-")
            True
        """
        return cls(
            namespace_name=generate_unique_namespace(namespace_prefix),
            release_name=release_name,
            fullname_override=fullname_override,
            service_config_overrides=dict(overrides or {}),
        )

    @property
    def fullname(self) -> str:
        """Chart full name the templates will compute for this input.

        Derived from ``render_values`` so it names what the chart renders: a
        ``fullnameOverride`` in the explicit overrides wins over
        ``fullname_override``, and an empty one means no override.
        """
        override = self.render_values().get(FULLNAME_OVERRIDE_KEY) or None
        return chart_fullname(self.release_name, DEFAULT_CHART_NAME, fullname_override=override)

    def render_values(self) -> dict[str, str]:
        """Values handed to the renderer; explicit overrides win."""
        values = dict(self.service_config_overrides)
        if self.fullname_override and FULLNAME_OVERRIDE_KEY not in values:
            values[FULLNAME_OVERRIDE_KEY] = self.fullname_override
        return values


class ScenarioKind(str, Enum):
    """Whether a scenario expects a manifest or a render failure."""

    RENDERS = "renders"
    FAILS_TO_RENDER = "fails_to_render"


class Scenario(BaseModel):
    """One template, one configuration, one expected outcome.

    Attributes:
        name: Scenario name used in reports.
        input: Render configuration.
        chart_path: Chart directory.
        template: Template file the render is restricted to.
        kind: Expected outcome.
        expectation: Builds the expected resource from the input; None only
            checks that the output decodes.
        resource_kind: Kind of the rendered resource.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    name: str = Field(..., min_length=1)
    input: ScenarioInput
    chart_path: Path
    template: str
    kind: ScenarioKind = ScenarioKind.RENDERS
    expectation: Callable[[ScenarioInput], ExpectedResource] | None = None
    resource_kind: str = "Deployment"

    def with_input(self, scenario_input: ScenarioInput) -> Scenario:
        """Copy of this scenario rendering with another input."""
        return self.model_copy(update={"input": scenario_input})


class ScenarioStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"


class ScenarioResult(BaseModel):
    """Outcome of one scenario.

    Attributes:
        scenario: Scenario name.
        namespace: Namespace the scenario rendered into.
        release: Release name.
        status: passed, failed or error.
        mismatches: Every field mismatch found (failed scenarios).
        error: Render or decode failure (error scenarios).
        duration_seconds: Wall time of the run.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    scenario: str
    namespace: str
    release: str
    status: ScenarioStatus
    mismatches: tuple[Mismatch, ...] = ()
    error: ChartVerifyError | None = None
    duration_seconds: float = 0.0

    @property
    def passed(self) -> bool:
        return self.status is ScenarioStatus.PASSED

    def raise_for_status(self) -> None:
        """Raise the scenario's failure, do nothing if it passed.

        Raises:
            RenderFailure: A positive scenario could not render.
            DecodeFailure: The output did not decode.
            AssertionMismatch: Fields differed, or a negative scenario rendered.
        """
        if self.error is not None:
            raise self.error
        if self.status is ScenarioStatus.FAILED:
            raise AssertionMismatch(self.mismatches, scenario=self.scenario, namespace=self.namespace)


# =============================================================================
# Execution
# =============================================================================


def render_resource(
    scenario: Scenario,
    renderer: TemplateRenderer,
    *,
    log: Any = None,
) -> Deployment | Service:
    """Render a scenario's template and decode the result.

    ``log`` is handed to both the renderer and the decoder.

    Raises:
        RenderFailure: If the renderer rejects the input.
        DecodeFailure: If the output is not one resource of the scenario's kind.
    """
    text = renderer.render(
        scenario.chart_path,
        release_name=scenario.input.release_name,
        namespace=scenario.input.namespace_name,
        set_values=scenario.input.render_values(),
        template_files=[scenario.template],
        log=log,
    )
    return decode_resource(text, kind=scenario.resource_kind, log=log)


def verify_scenario(
    scenario: Scenario,
    renderer: TemplateRenderer,
    *,
    log: Any = None,
) -> ScenarioResult:
    """Render, decode and compare one scenario.

    Positive scenarios pass when the decoded resource matches the
    expectation; a render failure is an error. Negative scenarios pass when
    the render fails and fail when it produces a manifest. Decode failures
    are always errors.

    Args:
        scenario: Scenario to run.
        renderer: Template renderer.
        log: structlog logger; defaults to this module's logger.

    Returns:
        Scenario result. Only errors outside the verification hierarchy
        propagate.
    """
    log = (log if log is not None else logger).bind(
        scenario=scenario.name,
        namespace=scenario.input.namespace_name,
        release=scenario.input.release_name,
    )
    start = time.monotonic()

    def result(
        status: ScenarioStatus,
        *,
        mismatches: Iterable[Mismatch] = (),
        error: ChartVerifyError | None = None,
    ) -> ScenarioResult:
        return ScenarioResult(
            scenario=scenario.name,
            namespace=scenario.input.namespace_name,
            release=scenario.input.release_name,
            status=status,
            mismatches=tuple(mismatches),
            error=error,
            duration_seconds=time.monotonic() - start,
        )

    log.debug("harness.scenario_started", kind=scenario.kind.value, template=scenario.template)

    try:
        resource = render_resource(scenario, renderer, log=log)
    except RenderFailure as e:
        if scenario.kind is ScenarioKind.FAILS_TO_RENDER:
            log.info("harness.scenario_passed", outcome="render_refused", stderr=e.stderr)
            return result(ScenarioStatus.PASSED)
        log.error("harness.scenario_error", error=str(e))
        return result(ScenarioStatus.ERROR, error=e)
    except DecodeFailure as e:
        log.error("harness.scenario_error", error=str(e))
        return result(ScenarioStatus.ERROR, error=e)

    if scenario.kind is ScenarioKind.FAILS_TO_RENDER:
        mismatch = Mismatch(
            kind=scenario.resource_kind,
            path="render",
            expected="render failure",
            actual=f"rendered {resource.kind} {resource.metadata.name}",
            reason="rendered",
        )
        log.warning("harness.scenario_failed", mismatch_count=1, detail=str(mismatch))
        return result(ScenarioStatus.FAILED, mismatches=[mismatch])

    if scenario.expectation is None:
        log.info("harness.scenario_passed", fields_checked=0)
        return result(ScenarioStatus.PASSED)

    expected = scenario.expectation(scenario.input)
    mismatches = compare_resource(resource, expected)
    if mismatches:
        for mismatch in mismatches:
            log.warning(
                "harness.field_mismatch",
                path=mismatch.path,
                expected=repr(mismatch.expected),
                actual=repr(mismatch.actual),
            )
        log.warning("harness.scenario_failed", mismatch_count=len(mismatches))
        return result(ScenarioStatus.FAILED, mismatches=mismatches)

    log.info("harness.scenario_passed", fields_checked=len(expected))
    return result(ScenarioStatus.PASSED)


def verify_idempotent(
    scenario: Scenario,
    renderer: TemplateRenderer,
    *,
    log: Any = None,
) -> Deployment | Service:
    """Render a scenario twice and require equal decoded values.

    Returns:
        The decoded resource.

    Raises:
        RenderFailure: If either render fails.
        DecodeFailure: If either output does not decode.
        AssertionMismatch: If the two renders differ in any field.
    """
    log = (log if log is not None else logger).bind(
        scenario=scenario.name,
        namespace=scenario.input.namespace_name,
    )
    first = render_resource(scenario, renderer, log=log)
    second = render_resource(scenario, renderer, log=log)
    differences = compare_values(first, second, kind=first.kind)
    if differences:
        log.warning("harness.render_not_idempotent", mismatch_count=len(differences))
        raise AssertionMismatch(
            differences,
            scenario=scenario.name,
            namespace=scenario.input.namespace_name,
        )
    log.debug("harness.render_idempotent")
    return first


def run_scenarios(
    scenarios: Iterable[Scenario],
    renderer: TemplateRenderer,
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
    log: Any = None,
) -> list[ScenarioResult]:
    """Run scenarios concurrently.

    Args:
        scenarios: Scenarios to run; each must use its own namespace.
        renderer: Template renderer shared by all workers.
        max_workers: Thread pool size.
        log: structlog logger handed to every scenario.

    Returns:
        Results in the order the scenarios were given.
    """
    if max_workers < 1:
        raise ValueError(f"max_workers must be at least 1, got {max_workers}")

    scenario_list = list(scenarios)
    if not scenario_list:
        return []

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="chartverify") as pool:
        futures = [pool.submit(verify_scenario, scenario, renderer, log=log) for scenario in scenario_list]
        return [future.result() for future in futures]


__all__: list[str] = [
    "DEFAULT_MAX_WORKERS",
    "Scenario",
    "ScenarioInput",
    "ScenarioKind",
    "ScenarioResult",
    "ScenarioStatus",
    "discard_logger",
    "render_resource",
    "run_scenarios",
    "verify_idempotent",
    "verify_scenario",
]
