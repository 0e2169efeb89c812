"""Exception hierarchy for chart verification.

All exceptions inherit from ChartVerifyError so callers can catch every
verification failure with a single except clause.

Exception Hierarchy:
    ChartVerifyError (base)
    ├── RenderFailure         # helm template rejected the input
    ├── DecodeFailure         # rendered text is not the expected resource shape
    ├── AssertionMismatch     # decoded fields differ from the expectation
    └── ConfigurationError    # harness configuration is invalid

Example:
    >>> from chartverify.errors import RenderFailure
    >>> raise RenderFailure("missing value", chart="charts/featbit")
    Traceback (most recent call last):
        ...
    RenderFailure: Render failed for charts/featbit: missing value
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chartverify.comparator import Mismatch


class ChartVerifyError(Exception):
    """Base exception for all chart verification errors."""

    pass


class RenderFailure(ChartVerifyError):
    """Raised when the template renderer rejects the input.

    Expected outcome for negative scenarios, fatal for positive ones.

    Attributes:
        stderr: Error text reported by the renderer.
        chart: Chart location that was rendered.
        release: Release name used for the render.
        templates: Template files the render was restricted to.
        returncode: Renderer exit code, if a process was run.
    """

    def __init__(
        self,
        stderr: str,
        *,
        chart: str = "",
        release: str = "",
        templates: Sequence[str] = (),
        returncode: int | None = None,
    ) -> None:
        self.stderr = stderr.strip()
        self.chart = chart
        self.release = release
        self.templates = tuple(templates)
        self.returncode = returncode
        target = chart or "chart"
        if self.templates:
            target = f"{target} ({', '.join(self.templates)})"
        super().__init__(f"Render failed for {target}: {self.stderr}")


class DecodeFailure(ChartVerifyError):
    """Raised when rendered text does not decode as the expected resource kind.

    Always fatal: either the template is broken or the scenario targets
    the wrong kind.

    Attributes:
        kind: Resource kind the decoder was asked for, if any.
        reason: Human readable cause.
    """

    def __init__(self, reason: str, *, kind: str | None = None) -> None:
        self.kind = kind
        self.reason = reason
        prefix = f"Cannot decode {kind}" if kind else "Cannot decode resource"
        super().__init__(f"{prefix}: {reason}")


class AssertionMismatch(ChartVerifyError, AssertionError):
    """Raised when decoded fields differ from the expected values.

    Carries every mismatch of the scenario, not just the first one.

    Attributes:
        scenario: Scenario name.
        namespace: Namespace the scenario rendered into.
        mismatches: All field mismatches found.
    """

    def __init__(
        self,
        mismatches: Sequence[Mismatch],
        *,
        scenario: str = "",
        namespace: str = "",
    ) -> None:
        self.scenario = scenario
        self.namespace = namespace
        self.mismatches = tuple(mismatches)
        header = f"{len(self.mismatches)} field mismatch(es)"
        if scenario:
            header = f"{header} in scenario '{scenario}'"
        if namespace:
            header = f"{header} (namespace={namespace})"
        lines = [header] + [f"  - {m}" for m in self.mismatches]
        super().__init__("\n".join(lines))


class ConfigurationError(ChartVerifyError):
    """Raised when harness configuration cannot be loaded or validated."""

    pass


__all__: list[str] = [
    "AssertionMismatch",
    "ChartVerifyError",
    "ConfigurationError",
    "DecodeFailure",
    "RenderFailure",
]
