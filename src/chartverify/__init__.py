"""chartverify: render-and-verify harness for the FeatBit Helm chart.

Renders one chart template with one configuration, decodes the output into
typed Kubernetes resources and compares them field by field with values
derived from the same configuration, including the exact readiness scripts
the chart embeds in its init containers.

Example:
    >>> from chartverify import HelmRenderer, featbit_scenarios, run_scenarios
    >>> results = run_scenarios(featbit_scenarios("charts/featbit"), HelmRenderer())  # doctest: +SKIP
    >>> all(r.passed for r in results)  # doctest: +SKIP
    True
"""

from __future__ import annotations

from chartverify.comparator import (
    MISSING,
    ExpectedResource,
    Mismatch,
    assert_resource_matches,
    compare_resource,
    resolve_path,
)
from chartverify.decoder import decode_resource, split_documents
from chartverify.errors import (
    AssertionMismatch,
    ChartVerifyError,
    ConfigurationError,
    DecodeFailure,
    RenderFailure,
)
from chartverify.featbit import featbit_scenarios
from chartverify.harness import (
    Scenario,
    ScenarioInput,
    ScenarioKind,
    ScenarioResult,
    ScenarioStatus,
    discard_logger,
    render_resource,
    run_scenarios,
    verify_idempotent,
    verify_scenario,
)
from chartverify.naming import (
    InvalidNamespaceError,
    chart_fullname,
    generate_unique_namespace,
    validate_namespace,
)
from chartverify.readiness import (
    build_infra_readiness_script,
    build_service_readiness_script,
)
from chartverify.renderer import HelmRenderer, TemplateRenderer, helm_available

__version__ = "0.1.0"

__all__: list[str] = [
    "MISSING",
    "AssertionMismatch",
    "ChartVerifyError",
    "ConfigurationError",
    "DecodeFailure",
    "ExpectedResource",
    "HelmRenderer",
    "InvalidNamespaceError",
    "Mismatch",
    "RenderFailure",
    "Scenario",
    "ScenarioInput",
    "ScenarioKind",
    "ScenarioResult",
    "ScenarioStatus",
    "TemplateRenderer",
    "__version__",
    "assert_resource_matches",
    "build_infra_readiness_script",
    "build_service_readiness_script",
    "chart_fullname",
    "compare_resource",
    "decode_resource",
    "discard_logger",
    "featbit_scenarios",
    "generate_unique_namespace",
    "helm_available",
    "render_resource",
    "resolve_path",
    "run_scenarios",
    "split_documents",
    "validate_namespace",
    "verify_idempotent",
    "verify_scenario",
]
