"""Helm chart integration test fixtures.

These tests render the FeatBit fixture chart with a real ``helm template``.
Rendering is local and offline; no cluster is needed. Every test is
skipped when no working helm binary is on PATH.

Example:
    def test_api(helm_renderer, featbit_chart_path):
        scenario = featbit_scenarios(featbit_chart_path)[0]
        assert verify_scenario(scenario, helm_renderer).passed
"""

from __future__ import annotations

from pathlib import Path

import pytest

from chartverify.featbit import featbit_scenarios
from chartverify.harness import Scenario
from chartverify.renderer import HelmRenderer, helm_available


@pytest.fixture(scope="session")
def helm_renderer() -> HelmRenderer:
    """Session-scoped Helm renderer.

    Skips the test if helm is not installed.

    Returns:
        HelmRenderer using the helm binary on PATH.
    """
    if not helm_available():
        pytest.skip("helm CLI not available - install helm to run chart integration tests")
    return HelmRenderer(timeout=120)


@pytest.fixture
def scenarios(featbit_chart_path: Path) -> dict[str, Scenario]:
    """Fresh FeatBit scenarios keyed by name, with new namespaces per test."""
    return {scenario.name: scenario for scenario in featbit_scenarios(featbit_chart_path)}
