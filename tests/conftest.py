"""Root-level test configuration for chartverify.

Unit tests (tests/unit/) run without Helm by injecting fake renderers.
Integration tests (tests/integration/) render the fixture chart in
charts/featbit with a real Helm binary and skip when it is missing.
"""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

REPO_ROOT = Path(__file__).resolve().parent.parent


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: renders the fixture chart with a real helm binary",
    )


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Undo logging configuration done by CLI commands under test."""
    yield
    structlog.reset_defaults()


@pytest.fixture(scope="session")
def featbit_chart_path() -> Path:
    """Path to the FeatBit fixture chart.

    Returns:
        Absolute path to charts/featbit.
    """
    return REPO_ROOT / "charts" / "featbit"
