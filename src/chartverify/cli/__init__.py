"""Command-line interface for chartverify.

Commands:
    chartverify readiness service: Print the service readiness script
    chartverify readiness infra: Print the infrastructure readiness script
    chartverify verify: Render and verify the FeatBit chart scenarios

Exit Codes:
    0: Success
    1: General error
    2: Usage error (invalid arguments or configuration)
    3: File not found (chart, config file, helm binary)
    4: Render error
    5: Decode error
    6: Assertion error (field mismatches)
"""

from __future__ import annotations

from chartverify.cli.main import cli, main
from chartverify.cli.utils import ExitCode, error, error_exit, success

__all__: list[str] = [
    # Entry points
    "main",
    "cli",
    # Utilities
    "ExitCode",
    "error",
    "error_exit",
    "success",
]
