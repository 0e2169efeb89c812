"""Template rendering collaborators.

The harness never shells out directly; it talks to a ``TemplateRenderer``.
``HelmRenderer`` is the production implementation and runs
``helm template`` locally. Tests inject fakes that return canned YAML.

Example:
    >>> renderer = HelmRenderer()
    >>> text = renderer.render(  # doctest: +SKIP
    ...     "charts/featbit",
    ...     release_name="featbit",
    ...     namespace="medieval-a1b2c3d4",
    ...     set_values={"api.image.tag": "2.4.1"},
    ...     template_files=["templates/api-deployment.yaml"],
    ... )
"""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import structlog

from chartverify.errors import RenderFailure

logger = structlog.get_logger(__name__)

DEFAULT_HELM_BINARY = "helm"
DEFAULT_RENDER_TIMEOUT = 60


@runtime_checkable
class TemplateRenderer(Protocol):
    """Renders chart templates to manifest text.

    Implementations raise ``RenderFailure`` when the chart rejects the
    input (for example a missing required value). They never return a
    partial manifest.
    """

    def render(
        self,
        chart_path: str | Path,
        *,
        release_name: str,
        namespace: str,
        set_values: Mapping[str, str],
        template_files: Sequence[str] = (),
        values_files: Sequence[str | Path] = (),
        log: Any = None,
    ) -> str:
        """Render the chart and return the manifest text.

        Args:
            chart_path: Chart directory or packaged chart.
            release_name: Release name passed to the templates.
            namespace: Release namespace passed to the templates.
            set_values: Dotted-key overrides (``--set`` semantics).
            template_files: Restrict output to these templates.
            values_files: Values files applied before ``set_values``.
            log: structlog logger for render events; defaults to the
                implementation's module logger.

        Returns:
            Rendered YAML.

        Raises:
            RenderFailure: If rendering fails.
        """
        ...


def build_helm_command(
    chart_path: str | Path,
    *,
    release_name: str,
    namespace: str,
    set_values: Mapping[str, str],
    template_files: Sequence[str] = (),
    values_files: Sequence[str | Path] = (),
    helm_binary: str = DEFAULT_HELM_BINARY,
    extra_args: Sequence[str] = (),
) -> list[str]:
    """Build the ``helm template`` argument vector.

    Example:
        >>> build_helm_command("c", release_name="r", namespace="n", set_values={"a": "1"})
        ['helm', 'template', 'r', 'c', '--namespace', 'n', '--set', 'a=1']
    """
    cmd = [helm_binary, "template", release_name, str(chart_path), "--namespace", namespace]
    for values_file in values_files:
        cmd.extend(["--values", str(values_file)])
    for key, value in set_values.items():
        cmd.extend(["--set", f"{key}={value}"])
    for template in template_files:
        cmd.extend(["--show-only", template])
    cmd.extend(extra_args)
    return cmd


class HelmRenderer:
    """Render charts with the Helm 3 CLI.

    Each call is a local, synchronous subprocess with a timeout. There are
    no retries; a failing render is reported once.

    Attributes:
        helm_binary: Helm executable name or path.
        timeout: Seconds before the subprocess is killed.
        extra_args: Arguments appended to every ``helm template`` call.
    """

    def __init__(
        self,
        helm_binary: str = DEFAULT_HELM_BINARY,
        timeout: int = DEFAULT_RENDER_TIMEOUT,
        extra_args: Sequence[str] = (),
    ) -> None:
        self.helm_binary = helm_binary
        self.timeout = timeout
        self.extra_args = tuple(extra_args)

    def render(
        self,
        chart_path: str | Path,
        *,
        release_name: str,
        namespace: str,
        set_values: Mapping[str, str],
        template_files: Sequence[str] = (),
        values_files: Sequence[str | Path] = (),
        log: Any = None,
    ) -> str:
        cmd = build_helm_command(
            chart_path,
            release_name=release_name,
            namespace=namespace,
            set_values=set_values,
            template_files=template_files,
            values_files=values_files,
            helm_binary=self.helm_binary,
            extra_args=self.extra_args,
        )
        context = {
            "chart": str(chart_path),
            "release": release_name,
            "templates": template_files,
        }
        log = log if log is not None else logger
        log.debug("renderer.helm_template", namespace=namespace, **context)

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise RenderFailure(f"helm binary not found: {self.helm_binary}", **context) from e
        except subprocess.TimeoutExpired as e:
            raise RenderFailure(f"helm template timed out after {self.timeout} seconds", **context) from e

        if result.returncode != 0:
            log.debug(
                "renderer.helm_template_failed",
                returncode=result.returncode,
                stderr=result.stderr.strip(),
                **context,
            )
            raise RenderFailure(result.stderr, returncode=result.returncode, **context)
        return result.stdout


def helm_available(helm_binary: str = DEFAULT_HELM_BINARY) -> bool:
    """Check whether a working Helm binary is reachable.

    Args:
        helm_binary: Helm executable name or path.

    Returns:
        True if ``helm version --short`` succeeds.
    """
    if shutil.which(helm_binary) is None:
        return False
    try:
        result = subprocess.run(
            [helm_binary, "version", "--short"],
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return False
    return result.returncode == 0


__all__: list[str] = [
    "DEFAULT_HELM_BINARY",
    "DEFAULT_RENDER_TIMEOUT",
    "HelmRenderer",
    "TemplateRenderer",
    "build_helm_command",
    "helm_available",
]
