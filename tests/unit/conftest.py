"""Unit test fixtures.

Unit tests never run Helm. ``FakeChartRenderer`` builds the manifests the
FeatBit fixture chart would render, from the same release, namespace and
``--set`` values, and serializes them with PyYAML the way ``helm template``
prints them (``---`` separator and ``# Source:`` comment).
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest
import yaml
from click.testing import CliRunner

from chartverify.errors import RenderFailure
from chartverify.naming import chart_fullname
from chartverify.readiness import (
    build_infra_readiness_script,
    build_service_readiness_script,
)

Manifest = dict[str, Any]
Mutator = Callable[[str, Manifest], Manifest]


def _labels(component: str, release: str) -> dict[str, str]:
    return {
        "app.kubernetes.io/component": component,
        "app.kubernetes.io/instance": release,
        "app.kubernetes.io/managed-by": "Helm",
        "app.kubernetes.io/name": "featbit",
        "helm.sh/chart": "featbit-0.0.2",
    }


def _selector(component: str, release: str) -> dict[str, str]:
    return {
        "app.kubernetes.io/component": component,
        "app.kubernetes.io/name": "featbit",
        "app.kubernetes.io/instance": release,
    }


def _metadata(name: str, component: str, release: str, namespace: str) -> Manifest:
    return {
        "name": name,
        "namespace": namespace,
        "labels": _labels(component, release),
        "annotations": {
            "meta.helm.sh/release-name": release,
            "meta.helm.sh/release-namespace": namespace,
        },
    }


def _probe(path: str, period: int, timeout: int) -> Manifest:
    return {"httpGet": {"path": path, "port": "http"}, "periodSeconds": period, "timeoutSeconds": timeout}


def _replicas(values: Mapping[str, str], component: str) -> Manifest:
    if values.get(f"{component}.autoscaling.enabled", "false") == "true":
        return {}
    return {"replicas": int(values.get(f"{component}.replicaCount", "1"))}


def _deployment(
    component: str,
    release: str,
    namespace: str,
    fullname: str,
    values: Mapping[str, str],
    init_container: Manifest,
    container: Manifest,
    volumes: list[Manifest] | None = None,
) -> Manifest:
    pod_spec: Manifest = {
        "serviceAccountName": "featbit",
        "securityContext": {},
        "initContainers": [init_container],
        "containers": [container],
    }
    if volumes:
        pod_spec["volumes"] = volumes
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": _metadata(f"{fullname}-{component}", component, release, namespace),
        "spec": {
            **_replicas(values, component),
            "strategy": {"type": "RollingUpdate", "rollingUpdate": {"maxSurge": "25%", "maxUnavailable": "25%"}},
            "selector": {"matchLabels": _selector(component, release)},
            "template": {"metadata": {"labels": _selector(component, release)}, "spec": pod_spec},
        },
    }


def _image(values: Mapping[str, str], component: str) -> str:
    repository = values.get(f"{component}.image.repository", f"featbit/featbit-{component}")
    if not repository:
        raise RenderFailure(
            f"Error: execution error at (featbit/templates/{component}-deployment.yaml): "
            f"{component}.image.repository is required",
            chart="charts/featbit",
            templates=[f"templates/{component}-deployment.yaml"],
            returncode=1,
        )
    registry = values.get(f"{component}.image.registry", "docker.io")
    tag = values.get(f"{component}.image.tag", "2.4.1")
    return f"{registry}/{repository}:{tag}"


def render_api_deployment(release: str, namespace: str, values: Mapping[str, str]) -> Manifest:
    fullname = chart_fullname(release, fullname_override=values.get("fullnameOverride") or None)
    infra = f"{release}-{fullname}"
    secret = {"secretKeyRef": {"name": f"{infra}-mongodb-conn-str", "key": "mongodb-conn-str"}}
    api_port = values.get("api.service.port", "5000")
    das_port = values.get("das.service.port", "8200")
    database = values.get("mongodb.database", "featbit")
    container = {
        "name": "featbit-api",
        "securityContext": {},
        "image": _image(values, "api"),
        "imagePullPolicy": values.get("api.image.pullPolicy", "IfNotPresent"),
        "ports": [{"name": "http", "containerPort": int(api_port), "protocol": "TCP"}],
        "livenessProbe": _probe("/health/liveness", 5, 2),
        "readinessProbe": _probe("/health/liveness", 10, 5),
        "resources": {"requests": {"cpu": "250m"}},
        "env": [
            {"name": "OLAP__ServiceHost", "value": f"http://{fullname}-das:{das_port}"},
            {"name": "REDIS_HOST", "value": f"{infra}-redis-master"},
            {"name": "REDIS_PORT", "value": "6379"},
            {"name": "Redis__ConnectionString", "value": f"{infra}-redis-master:6379"},
            {"name": "REDIS_SSL", "value": "false"},
            {"name": "MongoDb__ConnectionString", "valueFrom": secret},
            {"name": "MongoDb__Database", "value": database},
            {"name": "MONGO_URI", "valueFrom": secret},
            {"name": "MONGO_INITDB_DATABASE", "value": database},
            {"name": "MONGO_HOST", "value": f"{infra}-mongodb"},
        ],
    }
    init_container = {
        "name": "wait-for-infrastructure-dependencies",
        "image": "docker.io/busybox:1.34",
        "command": ["/bin/sh", "-c", build_infra_readiness_script(namespace, release, fullname)],
    }
    return _deployment("api", release, namespace, fullname, values, init_container, container)


def render_ui_deployment(release: str, namespace: str, values: Mapping[str, str]) -> Manifest:
    fullname = chart_fullname(release, fullname_override=values.get("fullnameOverride") or None)
    api_port = values.get("api.service.port", "5000")
    eval_port = values.get("els.service.port", "5100")
    das_port = values.get("das.service.port", "8200")
    container = {
        "name": "featbit-ui",
        "securityContext": {},
        "image": _image(values, "ui"),
        "imagePullPolicy": values.get("ui.image.pullPolicy", "IfNotPresent"),
        "command": ["/scripts/setup.sh"],
        "ports": [{"name": "http", "containerPort": 80, "protocol": "TCP"}],
        "livenessProbe": _probe("/health", 5, 2),
        "readinessProbe": _probe("/health", 10, 5),
        "resources": {"requests": {"cpu": "250m"}},
        "env": [
            {"name": "API_URL", "value": f"http://localhost:{api_port}"},
            {"name": "EVALUATION_URL", "value": f"http://localhost:{eval_port}"},
            {"name": "DEMO_URL", "value": values.get("ui.demoUrl", "https://featbit-samples.vercel.app")},
        ],
        "volumeMounts": [{"name": "scripts", "mountPath": "/scripts/setup.sh", "subPath": "setup.sh"}],
    }
    init_container = {
        "name": "wait-for-other-components",
        "image": "docker.io/busybox:1.34",
        "command": [
            "/bin/sh",
            "-c",
            build_service_readiness_script(namespace, fullname, int(api_port), int(eval_port), int(das_port)),
        ],
    }
    volumes = [{"name": "scripts", "configMap": {"name": "ui-scripts-configmap", "defaultMode": 0o755}}]
    return _deployment("ui", release, namespace, fullname, values, init_container, container, volumes)


def render_das_service(release: str, namespace: str, values: Mapping[str, str]) -> Manifest:
    fullname = chart_fullname(release, fullname_override=values.get("fullnameOverride") or None)
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": _metadata(f"{fullname}-das", "das", release, namespace),
        "spec": {
            "type": values.get("das.service.type", "ClusterIP"),
            "ports": [
                {
                    "port": int(values.get("das.service.port", "8200")),
                    "targetPort": 80,
                    "protocol": "TCP",
                    "name": "http",
                }
            ],
            "selector": _selector("das", release),
        },
    }


TEMPLATES: dict[str, Callable[[str, str, Mapping[str, str]], Manifest]] = {
    "templates/api-deployment.yaml": render_api_deployment,
    "templates/ui-deployment.yaml": render_ui_deployment,
    "templates/da-server-service.yaml": render_das_service,
}


def to_helm_output(template: str, manifest: Manifest) -> str:
    """Serialize a manifest like ``helm template --show-only`` prints it."""
    return f"---\n# Source: featbit/{template}\n" + yaml.safe_dump(manifest, sort_keys=False)


class FakeChartRenderer:
    """In-memory stand-in for ``HelmRenderer``.

    Args:
        mutate: Optional hook rewriting a manifest before serialization,
            used to simulate a chart that renders wrong values.
    """

    def __init__(self, mutate: Mutator | None = None) -> None:
        self.mutate = mutate
        self.calls: list[dict[str, Any]] = []
        self._lock = threading.Lock()

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
        with self._lock:
            self.calls.append(
                {
                    "chart_path": str(chart_path),
                    "release_name": release_name,
                    "namespace": namespace,
                    "set_values": dict(set_values),
                    "template_files": list(template_files),
                    "log": log,
                }
            )
        documents = []
        for template in template_files or list(TEMPLATES):
            manifest = TEMPLATES[template](release_name, namespace, set_values)
            if self.mutate is not None:
                manifest = self.mutate(template, copy.deepcopy(manifest))
            documents.append(to_helm_output(template, manifest))
        return "".join(documents)


@pytest.fixture
def fake_renderer() -> FakeChartRenderer:
    """Renderer producing correct FeatBit manifests."""
    return FakeChartRenderer()


@pytest.fixture
def make_renderer() -> Callable[[Mutator | None], FakeChartRenderer]:
    """Factory for renderers that rewrite manifests before returning them."""

    def factory(mutate: Mutator | None = None) -> FakeChartRenderer:
        return FakeChartRenderer(mutate)

    return factory


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner.

    Returns:
        CliRunner instance for testing Click commands.
    """
    return CliRunner()
