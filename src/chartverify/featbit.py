"""Expected resources for the FeatBit chart.

Each builder takes the ``ScenarioInput`` a scenario renders with and
returns the resource the chart must produce for it. Names, hosts and
readiness scripts are derived from the input, never hard-coded.

Example:
    >>> from chartverify.featbit import featbit_scenarios
    >>> [s.name for s in featbit_scenarios("charts/featbit")][:2]
    ['api-deployment', 'ui-deployment']
"""

from __future__ import annotations

from pathlib import Path

from chartverify.comparator import ExpectedResource
from chartverify.harness import Scenario, ScenarioInput, ScenarioKind
from chartverify.naming import DEFAULT_NAMESPACE_PREFIX, component_name
from chartverify.readiness import (
    DEFAULT_API_PORT,
    DEFAULT_DAS_PORT,
    DEFAULT_EVAL_PORT,
    REDIS_PORT,
    build_infra_readiness_script,
    build_service_readiness_script,
)
from chartverify.resources import (
    ConfigMapVolumeSource,
    ContainerPort,
    EnvVar,
    EnvVarSource,
    PodSecurityContext,
    Quantity,
    SecretKeySelector,
    SecurityContext,
    Volume,
    VolumeMount,
)

CHART_NAME = "featbit"
CHART_VERSION = "0.0.2"

DEFAULT_RELEASE = "helm-basic"
DEFAULT_FULLNAME_OVERRIDE = "featbit"
DEFAULT_IMAGE_REGISTRY = "docker.io"
DEFAULT_IMAGE_TAG = "2.4.1"
DEFAULT_PULL_POLICY = "IfNotPresent"

INIT_IMAGE = "docker.io/busybox:1.34"
SERVICE_ACCOUNT = "featbit"
DEFAULT_MONGODB_DATABASE = "featbit"
DEFAULT_REPLICA_COUNT = 1
DEFAULT_DEMO_URL = "https://featbit-samples.vercel.app"
MONGODB_SECRET_KEY = "mongodb-conn-str"
UI_SCRIPTS_CONFIGMAP = "ui-scripts-configmap"
UI_SCRIPTS_MODE = 0o755

API_TEMPLATE = "templates/api-deployment.yaml"
UI_TEMPLATE = "templates/ui-deployment.yaml"
DAS_SERVICE_TEMPLATE = "templates/da-server-service.yaml"

_POD = "spec.template.spec"
_CONTAINER = f"{_POD}.containers[0]"
_INIT_CONTAINER = f"{_POD}.initContainers[0]"


def standard_labels(component: str, release: str) -> dict[str, str]:
    """Labels the chart puts on every top-level resource."""
    return {
        "app.kubernetes.io/component": component,
        "app.kubernetes.io/instance": release,
        "app.kubernetes.io/managed-by": "Helm",
        "app.kubernetes.io/name": CHART_NAME,
        "helm.sh/chart": f"{CHART_NAME}-{CHART_VERSION}",
    }


def selector_labels(component: str, release: str) -> dict[str, str]:
    """Labels used in selectors and on pod templates."""
    return {
        "app.kubernetes.io/component": component,
        "app.kubernetes.io/instance": release,
        "app.kubernetes.io/name": CHART_NAME,
    }


def release_annotations(release: str, namespace: str) -> dict[str, str]:
    return {
        "meta.helm.sh/release-name": release,
        "meta.helm.sh/release-namespace": namespace,
    }


def _image(scenario_input: ScenarioInput, component: str) -> str:
    overrides = scenario_input.service_config_overrides
    registry = overrides.get(f"{component}.image.registry", DEFAULT_IMAGE_REGISTRY)
    repository = overrides.get(f"{component}.image.repository", f"featbit/featbit-{component}")
    tag = overrides.get(f"{component}.image.tag", DEFAULT_IMAGE_TAG)
    return f"{registry}/{repository}:{tag}"


def _port(scenario_input: ScenarioInput, key: str, default: int) -> int:
    return int(scenario_input.service_config_overrides.get(key, default))


def _replicas(scenario_input: ScenarioInput, component: str) -> int | None:
    """Replica count, or None when autoscaling owns it and the field is omitted."""
    overrides = scenario_input.service_config_overrides
    if overrides.get(f"{component}.autoscaling.enabled", "false").lower() == "true":
        return None
    return int(overrides.get(f"{component}.replicaCount", DEFAULT_REPLICA_COUNT))


def _pull_policy(scenario_input: ScenarioInput, component: str) -> str:
    return scenario_input.service_config_overrides.get(f"{component}.image.pullPolicy", DEFAULT_PULL_POLICY)


def _deployment_expectation(scenario_input: ScenarioInput, component: str) -> ExpectedResource:
    """Metadata, strategy and pod-level fields shared by all deployments."""
    release = scenario_input.release_name
    return (
        ExpectedResource("Deployment")
        .expect("metadata.name", component_name(scenario_input.fullname, component))
        .expect("metadata.namespace", scenario_input.namespace_name)
        .expect("metadata.labels", standard_labels(component, release))
        .expect("metadata.annotations", release_annotations(release, scenario_input.namespace_name))
        .expect("spec.replicas", _replicas(scenario_input, component))
        .expect("spec.strategy.rollingUpdate.maxSurge", "25%")
        .expect("spec.strategy.rollingUpdate.maxUnavailable", "25%")
        .expect("spec.selector.matchLabels", selector_labels(component, release))
        .expect("spec.template.metadata.labels", selector_labels(component, release))
        .expect(f"{_POD}.serviceAccountName", SERVICE_ACCOUNT)
        .expect(f"{_POD}.securityContext", PodSecurityContext())
    )


def _expect_main_container(
    expected: ExpectedResource,
    scenario_input: ScenarioInput,
    component: str,
    *,
    port: int,
    health_path: str,
) -> ExpectedResource:
    """Container name, image, port, probes and CPU request."""
    return (
        expected.expect_length(f"{_POD}.containers", 1)
        .expect(f"{_CONTAINER}.name", f"featbit-{component}")
        .expect(f"{_CONTAINER}.securityContext", SecurityContext())
        .expect(f"{_CONTAINER}.image", _image(scenario_input, component))
        .expect(f"{_CONTAINER}.imagePullPolicy", _pull_policy(scenario_input, component))
        .expect(f"{_CONTAINER}.ports", [ContainerPort(name="http", container_port=port, protocol="TCP")])
        .expect(f"{_CONTAINER}.livenessProbe.periodSeconds", 5)
        .expect(f"{_CONTAINER}.livenessProbe.timeoutSeconds", 2)
        .expect(f"{_CONTAINER}.livenessProbe.httpGet.path", health_path)
        .expect(f"{_CONTAINER}.livenessProbe.httpGet.port", "http")
        .expect(f"{_CONTAINER}.readinessProbe.periodSeconds", 10)
        .expect(f"{_CONTAINER}.readinessProbe.timeoutSeconds", 5)
        .expect(f"{_CONTAINER}.readinessProbe.httpGet.path", health_path)
        .expect(f"{_CONTAINER}.readinessProbe.httpGet.port", "http")
        .expect(f"{_CONTAINER}.resources.requests.cpu", Quantity.from_milli(250))
    )


def _expect_init_container(expected: ExpectedResource, name: str, script: str) -> ExpectedResource:
    return (
        expected.expect_length(f"{_POD}.initContainers", 1)
        .expect(f"{_INIT_CONTAINER}.name", name)
        .expect(f"{_INIT_CONTAINER}.image", INIT_IMAGE)
        .expect(f"{_INIT_CONTAINER}.command", ["/bin/sh", "-c", script])
    )


def api_env(scenario_input: ScenarioInput) -> list[EnvVar]:
    """Environment of the API container, in rendered order."""
    infra_prefix = f"{scenario_input.release_name}-{scenario_input.fullname}"
    redis_host = f"{infra_prefix}-redis-master"
    mongodb_secret = EnvVarSource(
        secret_key_ref=SecretKeySelector(name=f"{infra_prefix}-mongodb-conn-str", key=MONGODB_SECRET_KEY)
    )
    das_host = component_name(scenario_input.fullname, "das")
    das_port = _port(scenario_input, "das.service.port", DEFAULT_DAS_PORT)
    database = scenario_input.service_config_overrides.get("mongodb.database", DEFAULT_MONGODB_DATABASE)
    return [
        EnvVar(name="OLAP__ServiceHost", value=f"http://{das_host}:{das_port}"),
        EnvVar(name="REDIS_HOST", value=redis_host),
        EnvVar(name="REDIS_PORT", value=str(REDIS_PORT)),
        EnvVar(name="Redis__ConnectionString", value=f"{redis_host}:{REDIS_PORT}"),
        EnvVar(name="REDIS_SSL", value="false"),
        EnvVar(name="MongoDb__ConnectionString", value_from=mongodb_secret),
        EnvVar(name="MongoDb__Database", value=database),
        EnvVar(name="MONGO_URI", value_from=mongodb_secret),
        EnvVar(name="MONGO_INITDB_DATABASE", value=database),
        EnvVar(name="MONGO_HOST", value=f"{infra_prefix}-mongodb"),
    ]


def ui_env(scenario_input: ScenarioInput) -> list[EnvVar]:
    api_port = _port(scenario_input, "api.service.port", DEFAULT_API_PORT)
    eval_port = _port(scenario_input, "els.service.port", DEFAULT_EVAL_PORT)
    overrides = scenario_input.service_config_overrides
    return [
        EnvVar(name="API_URL", value=f"http://localhost:{api_port}"),
        EnvVar(name="EVALUATION_URL", value=f"http://localhost:{eval_port}"),
        EnvVar(name="DEMO_URL", value=overrides.get("ui.demoUrl", DEFAULT_DEMO_URL)),
    ]


def api_deployment_expectation(scenario_input: ScenarioInput) -> ExpectedResource:
    """Expected API deployment.

    The init container waits for Redis and MongoDB; the container talks to
    both through the release-scoped infrastructure names.

    Args:
        scenario_input: Input the scenario renders with.

    Returns:
        Expected Deployment fields.
    """
    expected = _deployment_expectation(scenario_input, "api")
    script = build_infra_readiness_script(
        scenario_input.namespace_name,
        scenario_input.release_name,
        scenario_input.fullname,
    )
    _expect_init_container(expected, "wait-for-infrastructure-dependencies", script)
    _expect_main_container(
        expected,
        scenario_input,
        "api",
        port=_port(scenario_input, "api.service.port", DEFAULT_API_PORT),
        health_path="/health/liveness",
    )
    return expected.expect(f"{_CONTAINER}.env", api_env(scenario_input))


def ui_deployment_expectation(scenario_input: ScenarioInput) -> ExpectedResource:
    """Expected UI deployment.

    The init container waits for the API, Evaluation Server and DA Server
    services of the same release.

    Args:
        scenario_input: Input the scenario renders with.

    Returns:
        Expected Deployment fields.
    """
    expected = _deployment_expectation(scenario_input, "ui")
    script = build_service_readiness_script(
        scenario_input.namespace_name,
        scenario_input.fullname,
        _port(scenario_input, "api.service.port", DEFAULT_API_PORT),
        _port(scenario_input, "els.service.port", DEFAULT_EVAL_PORT),
        _port(scenario_input, "das.service.port", DEFAULT_DAS_PORT),
    )
    _expect_init_container(expected, "wait-for-other-components", script)
    _expect_main_container(expected, scenario_input, "ui", port=80, health_path="/health")
    return (
        expected.expect(f"{_CONTAINER}.command", ["/scripts/setup.sh"])
        .expect(f"{_CONTAINER}.env", ui_env(scenario_input))
        .expect(
            f"{_CONTAINER}.volumeMounts",
            [VolumeMount(name="scripts", mount_path="/scripts/setup.sh", sub_path="setup.sh")],
        )
        .expect(
            f"{_POD}.volumes",
            [
                Volume(
                    name="scripts",
                    config_map=ConfigMapVolumeSource(name=UI_SCRIPTS_CONFIGMAP, default_mode=UI_SCRIPTS_MODE),
                )
            ],
        )
    )


def das_service_expectation(scenario_input: ScenarioInput) -> ExpectedResource:
    """Expected DA Server service: ``das.service.port`` forwarded to port 80."""
    release = scenario_input.release_name
    overrides = scenario_input.service_config_overrides
    return (
        ExpectedResource("Service")
        .expect("metadata.name", component_name(scenario_input.fullname, "das"))
        .expect("metadata.namespace", scenario_input.namespace_name)
        .expect("metadata.labels", standard_labels("das", release))
        .expect("metadata.annotations", release_annotations(release, scenario_input.namespace_name))
        .expect("spec.type", overrides.get("das.service.type", "ClusterIP"))
        .expect_length("spec.ports", 1)
        .expect("spec.ports[0].port", _port(scenario_input, "das.service.port", DEFAULT_DAS_PORT))
        .expect("spec.ports[0].targetPort", 80)
        .expect("spec.ports[0].protocol", "TCP")
        .expect("spec.selector", selector_labels("das", release))
    )


def api_deployment_name_expectation(scenario_input: ScenarioInput) -> ExpectedResource:
    """Only the API deployment name, for full-name composition checks."""
    return ExpectedResource("Deployment").expect(
        "metadata.name", component_name(scenario_input.fullname, "api")
    )


def featbit_scenarios(
    chart_path: str | Path,
    release: str = DEFAULT_RELEASE,
    *,
    namespace_prefix: str = DEFAULT_NAMESPACE_PREFIX,
) -> list[Scenario]:
    """Scenarios covering the FeatBit chart.

    Every scenario gets its own randomized namespace.

    Args:
        chart_path: FeatBit chart directory.
        release: Release name for the component scenarios.
        namespace_prefix: Prefix of the generated namespaces.

    Returns:
        Positive scenarios for the API and UI deployments, the DA Server
        service and full-name composition, plus one negative scenario for
        a missing required image repository.
    """
    chart = Path(chart_path)

    def make_input(
        release_name: str,
        overrides: dict[str, str],
        fullname_override: str | None = DEFAULT_FULLNAME_OVERRIDE,
    ) -> ScenarioInput:
        return ScenarioInput.create(
            release_name,
            overrides=overrides,
            fullname_override=fullname_override,
            namespace_prefix=namespace_prefix,
        )

    def image_overrides(component: str) -> dict[str, str]:
        return {
            f"{component}.image.registry": DEFAULT_IMAGE_REGISTRY,
            f"{component}.image.repository": f"featbit/featbit-{component}",
            f"{component}.image.pullPolicy": DEFAULT_PULL_POLICY,
            f"{component}.image.tag": DEFAULT_IMAGE_TAG,
            f"{component}.autoscaling.enabled": "false",
        }

    das_overrides = {"das.service.type": "ClusterIp", "das.service.port": str(DEFAULT_DAS_PORT)}

    return [
        Scenario(
            name="api-deployment",
            input=make_input(release, image_overrides("api")),
            chart_path=chart,
            template=API_TEMPLATE,
            expectation=api_deployment_expectation,
        ),
        Scenario(
            name="ui-deployment",
            input=make_input(release, image_overrides("ui")),
            chart_path=chart,
            template=UI_TEMPLATE,
            expectation=ui_deployment_expectation,
        ),
        Scenario(
            name="das-service",
            input=make_input(release, das_overrides),
            chart_path=chart,
            template=DAS_SERVICE_TEMPLATE,
            resource_kind="Service",
            expectation=das_service_expectation,
        ),
        Scenario(
            name="fullname-release-contains-chart",
            input=make_input(CHART_NAME, {"das.service.type": "ClusterIp"}, fullname_override=None),
            chart_path=chart,
            template=API_TEMPLATE,
            expectation=api_deployment_name_expectation,
        ),
        Scenario(
            name="fullname-release-differs-from-chart",
            input=make_input("notsame", {"das.service.type": "ClusterIp"}, fullname_override=None),
            chart_path=chart,
            template=API_TEMPLATE,
            expectation=api_deployment_name_expectation,
        ),
        Scenario(
            name="api-missing-image-repository",
            input=make_input(release, {"api.image.repository": ""}),
            chart_path=chart,
            template=API_TEMPLATE,
            kind=ScenarioKind.FAILS_TO_RENDER,
        ),
    ]


__all__: list[str] = [
    "API_TEMPLATE",
    "CHART_NAME",
    "CHART_VERSION",
    "DAS_SERVICE_TEMPLATE",
    "UI_TEMPLATE",
    "api_deployment_expectation",
    "api_deployment_name_expectation",
    "api_env",
    "das_service_expectation",
    "featbit_scenarios",
    "release_annotations",
    "selector_labels",
    "standard_labels",
    "ui_deployment_expectation",
    "ui_env",
]
