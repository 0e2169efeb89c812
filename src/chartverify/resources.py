"""Typed resource shapes for rendered chart output.

This module defines explicit pydantic models for the Kubernetes resource
kinds the harness verifies. Each kind is a named, versioned schema instead of
a reflection-driven decode; the kinds are combined into a tagged union keyed
by ``kind`` so a single validation call yields the right model.

Models cover the fields the chart tests assert on. Unknown fields are
ignored, type mismatches on known fields fail validation.

Models:
    ObjectMeta, LabelSelector: Identity and selection
    Deployment, DeploymentSpec, PodTemplateSpec, PodSpec: Workloads
    Container, Probe, EnvVar, VolumeMount, Volume: Pod contents
    ResourceRequirements, Quantity: Compute resources
    Service, ServiceSpec, ServicePort: Networking

Example:
    >>> from chartverify.resources import Quantity
    >>> Quantity.parse("250m") == Quantity.from_milli(250)
    True
    >>> str(Quantity.parse("250m"))
    '250m'
"""

from __future__ import annotations

import re
from decimal import ROUND_CEILING, Decimal
from enum import Enum
from typing import Annotated, Any, Literal

from kubernetes.utils import parse_quantity
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel

# Rendered values that may be either a number or a named/percent string.
IntOrString = int | str

_BINARY_SUFFIXES = ("Ki", "Mi", "Gi", "Ti", "Pi", "Ei")
_EXPONENT_PATTERN = re.compile(r"^[+-]?[0-9.]+[eE][+-]?[0-9]+$")


class _K8sModel(BaseModel):
    """Base for all resource shapes: camelCase keys, unknown keys ignored."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# Quantity
# =============================================================================


class QuantityFormat(str, Enum):
    """Serialization format of a quantity, derived from its suffix."""

    DECIMAL_SI = "DecimalSI"
    BINARY_SI = "BinarySI"
    DECIMAL_EXPONENT = "DecimalExponent"


def _detect_format(text: str) -> QuantityFormat:
    if text.endswith(_BINARY_SUFFIXES):
        return QuantityFormat.BINARY_SI
    if _EXPONENT_PATTERN.match(text):
        return QuantityFormat.DECIMAL_EXPONENT
    return QuantityFormat.DECIMAL_SI


class Quantity(BaseModel):
    """A Kubernetes resource quantity (``250m``, ``1Gi``, ``2``).

    Two quantities are equal when both the exact value and the format match,
    so ``250m`` equals ``0.25`` but not ``256Mi`` style binary values of the
    same magnitude.

    Attributes:
        value: Exact decimal value in base units (cores, bytes).
        format: Format the quantity was written in.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    value: Decimal
    format: QuantityFormat = QuantityFormat.DECIMAL_SI

    @model_validator(mode="before")
    @classmethod
    def _parse_scalar(cls, data: Any) -> Any:
        """Accept rendered scalars (``"250m"``, ``1``) as well as field dicts."""
        if isinstance(data, (str, int, float, Decimal)) and not isinstance(data, bool):
            text = str(data).strip()
            try:
                value = parse_quantity(text)
            except ValueError as e:
                raise ValueError(f"Invalid quantity: {data!r}") from e
            return {"value": value, "format": _detect_format(text)}
        return data

    @classmethod
    def parse(cls, text: str | int | float) -> Quantity:
        """Parse a quantity string or number."""
        return cls.model_validate(text)

    @classmethod
    def from_milli(cls, milli: int, fmt: QuantityFormat = QuantityFormat.DECIMAL_SI) -> Quantity:
        """Build a quantity from a milli value, e.g. ``from_milli(250)`` is ``250m``."""
        return cls(value=Decimal(milli) / 1000, format=fmt)

    def milli_value(self) -> int:
        """Value in thousandths, rounded up like the Kubernetes API does."""
        return int((self.value * 1000).to_integral_value(rounding=ROUND_CEILING))

    def __str__(self) -> str:
        value = self.value.normalize()
        if self.format is QuantityFormat.BINARY_SI and value == value.to_integral_value():
            number = int(value)
            for power, suffix in reversed(list(enumerate(_BINARY_SUFFIXES, start=1))):
                unit = 1024**power
                if number and number % unit == 0:
                    return f"{number // unit}{suffix}"
            return str(number)
        if value == value.to_integral_value():
            return str(int(value))
        for scale, suffix in ((1000, "m"), (1_000_000, "u"), (1_000_000_000, "n")):
            scaled = value * scale
            if scaled == scaled.to_integral_value():
                return f"{int(scaled)}{suffix}"
        return format(value, "f")


# =============================================================================
# Metadata
# =============================================================================


class ObjectMeta(_K8sModel):
    """Resource identity: name, namespace, labels and annotations."""

    name: str | None = None
    namespace: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)


class LabelSelector(_K8sModel):
    match_labels: dict[str, str] = Field(default_factory=dict)


# =============================================================================
# Pod contents
# =============================================================================


class PodSecurityContext(_K8sModel):
    """Pod-level security context. Rendered ``{}`` decodes to an empty model."""

    run_as_user: int | None = None
    run_as_group: int | None = None
    run_as_non_root: bool | None = None
    fs_group: int | None = None


class SecurityContext(_K8sModel):
    """Container-level security context. Rendered ``{}`` decodes to an empty model."""

    run_as_user: int | None = None
    run_as_group: int | None = None
    run_as_non_root: bool | None = None
    privileged: bool | None = None
    read_only_root_filesystem: bool | None = None
    allow_privilege_escalation: bool | None = None
    capabilities: dict[str, list[str]] | None = None


class ContainerPort(_K8sModel):
    name: str | None = None
    container_port: int
    protocol: str | None = None


class HTTPGetAction(_K8sModel):
    path: str | None = None
    port: IntOrString
    scheme: str | None = None


class TCPSocketAction(_K8sModel):
    port: IntOrString


class Probe(_K8sModel):
    """Liveness/readiness probe. Only HTTP and TCP handlers are modelled."""

    http_get: HTTPGetAction | None = None
    tcp_socket: TCPSocketAction | None = None
    initial_delay_seconds: int | None = None
    period_seconds: int | None = None
    timeout_seconds: int | None = None
    success_threshold: int | None = None
    failure_threshold: int | None = None


class ResourceRequirements(_K8sModel):
    requests: dict[str, Quantity] = Field(default_factory=dict)
    limits: dict[str, Quantity] = Field(default_factory=dict)


class SecretKeySelector(_K8sModel):
    name: str
    key: str
    optional: bool | None = None


class ConfigMapKeySelector(_K8sModel):
    name: str
    key: str
    optional: bool | None = None


class ObjectFieldSelector(_K8sModel):
    field_path: str


class EnvVarSource(_K8sModel):
    secret_key_ref: SecretKeySelector | None = None
    config_map_key_ref: ConfigMapKeySelector | None = None
    field_ref: ObjectFieldSelector | None = None


class EnvVar(_K8sModel):
    """Environment variable: a literal value or a reference via ``valueFrom``."""

    name: str
    value: str | None = None
    value_from: EnvVarSource | None = None


class VolumeMount(_K8sModel):
    name: str
    mount_path: str
    sub_path: str | None = None
    read_only: bool | None = None


class ConfigMapVolumeSource(_K8sModel):
    name: str
    default_mode: int | None = None
    optional: bool | None = None


class SecretVolumeSource(_K8sModel):
    secret_name: str
    default_mode: int | None = None


class Volume(_K8sModel):
    name: str
    config_map: ConfigMapVolumeSource | None = None
    secret: SecretVolumeSource | None = None
    empty_dir: dict[str, Any] | None = None


class Container(_K8sModel):
    """A (init) container of a pod template."""

    name: str
    image: str | None = None
    image_pull_policy: str | None = None
    command: list[str] = Field(default_factory=list)
    args: list[str] = Field(default_factory=list)
    ports: list[ContainerPort] = Field(default_factory=list)
    env: list[EnvVar] = Field(default_factory=list)
    resources: ResourceRequirements = Field(default_factory=ResourceRequirements)
    liveness_probe: Probe | None = None
    readiness_probe: Probe | None = None
    security_context: SecurityContext | None = None
    volume_mounts: list[VolumeMount] = Field(default_factory=list)


class PodSpec(_K8sModel):
    service_account_name: str | None = None
    security_context: PodSecurityContext | None = None
    init_containers: list[Container] = Field(default_factory=list)
    containers: list[Container]
    volumes: list[Volume] = Field(default_factory=list)
    node_selector: dict[str, str] = Field(default_factory=dict)


class PodTemplateSpec(_K8sModel):
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PodSpec


# =============================================================================
# Deployment
# =============================================================================


class RollingUpdateDeployment(_K8sModel):
    """Rolling update bounds; percentages stay strings (``"25%"``)."""

    max_surge: IntOrString | None = None
    max_unavailable: IntOrString | None = None


class DeploymentStrategy(_K8sModel):
    type: str | None = None
    rolling_update: RollingUpdateDeployment | None = None


class DeploymentSpec(_K8sModel):
    replicas: int | None = None
    selector: LabelSelector
    strategy: DeploymentStrategy | None = None
    template: PodTemplateSpec


class Deployment(_K8sModel):
    """apps/v1 Deployment."""

    api_version: str = "apps/v1"
    kind: Literal["Deployment"] = "Deployment"
    metadata: ObjectMeta
    spec: DeploymentSpec


# =============================================================================
# Service
# =============================================================================


class ServicePort(_K8sModel):
    name: str | None = None
    port: int
    target_port: IntOrString | None = None
    node_port: int | None = None
    protocol: str | None = None


class ServiceSpec(_K8sModel):
    type: str | None = None
    ports: list[ServicePort] = Field(default_factory=list)
    selector: dict[str, str] = Field(default_factory=dict)
    cluster_ip: str | None = Field(default=None, alias="clusterIP")
    load_balancer_ip: str | None = Field(default=None, alias="loadBalancerIP")


class Service(_K8sModel):
    """v1 Service."""

    api_version: str = "v1"
    kind: Literal["Service"] = "Service"
    metadata: ObjectMeta
    spec: ServiceSpec


RenderedResource = Annotated[Deployment | Service, Field(discriminator="kind")]

RESOURCE_ADAPTER: TypeAdapter[Deployment | Service] = TypeAdapter(RenderedResource)

SUPPORTED_KINDS: frozenset[str] = frozenset({"Deployment", "Service"})


__all__: list[str] = [
    "RESOURCE_ADAPTER",
    "SUPPORTED_KINDS",
    "ConfigMapKeySelector",
    "ConfigMapVolumeSource",
    "Container",
    "ContainerPort",
    "Deployment",
    "DeploymentSpec",
    "DeploymentStrategy",
    "EnvVar",
    "EnvVarSource",
    "HTTPGetAction",
    "IntOrString",
    "LabelSelector",
    "ObjectFieldSelector",
    "ObjectMeta",
    "PodSecurityContext",
    "PodSpec",
    "PodTemplateSpec",
    "Probe",
    "Quantity",
    "QuantityFormat",
    "RenderedResource",
    "ResourceRequirements",
    "RollingUpdateDeployment",
    "SecretKeySelector",
    "SecretVolumeSource",
    "SecurityContext",
    "Service",
    "ServicePort",
    "ServiceSpec",
    "TCPSocketAction",
    "Volume",
    "VolumeMount",
]
