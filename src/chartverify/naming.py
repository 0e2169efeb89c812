"""Resource naming and isolation namespaces.

This module mirrors the chart's name helpers so expected resource names can
be computed from the same release and override inputs, and it generates the
randomized namespaces that keep concurrent scenarios apart.

Functions:
    chart_fullname: Compose the chart full name from release and chart name
    component_name: Name of a component resource (e.g. ``featbit-api``)
    generate_unique_namespace: Create a unique, DNS-1123 safe namespace
    validate_namespace: Check if a namespace name is valid for K8s
    require_valid_namespace: Same check, raising on failure

Example:
    >>> chart_fullname("featbit")
    'featbit'
    >>> chart_fullname("notsame")
    'notsame-featbit'
    >>> component_name(chart_fullname("notsame"), "api")
    'notsame-featbit-api'
"""

from __future__ import annotations

import re
import uuid

DEFAULT_CHART_NAME = "featbit"
DEFAULT_NAMESPACE_PREFIX = "medieval"

# K8s name constraints
MAX_NAME_LENGTH = 63
MAX_NAMESPACE_LENGTH = 63
NAMESPACE_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")


class InvalidNamespaceError(ValueError):
    """Raised when a namespace name is invalid for Kubernetes."""

    def __init__(self, namespace: str, reason: str) -> None:
        self.namespace = namespace
        self.reason = reason
        super().__init__(f"Invalid namespace '{namespace}': {reason}")


def _trunc(name: str) -> str:
    """Apply the chart's ``trunc 63 | trimSuffix "-"`` pipeline."""
    truncated = name[:MAX_NAME_LENGTH]
    if truncated.endswith("-"):
        truncated = truncated[:-1]
    return truncated


def chart_fullname(
    release: str,
    chart: str = DEFAULT_CHART_NAME,
    *,
    name_override: str | None = None,
    fullname_override: str | None = None,
) -> str:
    """Compose the chart full name the way the chart's helpers do.

    Rules, first match wins:
    1. A non-empty ``fullname_override`` is used as is.
    2. If the release name contains the chart name (or ``name_override``),
       the release name alone is used.
    3. Otherwise ``<release>-<chart>``.

    The result is truncated to 63 characters with a trailing hyphen removed.

    Args:
        release: Helm release name.
        chart: Chart name.
        name_override: Replacement for the chart name.
        fullname_override: Replacement for the whole full name.

    Returns:
        Full name used as the prefix of every chart resource.
    """
    if fullname_override:
        return _trunc(fullname_override)

    name = name_override or chart
    if name in release:
        return _trunc(release)
    return _trunc(f"{release}-{name}")


def component_name(fullname: str, component: str) -> str:
    """Name of a component resource, e.g. ``featbit-api``.

    Args:
        fullname: Chart full name.
        component: Component suffix (api, ui, das, els).

    Returns:
        Resource name.
    """
    return f"{fullname}-{component}"


def generate_unique_namespace(prefix: str = DEFAULT_NAMESPACE_PREFIX) -> str:
    """Generate a unique K8s namespace name.

    Creates a namespace name by combining the given prefix with a random
    lowercase hex suffix. The result follows Kubernetes naming conventions:
    - Lowercase alphanumeric characters and hyphens only
    - Must start and end with alphanumeric character
    - Maximum 63 characters

    Args:
        prefix: Namespace prefix (e.g., "medieval", "test_api").
            Underscores are converted to hyphens.

    Returns:
        Unique namespace string (e.g., "medieval-a1b2c3d4").

    Raises:
        InvalidNamespaceError: If the generated name is still invalid.

    Example:
        >>> ns1 = generate_unique_namespace()
        >>> ns2 = generate_unique_namespace()
        >>> ns1 != ns2
        True
    """
    normalized_prefix = prefix.lower().replace("_", "-")
    normalized_prefix = re.sub(r"[^a-z0-9-]", "", normalized_prefix)
    normalized_prefix = normalized_prefix.strip("-")

    suffix = uuid.uuid4().hex[:8]

    # Leave room for the hyphen and suffix
    max_prefix_length = MAX_NAMESPACE_LENGTH - len(suffix) - 1
    if len(normalized_prefix) > max_prefix_length:
        normalized_prefix = normalized_prefix[:max_prefix_length].rstrip("-")

    if not normalized_prefix:
        normalized_prefix = DEFAULT_NAMESPACE_PREFIX

    namespace = f"{normalized_prefix}-{suffix}"
    require_valid_namespace(namespace)
    return namespace


def validate_namespace(namespace: str) -> bool:
    """Check if a namespace name is a valid DNS-1123 label.

    Args:
        namespace: The namespace name to validate.

    Returns:
        True if valid, False otherwise.

    Example:
        >>> validate_namespace("medieval-abc123")
        True
        >>> validate_namespace("Medieval_Ns")
        False
    """
    if not namespace:
        return False

    if len(namespace) > MAX_NAMESPACE_LENGTH:
        return False

    return bool(NAMESPACE_PATTERN.match(namespace))


def require_valid_namespace(namespace: str) -> str:
    """Return ``namespace`` unchanged or raise if it is not a DNS-1123 label.

    Args:
        namespace: The namespace name to validate.

    Returns:
        The namespace.

    Raises:
        InvalidNamespaceError: If the name breaks K8s naming rules.
    """
    if not namespace:
        raise InvalidNamespaceError(namespace, "namespace cannot be empty")
    if len(namespace) > MAX_NAMESPACE_LENGTH:
        raise InvalidNamespaceError(
            namespace, f"longer than {MAX_NAMESPACE_LENGTH} characters"
        )
    if not NAMESPACE_PATTERN.match(namespace):
        raise InvalidNamespaceError(
            namespace,
            "must be lowercase alphanumerics or '-', starting and ending "
            "with an alphanumeric character",
        )
    return namespace


__all__: list[str] = [
    "DEFAULT_CHART_NAME",
    "DEFAULT_NAMESPACE_PREFIX",
    "InvalidNamespaceError",
    "MAX_NAMESPACE_LENGTH",
    "chart_fullname",
    "component_name",
    "generate_unique_namespace",
    "require_valid_namespace",
    "validate_namespace",
]
