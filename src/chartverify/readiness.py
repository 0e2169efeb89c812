"""Readiness script builders for init containers.

The FeatBit chart starts dependent components behind init containers that
poll each dependency with ``nc -vz`` until it accepts connections. This
module produces the exact shell text those init containers run, so test
expectations are derived from the same inputs the chart receives instead of
being hand-written literals.

Two topologies are covered:

- service readiness: API, Evaluation Server and DA Server, addressed with a
  namespace known before rendering.
- infrastructure readiness: Redis and MongoDB, addressed with the namespace
  the pod discovers from its service account at start-up.

Example:
    >>> from chartverify.readiness import build_service_readiness_script
    >>> script = build_service_readiness_script("ns", "featbit", 5000, 5100, 8200)
    >>> script.splitlines()[1]
    'until (nc -vz featbit-api.ns.svc.cluster.local 5000); do'
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

CLUSTER_DOMAIN = "svc.cluster.local"

# Resolved by the shell inside the pod, not at render time.
RUNTIME_NAMESPACE_LOOKUP = "$(cat /var/run/secrets/kubernetes.io/serviceaccount/namespace)"

REDIS_PORT = 6379
MONGODB_PORT = 27017

DEFAULT_API_PORT = 5000
DEFAULT_EVAL_PORT = 5100
DEFAULT_DAS_PORT = 8200

# (service suffix, wait label, echo indent) in startup order.
_SERVICE_DEPENDENCIES: tuple[tuple[str, str, int], ...] = (
    ("api", "API", 4),
    ("els", "Evaluation Server", 4),
    ("das", "DA Server", 2),
)


class ReadinessStanza(BaseModel):
    """One polling loop of a readiness script.

    Attributes:
        target_host: Host passed to ``nc``.
        target_port: Port passed to ``nc``.
        wait_message: Label echoed while waiting.
        echo_indent: Spaces before the ``echo`` line.
        quote_host: Wrap the host in double quotes.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    target_host: str
    target_port: int = Field(..., ge=0)
    wait_message: str
    echo_indent: int = Field(default=4, ge=0)
    quote_host: bool = False

    def render(self) -> str:
        """Render the stanza as ``until``/``done`` lines without separators."""
        host = f'"{self.target_host}"' if self.quote_host else self.target_host
        indent = " " * self.echo_indent
        return (
            f"until (nc -vz {host} {self.target_port}); do\n"
            f'{indent}echo "waiting for {self.wait_message}"; sleep 1;\n'
            "done\n"
        )


def render_readiness_script(stanzas: Iterable[ReadinessStanza]) -> str:
    """Join stanzas into the script text embedded in the chart.

    The script opens with a newline and stanzas are separated by two blank
    lines.

    Args:
        stanzas: Stanzas in startup order.

    Returns:
        Script text.
    """
    return "\n" + "\n\n".join(stanza.render() for stanza in stanzas)


def service_readiness_stanzas(
    namespace: str,
    release: str,
    api_port: int,
    eval_port: int,
    das_port: int,
) -> tuple[ReadinessStanza, ...]:
    """Stanzas waiting for the API, Evaluation Server and DA Server.

    Args:
        namespace: Namespace the services live in.
        release: Name prefix of the services.
        api_port: API service port.
        eval_port: Evaluation Server service port.
        das_port: DA Server service port.

    Returns:
        Stanzas in fixed API, Evaluation Server, DA Server order.
    """
    ports = (api_port, eval_port, das_port)
    return tuple(
        ReadinessStanza(
            target_host=f"{release}-{suffix}.{namespace}.{CLUSTER_DOMAIN}",
            target_port=port,
            wait_message=label,
            echo_indent=indent,
        )
        for (suffix, label, indent), port in zip(_SERVICE_DEPENDENCIES, ports, strict=True)
    )


def infra_readiness_stanzas(release: str, full_name: str) -> tuple[ReadinessStanza, ...]:
    """Stanzas waiting for Redis and MongoDB.

    Args:
        release: Helm release name.
        full_name: Chart full name.

    Returns:
        Redis stanza followed by the MongoDB stanza.
    """
    prefix = f"{release}-{full_name}"
    suffix = f".{RUNTIME_NAMESPACE_LOOKUP}.{CLUSTER_DOMAIN}"
    return (
        ReadinessStanza(
            target_host=f"{prefix}-redis-master{suffix}",
            target_port=REDIS_PORT,
            wait_message="Redis",
            quote_host=True,
        ),
        ReadinessStanza(
            target_host=f"{prefix}-mongodb{suffix}",
            target_port=MONGODB_PORT,
            wait_message="Mongodb",
            quote_host=True,
        ),
    )


def build_service_readiness_script(
    namespace: str,
    release: str,
    api_port: int = DEFAULT_API_PORT,
    eval_port: int = DEFAULT_EVAL_PORT,
    das_port: int = DEFAULT_DAS_PORT,
) -> str:
    """Build the script that waits for the FeatBit application services.

    Inputs are not validated; whatever is passed ends up in the text.

    Args:
        namespace: Namespace the services live in.
        release: Name prefix of the services.
        api_port: API service port.
        eval_port: Evaluation Server service port.
        das_port: DA Server service port.

    Returns:
        Script text, byte-identical to the chart's init container command.

    Example:
        >>> script = build_service_readiness_script("ns", "rel", 5000, 5100, 8200)
        >>> "rel-els.ns.svc.cluster.local 5100" in script
        True
    """
    return render_readiness_script(
        service_readiness_stanzas(namespace, release, api_port, eval_port, das_port)
    )


def build_infra_readiness_script(namespace: str, release: str, full_name: str) -> str:
    """Build the script that waits for Redis and MongoDB.

    The namespace is looked up by the pod at runtime, so ``namespace`` never
    appears in the output.

    Args:
        namespace: Namespace the scenario renders into (unused in the text).
        release: Helm release name.
        full_name: Chart full name.

    Returns:
        Script text, byte-identical to the chart's init container command.
    """
    _ = namespace
    return render_readiness_script(infra_readiness_stanzas(release, full_name))


__all__: list[str] = [
    "CLUSTER_DOMAIN",
    "MONGODB_PORT",
    "REDIS_PORT",
    "RUNTIME_NAMESPACE_LOOKUP",
    "ReadinessStanza",
    "build_infra_readiness_script",
    "build_service_readiness_script",
    "infra_readiness_stanzas",
    "render_readiness_script",
    "service_readiness_stanzas",
]
