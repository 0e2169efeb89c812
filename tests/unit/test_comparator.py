"""Unit tests for expectations and deep comparison."""

from __future__ import annotations

import pytest

from chartverify.comparator import (
    MISSING,
    ExpectedResource,
    Mismatch,
    assert_resource_matches,
    compare_resource,
    compare_values,
    parse_path,
    resolve_path,
)
from chartverify.errors import AssertionMismatch
from chartverify.resources import RESOURCE_ADAPTER, ContainerPort, Deployment, EnvVar, Quantity


@pytest.fixture
def deployment() -> Deployment:
    """A small decoded deployment."""
    return RESOURCE_ADAPTER.validate_python(
        {
            "apiVersion": "apps/v1",
            "kind": "Deployment",
            "metadata": {
                "name": "featbit-api",
                "labels": {"app.kubernetes.io/name": "featbit", "app.kubernetes.io/component": "api"},
            },
            "spec": {
                "replicas": 1,
                "selector": {"matchLabels": {"app": "api"}},
                "template": {
                    "spec": {
                        "securityContext": {},
                        "containers": [
                            {
                                "name": "featbit-api",
                                "resources": {"requests": {"cpu": "250m"}},
                                "ports": [{"name": "http", "containerPort": 5000}],
                                "env": [
                                    {"name": "A", "value": "1"},
                                    {"name": "B", "value": "2"},
                                ],
                            }
                        ],
                    }
                },
            },
        }
    )


class TestParsePath:
    """Tests for parse_path."""

    def test_dotted_with_index(self) -> None:
        """Test attribute names and list indices."""
        assert parse_path("spec.containers[0].env[1].name") == ["spec", "containers", 0, "env", 1, "name"]

    def test_quoted_key(self) -> None:
        """Test quoted keys may contain dots and slashes."""
        assert parse_path("metadata.labels['app.kubernetes.io/name']") == [
            "metadata",
            "labels",
            "app.kubernetes.io/name",
        ]

    @pytest.mark.parametrize("path", ["", ".spec", "spec.", "spec..name", "spec[x]"])
    def test_invalid(self, path: str) -> None:
        """Test malformed paths raise ValueError."""
        with pytest.raises(ValueError):
            parse_path(path)


class TestResolvePath:
    """Tests for resolve_path."""

    def test_kubernetes_and_python_names(self, deployment: Deployment) -> None:
        """Test camelCase and snake_case segments both resolve."""
        assert resolve_path(deployment, "spec.template.spec.containers[0].name") == "featbit-api"
        assert resolve_path(deployment, "spec.selector.matchLabels") == {"app": "api"}
        assert resolve_path(deployment, "spec.selector.match_labels") == {"app": "api"}

    def test_mapping_key(self, deployment: Deployment) -> None:
        """Test quoted mapping keys resolve."""
        assert resolve_path(deployment, "metadata.labels['app.kubernetes.io/name']") == "featbit"

    def test_missing(self, deployment: Deployment) -> None:
        """Test absent segments yield MISSING."""
        assert resolve_path(deployment, "spec.template.spec.containers[3].name") is MISSING
        assert resolve_path(deployment, "spec.nope") is MISSING
        assert resolve_path(deployment, "metadata.name[0]") is MISSING


class TestCompareValues:
    """Tests for the deep comparison rules."""

    def test_equal(self) -> None:
        """Test equal nested values produce no mismatches."""
        assert compare_values({"a": [1, {"b": "c"}]}, {"a": [1, {"b": "c"}]}) == []

    def test_string_is_not_int(self) -> None:
        """Test "80" and 80 are different."""
        mismatches = compare_values("80", 80, kind="Service", path="spec.ports[0].targetPort")

        assert len(mismatches) == 1
        assert mismatches[0].reason == "type"
        assert str(mismatches[0]) == "Service spec.ports[0].targetPort: expected '80', got 80"

    def test_missing_and_unexpected_keys(self) -> None:
        """Test mappings must have exactly the same keys."""
        mismatches = compare_values({"a": "1", "b": "2"}, {"a": "1", "c": "3"}, path="labels")

        assert [(m.path, m.reason) for m in mismatches] == [("labels.b", "missing"), ("labels.c", "unexpected")]
        assert mismatches[0].actual is MISSING
        assert "got <missing>" in str(mismatches[0])

    def test_list_order_matters(self) -> None:
        """Test swapped env entries are reported."""
        expected = [EnvVar(name="A", value="1"), EnvVar(name="B", value="2")]
        actual = [EnvVar(name="B", value="2"), EnvVar(name="A", value="1")]

        mismatches = compare_values(expected, actual, kind="Deployment", path="env")

        assert [m.path for m in mismatches] == ["env[0].name", "env[0].value", "env[1].name", "env[1].value"]

    def test_list_length(self) -> None:
        """Test lists of different length are one mismatch."""
        mismatches = compare_values([1, 2], [1], path="items")

        assert len(mismatches) == 1
        assert mismatches[0].reason == "length"

    def test_model_paths_use_kubernetes_names(self) -> None:
        """Test nested model mismatches are reported with camelCase paths."""
        mismatches = compare_values(
            ContainerPort(name="http", container_port=80),
            ContainerPort(name="http", container_port=8080),
            path="ports[0]",
        )

        assert [m.path for m in mismatches] == ["ports[0].containerPort"]

    def test_mismatch_str_shows_models_as_manifest(self) -> None:
        """Test models are displayed with their manifest keys."""
        mismatch = Mismatch(
            kind="Deployment",
            path="env[0]",
            expected=EnvVar(name="A", value="1"),
            actual=MISSING,
            reason="missing",
        )

        assert str(mismatch) == "Deployment env[0]: expected {'name': 'A', 'value': '1'}, got <missing>"


class TestCompareResource:
    """Tests for compare_resource and assert_resource_matches."""

    def test_match(self, deployment: Deployment) -> None:
        """Test a matching expectation yields no mismatches."""
        expected = (
            ExpectedResource("Deployment")
            .expect("metadata.name", "featbit-api")
            .expect("spec.replicas", 1)
            .expect("spec.template.spec.containers[0].resources.requests.cpu", Quantity.from_milli(250))
            .expect_length("spec.template.spec.containers", 1)
        )

        assert compare_resource(deployment, expected) == []

    def test_collects_every_mismatch(self, deployment: Deployment) -> None:
        """Test comparison continues after the first mismatch."""
        expected = (
            ExpectedResource("Deployment")
            .expect("metadata.name", "featbit-ui")
            .expect("spec.replicas", 2)
            .expect("spec.template.spec.serviceAccountName", "featbit")
        )

        mismatches = compare_resource(deployment, expected)

        assert [m.path for m in mismatches] == [
            "metadata.name",
            "spec.replicas",
            "spec.template.spec.serviceAccountName",
        ]
        assert mismatches[2].actual is None

    def test_absent_path(self, deployment: Deployment) -> None:
        """Test a path that does not exist is a missing mismatch."""
        expected = ExpectedResource("Deployment").expect("spec.template.spec.initContainers[0].name", "wait")

        mismatches = compare_resource(deployment, expected)

        assert mismatches[0].reason == "missing"

    def test_length_expectation(self, deployment: Deployment) -> None:
        """Test length expectations report the length path."""
        expected = ExpectedResource("Deployment").expect_length("spec.template.spec.containers", 2)

        mismatches = compare_resource(deployment, expected)

        assert [(m.path, m.expected, m.actual) for m in mismatches] == [
            ("len(spec.template.spec.containers)", 2, 1)
        ]

    def test_kind_mismatch(self, deployment: Deployment) -> None:
        """Test a wrong kind is reported once, without field checks."""
        expected = ExpectedResource("Service").expect("spec.type", "ClusterIP")

        mismatches = compare_resource(deployment, expected)

        assert [(m.path, m.expected, m.actual) for m in mismatches] == [("kind", "Service", "Deployment")]

    def test_invalid_path_rejected_early(self) -> None:
        """Test malformed paths fail when the expectation is built."""
        with pytest.raises(ValueError):
            ExpectedResource("Deployment").expect("spec..replicas", 1)

    def test_assert_raises_with_all_mismatches(self, deployment: Deployment) -> None:
        """Test assert_resource_matches raises AssertionMismatch."""
        expected = ExpectedResource("Deployment").expect("metadata.name", "x").expect("spec.replicas", 3)

        with pytest.raises(AssertionMismatch) as exc_info:
            assert_resource_matches(deployment, expected, scenario="api", namespace="medieval-1")

        error = exc_info.value
        assert len(error.mismatches) == 2
        assert "in scenario 'api' (namespace=medieval-1)" in str(error)
        assert isinstance(error, AssertionError)

    def test_expected_resource_repr(self) -> None:
        """Test the expectation summarizes itself."""
        expected = ExpectedResource("Service").expect("spec.type", "ClusterIP")

        assert len(expected) == 1
        assert repr(expected) == "ExpectedResource(kind='Service', fields=1)"
