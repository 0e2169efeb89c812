"""Unit tests for decoding rendered output."""

from __future__ import annotations

import pytest

from chartverify.decoder import decode_document, decode_resource, split_documents
from chartverify.errors import DecodeFailure
from chartverify.resources import Deployment, Service

SERVICE_YAML = """\
---
# Source: featbit/templates/da-server-service.yaml
apiVersion: v1
kind: Service
metadata:
  name: featbit-das
  namespace: medieval-a1b2c3d4
spec:
  type: ClusterIP
  ports:
    - port: 8200
      targetPort: 80
      protocol: TCP
      name: http
"""

DEPLOYMENT_YAML = """\
---
# Source: featbit/templates/api-deployment.yaml
apiVersion: apps/v1
kind: Deployment
metadata:
  name: featbit-api
spec:
  selector:
    matchLabels: {app: api}
  template:
    spec:
      containers:
        - name: featbit-api
"""


class TestSplitDocuments:
    """Tests for split_documents."""

    def test_drops_empty_documents(self) -> None:
        """Test separators without content are skipped."""
        documents = split_documents("---\n---\n" + SERVICE_YAML + "---\n")

        assert len(documents) == 1
        assert documents[0]["kind"] == "Service"

    def test_keeps_output_order(self) -> None:
        """Test multi-document output keeps its order."""
        documents = split_documents(SERVICE_YAML + DEPLOYMENT_YAML)

        assert [d["kind"] for d in documents] == ["Service", "Deployment"]

    def test_invalid_yaml(self) -> None:
        """Test unparseable text raises DecodeFailure."""
        with pytest.raises(DecodeFailure, match="invalid YAML"):
            split_documents("kind: [unclosed")

    def test_non_mapping_document(self) -> None:
        """Test scalar or list documents are rejected."""
        with pytest.raises(DecodeFailure, match="expected a mapping"):
            split_documents("- a\n- b\n")


class TestDecodeResource:
    """Tests for decode_resource."""

    def test_service(self) -> None:
        """Test a single Service decodes."""
        resource = decode_resource(SERVICE_YAML, kind="Service")

        assert isinstance(resource, Service)
        assert resource.metadata.name == "featbit-das"
        assert resource.spec.ports[0].target_port == 80

    def test_kind_inferred(self) -> None:
        """Test the kind is taken from the document when not given."""
        assert isinstance(decode_resource(DEPLOYMENT_YAML), Deployment)

    def test_kind_filter_selects_document(self) -> None:
        """Test the requested kind is picked from multi-document output."""
        resource = decode_resource(SERVICE_YAML + DEPLOYMENT_YAML, kind="Deployment")

        assert resource.metadata.name == "featbit-api"

    def test_ambiguous_output(self) -> None:
        """Test several candidates without a kind filter are rejected."""
        with pytest.raises(DecodeFailure, match="2 candidate documents"):
            decode_resource(SERVICE_YAML + DEPLOYMENT_YAML)

    def test_ambiguous_output_with_null_metadata(self) -> None:
        """Test candidates with null metadata are reported as unknown."""
        text = "kind: Service\nmetadata:\n---\nkind: Service\nmetadata: {name: b}\n"

        with pytest.raises(DecodeFailure, match=r"2 candidate documents found \(unknown, b\)"):
            decode_resource(text, kind="Service")

    def test_empty_output(self) -> None:
        """Test output without documents is rejected."""
        with pytest.raises(DecodeFailure, match="no YAML documents"):
            decode_resource("---\n# Source: nothing\n")

    def test_missing_kind(self) -> None:
        """Test a kind filter that matches nothing names what was found."""
        with pytest.raises(DecodeFailure, match=r"no Deployment document found \(found: Service\)") as exc_info:
            decode_resource(SERVICE_YAML, kind="Deployment")

        assert exc_info.value.kind == "Deployment"

    def test_schema_violation(self) -> None:
        """Test a known kind with a bad field type is rejected."""
        broken = SERVICE_YAML.replace("port: 8200", "port: eight-thousand")

        with pytest.raises(DecodeFailure, match="spec.ports.0.port"):
            decode_resource(broken, kind="Service")


class TestDecodeDocument:
    """Tests for decode_document."""

    def test_unsupported_kind(self) -> None:
        """Test kinds without a model are rejected."""
        with pytest.raises(DecodeFailure, match="unsupported kind 'ConfigMap'"):
            decode_document({"kind": "ConfigMap", "metadata": {"name": "cm"}})

    def test_kind_mismatch(self) -> None:
        """Test a document of another kind is rejected."""
        with pytest.raises(DecodeFailure, match="document kind is 'Service'"):
            decode_document({"kind": "Service", "metadata": {}, "spec": {}}, kind="Deployment")
