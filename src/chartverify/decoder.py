"""Decode rendered chart output into typed resources.

``helm template`` prints one or more YAML documents separated by ``---`` and
prefixed with ``# Source:`` comments. The decoder parses them with PyYAML,
drops empty documents and validates the selected document into the tagged
resource union from :mod:`chartverify.resources`.

Example:
    >>> from chartverify.decoder import decode_resource
    >>> text = "kind: Service\\nmetadata: {name: svc}\\nspec: {ports: []}\\n"
    >>> decode_resource(text, kind="Service").metadata.name
    'svc'
"""

from __future__ import annotations

from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from chartverify.errors import DecodeFailure
from chartverify.resources import (
    RESOURCE_ADAPTER,
    SUPPORTED_KINDS,
    Deployment,
    Service,
)

logger = structlog.get_logger(__name__)


def split_documents(text: str) -> list[dict[str, Any]]:
    """Parse every non-empty YAML document in rendered output.

    Args:
        text: Rendered output, possibly multi-document.

    Returns:
        Mapping documents in output order.

    Raises:
        DecodeFailure: If the text is not valid YAML or a document is not a
            mapping.
    """
    try:
        documents = list(yaml.safe_load_all(text))
    except yaml.YAMLError as e:
        raise DecodeFailure(f"invalid YAML: {e}") from e

    result: list[dict[str, Any]] = []
    for index, doc in enumerate(documents):
        if doc is None:
            continue
        if not isinstance(doc, dict):
            raise DecodeFailure(
                f"document {index} is a {type(doc).__name__}, expected a mapping"
            )
        result.append(doc)
    return result


def _select_document(documents: list[dict[str, Any]], kind: str | None) -> dict[str, Any]:
    """Pick the single document to decode."""
    if not documents:
        raise DecodeFailure("no YAML documents found in rendered output", kind=kind)

    candidates = documents
    if kind is not None:
        candidates = [doc for doc in documents if doc.get("kind") == kind]
        if not candidates:
            found = sorted({str(doc.get("kind")) for doc in documents})
            raise DecodeFailure(f"no {kind} document found (found: {', '.join(found)})", kind=kind)

    if len(candidates) > 1:
        names = [(doc.get("metadata") or {}).get("name", "unknown") for doc in candidates]
        raise DecodeFailure(
            f"{len(candidates)} candidate documents found ({', '.join(map(str, names))}); "
            "restrict the render to one template",
            kind=kind,
        )
    return candidates[0]


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        path = ".".join(str(p) for p in item["loc"])
        parts.append(f"{path}: {item['msg']}" if path else item["msg"])
    return "; ".join(parts)


def decode_document(document: dict[str, Any], kind: str | None = None) -> Deployment | Service:
    """Validate one parsed document into its typed shape.

    Args:
        document: Parsed YAML mapping.
        kind: Required kind, if the caller knows it.

    Returns:
        Deployment or Service model.

    Raises:
        DecodeFailure: If the kind is unsupported, differs from ``kind``, or
            the document does not match the kind's schema.
    """
    actual_kind = document.get("kind")
    if kind is not None and actual_kind != kind:
        raise DecodeFailure(f"document kind is {actual_kind!r}", kind=kind)
    if actual_kind not in SUPPORTED_KINDS:
        raise DecodeFailure(
            f"unsupported kind {actual_kind!r} (supported: {', '.join(sorted(SUPPORTED_KINDS))})",
            kind=kind,
        )

    try:
        return RESOURCE_ADAPTER.validate_python(document)
    except ValidationError as e:
        raise DecodeFailure(_format_validation_error(e), kind=str(actual_kind)) from e


def decode_resource(text: str, kind: str | None = None, *, log: Any = None) -> Deployment | Service:
    """Decode rendered output into a typed resource.

    Args:
        text: Output of a render restricted to one template.
        kind: Expected resource kind ("Deployment" or "Service"). When given,
            only documents of that kind are considered.
        log: structlog logger; defaults to this module's logger.

    Returns:
        The decoded resource.

    Raises:
        DecodeFailure: If the output does not hold exactly one decodable
            resource of the requested kind.
    """
    documents = split_documents(text)
    document = _select_document(documents, kind)
    resource = decode_document(document, kind)
    log = log if log is not None else logger
    log.debug(
        "decoder.resource_decoded",
        kind=resource.kind,
        name=resource.metadata.name,
        documents=len(documents),
    )
    return resource


__all__: list[str] = [
    "decode_document",
    "decode_resource",
    "split_documents",
]
