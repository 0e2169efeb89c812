"""Field-path expectations and batch deep comparison.

An expectation is a resource kind plus an ordered list of
``(path, expected value)`` pairs. Comparison never stops at the first
difference: every mismatch of a resource is collected so a single run
reports all of them.

Comparison rules:
    - mappings must have exactly the same keys
    - sequences are compared element-wise, in order, after a length check
    - models are compared field by field
    - scalars must have the same type and compare equal (``"80"`` != ``80``)

Example:
    >>> from chartverify.comparator import ExpectedResource, compare_resource
    >>> expected = ExpectedResource("Service").expect("spec.type", "ClusterIP")
    >>> [str(m) for m in compare_resource(service, expected)]  # doctest: +SKIP
    ["Service spec.type: expected 'ClusterIP', got 'NodePort'"]
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any, Final

from pydantic import BaseModel, ConfigDict

from chartverify.errors import AssertionMismatch


class _Missing:
    """Sentinel type for a path segment that does not exist."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "<missing>"

    def __bool__(self) -> bool:
        return False


MISSING: Final = _Missing()

_SEGMENT_PATTERN = re.compile(r"\[(\d+)\]|\[(['\"])(.*?)\2\]|([^.\[\]]+)")


# =============================================================================
# Expectations
# =============================================================================


class FieldExpectation(BaseModel):
    """One expected value at a field path.

    Attributes:
        path: Dotted path with list indices, e.g. ``spec.template.spec.containers[0].image``.
        value: Expected value (scalar, mapping, sequence or model).
        length: Compare the length of the value at ``path`` instead of the value.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    path: str
    value: Any
    length: bool = False

    @property
    def label(self) -> str:
        """Path as shown in mismatch reports."""
        return f"len({self.path})" if self.length else self.path


class ExpectedResource:
    """Expected field values for one resource kind.

    Expectations keep insertion order; mismatches are reported in that order.

    Example:
        >>> exp = ExpectedResource("Deployment").expect("spec.replicas", 1)
        >>> [e.path for e in exp.fields]
        ['spec.replicas']
    """

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._fields: list[FieldExpectation] = []

    def expect(self, path: str, value: Any) -> ExpectedResource:
        """Add an expectation and return self for chaining."""
        parse_path(path)
        self._fields.append(FieldExpectation(path=path, value=value))
        return self

    def expect_length(self, path: str, length: int) -> ExpectedResource:
        """Expect the sequence or mapping at ``path`` to have ``length`` items."""
        parse_path(path)
        self._fields.append(FieldExpectation(path=path, value=length, length=True))
        return self

    @property
    def fields(self) -> tuple[FieldExpectation, ...]:
        return tuple(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"ExpectedResource(kind={self.kind!r}, fields={len(self._fields)})"


class Mismatch(BaseModel):
    """A single difference between an expected and an actual value.

    Attributes:
        kind: Resource kind.
        path: Full field path of the difference.
        expected: Expected value at ``path``.
        actual: Actual value at ``path`` (``MISSING`` if absent).
        reason: Short classification (value, type, missing, unexpected, length).
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    kind: str
    path: str
    expected: Any
    actual: Any
    reason: str = "value"

    def __str__(self) -> str:
        return f"{self.kind} {self.path}: expected {_display(self.expected)}, got {_display(self.actual)}"


def _display(value: Any) -> str:
    if isinstance(value, BaseModel):
        return repr(value.model_dump(by_alias=True, exclude_none=True))
    return repr(value)


# =============================================================================
# Path resolution
# =============================================================================


def parse_path(path: str) -> list[str | int]:
    """Split a field path into attribute/key names and list indices.

    Args:
        path: Path such as ``spec.containers[0].env`` or
            ``metadata.labels['app.kubernetes.io/name']``.

    Returns:
        Segments; list indices are ints.

    Raises:
        ValueError: If the path is empty or contains unparseable text.
    """
    if not path:
        raise ValueError("Field path cannot be empty")

    segments: list[str | int] = []
    position = 0
    while position < len(path):
        if path[position] == "." and segments:
            position += 1
            if position == len(path):
                raise ValueError(f"Invalid field path {path!r}: trailing '.'")
        match = _SEGMENT_PATTERN.match(path, position)
        if match is None or match.end() == position:
            raise ValueError(f"Invalid field path {path!r} at offset {position}")
        index, _, quoted, name = match.groups()
        if index is not None:
            segments.append(int(index))
        elif quoted is not None:
            segments.append(quoted)
        else:
            segments.append(name)
        position = match.end()
    return segments


def _field_for(model: BaseModel, name: str) -> str | None:
    """Map an attribute name or its alias to the model's attribute name."""
    fields = type(model).model_fields
    if name in fields:
        return name
    for attr, info in fields.items():
        if info.alias == name:
            return attr
    return None


def _child(value: Any, segment: str | int) -> Any:
    if isinstance(segment, int):
        if isinstance(value, Sequence) and not isinstance(value, str) and -len(value) <= segment < len(value):
            return value[segment]
        return MISSING
    if isinstance(value, BaseModel):
        attr = _field_for(value, segment)
        return getattr(value, attr) if attr is not None else MISSING
    if isinstance(value, Mapping):
        return value.get(segment, MISSING)
    return MISSING


def resolve_path(resource: Any, path: str) -> Any:
    """Walk a field path on a decoded resource.

    Attribute segments accept both Python names (``init_containers``) and
    their Kubernetes spelling (``initContainers``).

    Args:
        resource: Decoded resource (or any nested value).
        path: Field path.

    Returns:
        The value at ``path`` or ``MISSING`` if any segment does not exist.
    """
    value = resource
    for segment in parse_path(path):
        value = _child(value, segment)
        if value is MISSING:
            return MISSING
    return value


# =============================================================================
# Comparison
# =============================================================================


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _model_field_name(model: BaseModel, attr: str) -> str:
    alias = type(model).model_fields[attr].alias
    return alias or attr


def _compare_values(kind: str, expected: Any, actual: Any, path: str) -> list[Mismatch]:
    """Recursively compare two values and return every difference."""
    if actual is MISSING:
        return [Mismatch(kind=kind, path=path, expected=expected, actual=MISSING, reason="missing")]

    expected_is_seq = isinstance(expected, (list, tuple))
    actual_is_seq = isinstance(actual, (list, tuple))
    if type(expected) is not type(actual) and not (expected_is_seq and actual_is_seq):
        return [Mismatch(kind=kind, path=path, expected=expected, actual=actual, reason="type")]

    differences: list[Mismatch] = []
    if isinstance(expected, BaseModel):
        for attr in type(expected).model_fields:
            differences.extend(
                _compare_values(
                    kind,
                    getattr(expected, attr),
                    getattr(actual, attr),
                    _join(path, _model_field_name(expected, attr)),
                )
            )
    elif isinstance(expected, dict):
        for key in expected:
            new_path = _join(path, str(key))
            if key not in actual:
                differences.append(
                    Mismatch(kind=kind, path=new_path, expected=expected[key], actual=MISSING, reason="missing")
                )
            else:
                differences.extend(_compare_values(kind, expected[key], actual[key], new_path))
        for key in actual:
            if key not in expected:
                differences.append(
                    Mismatch(
                        kind=kind,
                        path=_join(path, str(key)),
                        expected=MISSING,
                        actual=actual[key],
                        reason="unexpected",
                    )
                )
    elif expected_is_seq:
        if len(expected) != len(actual):
            differences.append(
                Mismatch(kind=kind, path=path, expected=list(expected), actual=list(actual), reason="length")
            )
        else:
            for i, (exp_item, act_item) in enumerate(zip(expected, actual, strict=True)):
                differences.extend(_compare_values(kind, exp_item, act_item, f"{path}[{i}]"))
    elif expected != actual:
        differences.append(Mismatch(kind=kind, path=path, expected=expected, actual=actual))

    return differences


def compare_values(expected: Any, actual: Any, *, kind: str = "", path: str = "") -> list[Mismatch]:
    """Compare two values with the deep comparison rules.

    Args:
        expected: Expected value.
        actual: Actual value.
        kind: Resource kind recorded on mismatches.
        path: Path prefix recorded on mismatches.

    Returns:
        All mismatches, empty when the values match.
    """
    return _compare_values(kind, expected, actual, path)


def compare_resource(resource: Any, expected: ExpectedResource) -> list[Mismatch]:
    """Compare a decoded resource against every expectation.

    Args:
        resource: Decoded resource.
        expected: Expected field values.

    Returns:
        All mismatches in expectation order; empty when the resource matches.
    """
    actual_kind = getattr(resource, "kind", None)
    if actual_kind != expected.kind:
        return [Mismatch(kind=expected.kind, path="kind", expected=expected.kind, actual=actual_kind)]

    mismatches: list[Mismatch] = []
    for field in expected.fields:
        actual = resolve_path(resource, field.path)
        if field.length and isinstance(actual, (Sequence, Mapping)) and not isinstance(actual, str):
            actual = len(actual)
        mismatches.extend(_compare_values(expected.kind, field.value, actual, field.label))
    return mismatches


def assert_resource_matches(
    resource: Any,
    expected: ExpectedResource,
    *,
    scenario: str = "",
    namespace: str = "",
) -> None:
    """Raise if the resource differs from the expectation.

    Raises:
        AssertionMismatch: Carrying every mismatch found.
    """
    mismatches = compare_resource(resource, expected)
    if mismatches:
        raise AssertionMismatch(mismatches, scenario=scenario, namespace=namespace)


__all__: list[str] = [
    "MISSING",
    "ExpectedResource",
    "FieldExpectation",
    "Mismatch",
    "assert_resource_matches",
    "compare_resource",
    "compare_values",
    "parse_path",
    "resolve_path",
]
