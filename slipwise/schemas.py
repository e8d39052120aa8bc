"""Operation schema registry and record validation.

Every operation is described by a pair of record definitions (input, output)
from ``models``. Field descriptors are derived from those definitions once, at
import time, and the same definitions validate caller input, model output,
and drive prompt rendering.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Literal, Mapping, Optional, Tuple, get_args, get_origin

from pydantic import BaseModel, ValidationError

from .models import (
    AnalyzeInput,
    AnalyzeOutput,
    HumanizeInput,
    HumanizeOutput,
    Record,
    ValidationIssue,
)

_PRIMITIVE_KINDS = {str: "string", float: "number", int: "number", bool: "boolean"}


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    kind: str
    required: bool
    min: Optional[float] = None
    max: Optional[float] = None
    min_length: Optional[int] = None
    allowed_values: Optional[Tuple[str, ...]] = None
    item_kind: Optional[str] = None

    @property
    def expected_kind(self) -> str:
        if self.kind == "array":
            return f"array<{self.item_kind}>"
        return self.kind


@dataclass(frozen=True)
class OperationSchema:
    name: str
    input_model: type[Record]
    output_model: type[Record]
    input_fields: Tuple[FieldDescriptor, ...]
    output_fields: Tuple[FieldDescriptor, ...]


@dataclass(frozen=True)
class Validated:
    value: Optional[BaseModel] = None
    issues: Tuple[ValidationIssue, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.issues


def _primitive_kind(annotation: Any) -> str:
    try:
        return _PRIMITIVE_KINDS[annotation]
    except KeyError:
        raise TypeError(f"unsupported field annotation: {annotation!r}") from None


def _describe_field(name: str, annotation: Any, required: bool, metadata: list) -> FieldDescriptor:
    origin = get_origin(annotation)
    allowed_values = None
    item_kind = None
    if origin is Literal:
        kind = "enum"
        allowed_values = tuple(str(value) for value in get_args(annotation))
    elif origin is list:
        kind = "array"
        item_kind = _primitive_kind(get_args(annotation)[0])
    else:
        kind = _primitive_kind(annotation)

    bounds: dict[str, Any] = {}
    for meta in metadata:
        for attr, key in (("ge", "min"), ("le", "max"), ("min_length", "min_length")):
            bound = getattr(meta, attr, None)
            if bound is not None:
                bounds[key] = bound

    return FieldDescriptor(
        name=name,
        kind=kind,
        required=required,
        allowed_values=allowed_values,
        item_kind=item_kind,
        **bounds,
    )


def describe(model: type[Record]) -> Tuple[FieldDescriptor, ...]:
    """Return the wire-level field descriptors of a record definition, in declaration order."""
    return tuple(
        _describe_field(info.alias or name, info.annotation, info.is_required(), info.metadata)
        for name, info in model.model_fields.items()
    )


def _schema(name: str, input_model: type[Record], output_model: type[Record]) -> OperationSchema:
    return OperationSchema(
        name=name,
        input_model=input_model,
        output_model=output_model,
        input_fields=describe(input_model),
        output_fields=describe(output_model),
    )


_REGISTRY: Mapping[str, OperationSchema] = MappingProxyType(
    {
        schema.name: schema
        for schema in (
            _schema("Analyze", AnalyzeInput, AnalyzeOutput),
            _schema("Humanize", HumanizeInput, HumanizeOutput),
        )
    }
)

OPERATION_NAMES = tuple(_REGISTRY)


def get_schema(operation_name: str) -> OperationSchema:
    try:
        return _REGISTRY[operation_name]
    except KeyError:
        raise KeyError(f"unknown operation '{operation_name}'") from None


def _issue_from_error(error: dict[str, Any], fields: Mapping[str, FieldDescriptor]) -> ValidationIssue:
    loc = error["loc"]
    name = str(loc[0])
    label = name + "".join(f"[{part}]" for part in loc[1:])
    descriptor = fields.get(name)
    error_type = error["type"]

    if error_type == "missing" or (error_type == "string_too_short" and error["input"] == ""):
        return ValidationIssue(kind="missing_field", field=label, message=f"{label} is required")

    if descriptor is not None and error_type in {"greater_than_equal", "less_than_equal"}:
        value = error["input"]
        low = "-inf" if descriptor.min is None else f"{descriptor.min:g}"
        high = "inf" if descriptor.max is None else f"{descriptor.max:g}"
        return ValidationIssue(
            kind="range_violation",
            field=label,
            value=value,
            min=descriptor.min,
            max=descriptor.max,
            message=f"{label} must be between {low} and {high}, got {value}",
        )

    if descriptor is not None and error_type == "literal_error":
        value = error["input"]
        allowed = list(descriptor.allowed_values or ())
        return ValidationIssue(
            kind="invalid_enum",
            field=label,
            value=value,
            allowed_values=allowed,
            message=f"{label} must be one of {', '.join(allowed)}, got {value!r}",
        )

    if descriptor is None:
        expected = "unknown"
    elif len(loc) > 1 and descriptor.item_kind:
        expected = descriptor.item_kind
    else:
        expected = descriptor.expected_kind
    actual = type(error["input"]).__name__
    return ValidationIssue(
        kind="type_mismatch",
        field=label,
        expected_kind=expected,
        message=f"{label} must be {expected}, got {actual}",
    )


def validate(value: Any, model: type[Record]) -> Validated:
    """Validate ``value`` against ``model``, collecting every issue instead of stopping at the first."""
    if isinstance(value, model):
        return Validated(value=value)
    if isinstance(value, BaseModel):
        value = value.model_dump(by_alias=True)
    if not isinstance(value, Mapping):
        issue = ValidationIssue(
            kind="type_mismatch",
            field="",
            expected_kind="object",
            message=f"expected an object, got {type(value).__name__}",
        )
        return Validated(issues=(issue,))

    try:
        return Validated(value=model.model_validate(dict(value)))
    except ValidationError as e:
        fields = {descriptor.name: descriptor for descriptor in describe(model)}
        issues = tuple(_issue_from_error(error, fields) for error in e.errors())
        return Validated(issues=issues)
