"""
Schema text and enum constraints for the prompts sent to the LLM.

Shapes are described through ShapeDescriptor values rather than by poking at
arbitrary attributes: pydantic models, dataclasses and TypedDicts are described
from their declared fields, and any shape can supply its own descriptor with a
``__shape_descriptor__()`` classmethod.
"""

from __future__ import annotations

import collections.abc
import dataclasses
import enum
import json
import logging
import types
from typing import (
    Any,
    List,
    Literal,
    Optional,
    Set,
    Tuple,
    Type,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from typing_extensions import Annotated, is_typeddict

from formcall.types import FieldDescriptor, ShapeDescriptor
from formcall.utils import _exclude_none, _is_pydantic_model, _shape_name
from formcall.validation import _adapter_for

logger = logging.getLogger("formcall")

_ENUM_HEADER = "ENUM CONSTRAINTS:"
_ENUM_FOOTER = (
    "Always use the exact values as specified above. Do not use variations,"
    " different cases, or custom values."
)
_CONTAINER_ORIGINS = (
    list,
    set,
    frozenset,
    tuple,
    collections.abc.Sequence,
    collections.abc.Set,
    collections.abc.Iterable,
)


def schema_for(shape: Any) -> str:
    """Render the JSON schema of ``shape`` as indented text.

    Raises:
        Exception: Whatever pydantic raises for shapes it cannot describe.
    """
    if _is_pydantic_model(shape):
        schema = shape.model_json_schema()
    else:
        schema = _adapter_for(shape).json_schema()
    return json.dumps(_exclude_none(schema), indent=2)


def _is_model_shape(type_: Any) -> bool:
    """Whether ``type_`` is a structured shape with its own declared fields."""
    if get_origin(type_) is not None or not isinstance(type_, type):
        return False
    if issubclass(type_, enum.Enum) or type_.__module__ == "builtins":
        return False
    return (
        _is_pydantic_model(type_)
        or dataclasses.is_dataclass(type_)
        or is_typeddict(type_)
        or hasattr(type_, "__shape_descriptor__")
    )


def _describe_type(annotation: Any) -> Tuple[str, Optional[tuple], Optional[Any]]:
    """Resolve a field annotation to (type_name, allowed_values, nested_shape)."""
    origin = get_origin(annotation)
    if origin is Annotated:
        return _describe_type(get_args(annotation)[0])
    if origin is Literal:
        return "Literal", tuple(get_args(annotation)), None
    if origin is Union or origin is types.UnionType:
        members = [a for a in get_args(annotation) if a is not type(None)]
        for member in members:
            resolved = _describe_type(member)
            if resolved[1] is not None or resolved[2] is not None:
                return resolved
        return _shape_name(annotation), None, None
    if origin in _CONTAINER_ORIGINS:
        args = [a for a in get_args(annotation) if a is not Ellipsis]
        if len(args) == 1:
            return _describe_type(args[0])
        return _shape_name(annotation), None, None
    if origin is dict:
        args = get_args(annotation)
        if len(args) == 2:
            return _describe_type(args[1])
        return _shape_name(annotation), None, None
    if origin is None and isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return annotation.__name__, tuple(m.value for m in annotation), None
    if _is_model_shape(annotation):
        return annotation.__name__, None, annotation
    return _shape_name(annotation), None, None


def _declared_fields(shape: Any) -> List[Tuple[str, Any]]:
    if _is_pydantic_model(shape):
        return [
            (field.alias or name, field.annotation)
            for name, field in shape.model_fields.items()
        ]
    if dataclasses.is_dataclass(shape):
        hints = get_type_hints(shape, include_extras=True)
        return [(f.name, hints.get(f.name, f.type)) for f in dataclasses.fields(shape)]
    if is_typeddict(shape):
        return list(get_type_hints(shape, include_extras=True).items())
    return []


def describe_shape(shape: Any) -> ShapeDescriptor:
    """Describe the declared fields of ``shape``.

    Shapes with a ``__shape_descriptor__()`` method describe themselves.
    Anything without declared fields (``list[int]``, ``str``, ...) gets an
    empty descriptor.
    """
    custom = getattr(shape, "__shape_descriptor__", None)
    if custom is not None:
        return custom()
    fields = []
    for name, annotation in _declared_fields(shape):
        type_name, allowed, nested = _describe_type(annotation)
        fields.append(FieldDescriptor(name, type_name, allowed, nested))
    return ShapeDescriptor(_shape_name(shape), tuple(fields))


def collect_enum_fields(shape: Any) -> List[Tuple[str, str, tuple]]:
    """Find every enumerated field of ``shape`` and of its nested shapes.

    Returns:
        A list of (dotted_path, type_name, allowed_values) tuples.
    """
    logger.debug(f"Starting enum constraints collection for {_shape_name(shape)}")
    found: List[Tuple[str, str, tuple]] = []
    _collect_enum_fields(shape, "", set(), found)
    return found


def _collect_enum_fields(
    shape: Any,
    prefix: str,
    visited: Set[int],
    found: List[Tuple[str, str, tuple]],
) -> None:
    if not _is_model_shape(shape):
        # List[Account], Optional[Account], ...: walk the element shape
        nested = _describe_type(shape)[2]
        if nested is None:
            return
        shape = nested
    if id(shape) in visited:
        logger.debug(f"Skipping already visited shape {_shape_name(shape)}")
        return
    visited.add(id(shape))
    for field in describe_shape(shape).fields:
        path = f"{prefix}.{field.name}" if prefix else field.name
        if field.is_enum:
            logger.debug(f"Found enum field: {path} of type {field.type_name}")
            found.append((path, field.type_name, tuple(field.allowed_values)))
        elif field.nested is not None:
            _collect_enum_fields(field.nested, path, visited, found)


def has_enum_fields(shape: Any) -> bool:
    """Whether ``shape`` (or any nested shape) declares enumerated fields."""
    try:
        return bool(collect_enum_fields(shape))
    except Exception as e:
        logger.debug(f"Could not inspect fields of {_shape_name(shape)}: {e}")
        return False


def enum_constraints_for(shape: Any) -> str:
    """Format the allowed values of every enumerated field for an LLM prompt.

    Returns an empty string when the shape has no enumerated fields.
    """
    constraints = collect_enum_fields(shape)
    if not constraints:
        return ""
    lines = [_ENUM_HEADER, ""]
    for path, type_name, values in constraints:
        lines.append(f"  - {path} ({type_name}): {' | '.join(map(str, values))}")
    lines.extend(["", _ENUM_FOOTER])
    return "\n".join(lines)


def get_valid_enum_values(enum_cls: Type[enum.Enum]) -> List[str]:
    """All values an LLM may use for ``enum_cls``, as strings."""
    return [str(member.value) for member in enum_cls]


def is_valid_enum_value(enum_cls: Type[enum.Enum], value: Any) -> bool:
    """Whether ``value`` is one of the values of ``enum_cls``."""
    if value is None:
        return False
    try:
        enum_cls(value)
        return True
    except ValueError:
        return False
