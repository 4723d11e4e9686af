"""Conversion of extracted JSON trees into typed values."""

from __future__ import annotations

import functools
import logging
from typing import Any, Type

from pydantic import BaseModel, TypeAdapter, ValidationError

from formcall.errors import ConversionError
from formcall.types import JSONValue, T
from formcall.utils import _is_pydantic_model, _shape_name

logger = logging.getLogger("formcall")


@functools.lru_cache(maxsize=128)
def _get_adapter(shape: Any) -> TypeAdapter:
    return TypeAdapter(shape)


def _adapter_for(shape: Any) -> TypeAdapter:
    try:
        hash(shape)
    except TypeError:
        # Unhashable shape (e.g. Annotated with unhashable metadata)
        return TypeAdapter(shape)
    return _get_adapter(shape)


def to_typed(tree: JSONValue, shape: Type[T]) -> T:
    """Convert a generic JSON tree into an instance of ``shape``.

    Raises:
        ConversionError: If the tree does not match the shape.
    """
    try:
        if _is_pydantic_model(shape):
            return shape.model_validate(tree)
        return _adapter_for(shape).validate_python(tree)
    except ValidationError as e:
        logger.debug(f"Could not convert JSON to {_shape_name(shape)}: {e}")
        raise ConversionError(f"type conversion error: {e}") from e


def to_tree(value: Any) -> JSONValue:
    """Dump a typed value (model, dataclass, enum, ...) to a plain JSON tree."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return _adapter_for(type(value)).dump_python(value, mode="json")


def convert(value: Any, shape: Type[T]) -> T:
    """Convert any value into ``shape`` by going through its JSON tree."""
    return to_typed(to_tree(value), shape)
