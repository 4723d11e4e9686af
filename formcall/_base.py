"""Facade module for the formcall package.

This module re-exports the key functionality from the other modules in the package.
It serves as the main entry point to the library, providing a simplified interface
for users.
"""

from formcall.construct import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RETRY_DELAY,
    ConstructionConfig,
    Constructor,
    build_full_prompt,
    construct,
    construct_with_config,
)
from formcall.errors import (
    ConfigurationError,
    ConstructionError,
    ConstructionInterrupted,
    ConversionError,
    EmptyResponseError,
    ExtractionError,
    FatalConstructionError,
    FormcallError,
)
from formcall.extract import extract_json, extract_typed
from formcall.metrics import RecordingRetryMetrics, RetryEvent, RetryMetrics
from formcall.schema import (
    collect_enum_fields,
    describe_shape,
    enum_constraints_for,
    get_valid_enum_values,
    has_enum_fields,
    is_valid_enum_value,
    schema_for,
)
from formcall.states import AttemptState
from formcall.tools import ensure_llm_caller, ensure_shape
from formcall.types import FieldDescriptor, ShapeDescriptor
from formcall.validation import convert, to_tree, to_typed

__all__ = [
    "construct",
    "construct_with_config",
    "build_full_prompt",
    "ConstructionConfig",
    "Constructor",
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_RETRY_DELAY",
    "extract_json",
    "extract_typed",
    "to_typed",
    "to_tree",
    "convert",
    "schema_for",
    "describe_shape",
    "collect_enum_fields",
    "has_enum_fields",
    "enum_constraints_for",
    "get_valid_enum_values",
    "is_valid_enum_value",
    "ensure_shape",
    "ensure_llm_caller",
    "AttemptState",
    "FieldDescriptor",
    "ShapeDescriptor",
    "RetryMetrics",
    "RecordingRetryMetrics",
    "RetryEvent",
    "FormcallError",
    "ConfigurationError",
    "ExtractionError",
    "EmptyResponseError",
    "ConversionError",
    "ConstructionError",
    "FatalConstructionError",
    "ConstructionInterrupted",
]
