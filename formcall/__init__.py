"""Typed object construction from LLM output with error-correcting retries.

This module provides functionality for prompting a language model with the JSON
schema of a target shape, extracting the JSON value from its (often noisy)
answer, validating it into the shape, and feeding parse errors back to the
model until it produces a valid answer or the attempts run out.
"""

from formcall._base import (
    ConfigurationError,
    ConstructionConfig,
    ConstructionError,
    ConversionError,
    ExtractionError,
    RecordingRetryMetrics,
    RetryMetrics,
    build_full_prompt,
    construct,
    construct_with_config,
    extract_json,
    extract_typed,
)

__all__ = [
    "construct",
    "construct_with_config",
    "build_full_prompt",
    "ConstructionConfig",
    "extract_json",
    "extract_typed",
    "RetryMetrics",
    "RecordingRetryMetrics",
    "ConfigurationError",
    "ConstructionError",
    "ConversionError",
    "ExtractionError",
]
