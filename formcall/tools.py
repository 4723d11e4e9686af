"""Normalisation of target shapes and generation functions."""

from __future__ import annotations

from typing import Any, Dict, get_origin

from dydantic import create_model_from_schema
from langchain_core.runnables import Runnable

from formcall.errors import ConfigurationError
from formcall.types import LLMCaller, LLMLike, ShapeLike
from formcall.utils import _message_text


def ensure_shape(shape: ShapeLike) -> Any:
    """Convert the supported shape formats to something pydantic can validate.

    Args:
        shape: A pydantic model, dataclass, TypedDict, typing alias, or a
            dict holding a JSON schema (optionally in OpenAI function format).

    Returns:
        The shape itself, or a pydantic model class created from the schema.

    Raises:
        ConfigurationError: If the shape is missing or in an invalid format.
    """
    if shape is None:
        raise ConfigurationError("shape is required")
    if isinstance(shape, dict):
        return _model_from_schema(shape)
    if isinstance(shape, type) or get_origin(shape) is not None:
        return shape
    raise ConfigurationError(f"Invalid shape type: {type(shape)}")


def _model_from_schema(schema: Dict[str, Any]) -> Any:
    if all(k in schema for k in ("type", "function")):
        # Already in openai format
        return _model_from_schema(schema["function"])
    try:
        if all(k in schema for k in ("name", "parameters")):
            model = create_model_from_schema(
                {"title": schema["name"], **schema["parameters"]}
            )
            model.__name__ = schema["name"]
            model.__doc__ = schema.get("description") or model.__doc__
        else:
            model = create_model_from_schema(schema)
            if not model.__doc__:
                model.__doc__ = schema.get("description") or model.__name__
    except Exception as e:
        raise ConfigurationError(f"Invalid JSON schema for shape: {e}") from e
    return model


def ensure_llm_caller(llm: LLMLike) -> LLMCaller:
    """Wrap the supported LLM formats into a plain ``str -> str`` caller.

    Args:
        llm: A model name, a LangChain model or Runnable, or a callable.

    Raises:
        ConfigurationError: If no usable generation function was given.
    """
    if llm is None:
        raise ConfigurationError("llm is required")
    if isinstance(llm, str):
        try:
            from langchain.chat_models import init_chat_model
        except ImportError:
            raise ImportError(
                "Constructing from a model name requires langchain>=0.3.0,"
                " as well as the provider-specific package"
                " (like langchain-openai, langchain-anthropic, etc.)"
                " Please install langchain to continue."
            )
        llm = init_chat_model(llm)
    if isinstance(llm, Runnable):
        runnable = llm

        def call_runnable(prompt: str) -> str:
            return _message_text(runnable.invoke(prompt))

        call_runnable.__name__ = getattr(runnable, "name", None) or type(runnable).__name__
        return call_runnable
    if callable(llm):
        return llm
    raise ConfigurationError(f"Invalid llm type: {type(llm)}")
