"""Type definitions for the formcall package."""

from __future__ import annotations

from typing import (
    Any,
    Callable,
    Dict,
    List,
    NamedTuple,
    Optional,
    Tuple,
    Type,
    TypeVar,
    Union,
)

from langchain_core.language_models import BaseLanguageModel
from langchain_core.runnables import Runnable

T = TypeVar("T")

JSONValue = Union[Dict[str, Any], List[Any], str, int, float, bool, None]
"""A generic JSON tree as returned by ``json.loads``."""

LLMCaller = Callable[[str], str]
"""The generation function: takes the full prompt, returns raw LLM text."""

LLMLike = Union[str, BaseLanguageModel, Runnable, LLMCaller]
"""Anything that can be normalised into an LLMCaller.

Can be one of:
- str: A model name resolved with ``init_chat_model`` (requires langchain).
- BaseLanguageModel / Runnable: Invoked with the prompt; message text is used.
- Callable[[str], str]: Used as is.
"""

ErrorCallback = Callable[[Exception], Any]
"""Called with the retryable error after each failed attempt."""

ShapeLike = Union[Type[Any], Dict[str, Any], Any]
"""A target shape: a pydantic model, dataclass, TypedDict, typing alias such as
``list[int]``, or a JSON schema dict."""


class FieldDescriptor(NamedTuple):
    """Describes one declared field of a target shape.

    Attributes:
        name (str): The field name as it appears in the JSON.
        type_name (str): Human-readable name of the field type.
        allowed_values (tuple | None): The exact values accepted, when the field
            is enumerated (Enum or Literal). None otherwise.
        nested (type | None): A nested shape whose fields should be described
            too, when the field holds a structured value.
    """

    name: str
    type_name: str
    allowed_values: Optional[Tuple[Any, ...]] = None
    nested: Optional[Any] = None

    @property
    def is_enum(self) -> bool:
        return self.allowed_values is not None


class ShapeDescriptor(NamedTuple):
    """Describes the declared fields of a target shape.

    A shape can provide its own by defining ``__shape_descriptor__()``.
    """

    name: str
    fields: Tuple[FieldDescriptor, ...] = ()
