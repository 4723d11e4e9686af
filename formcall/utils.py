"""Utility functions for the formcall package."""

from __future__ import annotations

import logging
import types
from typing import Any, Dict, Optional, get_args, get_origin

from langchain_core.messages import BaseMessage
from pydantic import BaseModel

logger = logging.getLogger("formcall")


def _shape_name(shape: Any) -> str:
    """Get a short display name for a target shape."""
    if shape is type(None):
        return "None"
    origin = get_origin(shape)
    args = get_args(shape)
    if origin is types.UnionType:
        return " | ".join(_shape_name(a) for a in args)
    if origin is not None and args:
        # Generic aliases like List[Person] or list[Person]
        base = getattr(shape, "_name", None) or getattr(origin, "__name__", None)
        return f"{base or origin}[{', '.join(_shape_name(a) for a in args)}]"
    name = getattr(shape, "__name__", None)
    if isinstance(name, str):
        return name
    return str(shape)


def _is_pydantic_model(shape: Any) -> bool:
    try:
        return isinstance(shape, type) and issubclass(shape, BaseModel)
    except TypeError:
        # Generic aliases such as list[int]
        return False


def _is_blank(text: Optional[str]) -> bool:
    return text is None or not str(text).strip()


def _exclude_none(d: Dict[str, Any]) -> Dict[str, Any]:
    """Remove None values from a dictionary recursively."""
    return {
        k: v if not isinstance(v, dict) else _exclude_none(v)
        for k, v in d.items()
        if v is not None
    }


def _message_text(output: Any) -> str:
    """Get the text of a chat model / LLM output."""
    if isinstance(output, str):
        return output
    if isinstance(output, BaseMessage):
        content = output.content
        if isinstance(content, str):
            return content
        # Content blocks, e.g. [{"type": "text", "text": "..."}]
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    if output is None:
        return ""
    return str(output)
