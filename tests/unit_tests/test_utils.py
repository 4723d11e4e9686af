# mypy: ignore-errors
from dataclasses import dataclass
from datetime import date
from typing import Dict, List

import pytest
from langchain_core.language_models.fake import FakeListLLM
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage
from langchain_core.runnables import RunnableLambda
from pydantic import BaseModel

from formcall._base import (
    AttemptState,
    ConfigurationError,
    ConversionError,
    EmptyResponseError,
    ExtractionError,
    RecordingRetryMetrics,
    RetryMetrics,
    convert,
    ensure_llm_caller,
    ensure_shape,
    to_tree,
    to_typed,
)
from formcall.metrics import _notify
from formcall.utils import _exclude_none, _is_blank, _message_text, _shape_name


class Event(BaseModel):
    name: str
    day: date


@dataclass
class Coord:
    lat: float
    lon: float


def test_to_typed_model_and_alias():
    assert to_typed({"name": "launch", "day": "2024-05-01"}, Event) == Event(
        name="launch", day=date(2024, 5, 1)
    )
    assert to_typed([1, "2"], List[int]) == [1, 2]
    assert to_typed({"lat": 1.5, "lon": 2}, Coord) == Coord(lat=1.5, lon=2.0)


def test_to_typed_error():
    with pytest.raises(ConversionError, match="type conversion error") as exc_info:
        to_typed({"name": "launch"}, Event)
    assert "day" in str(exc_info.value)


def test_to_tree_and_convert():
    event = Event(name="launch", day=date(2024, 5, 1))
    assert to_tree(event) == {"name": "launch", "day": "2024-05-01"}
    assert to_tree(Coord(lat=1.0, lon=2.0)) == {"lat": 1.0, "lon": 2.0}
    assert convert({"name": "launch", "day": date(2024, 5, 1)}, Event) == event
    assert convert(Coord(lat=1.0, lon=2.0), Dict[str, float]) == {"lat": 1.0, "lon": 2.0}


def test_error_hierarchy():
    assert issubclass(ConversionError, ExtractionError)
    assert issubclass(EmptyResponseError, ExtractionError)
    assert str(EmptyResponseError()) == "empty response"
    assert issubclass(ConfigurationError, ValueError)


def test_ensure_shape():
    assert ensure_shape(Event) is Event
    assert ensure_shape(List[Event]) == List[Event]
    assert ensure_shape(Event | None) == Event | None
    with pytest.raises(ConfigurationError, match="shape is required"):
        ensure_shape(None)
    with pytest.raises(ConfigurationError, match="Invalid shape type"):
        ensure_shape(42)


def test_ensure_shape_openai_function_format():
    function = {
        "name": "Weather",
        "description": "Current weather.",
        "parameters": {
            "type": "object",
            "properties": {"city": {"type": "string"}, "temp": {"type": "number"}},
            "required": ["city", "temp"],
        },
    }
    for spec in (function, {"type": "function", "function": function}):
        model = ensure_shape(spec)
        assert model.__name__ == "Weather"
        assert model.model_validate({"city": "Oslo", "temp": -3}).city == "Oslo"


def test_ensure_llm_caller_callable():
    def llm(prompt: str) -> str:
        return prompt.upper()

    assert ensure_llm_caller(llm) is llm
    with pytest.raises(ConfigurationError, match="llm is required"):
        ensure_llm_caller(None)


def test_ensure_llm_caller_runnables():
    chat = ensure_llm_caller(FakeListChatModel(responses=['{"a": 1}']))
    assert chat("prompt") == '{"a": 1}'
    llm = ensure_llm_caller(FakeListLLM(responses=["[1, 2]"]))
    assert llm("prompt") == "[1, 2]"
    echo = ensure_llm_caller(RunnableLambda(lambda prompt: f"echo: {prompt}"))
    assert echo("hi") == "echo: hi"


def test_message_text():
    assert _message_text("plain") == "plain"
    assert _message_text(None) == ""
    assert _message_text(AIMessage(content="hello")) == "hello"
    blocks = AIMessage(
        content=[
            {"type": "text", "text": '{"a": '},
            "1}",
        ]
    )
    assert _message_text(blocks) == '{"a": 1}'


@pytest.mark.parametrize(
    "shape,expected",
    [
        (Event, "Event"),
        (List[Event], "List[Event]"),
        (list[Event], "list[Event]"),
        (Dict[str, int], "Dict[str, int]"),
        (Event | None, "Event | None"),
    ],
)
def test_shape_name(shape, expected):
    assert _shape_name(shape) == expected


def test_is_blank():
    assert _is_blank(None)
    assert _is_blank(" \n\t")
    assert not _is_blank(" x ")


def test_exclude_none():
    assert _exclude_none({"a": 1, "b": None, "c": {"d": None, "e": 2}}) == {
        "a": 1,
        "c": {"e": 2},
    }


def test_attempt_state():
    state = AttemptState(max_attempts=2)
    assert state.attempt == 0
    assert state.next_attempt() == 1
    assert state.is_first and not state.is_last
    error = ExtractionError("no JSON value found")
    state.record_failure("raw", error)
    assert state.last_response == "raw"
    assert state.last_error is error
    assert state.next_attempt() == 2
    assert state.is_last


def test_recording_metrics_protocol():
    metrics = RecordingRetryMetrics()
    assert isinstance(metrics, RetryMetrics)
    error = ExtractionError("bad")
    metrics.on_attempt_start(Event, 1, 2)
    metrics.on_attempt_retry(Event, 1, 2, error)
    metrics.on_attempt_start(Event, 2, 2)
    metrics.on_final_failure(Event, 2, error)
    assert [e.event for e in metrics.events] == [
        "start",
        "retry",
        "start",
        "final_failure",
    ]
    assert metrics.count("start") == 2
    assert metrics.events[-1].error is error
    assert metrics.events[-1].shape_name == "Event"


def test_notify_swallows_errors(caplog):
    class Broken:
        def on_attempt_start(self, shape, attempt, max_attempts):
            raise ValueError("boom")

    _notify(Broken(), "on_attempt_start", Event, 1, 3)
    _notify(None, "on_attempt_start", Event, 1, 3)
    assert "boom" in caplog.text
