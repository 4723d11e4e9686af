"""Construction of typed objects from LLM output, with error-correcting retries."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Generic, Optional, Type, Union

import langsmith as ls

from formcall.errors import (
    ConfigurationError,
    ConstructionError,
    ConstructionInterrupted,
    EmptyResponseError,
    ExtractionError,
    FatalConstructionError,
)
from formcall.extract import extract_typed
from formcall.metrics import RetryMetrics, _notify
from formcall.schema import enum_constraints_for, has_enum_fields, schema_for
from formcall.states import AttemptState
from formcall.tools import ensure_llm_caller, ensure_shape
from formcall.types import ErrorCallback, LLMCaller, LLMLike, ShapeLike, T
from formcall.utils import _is_blank, _shape_name

logger = logging.getLogger("formcall")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 1.0
"""Seconds to wait between attempts."""


@dataclass(frozen=True, kw_only=True)
class ConstructionConfig(Generic[T]):
    """Everything a single construct call needs. Validated eagerly.

    Args:
        shape: The target shape (pydantic model, dataclass, TypedDict, typing
            alias or JSON schema dict).
        prompt: The base prompt describing what to produce.
        llm: The generation function. See ``formcall.types.LLMLike``.
        max_attempts: Total number of LLM calls allowed. (default: 3)
        retry_delay: Seconds (or a timedelta) to wait between attempts.
            (default: 1.0)
        on_error: Called with the retryable error after each failed attempt.
            Its own exceptions are logged and ignored.
        metrics: Optional RetryMetrics sink.

    Raises:
        ConfigurationError: If shape, prompt or llm is missing, or a numeric
            setting is out of range.
    """

    shape: ShapeLike
    prompt: str
    llm: LLMLike
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retry_delay: Union[float, timedelta] = DEFAULT_RETRY_DELAY
    on_error: Optional[ErrorCallback] = None
    metrics: Optional[RetryMetrics] = None

    def __post_init__(self) -> None:
        if self.shape is None:
            raise ConfigurationError("shape is required")
        if self.prompt is None:
            raise ConfigurationError("prompt is required")
        if not isinstance(self.prompt, str):
            raise ConfigurationError(
                f"prompt must be a string, got {type(self.prompt).__name__}"
            )
        if self.llm is None:
            raise ConfigurationError("llm is required")
        if (
            isinstance(self.max_attempts, bool)
            or not isinstance(self.max_attempts, int)
            or self.max_attempts < 1
        ):
            raise ConfigurationError(
                f"max_attempts must be a positive integer, got {self.max_attempts!r}"
            )
        delay = self.retry_delay
        if isinstance(delay, timedelta):
            delay = delay.total_seconds()
        if (
            isinstance(delay, bool)
            or not isinstance(delay, (int, float))
            or not math.isfinite(delay)
            or delay < 0
        ):
            raise ConfigurationError(
                f"retry_delay must be a finite, non-negative number of seconds,"
                f" got {delay!r}"
            )
        if self.on_error is not None and not callable(self.on_error):
            raise ConfigurationError("on_error must be callable")
        object.__setattr__(self, "retry_delay", float(delay))
        object.__setattr__(self, "shape", ensure_shape(self.shape))
        object.__setattr__(self, "llm", ensure_llm_caller(self.llm))

    @property
    def shape_name(self) -> str:
        return _shape_name(self.shape)


class Constructor:
    """Runs the prompt → generate → extract → retry loop.

    The schema and extraction collaborators can be swapped out, mainly for
    testing. Instances hold no per-call state and can be shared across threads.
    """

    def __init__(
        self,
        *,
        schema_for: Callable[[Any], str] = schema_for,
        enum_constraints_for: Callable[[Any], str] = enum_constraints_for,
        extract_typed: Callable[[str, Any], Any] = extract_typed,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.schema_for = schema_for
        self.enum_constraints_for = enum_constraints_for
        self.extract_typed = extract_typed
        self.sleep = sleep

    def build_full_prompt(self, shape: Any, prompt: str) -> str:
        """Build the first-attempt prompt: base prompt, output format and schema.

        Failing to render the schema or the enum constraints is not fatal; the
        prompt falls back to the shape name and drops the constraints block.
        """
        name = _shape_name(shape)
        parts = [
            prompt,
            "",
            "=== OUTPUT FORMAT ===",
            "",
            "You MUST respond with valid JSON that matches this exact schema:",
            "",
        ]
        try:
            schema = self.schema_for(shape)
            parts.extend([f"<json_schema name={name}>", schema, "</json_schema>", ""])
        except Exception as e:
            logger.warning(
                f"Failed to generate schema for {name}, using type name only: {e}"
            )
            parts.extend([f"Target type: {name}", ""])

        if has_enum_fields(shape):
            try:
                constraints = self.enum_constraints_for(shape)
                if constraints:
                    parts.extend([constraints, ""])
            except Exception as e:
                logger.warning(f"Failed to get enum constraints for {name}: {e}")

        parts.append(
            f"IMPORTANT: Return ONLY valid JSON that can be parsed into a {name}"
            " object. Do not include explanations, markdown formatting,"
            " or additional text."
        )
        return "\n".join(parts) + "\n"

    def build_retry_prompt(
        self,
        shape: Any,
        prompt: str,
        error: Optional[Exception],
        last_response: Optional[str],
    ) -> str:
        """Build a corrective prompt from the previous attempt's failure."""
        name = _shape_name(shape)
        sections = [
            f"<original_request>\n{prompt}\n</original_request>",
            "<error>\nYour previous response failed with this error:\n"
            f"{error}\n</error>",
        ]
        if not _is_blank(last_response):
            sections.append(
                f"<previous_response>\n{last_response}\n</previous_response>"
            )
        sections.append(
            "<instructions>\n"
            "CRITICAL: Carefully review the desired output format in the"
            " <original_request>. Fix the specific error mentioned above."
            f" Return ONLY valid JSON that can be parsed into a {name} object."
            " Do not include explanations, markdown formatting, or additional text."
            "\n</instructions>"
        )
        return "\n\n".join(sections)

    @ls.traceable(name="generate", tags=["formcall"])
    def _generate(self, llm: LLMCaller, prompt: str) -> Optional[str]:
        return llm(prompt)

    def _wait(self, config: ConstructionConfig, state: AttemptState) -> None:
        sleep = self.sleep or time.sleep
        try:
            sleep(config.retry_delay)
        except KeyboardInterrupt as e:
            raise ConstructionInterrupted(
                f"Construction of {config.shape_name} interrupted during retry delay"
                f" after attempt {state.attempt}/{state.max_attempts}",
                shape_name=config.shape_name,
                attempts=state.attempt,
            ) from e

    def _fatal(
        self, config: ConstructionConfig, state: AttemptState, error: Exception
    ) -> FatalConstructionError:
        name = config.shape_name
        logger.error(f"Non-retryable error during construction of {name}: {error}")
        return FatalConstructionError(
            f"Failed to construct {name} due to non-retryable error"
            f" on attempt {state.attempt}/{state.max_attempts}: {error}",
            shape_name=name,
            attempts=state.attempt,
        )

    def _handle_failure(
        self,
        config: ConstructionConfig,
        state: AttemptState,
        response: Optional[str],
        error: ExtractionError,
    ) -> None:
        """Record a retryable failure, then wait for the next attempt or give up."""
        name = config.shape_name
        state.record_failure(response, error)
        logger.warning(
            f"Construction attempt {state.attempt}/{state.max_attempts}"
            f" failed for {name}: {error}"
        )
        if config.on_error is not None:
            try:
                config.on_error(error)
            except Exception as callback_error:
                logger.warning(f"Error callback raised: {callback_error!r}")

        if not state.is_last:
            _notify(
                config.metrics,
                "on_attempt_retry",
                config.shape,
                state.attempt,
                state.max_attempts,
                error,
            )
            self._wait(config, state)
            return

        logger.info(
            f"Error-correction retries exhausted for {name} after"
            f" {state.max_attempts} attempts - final error: {error}"
        )
        _notify(
            config.metrics, "on_final_failure", config.shape, state.max_attempts, error
        )
        raise ConstructionError(
            f"Failed to construct {name} after {state.max_attempts} attempts"
            f" due to JSON parsing errors: {error}",
            shape_name=name,
            attempts=state.max_attempts,
        ) from error

    def invoke(self, config: ConstructionConfig[T]) -> T:
        """Construct an instance of ``config.shape`` using the configured LLM.

        Only extraction-class errors (no JSON, bad JSON, shape mismatch, empty
        response) are retried. Anything else, including the LLM call itself
        raising, ends the call at once.

        Raises:
            ConstructionError: When all attempts fail, or wrapping a
                non-retryable error (FatalConstructionError).
        """
        return self._construct(config)

    # langsmith reads a ``config`` argument as a RunnableConfig
    @ls.traceable(name="construct", tags=["formcall"])
    def _construct(self, request: ConstructionConfig[T]) -> T:
        shape, name = request.shape, request.shape_name
        full_prompt = self.build_full_prompt(shape, request.prompt)
        state = AttemptState(max_attempts=request.max_attempts)

        while True:
            attempt = state.next_attempt()
            logger.debug(
                f"Attempting to construct {name} (attempt {attempt}/{state.max_attempts})"
            )
            _notify(request.metrics, "on_attempt_start", shape, attempt, state.max_attempts)

            response: Optional[str] = None
            try:
                if state.is_first:
                    prompt = full_prompt
                else:
                    logger.info(
                        f"Retrying {name} construction with error-correction prompt"
                        f" (attempt {attempt}/{state.max_attempts}): {state.last_error}"
                    )
                    prompt = self.build_retry_prompt(
                        shape, request.prompt, state.last_error, state.last_response
                    )
                response = self._generate(request.llm, prompt)
            except Exception as e:
                raise self._fatal(request, state, e) from e

            try:
                if _is_blank(response):
                    raise EmptyResponseError()
                result = self.extract_typed(response, shape)
            except ExtractionError as e:
                self._handle_failure(request, state, response, e)
                continue
            except Exception as e:
                raise self._fatal(request, state, e) from e

            if state.is_first:
                logger.debug(f"Successfully constructed {name} on attempt {attempt}")
            else:
                logger.info(
                    f"Error-correction retry succeeded for {name} on attempt {attempt}"
                )
            _notify(
                request.metrics, "on_attempt_success", shape, attempt, state.max_attempts
            )
            return result


_DEFAULT_CONSTRUCTOR = Constructor()


def construct_with_config(config: ConstructionConfig[T]) -> T:
    """Construct an instance from a prepared ConstructionConfig."""
    return _DEFAULT_CONSTRUCTOR.invoke(config)


def construct(
    shape: Type[T],
    prompt: str,
    llm: LLMLike,
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    retry_delay: Union[float, timedelta] = DEFAULT_RETRY_DELAY,
    on_error: Optional[ErrorCallback] = None,
    metrics: Optional[RetryMetrics] = None,
) -> T:
    """Construct an instance of ``shape`` from LLM output.

    The prompt is extended with the JSON schema of the shape (and the allowed
    values of its enum fields). If the LLM answer cannot be turned into the
    shape, the error and the bad answer are sent back in a corrective prompt,
    up to ``max_attempts`` calls in total.

    Args:
        shape: The target shape.
        prompt: What the LLM should produce.
        llm: A ``str -> str`` callable, a LangChain chat model / Runnable, or a
            model name for ``init_chat_model``.
        max_attempts: Total number of LLM calls allowed. (default: 3)
        retry_delay: Seconds to wait between attempts. (default: 1.0)
        on_error: Called with each retryable error.
        metrics: Optional RetryMetrics sink.

    Returns:
        The validated instance.

    Raises:
        ConfigurationError: If shape, prompt or llm is missing or invalid.
        ConstructionError: If no attempt succeeded or a non-retryable error
            occurred. The underlying error is chained as ``__cause__``.

    Examples:
        >>> from pydantic import BaseModel
        >>>
        >>> class UserInfo(BaseModel):
        ...     name: str
        ...     age: int
        >>>
        >>> def llm(prompt: str) -> str:
        ...     return 'Sure! ```json\\n{"name": "Alice", "age": 30}\\n```'
        >>>
        >>> construct(UserInfo, "Alice is 30 years old", llm)
        UserInfo(name='Alice', age=30)

        With a LangChain chat model:
        >>> from langchain_openai import ChatOpenAI  # doctest: +SKIP
        >>> construct(UserInfo, "Bob is 25", ChatOpenAI(model="gpt-4o-mini"))  # doctest: +SKIP
        UserInfo(name='Bob', age=25)
    """
    return construct_with_config(
        ConstructionConfig(
            shape=shape,
            prompt=prompt,
            llm=llm,
            max_attempts=max_attempts,
            retry_delay=retry_delay,
            on_error=on_error,
            metrics=metrics,
        )
    )


def build_full_prompt(shape: ShapeLike, prompt: str) -> str:
    """Build the prompt a construct call sends on its first attempt.

    Useful for streaming or custom processing of the LLM output.
    """
    return _DEFAULT_CONSTRUCTOR.build_full_prompt(ensure_shape(shape), prompt)
