"""Exception hierarchy for the formcall package."""

from __future__ import annotations

from typing import Optional


class FormcallError(Exception):
    """Base class for every error raised by formcall."""


class ConfigurationError(FormcallError, ValueError):
    """Raised when a ConstructionConfig is built with missing or invalid values."""


class ExtractionError(FormcallError, ValueError):
    """No JSON value could be isolated or parsed from the LLM output.

    This is the only retryable class of failure. The message is fed back to the
    LLM in the corrective prompt, so keep it short and specific.
    """


class EmptyResponseError(ExtractionError):
    """The generation function returned nothing (None or blank text)."""

    def __init__(self, message: str = "empty response"):
        super().__init__(message)


class ConversionError(ExtractionError):
    """The extracted JSON did not match the target shape."""


class ConstructionError(FormcallError):
    """Terminal failure of a construct call.

    Attributes:
        shape_name (str): Name of the shape that was being constructed.
        attempts (int): Number of attempts made before giving up.
    """

    def __init__(
        self,
        message: str,
        *,
        shape_name: Optional[str] = None,
        attempts: int = 0,
    ):
        super().__init__(message)
        self.shape_name = shape_name
        self.attempts = attempts


class FatalConstructionError(ConstructionError):
    """Construction stopped on a non-retryable error (e.g. the LLM call raised)."""


class ConstructionInterrupted(FatalConstructionError, KeyboardInterrupt):
    """The retry delay was interrupted.

    Subclasses KeyboardInterrupt so the interruption keeps propagating to
    callers that only handle the signal.
    """
