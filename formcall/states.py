from dataclasses import dataclass, field
from typing import Optional

from formcall.errors import ExtractionError


@dataclass(kw_only=True)
class AttemptState:
    """Bookkeeping for one construct call. Created at loop entry, dropped at exit."""

    attempt: int = field(default=0)
    """1-based number of the current attempt; 0 before the first one."""
    max_attempts: int
    last_response: Optional[str] = field(default=None)
    """Raw LLM text of the previous attempt."""
    last_error: Optional[ExtractionError] = field(default=None)
    """The retryable error of the previous attempt."""

    @property
    def is_first(self) -> bool:
        return self.attempt == 1

    @property
    def is_last(self) -> bool:
        return self.attempt >= self.max_attempts

    def next_attempt(self) -> int:
        self.attempt += 1
        return self.attempt

    def record_failure(self, response: Optional[str], error: ExtractionError) -> None:
        self.last_response = response
        self.last_error = error
