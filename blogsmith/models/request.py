"""Pydantic models for automation requests and completion detection."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from ..config import (
    DEFAULT_DOM_DELAY_MS,
    FIRST_CONTENT_TIMEOUT_MS,
    OBSERVE_DELAY_MS,
    POLL_INTERVAL_MS,
    QUERY_MAX_ATTEMPTS,
    RESPONSE_TIMEOUT_MS,
    RETRY_BACKOFF_SECONDS,
    STABLE_CHECKS_NEEDED,
    STABLE_DURATION_MS,
)


class QueryRequest(BaseModel):
    """Body of a text query."""

    text: str = Field(min_length=1)
    system_prompt: Optional[str] = None
    dom_delay_ms: int = Field(default=DEFAULT_DOM_DELAY_MS, ge=0, le=60000)


class ImageRequest(BaseModel):
    """Body of an image-generation request."""

    prompt: str = Field(min_length=1)
    topic: str = ""


class RetryPolicy(BaseModel):
    """Whole-operation retry applied at the client boundary."""

    max_attempts: int = Field(default=QUERY_MAX_ATTEMPTS, ge=1)
    backoff_seconds: float = Field(default=RETRY_BACKOFF_SECONDS, ge=0)
    multiplier: float = Field(default=2.0, ge=1)

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (1-based)."""
        return self.backoff_seconds * (self.multiplier ** (attempt - 1))


class CompletionSettings(BaseModel):
    """Thresholds of the completion heuristic, all in milliseconds except the count."""

    poll_interval_ms: int = POLL_INTERVAL_MS
    stable_duration_ms: int = STABLE_DURATION_MS
    stable_checks_needed: int = STABLE_CHECKS_NEEDED
    first_content_timeout_ms: int = FIRST_CONTENT_TIMEOUT_MS
    response_timeout_ms: int = RESPONSE_TIMEOUT_MS
    observe_delay_ms: int = OBSERVE_DELAY_MS


class CompletionSignals(BaseModel):
    """One sample of the DOM completion indicators."""

    copy_visible: bool = False
    stop_visible: bool = False
    typing_visible: bool = False
    ms_since_mutation: float = 0.0
    mutation_count: int = 0

    def verdict(self, stable_duration_ms: float) -> bool:
        """Copy button present, or nothing generating and the DOM quiet long enough."""
        if self.copy_visible:
            return True
        generating = self.stop_visible or self.typing_visible
        return not generating and self.ms_since_mutation >= stable_duration_ms


class CompletionResult(BaseModel):
    """Outcome of waiting for a response to finish."""

    completed: bool
    reason: str = ""  # "verdict" or "timeout"
    elapsed_ms: float = 0.0
    samples: int = 0
    signals: Optional[CompletionSignals] = None
