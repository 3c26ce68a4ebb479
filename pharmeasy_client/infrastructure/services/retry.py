"""pharmeasy_client.infrastructure.services.retry

Name: Session-validation retry policy (tenacity)

CRC (Component Card)
--------------------
Component: retry helper
Responsibilities:
  - Classify client errors as transient (retry) or permanent (fail fast)
  - Build the tenacity decorator used around `/auth/refresh` and `/auth/me`
    during bootstrap
Collaborators:
  - tenacity
  - crosscutting.config.get_settings (attempts / delays)
  - crosscutting.exceptions (NetworkError, ApiError)
Constraints:
  - 401/403 never retry: a revoked session must fall immediately
  - Pollers do not use this: a failed tick is dropped and the next tick keeps
    the original cadence
"""

from __future__ import annotations

from typing import Any, Callable

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from ...crosscutting.config import get_settings
from ...crosscutting.exceptions import ApiError, NetworkError
from ...crosscutting.logger import logger

# R: 429 no está: llega como RateLimitedError y se informa al usuario.
RETRYABLE_STATUS: frozenset[int] = frozenset({408, 500, 502, 503, 504})

RetryDecorator = Callable[[Callable[..., Any]], Callable[..., Any]]


def is_transient_error(exception: BaseException) -> bool:
    """True para timeouts/red y ApiError con status reintentable."""
    if isinstance(exception, NetworkError):
        return True
    if isinstance(exception, ApiError):
        return exception.status_code in RETRYABLE_STATUS
    return False


def _before_sleep(state: RetryCallState) -> None:
    error = state.outcome.exception() if state.outcome is not None else None
    logger.warning(
        "Session validation failed, retrying",
        extra={
            "attempt": state.attempt_number,
            "wait_seconds": round(state.next_action.sleep if state.next_action else 0.0, 2),
            "error_type": type(error).__name__ if error else None,
            "error": getattr(error, "message", None) or (str(error) if error else None),
        },
    )


def create_retry_decorator(
    max_attempts: int | None = None,
    base_delay: float | None = None,
    max_delay: float | None = None,
) -> RetryDecorator:
    """
    Decorator tenacity (sirve para corutinas) con backoff exponencial + jitter.

    Los argumentos en None toman el valor de Settings. `reraise=True`: el
    caller ve la última excepción tipada, nunca tenacity.RetryError.
    """
    settings = get_settings()
    attempts = settings.retry_max_attempts if max_attempts is None else max_attempts
    initial = settings.retry_base_delay_seconds if base_delay is None else float(base_delay)
    ceiling = settings.retry_max_delay_seconds if max_delay is None else float(max_delay)

    if attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    if initial < 0 or ceiling < 0:
        raise ValueError("retry delays cannot be negative")

    return retry(
        retry=retry_if_exception(is_transient_error),
        stop=stop_after_attempt(attempts),
        wait=wait_exponential_jitter(initial=initial, max=ceiling, jitter=initial),
        before_sleep=_before_sleep,
        reraise=True,
    )
