"""
Retry with exponential backoff for provider HTTP calls.

Adapters run their requests in worker threads, so these decorators are plain
blocking ones: they wrap the HTTP call, not the coroutine awaiting it.
"""

import functools
import time
from typing import Callable, Optional, Tuple, Type

import requests

from .config import settings
from .logger import get_logger


class RetryError(Exception):
    """Every attempt failed; the last error is ``__cause__``."""


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
):
    """
    Retry the wrapped function on ``exceptions``, sleeping
    base_delay, base_delay * exponential_base, ... (capped at max_delay)
    between attempts.

    max_retries=0 means a single attempt. Once attempts run out the last
    error is re-raised wrapped in RetryError; exceptions not listed propagate
    untouched on the first occurrence.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = base_delay
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_retries:
                        raise RetryError(f"Failed after {attempt + 1} attempts: {e}") from e
                    attempt += 1
                    pause = min(delay, max_delay)
                    if on_retry:
                        on_retry(attempt, e, pause)
                    time.sleep(pause)
                    delay *= exponential_base

        return wrapper
    return decorator


NETWORK_ERRORS = (requests.exceptions.Timeout, requests.exceptions.ConnectionError)


def _log_retry(attempt: int, error: Exception, delay: float) -> None:
    get_logger().warning(
        "Retrying provider request",
        attempt=attempt,
        delay_s=delay,
        error=type(error).__name__,
    )


def network_retry(max_retries: Optional[int] = None, base_delay: Optional[float] = None):
    """Backoff decorator for timeouts and connection errors, tuned by settings.

    HTTP error statuses are never retried here; a provider answering 5xx is
    reported as a failure and the resolver moves on to the next source.
    """
    return exponential_backoff(
        max_retries=settings.http_max_retries if max_retries is None else max_retries,
        base_delay=settings.http_backoff_base_s if base_delay is None else base_delay,
        exceptions=NETWORK_ERRORS,
        on_retry=_log_retry,
    )


TRANSIENT_HTTP_STATUS = frozenset({
    408,  # Request Timeout
    429,  # Too Many Requests
    500,  # Internal Server Error
    502,  # Bad Gateway
    503,  # Service Unavailable
    504,  # Gateway Timeout
})


def should_retry_http_status(status_code: int) -> bool:
    """True when a later call to the same provider may succeed."""
    return status_code in TRANSIENT_HTTP_STATUS


def describe_http_status(status_code: int) -> str:
    """Failure reason for a non-2xx provider response."""
    if status_code == 404:
        return "CEP não encontrado (HTTP 404)"
    if should_retry_http_status(status_code):
        return f"Serviço temporariamente indisponível (HTTP {status_code})"
    return f"HTTP {status_code}"
