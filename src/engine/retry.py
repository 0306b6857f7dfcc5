"""
Backend error categorization, backoff, and the retry wrapper.

Transient failures (timeouts, 5xx unavailability) are retried on the
schedule in ``RETRY_BACKOFF_SECONDS``.  Quota failures are never retried:
engines turn them into a partial result straight away so a rate-limited
backend is not hammered further.
"""

from __future__ import annotations

import time
from typing import Callable

import requests

from .config import MAX_ATTEMPTS, RETRY_BACKOFF_SECONDS

# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


class APIError:
    """
    Error category constants and classification logic for backend failures.

    Categories drive retry decisions and the quota fallback in the engines.
    """

    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit_exceeded"
    SERVICE_UNAVAILABLE = "service_unavailable"
    INVALID_RESPONSE = "invalid_response"
    API_ERROR = "api_error"
    OTHER = "other"

    # Transient errors that warrant automatic retry
    RETRIABLE: frozenset[str] = frozenset({TIMEOUT, SERVICE_UNAVAILABLE})

    _QUOTA_STATUSES = (429, 413)
    _QUOTA_KEYWORDS = ("quota", "rate_limit_exceeded", "rate limit", "resource_exhausted")

    @staticmethod
    def categorize(
        error: Exception,
        response_text: str | None = None,
    ) -> tuple[str, str]:
        """
        Classify an exception into an error category and message pair.

        When the exception carries an HTTP response, only its status code and
        ``response_text`` are consulted; the stringified exception (which
        embeds the request URL) is searched for status codes and keywords
        only for errors without a response.

        Args:
            error: Exception raised during the backend call.
            response_text: Raw response body string, if available.

        Returns:
            Tuple of (category: str, message: str).
        """
        message = str(error)
        body = (response_text or "").lower()
        status = getattr(getattr(error, "response", None), "status_code", None)

        if isinstance(error, requests.Timeout):
            return APIError.TIMEOUT, message

        if status is not None:
            if status in APIError._QUOTA_STATUSES or any(
                marker in body for marker in APIError._QUOTA_KEYWORDS
            ):
                return APIError.RATE_LIMIT, message
            if status in (502, 503):
                return APIError.SERVICE_UNAVAILABLE, message
            if status in (400, 401, 403, 404):
                return APIError.API_ERROR, message
            return APIError.OTHER, message

        err = message.lower()
        if "timeout" in err or "timed out" in err:
            return APIError.TIMEOUT, message

        if any(
            marker in err or marker in body
            for marker in ("429", "413") + APIError._QUOTA_KEYWORDS
        ):
            return APIError.RATE_LIMIT, message

        if any(tok in err for tok in ("503", "502", "service unavailable", "unavailable")):
            return APIError.SERVICE_UNAVAILABLE, message

        if any(tok in err for tok in ("json", "parse", "decode", "format")):
            return APIError.INVALID_RESPONSE, message

        if any(tok in err for tok in ("400", "401", "403", "404", "api error")):
            return APIError.API_ERROR, message

        return APIError.OTHER, message


def response_text_of(error: Exception) -> str | None:
    """Return the HTTP response body attached to a ``requests`` error, if any."""
    response = getattr(error, "response", None)
    if response is None:
        return None
    return response.text


# ---------------------------------------------------------------------------
# Backoff helpers
# ---------------------------------------------------------------------------


def exponential_backoff(attempt: int) -> int:
    """
    Return the wait time in seconds after a failed attempt.

    Args:
        attempt: 1-based attempt number that just failed.
    """
    return RETRY_BACKOFF_SECONDS.get(attempt, max(RETRY_BACKOFF_SECONDS.values()))


def should_retry(category: str, attempt: int, max_attempts: int = MAX_ATTEMPTS) -> bool:
    if attempt >= max_attempts:
        return False
    return category in APIError.RETRIABLE


# ---------------------------------------------------------------------------
# Main retry wrapper
# ---------------------------------------------------------------------------


def call_with_retry(
    call: Callable[[], dict],
    max_attempts: int = MAX_ATTEMPTS,
    label: str = "backend",
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    """
    Run ``call`` and retry it on transient ``requests`` failures.

    Args:
        call: Zero-argument callable performing one backend request.
        max_attempts: Total attempts allowed (initial call + retries).
        label: Prefix for progress messages.
        sleep: Sleep function, replaceable in tests.

    Returns:
        Whatever ``call`` returns on the first successful attempt.

    Raises:
        requests.RequestException: The last failure, once retries are
            exhausted or the failure is not retriable.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            return call()
        except requests.RequestException as exc:
            category, message = APIError.categorize(exc, response_text_of(exc))
            print(
                f"  [{label}] Attempt {attempt}/{max_attempts} failed "
                f"[{category}]: {message[:120]}"
            )
            if not should_retry(category, attempt, max_attempts):
                raise
            wait = exponential_backoff(attempt)
            print(f"  [{label}] Retrying in {wait}s...")
            sleep(wait)

    raise RuntimeError("call_with_retry requires max_attempts >= 1")
