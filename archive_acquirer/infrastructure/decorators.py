"""
Infrastructure-specific decorators, providing the retry policy owned by the
transport adapters. The application core never retries.
"""

import logging

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
)

from ..application.exceptions import TransportError

logger = logging.getLogger(__name__)

# --- Constants for Retry Logic ---
_RETRY_ATTEMPTS = 3
_RETRY_MIN_WAIT_SECONDS = 1
_RETRY_MAX_WAIT_SECONDS = 10


class TransientTransportError(TransportError):
    """A transport failure worth another attempt (e.g. connection reset)."""
    pass


def _is_transient(exception: BaseException) -> bool:
    """Connection failures and server errors are retried; timeouts are not."""
    if isinstance(exception, httpx.TimeoutException):
        return False
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code >= 500
    return isinstance(
        exception,
        (httpx.TransportError, TransientTransportError),
    )


def _log_before_retry(retry_state):
    """Log the retry attempt with details about the exception and wait time."""
    exception = retry_state.outcome.exception()
    next_attempt_in = retry_state.next_action.sleep
    logger.warning(
        f"Retrying {retry_state.fn.__name__} in {next_attempt_in:.2f}s due to "
        f"{type(exception).__name__} (attempt {retry_state.attempt_number})..."
    )


# A pre-configured decorator for async network operations
retry_on_network_error = retry(
    stop=stop_after_attempt(_RETRY_ATTEMPTS),
    wait=wait_exponential(
        multiplier=1,
        min=_RETRY_MIN_WAIT_SECONDS,
        max=_RETRY_MAX_WAIT_SECONDS,
    ),
    retry=retry_if_exception(_is_transient),
    before_sleep=_log_before_retry,
    reraise=True,
)
