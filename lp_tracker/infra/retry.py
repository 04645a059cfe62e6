"""
Retry Logic Helper Module

Provides a reusable retry policy for every remote read (chain calls, NFT index,
price feed). Includes structured logging with correlation IDs so one wallet
pass can be traced across worker threads.
"""

import logging
import random
import time
import uuid
import contextvars
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Tuple, TypeVar

import httpx

from ..errors import ErrorCode, LpTrackerError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Context variable for correlation ID (thread-safe)
_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'correlation_id', default=None
)


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for request tracing."""
    return uuid.uuid4().hex[:12]


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from context."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: Optional[str]) -> contextvars.Token:
    """Set the correlation ID in context. Returns token for reset."""
    return _correlation_id.set(correlation_id)


class CorrelationContext:
    """
    Context manager for correlation ID scoping.

    Usage:
        with CorrelationContext("positions") as cid:
            logger.info(f"[{cid}] Starting discovery")
    """

    def __init__(self, prefix: Optional[str] = None):
        self.correlation_id = generate_correlation_id()
        if prefix:
            self.correlation_id = f"{prefix}_{self.correlation_id}"
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        self._token = set_correlation_id(self.correlation_id)
        return self.correlation_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._token is not None:
            _correlation_id.reset(self._token)


def submit_in_context(executor: Executor, fn: Callable[..., T], *args, **kwargs) -> "Future[T]":
    """Submit to an executor carrying the caller's context (correlation ID) into the worker."""
    ctx = contextvars.copy_context()
    return executor.submit(ctx.run, fn, *args, **kwargs)


def _log_with_correlation(
    level: int,
    message: str,
    operation_name: str,
    attempt: Optional[int] = None,
    max_attempts: Optional[int] = None,
    **extra
):
    """
    Log message with correlation ID and structured context.

    Args:
        level: Logging level (logging.INFO, logging.WARNING, etc.)
        message: Log message
        operation_name: Name of the operation being executed
        attempt: Current attempt number (1-indexed)
        max_attempts: Maximum number of attempts
        **extra: Additional context fields
    """
    cid = get_correlation_id()

    parts = []
    if cid:
        parts.append(f"[{cid}]")
    parts.append(f"[{operation_name}]")
    if attempt is not None and max_attempts is not None:
        parts.append(f"[{attempt}/{max_attempts}]")
    parts.append(message)

    extra_context = {
        "correlation_id": cid,
        "operation": operation_name,
        "attempt": attempt,
        "max_attempts": max_attempts,
        **extra
    }

    logger.log(level, " ".join(parts), extra=extra_context)


# Error keywords for classification of foreign exceptions
RECOVERABLE_KEYWORDS = [
    "timeout", "timed out", "connection", "network", "rate limit",
    "too many requests", "503", "502", "504", "429",
    "temporarily unavailable", "service unavailable",
    "econnreset", "etimedout", "socket hang up",
]

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}


def classify_error(error: Exception) -> Tuple[bool, Optional[ErrorCode]]:
    """
    Classify an error to determine if it's transient.

    Tracker errors carry their own classification. httpx transport errors
    are transient; HTTP status errors are transient only for throttling and
    server-side codes. Anything else falls back to keyword matching.

    Returns:
        Tuple of (is_recoverable, error_code)
    """
    if isinstance(error, LpTrackerError):
        return error.recoverable, error.code

    if isinstance(error, httpx.TimeoutException):
        return True, ErrorCode.RPC_TIMEOUT
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status == 429:
            return True, ErrorCode.RPC_RATE_LIMITED
        return status in RETRYABLE_STATUS_CODES, ErrorCode.RPC_INVALID_RESPONSE
    if isinstance(error, httpx.TransportError):
        return True, ErrorCode.RPC_CONNECTION_FAILED

    error_str = str(error).lower()
    is_recoverable = any(keyword in error_str for keyword in RECOVERABLE_KEYWORDS)

    error_code = None
    if is_recoverable:
        if "timeout" in error_str or "timed out" in error_str:
            error_code = ErrorCode.RPC_TIMEOUT
        elif any(kw in error_str for kw in ["connection", "network", "socket"]):
            error_code = ErrorCode.RPC_CONNECTION_FAILED
        elif any(kw in error_str for kw in ["rate limit", "too many requests", "429"]):
            error_code = ErrorCode.RPC_RATE_LIMITED
        else:
            error_code = ErrorCode.RPC_INVALID_RESPONSE

    return is_recoverable, error_code


@dataclass
class RetryPolicy:
    """
    Bounded exponential backoff with jitter.

    The delay before attempt n+1 is ``min(max_delay, base_delay * 2**(n-1))``
    plus a random ``[0, jitter * delay)`` component. Non-transient errors stop
    the loop immediately and propagate unchanged.

    Attributes:
        max_attempts: Total attempts including the first one
        base_delay: Delay before the first retry (seconds)
        max_delay: Upper bound on a single delay (seconds)
        jitter: Random fraction of the delay added on top
        sleep: Sleep function (injectable for tests)
    """
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 4.0
    jitter: float = 0.2
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    @classmethod
    def from_config(cls, rpc_config) -> "RetryPolicy":
        return cls(
            max_attempts=rpc_config.max_retries,
            base_delay=rpc_config.retry_delay,
            max_delay=rpc_config.max_retry_delay,
            jitter=rpc_config.retry_jitter,
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given (1-indexed) failed attempt."""
        delay = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        if self.jitter > 0:
            delay += random.uniform(0, self.jitter * delay)
        return delay

    def run(
        self,
        operation: Callable[[], T],
        operation_name: str,
        on_retry: Optional[Callable[[Exception], Any]] = None,
    ) -> T:
        """
        Execute an operation, retrying transient failures.

        Args:
            operation: Zero-argument callable performing one attempt
            operation_name: Name for logging purposes
            on_retry: Called with the error before each retry (e.g. endpoint rotation)

        Returns:
            The operation's result

        Raises:
            The last error once attempts are exhausted, or the first
            non-transient error.
        """
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

        for attempt in range(1, self.max_attempts + 1):
            try:
                result = operation()
                if attempt > 1:
                    _log_with_correlation(
                        logging.INFO,
                        f"Succeeded after {attempt} attempts",
                        operation_name,
                        attempt,
                        self.max_attempts,
                    )
                return result
            except Exception as e:
                is_recoverable, error_code = classify_error(e)

                if not is_recoverable:
                    _log_with_correlation(
                        logging.DEBUG,
                        f"Non-transient error, not retrying: {e}",
                        operation_name,
                        attempt,
                        self.max_attempts,
                        error_code=error_code.value if error_code else None,
                    )
                    raise

                if attempt >= self.max_attempts:
                    _log_with_correlation(
                        logging.WARNING,
                        f"Giving up: {e}",
                        operation_name,
                        attempt,
                        self.max_attempts,
                        error_code=error_code.value if error_code else None,
                    )
                    raise

                delay = self.delay_for(attempt)
                _log_with_correlation(
                    logging.WARNING,
                    f"Transient error, retrying in {delay:.2f}s: {e}",
                    operation_name,
                    attempt,
                    self.max_attempts,
                    error_code=error_code.value if error_code else None,
                )
                if on_retry is not None:
                    on_retry(e)
                self.sleep(delay)
