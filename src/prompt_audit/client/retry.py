"""Classified retry with capped exponential backoff."""

import asyncio
from collections.abc import Awaitable, Callable
import dataclasses
import logging

import httpx

from prompt_audit import constants
from prompt_audit.exceptions import (
    FatalProviderError,
    ProviderError,
    TransientProviderError,
)

log = logging.getLogger(__name__)

_TRANSIENT_MARKERS = (
    "timeout",
    "timed out",
    "network",
    "connection",
    "econnrefused",
    "econnreset",
    "rate limit",
    "429",
    "500",
    "502",
    "503",
    "504",
    "temporarily",
    "unavailable",
)


def is_transient_status(status_code: int) -> bool:
    """Return True for HTTP statuses that are worth retrying."""
    return status_code in (408, 429) or 500 <= status_code < 600


def is_transient_error(err: BaseException) -> bool:
    """Decide whether ``err`` is retryable.

    Typed provider errors decide for themselves. Transport failures and
    timeouts are transient. Untyped errors fall back to message markers.
    """
    if isinstance(err, TransientProviderError):
        return True
    if isinstance(err, FatalProviderError):
        return False
    if isinstance(err, ProviderError) and err.status_code is not None:
        return is_transient_status(err.status_code)
    if isinstance(err, httpx.HTTPStatusError):
        return is_transient_status(err.response.status_code)
    if isinstance(err, httpx.TransportError | TimeoutError | ConnectionError):
        return True
    text = str(err).lower()
    return any(marker in text for marker in _TRANSIENT_MARKERS)


@dataclasses.dataclass(frozen=True, slots=True)
class RetryPolicy:
    """How many times to retry, how long to wait, and what is retryable."""

    max_retries: int = constants.MAX_RETRIES
    base_delay: float = constants.RETRY_BASE_DELAY
    max_delay: float = constants.RETRY_MAX_DELAY
    classify: Callable[[BaseException], bool] = is_transient_error

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries: must be >= 0, got {self.max_retries}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("base_delay and max_delay must be >= 0")


def compute_backoff_delay(attempt: int, policy: RetryPolicy) -> float:
    """Delay in seconds before retry number ``attempt + 1`` (0-based attempt)."""
    return min(policy.base_delay * (2**attempt), policy.max_delay)


async def with_retry[T](
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
) -> T:
    """Run ``operation`` with up to ``policy.max_retries`` retries.

    Only errors the policy classifies as retryable are retried. The final
    error is re-raised unchanged, whether it was fatal or retries ran out.
    """
    policy = policy or RetryPolicy()
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            if attempt >= policy.max_retries or not policy.classify(e):
                raise
            delay = compute_backoff_delay(attempt, policy)
            log.debug(
                "Transient failure on attempt %d/%d (%s); retrying in %.2fs",
                attempt + 1,
                policy.max_retries + 1,
                e,
                delay,
            )
            await asyncio.sleep(delay)
            attempt += 1
