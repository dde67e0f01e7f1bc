"""Call-level resilience: retry with backoff and rate limiting."""

from .rate_limiter import RateLimiter
from .retry import (
    RetryPolicy,
    compute_backoff_delay,
    is_transient_error,
    is_transient_status,
    with_retry,
)

__all__ = [
    "RateLimiter",
    "RetryPolicy",
    "compute_backoff_delay",
    "is_transient_error",
    "is_transient_status",
    "with_retry",
]
