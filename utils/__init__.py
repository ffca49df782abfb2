"""
Shared helpers.
"""

from utils.retry import retry, linear_backoff, RetryPolicy
from utils.cancellation import CancellationToken

__all__ = [
    "retry",
    "linear_backoff",
    "RetryPolicy",
    "CancellationToken",
]
