"""Resilience patterns module."""

from histvault.core.patterns.retry import ExponentialBackoffRetry, RetryConfig, RetryState

__all__ = [
    "ExponentialBackoffRetry",
    "RetryConfig",
    "RetryState",
]
