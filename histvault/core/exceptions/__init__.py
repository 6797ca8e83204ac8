"""Exception handling module."""

from histvault.core.exceptions.base import (
    AuthenticationError,
    ConfigurationError,
    EmptyResult,
    HistVaultError,
    NetworkError,
    ObservationRejected,
    ProviderUnavailable,
    RateLimitError,
    UnsupportedCombination,
    WriteFailure,
)

__all__ = [
    "HistVaultError",
    "ConfigurationError",
    "UnsupportedCombination",
    "ProviderUnavailable",
    "RateLimitError",
    "AuthenticationError",
    "NetworkError",
    "EmptyResult",
    "ObservationRejected",
    "WriteFailure",
]
