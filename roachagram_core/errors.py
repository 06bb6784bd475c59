"""
Errors - Failure taxonomy for the Roachagram client core

Only InvalidInput and PersistentNetworkFailure are meant to reach callers of
the API client. The other failures are contained where they occur and, where
relevant, reported through telemetry.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-19
"""

from typing import Optional


class RoachagramError(Exception):
    """Base class for all Roachagram core errors."""
    pass


class ConfigurationError(RoachagramError):
    """Raised at startup when required configuration is missing or invalid."""
    pass


class InvalidInput(RoachagramError, ValueError):
    """Raised when a request is rejected before any network call."""
    pass


class TransientNetworkFailure(RoachagramError):
    """
    A retryable failure: transport error or non-success HTTP status.

    Attributes:
        status_code: HTTP status when the server answered, None for transport errors
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PersistentNetworkFailure(RoachagramError):
    """Raised once the retry policy is exhausted."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


class StorageFailure(RoachagramError):
    """Persistent storage (device vault) could not be read or written."""
    pass


class TelemetryDeliveryFailure(RoachagramError):
    """A telemetry event could not be delivered. Never surfaced to callers."""
    pass
