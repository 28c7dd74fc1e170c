"""
Exception hierarchy for the pricing run.

Provider-level errors (TransportError, NotFoundError) are absorbed by the
data source adapters and turned into a missing quote. NormalizationError and
StoreError abort their phase of the run.
"""

from typing import List, Optional


class PricerError(Exception):
    """Base class for all portfolio pricer errors."""


class TransportError(PricerError):
    """Request failed at the transport level after all retries."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class FetchTimeout(TransportError):
    """Request did not complete before the hard deadline."""


class NotFoundError(PricerError):
    """Provider answered, but has no usable data for the requested code."""


class NormalizationError(PricerError):
    """One or more required exchange rates could not be resolved."""

    def __init__(self, failed: List[str]):
        super().__init__(f"Unresolved exchange rates: {', '.join(failed)}")
        self.failed = failed


class StoreError(PricerError):
    """Record store was unreachable or rejected the request."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
