"""Exception types shared across extraction, aggregation and forecasting."""
from __future__ import annotations


class SellerPulseError(Exception):
    """Base class for errors raised by sellerpulse."""


class InsufficientDataError(SellerPulseError, ValueError):
    """Raised when a computation needs more observations than were supplied.

    Distinct from an empty-but-successful result: extractors return empty
    datasets for unrecognised input, while the forecaster and aggregator
    raise this when they cannot produce a meaningful answer.
    """


class UnknownProductError(SellerPulseError, KeyError):
    """Raised when a caller explicitly asks for a product missing from the catalog."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable
        return str(self.args[0]) if self.args else "Unknown product"
