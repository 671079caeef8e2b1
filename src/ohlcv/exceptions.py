"""Custom exceptions for the OHLCV candle engine.

All store, history and backfill exceptions live here to avoid circular
imports between modules. Insufficient indicator input is never an error:
it is represented as None / zero-quality values on the candle.
"""


class EngineError(Exception):
    """Base exception for all engine errors."""


class ValidationError(EngineError):
    """Raised for a malformed backfill window or an unknown timeframe."""


class NotFoundError(EngineError):
    """Raised when an asset is unknown or inactive."""


class UpstreamError(EngineError):
    """Raised when the history source fails after the retry budget."""


class RateLimitedError(UpstreamError):
    """Raised by a history transport on an explicit rate-limit response.

    Handled by RequestThrottle with a fixed cool-down; it never reaches
    callers of HistoryFetcher.
    """


class ConcurrencyError(EngineError):
    """Raised when a backfill is requested while another one is running."""


class PersistenceError(EngineError):
    """Raised when a store write fails."""
