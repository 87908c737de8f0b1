"""
Typed failure conditions for the price analytics pipeline.

Every stage either returns a complete result or raises one of the errors
below. Numeric edge cases inside cleaning, indicators and regression are
recovered locally; only ingestion failures, malformed input and insufficient
history for the signal engine reach the caller.
"""

from typing import List, Optional, Tuple


class AnalyticsError(Exception):
    """Base class for all pipeline errors."""


class InputShapeError(AnalyticsError, ValueError):
    """Raised when a series is empty, malformed or missing required fields."""


class DegenerateFitError(AnalyticsError, ArithmeticError):
    """Raised when a quadratic fit has no unique solution.

    The trainer catches this, substitutes the minimum-norm solution and flags
    the model, so it never ends a run on its own.
    """


class InsufficientHistoryError(AnalyticsError, ValueError):
    """Raised when the signal engine lacks two fully defined indicator rows."""


class SourceError(AnalyticsError):
    """A single data provider failed.

    Attributes:
        source: Name of the provider that failed
        reason: Failure description without the provider prefix
    """

    def __init__(self, source: str, message: str):
        self.source = source
        self.reason = message
        super().__init__(f"{source}: {message}")


class MissingCredentialError(SourceError):
    """Raised when a provider needs an API key and none is configured."""

    def __init__(self, source: str):
        super().__init__(source, "no API credential configured")


class MalformedResponseError(SourceError):
    """Raised when a provider payload does not have the expected shape."""


class RateLimitedError(SourceError):
    """Raised when a provider answers with a throttling or error note."""


class IngestionUnavailable(AnalyticsError):
    """Raised when every configured data source failed for a symbol.

    Attributes:
        symbol: Ticker that was requested
        attempts: (source, reason) for each provider that was tried
    """

    def __init__(self, symbol: str, attempts: Optional[List[Tuple[str, str]]] = None):
        self.symbol = symbol
        self.attempts = list(attempts or [])
        detail = "; ".join(f"{source}: {reason}" for source, reason in self.attempts)
        super().__init__(f"No data source available for {symbol} ({detail or 'no sources attempted'})")
