"""Custom exceptions for the portfolio manager application.

These exceptions make it clear what type of error occurred, rather than
catching generic Exception everywhere.
"""


class PortfolioError(Exception):
    """Base exception for all portfolio operations."""
    pass


class QuoteFetchError(PortfolioError):
    """Failed to fetch a quote from the market data source.

    Never escapes the quote service; it is converted to an absent quote.
    """
    pass


class StorageError(PortfolioError):
    """The backing store could not be read or written."""
    pass


class ValidationError(PortfolioError):
    """Data validation failed (invalid input, missing required fields, etc.)."""

    def __init__(self, message, field=None):
        super().__init__(message)
        self.field = field


class NotFoundError(PortfolioError):
    """A container or holding does not exist."""

    def __init__(self, resource, identifier=None):
        message = f"{resource} not found" if identifier is None else f"{resource} not found: {identifier}"
        super().__init__(message)
        self.resource = resource
        self.identifier = identifier


class RefreshInProgressError(PortfolioError):
    """Every requested container already has a price refresh in flight."""
    pass
