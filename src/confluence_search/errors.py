"""Exception types shared across the search client."""


class ConfluenceSearchError(Exception):
    """Base class for errors raised by confluence-search."""


class NetworkError(ConfluenceSearchError, RuntimeError):
    """A search, content or AI request failed.

    The fetch cursor is left unchanged so the caller may retry.
    """


class ValidationError(ConfluenceSearchError, ValueError):
    """User input was rejected before any network call."""


class StoreError(ConfluenceSearchError, RuntimeError):
    """The persistent cache store is unavailable."""
