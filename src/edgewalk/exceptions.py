"""Custom exceptions for edgewalk."""


class TraversalError(Exception):
    """Base exception for traversal operations."""


class InvalidQueryError(TraversalError, ValueError):
    """Raised when a query, step or query parameter fails validation."""


class InvalidDirectionError(InvalidQueryError):
    """Raised when a direction string is not one of out / in / both."""


class FetcherConfigurationError(TraversalError):
    """Raised when a fetcher cannot be built or initialized from its config."""


class BackendUnavailableError(TraversalError):
    """Raised when a storage backend cannot serve a batch at all."""


class TraversalTimeoutError(TraversalError):
    """Raised when a query does not finish within its timeout."""


class FetcherStateError(TraversalError):
    """Raised when a fetcher is used outside its init/close lifecycle."""


class FetcherClosedError(FetcherStateError):
    """Raised when fetches is called on a closed fetcher."""


class UnknownLabelError(TraversalError, KeyError):
    """Raised when a label name is not in the metadata directory."""


class UnknownColumnError(TraversalError, KeyError):
    """Raised when a (service, column) pair is not in the metadata directory."""
