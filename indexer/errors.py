"""Exception types shared across the indexer."""


class IndexerError(Exception):
    """Base class for indexer errors."""
    pass


class ConfigurationError(IndexerError, ValueError):
    """Raised when an operation is missing required configuration.

    Never retried and never defaulted: deriving from the wrong key or
    network would misdirect funds.
    """
    pass


class LogFetchError(IndexerError):
    """Raised when every RPC endpoint failed for a log query."""
    pass


class ExplorerError(IndexerError):
    """Raised when the Bitcoin explorer cannot be reached or parsed."""
    pass


class VerificationError(IndexerError):
    """Raised when an external contribution fails verification."""
    pass
