"""Error taxonomy for the retrieval pipeline."""


class HelpdeskError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(HelpdeskError):
    """A provider or source is missing credentials, endpoint or model. Not retryable."""


class TransientProviderError(HelpdeskError):
    """Timeout, rate limit or 5xx from a remote model provider. Safe to retry."""


class DataError(HelpdeskError):
    """A stored item is malformed (bad payload, embedding dimension mismatch)."""


class EmptyQueryError(HelpdeskError, ValueError):
    """The query was empty or whitespace only."""


class InvalidTransitionError(HelpdeskError, ValueError):
    """A feedback record cannot move to the requested state."""
