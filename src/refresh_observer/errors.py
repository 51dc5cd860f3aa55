class ObserverError(Exception):
    """Base class for all refresh observer errors."""


class SourceError(ObserverError):
    """The wrapped credential source failed to produce credentials."""


class CancellationError(ObserverError):
    """The retrieval context was cancelled."""


class DeadlineExceeded(CancellationError):
    """The retrieval context passed its deadline."""


class ConfigurationError(ObserverError):
    """Invalid configuration value."""
