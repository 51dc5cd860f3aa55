from .context import Context
from .credentials import CredentialValue, describe_ttl, format_duration
from .errors import CancellationError, ConfigurationError, DeadlineExceeded, ObserverError, SourceError
from .observations import (
    FanOutSink,
    LoggingSink,
    MemorySink,
    ObservationSink,
    Refreshed,
    RetrievalFailed,
    TTLCheck,
)
from .provider import CredentialSource, RefreshObservingProvider
from .sampler import TTLSampler

__all__ = [
    'CancellationError',
    'ConfigurationError',
    'Context',
    'CredentialSource',
    'CredentialValue',
    'DeadlineExceeded',
    'FanOutSink',
    'LoggingSink',
    'MemorySink',
    'ObservationSink',
    'ObserverError',
    'RefreshObservingProvider',
    'Refreshed',
    'RetrievalFailed',
    'SourceError',
    'TTLCheck',
    'TTLSampler',
    'describe_ttl',
    'format_duration',
]
