import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple, Union

from .context import Context
from .credentials import CredentialValue, describe_ttl, utcnow
from .errors import CancellationError
from .observations import LoggingSink, ObservationSink, Refreshed, RetrievalFailed, safe_emit
from .sampler import TTLSampler

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class CredentialSource(ABC):
    """Produces credentials on demand. Implementations must be thread-safe."""

    @abstractmethod
    def retrieve(self, ctx: Optional[Context] = None) -> CredentialValue:
        """
        Fetch credentials.

        Raises:
            SourceError: The credentials could not be produced
            CancellationError: ctx was cancelled or its deadline passed
        """


class RefreshObservingProvider(CredentialSource):
    """
    Decorates a credential source and emits a Refreshed observation only
    when the returned key material changes.

    The wrapped source is normally an outer cache, so retrieve() is only
    reached when that cache decides to refresh. Every call is forwarded;
    results and failures pass through unchanged.
    """

    def __init__(
        self,
        source: CredentialSource,
        sink: Optional[ObservationSink] = None,
        clock: Optional[Clock] = None,
        refresh_on_expiry_change: bool = False,
    ):
        """
        Args:
            source: Credential source to wrap
            sink: Where observations go (default: log them)
            clock: Returns the current aware datetime
            refresh_on_expiry_change: Also treat a new expiry on unchanged key material as a refresh
        """
        self.source = source
        self.sink = sink or LoggingSink()
        self.clock = clock or utcnow
        self.refresh_on_expiry_change = refresh_on_expiry_change

        self._lock = threading.Lock()
        self._last_seen: Optional[CredentialValue] = None
        self._has_seen_any = False
        self._sampler: Optional[TTLSampler] = None

    def retrieve(self, ctx: Optional[Context] = None) -> CredentialValue:
        ctx = ctx or Context.background()
        try:
            ctx.check()
            creds = self.source.retrieve(ctx)
            # the source may have ignored ctx
            ctx.check()
        except CancellationError as e:
            safe_emit(self.sink, RetrievalFailed(error_description=f"retrieval cancelled: {str(e)}"))
            raise
        except Exception as e:
            safe_emit(self.sink, RetrievalFailed(error_description=f"{type(e).__name__}: {str(e)}"))
            raise

        with self._lock:
            if self._is_refresh(creds):
                safe_emit(self.sink, Refreshed(
                    access_key_id=creds.access_key_id,
                    ttl_description=describe_ttl(creds, self.clock()),
                    has_session_token=creds.has_session_token,
                ))
                self._last_seen = creds
                self._has_seen_any = True

        return creds

    def _is_refresh(self, creds: CredentialValue) -> bool:
        if not self._has_seen_any:
            return True
        if not creds.same_identity(self._last_seen):
            return True
        return self.refresh_on_expiry_change and creds.expires_at != self._last_seen.expires_at

    def snapshot(self) -> Tuple[Optional[CredentialValue], bool]:
        """Return (last_seen, has_seen_any) as one consistent pair, without retrieving."""
        with self._lock:
            return self._last_seen, self._has_seen_any

    @property
    def last_seen(self) -> Optional[CredentialValue]:
        return self.snapshot()[0]

    def start_ttl_logger(self, ctx: Context, interval: Union[float, timedelta]) -> TTLSampler:
        """
        Start a TTLSampler bound to ctx that reports through this provider's sink.

        Only one sampler runs per provider; a new one can start once the
        previous one has stopped.

        Raises:
            RuntimeError: if this provider's sampler is still running
        """
        with self._lock:
            if self._sampler is not None and self._sampler.running:
                raise RuntimeError("TTL logger already running for this provider")
            sampler = TTLSampler(self, sink=self.sink, clock=self.clock)
            sampler.start(ctx, interval)
            self._sampler = sampler
        return sampler
