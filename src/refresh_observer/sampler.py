import logging
import threading
from datetime import timedelta
from typing import Optional, Union

from .context import Context
from .credentials import utcnow
from .errors import ConfigurationError
from .observations import ObservationSink, TTLCheck, safe_emit

logger = logging.getLogger(__name__)


def interval_seconds(interval: Union[float, int, timedelta]) -> float:
    seconds = interval.total_seconds() if isinstance(interval, timedelta) else float(interval)
    if seconds <= 0:
        raise ConfigurationError(f"TTL sampling interval must be positive, got {interval!r}")
    return seconds


class TTLSampler:
    """
    Periodically reports the remaining lifetime of a provider's last-seen
    credentials. Sampling never triggers a retrieval.

    Use as a context manager, or call stop(), to release the worker:

        with TTLSampler(provider) as sampler:
            sampler.start(ctx, 30)
            ...
    """

    def __init__(self, provider, sink: Optional[ObservationSink] = None, clock=None):
        self.provider = provider
        self.sink = sink or provider.sink
        self.clock = clock or utcnow
        self.interval: Optional[float] = None
        self._ctx: Optional[Context] = None
        self._thread: Optional[threading.Thread] = None

    def start(self, ctx: Context, interval: Union[float, int, timedelta]) -> None:
        """Begin sampling every interval until ctx is cancelled. Returns immediately."""
        if self._thread is not None:
            raise RuntimeError("TTL sampler already started")
        self.interval = interval_seconds(interval)
        # own child context so stop() never cancels the caller's
        self._ctx = ctx.child()
        self._thread = threading.Thread(target=self._run, name='ttl-sampler', daemon=True)
        self._thread.start()
        logger.debug(f"TTL sampler started with interval {self.interval}s")

    def _run(self) -> None:
        try:
            while not self._ctx.wait(self.interval):
                self.tick()
        finally:
            self._ctx.cancel()
            logger.debug("TTL sampler stopped")

    def tick(self) -> Optional[TTLCheck]:
        """Take one sample. Returns the emitted observation, or None if nothing was retrieved yet."""
        creds, has_seen_any = self.provider.snapshot()
        if not has_seen_any:
            return None

        if creds.expires_at is None:
            observation = TTLCheck(permanent=True)
        else:
            observation = TTLCheck(remaining=creds.expires_at - self.clock())
        safe_emit(self.sink, observation)
        return observation

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def stop(self, timeout: Optional[float] = None) -> None:
        if self._ctx is not None:
            self._ctx.cancel()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def __enter__(self) -> 'TTLSampler':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
