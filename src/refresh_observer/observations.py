import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from datetime import timedelta
from typing import Deque, List, Optional, Union

from pydantic import BaseModel, ConfigDict, model_validator

from .credentials import format_duration

logger = logging.getLogger(__name__)


class Refreshed(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: str = "refreshed"
    access_key_id: str
    ttl_description: str
    has_session_token: bool


class RetrievalFailed(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: str = "retrieval_failed"
    error_description: str


class TTLCheck(BaseModel):
    """Periodic lifetime sample. remaining is None only for permanent credentials."""

    model_config = ConfigDict(frozen=True)

    kind: str = "ttl_check"
    remaining: Optional[timedelta] = None
    permanent: bool = False

    @model_validator(mode="after")
    def check_remaining_or_permanent(self) -> "TTLCheck":
        if (self.remaining is None) != self.permanent:
            raise ValueError("TTLCheck needs exactly one of remaining or permanent=True")
        return self


Observation = Union[Refreshed, RetrievalFailed, TTLCheck]


class ObservationSink(ABC):
    @abstractmethod
    def emit(self, observation: Observation) -> None:
        """Record one observation."""


class LoggingSink(ObservationSink):
    """Writes each observation as a single [CREDENTIALS] log line."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logging.getLogger('refresh_observer.credentials')

    def emit(self, observation: Observation) -> None:
        if isinstance(observation, Refreshed):
            self.log.info(
                f"[CREDENTIALS] REFRESHED: AccessKey={observation.access_key_id}, "
                f"ExpiresIn={observation.ttl_description}, "
                f"SessionTokenPresent={observation.has_session_token}"
            )
        elif isinstance(observation, RetrievalFailed):
            self.log.error(f"[CREDENTIALS] failed to retrieve: {observation.error_description}")
        elif isinstance(observation, TTLCheck):
            if observation.permanent:
                self.log.info("[CREDENTIALS] TTL check: permanent credentials, no expiration")
            else:
                self.log.info(
                    f"[CREDENTIALS] TTL check: {format_duration(observation.remaining)} "
                    f"remaining until expiration"
                )
        else:
            raise TypeError(f"Unknown observation type: {type(observation).__name__}")


class MemorySink(ObservationSink):
    """Keeps observations in memory, newest last."""

    def __init__(self, maxlen: Optional[int] = None):
        self.maxlen = maxlen
        self._lock = threading.Lock()
        self._items: Deque[Observation] = deque(maxlen=maxlen)

    def emit(self, observation: Observation) -> None:
        with self._lock:
            self._items.append(observation)

    @property
    def observations(self) -> List[Observation]:
        with self._lock:
            return list(self._items)

    def of_kind(self, kind: type) -> List[Observation]:
        return [o for o in self.observations if isinstance(o, kind)]

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


class FanOutSink(ObservationSink):
    """Forwards every observation to each sink; one failing sink does not stop the others."""

    def __init__(self, *sinks: ObservationSink):
        self.sinks = list(sinks)

    def emit(self, observation: Observation) -> None:
        for sink in self.sinks:
            safe_emit(sink, observation)


def safe_emit(sink: ObservationSink, observation: Observation) -> None:
    """Emit without ever raising; sink failures are logged and dropped."""
    try:
        sink.emit(observation)
    except Exception as e:
        logger.warning(f"Observation sink {type(sink).__name__} failed: {str(e)}")
