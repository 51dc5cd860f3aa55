import threading
import time
from typing import Optional

from .errors import CancellationError, DeadlineExceeded


class Context:
    """
    Cancellation and deadline carrier passed through every retrieval.

    A context is done when cancel() was called on it or on any parent,
    or when its deadline (monotonic seconds) has passed.
    """

    def __init__(self, deadline: Optional[float] = None, parent: Optional['Context'] = None):
        self._event = threading.Event()
        self._parent = parent
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline

    @classmethod
    def background(cls) -> 'Context':
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float) -> 'Context':
        return cls(deadline=time.monotonic() + seconds)

    def child(self, timeout: Optional[float] = None) -> 'Context':
        deadline = time.monotonic() + timeout if timeout is not None else None
        return Context(deadline=deadline, parent=self)

    def cancel(self) -> None:
        self._event.set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def cancelled(self) -> bool:
        if self._event.is_set() or self.expired:
            return True
        return self._parent is not None and self._parent.cancelled

    def wait(self, timeout: float) -> bool:
        """
        Block until the context is done or timeout seconds elapse.

        Returns:
            True if the context is done, False on timeout
        """
        end = time.monotonic() + timeout
        if self.deadline is not None:
            end = min(end, self.deadline)
        while True:
            if self.cancelled:
                return True
            remaining = end - time.monotonic()
            if remaining <= 0:
                return self.cancelled
            # parents are polled, so cap the slice
            if self._event.wait(remaining if self._parent is None else min(remaining, 0.05)):
                return True

    def check(self) -> None:
        """Raise CancellationError (or DeadlineExceeded) if the context is done."""
        if self._event.is_set():
            raise CancellationError("context cancelled")
        if self.expired:
            raise DeadlineExceeded("context deadline exceeded")
        if self._parent is not None:
            self._parent.check()
