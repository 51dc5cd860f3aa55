"""Shared fixtures for the refresh observer tests."""
import threading
from datetime import datetime, timedelta, timezone

import pytest

from refresh_observer.credentials import CredentialValue
from refresh_observer.errors import SourceError
from refresh_observer.observations import MemorySink
from refresh_observer.provider import CredentialSource, RefreshObservingProvider

NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class ScriptedSource(CredentialSource):
    """Returns (or raises) the queued results in order, repeating the last one."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0
        self._lock = threading.Lock()

    def retrieve(self, ctx=None):
        with self._lock:
            index = min(self.calls, len(self.results) - 1)
            self.calls += 1
            result = self.results[index]
        if isinstance(result, Exception):
            raise result
        return result


def make_creds(access_key_id="AKIA1", secret="s1", token="", expires_at=None):
    return CredentialValue(
        access_key_id=access_key_id,
        secret_access_key=secret,
        session_token=token,
        expires_at=expires_at,
    )


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def make_provider(sink, clock):
    def factory(*results, **kwargs):
        source = ScriptedSource(*results)
        return RefreshObservingProvider(source, sink=sink, clock=clock, **kwargs), source
    return factory


@pytest.fixture
def source_error():
    return SourceError("AccessDenied: not authorized to assume role")
