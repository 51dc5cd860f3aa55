import logging
import time
from datetime import timedelta

import pytest

from refresh_observer.context import Context
from refresh_observer.errors import ConfigurationError
from refresh_observer.observations import LoggingSink, ObservationSink, TTLCheck
from refresh_observer.provider import RefreshObservingProvider
from refresh_observer.sampler import TTLSampler, interval_seconds
from tests.conftest import NOW, ScriptedSource, make_creds


def wait_for(predicate, timeout=2.0):
    end = time.monotonic() + timeout
    while time.monotonic() < end:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_tick_before_any_retrieval_is_silent(make_provider, sink, clock):
    provider, source = make_provider(make_creds())
    sampler = TTLSampler(provider, sink=sink, clock=clock)

    assert sampler.tick() is None
    assert sink.observations == []
    assert source.calls == 0


def test_tick_reports_remaining(make_provider, sink, clock):
    provider, _ = make_provider(make_creds(expires_at=NOW + timedelta(minutes=10)))
    provider.retrieve()
    sink.clear()

    clock.advance(minutes=4)
    observation = TTLSampler(provider, sink=sink, clock=clock).tick()

    assert observation == TTLCheck(remaining=timedelta(minutes=6))
    assert sink.observations == [observation]


def test_tick_reports_negative_after_expiry(make_provider, sink, clock):
    provider, _ = make_provider(make_creds(expires_at=NOW + timedelta(minutes=1)))
    provider.retrieve()

    clock.advance(minutes=3)
    observation = TTLSampler(provider, sink=sink, clock=clock).tick()

    assert observation.remaining == timedelta(minutes=-2)
    assert not observation.permanent


def test_permanent_credentials_never_report_duration(make_provider, sink, clock):
    provider, _ = make_provider(make_creds())
    provider.retrieve()
    sampler = TTLSampler(provider, sink=sink, clock=clock)

    for _ in range(3):
        clock.advance(hours=1)
        observation = sampler.tick()
        assert observation.permanent
        assert observation.remaining is None


def test_tick_does_not_retrieve(make_provider, clock):
    provider, source = make_provider(make_creds())
    provider.retrieve()
    sampler = TTLSampler(provider, clock=clock)
    sampler.tick()
    sampler.tick()

    assert source.calls == 1


def test_tick_logs(make_provider, clock, caplog):
    provider, _ = make_provider(make_creds(expires_at=NOW + timedelta(seconds=90)))
    provider.retrieve()

    with caplog.at_level(logging.INFO):
        TTLSampler(provider, sink=LoggingSink(), clock=clock).tick()
    assert "[CREDENTIALS] TTL check: 1m30s remaining until expiration" in caplog.text


@pytest.mark.parametrize("interval", [0, -1, timedelta(0), timedelta(seconds=-5)])
def test_interval_must_be_positive(interval):
    with pytest.raises(ConfigurationError):
        interval_seconds(interval)


def test_interval_accepts_timedelta():
    assert interval_seconds(timedelta(seconds=30)) == 30.0
    assert interval_seconds(2) == 2.0


def test_start_rejects_bad_interval(make_provider):
    provider, _ = make_provider(make_creds())
    sampler = TTLSampler(provider)
    with pytest.raises(ConfigurationError):
        sampler.start(Context.background(), 0)
    assert not sampler.running


def test_background_sampling_until_cancelled(make_provider, sink, clock):
    provider, _ = make_provider(make_creds(expires_at=NOW + timedelta(minutes=5)))
    provider.retrieve()
    sink.clear()
    ctx = Context.background()

    sampler = TTLSampler(provider, sink=sink, clock=clock)
    sampler.start(ctx, 0.01)
    assert wait_for(lambda: len(sink.of_kind(TTLCheck)) >= 3)

    ctx.cancel()
    assert wait_for(lambda: not sampler.running)
    count = len(sink.observations)
    time.sleep(0.05)
    assert len(sink.observations) == count


def test_no_samples_before_first_retrieval(make_provider, sink):
    provider, _ = make_provider(make_creds())
    ctx = Context.background()
    with TTLSampler(provider, sink=sink) as sampler:
        sampler.start(ctx, 0.01)
        time.sleep(0.1)
    assert sink.observations == []
    assert not sampler.running


def test_context_manager_stops_worker(make_provider, sink):
    provider, _ = make_provider(make_creds())
    provider.retrieve()
    ctx = Context.background()

    with TTLSampler(provider, sink=sink) as sampler:
        sampler.start(ctx, 0.01)
        assert sampler.running
    assert not sampler.running
    # stopping the sampler leaves the caller's context alone
    assert not ctx.cancelled


def test_context_manager_stops_worker_on_error(make_provider):
    provider, _ = make_provider(make_creds())
    with pytest.raises(KeyError):
        with TTLSampler(provider) as sampler:
            sampler.start(Context.background(), 0.01)
            raise KeyError("boom")
    assert not sampler.running


def test_start_twice(make_provider):
    provider, _ = make_provider(make_creds())
    with TTLSampler(provider) as sampler:
        sampler.start(Context.background(), 10)
        with pytest.raises(RuntimeError):
            sampler.start(Context.background(), 10)


def test_start_ttl_logger_uses_provider_sink(make_provider, sink):
    provider, _ = make_provider(make_creds())
    provider.retrieve()
    ctx = Context.background()

    with provider.start_ttl_logger(ctx, timedelta(milliseconds=10)) as sampler:
        assert sampler.sink is sink
        assert wait_for(lambda: sink.of_kind(TTLCheck))
    assert all(o.permanent for o in sink.of_kind(TTLCheck))


class FailingSink(ObservationSink):
    def __init__(self):
        self.attempts = 0

    def emit(self, observation):
        self.attempts += 1
        raise RuntimeError("sink down")


def test_tick_survives_failing_sink(make_provider, clock, caplog):
    provider, _ = make_provider(make_creds(expires_at=NOW + timedelta(minutes=5)))
    provider.retrieve()
    sampler = TTLSampler(provider, sink=FailingSink(), clock=clock)

    with caplog.at_level(logging.WARNING):
        observation = sampler.tick()

    assert observation == TTLCheck(remaining=timedelta(minutes=5))
    assert 'FailingSink failed: sink down' in caplog.text


def test_worker_keeps_running_when_sink_fails(make_provider, clock):
    provider, _ = make_provider(make_creds())
    provider.retrieve()
    failing = FailingSink()

    with TTLSampler(provider, sink=failing, clock=clock) as sampler:
        sampler.start(Context.background(), timedelta(milliseconds=10))
        assert wait_for(lambda: failing.attempts >= 3)
        assert sampler.running


def test_one_ttl_logger_per_provider(make_provider):
    provider, _ = make_provider(make_creds())
    ctx = Context.background()

    with provider.start_ttl_logger(ctx, 10):
        with pytest.raises(RuntimeError, match='already running'):
            provider.start_ttl_logger(ctx, 10)


def test_ttl_logger_restarts_after_stop(make_provider):
    provider, _ = make_provider(make_creds())
    ctx = Context.background()

    first = provider.start_ttl_logger(ctx, 10)
    first.stop(timeout=2)
    assert not first.running

    with provider.start_ttl_logger(ctx, 10) as second:
        assert second is not first
        assert second.running


def test_bad_interval_does_not_block_later_ttl_logger():
    provider = RefreshObservingProvider(ScriptedSource(make_creds()))

    with pytest.raises(ConfigurationError):
        provider.start_ttl_logger(Context.background(), 0)
    with provider.start_ttl_logger(Context.background(), 10) as sampler:
        assert sampler.running
