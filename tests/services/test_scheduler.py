from __future__ import annotations

import atexit
import logging
from datetime import UTC, datetime, timedelta

import pytest

from fx_ingest.models import CurrencyCategory
from fx_ingest.providers import (
    CircuitBreakerRegistry,
    HealthTracker,
    ProviderName,
    RetryPolicy,
)
from fx_ingest.services.fallback_cache import FallbackCache
from fx_ingest.services.orchestrator import CycleStatus, IngestionOrchestrator
from fx_ingest.services.scheduler import (
    REFRESH_JOB_ID,
    SCHEDULER_EXT_KEY,
    RateRefreshScheduler,
    init_scheduler,
)
from tests.fakes import FakeProviderClient, FrozenClock, InMemoryRateStore


@pytest.fixture()
def orchestrator():
    clock = FrozenClock()
    store = InMemoryRateStore()
    store.seed("EUR", "0.92")
    client = FakeProviderClient(
        ProviderName.OPEN_EXCHANGE_RATES, CurrencyCategory.FIAT, [{"EUR": "0.9"}]
    )
    return IngestionOrchestrator(
        {CurrencyCategory.FIAT: [client]},
        store,
        FallbackCache(clock=clock),
        CircuitBreakerRegistry(clock=clock),
        HealthTracker(clock=clock),
        RetryPolicy(base_delay=0),
        clock=clock,
    )


def test_trigger_now_runs_a_cycle(orchestrator):
    scheduler = RateRefreshScheduler(orchestrator, interval_seconds=300)

    result = scheduler.trigger_now()

    assert result.status is CycleStatus.SUCCESS
    assert scheduler.running is False


def test_tick_logs_and_swallows_unexpected_errors(orchestrator, monkeypatch, caplog):
    def boom():
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(orchestrator, "run_cycle", boom)
    scheduler = RateRefreshScheduler(orchestrator)

    with caplog.at_level(logging.ERROR, logger="fx_ingest.services.scheduler"):
        assert scheduler.tick() is None

    assert "Scheduled rate refresh failed" in caplog.text


def test_tick_runs_inside_app_context(app, orchestrator):
    seen = {}

    def run_cycle():
        from flask import current_app

        seen["app"] = current_app.name
        return None

    orchestrator.run_cycle = run_cycle
    scheduler = RateRefreshScheduler(orchestrator, app=app)

    scheduler.tick()

    assert seen["app"] == app.name


def test_start_registers_single_interval_job_and_shutdown_cancels_retries(orchestrator):
    scheduler = RateRefreshScheduler(orchestrator, interval_seconds=120, refresh_on_start=False)
    scheduler.start()
    try:
        assert scheduler.running is True
        job = scheduler._scheduler.get_job(REFRESH_JOB_ID)
        assert job is not None
        assert job.trigger.interval == timedelta(seconds=120)
        assert job.max_instances == 1
        assert job.coalesce is True
        assert job.next_run_time > datetime.now(UTC) + timedelta(seconds=100)
    finally:
        scheduler.shutdown()

    assert scheduler.running is False
    assert orchestrator.retry_policy.cancelled is True


def test_interval_must_be_positive(orchestrator):
    with pytest.raises(ValueError):
        RateRefreshScheduler(orchestrator, interval_seconds=0)


def test_start_refreshes_immediately_by_default(orchestrator):
    (client,) = orchestrator.chains[CurrencyCategory.FIAT]
    scheduler = RateRefreshScheduler(orchestrator, interval_seconds=300)
    scheduler.start()
    try:
        assert client.started.wait(timeout=5)
    finally:
        scheduler.shutdown()

    assert client.calls == [("fiat", "USD", ("NGN", "USD", "EUR", "GBP"))]


def test_init_scheduler_honours_refresh_on_start_setting(app, monkeypatch):
    monkeypatch.setitem(app.config, "SCHEDULER_ENABLED", True)
    monkeypatch.setitem(app.config, "SCHEDULER_REFRESH_ON_START", False)
    monkeypatch.delitem(app.extensions, SCHEDULER_EXT_KEY, raising=False)
    monkeypatch.setattr(atexit, "register", lambda func: func)

    scheduler = init_scheduler(app)
    try:
        assert scheduler.refresh_on_start is False
        assert app.extensions[SCHEDULER_EXT_KEY] is scheduler
    finally:
        scheduler.shutdown()
        scheduler.orchestrator.retry_policy.resume()
        app.extensions.pop(SCHEDULER_EXT_KEY, None)
