from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal

import pytest

from fx_ingest.services.fallback_cache import FallbackCache
from tests.fakes import FrozenClock, InMemoryRateStore


@pytest.fixture()
def clock():
    return FrozenClock()


@pytest.fixture()
def store():
    store = InMemoryRateStore()
    store.seed("USD", "1")
    store.seed("EUR", "0.92")
    store.seed("GBP", "0.79")
    return store


def test_put_overwrites_entry_for_same_code(clock):
    cache = FallbackCache(clock=clock)
    cache.put("eur", Decimal("0.91"), "OpenExchangeRates")
    clock.advance(minutes=5)
    cache.put("EUR", Decimal("0.93"), "ExchangeRateAPI")

    entries = cache.get_all()

    assert len(entries) == 1
    assert entries[0].rate == Decimal("0.93")
    assert entries[0].source == "ExchangeRateAPI"
    assert entries[0].timestamp == clock.now


def test_put_rejects_non_positive_rate(clock):
    cache = FallbackCache(clock=clock)

    with pytest.raises(ValueError):
        cache.put("EUR", Decimal("0"), "OpenExchangeRates")


def test_apply_writes_fresh_entries_with_current_timestamp(clock, store):
    cache = FallbackCache(clock=clock)
    cache.put("EUR", Decimal("0.9"), "OpenExchangeRates")
    clock.advance(hours=23)

    applied = cache.apply(store)

    assert applied == 1
    record = store.get_rate("EUR")
    assert record.rate == Decimal("0.9")
    assert record.last_updated == clock.now


def test_apply_boundary_is_inclusive_at_24_hours(clock, store):
    cache = FallbackCache(clock=clock)
    cache.put("EUR", Decimal("0.9"), "OpenExchangeRates")
    clock.advance(hours=24)

    assert cache.apply(store, timedelta(hours=24)) == 1


def test_apply_skips_entries_older_than_max_age_without_deleting(clock, store, caplog):
    cache = FallbackCache(clock=clock)
    cache.put("EUR", Decimal("0.9"), "OpenExchangeRates")
    clock.advance(hours=25)

    with caplog.at_level(logging.WARNING):
        applied = cache.apply(store)

    assert applied == 0
    assert store.get_rate("EUR").rate == Decimal("0.92")
    assert store.writes == []
    assert [entry.code for entry in cache.get_all()] == ["EUR"]
    assert any(getattr(record, "event", None) == "fallback.apply" for record in caplog.records)


def test_apply_mixes_fresh_and_stale(clock, store):
    cache = FallbackCache(clock=clock)
    cache.put("GBP", Decimal("0.8"), "OpenExchangeRates", timestamp=clock.now - timedelta(hours=30))
    cache.put("EUR", Decimal("0.9"), "OpenExchangeRates")

    assert cache.apply(store) == 1
    assert store.get_rate("EUR").rate == Decimal("0.9")
    assert store.get_rate("GBP").rate == Decimal("0.79")


def test_apply_twice_is_idempotent(clock, store):
    cache = FallbackCache(clock=clock)
    cache.put("EUR", Decimal("0.9"), "OpenExchangeRates")
    cache.put("GBP", Decimal("0.8"), "OpenExchangeRates")

    cache.apply(store)
    first = store.snapshot()
    cache.apply(store)

    assert store.snapshot() == first
