from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from fx_ingest.errors import NotFoundError
from fx_ingest.models import CurrencyCategory
from fx_ingest.providers import (
    CircuitBreakerRegistry,
    HealthTracker,
    ProviderName,
    RetryPolicy,
)
from fx_ingest.services.fallback_cache import FallbackCache
from fx_ingest.services.orchestrator import IngestionOrchestrator
from fx_ingest.services.rate_service import RateService
from tests.fakes import FrozenClock, InMemoryRateStore


def by_provider(items):
    return {item["provider"]: item for item in items}


@pytest.fixture()
def clock():
    return FrozenClock()


@pytest.fixture()
def store(clock):
    store = InMemoryRateStore()
    store.seed("USD", "1", last_updated=clock.now)
    store.seed("EUR", "0.9", last_updated=clock.now)
    store.seed("NGN", "1500", last_updated=clock.now)
    store.seed("BTC", "0.00002", CurrencyCategory.CRYPTO, last_updated=clock.now)
    store.seed("GBP", None)
    return store


@pytest.fixture()
def service(store, clock):
    orchestrator = IngestionOrchestrator(
        {},
        store,
        FallbackCache(clock=clock),
        CircuitBreakerRegistry(clock=clock),
        HealthTracker(clock=clock),
        RetryPolicy(base_delay=0),
        clock=clock,
    )
    return RateService(orchestrator, stale_after=timedelta(hours=1), clock=clock)


def test_get_current_rate(service):
    assert service.get_current_rate("eur") == Decimal("0.9")
    assert service.get_current_rate("GBP") is None
    assert service.get_current_rate("JPY") is None


def test_convert_currency_multiplies_by_rate_ratio(service):
    result = service.convert_currency(Decimal("100"), "EUR", "NGN")

    assert result == Decimal("100") * Decimal("1500") / Decimal("0.9")


def test_convert_fiat_to_crypto(service):
    assert service.convert_currency("50000", "USD", "BTC") == Decimal("1.00000")


def test_convert_returns_none_for_unknown_or_missing_rate(service):
    assert service.convert_currency("10", "EUR", "JPY") is None
    assert service.convert_currency("10", "GBP", "EUR") is None


def test_convert_returns_none_when_source_rate_zero(service, store):
    store.seed("XAU", "0")

    assert service.convert_currency("10", "XAU", "EUR") is None


def test_get_all_current_rates_skips_missing(service):
    rates = service.get_all_current_rates()

    assert rates == {
        "BTC": Decimal("0.00002"),
        "EUR": Decimal("0.9"),
        "NGN": Decimal("1500"),
        "USD": Decimal("1"),
    }


def test_health_check_healthy_with_fresh_rates(service):
    report = service.health_check()

    assert report["status"] == "healthy"
    assert report["fallback_rates_count"] == 0
    assert isinstance(report["api_status"], list)
    assert isinstance(report["circuit_breakers"], list)
    assert [item["provider"] for item in report["circuit_breakers"]] == [
        "OpenExchangeRates",
        "ExchangeRateAPI",
        "CoinGecko",
    ]
    assert by_provider(report["api_status"])["CoinGecko"]["is_healthy"] is True
    assert report["mock_mode"] is True


def test_health_check_unhealthy_once_newest_update_older_than_an_hour(service, clock):
    clock.advance(minutes=61)

    assert service.health_check()["status"] == "unhealthy"


def test_health_check_unhealthy_without_any_timestamp(clock):
    store = InMemoryRateStore()
    store.seed("USD", "1")
    orchestrator = IngestionOrchestrator(
        {}, store, FallbackCache(), CircuitBreakerRegistry(), HealthTracker(), RetryPolicy()
    )

    report = RateService(orchestrator, clock=clock).health_check()

    assert report["status"] == "unhealthy"
    assert report["last_update"] is None


def test_health_check_unhealthy_wins_over_provider_health(service, clock):
    for _ in range(5):
        service.orchestrator.breakers.record_result(ProviderName.COINGECKO, False)
    clock.advance(hours=2)

    assert service.health_check()["status"] == "unhealthy"


def test_health_check_degraded_when_breaker_open(service):
    for _ in range(5):
        service.orchestrator.breakers.record_result(ProviderName.COINGECKO, False)

    report = service.health_check()

    assert report["status"] == "degraded"
    assert by_provider(report["circuit_breakers"])["CoinGecko"]["is_open"] is True


def test_health_check_degraded_when_provider_unconfigured(service):
    service.orchestrator.health.mark_unconfigured(ProviderName.OPEN_EXCHANGE_RATES)

    assert service.health_check()["status"] == "degraded"


def test_reset_circuit_breaker(service):
    for _ in range(5):
        service.orchestrator.breakers.record_result(ProviderName.EXCHANGE_RATE_API, False)

    status = service.reset_circuit_breaker("ExchangeRateAPI")

    assert status == {
        "provider": "ExchangeRateAPI",
        "is_open": False,
        "failures": 0,
        "last_attempt": None,
    }


def test_reset_unknown_circuit_breaker(service):
    with pytest.raises(NotFoundError):
        service.reset_circuit_breaker("Unknown")


def test_get_fallback_rates(service):
    service.orchestrator.fallback_cache.put("EUR", Decimal("0.9"), "OpenExchangeRates")

    entries = service.get_fallback_rates()

    assert [(entry.code, entry.source) for entry in entries] == [("EUR", "OpenExchangeRates")]


def test_api_health_status_lists_every_provider(service):
    service.orchestrator.health.record_attempt(ProviderName.EXCHANGE_RATE_API, False)

    statuses = service.get_api_health_status()

    assert [item["provider"] for item in statuses] == [
        "OpenExchangeRates",
        "ExchangeRateAPI",
        "CoinGecko",
    ]
    era = by_provider(statuses)["ExchangeRateAPI"]
    assert era["error_count"] == 1
    assert era["consecutive_failures"] == 1
    assert era["is_healthy"] is True
    assert era["last_success"] is None
