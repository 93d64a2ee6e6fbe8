from __future__ import annotations

from datetime import timedelta

import pytest

from fx_ingest.errors import NotFoundError
from fx_ingest.providers import CircuitBreakerRegistry, ProviderName
from tests.fakes import FrozenClock

OXR = ProviderName.OPEN_EXCHANGE_RATES


@pytest.fixture()
def clock():
    return FrozenClock()


@pytest.fixture()
def breakers(clock):
    return CircuitBreakerRegistry(threshold=5, timeout=timedelta(seconds=30), clock=clock)


def fail(breakers, times, provider=OXR):
    for _ in range(times):
        breakers.record_result(provider, False)


def test_breaker_stays_closed_below_threshold(breakers):
    fail(breakers, 4)

    assert breakers.allow(OXR) is True
    assert breakers.state(OXR).is_open is False
    assert breakers.state(OXR).consecutive_failures == 4


def test_breaker_opens_at_threshold_and_blocks_until_timeout(breakers, clock):
    fail(breakers, 5)

    assert breakers.state(OXR).is_open is True
    assert breakers.allow(OXR) is False

    clock.advance(seconds=30)
    assert breakers.allow(OXR) is False

    clock.advance(seconds=1)
    assert breakers.allow(OXR) is True


def test_single_success_closes_breaker_regardless_of_failures(breakers):
    fail(breakers, 12)

    breakers.record_result(OXR, True)

    state = breakers.state(OXR)
    assert state.consecutive_failures == 0
    assert state.is_open is False
    assert breakers.allow(OXR) is True


def test_failed_half_open_trial_reopens_immediately(breakers, clock):
    fail(breakers, 5)
    clock.advance(seconds=31)
    assert breakers.allow(OXR) is True

    breakers.record_result(OXR, False)

    assert breakers.allow(OXR) is False
    assert breakers.state(OXR).consecutive_failures == 6
    assert breakers.state(OXR).last_attempt == clock.now


def test_breakers_are_independent_per_provider(breakers):
    fail(breakers, 5, provider=OXR)

    assert breakers.allow(OXR) is False
    assert breakers.allow(ProviderName.EXCHANGE_RATE_API) is True
    assert breakers.allow(ProviderName.COINGECKO) is True


def test_five_failures_then_operator_reset(breakers):
    fail(breakers, 5)

    status = {item.provider: item for item in breakers.status()}
    assert status["OpenExchangeRates"].is_open is True
    assert status["OpenExchangeRates"].failures == 5

    breakers.reset("OpenExchangeRates")

    status = {item.provider: item for item in breakers.status()}
    assert status["OpenExchangeRates"].is_open is False
    assert status["OpenExchangeRates"].failures == 0
    assert status["OpenExchangeRates"].last_attempt is None
    assert breakers.allow(OXR) is True


def test_lookup_by_name_is_case_insensitive(breakers):
    fail(breakers, 2)

    assert breakers.state("openexchangerates").consecutive_failures == 2


def test_reset_unknown_provider_raises_not_found(breakers):
    with pytest.raises(NotFoundError) as exc_info:
        breakers.reset("Frankfurter")

    assert exc_info.value.status_code == 404
    assert exc_info.value.payload == {"provider": "Frankfurter"}


def test_status_to_dict_serializes_last_attempt(breakers, clock):
    fail(breakers, 1)

    payload = {item.provider: item.to_dict() for item in breakers.status()}

    assert payload["OpenExchangeRates"] == {
        "provider": "OpenExchangeRates",
        "is_open": False,
        "failures": 1,
        "last_attempt": clock.now.isoformat(),
    }
    assert payload["CoinGecko"]["last_attempt"] is None


def test_any_open_reflects_state(breakers):
    assert breakers.any_open() is False
    fail(breakers, 5)
    assert breakers.any_open() is True


def test_from_config_reads_threshold_and_timeout():
    registry = CircuitBreakerRegistry.from_config(
        {"CIRCUIT_BREAKER_THRESHOLD": 2, "CIRCUIT_BREAKER_TIMEOUT_SECONDS": 10}
    )

    assert registry.threshold == 2
    assert registry.timeout == timedelta(seconds=10)
