"""Refresh-cycle orchestration across provider chains, breakers and the fallback cache."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from time import perf_counter

from config import parse_crypto_ids, parse_symbols
from fx_ingest.logging import cycle_log_extra, provider_log_extra
from fx_ingest.models import CurrencyCategory
from fx_ingest.providers import (
    CircuitBreakerRegistry,
    HealthTracker,
    ProviderClient,
    ProviderError,
    ProviderSet,
    RetryCancelledError,
    RetryPolicy,
)
from fx_ingest.utils.datetime import Clock, utc_now

from .fallback_cache import DEFAULT_MAX_AGE, FallbackCache
from .fx_conversion import price_to_rate
from .rate_store import RateStore, SqlRateStore

logger = logging.getLogger(__name__)

ORCHESTRATOR_EXT_KEY = "fx_orchestrator"


class CyclePhase(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    RECONCILING = "reconciling"


class CycleStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FALLBACK = "fallback"
    FAILED = "failed"
    SKIPPED = "skipped"
    MOCK = "mock"


@dataclass
class CategoryOutcome:
    """What one category's provider chain produced during a cycle."""

    category: CurrencyCategory
    succeeded: bool = False
    provider: str | None = None
    updated: int = 0
    errors: list[str] = field(default_factory=list)
    rates: dict[str, Decimal] = field(default_factory=dict, repr=False)

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "succeeded": self.succeeded,
            "provider": self.provider,
            "updated": self.updated,
            "errors": list(self.errors),
        }


@dataclass
class CycleResult:
    status: CycleStatus
    started_at: datetime
    finished_at: datetime | None = None
    categories: dict[CurrencyCategory, CategoryOutcome] = field(default_factory=dict)
    fallback_applied: int = 0

    @property
    def failed(self) -> bool:
        return self.status is CycleStatus.FAILED

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "categories": {
                category.value: outcome.to_dict() for category, outcome in self.categories.items()
            },
            "fallback_applied": self.fallback_applied,
        }


class IngestionOrchestrator:
    """Run refresh cycles: fetch each category through its provider chain, then reconcile.

    Only one cycle runs at a time. A cycle requested while another is in
    flight returns a ``SKIPPED`` result immediately and leaves breaker and
    health state untouched.

    Worker threads perform network calls and breaker/health bookkeeping only;
    rate store and fallback cache writes happen on the thread that called
    ``run_cycle`` so database sessions never cross threads.
    """

    def __init__(
        self,
        chains: Mapping[CurrencyCategory, Sequence[ProviderClient]],
        rate_store: RateStore,
        fallback_cache: FallbackCache,
        breakers: CircuitBreakerRegistry,
        health: HealthTracker,
        retry_policy: RetryPolicy,
        *,
        base_currency: str = "USD",
        fiat_symbols: Iterable[str] = ("NGN", "USD", "EUR", "GBP"),
        crypto_ids: Mapping[str, str] | None = None,
        fallback_max_age: timedelta = DEFAULT_MAX_AGE,
        concurrent: bool = True,
        clock: Clock = utc_now,
    ) -> None:
        self.chains = {category: list(clients) for category, clients in chains.items()}
        self.rate_store = rate_store
        self.fallback_cache = fallback_cache
        self.breakers = breakers
        self.health = health
        self.retry_policy = retry_policy
        self.base_currency = base_currency.upper()
        self.fiat_symbols = [symbol.upper() for symbol in fiat_symbols]
        self.crypto_ids = dict(
            crypto_ids
            if crypto_ids is not None
            else {"bitcoin": "BTC", "ethereum": "ETH", "tether": "USDT"}
        )
        self.fallback_max_age = fallback_max_age
        self.concurrent = concurrent
        self._clock = clock
        self._cycle_lock = threading.Lock()
        self._phase = CyclePhase.IDLE
        self.last_result: CycleResult | None = None

    @property
    def phase(self) -> CyclePhase:
        return self._phase

    @property
    def running(self) -> bool:
        return self._cycle_lock.locked()

    @property
    def mock_mode(self) -> bool:
        return not any(self.chains.values())

    def run_cycle(self) -> CycleResult:
        if not self._cycle_lock.acquire(blocking=False):
            now = self._clock()
            logger.info(
                "Refresh cycle already in progress; skipping",
                extra=cycle_log_extra(event="cycle.skipped", status=CycleStatus.SKIPPED.value),
            )
            return CycleResult(status=CycleStatus.SKIPPED, started_at=now, finished_at=now)
        try:
            result = self._run_locked()
            self.last_result = result
            return result
        finally:
            self._phase = CyclePhase.IDLE
            self._cycle_lock.release()

    def validate_providers(self) -> dict[str, bool]:
        """Probe every configured provider once; failures are recorded, never raised."""

        results: dict[str, bool] = {}
        for client in self._clients():
            start = perf_counter()
            try:
                client.validate()
            except ProviderError as exc:
                self._record(client, success=False)
                results[client.name.value] = False
                logger.warning(
                    "Provider %s failed startup validation: %s",
                    client.name.value,
                    exc,
                    extra=provider_log_extra(
                        provider=client.name.value,
                        category=client.category.value,
                        event="provider.validate",
                        status="error",
                        duration_ms=(perf_counter() - start) * 1000,
                        error=str(exc),
                        http_status=exc.status_code,
                        endpoint=exc.endpoint,
                    ),
                )
                continue
            self._record(client, success=True)
            results[client.name.value] = True
            logger.info(
                "Provider %s validated",
                client.name.value,
                extra=provider_log_extra(
                    provider=client.name.value,
                    category=client.category.value,
                    event="provider.validate",
                    status="success",
                    duration_ms=(perf_counter() - start) * 1000,
                ),
            )
        return results

    def _run_locked(self) -> CycleResult:
        started_at = self._clock()
        start = perf_counter()
        active = {category: chain for category, chain in self.chains.items() if chain}

        if not active:
            result = CycleResult(
                status=CycleStatus.MOCK, started_at=started_at, finished_at=self._clock()
            )
            logger.info(
                "No providers configured; keeping seeded rates",
                extra=cycle_log_extra(event="cycle.completed", status=result.status.value),
            )
            return result

        self._phase = CyclePhase.FETCHING
        outcomes = self._fetch_all(active)

        self._phase = CyclePhase.RECONCILING
        now = self._clock()
        for outcome in outcomes.values():
            if outcome.succeeded:
                self._write_rates(outcome, now)

        fallback_applied = 0
        succeeded = [outcome for outcome in outcomes.values() if outcome.succeeded]
        if not succeeded:
            fallback_applied = self.fallback_cache.apply(self.rate_store, self.fallback_max_age)

        if len(succeeded) == len(outcomes):
            status = CycleStatus.SUCCESS
        elif succeeded:
            status = CycleStatus.PARTIAL
        elif fallback_applied:
            status = CycleStatus.FALLBACK
        else:
            status = CycleStatus.FAILED

        result = CycleResult(
            status=status,
            started_at=started_at,
            finished_at=self._clock(),
            categories=outcomes,
            fallback_applied=fallback_applied,
        )
        logger.log(
            logging.ERROR if status is CycleStatus.FAILED else logging.INFO,
            "Refresh cycle finished with status %s",
            status.value,
            extra=cycle_log_extra(
                event="cycle.completed",
                status=status.value,
                duration_ms=(perf_counter() - start) * 1000,
                fallback_applied=fallback_applied,
                providers={
                    category.value: outcome.provider for category, outcome in outcomes.items()
                },
            ),
        )
        return result

    def _fetch_all(
        self, active: Mapping[CurrencyCategory, Sequence[ProviderClient]]
    ) -> dict[CurrencyCategory, CategoryOutcome]:
        if not self.concurrent or len(active) == 1:
            return {
                category: self._fetch_category(category, chain)
                for category, chain in active.items()
            }

        with ThreadPoolExecutor(max_workers=len(active), thread_name_prefix="fx-fetch") as pool:
            futures = {
                category: pool.submit(self._fetch_category, category, chain)
                for category, chain in active.items()
            }
            return {category: future.result() for category, future in futures.items()}

    def _fetch_category(
        self, category: CurrencyCategory, chain: Sequence[ProviderClient]
    ) -> CategoryOutcome:
        outcome = CategoryOutcome(category=category)
        for client in chain:
            name = client.name.value
            if not self.breakers.allow(client.name):
                outcome.errors.append(f"{name}: circuit open")
                logger.warning(
                    "Circuit open for %s; skipping",
                    name,
                    extra=provider_log_extra(
                        provider=name,
                        category=category.value,
                        event="provider.blocked",
                        status="blocked",
                    ),
                )
                continue

            start = perf_counter()
            try:
                rates = self.retry_policy.execute(
                    lambda client=client: self._fetch(client, category),
                    label=f"{name} {category.value.lower()} fetch",
                )
            except RetryCancelledError as exc:
                outcome.errors.append(f"{name}: {exc}")
                logger.info("Fetch from %s cancelled by shutdown", name)
                break
            except ProviderError as exc:
                self._record(client, success=False)
                outcome.errors.append(f"{name}: {exc}")
                self._log_failure(client, category, exc, (perf_counter() - start) * 1000)
                continue

            self._record(client, success=True)
            outcome.succeeded = True
            outcome.provider = name
            outcome.rates = rates
            logger.info(
                "Fetched %d %s rate(s) from %s",
                len(rates),
                category.value.lower(),
                name,
                extra=provider_log_extra(
                    provider=name,
                    category=category.value,
                    event="provider.fetch",
                    status="success",
                    duration_ms=(perf_counter() - start) * 1000,
                ),
            )
            break
        return outcome

    def _fetch(self, client: ProviderClient, category: CurrencyCategory) -> dict[str, Decimal]:
        if category is CurrencyCategory.FIAT:
            return client.fetch_fiat_rates(self.base_currency, self.fiat_symbols)

        prices = client.fetch_crypto_prices(self.crypto_ids.keys())
        # Stored as units per base so every code converts through the same formula.
        return {
            self.crypto_ids[coin_id]: price_to_rate(price)
            for coin_id, price in prices.items()
            if coin_id in self.crypto_ids
        }

    def _write_rates(self, outcome: CategoryOutcome, now: datetime) -> None:
        for code, rate in sorted(outcome.rates.items()):
            self.rate_store.set_rate(code, rate, now)
            self.fallback_cache.put(code, rate, outcome.provider or "unknown", now)
        outcome.updated = len(outcome.rates)

    def _record(self, client: ProviderClient, *, success: bool) -> None:
        self.breakers.record_result(client.name, success)
        self.health.record_attempt(client.name, success)

    def _log_failure(
        self,
        client: ProviderClient,
        category: CurrencyCategory,
        exc: ProviderError,
        duration_ms: float,
    ) -> None:
        extra = provider_log_extra(
            provider=client.name.value,
            category=category.value,
            event="provider.fetch",
            status="error",
            duration_ms=duration_ms,
            error=str(exc),
            http_status=exc.status_code,
            endpoint=exc.endpoint,
        )
        if exc.status_code == 403:
            logger.warning(
                "Provider %s rejected the request with 403; check credentials or quota",
                client.name.value,
                extra=extra,
            )
            return
        logger.warning("Provider %s fetch failed: %s", client.name.value, exc, extra=extra)

    def _clients(self) -> list[ProviderClient]:
        seen: dict[str, ProviderClient] = {}
        for chain in self.chains.values():
            for client in chain:
                seen.setdefault(client.name.value, client)
        return list(seen.values())


def create_orchestrator(
    config: Mapping,
    providers: ProviderSet,
    *,
    rate_store: RateStore | None = None,
    clock: Clock = utc_now,
) -> IngestionOrchestrator:
    """Wire an orchestrator and its resilience registries from app config."""

    health = HealthTracker(
        max_consecutive_failures=int(config.get("HEALTH_MAX_CONSECUTIVE_FAILURES", 3)),
        clock=clock,
    )
    for name in providers.unconfigured:
        health.mark_unconfigured(name)

    return IngestionOrchestrator(
        providers.chains(),
        rate_store if rate_store is not None else SqlRateStore(),
        FallbackCache(clock=clock),
        CircuitBreakerRegistry.from_config(config, clock=clock),
        health,
        RetryPolicy.from_config(config),
        base_currency=str(config.get("FX_CANONICAL_BASE", "USD")),
        fiat_symbols=parse_symbols(config.get("FIAT_SYMBOLS")),
        crypto_ids=parse_crypto_ids(config.get("CRYPTO_IDS")),
        fallback_max_age=timedelta(seconds=float(config.get("FALLBACK_MAX_AGE_SECONDS", 86400))),
        concurrent=bool(config.get("RATES_CONCURRENT_FETCH", True)),
        clock=clock,
    )


def init_orchestrator(app, providers: ProviderSet) -> IngestionOrchestrator:
    """Create the orchestrator and store it on the Flask app extensions."""

    orchestrator = create_orchestrator(app.config, providers)
    app.extensions[ORCHESTRATOR_EXT_KEY] = orchestrator

    if providers.empty:
        logger.warning("Ingestion running in mock mode: no providers configured")
    elif app.config.get("VALIDATE_PROVIDERS_ON_STARTUP", True):
        orchestrator.validate_providers()
    return orchestrator


def get_orchestrator(app) -> IngestionOrchestrator:
    orchestrator = app.extensions.get(ORCHESTRATOR_EXT_KEY)
    if orchestrator is None:
        raise RuntimeError("Ingestion orchestrator not initialised")
    return orchestrator
