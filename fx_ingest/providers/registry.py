"""Build provider clients and per-category fallback chains from configuration."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from fx_ingest.models import CurrencyCategory

from .base import ProviderClient, ProviderName
from .coingecko import CoinGeckoClient
from .exchangerate_api import ExchangeRateAPIClient
from .openexchangerates import OpenExchangeRatesClient

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[Mapping[str, Any]], ProviderClient]

# Order within a category is the fallback order.
PROVIDER_CHAINS: dict[CurrencyCategory, tuple[ProviderName, ...]] = {
    CurrencyCategory.FIAT: (ProviderName.OPEN_EXCHANGE_RATES, ProviderName.EXCHANGE_RATE_API),
    CurrencyCategory.CRYPTO: (ProviderName.COINGECKO,),
}

_FACTORIES: dict[ProviderName, tuple[str | None, ProviderFactory]] = {
    ProviderName.OPEN_EXCHANGE_RATES: (
        OpenExchangeRatesClient.credential_key,
        OpenExchangeRatesClient.from_config,
    ),
    ProviderName.EXCHANGE_RATE_API: (
        ExchangeRateAPIClient.credential_key,
        ExchangeRateAPIClient.from_config,
    ),
    ProviderName.COINGECKO: (CoinGeckoClient.credential_key, CoinGeckoClient.from_config),
}


@dataclass
class ProviderSet:
    """Clients that could be built, plus the providers left unconfigured."""

    clients: dict[ProviderName, ProviderClient] = field(default_factory=dict)
    unconfigured: list[ProviderName] = field(default_factory=list)

    def chains(self) -> dict[CurrencyCategory, list[ProviderClient]]:
        return {
            category: [self.clients[name] for name in names if name in self.clients]
            for category, names in PROVIDER_CHAINS.items()
        }

    @property
    def empty(self) -> bool:
        return not self.clients


def build_providers(config: Mapping[str, Any]) -> ProviderSet:
    """Instantiate every provider whose credentials are present."""

    result = ProviderSet()
    for name, (credential_key, factory) in _FACTORIES.items():
        if not _enabled(name, config):
            logger.info("Provider %s disabled via configuration", name.value)
            result.unconfigured.append(name)
            continue
        if credential_key is not None and not config.get(credential_key):
            logger.warning(
                "Provider %s not configured: missing %s; treating as unhealthy",
                name.value,
                credential_key,
            )
            result.unconfigured.append(name)
            continue
        result.clients[name] = factory(config)

    if result.empty:
        logger.warning("No rate providers configured; serving seeded rates only")
    return result


def _enabled(name: ProviderName, config: Mapping[str, Any]) -> bool:
    if name is ProviderName.COINGECKO:
        return bool(config.get("COINGECKO_ENABLED", True))
    return True
