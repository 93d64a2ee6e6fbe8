"""Provider clients and the resilience primitives wrapped around them."""

from .base import HTTPProviderClient, ProviderClient, ProviderError, ProviderName
from .circuit_breaker import CircuitBreakerRegistry, CircuitBreakerState, CircuitBreakerStatus
from .coingecko import CoinGeckoClient
from .exchangerate_api import ExchangeRateAPIClient
from .health import HealthTracker, ProviderHealth
from .http_client import HTTPClient, HTTPClientConfig, HTTPClientError
from .openexchangerates import OpenExchangeRatesClient
from .registry import PROVIDER_CHAINS, ProviderSet, build_providers
from .retry import RetryCancelledError, RetryPolicy

__all__ = [
    "CircuitBreakerRegistry",
    "CircuitBreakerState",
    "CircuitBreakerStatus",
    "CoinGeckoClient",
    "ExchangeRateAPIClient",
    "HTTPClient",
    "HTTPClientConfig",
    "HTTPClientError",
    "HTTPProviderClient",
    "HealthTracker",
    "OpenExchangeRatesClient",
    "PROVIDER_CHAINS",
    "ProviderClient",
    "ProviderError",
    "ProviderHealth",
    "ProviderName",
    "ProviderSet",
    "RetryCancelledError",
    "RetryPolicy",
    "build_providers",
]
