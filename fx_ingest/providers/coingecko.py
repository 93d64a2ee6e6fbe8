"""CoinGecko client: source of crypto prices."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

from fx_ingest.models import CurrencyCategory

from .base import HTTPProviderClient, ProviderName, positive_rates
from .http_client import HTTPClient, HTTPClientConfig

PRICE_PATH = "/simple/price"
PING_PATH = "/ping"
DEMO_KEY_HEADER = "x-cg-demo-api-key"


class CoinGeckoClient(HTTPProviderClient):
    """Public CoinGecko API; the demo API key is optional."""

    name = ProviderName.COINGECKO
    category = CurrencyCategory.CRYPTO
    credential_key = None

    def __init__(self, http: HTTPClient, vs_currency: str = "USD") -> None:
        super().__init__(http)
        self._vs_currency = vs_currency.strip().lower()

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> CoinGeckoClient:
        api_key = config.get("COINGECKO_API_KEY")
        headers = {DEMO_KEY_HEADER: str(api_key)} if api_key else {}
        http = HTTPClient(
            HTTPClientConfig(
                base_url=str(config.get("COINGECKO_BASE_URL")),
                timeout=float(config.get("REQUEST_TIMEOUT_SECONDS", 10)),
                headers=headers,
            )
        )
        return cls(http, vs_currency=str(config.get("FX_CANONICAL_BASE", "USD")))

    def fetch_crypto_prices(self, ids: Iterable[str]) -> dict[str, Decimal]:
        wanted = sorted({coin_id.strip().lower() for coin_id in ids})
        params = {"ids": ",".join(wanted), "vs_currencies": self._vs_currency}
        payload = self._get(PRICE_PATH, params=params)

        raw: dict[str, Any] = {}
        for coin_id in wanted:
            entry = payload.get(coin_id)
            if entry is None:
                continue
            if not isinstance(entry, dict) or self._vs_currency not in entry:
                raise self._malformed(
                    f"price for '{coin_id}' missing '{self._vs_currency}' quote", PRICE_PATH
                )
            raw[coin_id] = entry[self._vs_currency]

        if not raw:
            raise self._malformed("response contained none of the requested ids", PRICE_PATH)

        prices = positive_rates(raw, provider=self.name, endpoint=PRICE_PATH)
        # positive_rates uppercases keys; coin ids are lowercase by convention.
        return {coin_id.lower(): price for coin_id, price in prices.items()}

    def validate(self) -> None:
        payload = self._get(PING_PATH)
        if "gecko_says" not in payload:
            raise self._malformed("unexpected ping response", PING_PATH)
