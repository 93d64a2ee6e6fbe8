"""Bootstrap seeding of the supported currency set."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from fx_ingest.database import get_session
from fx_ingest.models import Currency, CurrencyCategory

# Placeholder rates in units per USD; replaced by the first successful cycle.
SUPPORTED_CURRENCIES = [
    ("NGN", "Nigerian Naira", CurrencyCategory.FIAT, Decimal("1500")),
    ("USD", "US Dollar", CurrencyCategory.FIAT, Decimal("1")),
    ("EUR", "Euro", CurrencyCategory.FIAT, Decimal("0.92")),
    ("GBP", "British Pound", CurrencyCategory.FIAT, Decimal("0.79")),
    ("BTC", "Bitcoin", CurrencyCategory.CRYPTO, Decimal("0.000016")),
    ("ETH", "Ether", CurrencyCategory.CRYPTO, Decimal("0.0003")),
    ("USDT", "Tether", CurrencyCategory.CRYPTO, Decimal("1")),
]


@dataclass(frozen=True)
class SeedResult:
    created: list[str]
    existing: list[str]


def seed_currencies() -> SeedResult:
    """Insert any supported currency that is missing; existing rows are left untouched.

    Seeded rows carry a placeholder rate but no ``last_updated`` stamp, so
    health reports stay unhealthy until a live or fallback rate lands.
    """

    session = get_session()
    try:
        present = set(session.execute(select(Currency.code)).scalars())
        created: list[str] = []
        for code, name, category, rate in SUPPORTED_CURRENCIES:
            if code in present:
                continue
            session.add(
                Currency(
                    code=code,
                    name=name,
                    category=category,
                    rate=rate,
                    last_updated=None,
                    is_active=True,
                )
            )
            created.append(code)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise
    return SeedResult(created=created, existing=sorted(present))
