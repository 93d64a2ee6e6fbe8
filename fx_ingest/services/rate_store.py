"""Durable current-rate storage keyed by currency code."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from fx_ingest.database import get_session
from fx_ingest.models import Currency, CurrencyCategory
from fx_ingest.services.fx_conversion import normalize_currency, to_decimal
from fx_ingest.utils.datetime import ensure_utc


@dataclass(frozen=True)
class RateRecord:
    """Read-only view of one currency's current rate."""

    code: str
    rate: Decimal | None
    category: CurrencyCategory
    last_updated: datetime | None
    name: str | None = None
    is_active: bool = True


class RateStore(ABC):
    """Interface the ingestion engine writes to and the rest of the system reads."""

    @abstractmethod
    def get_rate(self, code: str) -> RateRecord | None:
        """Return the record for ``code`` or ``None`` when the code is unknown."""

    @abstractmethod
    def set_rate(self, code: str, rate: Decimal, timestamp: datetime) -> None:
        """Overwrite the rate and its ``last_updated`` stamp together."""

    @abstractmethod
    def list_by_category(self, category: CurrencyCategory) -> list[RateRecord]:
        ...

    @abstractmethod
    def list_active(self) -> list[RateRecord]:
        ...


def validate_rate(rate: Decimal | int | float | str) -> Decimal:
    value = to_decimal(rate)
    if not value.is_finite() or value <= 0:
        raise ValueError(f"Rate must be a positive number, got {rate!r}")
    return value


class SqlRateStore(RateStore):
    """``RateStore`` backed by the ``currencies`` table.

    Writes to codes that were never seeded are ignored: the set of tracked
    currencies is owned by seeding, not by whatever a provider returns.
    """

    def get_rate(self, code: str) -> RateRecord | None:
        session = get_session()
        row = session.execute(
            select(Currency).where(Currency.code == normalize_currency(code))
        ).scalar_one_or_none()
        return _to_record(row) if row is not None else None

    def set_rate(self, code: str, rate: Decimal, timestamp: datetime) -> None:
        value = validate_rate(rate)
        session = get_session()
        try:
            row = session.execute(
                select(Currency).where(Currency.code == normalize_currency(code))
            ).scalar_one_or_none()
            if row is None:
                return
            row.rate = value
            row.last_updated = ensure_utc(timestamp)
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise

    def list_by_category(self, category: CurrencyCategory) -> list[RateRecord]:
        session = get_session()
        rows = session.execute(
            select(Currency).where(Currency.category == category).order_by(Currency.code)
        ).scalars()
        return [_to_record(row) for row in rows]

    def list_active(self) -> list[RateRecord]:
        session = get_session()
        rows = session.execute(
            select(Currency).where(Currency.is_active.is_(True)).order_by(Currency.code)
        ).scalars()
        return [_to_record(row) for row in rows]


def _to_record(row: Currency) -> RateRecord:
    return RateRecord(
        code=row.code,
        rate=Decimal(row.rate) if row.rate is not None else None,
        category=row.category,
        last_updated=ensure_utc(row.last_updated) if row.last_updated is not None else None,
        name=row.name,
        is_active=row.is_active,
    )
