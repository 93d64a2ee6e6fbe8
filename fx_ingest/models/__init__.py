"""SQLAlchemy ORM models backing the rate store."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum as SqlEnum, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from fx_ingest.database import Base


class CurrencyCategory(str, Enum):
    """Grouping of currencies fetched from a common kind of provider."""

    FIAT = "FIAT"
    CRYPTO = "CRYPTO"


class Currency(Base):
    """Current known exchange rate for one currency code."""

    __tablename__ = "currencies"
    __table_args__ = (Index("ix_currencies_category_active", "category", "is_active"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    category: Mapped[CurrencyCategory] = mapped_column(
        SqlEnum(CurrencyCategory, name="currency_category"),
        nullable=False,
        default=CurrencyCategory.FIAT,
    )
    rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(24, 12), nullable=True)
    last_updated: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Currency code={self.code} category={self.category} rate={self.rate}>"
