"""seed supported currencies

Revision ID: 9e4f0a6c2d18
Revises: 3b7d9e21c4a0
Create Date: 2026-10-12 09:21:05.772310

"""
from decimal import Decimal
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

currencies_table = sa.table(
    "currencies",
    sa.column("code", sa.String(length=10)),
    sa.column("name", sa.String(length=120)),
    sa.column("category", sa.String(length=10)),
    sa.column("rate", sa.Numeric(precision=24, scale=12)),
    sa.column("is_active", sa.Boolean()),
)


# revision identifiers, used by Alembic.
revision: str = '9e4f0a6c2d18'
down_revision: Union[str, Sequence[str], None] = '3b7d9e21c4a0'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CODES = ["NGN", "USD", "EUR", "GBP", "BTC", "ETH", "USDT"]


def upgrade() -> None:
    """Upgrade schema."""
    # Placeholder rates (units per USD) until the first refresh cycle lands.
    currencies = [
        {"code": "NGN", "name": "Nigerian Naira", "category": "FIAT", "rate": Decimal("1500")},
        {"code": "USD", "name": "US Dollar", "category": "FIAT", "rate": Decimal("1")},
        {"code": "EUR", "name": "Euro", "category": "FIAT", "rate": Decimal("0.92")},
        {"code": "GBP", "name": "British Pound", "category": "FIAT", "rate": Decimal("0.79")},
        {"code": "BTC", "name": "Bitcoin", "category": "CRYPTO", "rate": Decimal("0.000016")},
        {"code": "ETH", "name": "Ether", "category": "CRYPTO", "rate": Decimal("0.0003")},
        {"code": "USDT", "name": "Tether", "category": "CRYPTO", "rate": Decimal("1")},
    ]
    for currency in currencies:
        currency["is_active"] = True

    op.bulk_insert(currencies_table, currencies)


def downgrade() -> None:
    """Downgrade schema."""
    delete_statement = currencies_table.delete().where(
        currencies_table.c.code.in_(CODES)
    )
    op.execute(delete_statement)
