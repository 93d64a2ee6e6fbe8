"""create currencies

Revision ID: 3b7d9e21c4a0
Revises: 
Create Date: 2026-10-12 09:14:22.418503

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b7d9e21c4a0'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "currencies",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=10), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=True),
        sa.Column(
            "category",
            sa.Enum("FIAT", "CRYPTO", name="currency_category"),
            nullable=False,
        ),
        sa.Column("rate", sa.Numeric(precision=24, scale=12), nullable=True),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )
    op.create_index(
        "ix_currencies_category_active",
        "currencies",
        ["category", "is_active"],
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_currencies_category_active", table_name="currencies")
    op.drop_table("currencies")
    sa.Enum(name="currency_category").drop(op.get_bind(), checkfirst=True)
