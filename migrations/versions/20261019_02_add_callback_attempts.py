"""count failed callback processing attempts

Revision ID: 8d41e2c07a6f
Revises: 3f9c1a7e5b20
Create Date: 2026-10-19 16:10:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "8d41e2c07a6f"
down_revision = "3f9c1a7e5b20"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("gateway_callbacks") as batch:
        batch.add_column(sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"))
        batch.add_column(sa.Column("last_error", sa.Text()))


def downgrade() -> None:
    with op.batch_alter_table("gateway_callbacks") as batch:
        batch.drop_column("last_error")
        batch.drop_column("attempts")
