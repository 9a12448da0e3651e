"""create payout reconciliation tables

Revision ID: 3f9c1a7e5b20
Revises:
Create Date: 2026-10-19 09:30:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3f9c1a7e5b20"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(18, 2)


def upgrade() -> None:
    op.create_table(
        "payment_transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("reference", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("payment_method", sa.String(length=50)),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("gateway", sa.String(length=20)),
        sa.Column("gateway_reference", sa.String(length=100), unique=True),
        sa.Column("gateway_response", sa.Text()),
        sa.Column("remarks", sa.String(length=255)),
        sa.Column("account_name", sa.String(length=100)),
        sa.Column("account_number", sa.String(length=50)),
        sa.Column("ifsc_code", sa.String(length=20)),
        sa.Column("bank_code", sa.String(length=20)),
        sa.Column("upi_id", sa.String(length=100)),
        sa.Column("processing_started_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_payment_transactions_reference", "payment_transactions", ["reference"], unique=True)
    op.create_index("ix_payment_transactions_user_id", "payment_transactions", ["user_id"])
    op.create_index("ix_payment_transactions_status", "payment_transactions", ["status"])

    op.create_table(
        "wallets",
        sa.Column("user_id", sa.String(length=36), primary_key=True),
        sa.Column("balance", MONEY, nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="INR"),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "wallet_ledger",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("wallets.user_id"), nullable=False),
        sa.Column(
            "transaction_id",
            sa.String(length=36),
            sa.ForeignKey("payment_transactions.id"),
            nullable=False,
        ),
        sa.Column("entry_type", sa.String(length=20), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("balance_after", MONEY, nullable=False),
        sa.Column("description", sa.String(length=255)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("transaction_id", "entry_type", name="uq_wallet_ledger_tx_entry"),
    )
    op.create_index("ix_wallet_ledger_user_id", "wallet_ledger", ["user_id"])
    op.create_index("ix_wallet_ledger_transaction_id", "wallet_ledger", ["transaction_id"])

    op.create_table(
        "payout_refunds",
        sa.Column(
            "transaction_id",
            sa.String(length=36),
            sa.ForeignKey("payment_transactions.id"),
            primary_key=True,
        ),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("reason", sa.String(length=255)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "gateway_callbacks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("gateway", sa.String(length=20), nullable=False),
        sa.Column("order_reference", sa.String(length=100), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("amount", MONEY),
        sa.Column("payload", sa.Text(), nullable=False),
        sa.Column("outcome", sa.String(length=50)),
        sa.Column("processed_at", sa.DateTime(timezone=True)),
        sa.Column("received_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_gateway_callbacks_order_reference", "gateway_callbacks", ["order_reference"])


def downgrade() -> None:
    op.drop_index("ix_gateway_callbacks_order_reference", table_name="gateway_callbacks")
    op.drop_table("gateway_callbacks")

    op.drop_table("payout_refunds")

    op.drop_index("ix_wallet_ledger_transaction_id", table_name="wallet_ledger")
    op.drop_index("ix_wallet_ledger_user_id", table_name="wallet_ledger")
    op.drop_table("wallet_ledger")

    op.drop_table("wallets")

    op.drop_index("ix_payment_transactions_status", table_name="payment_transactions")
    op.drop_index("ix_payment_transactions_user_id", table_name="payment_transactions")
    op.drop_index("ix_payment_transactions_reference", table_name="payment_transactions")
    op.drop_table("payment_transactions")
