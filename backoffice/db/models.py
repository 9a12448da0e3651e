"""SQLAlchemy ORM models."""
import uuid
from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from backoffice.infrastructure.database.base import Base

MONEY = Numeric(18, 2)


def generate_uuid() -> str:
    return str(uuid.uuid4())


class PaymentTransaction(Base):
    __tablename__ = "payment_transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    reference = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    type = Column(String(20), nullable=False)  # deposit, withdraw
    amount = Column(MONEY, nullable=False)
    payment_method = Column(String(50))
    status = Column(String(20), nullable=False, default="pending", index=True)
    gateway = Column(String(20))
    gateway_reference = Column(String(100), unique=True)
    gateway_response = Column(Text)
    remarks = Column(String(255))
    account_name = Column(String(100))
    account_number = Column(String(50))
    ifsc_code = Column(String(20))
    bank_code = Column(String(20))
    upi_id = Column(String(100))
    processing_started_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Wallet(Base):
    __tablename__ = "wallets"

    user_id = Column(String(36), primary_key=True)
    balance = Column(MONEY, nullable=False, default=0)
    currency = Column(String(10), nullable=False, default="INR")
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    entries = relationship("WalletLedgerEntry", back_populates="wallet", cascade="all, delete-orphan")


class WalletLedgerEntry(Base):
    __tablename__ = "wallet_ledger"
    __table_args__ = (UniqueConstraint("transaction_id", "entry_type", name="uq_wallet_ledger_tx_entry"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("wallets.user_id"), nullable=False, index=True)
    transaction_id = Column(String(36), ForeignKey("payment_transactions.id"), nullable=False, index=True)
    entry_type = Column(String(20), nullable=False)  # debit, credit, refund
    amount = Column(MONEY, nullable=False)
    balance_after = Column(MONEY, nullable=False)
    description = Column(String(255))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    wallet = relationship("Wallet", back_populates="entries")


class PayoutRefund(Base):
    __tablename__ = "payout_refunds"

    transaction_id = Column(String(36), ForeignKey("payment_transactions.id"), primary_key=True)
    amount = Column(MONEY, nullable=False)
    reason = Column(String(255))
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class GatewayCallback(Base):
    __tablename__ = "gateway_callbacks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    gateway = Column(String(20), nullable=False)
    order_reference = Column(String(100), nullable=False, index=True)
    status = Column(String(20), nullable=False)
    amount = Column(MONEY)
    payload = Column(Text, nullable=False)
    outcome = Column(String(50))
    attempts = Column(Integer, nullable=False, default=0, server_default="0")
    last_error = Column(Text)
    processed_at = Column(DateTime(timezone=True))
    received_at = Column(DateTime(timezone=True), server_default=func.now())
