"""Pydantic schemas used across the project."""
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class PayeeSchema(BaseModel):
    account_name: Optional[str] = Field(default=None, max_length=100)
    account_number: Optional[str] = Field(default=None, max_length=50)
    ifsc_code: Optional[str] = Field(default=None, max_length=20)
    bank_code: Optional[str] = Field(default=None, max_length=20)
    upi_id: Optional[str] = Field(default=None, max_length=100)

    model_config = ConfigDict(from_attributes=True)


class TransactionCreate(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=36)
    type: str = Field(..., description="deposit or withdraw")
    amount: Decimal = Field(..., gt=0, max_digits=18, decimal_places=2)
    payment_method: Optional[str] = Field(default=None, max_length=50)
    reference: Optional[str] = Field(default=None, max_length=64)
    payee: PayeeSchema = Field(default_factory=PayeeSchema)


class TransactionStatusUpdate(BaseModel):
    status: Literal["completed", "approved", "rejected", "reject"]
    gateway: Optional[str] = None
    remarks: Optional[str] = Field(default=None, max_length=255)


class TransactionResponse(BaseModel):
    id: str
    reference: str
    user_id: str
    type: str
    amount: Decimal
    payment_method: Optional[str] = None
    status: str
    gateway: Optional[str] = None
    gateway_reference: Optional[str] = None
    gateway_response: Optional[str] = None
    remarks: Optional[str] = None
    payee: PayeeSchema
    processing_started_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TransactionListResponse(BaseModel):
    total: int
    transactions: list[TransactionResponse]


class PendingCountResponse(BaseModel):
    pending: int


class TransactionActionResponse(BaseModel):
    message: str
    transaction: TransactionResponse


class ReconcileResponse(BaseModel):
    expired: list[str]
    awaiting_callback: list[str]
    replayed: int


class WalletResponse(BaseModel):
    user_id: str
    balance: Decimal
    currency: str
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LedgerEntryResponse(BaseModel):
    id: int
    transaction_id: str
    entry_type: str
    amount: Decimal
    balance_after: Decimal
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LedgerResponse(BaseModel):
    user_id: str
    entries: list[LedgerEntryResponse]


class HealthResponse(BaseModel):
    status: str
    version: str
    gateways: list[str]
