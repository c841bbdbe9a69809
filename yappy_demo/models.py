from enum import Enum
from typing import Optional
from datetime import datetime, timedelta
from sqlmodel import SQLModel, Field

from .db import AwareDateTime, utcnow


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REVERSED = "REVERSED"
    FAILED = "FAILED"


class SessionState(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


def default_cut_off(created_at: datetime) -> datetime:
    return created_at + timedelta(days=1)


class Payment(SQLModel, table=True):
    __tablename__ = "payments"

    id: Optional[int] = Field(default=None, primary_key=True)
    uuid: str = Field(index=True, unique=True)
    number: Optional[str] = None
    amount: float
    partial_amount: Optional[float] = None
    tip: Optional[float] = None
    tax: Optional[float] = None
    currency: str = "USD"
    fee_amount: Optional[float] = None
    fee_currency: Optional[str] = None
    description: Optional[str] = None
    bill_description: Optional[str] = None
    status: PaymentStatus = Field(default=PaymentStatus.PENDING, index=True)
    created_at: datetime = Field(default_factory=utcnow, index=True, sa_type=AwareDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=AwareDateTime)
    payment_date: Optional[datetime] = Field(default=None, sa_type=AwareDateTime)
    cut_off_date: datetime = Field(sa_type=AwareDateTime)
    payment_metadata: Optional[str] = None  # JSON list, exposed as "metadata"

    # demo counterparties, Yappy does not hand these to the merchant here
    debitor_alias: str = "+50761234567"
    debitor_complete_name: str = "Juan Pérez"
    debitor_alias_type: str = "P"
    debitor_bank_name: str = "Banco General"
    creditor_alias: str = "merchant-yappy"
    creditor_complete_name: str = "Merchant Yappy API"
    creditor_alias_type: str = "E"
    creditor_bank_name: str = "Banco General"

    qr_code_data: Optional[str] = None


class YappySession(SQLModel, table=True):
    __tablename__ = "yappy_sessions"

    id: Optional[int] = Field(default=None, primary_key=True)
    token: str = Field(index=True)
    code: str
    state: SessionState = Field(default=SessionState.OPEN, index=True)
    open_at: datetime = Field(default_factory=utcnow, sa_type=AwareDateTime)
    closed_at: Optional[datetime] = Field(default=None, sa_type=AwareDateTime)
    created_at: datetime = Field(default_factory=utcnow, sa_type=AwareDateTime)
