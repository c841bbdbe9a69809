import json
from datetime import datetime, time, timezone
from typing import Any, List, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from .errors import YappyStatus
from .models import Payment, PaymentStatus


def parse_yappy_datetime(value: Any, end_of_day: bool = False) -> datetime:
    """
    Parse an ISO date or datetime into an aware UTC datetime. Values without
    an offset are read as UTC.
    A bare date (YYYY-MM-DD) maps to the start of that day, or to its last
    microsecond when ``end_of_day`` is set.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        if end_of_day and len(text) == 10:
            parsed = datetime.combine(parsed.date(), time.max)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class StatusOut(BaseModel):
    code: str
    description: str


def envelope(status: YappyStatus, body: Optional[Any] = None) -> dict:
    out = {"status": {"code": status.code, "description": status.description}}
    if body is not None:
        out = {"body": body, **out}
    return out


def yappy_response(status: YappyStatus, body: Optional[Any] = None, http_status: int = 200) -> JSONResponse:
    return JSONResponse(status_code=http_status, content=jsonable_encoder(envelope(status, body)))


# --- session ---

class SessionCode(BaseModel):
    code: Optional[str] = None

class SessionLoginIn(BaseModel):
    body: Optional[SessionCode] = None


# --- movements ---

class Pagination(BaseModel):
    start_date: str
    end_date: str
    payment_date: Optional[str] = None
    merchant_date: Optional[str] = None
    has_next_page: Optional[bool] = None
    limit: int
    token: Optional[str] = None

class MovementFilter(BaseModel):
    id: str
    value: str

class MovementHistoryBody(BaseModel):
    pagination: Optional[Pagination] = None
    filter: Optional[List[MovementFilter]] = None

class MovementHistoryIn(BaseModel):
    body: Optional[MovementHistoryBody] = None


# --- internal payments ---

class CreatePaymentIn(BaseModel):
    uuid: Optional[str] = None  # generated when omitted
    number: Optional[str] = None
    amount: float = Field(..., gt=0, description="Amount in major units e.g. 5.00")
    currency: str = "USD"
    description: Optional[str] = None
    bill_description: Optional[str] = None
    status: PaymentStatus = PaymentStatus.PENDING
    metadata: Optional[List[Any]] = None
    created_at: Optional[datetime] = None
    payment_date: Optional[datetime] = None
    cut_off_date: Optional[datetime] = None

    @field_validator("created_at", "payment_date", "cut_off_date", mode="before")
    @classmethod
    def _parse_dates(cls, value):
        if value is None or value == "":
            return None
        return parse_yappy_datetime(value)

class PaymentOut(BaseModel):
    id: int
    uuid: str
    number: Optional[str] = None
    amount: float
    currency: str
    description: Optional[str] = None
    bill_description: Optional[str] = None
    status: PaymentStatus
    created_at: datetime
    updated_at: datetime
    payment_date: Optional[datetime] = None
    cut_off_date: datetime
    metadata: List[Any] = []
    debitor_alias: str
    debitor_complete_name: str
    creditor_alias: str
    creditor_complete_name: str
    qr_code_data: Optional[str] = None

    @classmethod
    def from_payment(cls, payment: Payment) -> "PaymentOut":
        data = payment.model_dump()
        data["metadata"] = json.loads(payment.payment_metadata) if payment.payment_metadata else []
        return cls.model_validate(data)
