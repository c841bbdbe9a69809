import base64
import json
import secrets
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlmodel import and_, or_, select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..models import Payment

MOVEMENT_TYPE = "TXN-CHECKOUT"
MOVEMENT_ROLE = "CREDIT"
MOVEMENT_CATEGORY = "INTERBANK"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def movement_from_payment(payment: Payment) -> dict:
    """Shape a stored payment the way Yappy reports a movement."""
    return {
        "id": payment.uuid,
        "number": payment.number,
        "registration_date": _iso(payment.created_at),
        "payment_date": _iso(payment.payment_date),
        "cut_off_date": _iso(payment.cut_off_date),
        "type": MOVEMENT_TYPE,
        "role": MOVEMENT_ROLE,
        "category": MOVEMENT_CATEGORY,
        "charge": {
            "amount": payment.amount,
            "partial_amount": payment.partial_amount or payment.amount,
            "tip": payment.tip or 0,
            "tax": payment.tax or 0,
            "currency": payment.currency or "USD",
        },
        "fee": {
            "amount": payment.fee_amount or 0,
            "currency": payment.fee_currency or "USD",
        },
        "description": payment.description,
        "bill_description": payment.bill_description,
        "status": payment.status.value if payment.status is not None else None,
        "metadata": json.loads(payment.payment_metadata) if payment.payment_metadata else [],
        "debitor": {
            "alias": payment.debitor_alias,
            "complete_name": payment.debitor_complete_name,
            "alias_type": payment.debitor_alias_type,
            "bank_name": payment.debitor_bank_name,
        },
        "creditor": {
            "alias": payment.creditor_alias,
            "complete_name": payment.creditor_complete_name,
            "alias_type": payment.creditor_alias_type,
            "bank_name": payment.creditor_bank_name,
        },
    }


def encode_page_token(last: Payment) -> str:
    raw = json.dumps({
        "before": last.created_at.isoformat(),
        "id": last.id,
        "nonce": secrets.token_hex(4),
    })
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_page_token(token: str) -> Tuple[datetime, int]:
    """Raises ValueError when the token was not produced by encode_page_token."""
    try:
        raw = json.loads(base64.b64decode(token, validate=True))
        before = datetime.fromisoformat(raw["before"])
        last_id = int(raw["id"])
    except (ValueError, KeyError, TypeError) as e:
        raise ValueError(f"invalid page token: {e}") from e
    if before.tzinfo is None:
        before = before.replace(tzinfo=timezone.utc)
    return before, last_id


async def query_history(session: AsyncSession,
                        start: datetime,
                        end: datetime,
                        limit: int,
                        cursor: Optional[Tuple[datetime, int]] = None,
                        ) -> List[Payment]:
    """Newest first; ``cursor`` is the (created_at, id) of the last row already returned."""
    conditions = [Payment.created_at >= start, Payment.created_at <= end]
    if cursor is not None:
        before, last_id = cursor
        conditions.append(or_(
            Payment.created_at < before,
            and_(Payment.created_at == before, Payment.id < last_id),
        ))
    q = (
        select(Payment)
        .where(*conditions)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .limit(limit)
    )
    res = await session.exec(q)
    return list(res.all())
