import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from ..db import async_session, utcnow
from ..errors import (
    YappyError,
    SUCCESS,
    REVERSAL_ERROR,
    REVERSAL_SETTLED,
    REVERSAL_FAILED_TXN,
    REVERSAL_ALREADY_REVERSED,
)
from ..models import Payment, PaymentStatus
from ..schemas import yappy_response
from ..security import validate_yappy_auth, require_open_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/transaction", tags=["transaction"])


def check_reversible(payment: Payment, now: datetime) -> None:
    """Raise the matching YappyError when ``payment`` can't be reversed at ``now``."""
    if payment.status == PaymentStatus.FAILED:
        raise YappyError(REVERSAL_FAILED_TXN, 400)
    if payment.status == PaymentStatus.REVERSED:
        raise YappyError(REVERSAL_ALREADY_REVERSED, 400)
    # already settled
    if now > payment.cut_off_date:
        raise YappyError(REVERSAL_SETTLED, 400)


@router.put("/{transaction_id}", dependencies=[Depends(validate_yappy_auth), Depends(require_open_session)])
async def reverse_transaction(transaction_id: str):
    """Reverse a payment that has not reached its cut-off date."""
    try:
        async with async_session() as session:
            res = await session.exec(select(Payment).where(Payment.uuid == transaction_id))
            payment = res.one_or_none()
            if payment is None:
                logger.info("Reversal requested for unknown transaction %s", transaction_id)
                raise YappyError(REVERSAL_ERROR, 400)

            now = utcnow()
            check_reversible(payment, now)

            payment.status = PaymentStatus.REVERSED
            payment.updated_at = now
            session.add(payment)
            await session.commit()
    except SQLAlchemyError:
        logger.exception("Error updating payment status for %s", transaction_id)
        raise YappyError(REVERSAL_ERROR, 500)

    logger.info("Transaction %s reversed", transaction_id)
    return yappy_response(SUCCESS)
