import json
import logging
import uuid
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..config import settings
from ..db import async_session, utcnow
from ..models import Payment, PaymentStatus, default_cut_off
from ..schemas import CreatePaymentIn, PaymentOut
from ..security import require_service_token
from ..services.qr import make_qr_data_url
from ..services.yappy import generate_complete_yappy_qr

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/internal", tags=["internal"], dependencies=[Depends(require_service_token)])


def fallback_payment_url(payment: Payment) -> str:
    return (
        f"{settings.base_url}/pay/{payment.uuid}"
        f"?amount={payment.amount}&currency={payment.currency}"
        f"&description={quote(payment.description or '', safe='')}"
    )


async def get_payment_or_404(session: AsyncSession, payment_uuid: str) -> Payment:
    res = await session.exec(select(Payment).where(Payment.uuid == payment_uuid))
    found = res.one_or_none()
    if found is None:
        raise HTTPException(status_code=404, detail="Payment not found")
    return found


async def build_payment_qr(payment: Payment) -> str:
    """QR data URL for the official Yappy URL, or for the local pay page when that flow fails."""
    try:
        payment_url = await generate_complete_yappy_qr({
            "amount": payment.amount,
            "currency": payment.currency,
            "description": payment.description or "",
            "reference": payment.uuid,
        })
    except Exception:
        logger.exception("Error generating Yappy payment URL for %s", payment.uuid)
        payment_url = None

    if payment_url:
        logger.info("Using official Yappy payment URL for %s", payment.uuid)
    else:
        payment_url = fallback_payment_url(payment)
        logger.warning("Falling back to local payment URL: %s", payment_url)
    return make_qr_data_url(payment_url)


@router.post("/create-payment", response_model=PaymentOut)
async def create_payment(payload: CreatePaymentIn):
    """Persist a payment for the demo UI and attach its QR code."""
    created_at = payload.created_at or utcnow()
    payment = Payment(
        uuid=payload.uuid or str(uuid.uuid4()),
        number=payload.number,
        amount=payload.amount,
        currency=payload.currency,
        description=payload.description,
        bill_description=payload.bill_description,
        status=payload.status,
        created_at=created_at,
        updated_at=utcnow(),
        payment_date=payload.payment_date,
        cut_off_date=payload.cut_off_date or default_cut_off(created_at),
        payment_metadata=json.dumps(payload.metadata) if payload.metadata else None,
    )

    # the QR flow calls back into this service, so no session stays open across it
    try:
        async with async_session() as session:
            session.add(payment)
            await session.commit()
            await session.refresh(payment)
    except IntegrityError:
        raise HTTPException(status_code=409, detail=f"Payment {payment.uuid} already exists")
    except SQLAlchemyError as e:
        logger.exception("Error saving payment to database")
        raise HTTPException(status_code=500, detail=f"Error saving payment to database: {e}")

    qr_code_data = await build_payment_qr(payment)

    try:
        async with async_session() as session:
            payment.qr_code_data = qr_code_data
            payment.updated_at = utcnow()
            session.add(payment)
            await session.commit()
            await session.refresh(payment)
    except SQLAlchemyError as e:
        logger.exception("Error updating payment %s with QR code", payment.uuid)
        raise HTTPException(status_code=500, detail=f"Error updating payment with QR code: {e}")

    return PaymentOut.from_payment(payment)


@router.get("/payments/{payment_uuid}", response_model=PaymentOut)
async def get_payment(payment_uuid: str):
    async with async_session() as session:
        payment = await get_payment_or_404(session, payment_uuid)
    return PaymentOut.from_payment(payment)


@router.post("/payments/{payment_uuid}/confirm", response_model=PaymentOut)
async def confirm_payment(payment_uuid: str):
    """Mark a PENDING payment as COMPLETED, as the demo pay page does."""
    async with async_session() as session:
        payment = await get_payment_or_404(session, payment_uuid)
        if payment.status != PaymentStatus.PENDING:
            raise HTTPException(status_code=409, detail=f"Payment is {payment.status.value}")
        now = utcnow()
        payment.status = PaymentStatus.COMPLETED
        payment.payment_date = now
        payment.updated_at = now
        session.add(payment)
        await session.commit()
        await session.refresh(payment)
    logger.info("Payment %s completed", payment_uuid)
    return PaymentOut.from_payment(payment)
