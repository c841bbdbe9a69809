import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from ..db import async_session
from ..errors import (
    YappyError,
    SUCCESS,
    NO_DATA,
    INVALID_BODY,
    TOO_MANY_ALIASES,
    LIMIT_OUT_OF_RANGE,
    GENERIC_FAILURE,
)
from ..models import Payment
from ..schemas import MovementHistoryIn, parse_yappy_datetime, yappy_response
from ..security import validate_yappy_auth, require_open_session
from ..services.movements import (
    MOVEMENT_ROLE,
    movement_from_payment,
    encode_page_token,
    decode_page_token,
    query_history,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/movement",
    tags=["movement"],
    dependencies=[Depends(validate_yappy_auth), Depends(require_open_session)],
)

MAX_LIMIT = 100
MAX_ALIASES = 25


@router.post("/history")
async def movement_history(payload: MovementHistoryIn):
    if payload.body is None or payload.body.pagination is None:
        raise YappyError(INVALID_BODY, 400)

    pagination = payload.body.pagination
    filters = payload.body.filter or []

    if pagination.limit > MAX_LIMIT or pagination.limit < 1:
        raise YappyError(LIMIT_OUT_OF_RANGE, 400)

    try:
        start = parse_yappy_datetime(pagination.start_date)
        end = parse_yappy_datetime(pagination.end_date, end_of_day=True)
        cursor = decode_page_token(pagination.token) if pagination.token else None
    except ValueError:
        raise YappyError(INVALID_BODY, 400)

    role_mismatch = False
    for item in filters:
        if item.id == "ROLE":
            role_mismatch = item.value.upper() != MOVEMENT_ROLE
        elif item.id == "COLLECTION_ALIAS":
            if len(item.value.split("|")) > MAX_ALIASES:
                raise YappyError(TOO_MANY_ALIASES, 400)

    payments = []
    if not role_mismatch:
        try:
            async with async_session() as session:
                payments = await query_history(session, start, end, pagination.limit, cursor)
        except SQLAlchemyError:
            logger.exception("Database error while reading movement history")
            raise YappyError(GENERIC_FAILURE, 500)

    if not payments:
        return yappy_response(NO_DATA)

    page = pagination.model_dump(exclude_none=True)
    page["has_next_page"] = len(payments) == pagination.limit
    page["token"] = encode_page_token(payments[-1])
    return yappy_response(SUCCESS, {
        "pagination": page,
        "transactions": [movement_from_payment(p) for p in payments],
    })


@router.get("/{transaction_id}")
async def movement_detail(transaction_id: str):
    try:
        async with async_session() as session:
            res = await session.exec(select(Payment).where(Payment.uuid == transaction_id))
            payment = res.one_or_none()
    except SQLAlchemyError:
        logger.exception("Database error while reading movement %s", transaction_id)
        raise YappyError(GENERIC_FAILURE, 500)

    if payment is None:
        logger.info("Movement %s not found", transaction_id)
        return yappy_response(NO_DATA)

    return yappy_response(SUCCESS, movement_from_payment(payment))
