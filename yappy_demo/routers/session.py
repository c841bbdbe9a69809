import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from ..db import async_session, utcnow
from ..errors import YappyError, SUCCESS, INVALID_BODY, INVALID_HASH, GENERIC_FAILURE
from ..models import YappySession, SessionState
from ..schemas import SessionLoginIn, yappy_response
from ..security import (
    validate_login_auth,
    validate_yappy_auth,
    is_valid_login_code,
    generate_session_token,
    bearer_value,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/session", tags=["session"])


@router.post("/login", dependencies=[Depends(validate_login_auth)])
async def login(payload: SessionLoginIn):
    """Open a session when the presented code matches today's hash."""
    if payload.body is None or not payload.body.code:
        raise YappyError(INVALID_BODY, 400)

    received_code = payload.body.code
    logger.debug("Received session code: %s", received_code)
    if not is_valid_login_code(received_code):
        raise YappyError(INVALID_HASH, 401)

    token = generate_session_token()
    open_at = utcnow()
    try:
        async with async_session() as session:
            session.add(YappySession(
                token=token,
                code=received_code,
                state=SessionState.OPEN,
                open_at=open_at,
                created_at=open_at,
            ))
            await session.commit()
    except SQLAlchemyError:
        logger.exception("Database error while opening session")
        raise YappyError(GENERIC_FAILURE, 500)

    logger.info("Yappy session opened")
    return yappy_response(SUCCESS, {
        "token": token,
        "state": SessionState.OPEN.value,
        "open_at": open_at.isoformat(),
    })


@router.get("/logout", dependencies=[Depends(validate_yappy_auth)])
async def logout(authorization: Optional[str] = Header(default=None)):
    """Close the OPEN session(s) for the presented token, if any."""
    token = bearer_value(authorization)
    if token:
        try:
            async with async_session() as session:
                q = select(YappySession).where(
                    YappySession.token == token, YappySession.state == SessionState.OPEN
                )
                res = await session.exec(q)
                closed_at = utcnow()
                for found in res.all():
                    found.state = SessionState.CLOSED
                    found.closed_at = closed_at
                    session.add(found)
                await session.commit()
        except SQLAlchemyError:
            logger.exception("Error closing session")
            raise YappyError(GENERIC_FAILURE, 500)

    return yappy_response(SUCCESS)
