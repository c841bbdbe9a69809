"""
Yappy header authentication and session tokens.

Login is authorised by an HMAC-SHA256 of ``api_key + YYYY-MM-DD`` keyed with
the commerce secret key. Every other /api/v1 call presents the api-key and
secret-key headers and, optionally, the session token issued at login.
"""
import base64
import hashlib
import hmac
import json
import logging
import os
import time
import uuid
from typing import Optional

from fastapi import Header, HTTPException
from sqlmodel import select

from .config import settings
from .db import async_session, utcnow
from .errors import YappyError, MISSING_HEADERS, INVALID_HASH, INVALID_SESSION
from .models import YappySession, SessionState

logger = logging.getLogger(__name__)

# protected header {"enc":"A256GCM","alg":"RSA-OAEP-256"}
JWE_HEADER = "eyJlbmMiOiJBMjU2R0NNIiwiYWxnIjoiUlNBLU9BRVAtMjU2In0"
SESSION_TTL_SECONDS = 60 * 60


def generate_yappy_hash(api_key: str, date: str, secret_key: str) -> str:
    return hmac.new(
        secret_key.encode("utf-8"),
        f"{api_key}{date}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def current_yappy_date() -> str:
    return utcnow().date().isoformat()


def expected_login_hash() -> str:
    return generate_yappy_hash(
        settings.yappy_commerce_api_key, current_yappy_date(), settings.yappy_commerce_secret_key
    )


def _same(a: Optional[str], b: str) -> bool:
    return a is not None and hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def is_valid_login_code(code: Optional[str]) -> bool:
    return _same(code, expected_login_hash())


def bearer_value(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    value = authorization.replace("Bearer ", "", 1).strip()
    return value or None


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def generate_session_token() -> str:
    """
    Build a JWE-shaped session token. The segments look like a compact JWE
    but nothing is encrypted; the token is only ever checked against the
    sessions table.
    """
    now = int(time.time())
    payload = {
        "iss": "yappy-commerce",
        "iat": now,
        "exp": now + SESSION_TTL_SECONDS,
        "merchant_id": settings.yappy_commerce_api_key,
        "session_id": str(uuid.uuid4()),
    }
    encrypted_key = _b64url(json.dumps(payload).encode("utf-8"))
    iv = _b64url(os.urandom(12))
    ciphertext = _b64url(f"{uuid.uuid4()}{now * 1000}".encode("utf-8"))
    auth_tag = _b64url(os.urandom(16))
    return ".".join([JWE_HEADER, encrypted_key, iv, ciphertext, auth_tag])


def validate_session_token(token: Optional[str]) -> bool:
    if not token or not token.startswith("eyJlbmMi"):
        return False
    return len(token.split(".")) >= 3


# --- FastAPI dependencies ---

def validate_yappy_auth(
    api_key: Optional[str] = Header(default=None),
    secret_key: Optional[str] = Header(default=None),
):
    if not api_key or not secret_key:
        raise YappyError(MISSING_HEADERS, 401)
    if not (_same(api_key, settings.yappy_commerce_api_key)
            and _same(secret_key, settings.yappy_commerce_secret_key)):
        logger.warning("Rejected request with unknown api-key/secret-key pair")
        raise YappyError(MISSING_HEADERS, 401)
    return True


def validate_login_auth(
    api_key: Optional[str] = Header(default=None),
    secret_key: Optional[str] = Header(default=None),
    authorization: Optional[str] = Header(default=None),
):
    validate_yappy_auth(api_key, secret_key)
    presented = bearer_value(authorization)
    if presented is not None and not is_valid_login_code(presented):
        logger.debug("Login bearer hash mismatch: %s", presented)
        raise YappyError(INVALID_HASH, 401)
    return True


async def require_open_session(authorization: Optional[str] = Header(default=None)) -> Optional[YappySession]:
    token = bearer_value(authorization)
    if token is None:
        if settings.yappy_session_required:
            raise YappyError(INVALID_SESSION, 401)
        return None
    if not validate_session_token(token):
        raise YappyError(INVALID_SESSION, 401)

    async with async_session() as session:
        q = select(YappySession).where(
            YappySession.token == token, YappySession.state == SessionState.OPEN
        )
        res = await session.exec(q)
        found = res.first()
    if found is None:
        raise YappyError(INVALID_SESSION, 401)
    return found


def require_service_token(authorization: Optional[str] = Header(default=None)):
    if not settings.security_token:
        return True
    if authorization is None or not _same(authorization, f"Bearer {settings.security_token}"):
        raise HTTPException(status_code=401, detail="Invalid security token")
    return True
