"""
Client side of the Yappy flow used to build the payment QR:

1. open a session (login with today's hash)
2. read the collection methods and pick the INTEGRACION_YAPPY one
3. build the official payment URL from its groupId/deviceId
"""
import logging
from typing import Optional, TypedDict
from urllib.parse import urlencode, quote

import httpx

from ..config import settings
from ..security import current_yappy_date, generate_yappy_hash

logger = logging.getLogger(__name__)

INTEGRATION_TYPE = "INTEGRACION_YAPPY"


class YappyQRData(TypedDict):
    amount: float
    currency: str
    description: str
    reference: str


class CollectionData(TypedDict):
    groupId: str
    deviceId: str
    alias: str


def _credential_headers() -> dict:
    return {
        "api-key": settings.yappy_commerce_api_key,
        "secret-key": settings.yappy_commerce_secret_key,
    }


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=settings.base_url, timeout=settings.http_timeout)


async def create_yappy_session(client: httpx.AsyncClient) -> Optional[str]:
    auth_code = generate_yappy_hash(
        settings.yappy_commerce_api_key, current_yappy_date(), settings.yappy_commerce_secret_key
    )
    headers = _credential_headers()
    headers["authorization"] = f"Bearer {auth_code}"
    try:
        resp = await client.post("/api/v1/session/login", json={"body": {"code": auth_code}}, headers=headers)
        data = resp.json()
    except (httpx.HTTPError, ValueError):
        logger.exception("Error creating Yappy session")
        return None

    token = (data.get("body") or {}).get("token")
    if data.get("status", {}).get("code") == "YP-0000" and token:
        return token
    logger.warning("Yappy login rejected: %s", data.get("status"))
    return None


async def get_yappy_collection_method(client: httpx.AsyncClient, session_token: Optional[str] = None) -> Optional[CollectionData]:
    headers = _credential_headers()
    if session_token:
        headers["authorization"] = f"Bearer {session_token}"
    try:
        resp = await client.get("/api/v1/collection-method", headers=headers)
        data = resp.json()
    except (httpx.HTTPError, ValueError):
        logger.exception("Error getting collection method")
        return None

    if data.get("status", {}).get("code") == "YP-0000":
        collections = (data.get("body") or {}).get("collections", [])
        method = next((c for c in collections if c.get("type") == INTEGRATION_TYPE), None)
        if method and method.get("details"):
            details = {d.get("id"): d.get("value") for d in method["details"]}
            if details.get("groupId") and details.get("deviceId"):
                return {
                    "groupId": details["groupId"],
                    "deviceId": details["deviceId"],
                    "alias": method.get("alias"),
                }

    logger.warning("Collection method response without %s: %s", INTEGRATION_TYPE, data)
    return None


async def close_yappy_session(client: httpx.AsyncClient, session_token: str) -> bool:
    headers = _credential_headers()
    headers["authorization"] = f"Bearer {session_token}"
    try:
        resp = await client.get("/api/v1/session/logout", headers=headers)
        data = resp.json()
    except (httpx.HTTPError, ValueError):
        logger.exception("Error closing Yappy session")
        return False
    return data.get("status", {}).get("code") == "YP-0000"


def generate_yappy_payment_url(data: YappyQRData, collection: CollectionData) -> str:
    params = {
        "merchant": settings.yappy_commerce_api_key,
        "alias": collection["alias"],
        "amount": str(data["amount"]),
        "currency": data["currency"],
        "reference": data["reference"],
        # Yappy expects the description pre-encoded inside the query value
        "description": quote(data["description"], safe=""),
        "groupId": collection["groupId"],
        "deviceId": collection["deviceId"],
    }
    return f"{settings.yappy_payment_base}?{urlencode(params)}"


async def generate_complete_yappy_qr(data: YappyQRData, client: Optional[httpx.AsyncClient] = None) -> Optional[str]:
    """
    Run the full session -> collection method -> URL flow.
    Returns the official payment URL, or None if any step fails.
    """
    if client is None:
        async with _client() as own_client:
            return await generate_complete_yappy_qr(data, own_client)

    logger.info("Starting Yappy QR generation for %s", data["reference"])
    session_token = await create_yappy_session(client)
    if not session_token:
        logger.error("Failed to create Yappy session")
        return None

    try:
        collection = await get_yappy_collection_method(client, session_token)
    finally:
        await close_yappy_session(client, session_token)
    if not collection:
        logger.error("Failed to get collection method")
        return None
    logger.info("Collection method obtained: %s", collection["alias"])

    payment_url = generate_yappy_payment_url(data, collection)
    logger.info("Official payment URL generated: %s", payment_url)
    return payment_url
