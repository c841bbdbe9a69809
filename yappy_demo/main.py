import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.exception_handlers import http_exception_handler, request_validation_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .routers import session, collection, movement, transaction, payments
from .db import init_db
from .config import settings
from .errors import YappyError, INVALID_BODY, PROCESSING_ERROR
from .schemas import yappy_response

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

YAPPY_PREFIX = "/api/v1"

app = FastAPI(title="Yappy Payments Demo")

# CORS - origins of the demo UI, see CORS_ORIGINS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(session.router)
app.include_router(collection.router)
app.include_router(movement.router)
app.include_router(transaction.router)
app.include_router(payments.router)


@app.exception_handler(YappyError)
async def yappy_error_handler(request: Request, exc: YappyError):
    logger.info("%s %s -> %s", request.method, request.url.path, exc.status.code)
    return yappy_response(exc.status, http_status=exc.http_status)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    if request.url.path.startswith(YAPPY_PREFIX):
        logger.info("Invalid body on %s: %s", request.url.path, exc.errors())
        return yappy_response(INVALID_BODY, http_status=400)
    return await request_validation_exception_handler(request, exc)


@app.exception_handler(StarletteHTTPException)
async def method_not_allowed_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405 and request.url.path.startswith(YAPPY_PREFIX):
        return yappy_response(PROCESSING_ERROR, http_status=405)
    return await http_exception_handler(request, exc)


@app.on_event("startup")
async def on_startup():
    # init db tables if not using migrations
    await init_db()


if __name__ == "__main__":
    uvicorn.run("yappy_demo.main:app", host=settings.app_host, port=settings.app_port, reload=(settings.env != "production"))
