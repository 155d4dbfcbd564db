"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError

from config.settings import settings
from src.pm_account.api.router import router as points_router
from src.pm_amm.api.router import router as amm_router
from src.pm_common.database import check_connection, dispose_engine
from src.pm_common.errors import AppError, InternalError, TransientStoreError
from src.pm_common.redis_client import close_redis, get_redis
from src.pm_common.response import error_response
from src.pm_dispute.api.router import router as dispute_router
from src.pm_gateway.middleware.request_log import RequestLogMiddleware
from src.pm_market.api.router import router as market_router
from src.pm_position.api.router import router as position_router
from src.pm_settlement.api.router import router as settlement_router
from src.pm_trade.api.router import router as trade_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis connections. Shutdown: dispose."""
    # Startup
    await check_connection()
    await get_redis()
    logger.info("%s started", settings.APP_NAME)
    yield
    # Shutdown
    await dispose_engine()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


def _error_json(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, getattr(request.state, "request_id", None))
    return JSONResponse(status_code=exc.http_status, content=resp.model_dump())


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return _error_json(request, exc)


@app.exception_handler(DBAPIError)
async def store_error_handler(request: Request, exc: DBAPIError) -> JSONResponse:
    # Driver detail goes to the log only
    logger.error("Store error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_json(request, TransientStoreError())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_json(request, InternalError())


app.include_router(market_router, prefix="/api/v1")
app.include_router(amm_router, prefix="/api/v1")
app.include_router(trade_router, prefix="/api/v1")
app.include_router(position_router, prefix="/api/v1")
app.include_router(points_router, prefix="/api/v1")
app.include_router(settlement_router, prefix="/api/v1")
app.include_router(dispute_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
