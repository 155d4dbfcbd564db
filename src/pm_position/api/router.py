# src/pm_position/api/router.py
"""Positions REST API — 2 endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.database import get_db_session
from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import CurrentUser, get_current_user
from src.pm_position.application.service import PositionQueryService

router = APIRouter(prefix="/positions", tags=["positions"])
_service = PositionQueryService()


@router.get("")
async def list_positions(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    data = await _service.list_positions(db, current_user.id, None, cursor, limit)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.get("/markets/{market_id}")
async def list_market_positions(
    market_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    data = await _service.list_positions(db, current_user.id, market_id, cursor, limit)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))
