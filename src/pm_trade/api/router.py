# src/pm_trade/api/router.py
"""pm_trade REST endpoints.

POST /trades                      — place a trade (bet)
GET  /trades/{trade_id}           — caller's trade
POST /trades/{trade_id}/cancel    — cancel a PENDING trade
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.database import get_db_session
from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import CurrentUser, get_current_user
from src.pm_trade.application.schemas import PlaceTradeRequest
from src.pm_trade.application.service import TradeApplicationService, get_trade_service

router = APIRouter(prefix="/trades", tags=["trades"])


@router.post("", status_code=201)
async def place_trade(
    body: PlaceTradeRequest,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[TradeApplicationService, Depends(get_trade_service)],
) -> ApiResponse:
    data = await service.place_trade(db, current_user.id, body)
    resp = success_response(data.model_dump(mode="json"))
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/{trade_id}")
async def get_trade(
    trade_id: str,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[TradeApplicationService, Depends(get_trade_service)],
) -> ApiResponse:
    data = await service.get_trade(db, current_user.id, trade_id)
    resp = success_response(data.model_dump(mode="json"))
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/{trade_id}/cancel")
async def cancel_trade(
    trade_id: str,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[TradeApplicationService, Depends(get_trade_service)],
) -> ApiResponse:
    data = await service.cancel_trade(db, current_user.id, trade_id)
    resp = success_response(data.model_dump(mode="json"))
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
