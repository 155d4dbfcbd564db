"""Read-only AMM quote endpoints.

GET /markets/{market_id}/prices                              — current YES/NO prices
GET /markets/{market_id}/quote?outcome_id=&amount=           — shares for a stake
GET /markets/{market_id}/cost?outcome_id=&shares=            — stake for N shares
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_amm.application.service import QuoteService
from src.pm_common.database import get_db_session
from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import CurrentUser, get_current_user

router = APIRouter(prefix="/markets", tags=["amm"])

_service = QuoteService()


@router.get("/{market_id}/prices")
async def get_prices(
    market_id: str,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await _service.get_prices(db, market_id)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.get("/{market_id}/quote")
async def quote_buy(
    market_id: str,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    outcome_id: str = Query(...),
    amount: float = Query(..., gt=0),
) -> ApiResponse:
    data = await _service.quote_buy(db, market_id, outcome_id, amount)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.get("/{market_id}/cost")
async def quote_cost(
    market_id: str,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    outcome_id: str = Query(...),
    shares: float = Query(..., gt=0),
) -> ApiResponse:
    data = await _service.quote_cost(db, market_id, outcome_id, shares)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))
