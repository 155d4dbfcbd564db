# src/pm_settlement/api/router.py
"""Admin resolution endpoints (admin role required).

POST /admin/markets/{market_id}/resolve      — resolve + settle
POST /admin/markets/{market_id}/settle       — resume an interrupted settlement
GET  /admin/markets/{market_id}/resolution   — resolution record
GET  /admin/markets/{market_id}/eligibility  — advisory pre-check
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.database import get_db_session
from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import CurrentUser, require_admin
from src.pm_settlement.application.schemas import (
    EligibilityResponse,
    ResolutionResponse,
    ResolveMarketRequest,
    SettlementReportResponse,
)
from src.pm_settlement.application.service import get_settlement_engine
from src.pm_settlement.domain.engine import SettlementEngine
from src.pm_settlement.domain.models import ResolveCommand

router = APIRouter(prefix="/admin/markets", tags=["admin"])


@router.post("/{market_id}/resolve")
async def resolve_market(
    market_id: str,
    body: ResolveMarketRequest,
    request: Request,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    engine: Annotated[SettlementEngine, Depends(get_settlement_engine)],
) -> ApiResponse:
    report = await engine.resolve_market(
        db,
        ResolveCommand(
            market_id=market_id,
            winning_outcome_id=body.winning_outcome_id,
            source=body.source,
            resolved_by=admin.id,
            oracle_tx_hash=body.oracle_tx_hash,
            notes=body.notes,
        ),
    )
    data = SettlementReportResponse.from_report(report).model_dump(mode="json")
    return success_response(data, getattr(request.state, "request_id", None))


@router.post("/{market_id}/settle")
async def resume_settlement(
    market_id: str,
    request: Request,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    engine: Annotated[SettlementEngine, Depends(get_settlement_engine)],
) -> ApiResponse:
    report = await engine.resume_settlement(db, market_id)
    data = SettlementReportResponse.from_report(report).model_dump(mode="json")
    return success_response(data, getattr(request.state, "request_id", None))


@router.get("/{market_id}/resolution")
async def get_resolution(
    market_id: str,
    request: Request,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    engine: Annotated[SettlementEngine, Depends(get_settlement_engine)],
) -> ApiResponse:
    resolution = await engine.get_resolution(db, market_id)
    data = ResolutionResponse.from_domain(resolution).model_dump(mode="json")
    return success_response(data, getattr(request.state, "request_id", None))


@router.get("/{market_id}/eligibility")
async def check_eligibility(
    market_id: str,
    request: Request,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    engine: Annotated[SettlementEngine, Depends(get_settlement_engine)],
) -> ApiResponse:
    eligibility = await engine.check_eligibility(db, market_id)
    data = EligibilityResponse.from_domain(eligibility).model_dump()
    return success_response(data, getattr(request.state, "request_id", None))
