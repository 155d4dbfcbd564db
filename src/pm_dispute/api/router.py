# src/pm_dispute/api/router.py
"""Dispute endpoints.

POST /markets/{market_id}/disputes        — open a dispute on a resolved market
POST /disputes/{dispute_id}/votes         — cast a weighted vote
GET  /disputes/{dispute_id}               — dispute with its vote tally
POST /admin/disputes/{dispute_id}/resolve — close a dispute (admin role required)
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.database import get_db_session
from src.pm_common.enums import DisputeOutcome, DisputeVoteChoice
from src.pm_common.response import ApiResponse, success_response
from src.pm_dispute.application.schemas import (
    CastVoteRequest,
    DisputeResponse,
    DisputeResultResponse,
    DisputeVoteResponse,
    OpenDisputeRequest,
    ResolveDisputeRequest,
)
from src.pm_dispute.application.service import get_dispute_arbiter
from src.pm_dispute.domain.arbiter import DisputeArbiter
from src.pm_gateway.auth.dependencies import CurrentUser, get_current_user, require_admin

router = APIRouter(tags=["disputes"])


@router.post("/markets/{market_id}/disputes", status_code=201)
async def open_dispute(
    market_id: str,
    body: OpenDisputeRequest,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    arbiter: Annotated[DisputeArbiter, Depends(get_dispute_arbiter)],
) -> ApiResponse:
    dispute = await arbiter.open_dispute(
        db, market_id, current_user.id, body.reason, body.snapshot_ref
    )
    data = DisputeResponse.from_domain(dispute).model_dump(mode="json")
    return success_response(data, getattr(request.state, "request_id", None))


@router.post("/disputes/{dispute_id}/votes", status_code=201)
async def cast_vote(
    dispute_id: str,
    body: CastVoteRequest,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    arbiter: Annotated[DisputeArbiter, Depends(get_dispute_arbiter)],
) -> ApiResponse:
    vote = await arbiter.cast_vote(db, dispute_id, current_user.id, DisputeVoteChoice(body.vote))
    data = DisputeVoteResponse.from_domain(vote).model_dump(mode="json")
    return success_response(data, getattr(request.state, "request_id", None))


@router.get("/disputes/{dispute_id}")
async def get_dispute(
    dispute_id: str,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    arbiter: Annotated[DisputeArbiter, Depends(get_dispute_arbiter)],
) -> ApiResponse:
    dispute, tally = await arbiter.get_dispute(db, dispute_id)
    data = DisputeResponse.from_domain(dispute, tally).model_dump(mode="json")
    return success_response(data, getattr(request.state, "request_id", None))


@router.post("/admin/disputes/{dispute_id}/resolve")
async def resolve_dispute(
    dispute_id: str,
    body: ResolveDisputeRequest,
    request: Request,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    arbiter: Annotated[DisputeArbiter, Depends(get_dispute_arbiter)],
) -> ApiResponse:
    result = await arbiter.resolve_dispute(
        db, dispute_id, DisputeOutcome(body.outcome), admin.id
    )
    data = DisputeResultResponse.from_domain(result).model_dump(mode="json")
    return success_response(data, getattr(request.state, "request_id", None))
