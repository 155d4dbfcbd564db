"""Pydantic schemas for the dispute API."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from src.pm_dispute.domain.models import Dispute, DisputeResult, DisputeVote, VoteTally


class OpenDisputeRequest(BaseModel):
    reason: str = Field(..., min_length=10, max_length=2000)
    snapshot_ref: str | None = Field(None, max_length=256)


class CastVoteRequest(BaseModel):
    vote: Literal["UPHOLD", "OVERTURN", "ABSTAIN"]


class ResolveDisputeRequest(BaseModel):
    outcome: Literal["UPHELD", "OVERTURNED", "DISMISSED"]


class VoteTallyResponse(BaseModel):
    votes: int
    weight: int
    uphold_weight: int
    overturn_weight: int
    abstain_weight: int

    @classmethod
    def from_domain(cls, t: VoteTally) -> "VoteTallyResponse":
        return cls(
            votes=t.votes,
            weight=t.weight,
            uphold_weight=t.uphold_weight,
            overturn_weight=t.overturn_weight,
            abstain_weight=t.abstain_weight,
        )


class DisputeResponse(BaseModel):
    id: str
    market_id: str
    resolution_id: str
    opened_by: str
    reason: str
    snapshot_ref: str | None
    stake: int
    status: str
    outcome: str | None
    resolved_source: str | None
    resolved_by: str | None
    opened_at: datetime | None
    closed_at: datetime | None
    tally: VoteTallyResponse | None = None

    @classmethod
    def from_domain(cls, d: Dispute, tally: VoteTally | None = None) -> "DisputeResponse":
        return cls(
            id=d.id,
            market_id=d.market_id,
            resolution_id=d.resolution_id,
            opened_by=d.opened_by,
            reason=d.reason,
            snapshot_ref=d.snapshot_ref,
            stake=d.stake,
            status=d.status,
            outcome=d.outcome,
            resolved_source=d.resolved_source,
            resolved_by=d.resolved_by,
            opened_at=d.opened_at,
            closed_at=d.closed_at,
            tally=VoteTallyResponse.from_domain(tally) if tally is not None else None,
        )


class DisputeVoteResponse(BaseModel):
    id: int
    dispute_id: str
    user_id: str
    vote: str
    weight: int
    created_at: datetime | None

    @classmethod
    def from_domain(cls, v: DisputeVote) -> "DisputeVoteResponse":
        return cls(
            id=v.id,
            dispute_id=v.dispute_id,
            user_id=v.user_id,
            vote=v.vote,
            weight=v.weight,
            created_at=v.created_at,
        )


class DisputeResultResponse(BaseModel):
    dispute: DisputeResponse
    market_status: str
    rewards_applied: int
    points_rewarded: int

    @classmethod
    def from_domain(cls, r: DisputeResult) -> "DisputeResultResponse":
        return cls(
            dispute=DisputeResponse.from_domain(r.dispute),
            market_status=r.market_status,
            rewards_applied=r.rewards_applied,
            points_rewarded=r.points_rewarded,
        )
