"""Pydantic schemas for the admin resolution API."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from src.pm_settlement.domain.models import Eligibility, Resolution, SettlementReport


class ResolveMarketRequest(BaseModel):
    winning_outcome_id: str = Field(..., min_length=1)
    source: Literal["MANUAL", "ORACLE", "COMMUNITY"] = "MANUAL"
    oracle_tx_hash: str | None = None
    notes: str | None = Field(None, max_length=2000)


class ResolutionResponse(BaseModel):
    id: str
    market_id: str
    winning_outcome_id: str
    source: str
    oracle_tx_hash: str | None
    notes: str | None
    resolved_by: str
    resolved_at: datetime
    settled_at: datetime | None
    payouts_applied: int
    points_paid: int

    @classmethod
    def from_domain(cls, r: Resolution) -> "ResolutionResponse":
        return cls(
            id=r.id,
            market_id=r.market_id,
            winning_outcome_id=r.winning_outcome_id,
            source=r.source,
            oracle_tx_hash=r.oracle_tx_hash,
            notes=r.notes,
            resolved_by=r.resolved_by,
            resolved_at=r.resolved_at,
            settled_at=r.settled_at,
            payouts_applied=r.payouts_applied,
            points_paid=r.points_paid,
        )


class SettlementReportResponse(BaseModel):
    market_id: str
    resolution_id: str
    winning_outcome_id: str
    positions_scanned: int
    payouts_applied: int
    payouts_skipped: int
    points_paid: int
    pages: int
    outcomes_liquidated: list[str]
    settled_at: datetime | None

    @classmethod
    def from_report(cls, r: SettlementReport) -> "SettlementReportResponse":
        return cls(
            market_id=r.market_id,
            resolution_id=r.resolution_id,
            winning_outcome_id=r.winning_outcome_id,
            positions_scanned=r.positions_scanned,
            payouts_applied=r.payouts_applied,
            payouts_skipped=r.payouts_skipped,
            points_paid=r.points_paid,
            pages=r.pages,
            outcomes_liquidated=list(r.outcomes_liquidated),
            settled_at=r.settled_at,
        )


class EligibilityResponse(BaseModel):
    market_id: str
    eligible: bool
    requirements: list[str]

    @classmethod
    def from_domain(cls, e: Eligibility) -> "EligibilityResponse":
        return cls(market_id=e.market_id, eligible=e.eligible, requirements=list(e.requirements))
