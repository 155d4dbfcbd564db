"""Pydantic schemas for the points API."""

from typing import Any

from pydantic import BaseModel

from src.pm_account.domain.models import PointsEntry


class BalanceResponse(BaseModel):
    user_id: str
    balance: int


class PointsEntryItem(BaseModel):
    id: int
    delta: int
    balance_after: int
    reason: str
    ref_type: str | None
    ref_id: str | None
    metadata: dict[str, Any] | None
    created_at: str  # ISO8601 string

    @classmethod
    def from_domain(cls, e: PointsEntry) -> "PointsEntryItem":
        return cls(
            id=e.id,
            delta=e.delta,
            balance_after=e.balance_after,
            reason=e.reason,
            ref_type=e.ref_type,
            ref_id=e.ref_id,
            metadata=e.metadata,
            created_at=e.created_at.isoformat() if e.created_at else "",
        )


class LedgerResponse(BaseModel):
    items: list[PointsEntryItem]
    next_cursor: str | None
    has_more: bool


class MonthlyGrantResponse(BaseModel):
    period: str
    granted: int
    balance: int
    ledger_entry_id: int
