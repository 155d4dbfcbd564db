# src/pm_position/application/schemas.py
"""Position API response schemas."""
from pydantic import BaseModel

from src.pm_position.domain.models import Position


class PositionResponse(BaseModel):
    id: int
    market_id: str
    outcome_id: str
    qty_points: float
    qty_token_amount: float
    avg_price: float | None
    avg_price_token: float | None
    realized_pnl_pts: float
    realized_pnl_token: float
    mark_price: float | None = None
    unrealized_pnl: float | None = None

    @classmethod
    def from_domain(cls, p: Position, mark_price: float | None = None) -> "PositionResponse":
        return cls(
            id=p.id,
            market_id=p.market_id,
            outcome_id=p.outcome_id,
            qty_points=p.qty_points,
            qty_token_amount=p.qty_token_amount,
            avg_price=p.avg_price,
            avg_price_token=p.avg_price_token,
            realized_pnl_pts=p.realized_pnl_pts,
            realized_pnl_token=p.realized_pnl_token,
            mark_price=mark_price,
            unrealized_pnl=p.unrealized_pnl(mark_price) if mark_price is not None else None,
        )


class PositionListResponse(BaseModel):
    items: list[PositionResponse]
    next_cursor: str | None
    has_more: bool
