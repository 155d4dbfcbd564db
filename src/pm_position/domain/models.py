"""Domain models for pm_position — pure dataclasses."""

from dataclasses import dataclass
from datetime import datetime

from src.pm_common.enums import StakeUnit


@dataclass
class Position:
    id: int                          # BIGSERIAL, keyset cursor for settlement paging
    user_id: str
    market_id: str
    outcome_id: str
    qty_points: float = 0.0
    qty_token_amount: float = 0.0
    avg_price: float | None = None         # points fills only, (0, 1) while held
    avg_price_token: float | None = None   # token fills only
    realized_pnl_pts: float = 0.0
    realized_pnl_token: float = 0.0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.qty_points > 0 or self.qty_token_amount > 0

    def quantity(self, unit: StakeUnit) -> float:
        return self.qty_points if unit == StakeUnit.POINTS else self.qty_token_amount

    def average(self, unit: StakeUnit) -> float | None:
        return self.avg_price if unit == StakeUnit.POINTS else self.avg_price_token

    def cost_basis(self, unit: StakeUnit) -> float:
        avg = self.average(unit)
        return (avg or 0.0) * self.quantity(unit)

    @property
    def settled_unit(self) -> StakeUnit:
        """Unit a winning payout is measured in: points first, tokens otherwise."""
        return StakeUnit.POINTS if self.qty_points > 0 else StakeUnit.TOKEN

    def unrealized_pnl(self, mark_price: float) -> float:
        """Mark-to-market gain over cost, summed across both units."""
        total = 0.0
        for unit in StakeUnit:
            qty = self.quantity(unit)
            if qty > 0:
                total += mark_price * qty - self.cost_basis(unit)
        return total


@dataclass
class PositionPage:
    items: list[Position]
    next_cursor: int | None          # last position id in the page, None when exhausted
