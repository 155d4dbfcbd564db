"""PositionLedger — single source of truth for what users hold per outcome.

One row per (user, market, outcome). Fills blend the average entry price of
their own unit. At settlement winners book payout minus cost basis as
realized P&L; losing outcomes are zeroed with the cost basis booked as a
loss, and the row is kept for history.
"""

import logging
import math
from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.enums import StakeUnit, TradeSide
from src.pm_common.errors import InvalidQuantityError
from src.pm_position.domain.models import Position, PositionPage
from src.pm_position.domain.repository import PositionRepositoryProtocol
from src.pm_position.infrastructure.persistence import PositionRepository

logger = logging.getLogger(__name__)


class PositionLedger:
    def __init__(self, repo: PositionRepositoryProtocol | None = None) -> None:
        self._repo: PositionRepositoryProtocol = repo or PositionRepository()

    async def get(
        self, db: AsyncSession, user_id: str, market_id: str, outcome_id: str
    ) -> Position | None:
        return await self._repo.get(db, user_id, market_id, outcome_id)

    async def apply_fill(
        self,
        db: AsyncSession,
        user_id: str,
        market_id: str,
        outcome_id: str,
        side: TradeSide,
        delta_quantity: float,
        fill_price: float,
        unit: StakeUnit = StakeUnit.POINTS,
    ) -> Position:
        if not delta_quantity > 0 or not math.isfinite(delta_quantity):
            raise InvalidQuantityError(f"fill quantity must be positive, got {delta_quantity}")
        if not 0 < fill_price < 1:
            raise InvalidQuantityError(f"fill price must be in (0, 1), got {fill_price}")
        position = await self._repo.upsert_fill(
            db, user_id, market_id, outcome_id, unit.value, delta_quantity, fill_price
        )
        logger.debug(
            "Fill applied: user=%s market=%s outcome=%s side=%s qty=%s price=%s avg=%s",
            user_id, market_id, outcome_id, side.value, delta_quantity, fill_price,
            position.avg_price,
        )
        return position

    async def liquidate(self, db: AsyncSession, market_id: str, outcome_id: str) -> int:
        """Zero every position on a losing outcome. A second call changes nothing."""
        count = await self._repo.zero_outcome(db, market_id, outcome_id)
        logger.info(
            "Liquidated outcome: market=%s outcome=%s positions=%d",
            market_id, outcome_id, count,
        )
        return count

    async def realize(
        self, db: AsyncSession, position: Position, payout: int, unit: StakeUnit
    ) -> float:
        """Book a settlement payout against the cost basis of `unit`. Returns the P&L."""
        pnl = payout - position.cost_basis(unit)
        if unit == StakeUnit.POINTS:
            await self._repo.add_realized_pnl(db, position.id, pnl, 0.0)
        else:
            await self._repo.add_realized_pnl(db, position.id, 0.0, pnl)
        return pnl

    async def list_for_market(
        self,
        db: AsyncSession,
        market_id: str,
        after_id: int | None = None,
        limit: int = 500,
        open_only: bool = True,
    ) -> PositionPage:
        items = await self._repo.list_for_market(db, market_id, after_id, limit, open_only)
        next_cursor = items[-1].id if len(items) == limit else None
        return PositionPage(items=items, next_cursor=next_cursor)

    async def iter_market_pages(
        self, db: AsyncSession, market_id: str, page_size: int
    ) -> AsyncIterator[PositionPage]:
        """Yield keyset pages of open positions until the market is exhausted."""
        after_id: int | None = None
        while True:
            page = await self.list_for_market(db, market_id, after_id, page_size)
            if page.items:
                yield page
            if page.next_cursor is None:
                return
            after_id = page.next_cursor
