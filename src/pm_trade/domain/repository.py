"""Storage contract for trades."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_trade.domain.models import Trade


class TradeRepositoryProtocol(Protocol):
    async def create(self, db: AsyncSession, trade: Trade) -> Trade: ...

    async def get(self, db: AsyncSession, trade_id: str) -> Trade | None: ...

    async def transition(
        self,
        db: AsyncSession,
        trade_id: str,
        from_status: str,
        to_status: str,
        failure_reason: str | None = None,
        shares: float | None = None,
    ) -> Trade | None:
        """Conditional status update; None when the trade was not in from_status."""
        ...

    async def last_filled_price(
        self, db: AsyncSession, market_id: str, outcome_id: str
    ) -> float | None: ...
