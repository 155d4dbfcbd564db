"""Storage contract for per-outcome positions."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_position.domain.models import Position


class PositionRepositoryProtocol(Protocol):
    async def get(
        self, db: AsyncSession, user_id: str, market_id: str, outcome_id: str
    ) -> Position | None: ...

    async def upsert_fill(
        self,
        db: AsyncSession,
        user_id: str,
        market_id: str,
        outcome_id: str,
        unit: str,
        delta: float,
        fill_price: float,
    ) -> Position:
        """Create or weighted-average update in one atomic statement."""
        ...

    async def zero_outcome(
        self, db: AsyncSession, market_id: str, outcome_id: str
    ) -> int:
        """Zero both quantities for every open position on the outcome, booking the
        cost basis as realized loss. Returns rows changed."""
        ...

    async def add_realized_pnl(
        self, db: AsyncSession, position_id: int, pnl_points: float, pnl_token: float
    ) -> None: ...

    async def list_for_market(
        self,
        db: AsyncSession,
        market_id: str,
        after_id: int | None,
        limit: int,
        open_only: bool,
    ) -> list[Position]:
        """Keyset page ordered by id ascending."""
        ...

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        market_id: str | None,
        after_id: int | None,
        limit: int,
    ) -> list[Position]: ...
