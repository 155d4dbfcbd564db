# src/pm_market/domain/repository.py
"""Market repository Protocol.

Covers markets, their two outcomes and the AMM reserves row, since all three
are read and locked together by trading and settlement.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_amm.domain.models import Reserves
from src.pm_market.domain.models import Market, Outcome


class MarketRepositoryProtocol(Protocol):
    async def get_market(self, db: AsyncSession, market_id: str) -> Market | None: ...

    async def create_market(
        self,
        db: AsyncSession,
        market: Market,
        reserves: Reserves | None,
    ) -> Market: ...

    async def update_status(
        self,
        db: AsyncSession,
        market_id: str,
        from_status: str,
        to_status: str,
    ) -> Market | None:
        """Conditional update; None when the market was not in from_status."""
        ...

    async def get_outcome(self, db: AsyncSession, outcome_id: str) -> Outcome | None: ...

    async def get_reserves(
        self, db: AsyncSession, market_id: str, for_update: bool = False
    ) -> Reserves | None: ...

    async def update_reserves(
        self, db: AsyncSession, market_id: str, reserves: Reserves
    ) -> None: ...
