"""Storage contract for market resolutions."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_settlement.domain.models import Resolution


class ResolutionRepositoryProtocol(Protocol):
    async def create(self, db: AsyncSession, resolution: Resolution) -> Resolution:
        """Insert; raises AlreadyResolvedError if the market already has one."""
        ...

    async def get_by_market(self, db: AsyncSession, market_id: str) -> Resolution | None: ...

    async def record_progress(
        self, db: AsyncSession, resolution_id: str, payouts: int, points: int
    ) -> None: ...

    async def mark_settled(
        self, db: AsyncSession, resolution_id: str, settled_at: datetime
    ) -> Resolution | None:
        """Set settled_at once; None if it was already set."""
        ...
