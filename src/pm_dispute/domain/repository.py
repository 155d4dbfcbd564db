"""Storage contract for disputes and their votes."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_dispute.domain.models import Dispute, DisputeVote, VoteTally


class DisputeRepositoryProtocol(Protocol):
    async def create(self, db: AsyncSession, dispute: Dispute) -> Dispute:
        """Insert; raises ActiveDisputeExistsError if the market has an active one."""
        ...

    async def get(self, db: AsyncSession, dispute_id: str) -> Dispute | None: ...

    async def get_active_for_market(
        self, db: AsyncSession, market_id: str
    ) -> Dispute | None: ...

    async def mark_voting(self, db: AsyncSession, dispute_id: str) -> None:
        """OPEN → VOTING; no-op in any other status."""
        ...

    async def close(
        self,
        db: AsyncSession,
        dispute_id: str,
        outcome: str,
        source: str,
        resolved_by: str | None,
        closed_at: datetime,
    ) -> Dispute | None:
        """Move an active dispute to RESOLVED; None if it was already closed."""
        ...

    async def add_vote(self, db: AsyncSession, vote: DisputeVote) -> DisputeVote:
        """Insert; raises AlreadyVotedError on a second vote by the same user."""
        ...

    async def list_votes(self, db: AsyncSession, dispute_id: str) -> list[DisputeVote]: ...

    async def tally(self, db: AsyncSession, dispute_id: str) -> VoteTally: ...
