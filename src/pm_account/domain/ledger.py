"""PointsLedger — the single balance-mutating primitive for points.

Trades debit through it, cancellations and compensations refund through it,
settlement credits payouts through it. It never commits; the caller owns the
transaction boundary.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_account.domain.models import PointsCredit, PointsEntry
from src.pm_account.domain.repository import PointsRepositoryProtocol
from src.pm_account.infrastructure.persistence import PointsRepository
from src.pm_common.errors import InsufficientBalanceError, ValidationError

logger = logging.getLogger(__name__)


class PointsLedger:
    def __init__(self, repo: PointsRepositoryProtocol | None = None) -> None:
        self._repo: PointsRepositoryProtocol = repo or PointsRepository()

    async def balance(self, db: AsyncSession, user_id: str) -> int:
        return await self._repo.get_balance(db, user_id)

    async def debit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        reason: str,
        ref_type: str | None = None,
        ref_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> PointsEntry:
        """Guarded debit. Raises InsufficientBalanceError, never goes negative."""
        if amount <= 0:
            raise ValidationError(f"Debit amount must be positive, got {amount}")
        entry = await self._repo.append_debit(
            db, user_id, amount, reason, ref_type, ref_id, metadata
        )
        if entry is None:
            available = await self._repo.get_balance(db, user_id)
            raise InsufficientBalanceError(amount, available)
        return entry

    async def credit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        reason: str,
        ref_type: str | None = None,
        ref_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> PointsEntry | None:
        """Additive credit. Returns None if this (reason, ref) was already credited."""
        if amount <= 0:
            raise ValidationError(f"Credit amount must be positive, got {amount}")
        entry = await self._repo.append_credit(
            db, user_id, amount, reason, ref_type, ref_id, metadata
        )
        if entry is None:
            logger.info(
                "Duplicate credit skipped: user=%s reason=%s ref=%s:%s",
                user_id, reason, ref_type, ref_id,
            )
        return entry

    async def bulk_credit(
        self, db: AsyncSession, credits: list[PointsCredit]
    ) -> list[PointsEntry]:
        """Apply a batch of credits inside the caller's transaction.

        Each credit is idempotent on its (reason, ref), so a batch that was
        partly applied before a failure can be replayed as a whole.
        Returns only the entries written by this call.
        """
        applied: list[PointsEntry] = []
        for c in credits:
            if c.amount <= 0:
                continue
            entry = await self.credit(
                db, c.user_id, c.amount, c.reason, c.ref_type, c.ref_id, c.metadata
            )
            if entry is not None:
                applied.append(entry)
        return applied

    async def refund(
        self,
        db: AsyncSession,
        user_id: str,
        ref_type: str,
        ref_id: str,
        reason: str,
        metadata: dict[str, Any] | None = None,
    ) -> PointsEntry | None:
        """Return whatever is still debited against (ref_type, ref_id).

        Nothing is written when the reference is already net zero, so calling
        refund twice pays back at most once.
        """
        net = await self._repo.net_delta_for_ref(db, user_id, ref_type, ref_id)
        if net >= 0:
            return None
        return await self.credit(db, user_id, -net, reason, ref_type, ref_id, metadata)
