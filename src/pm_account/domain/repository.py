"""Storage contract for the points ledger.

The SQL implementation lives in infrastructure/persistence.py; unit tests
use an in-memory fake with the same methods.
"""

from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_account.domain.models import PointsEntry


class PointsRepositoryProtocol(Protocol):
    async def get_balance(self, db: AsyncSession, user_id: str) -> int: ...

    async def append_debit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        reason: str,
        ref_type: str | None,
        ref_id: str | None,
        metadata: dict[str, Any] | None,
    ) -> PointsEntry | None:
        """Append -amount; None when the balance is below amount (nothing written)."""
        ...

    async def append_credit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        reason: str,
        ref_type: str | None,
        ref_id: str | None,
        metadata: dict[str, Any] | None,
    ) -> PointsEntry | None:
        """Append +amount; None when an entry with the same (reason, ref) exists."""
        ...

    async def net_delta_for_ref(
        self, db: AsyncSession, user_id: str, ref_type: str, ref_id: str
    ) -> int: ...

    async def list_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        reason: str | None,
    ) -> list[PointsEntry]: ...
