"""PointsApplicationService — thin composition layer over PointsLedger.

claim_monthly_grant commits its own transaction. Balance and history reads
run without an explicit transaction.
"""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pm_account.application.schemas import (
    BalanceResponse,
    LedgerResponse,
    MonthlyGrantResponse,
    PointsEntryItem,
)
from src.pm_account.domain.ledger import PointsLedger
from src.pm_account.domain.repository import PointsRepositoryProtocol
from src.pm_account.infrastructure.persistence import PointsRepository
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import PointsReason
from src.pm_common.errors import MonthlyGrantClaimedError
from src.pm_common.pagination import cursor_decode, cursor_encode


def grant_period(now: datetime) -> str:
    """Monthly grant period key, e.g. '2026-10'."""
    return now.strftime("%Y-%m")


class PointsApplicationService:
    def __init__(self, repo: PointsRepositoryProtocol | None = None) -> None:
        self._repo: PointsRepositoryProtocol = repo or PointsRepository()
        self._ledger = PointsLedger(self._repo)

    async def get_balance(self, db: AsyncSession, user_id: str) -> BalanceResponse:
        balance = await self._ledger.balance(db, user_id)
        return BalanceResponse(user_id=user_id, balance=balance)

    async def list_ledger(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
        reason: str | None,
    ) -> LedgerResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._repo.list_entries(db, user_id, cursor_id, limit + 1, reason)
        has_more = len(entries) > limit
        page = entries[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return LedgerResponse(
            items=[PointsEntryItem.from_domain(e) for e in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def claim_monthly_grant(
        self, db: AsyncSession, user_id: str, now: datetime | None = None
    ) -> MonthlyGrantResponse:
        period = grant_period(now or utc_now())
        amount = settings.POINTS_MONTHLY_GRANT
        try:
            entry = await self._ledger.credit(
                db,
                user_id,
                amount,
                PointsReason.MONTHLY_GRANT.value,
                ref_type="grant_period",
                ref_id=period,
                metadata={"period": period},
            )
            if entry is None:
                raise MonthlyGrantClaimedError(period)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return MonthlyGrantResponse(
            period=period,
            granted=amount,
            balance=entry.balance_after,
            ledger_entry_id=entry.id,
        )
