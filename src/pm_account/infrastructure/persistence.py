"""PointsRepository — concrete implementation of PointsRepositoryProtocol.

points_ledger is append-only. The balance is the latest entry's balance_after.

Every write first takes pg_advisory_xact_lock on the user, then reads the
latest balance in a separate statement, so concurrent writers for one user
are serialized across processes and each sees the previous writer's row.
A debit whose guard fails inserts 0 rows; the caller turns that into
InsufficientBalanceError.

Transaction ownership: the CALLER commits or rolls back.
"""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_account.domain.models import PointsEntry

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_ENTRY_COLUMNS = """
    id, user_id, delta, balance_after, reason, ref_type, ref_id, metadata, created_at
"""

_LOCK_USER_SQL = text("SELECT pg_advisory_xact_lock(hashtext(:user_id))")

_GET_BALANCE_SQL = text("""
    SELECT balance_after
    FROM points_ledger
    WHERE user_id = :user_id
    ORDER BY id DESC
    LIMIT 1
""")

_APPEND_DEBIT_SQL = text(f"""
    INSERT INTO points_ledger
        (user_id, delta, balance_after, reason, ref_type, ref_id, metadata)
    SELECT :user_id, -CAST(:amount AS BIGINT), latest.balance - :amount,
           :reason, :ref_type, :ref_id, CAST(:metadata AS JSONB)
    FROM (
        SELECT COALESCE(
            (SELECT balance_after FROM points_ledger
             WHERE user_id = :user_id ORDER BY id DESC LIMIT 1),
            0
        ) AS balance
    ) AS latest
    WHERE latest.balance >= :amount
    RETURNING {_ENTRY_COLUMNS}
""")

_APPEND_CREDIT_SQL = text(f"""
    INSERT INTO points_ledger
        (user_id, delta, balance_after, reason, ref_type, ref_id, metadata)
    SELECT :user_id, CAST(:amount AS BIGINT), latest.balance + :amount,
           :reason, :ref_type, :ref_id, CAST(:metadata AS JSONB)
    FROM (
        SELECT COALESCE(
            (SELECT balance_after FROM points_ledger
             WHERE user_id = :user_id ORDER BY id DESC LIMIT 1),
            0
        ) AS balance
    ) AS latest
    ON CONFLICT (user_id, reason, ref_type, ref_id) WHERE ref_id IS NOT NULL
    DO NOTHING
    RETURNING {_ENTRY_COLUMNS}
""")

_NET_DELTA_FOR_REF_SQL = text("""
    SELECT COALESCE(SUM(delta), 0)
    FROM points_ledger
    WHERE user_id = :user_id AND ref_type = :ref_type AND ref_id = :ref_id
""")

_LIST_ENTRIES_SQL = text(f"""
    SELECT {_ENTRY_COLUMNS}
    FROM points_ledger
    WHERE user_id = :user_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < CAST(:cursor_id AS BIGINT))
      AND (CAST(:reason AS TEXT) IS NULL OR reason = CAST(:reason AS TEXT))
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_entry(row: object) -> PointsEntry:
    metadata = row.metadata  # type: ignore[attr-defined]
    if isinstance(metadata, str):
        metadata = json.loads(metadata)
    return PointsEntry(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        delta=row.delta,  # type: ignore[attr-defined]
        balance_after=row.balance_after,  # type: ignore[attr-defined]
        reason=row.reason,  # type: ignore[attr-defined]
        ref_type=row.ref_type,  # type: ignore[attr-defined]
        ref_id=row.ref_id,  # type: ignore[attr-defined]
        metadata=metadata,
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _entry_params(
    user_id: str,
    amount: int,
    reason: str,
    ref_type: str | None,
    ref_id: str | None,
    metadata: dict[str, Any] | None,
) -> dict[str, Any]:
    return {
        "user_id": user_id,
        "amount": amount,
        "reason": reason,
        "ref_type": ref_type,
        "ref_id": ref_id,
        "metadata": json.dumps(metadata) if metadata is not None else None,
    }


class PointsRepository:
    """Concrete repository — every write is a single guarded INSERT ... SELECT."""

    async def get_balance(self, db: AsyncSession, user_id: str) -> int:
        result = await db.execute(_GET_BALANCE_SQL, {"user_id": user_id})
        row = result.fetchone()
        return int(row.balance_after) if row else 0

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
        await db.execute(_LOCK_USER_SQL, {"user_id": user_id})
        result = await db.execute(
            _APPEND_DEBIT_SQL,
            _entry_params(user_id, amount, reason, ref_type, ref_id, metadata),
        )
        row = result.fetchone()
        return _row_to_entry(row) if row else None

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
        await db.execute(_LOCK_USER_SQL, {"user_id": user_id})
        result = await db.execute(
            _APPEND_CREDIT_SQL,
            _entry_params(user_id, amount, reason, ref_type, ref_id, metadata),
        )
        row = result.fetchone()
        return _row_to_entry(row) if row else None

    async def net_delta_for_ref(
        self, db: AsyncSession, user_id: str, ref_type: str, ref_id: str
    ) -> int:
        result = await db.execute(
            _NET_DELTA_FOR_REF_SQL,
            {"user_id": user_id, "ref_type": ref_type, "ref_id": ref_id},
        )
        return int(result.scalar_one())

    async def list_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        reason: str | None,
    ) -> list[PointsEntry]:
        result = await db.execute(
            _LIST_ENTRIES_SQL,
            {
                "user_id": user_id,
                "cursor_id": cursor_id,
                "reason": reason,
                "limit": limit,
            },
        )
        return [_row_to_entry(row) for row in result.fetchall()]
