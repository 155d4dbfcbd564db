"""ResolutionRepository — concrete implementation of ResolutionRepositoryProtocol.

market_resolutions.market_id is UNIQUE: of two racing resolvers exactly one
INSERT succeeds; the other gets AlreadyResolvedError.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.errors import AlreadyResolvedError, InternalError
from src.pm_settlement.domain.models import Resolution

_RESOLUTION_COLUMNS = """
    id, market_id, winning_outcome_id, source, oracle_tx_hash, notes,
    resolved_by, resolved_at, settled_at, payouts_applied, points_paid
"""

_INSERT_SQL = text(f"""
    INSERT INTO market_resolutions
        (id, market_id, winning_outcome_id, source, oracle_tx_hash, notes,
         resolved_by, resolved_at)
    VALUES
        (:id, :market_id, :winning_outcome_id, :source, :oracle_tx_hash, :notes,
         :resolved_by, :resolved_at)
    RETURNING {_RESOLUTION_COLUMNS}
""")

_GET_BY_MARKET_SQL = text(f"""
    SELECT {_RESOLUTION_COLUMNS}
    FROM market_resolutions
    WHERE market_id = :market_id
""")

_RECORD_PROGRESS_SQL = text("""
    UPDATE market_resolutions
    SET payouts_applied = payouts_applied + :payouts,
        points_paid = points_paid + :points
    WHERE id = :resolution_id
""")

_MARK_SETTLED_SQL = text(f"""
    UPDATE market_resolutions
    SET settled_at = :settled_at
    WHERE id = :resolution_id AND settled_at IS NULL
    RETURNING {_RESOLUTION_COLUMNS}
""")


def _row_to_resolution(row: object) -> Resolution:
    return Resolution(
        id=row.id,  # type: ignore[attr-defined]
        market_id=row.market_id,  # type: ignore[attr-defined]
        winning_outcome_id=row.winning_outcome_id,  # type: ignore[attr-defined]
        source=row.source,  # type: ignore[attr-defined]
        oracle_tx_hash=row.oracle_tx_hash,  # type: ignore[attr-defined]
        notes=row.notes,  # type: ignore[attr-defined]
        resolved_by=row.resolved_by,  # type: ignore[attr-defined]
        resolved_at=row.resolved_at,  # type: ignore[attr-defined]
        settled_at=row.settled_at,  # type: ignore[attr-defined]
        payouts_applied=row.payouts_applied,  # type: ignore[attr-defined]
        points_paid=row.points_paid,  # type: ignore[attr-defined]
    )


class ResolutionRepository:
    async def create(self, db: AsyncSession, resolution: Resolution) -> Resolution:
        try:
            result = await db.execute(
                _INSERT_SQL,
                {
                    "id": resolution.id,
                    "market_id": resolution.market_id,
                    "winning_outcome_id": resolution.winning_outcome_id,
                    "source": resolution.source,
                    "oracle_tx_hash": resolution.oracle_tx_hash,
                    "notes": resolution.notes,
                    "resolved_by": resolution.resolved_by,
                    "resolved_at": resolution.resolved_at,
                },
            )
        except IntegrityError:
            raise AlreadyResolvedError(resolution.market_id) from None
        row = result.fetchone()
        if row is None:
            raise InternalError("Resolution insert returned no rows")
        return _row_to_resolution(row)

    async def get_by_market(self, db: AsyncSession, market_id: str) -> Resolution | None:
        result = await db.execute(_GET_BY_MARKET_SQL, {"market_id": market_id})
        row = result.fetchone()
        return _row_to_resolution(row) if row else None

    async def record_progress(
        self, db: AsyncSession, resolution_id: str, payouts: int, points: int
    ) -> None:
        await db.execute(
            _RECORD_PROGRESS_SQL,
            {"resolution_id": resolution_id, "payouts": payouts, "points": points},
        )

    async def mark_settled(
        self, db: AsyncSession, resolution_id: str, settled_at: datetime
    ) -> Resolution | None:
        result = await db.execute(
            _MARK_SETTLED_SQL, {"resolution_id": resolution_id, "settled_at": settled_at}
        )
        row = result.fetchone()
        return _row_to_resolution(row) if row else None
