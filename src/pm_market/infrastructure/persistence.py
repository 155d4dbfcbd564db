"""MarketRepository — concrete implementation of MarketRepositoryProtocol.

All queries use raw text() SQL (no ORM).
Status changes are conditional UPDATEs: 0 rows means the market was not in
the expected status, and the caller decides which business error that is.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_amm.domain.models import Reserves
from src.pm_common.errors import InternalError
from src.pm_market.domain.models import Market, Outcome

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_MARKET_COLUMNS = """
    id, title, description, status, close_at, resolve_by,
    created_by, created_at, updated_at
"""

_GET_MARKET_SQL = text(f"""
    SELECT {_MARKET_COLUMNS}
    FROM markets
    WHERE id = :market_id
""")

_LIST_OUTCOMES_SQL = text("""
    SELECT id, market_id, outcome_key, label
    FROM market_outcomes
    WHERE market_id = :market_id
    ORDER BY outcome_key DESC
""")

_GET_OUTCOME_SQL = text("""
    SELECT id, market_id, outcome_key, label
    FROM market_outcomes
    WHERE id = :outcome_id
""")

_INSERT_MARKET_SQL = text(f"""
    INSERT INTO markets (id, title, description, status, close_at, resolve_by, created_by)
    VALUES (:id, :title, :description, :status, :close_at, :resolve_by, :created_by)
    RETURNING {_MARKET_COLUMNS}
""")

_INSERT_OUTCOME_SQL = text("""
    INSERT INTO market_outcomes (id, market_id, outcome_key, label)
    VALUES (:id, :market_id, :outcome_key, :label)
""")

_INSERT_RESERVES_SQL = text("""
    INSERT INTO market_reserves (market_id, yes_shares, no_shares, k)
    VALUES (:market_id, :yes_shares, :no_shares, :k)
""")

_UPDATE_STATUS_SQL = text(f"""
    UPDATE markets
    SET status = :to_status,
        updated_at = NOW()
    WHERE id = :market_id AND status = :from_status
    RETURNING {_MARKET_COLUMNS}
""")

_GET_RESERVES_SQL = text("""
    SELECT yes_shares, no_shares
    FROM market_reserves
    WHERE market_id = :market_id
""")

_GET_RESERVES_FOR_UPDATE_SQL = text("""
    SELECT yes_shares, no_shares
    FROM market_reserves
    WHERE market_id = :market_id
    FOR UPDATE
""")

_UPDATE_RESERVES_SQL = text("""
    UPDATE market_reserves
    SET yes_shares = :yes_shares,
        no_shares = :no_shares,
        updated_at = NOW()
    WHERE market_id = :market_id
""")

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_market(row: object) -> Market:
    return Market(
        id=row.id,  # type: ignore[attr-defined]
        title=row.title,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        close_at=row.close_at,  # type: ignore[attr-defined]
        resolve_by=row.resolve_by,  # type: ignore[attr-defined]
        created_by=row.created_by,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_outcome(row: object) -> Outcome:
    return Outcome(
        id=row.id,  # type: ignore[attr-defined]
        market_id=row.market_id,  # type: ignore[attr-defined]
        key=row.outcome_key,  # type: ignore[attr-defined]
        label=row.label,  # type: ignore[attr-defined]
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class MarketRepository:
    async def _load_outcomes(self, db: AsyncSession, market: Market) -> Market:
        result = await db.execute(_LIST_OUTCOMES_SQL, {"market_id": market.id})
        market.outcomes = [_row_to_outcome(r) for r in result.fetchall()]
        return market

    async def get_market(self, db: AsyncSession, market_id: str) -> Market | None:
        result = await db.execute(_GET_MARKET_SQL, {"market_id": market_id})
        row = result.fetchone()
        if row is None:
            return None
        return await self._load_outcomes(db, _row_to_market(row))

    async def create_market(
        self,
        db: AsyncSession,
        market: Market,
        reserves: Reserves | None,
    ) -> Market:
        result = await db.execute(
            _INSERT_MARKET_SQL,
            {
                "id": market.id,
                "title": market.title,
                "description": market.description,
                "status": market.status,
                "close_at": market.close_at,
                "resolve_by": market.resolve_by,
                "created_by": market.created_by,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Market insert returned no rows")
        for outcome in market.outcomes:
            await db.execute(
                _INSERT_OUTCOME_SQL,
                {
                    "id": outcome.id,
                    "market_id": market.id,
                    "outcome_key": outcome.key,
                    "label": outcome.label,
                },
            )
        if reserves is not None:
            await db.execute(
                _INSERT_RESERVES_SQL,
                {
                    "market_id": market.id,
                    "yes_shares": reserves.yes_shares,
                    "no_shares": reserves.no_shares,
                    "k": reserves.k,
                },
            )
        created = _row_to_market(row)
        created.outcomes = list(market.outcomes)
        return created

    async def update_status(
        self,
        db: AsyncSession,
        market_id: str,
        from_status: str,
        to_status: str,
    ) -> Market | None:
        result = await db.execute(
            _UPDATE_STATUS_SQL,
            {"market_id": market_id, "from_status": from_status, "to_status": to_status},
        )
        row = result.fetchone()
        if row is None:
            return None
        return await self._load_outcomes(db, _row_to_market(row))

    async def get_outcome(self, db: AsyncSession, outcome_id: str) -> Outcome | None:
        result = await db.execute(_GET_OUTCOME_SQL, {"outcome_id": outcome_id})
        row = result.fetchone()
        return _row_to_outcome(row) if row else None

    async def get_reserves(
        self, db: AsyncSession, market_id: str, for_update: bool = False
    ) -> Reserves | None:
        sql = _GET_RESERVES_FOR_UPDATE_SQL if for_update else _GET_RESERVES_SQL
        result = await db.execute(sql, {"market_id": market_id})
        row = result.fetchone()
        if row is None:
            return None
        return Reserves(yes_shares=float(row.yes_shares), no_shares=float(row.no_shares))

    async def update_reserves(
        self, db: AsyncSession, market_id: str, reserves: Reserves
    ) -> None:
        await db.execute(
            _UPDATE_RESERVES_SQL,
            {
                "market_id": market_id,
                "yes_shares": reserves.yes_shares,
                "no_shares": reserves.no_shares,
            },
        )
