"""PositionRepository — concrete implementation of PositionRepositoryProtocol.

upsert_fill is one INSERT ... ON CONFLICT DO UPDATE: the weighted average
is computed from the row's own values inside the statement, so concurrent
fills on the same (user, market, outcome) never read a stale quantity.
Points and token fills keep separate averages, each weighted by its own
quantity.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.enums import StakeUnit
from src.pm_common.errors import InternalError
from src.pm_position.domain.models import Position

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_POSITION_COLUMNS = """
    id, user_id, market_id, outcome_id,
    qty_points, qty_token_amount, avg_price, avg_price_token,
    realized_pnl_pts, realized_pnl_token,
    created_at, updated_at
"""

_GET_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM positions
    WHERE user_id = :user_id AND market_id = :market_id AND outcome_id = :outcome_id
""")

_UPSERT_FILL_SQL = text(f"""
    INSERT INTO positions
        (user_id, market_id, outcome_id, qty_points, qty_token_amount,
         avg_price, avg_price_token)
    VALUES
        (:user_id, :market_id, :outcome_id, :qty_points, :qty_token_amount,
         :avg_price, :avg_price_token)
    ON CONFLICT (user_id, market_id, outcome_id) DO UPDATE
    SET avg_price = CASE
            WHEN EXCLUDED.qty_points <= 0 THEN positions.avg_price
            WHEN positions.avg_price IS NULL OR positions.qty_points <= 0
                THEN EXCLUDED.avg_price
            ELSE (positions.avg_price * positions.qty_points
                  + EXCLUDED.avg_price * EXCLUDED.qty_points)
                 / (positions.qty_points + EXCLUDED.qty_points)
        END,
        avg_price_token = CASE
            WHEN EXCLUDED.qty_token_amount <= 0 THEN positions.avg_price_token
            WHEN positions.avg_price_token IS NULL OR positions.qty_token_amount <= 0
                THEN EXCLUDED.avg_price_token
            ELSE (positions.avg_price_token * positions.qty_token_amount
                  + EXCLUDED.avg_price_token * EXCLUDED.qty_token_amount)
                 / (positions.qty_token_amount + EXCLUDED.qty_token_amount)
        END,
        qty_points = positions.qty_points + EXCLUDED.qty_points,
        qty_token_amount = positions.qty_token_amount + EXCLUDED.qty_token_amount,
        updated_at = NOW()
    RETURNING {_POSITION_COLUMNS}
""")

_ZERO_OUTCOME_SQL = text("""
    UPDATE positions
    SET realized_pnl_pts = realized_pnl_pts - COALESCE(avg_price, 0) * qty_points,
        realized_pnl_token = realized_pnl_token
            - COALESCE(avg_price_token, 0) * qty_token_amount,
        qty_points = 0,
        qty_token_amount = 0,
        updated_at = NOW()
    WHERE market_id = :market_id
      AND outcome_id = :outcome_id
      AND (qty_points > 0 OR qty_token_amount > 0)
""")

_ADD_REALIZED_SQL = text("""
    UPDATE positions
    SET realized_pnl_pts = realized_pnl_pts + :pnl_points,
        realized_pnl_token = realized_pnl_token + :pnl_token,
        updated_at = NOW()
    WHERE id = :position_id
""")

_LIST_FOR_MARKET_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM positions
    WHERE market_id = :market_id
      AND (CAST(:after_id AS BIGINT) IS NULL OR id > CAST(:after_id AS BIGINT))
      AND (NOT :open_only OR qty_points > 0 OR qty_token_amount > 0)
    ORDER BY id ASC
    LIMIT :limit
""")

_LIST_FOR_USER_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM positions
    WHERE user_id = :user_id
      AND (CAST(:market_id AS TEXT) IS NULL OR market_id = CAST(:market_id AS TEXT))
      AND (CAST(:after_id AS BIGINT) IS NULL OR id < CAST(:after_id AS BIGINT))
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_position(row: object) -> Position:
    avg = row.avg_price  # type: ignore[attr-defined]
    avg_token = row.avg_price_token  # type: ignore[attr-defined]
    return Position(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        market_id=row.market_id,  # type: ignore[attr-defined]
        outcome_id=row.outcome_id,  # type: ignore[attr-defined]
        qty_points=float(row.qty_points),  # type: ignore[attr-defined]
        qty_token_amount=float(row.qty_token_amount),  # type: ignore[attr-defined]
        avg_price=float(avg) if avg is not None else None,
        avg_price_token=float(avg_token) if avg_token is not None else None,
        realized_pnl_pts=float(row.realized_pnl_pts),  # type: ignore[attr-defined]
        realized_pnl_token=float(row.realized_pnl_token),  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class PositionRepository:
    async def get(
        self, db: AsyncSession, user_id: str, market_id: str, outcome_id: str
    ) -> Position | None:
        result = await db.execute(
            _GET_SQL,
            {"user_id": user_id, "market_id": market_id, "outcome_id": outcome_id},
        )
        row = result.fetchone()
        return _row_to_position(row) if row else None

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
        is_points = unit == StakeUnit.POINTS.value
        result = await db.execute(
            _UPSERT_FILL_SQL,
            {
                "user_id": user_id,
                "market_id": market_id,
                "outcome_id": outcome_id,
                "qty_points": delta if is_points else 0.0,
                "qty_token_amount": 0.0 if is_points else delta,
                "avg_price": fill_price if is_points else None,
                "avg_price_token": None if is_points else fill_price,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Position upsert returned no rows")
        return _row_to_position(row)

    async def zero_outcome(
        self, db: AsyncSession, market_id: str, outcome_id: str
    ) -> int:
        result = await db.execute(
            _ZERO_OUTCOME_SQL, {"market_id": market_id, "outcome_id": outcome_id}
        )
        return int(result.rowcount or 0)  # type: ignore[attr-defined]

    async def add_realized_pnl(
        self, db: AsyncSession, position_id: int, pnl_points: float, pnl_token: float
    ) -> None:
        await db.execute(
            _ADD_REALIZED_SQL,
            {"position_id": position_id, "pnl_points": pnl_points, "pnl_token": pnl_token},
        )

    async def list_for_market(
        self,
        db: AsyncSession,
        market_id: str,
        after_id: int | None,
        limit: int,
        open_only: bool,
    ) -> list[Position]:
        result = await db.execute(
            _LIST_FOR_MARKET_SQL,
            {
                "market_id": market_id,
                "after_id": after_id,
                "limit": limit,
                "open_only": open_only,
            },
        )
        return [_row_to_position(row) for row in result.fetchall()]

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        market_id: str | None,
        after_id: int | None,
        limit: int,
    ) -> list[Position]:
        result = await db.execute(
            _LIST_FOR_USER_SQL,
            {
                "user_id": user_id,
                "market_id": market_id,
                "after_id": after_id,
                "limit": limit,
            },
        )
        return [_row_to_position(row) for row in result.fetchall()]
