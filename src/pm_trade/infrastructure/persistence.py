"""TradeRepository — concrete implementation of TradeRepositoryProtocol.

Status changes are conditional on the current status, so a terminal trade
(FILLED / FAILED / CANCELLED) can never be moved again.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.errors import InternalError
from src.pm_trade.domain.models import Trade

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_TRADE_COLUMNS = """
    id, user_id, market_id, outcome_id, side, price,
    stake_unit, stake_points, stake_token_amount, token_symbol,
    status, shares, failure_reason, created_at, updated_at
"""

_INSERT_TRADE_SQL = text(f"""
    INSERT INTO trades
        (id, user_id, market_id, outcome_id, side, price,
         stake_unit, stake_points, stake_token_amount, token_symbol, status)
    VALUES
        (:id, :user_id, :market_id, :outcome_id, :side, :price,
         :stake_unit, :stake_points, :stake_token_amount, :token_symbol, :status)
    RETURNING {_TRADE_COLUMNS}
""")

_GET_TRADE_SQL = text(f"""
    SELECT {_TRADE_COLUMNS}
    FROM trades
    WHERE id = :trade_id
""")

_TRANSITION_SQL = text(f"""
    UPDATE trades
    SET status = :to_status,
        failure_reason = COALESCE(:failure_reason, failure_reason),
        shares = COALESCE(CAST(:shares AS DOUBLE PRECISION), shares),
        filled_at = CASE WHEN :to_status = 'FILLED' THEN NOW() ELSE filled_at END,
        updated_at = NOW()
    WHERE id = :trade_id AND status = :from_status
    RETURNING {_TRADE_COLUMNS}
""")

_LAST_FILLED_PRICE_SQL = text("""
    SELECT price
    FROM trades
    WHERE market_id = :market_id
      AND outcome_id = :outcome_id
      AND status = 'FILLED'
    ORDER BY filled_at DESC, id DESC
    LIMIT 1
""")


def _row_to_trade(row: object) -> Trade:
    token_amount = row.stake_token_amount  # type: ignore[attr-defined]
    shares = row.shares  # type: ignore[attr-defined]
    return Trade(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        market_id=row.market_id,  # type: ignore[attr-defined]
        outcome_id=row.outcome_id,  # type: ignore[attr-defined]
        side=row.side,  # type: ignore[attr-defined]
        price=float(row.price),  # type: ignore[attr-defined]
        stake_unit=row.stake_unit,  # type: ignore[attr-defined]
        stake_points=row.stake_points,  # type: ignore[attr-defined]
        stake_token_amount=float(token_amount) if token_amount is not None else None,
        token_symbol=row.token_symbol,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        shares=float(shares) if shares is not None else None,
        failure_reason=row.failure_reason,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class TradeRepository:
    async def create(self, db: AsyncSession, trade: Trade) -> Trade:
        result = await db.execute(
            _INSERT_TRADE_SQL,
            {
                "id": trade.id,
                "user_id": trade.user_id,
                "market_id": trade.market_id,
                "outcome_id": trade.outcome_id,
                "side": trade.side,
                "price": trade.price,
                "stake_unit": trade.stake_unit,
                "stake_points": trade.stake_points,
                "stake_token_amount": trade.stake_token_amount,
                "token_symbol": trade.token_symbol,
                "status": trade.status,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Trade insert returned no rows")
        return _row_to_trade(row)

    async def get(self, db: AsyncSession, trade_id: str) -> Trade | None:
        result = await db.execute(_GET_TRADE_SQL, {"trade_id": trade_id})
        row = result.fetchone()
        return _row_to_trade(row) if row else None

    async def transition(
        self,
        db: AsyncSession,
        trade_id: str,
        from_status: str,
        to_status: str,
        failure_reason: str | None = None,
        shares: float | None = None,
    ) -> Trade | None:
        result = await db.execute(
            _TRANSITION_SQL,
            {
                "trade_id": trade_id,
                "from_status": from_status,
                "to_status": to_status,
                "failure_reason": failure_reason,
                "shares": shares,
            },
        )
        row = result.fetchone()
        return _row_to_trade(row) if row else None

    async def last_filled_price(
        self, db: AsyncSession, market_id: str, outcome_id: str
    ) -> float | None:
        result = await db.execute(
            _LAST_FILLED_PRICE_SQL, {"market_id": market_id, "outcome_id": outcome_id}
        )
        row = result.fetchone()
        return float(row.price) if row else None
