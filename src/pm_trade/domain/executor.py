"""TradeExecutor — per-trade state machine.

    PENDING ──► FILLED      reserves, position and status committed together
       │
       ├──────► FAILED      fill step raised; debit refunded, error re-raised
       │
       └──────► CANCELLED   owner cancelled while still PENDING; debit refunded

Two commits per trade:
  1. reserve  — validate (including a dry run on the curve), create the
                PENDING trade and debit the stake
  2. fill     — move CPMM reserves, apply the position fill, mark FILLED

If the fill commit cannot happen, the session is rolled back and the
committed reservation is compensated (refund + FAILED) before the error
reaches the caller. Every step for one user runs under that user's lock;
the guarded debit in the store covers other processes.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_account.domain.ledger import PointsLedger
from src.pm_amm.domain import curve
from src.pm_amm.domain.models import Prices
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import OutcomeKey, PointsReason, StakeUnit, TradeSide, TradeStatus
from src.pm_common.errors import (
    AppError,
    ForbiddenError,
    InvalidStateError,
    MarketNotFoundError,
    OutcomeNotFoundError,
    TradeNotCancellableError,
    TradeNotFoundError,
)
from src.pm_common.locks import KeyedLock
from src.pm_market.domain.lifecycle import ensure_open_for_trading
from src.pm_market.domain.models import Outcome
from src.pm_market.domain.repository import MarketRepositoryProtocol
from src.pm_market.infrastructure.persistence import MarketRepository
from src.pm_notify.domain.events import (
    Event,
    EventKind,
    fill_event,
    price_event,
    trade_status_event,
)
from src.pm_notify.domain.publisher import EventPublisherProtocol
from src.pm_position.domain.ledger import PositionLedger
from src.pm_trade.domain.models import Trade, TradeFill, TradeRequest
from src.pm_trade.domain.pricing import resolve_trade_price
from src.pm_trade.domain.repository import TradeRepositoryProtocol
from src.pm_trade.infrastructure.persistence import TradeRepository

logger = logging.getLogger(__name__)

TRADE_REF_TYPE = "trade"


def _failure_reason(exc: BaseException) -> str:
    # Only business messages are stored; infrastructure detail stays in the logs
    if isinstance(exc, AppError):
        return exc.message
    return type(exc).__name__


class TradeExecutor:
    def __init__(
        self,
        market_repo: MarketRepositoryProtocol | None = None,
        trade_repo: TradeRepositoryProtocol | None = None,
        points: PointsLedger | None = None,
        positions: PositionLedger | None = None,
        publisher: EventPublisherProtocol | None = None,
        user_locks: KeyedLock | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._markets: MarketRepositoryProtocol = market_repo or MarketRepository()
        self._trades: TradeRepositoryProtocol = trade_repo or TradeRepository()
        self._points = points or PointsLedger()
        self._positions = positions or PositionLedger()
        self._publisher = publisher
        self._user_locks = user_locks or KeyedLock()
        self._clock = clock

    # ------------------------------------------------------------------
    # Place
    # ------------------------------------------------------------------

    async def place(self, db: AsyncSession, req: TradeRequest) -> TradeFill:
        """Run one trade to FILLED, or raise after leaving it FAILED (or never created)."""
        async with self._user_locks.hold(req.user_id):
            trade, outcome = await self._reserve(db, req)
            try:
                fill = await self._fill(db, trade, outcome)
            except Exception as exc:
                await db.rollback()
                await self._compensate(db, trade, exc)
                raise

        logger.info(
            "Trade filled: id=%s user=%s market=%s outcome=%s price=%s stake=%s %s",
            trade.id, trade.user_id, trade.market_id, trade.outcome_id,
            trade.price, trade.stake_amount, trade.stake_unit,
        )
        await self._publish_fill(fill)
        return fill

    async def _reserve(self, db: AsyncSession, req: TradeRequest) -> tuple[Trade, Outcome]:
        req.stake.validate()
        market = await self._markets.get_market(db, req.market_id)
        if market is None:
            raise MarketNotFoundError(req.market_id)
        ensure_open_for_trading(market, self._clock())
        outcome = market.outcome(req.outcome_id)
        if outcome is None:
            raise OutcomeNotFoundError(req.outcome_id)

        last_price = await self._trades.last_filled_price(db, market.id, outcome.id)
        price = resolve_trade_price(req.price, last_price, req.side)

        stake = req.stake
        if stake.points is not None:
            reserves = await self._markets.get_reserves(db, market.id)
            if reserves is not None:
                # Unlocked dry run; _fill repeats it against the locked row
                curve.buy(
                    reserves.yes_shares,
                    reserves.no_shares,
                    OutcomeKey(outcome.key),
                    float(stake.points),
                )

        pending = Trade(
            id=uuid.uuid4().hex,
            user_id=req.user_id,
            market_id=market.id,
            outcome_id=outcome.id,
            side=req.side.value,
            price=price,
            stake_unit=stake.unit.value,
            stake_points=stake.points,
            stake_token_amount=stake.token_amount,
            token_symbol=stake.token_symbol,
            status=TradeStatus.PENDING.value,
        )
        try:
            trade = await self._trades.create(db, pending)
            if stake.points is not None:
                await self._points.debit(
                    db,
                    req.user_id,
                    stake.points,
                    PointsReason.BET_PLACED.value,
                    ref_type=TRADE_REF_TYPE,
                    ref_id=trade.id,
                    metadata={"market_id": market.id, "outcome_id": outcome.id},
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return trade, outcome

    async def _fill(self, db: AsyncSession, trade: Trade, outcome: Outcome) -> TradeFill:
        shares: float | None = None
        prices: Prices | None = None
        unit = StakeUnit(trade.stake_unit)

        if unit == StakeUnit.POINTS:
            reserves = await self._markets.get_reserves(db, trade.market_id, for_update=True)
            if reserves is not None:
                result = curve.buy(
                    reserves.yes_shares,
                    reserves.no_shares,
                    OutcomeKey(outcome.key),
                    trade.stake_amount,
                )
                await self._markets.update_reserves(db, trade.market_id, result.reserves)
                shares = result.shares_received
                prices = curve.price(result.new_yes, result.new_no)

        position = await self._positions.apply_fill(
            db,
            trade.user_id,
            trade.market_id,
            trade.outcome_id,
            TradeSide(trade.side),
            trade.stake_amount,
            trade.price,
            unit,
        )
        filled = await self._trades.transition(
            db, trade.id, TradeStatus.PENDING.value, TradeStatus.FILLED.value, shares=shares
        )
        if filled is None:
            raise InvalidStateError(f"Trade {trade.id} is no longer pending")
        balance_after = None
        if unit == StakeUnit.POINTS:
            balance_after = await self._points.balance(db, trade.user_id)
        # Nothing may raise after this commit: the caller compensates any exception
        await db.commit()
        return TradeFill(trade=filled, position=position, balance_after=balance_after, prices=prices)

    async def _compensate(self, db: AsyncSession, trade: Trade, exc: BaseException) -> None:
        reason = _failure_reason(exc)
        try:
            failed = await self._trades.transition(
                db,
                trade.id,
                TradeStatus.PENDING.value,
                TradeStatus.FAILED.value,
                failure_reason=reason,
            )
            # A trade that already left PENDING (cancelled elsewhere) owns its refund
            if failed is not None and trade.stake_unit == StakeUnit.POINTS.value:
                await self._points.refund(
                    db,
                    trade.user_id,
                    TRADE_REF_TYPE,
                    trade.id,
                    PointsReason.BET_REFUND.value,
                    metadata={"failure_reason": reason},
                )
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception(
                "Compensation failed: trade=%s user=%s left PENDING with its debit",
                trade.id, trade.user_id,
            )
            return

        logger.warning(
            "Trade failed and was compensated: id=%s user=%s reason=%s",
            trade.id, trade.user_id, reason,
        )
        await self._publish(
            [trade_status_event(EventKind.BET_FAILED, trade.user_id, trade.id, reason)]
        )

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------

    async def cancel(self, db: AsyncSession, trade_id: str, user_id: str) -> Trade:
        """Cancel a PENDING trade owned by user_id and refund its debit."""
        async with self._user_locks.hold(user_id):
            trade = await self._trades.get(db, trade_id)
            if trade is None:
                raise TradeNotFoundError(trade_id)
            if trade.user_id != user_id:
                raise ForbiddenError("Only the trade owner can cancel it")
            if trade.status != TradeStatus.PENDING:
                raise TradeNotCancellableError(trade_id, trade.status)

            try:
                cancelled = await self._trades.transition(
                    db, trade_id, TradeStatus.PENDING.value, TradeStatus.CANCELLED.value
                )
                if cancelled is None:
                    raise TradeNotCancellableError(trade_id, "no longer PENDING")
                if cancelled.stake_unit == StakeUnit.POINTS.value:
                    await self._points.refund(
                        db,
                        user_id,
                        TRADE_REF_TYPE,
                        trade_id,
                        PointsReason.BET_CANCELLED.value,
                    )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info("Trade cancelled: id=%s user=%s", trade_id, user_id)
        await self._publish(
            [trade_status_event(EventKind.BET_CANCELLED, user_id, trade_id, None)]
        )
        return cancelled

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def _publish_fill(self, fill: TradeFill) -> None:
        t = fill.trade
        events = [fill_event(t.market_id, t.outcome_id, t.user_id, t.id, t.price, t.stake_amount)]
        if fill.prices is not None:
            events.append(price_event(t.market_id, fill.prices.price_yes, fill.prices.price_no))
        await self._publish(events)

    async def _publish(self, events: list[Event]) -> None:
        if self._publisher is not None:
            await self._publisher.publish_many(events)
