"""Unit tests for TradeExecutor: fills, balance guard, compensation, cancel."""

import asyncio
from datetime import timedelta

import pytest

from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import MarketStatus, PointsReason, StakeUnit, TradeSide, TradeStatus
from src.pm_common.errors import (
    ForbiddenError,
    IlliquidMarketError,
    InsufficientBalanceError,
    InvalidStakeError,
    InvalidStateError,
    MarketNotFoundError,
    MarketNotOpenError,
    OutcomeNotFoundError,
    PriceOutOfRangeError,
    TradeNotFoundError,
)
from src.pm_notify.domain.events import EventKind
from src.pm_trade.domain.models import Stake, Trade, TradeRequest

YES = "mkt-1-yes"
NO = "mkt-1-no"


def _request(
    points: int | None = 100,
    outcome_id: str = YES,
    side: TradeSide = TradeSide.BUY,
    user_id: str = "u1",
    market_id: str = "mkt-1",
    price: float | None = None,
    **stake_kwargs,
) -> TradeRequest:
    return TradeRequest(
        user_id=user_id,
        market_id=market_id,
        outcome_id=outcome_id,
        side=side,
        stake=Stake(points=points, **stake_kwargs),
        price=price,
    )


class TestPlace:
    async def test_points_trade_fills(
        self, db, executor, market_repo, points_repo, position_repo, publisher
    ) -> None:
        market_repo.add_market()
        points_repo.grant("u1", 1000)

        fill = await executor.place(db, _request(points=100))

        assert fill.trade.status == TradeStatus.FILLED
        assert fill.trade.price == 0.5
        assert fill.trade.shares is not None and fill.trade.shares > 100
        assert fill.balance_after == 900
        assert fill.position.qty_points == 100
        assert fill.position.avg_price == 0.5
        assert position_repo.position("u1", "mkt-1", YES).qty_points == 100
        assert fill.prices is not None and fill.prices.price_yes > 0.5
        assert publisher.kinds() == [EventKind.BET_FILLED, EventKind.PRICE_UPDATED]

    async def test_reserves_move_with_constant_product(
        self, db, executor, market_repo, points_repo
    ) -> None:
        market_repo.add_market(reserves=(1000.0, 1000.0))
        points_repo.grant("u1", 1000)

        await executor.place(db, _request(points=50, outcome_id=NO, side=TradeSide.NO))

        r = market_repo.reserves["mkt-1"]
        assert r.k == pytest.approx(1_000_000.0)
        assert r.no_shares > 1000.0 > r.yes_shares

    async def test_second_trade_priced_off_last_fill(
        self, db, executor, market_repo, points_repo
    ) -> None:
        market_repo.add_market()
        points_repo.grant("u1", 1000)

        await executor.place(db, _request(points=100))
        fill = await executor.place(db, _request(points=100))

        assert fill.trade.price == 0.51
        assert fill.position.qty_points == 200
        assert fill.position.avg_price == pytest.approx(0.505)

    async def test_explicit_price_used(self, db, executor, market_repo, points_repo) -> None:
        market_repo.add_market()
        points_repo.grant("u1", 1000)

        fill = await executor.place(db, _request(points=10, price=0.3))

        assert fill.trade.price == 0.3

    async def test_token_stake_leaves_points_and_reserves(
        self, db, executor, market_repo, points_repo
    ) -> None:
        market_repo.add_market()
        points_repo.grant("u1", 1000)

        fill = await executor.place(
            db, _request(points=None, token_amount=2.5, token_symbol="USDC")
        )

        assert fill.trade.stake_unit == StakeUnit.TOKEN
        assert fill.trade.shares is None
        assert fill.balance_after is None
        assert fill.position.qty_token_amount == 2.5
        assert fill.position.qty_points == 0
        assert await points_repo.get_balance(db, "u1") == 1000
        assert market_repo.reserves["mkt-1"].yes_shares == 1000.0

    async def test_market_without_reserves_still_fills(
        self, db, executor, market_repo, points_repo
    ) -> None:
        market_repo.add_market(reserves=None)
        points_repo.grant("u1", 100)

        fill = await executor.place(db, _request(points=100))

        assert fill.trade.status == TradeStatus.FILLED
        assert fill.trade.shares is None
        assert fill.prices is None


class TestDoubleSpend:
    async def test_simultaneous_bets_cannot_overdraw(
        self, db, executor, market_repo, points_repo, trade_repo
    ) -> None:
        market_repo.add_market()
        points_repo.grant("u1", 500)

        results = await asyncio.gather(
            executor.place(db, _request(points=500)),
            executor.place(db, _request(points=1)),
            return_exceptions=True,
        )

        assert not isinstance(results[0], Exception)
        assert isinstance(results[1], InsufficientBalanceError)
        assert await points_repo.get_balance(db, "u1") == 0
        filled = [t for t in trade_repo.trades.values() if t.status == TradeStatus.FILLED]
        assert len(filled) == 1


class TestValidation:
    async def test_unknown_market(self, db, executor) -> None:
        with pytest.raises(MarketNotFoundError):
            await executor.place(db, _request(market_id="nope"))

    async def test_unknown_outcome(self, db, executor, market_repo, points_repo) -> None:
        market_repo.add_market()
        points_repo.grant("u1", 100)
        with pytest.raises(OutcomeNotFoundError):
            await executor.place(db, _request(outcome_id="other-market-yes"))

    async def test_closed_market(self, db, executor, market_repo, points_repo) -> None:
        market_repo.add_market(status=MarketStatus.CLOSED)
        points_repo.grant("u1", 100)
        with pytest.raises(MarketNotOpenError):
            await executor.place(db, _request())
        assert await points_repo.get_balance(db, "u1") == 100

    async def test_after_close_at(self, db, executor, market_repo, points_repo) -> None:
        market_repo.add_market(close_at=utc_now() - timedelta(minutes=1))
        points_repo.grant("u1", 100)
        with pytest.raises(MarketNotOpenError):
            await executor.place(db, _request())

    async def test_price_out_of_range(self, db, executor, market_repo, points_repo, trade_repo) -> None:
        market_repo.add_market()
        points_repo.grant("u1", 100)
        with pytest.raises(PriceOutOfRangeError):
            await executor.place(db, _request(price=1.5))
        assert trade_repo.trades == {}

    @pytest.mark.parametrize(
        ("stake_points", "token_amount", "token_symbol"),
        [
            (None, None, None),
            (10, 1.0, "USDC"),
            (0, None, None),
            (None, 1.0, None),
            (None, -1.0, "USDC"),
        ],
    )
    async def test_invalid_stake(
        self, db, executor, market_repo, stake_points, token_amount, token_symbol
    ) -> None:
        market_repo.add_market()
        with pytest.raises(InvalidStakeError):
            await executor.place(
                db,
                _request(points=stake_points, token_amount=token_amount, token_symbol=token_symbol),
            )


class TestCompensation:
    async def test_failed_fill_refunds_and_marks_failed(
        self, db, executor, market_repo, points_repo, position_repo, trade_repo, publisher
    ) -> None:
        market_repo.add_market()
        points_repo.grant("u1", 300)
        position_repo.fail_next_upsert = RuntimeError("position store down")

        with pytest.raises(RuntimeError):
            await executor.place(db, _request(points=120))

        (trade,) = trade_repo.trades.values()
        assert trade.status == TradeStatus.FAILED
        assert trade.failure_reason == "RuntimeError"
        assert await points_repo.get_balance(db, "u1") == 300
        assert points_repo.reasons_for("u1")[-1] == PointsReason.BET_REFUND.value
        assert publisher.kinds() == [EventKind.BET_FAILED]
        db.rollback.assert_awaited()

    async def test_illiquid_stake_rejected_before_any_write(
        self, db, executor, market_repo, points_repo, trade_repo, publisher
    ) -> None:
        market_repo.add_market(reserves=(1.0, 1.0))
        points_repo.grant("u1", 1_000_000)

        with pytest.raises(IlliquidMarketError):
            await executor.place(db, _request(points=1_000_000))

        assert trade_repo.trades == {}
        assert points_repo.reasons_for("u1") == [PointsReason.MONTHLY_GRANT.value]
        assert market_repo.reserves["mkt-1"].yes_shares == 1.0
        assert publisher.events == []
        db.commit.assert_not_awaited()


async def _pending_trade(db, trade_repo, points, points_repo, stake: int = 50) -> Trade:
    points_repo.grant("u1", 200)
    trade = await trade_repo.create(
        db,
        Trade(
            id="t-pending",
            user_id="u1",
            market_id="mkt-1",
            outcome_id=YES,
            side=TradeSide.BUY.value,
            price=0.5,
            stake_unit=StakeUnit.POINTS.value,
            stake_points=stake,
            stake_token_amount=None,
            token_symbol=None,
            status=TradeStatus.PENDING.value,
        ),
    )
    await points.debit(db, "u1", stake, PointsReason.BET_PLACED.value, "trade", trade.id)
    return trade


class TestCancel:
    async def test_cancel_refunds_stake_exactly_once(
        self, db, executor, trade_repo, points, points_repo, publisher
    ) -> None:
        trade = await _pending_trade(db, trade_repo, points, points_repo, stake=50)
        assert await points_repo.get_balance(db, "u1") == 150

        cancelled = await executor.cancel(db, trade.id, "u1")

        assert cancelled.status == TradeStatus.CANCELLED
        assert await points_repo.get_balance(db, "u1") == 200
        assert publisher.kinds() == [EventKind.BET_CANCELLED]

        with pytest.raises(InvalidStateError):
            await executor.cancel(db, trade.id, "u1")
        assert await points_repo.get_balance(db, "u1") == 200

    async def test_other_user_cannot_cancel(
        self, db, executor, trade_repo, points, points_repo
    ) -> None:
        trade = await _pending_trade(db, trade_repo, points, points_repo)
        with pytest.raises(ForbiddenError):
            await executor.cancel(db, trade.id, "u2")

    async def test_filled_trade_not_cancellable(
        self, db, executor, market_repo, points_repo
    ) -> None:
        market_repo.add_market()
        points_repo.grant("u1", 100)
        fill = await executor.place(db, _request(points=10))

        with pytest.raises(InvalidStateError):
            await executor.cancel(db, fill.trade.id, "u1")

    async def test_unknown_trade(self, db, executor) -> None:
        with pytest.raises(TradeNotFoundError):
            await executor.cancel(db, "missing", "u1")
