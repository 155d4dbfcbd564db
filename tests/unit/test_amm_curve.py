"""Unit tests for the constant-product curve."""

import math
import random

import pytest

from src.pm_amm.domain import curve
from src.pm_common.enums import OutcomeKey
from src.pm_common.errors import IlliquidMarketError, PriceOutOfRangeError, ValidationError


class TestBuy:
    def test_yes_buy_on_balanced_pool(self) -> None:
        result = curve.buy(100.0, 100.0, OutcomeKey.YES, 10.0)

        assert result.new_no == pytest.approx(100 * math.exp(-0.1))
        assert result.new_no == pytest.approx(90.48374, abs=1e-5)
        assert result.new_yes == pytest.approx(110.5171, abs=1e-4)
        assert result.shares_received == pytest.approx(10.5171, abs=1e-4)
        assert result.avg_price == pytest.approx(0.9509, abs=1e-3)

    def test_no_buy_mirrors_yes_buy(self) -> None:
        yes = curve.buy(100.0, 100.0, OutcomeKey.YES, 10.0)
        no = curve.buy(100.0, 100.0, OutcomeKey.NO, 10.0)

        assert no.new_yes == pytest.approx(yes.new_no)
        assert no.new_no == pytest.approx(yes.new_yes)
        assert no.shares_received == pytest.approx(yes.shares_received)

    @pytest.mark.parametrize("seed", range(20))
    def test_constant_product_preserved(self, seed: int) -> None:
        rng = random.Random(seed)
        y = rng.uniform(10, 10_000)
        n = rng.uniform(10, 10_000)
        side = rng.choice([OutcomeKey.YES, OutcomeKey.NO])
        amount = rng.uniform(0.01, math.sqrt(y * n))

        result = curve.buy(y, n, side, amount)

        assert math.isclose(result.new_yes * result.new_no, y * n, rel_tol=1e-9)
        assert result.shares_received > 0
        p = curve.price(result.new_yes, result.new_no)
        assert 0 < p.price_yes < 1
        assert p.price_yes + p.price_no == pytest.approx(1.0)

    def test_buying_an_outcome_raises_its_price(self) -> None:
        before = curve.price_of(500.0, 800.0, OutcomeKey.YES)
        result = curve.buy(500.0, 800.0, OutcomeKey.YES, 50.0)
        after = curve.price_of(result.new_yes, result.new_no, OutcomeKey.YES)
        assert after > before

        before_no = curve.price_of(500.0, 800.0, OutcomeKey.NO)
        result = curve.buy(500.0, 800.0, OutcomeKey.NO, 50.0)
        assert curve.price_of(result.new_yes, result.new_no, OutcomeKey.NO) > before_no

    @pytest.mark.parametrize("amount", [0.0, -5.0, math.nan, math.inf])
    def test_non_positive_amount_rejected(self, amount: float) -> None:
        with pytest.raises(ValidationError):
            curve.buy(100.0, 100.0, OutcomeKey.YES, amount)

    def test_zero_liquidity_is_illiquid(self) -> None:
        with pytest.raises(IlliquidMarketError):
            curve.buy(0.0, 100.0, OutcomeKey.YES, 1.0)

    def test_amount_that_drains_reserve_is_illiquid(self) -> None:
        with pytest.raises(IlliquidMarketError):
            curve.buy(1.0, 1.0, OutcomeKey.YES, 1e6)


class TestPrice:
    def test_balanced_pool_quotes_half(self) -> None:
        p = curve.price(100.0, 100.0)
        assert p.price_yes == pytest.approx(0.5)
        assert p.price_no == pytest.approx(0.5)

    def test_empty_pool_quotes_half(self) -> None:
        p = curve.price(0.0, 0.0)
        assert (p.price_yes, p.price_no) == (0.5, 0.5)

    def test_prices_sum_to_one(self) -> None:
        p = curve.price(3.0, 7.0)
        assert p.price_yes == pytest.approx(0.3)
        assert p.price_yes + p.price_no == pytest.approx(1.0)


class TestCostForShares:
    @pytest.mark.parametrize("side", [OutcomeKey.YES, OutcomeKey.NO])
    def test_is_inverse_of_buy(self, side: OutcomeKey) -> None:
        result = curve.buy(400.0, 900.0, side, 25.0)
        cost = curve.cost_for_shares(400.0, 900.0, side, result.shares_received)
        assert cost == pytest.approx(25.0, rel=1e-9)

    def test_non_positive_shares_rejected(self) -> None:
        with pytest.raises(ValidationError):
            curve.cost_for_shares(100.0, 100.0, OutcomeKey.YES, 0.0)


class TestMarketImpact:
    def test_reports_old_and_new_price(self) -> None:
        impact = curve.market_impact(100.0, 100.0, OutcomeKey.YES, 10.0)
        assert impact.old_price == pytest.approx(0.5)
        assert impact.new_price > impact.old_price
        assert impact.relative_impact == pytest.approx(
            (impact.new_price - 0.5) / 0.5
        )


class TestSeedReserves:
    @pytest.mark.parametrize("initial_price", [0.01, 0.25, 0.5, 0.8, 0.99])
    def test_opens_at_requested_price(self, initial_price: float) -> None:
        r = curve.seed_reserves(initial_price, 1000.0)
        assert curve.price(r.yes_shares, r.no_shares).price_yes == pytest.approx(initial_price)
        assert r.k == pytest.approx(1000.0**2)

    @pytest.mark.parametrize("initial_price", [0.0, 0.005, 0.995, 1.0])
    def test_price_outside_bounds_rejected(self, initial_price: float) -> None:
        with pytest.raises(PriceOutOfRangeError):
            curve.seed_reserves(initial_price, 1000.0)

    def test_non_positive_liquidity_rejected(self) -> None:
        with pytest.raises(ValidationError):
            curve.seed_reserves(0.5, 0.0)


def test_check_constant_product_detects_drift() -> None:
    curve.check_constant_product(100.0, 10.0, 10.0)
    with pytest.raises(AssertionError):
        curve.check_constant_product(100.0, 10.0, 10.1)
