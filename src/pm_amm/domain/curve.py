"""Constant-product price curve for binary markets.

Pure functions over reserves (y, n) = (yes_shares, no_shares), k = y * n.

The cost integral is solved in closed form on the liquidity depth
L = sqrt(k). Buying YES for `amount` points:

    new_n = n * exp(-amount / L)
    new_y = k / new_n
    shares_received = new_y - y

NO is the mirror with y and n swapped. Each outcome is priced by its own
reserve share, so buying an outcome always raises its price:

    price_yes = y / (y + n)
    price_no  = n / (y + n)
"""

import math

from src.pm_amm.domain.models import BuyResult, MarketImpact, Prices, Reserves
from src.pm_common.enums import OutcomeKey
from src.pm_common.errors import IlliquidMarketError, PriceOutOfRangeError, ValidationError

K_REL_TOLERANCE = 1e-9
MIN_PRICE = 0.01
MAX_PRICE = 0.99


def price(y: float, n: float) -> Prices:
    """Current outcome prices. Degenerate reserves (y + n == 0) quote 0.5 / 0.5."""
    total = y + n
    if total <= 0:
        return Prices(price_yes=0.5, price_no=0.5)
    price_yes = y / total
    return Prices(price_yes=price_yes, price_no=1.0 - price_yes)


def price_of(y: float, n: float, side: OutcomeKey) -> float:
    prices = price(y, n)
    return prices.price_yes if side == OutcomeKey.YES else prices.price_no


def buy(y: float, n: float, side: OutcomeKey, amount: float) -> BuyResult:
    """Spend `amount` on `side`. Returns the post-trade reserves and fill.

    Raises:
        ValidationError: amount is not positive.
        IlliquidMarketError: k <= 0, or the trade would exhaust a reserve.
    """
    if not amount > 0 or not math.isfinite(amount):
        raise ValidationError(f"Buy amount must be positive, got {amount}")
    k = y * n
    if not k > 0:
        raise IlliquidMarketError(f"reserves ({y}, {n}) have no liquidity")
    depth = math.sqrt(k)

    # Solve on the side being bought; the opposite reserve drains.
    own, other = (y, n) if side == OutcomeKey.YES else (n, y)
    new_other = other * math.exp(-amount / depth)
    if new_other <= 0:
        raise IlliquidMarketError(f"amount {amount} exhausts reserves ({y}, {n})")
    new_own = k / new_other
    shares = new_own - own
    if not shares > 0 or not math.isfinite(new_own):
        raise IlliquidMarketError(f"amount {amount} is outside the curve's range")

    new_y, new_n = (new_own, new_other) if side == OutcomeKey.YES else (new_other, new_own)
    check_constant_product(k, new_y, new_n)
    return BuyResult(
        new_yes=new_y,
        new_no=new_n,
        shares_received=shares,
        avg_price=amount / shares,
    )


def cost_for_shares(y: float, n: float, side: OutcomeKey, desired_shares: float) -> float:
    """Points needed to receive exactly `desired_shares` of `side`. Inverse of buy()."""
    if not desired_shares > 0 or not math.isfinite(desired_shares):
        raise ValidationError(f"Desired shares must be positive, got {desired_shares}")
    k = y * n
    if not k > 0:
        raise IlliquidMarketError(f"reserves ({y}, {n}) have no liquidity")
    depth = math.sqrt(k)

    own, other = (y, n) if side == OutcomeKey.YES else (n, y)
    new_other = k / (own + desired_shares)
    return depth * math.log(other / new_other)


def market_impact(y: float, n: float, side: OutcomeKey, amount: float) -> MarketImpact:
    """Price of `side` before and after spending `amount`, and the relative move."""
    old_price = price_of(y, n, side)
    result = buy(y, n, side, amount)
    new_price = price_of(result.new_yes, result.new_no, side)
    return MarketImpact(
        old_price=old_price,
        new_price=new_price,
        relative_impact=abs(new_price - old_price) / old_price,
    )


def seed_reserves(initial_price: float, liquidity: float) -> Reserves:
    """Reserves that open at `initial_price` for YES with k = liquidity ** 2."""
    if not MIN_PRICE <= initial_price <= MAX_PRICE:
        raise PriceOutOfRangeError(initial_price)
    if not liquidity > 0 or not math.isfinite(liquidity):
        raise ValidationError(f"Seed liquidity must be positive, got {liquidity}")
    odds = initial_price / (1.0 - initial_price)
    return Reserves(
        yes_shares=liquidity * math.sqrt(odds),
        no_shares=liquidity / math.sqrt(odds),
    )


def check_constant_product(k: float, new_y: float, new_n: float) -> None:
    """Raises AssertionError if a trade moved k beyond floating-point tolerance."""
    new_k = new_y * new_n
    assert math.isclose(new_k, k, rel_tol=K_REL_TOLERANCE), (
        f"Constant product violated: k={k!r} -> {new_k!r}"
    )
