"""Trade price resolution.

A caller-supplied price is accepted only inside [0.01, 0.99]. Without one,
the price is 0.5 for an outcome that has never filled, otherwise the last
filled price moved one spread step: buy sides (YES, BUY) add, sell sides
(NO, SELL) subtract, clamped to [0.01, 0.99].
"""

from src.pm_amm.domain.curve import MAX_PRICE, MIN_PRICE
from src.pm_common.enums import TradeSide
from src.pm_common.errors import PriceOutOfRangeError

DEFAULT_PRICE = 0.5
SPREAD = 0.01
_PRICE_DECIMALS = 4


def clamp_price(value: float) -> float:
    return round(min(MAX_PRICE, max(MIN_PRICE, value)), _PRICE_DECIMALS)


def spread_price(last_filled_price: float | None, side: TradeSide) -> float:
    if last_filled_price is None:
        return DEFAULT_PRICE
    step = SPREAD if side.is_buy_side else -SPREAD
    return clamp_price(last_filled_price + step)


def resolve_trade_price(
    requested: float | None, last_filled_price: float | None, side: TradeSide
) -> float:
    if requested is not None:
        if not MIN_PRICE <= requested <= MAX_PRICE:
            raise PriceOutOfRangeError(requested)
        return round(requested, _PRICE_DECIMALS)
    return spread_price(last_filled_price, side)
