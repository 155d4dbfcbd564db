"""Domain models for pm_trade — pure dataclasses."""

import math
from dataclasses import dataclass
from datetime import datetime

from src.pm_amm.domain.models import Prices
from src.pm_common.enums import StakeUnit, TradeSide
from src.pm_common.errors import InvalidStakeError
from src.pm_position.domain.models import Position


@dataclass(frozen=True)
class Stake:
    """Exactly one of points / token_amount is set and positive."""

    points: int | None = None
    token_amount: float | None = None
    token_symbol: str | None = None

    @property
    def unit(self) -> StakeUnit:
        return StakeUnit.POINTS if self.points is not None else StakeUnit.TOKEN

    @property
    def amount(self) -> float:
        return float(self.points) if self.points is not None else float(self.token_amount or 0)

    def validate(self) -> None:
        has_points = self.points is not None
        has_token = self.token_amount is not None
        if has_points == has_token:
            raise InvalidStakeError("specify exactly one of points or token_amount")
        if has_points:
            if isinstance(self.points, bool) or not isinstance(self.points, int):
                raise InvalidStakeError("points must be a whole number")
            if self.points <= 0:
                raise InvalidStakeError("points must be positive")
            return
        amount = self.token_amount
        if amount is None or not math.isfinite(amount) or amount <= 0:
            raise InvalidStakeError("token_amount must be positive")
        if not self.token_symbol:
            raise InvalidStakeError("token_symbol is required for token stakes")


@dataclass(frozen=True)
class TradeRequest:
    user_id: str
    market_id: str
    outcome_id: str
    side: TradeSide
    stake: Stake
    price: float | None = None


@dataclass
class Trade:
    id: str
    user_id: str
    market_id: str
    outcome_id: str
    side: str            # TradeSide value
    price: float
    stake_unit: str      # StakeUnit value
    stake_points: int | None
    stake_token_amount: float | None
    token_symbol: str | None
    status: str          # TradeStatus value
    shares: float | None = None
    failure_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def stake_amount(self) -> float:
        if self.stake_unit == StakeUnit.POINTS:
            return float(self.stake_points or 0)
        return float(self.stake_token_amount or 0)


@dataclass
class TradeFill:
    trade: Trade
    position: Position
    balance_after: int | None
    prices: Prices | None
