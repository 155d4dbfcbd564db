# src/pm_trade/application/schemas.py
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from src.pm_position.application.schemas import PositionResponse
from src.pm_trade.domain.models import Stake, Trade, TradeFill


class PlaceTradeRequest(BaseModel):
    market_id: str = Field(..., min_length=1)
    outcome_id: str = Field(..., min_length=1)
    side: Literal["YES", "NO", "BUY", "SELL"] = "BUY"
    # Exactly one of stake_points / stake_token_amount; checked by the executor
    stake_points: int | None = None
    stake_token_amount: float | None = None
    token_symbol: str | None = None
    price: float | None = Field(None, description="Optional limit price in [0.01, 0.99]")

    def to_stake(self) -> Stake:
        return Stake(
            points=self.stake_points,
            token_amount=self.stake_token_amount,
            token_symbol=self.token_symbol,
        )


class TradeResponse(BaseModel):
    id: str
    market_id: str
    outcome_id: str
    side: str
    price: float
    stake_unit: str
    stake_points: int | None
    stake_token_amount: float | None
    token_symbol: str | None
    shares: float | None
    status: str
    failure_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, t: Trade) -> "TradeResponse":
        return cls(
            id=t.id,
            market_id=t.market_id,
            outcome_id=t.outcome_id,
            side=t.side,
            price=t.price,
            stake_unit=t.stake_unit,
            stake_points=t.stake_points,
            stake_token_amount=t.stake_token_amount,
            token_symbol=t.token_symbol,
            shares=t.shares,
            status=t.status,
            failure_reason=t.failure_reason,
            created_at=t.created_at,
            updated_at=t.updated_at,
        )


class PlaceTradeResponse(BaseModel):
    trade: TradeResponse
    position: PositionResponse
    balance_after: int | None
    price_yes: float | None
    price_no: float | None

    @classmethod
    def from_fill(cls, fill: TradeFill) -> "PlaceTradeResponse":
        return cls(
            trade=TradeResponse.from_domain(fill.trade),
            position=PositionResponse.from_domain(fill.position),
            balance_after=fill.balance_after,
            price_yes=fill.prices.price_yes if fill.prices else None,
            price_no=fill.prices.price_no if fill.prices else None,
        )
