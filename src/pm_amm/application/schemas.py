"""Read-only quote responses."""

from pydantic import BaseModel


class PricesResponse(BaseModel):
    market_id: str
    yes_shares: float
    no_shares: float
    price_yes: float
    price_no: float


class BuyQuoteResponse(BaseModel):
    market_id: str
    outcome_id: str
    amount: float
    shares_received: float
    avg_price: float
    price_before: float
    price_after: float
    relative_impact: float


class CostQuoteResponse(BaseModel):
    market_id: str
    outcome_id: str
    shares: float
    cost: float
