"""QuoteService — prices and hypothetical fills from the current reserves.

Nothing here writes; reserves are read without a row lock.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_amm.application.schemas import BuyQuoteResponse, CostQuoteResponse, PricesResponse
from src.pm_amm.domain import curve
from src.pm_amm.domain.models import Reserves
from src.pm_common.enums import OutcomeKey
from src.pm_common.errors import IlliquidMarketError, MarketNotFoundError, OutcomeNotFoundError
from src.pm_market.domain.repository import MarketRepositoryProtocol
from src.pm_market.infrastructure.persistence import MarketRepository


class QuoteService:
    def __init__(self, repo: MarketRepositoryProtocol | None = None) -> None:
        self._repo: MarketRepositoryProtocol = repo or MarketRepository()

    async def _reserves(self, db: AsyncSession, market_id: str) -> Reserves:
        reserves = await self._repo.get_reserves(db, market_id)
        if reserves is None:
            if await self._repo.get_market(db, market_id) is None:
                raise MarketNotFoundError(market_id)
            raise IlliquidMarketError(f"market {market_id} has no AMM reserves")
        return reserves

    async def _outcome_key(self, db: AsyncSession, market_id: str, outcome_id: str) -> OutcomeKey:
        outcome = await self._repo.get_outcome(db, outcome_id)
        if outcome is None or outcome.market_id != market_id:
            raise OutcomeNotFoundError(outcome_id)
        return OutcomeKey(outcome.key)

    async def get_prices(self, db: AsyncSession, market_id: str) -> PricesResponse:
        r = await self._reserves(db, market_id)
        prices = curve.price(r.yes_shares, r.no_shares)
        return PricesResponse(
            market_id=market_id,
            yes_shares=r.yes_shares,
            no_shares=r.no_shares,
            price_yes=prices.price_yes,
            price_no=prices.price_no,
        )

    async def quote_buy(
        self, db: AsyncSession, market_id: str, outcome_id: str, amount: float
    ) -> BuyQuoteResponse:
        r = await self._reserves(db, market_id)
        side = await self._outcome_key(db, market_id, outcome_id)
        result = curve.buy(r.yes_shares, r.no_shares, side, amount)
        impact = curve.market_impact(r.yes_shares, r.no_shares, side, amount)
        return BuyQuoteResponse(
            market_id=market_id,
            outcome_id=outcome_id,
            amount=amount,
            shares_received=result.shares_received,
            avg_price=result.avg_price,
            price_before=impact.old_price,
            price_after=impact.new_price,
            relative_impact=impact.relative_impact,
        )

    async def quote_cost(
        self, db: AsyncSession, market_id: str, outcome_id: str, shares: float
    ) -> CostQuoteResponse:
        r = await self._reserves(db, market_id)
        side = await self._outcome_key(db, market_id, outcome_id)
        cost = curve.cost_for_shares(r.yes_shares, r.no_shares, side, shares)
        return CostQuoteResponse(market_id=market_id, outcome_id=outcome_id, shares=shares, cost=cost)
