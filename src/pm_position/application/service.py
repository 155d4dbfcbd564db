"""Read-side service for a user's positions."""

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_amm.domain import curve
from src.pm_common.enums import OutcomeKey
from src.pm_common.pagination import cursor_decode, cursor_encode
from src.pm_market.domain.repository import MarketRepositoryProtocol
from src.pm_market.infrastructure.persistence import MarketRepository
from src.pm_position.application.schemas import PositionListResponse, PositionResponse
from src.pm_position.domain.models import Position
from src.pm_position.domain.repository import PositionRepositoryProtocol
from src.pm_position.infrastructure.persistence import PositionRepository


class PositionQueryService:
    def __init__(
        self,
        repo: PositionRepositoryProtocol | None = None,
        market_repo: MarketRepositoryProtocol | None = None,
    ) -> None:
        self._repo: PositionRepositoryProtocol = repo or PositionRepository()
        self._markets: MarketRepositoryProtocol = market_repo or MarketRepository()

    async def list_positions(
        self,
        db: AsyncSession,
        user_id: str,
        market_id: str | None,
        cursor: str | None,
        limit: int,
    ) -> PositionListResponse:
        after_id = cursor_decode(cursor)
        rows = await self._repo.list_for_user(db, user_id, market_id, after_id, limit + 1)
        has_more = len(rows) > limit
        page = rows[:limit]
        items = []
        for p in page:
            mark = await self._mark_price(db, p) if p.is_open else None
            items.append(PositionResponse.from_domain(p, mark))
        return PositionListResponse(
            items=items,
            next_cursor=cursor_encode(page[-1].id) if has_more and page else None,
            has_more=has_more,
        )

    async def _mark_price(self, db: AsyncSession, position: Position) -> float | None:
        # Markets without a curve have no mark price
        reserves = await self._markets.get_reserves(db, position.market_id)
        if reserves is None:
            return None
        outcome = await self._markets.get_outcome(db, position.outcome_id)
        if outcome is None:
            return None
        return curve.price_of(reserves.yes_shares, reserves.no_shares, OutcomeKey(outcome.key))
