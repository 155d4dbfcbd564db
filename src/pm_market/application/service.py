"""MarketApplicationService — market creation and lifecycle transitions.

Writes commit their own transaction; get_market is read-only.
"""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pm_amm.domain.curve import seed_reserves
from src.pm_common.enums import MarketStatus, OutcomeKey
from src.pm_common.errors import InvalidTransitionError, MarketNotFoundError
from src.pm_market.application.schemas import CreateMarketRequest, MarketDetail
from src.pm_market.domain.lifecycle import check_transition
from src.pm_market.domain.models import Market, Outcome
from src.pm_market.domain.repository import MarketRepositoryProtocol
from src.pm_market.infrastructure.persistence import MarketRepository

logger = logging.getLogger(__name__)


class MarketApplicationService:
    def __init__(self, repo: MarketRepositoryProtocol | None = None) -> None:
        self._repo: MarketRepositoryProtocol = repo or MarketRepository()

    async def get_market(self, db: AsyncSession, market_id: str) -> MarketDetail:
        market = await self._repo.get_market(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        return MarketDetail.from_domain(market)

    async def create_market(
        self, db: AsyncSession, creator_id: str, body: CreateMarketRequest
    ) -> MarketDetail:
        liquidity = body.seed_liquidity or settings.DEFAULT_SEED_LIQUIDITY
        reserves = seed_reserves(body.initial_price, liquidity)

        market_id = uuid.uuid4().hex
        market = Market(
            id=market_id,
            title=body.title,
            description=body.description,
            status=(MarketStatus.OPEN if body.open_now else MarketStatus.DRAFT).value,
            close_at=body.close_at,
            resolve_by=body.resolve_by,
            created_by=creator_id,
            outcomes=[
                Outcome(uuid.uuid4().hex, market_id, OutcomeKey.YES.value, body.yes_label),
                Outcome(uuid.uuid4().hex, market_id, OutcomeKey.NO.value, body.no_label),
            ],
        )
        try:
            created = await self._repo.create_market(db, market, reserves)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Market created: id=%s status=%s price=%.4f k=%.4f",
            created.id, created.status, body.initial_price, reserves.k,
        )
        return MarketDetail.from_domain(created)

    async def change_status(
        self, db: AsyncSession, market_id: str, target: str
    ) -> MarketDetail:
        market = await self._repo.get_market(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        check_transition(market.status, target)
        try:
            updated = await self._repo.update_status(db, market_id, market.status, target)
            if updated is None:
                # Status moved between our read and the conditional update
                raise InvalidTransitionError(market.status, target)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Market status: id=%s %s -> %s", market_id, market.status, target)
        return MarketDetail.from_domain(updated)
