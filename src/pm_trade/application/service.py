"""TradeApplicationService — request/response shaping around TradeExecutor."""

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.enums import TradeSide
from src.pm_common.errors import TradeNotFoundError
from src.pm_common.locks import KeyedLock
from src.pm_notify.infrastructure.redis_publisher import RedisEventPublisher
from src.pm_trade.application.schemas import (
    PlaceTradeRequest,
    PlaceTradeResponse,
    TradeResponse,
)
from src.pm_trade.domain.executor import TradeExecutor
from src.pm_trade.domain.models import TradeRequest
from src.pm_trade.domain.repository import TradeRepositoryProtocol
from src.pm_trade.infrastructure.persistence import TradeRepository


class TradeApplicationService:
    def __init__(
        self,
        executor: TradeExecutor,
        repo: TradeRepositoryProtocol | None = None,
    ) -> None:
        self._executor = executor
        self._repo: TradeRepositoryProtocol = repo or TradeRepository()

    async def place_trade(
        self, db: AsyncSession, user_id: str, body: PlaceTradeRequest
    ) -> PlaceTradeResponse:
        req = TradeRequest(
            user_id=user_id,
            market_id=body.market_id,
            outcome_id=body.outcome_id,
            side=TradeSide(body.side),
            stake=body.to_stake(),
            price=body.price,
        )
        fill = await self._executor.place(db, req)
        return PlaceTradeResponse.from_fill(fill)

    async def get_trade(self, db: AsyncSession, user_id: str, trade_id: str) -> TradeResponse:
        trade = await self._repo.get(db, trade_id)
        # Other users' trades are reported as missing
        if trade is None or trade.user_id != user_id:
            raise TradeNotFoundError(trade_id)
        return TradeResponse.from_domain(trade)

    async def cancel_trade(
        self, db: AsyncSession, user_id: str, trade_id: str
    ) -> TradeResponse:
        trade = await self._executor.cancel(db, trade_id, user_id)
        return TradeResponse.from_domain(trade)


_service: TradeApplicationService | None = None


def get_trade_service() -> TradeApplicationService:
    """Process-wide service; its executor owns the per-user lock table."""
    global _service  # noqa: PLW0603
    if _service is None:
        executor = TradeExecutor(publisher=RedisEventPublisher(), user_locks=KeyedLock())
        _service = TradeApplicationService(executor)
    return _service
