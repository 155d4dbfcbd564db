"""Process-wide SettlementEngine factory."""

from src.pm_common.locks import KeyedLock
from src.pm_notify.infrastructure.redis_publisher import RedisEventPublisher
from src.pm_settlement.domain.engine import SettlementEngine

_engine: SettlementEngine | None = None


def get_settlement_engine() -> SettlementEngine:
    global _engine  # noqa: PLW0603
    if _engine is None:
        _engine = SettlementEngine(publisher=RedisEventPublisher(), market_locks=KeyedLock())
    return _engine
