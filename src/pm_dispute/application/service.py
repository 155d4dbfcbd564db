"""Process-wide DisputeArbiter factory."""

from src.pm_common.locks import KeyedLock
from src.pm_dispute.domain.arbiter import DisputeArbiter
from src.pm_notify.infrastructure.redis_publisher import RedisEventPublisher

_arbiter: DisputeArbiter | None = None


def get_dispute_arbiter() -> DisputeArbiter:
    global _arbiter  # noqa: PLW0603
    if _arbiter is None:
        _arbiter = DisputeArbiter(publisher=RedisEventPublisher(), market_locks=KeyedLock())
    return _arbiter
