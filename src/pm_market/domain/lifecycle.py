"""Market status graph.

DRAFT ──► OPEN ──► CLOSED ──► RESOLVED ──► DISPUTED
  │        │         │                      │   │
  └────────┴─────────┴──► CANCELLED         │   └──► RESOLVED (dispute dismissed)
                                            └──────► CLOSED   (reopened for review)

CLOSED → RESOLVED is owned by the settlement engine and every edge into or
out of DISPUTED by the dispute arbiter; the admin status endpoint may take
none of them. CANCELLED is terminal.
"""

from datetime import datetime

from src.pm_common.enums import MarketStatus
from src.pm_common.errors import InvalidTransitionError, MarketNotOpenError
from src.pm_market.domain.models import Market

_TRANSITIONS: dict[MarketStatus, frozenset[MarketStatus]] = {
    MarketStatus.DRAFT: frozenset({MarketStatus.OPEN, MarketStatus.CANCELLED}),
    MarketStatus.OPEN: frozenset({MarketStatus.CLOSED, MarketStatus.CANCELLED}),
    MarketStatus.CLOSED: frozenset({MarketStatus.RESOLVED, MarketStatus.CANCELLED}),
    MarketStatus.RESOLVED: frozenset({MarketStatus.DISPUTED}),
    MarketStatus.DISPUTED: frozenset({MarketStatus.CLOSED, MarketStatus.RESOLVED}),
    MarketStatus.CANCELLED: frozenset(),
}

# Transitions only the settlement engine may perform
SETTLEMENT_ONLY: frozenset[tuple[MarketStatus, MarketStatus]] = frozenset(
    {(MarketStatus.CLOSED, MarketStatus.RESOLVED)}
)

DISPUTE_ONLY: frozenset[tuple[MarketStatus, MarketStatus]] = frozenset(
    {
        (MarketStatus.RESOLVED, MarketStatus.DISPUTED),
        (MarketStatus.DISPUTED, MarketStatus.CLOSED),
        (MarketStatus.DISPUTED, MarketStatus.RESOLVED),
    }
)


def can_transition(current: str, target: str) -> bool:
    return MarketStatus(target) in _TRANSITIONS[MarketStatus(current)]


def check_transition(
    current: str, target: str, *, by_settlement: bool = False, by_dispute: bool = False
) -> None:
    """Raise InvalidTransitionError unless current → target is an allowed edge."""
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)
    edge = (MarketStatus(current), MarketStatus(target))
    if edge in SETTLEMENT_ONLY and not by_settlement:
        raise InvalidTransitionError(current, target)
    if edge in DISPUTE_ONLY and not by_dispute:
        raise InvalidTransitionError(current, target)


def ensure_open_for_trading(market: Market, now: datetime) -> None:
    if market.status != MarketStatus.OPEN:
        raise MarketNotOpenError(market.id, f"not open (status={market.status})")
    if market.close_at is not None and now >= market.close_at:
        raise MarketNotOpenError(market.id, "closed for betting")
