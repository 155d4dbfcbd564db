"""Event envelopes and topic names published by the core.

Delivery is fire-and-forget from the core's point of view; consumers
(SSE/WebSocket fan-out, notification workers) subscribe to the topics.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from src.pm_common.datetime_utils import utc_now


class EventKind(str, Enum):
    BET_FILLED = "bet.filled"
    BET_FAILED = "bet.failed"
    BET_CANCELLED = "bet.cancelled"
    PRICE_UPDATED = "price.updated"
    MARKET_RESOLVED = "market.resolved"
    MARKET_DISPUTED = "market.disputed"
    DISPUTE_RESOLVED = "dispute.resolved"
    USER_POINTS_UPDATED = "user.points.updated"


def market_trades_topic(market_id: str) -> str:
    return f"market:{market_id}:trades"


def market_ticker_topic(market_id: str) -> str:
    return f"market:{market_id}:ticker"


def market_resolved_topic(market_id: str) -> str:
    return f"market:{market_id}:resolved"


def user_notifications_topic(user_id: str) -> str:
    return f"user:{user_id}:notifications"


@dataclass(frozen=True)
class Event:
    topic: str
    kind: EventKind
    payload: dict[str, Any]
    created_at: datetime = field(default_factory=utc_now)

    def to_message(self) -> dict[str, Any]:
        return {
            "topic": self.topic,
            "kind": self.kind.value,
            "payload": self.payload,
            "created_at": self.created_at.isoformat(),
        }


def fill_event(
    market_id: str,
    outcome_id: str,
    user_id: str,
    trade_id: str,
    price: float,
    quantity: float,
) -> Event:
    return Event(
        topic=market_trades_topic(market_id),
        kind=EventKind.BET_FILLED,
        payload={
            "market_id": market_id,
            "outcome_id": outcome_id,
            "user_id": user_id,
            "trade_id": trade_id,
            "price": price,
            "quantity": quantity,
        },
    )


def trade_status_event(kind: EventKind, user_id: str, trade_id: str, reason: str | None) -> Event:
    return Event(
        topic=user_notifications_topic(user_id),
        kind=kind,
        payload={"trade_id": trade_id, "reason": reason},
    )


def price_event(market_id: str, price_yes: float, price_no: float) -> Event:
    return Event(
        topic=market_ticker_topic(market_id),
        kind=EventKind.PRICE_UPDATED,
        payload={"market_id": market_id, "price_yes": price_yes, "price_no": price_no},
    )


def resolution_event(
    market_id: str, winning_outcome_id: str, resolution_id: str, resolved_at: datetime
) -> Event:
    return Event(
        topic=market_resolved_topic(market_id),
        kind=EventKind.MARKET_RESOLVED,
        payload={
            "market_id": market_id,
            "winning_outcome_id": winning_outcome_id,
            "resolution_id": resolution_id,
            "timestamp": resolved_at.isoformat(),
        },
    )


def payout_event(user_id: str, delta: int, balance_after: int, reason: str) -> Event:
    return Event(
        topic=user_notifications_topic(user_id),
        kind=EventKind.USER_POINTS_UPDATED,
        payload={
            "user_id": user_id,
            "delta": delta,
            "balance_after": balance_after,
            "reason": reason,
        },
    )


def dispute_opened_event(market_id: str, dispute_id: str, opened_by: str) -> Event:
    return Event(
        topic=market_resolved_topic(market_id),
        kind=EventKind.MARKET_DISPUTED,
        payload={"market_id": market_id, "dispute_id": dispute_id, "opened_by": opened_by},
    )


def dispute_resolved_event(
    market_id: str, dispute_id: str, outcome: str, source: str, market_status: str
) -> Event:
    return Event(
        topic=market_resolved_topic(market_id),
        kind=EventKind.DISPUTE_RESOLVED,
        payload={
            "market_id": market_id,
            "dispute_id": dispute_id,
            "outcome": outcome,
            "source": source,
            "status": market_status,
        },
    )
