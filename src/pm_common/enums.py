"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class MarketStatus(str, Enum):
    DRAFT = "DRAFT"
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    RESOLVED = "RESOLVED"
    DISPUTED = "DISPUTED"
    CANCELLED = "CANCELLED"


class OutcomeKey(str, Enum):
    """Binary outcome slot; maps an outcome row to a CPMM reserve."""
    YES = "YES"
    NO = "NO"


class TradeSide(str, Enum):
    YES = "YES"
    NO = "NO"
    BUY = "BUY"
    SELL = "SELL"

    @property
    def is_buy_side(self) -> bool:
        return self in (TradeSide.YES, TradeSide.BUY)


class TradeStatus(str, Enum):
    PENDING = "PENDING"
    FILLED = "FILLED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class StakeUnit(str, Enum):
    POINTS = "POINTS"
    TOKEN = "TOKEN"


class PointsReason(str, Enum):
    # Tags are stored verbatim in points_ledger.reason
    MONTHLY_GRANT = "monthly_grant"
    BET_PLACED = "bet_placed"
    BET_REFUND = "bet_refund"
    BET_CANCELLED = "bet_cancelled"
    MARKET_RESOLUTION_WIN = "market_resolution_win"
    DISPUTE_OPENED = "dispute_opened"
    DISPUTE_VOTE_CORRECT = "dispute_vote_correct"
    DISPUTE_SUCCESSFUL = "dispute_successful"


class ResolutionSource(str, Enum):
    MANUAL = "MANUAL"
    ORACLE = "ORACLE"
    COMMUNITY = "COMMUNITY"


class DisputeStatus(str, Enum):
    OPEN = "OPEN"
    VOTING = "VOTING"
    RESOLVED = "RESOLVED"


class DisputeVoteChoice(str, Enum):
    UPHOLD = "UPHOLD"
    OVERTURN = "OVERTURN"
    ABSTAIN = "ABSTAIN"


class DisputeOutcome(str, Enum):
    UPHELD = "UPHELD"
    OVERTURNED = "OVERTURNED"
    DISMISSED = "DISMISSED"


class DisputeResolutionSource(str, Enum):
    AUTO = "AUTO"
    ADMIN = "ADMIN"
