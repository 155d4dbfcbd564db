"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Request validation
  2xxx: Points
  3xxx: Market / AMM
  4xxx: Trade
  5xxx: Position
  6xxx: Resolution / settlement
  7xxx: Dispute
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- Generic categories ---

class ValidationError(AppError):
    """Malformed or out-of-range input. Raised before any mutation."""

    def __init__(self, message: str, code: int = 1001) -> None:
        super().__init__(code, message, 422)


class NotFoundError(AppError):
    def __init__(self, message: str, code: int = 1004) -> None:
        super().__init__(code, message, 404)


class ConflictError(AppError):
    def __init__(self, message: str, code: int = 1009) -> None:
        super().__init__(code, message, 409)


class InvalidStateError(AppError):
    """Operation is not legal for the entity's current state."""

    def __init__(self, message: str, code: int = 9004) -> None:
        super().__init__(code, message, 409)


class ForbiddenError(AppError):
    def __init__(self, message: str = "Operation not permitted") -> None:
        super().__init__(9005, message, 403)


# --- 1xxx: Request validation ---

class InvalidTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Access token is invalid or expired", 401)


class InvalidStakeError(ValidationError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"Invalid stake: {detail}", 1002)


# --- 2xxx: Points ---

class InsufficientBalanceError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            f"Insufficient balance: required {required} points, available {available} points",
            422,
        )


class MonthlyGrantClaimedError(ConflictError):
    def __init__(self, period: str) -> None:
        super().__init__(f"Monthly grant already claimed for {period}", 2002)


# --- 3xxx: Market / AMM ---

class MarketNotFoundError(NotFoundError):
    def __init__(self, market_id: str) -> None:
        super().__init__(f"Market not found: {market_id}", 3001)


class MarketNotOpenError(ValidationError):
    def __init__(self, market_id: str, detail: str = "not open") -> None:
        super().__init__(f"Market {market_id} is {detail}", 3002)


class IlliquidMarketError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3003, f"Illiquid market: {detail}", 422)


class OutcomeNotFoundError(NotFoundError):
    def __init__(self, outcome_id: str) -> None:
        super().__init__(f"Outcome not found: {outcome_id}", 3004)


class InvalidTransitionError(InvalidStateError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Market cannot move from {current} to {target}", 3005)


# --- 4xxx: Trade ---

class PriceOutOfRangeError(ValidationError):
    def __init__(self, price: float) -> None:
        super().__init__(f"Price out of range [0.01, 0.99]: {price}", 4001)


class TradeNotFoundError(NotFoundError):
    def __init__(self, trade_id: str) -> None:
        super().__init__(f"Trade not found: {trade_id}", 4004)


class TradeNotCancellableError(InvalidStateError):
    def __init__(self, trade_id: str, status: str) -> None:
        super().__init__(f"Trade {trade_id} in status {status} cannot be cancelled", 4006)


# --- 5xxx: Position ---

class InvalidQuantityError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5002, f"Invalid quantity: {detail}", 422)


# --- 6xxx: Resolution / settlement ---

class ResolutionNotFoundError(NotFoundError):
    def __init__(self, market_id: str) -> None:
        super().__init__(f"No resolution recorded for market {market_id}", 6001)


class AlreadyResolvedError(ConflictError):
    def __init__(self, market_id: str) -> None:
        super().__init__(f"Market already resolved: {market_id}", 6002)


class MarketNotResolvableError(InvalidStateError):
    def __init__(self, market_id: str, status: str) -> None:
        super().__init__(f"Market {market_id} in status {status} cannot be resolved", 6003)


# --- 7xxx: Dispute ---

class DisputeNotFoundError(NotFoundError):
    def __init__(self, dispute_id: str) -> None:
        super().__init__(f"Dispute not found: {dispute_id}", 7001)


class DisputeWindowClosedError(InvalidStateError):
    def __init__(self, market_id: str, hours: int) -> None:
        super().__init__(
            f"Dispute window for market {market_id} closed {hours}h after resolution", 7002
        )


class ActiveDisputeExistsError(ConflictError):
    def __init__(self, market_id: str) -> None:
        super().__init__(f"Market {market_id} already has an active dispute", 7003)


class AlreadyVotedError(ConflictError):
    def __init__(self, dispute_id: str) -> None:
        super().__init__(f"Already voted on dispute {dispute_id}", 7004)


class DisputeNotActiveError(InvalidStateError):
    def __init__(self, dispute_id: str, status: str) -> None:
        super().__init__(f"Dispute {dispute_id} in status {status} is closed", 7005)


class MarketNotDisputableError(InvalidStateError):
    def __init__(self, market_id: str, status: str) -> None:
        super().__init__(f"Market {market_id} in status {status} cannot be disputed", 7006)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class TransientStoreError(AppError):
    def __init__(self, detail: str = "Storage temporarily unavailable, please retry") -> None:
        super().__init__(9003, detail, 503)
