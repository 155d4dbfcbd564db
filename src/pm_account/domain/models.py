"""Domain models for pm_account — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class PointsEntry:
    id: int                          # BIGSERIAL
    user_id: str
    delta: int                       # points, positive=credit negative=debit
    balance_after: int               # running balance after this entry
    reason: str                      # PointsReason value
    ref_type: str | None = None
    ref_id: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime | None = None


@dataclass
class PointsCredit:
    """A credit waiting to be appended, e.g. one settlement payout."""

    user_id: str
    amount: int
    reason: str
    ref_type: str
    ref_id: str
    metadata: dict[str, Any] = field(default_factory=dict)
