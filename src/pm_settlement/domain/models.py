"""Domain models for pm_settlement — pure dataclasses."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Resolution:
    id: str
    market_id: str
    winning_outcome_id: str
    source: str                      # ResolutionSource value
    resolved_by: str
    resolved_at: datetime
    oracle_tx_hash: str | None = None
    notes: str | None = None
    settled_at: datetime | None = None
    payouts_applied: int = 0
    points_paid: int = 0


@dataclass(frozen=True)
class ResolveCommand:
    market_id: str
    winning_outcome_id: str
    source: str
    resolved_by: str
    oracle_tx_hash: str | None = None
    notes: str | None = None


@dataclass
class SettlementReport:
    market_id: str
    resolution_id: str
    winning_outcome_id: str
    positions_scanned: int = 0
    payouts_applied: int = 0
    payouts_skipped: int = 0         # already paid by an earlier run
    points_paid: int = 0
    pages: int = 0
    outcomes_liquidated: list[str] = field(default_factory=list)
    settled_at: datetime | None = None


@dataclass
class Eligibility:
    market_id: str
    eligible: bool
    requirements: list[str] = field(default_factory=list)
