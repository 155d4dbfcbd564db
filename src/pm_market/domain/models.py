"""Domain models for pm_market — pure dataclasses, no business logic."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Outcome:
    id: str
    market_id: str
    key: str            # OutcomeKey value
    label: str


@dataclass
class Market:
    id: str
    title: str
    description: str | None
    status: str         # MarketStatus value
    close_at: datetime | None
    resolve_by: datetime | None
    created_by: str | None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    outcomes: list[Outcome] = field(default_factory=list)

    def outcome(self, outcome_id: str) -> Outcome | None:
        return next((o for o in self.outcomes if o.id == outcome_id), None)

    def outcome_for_key(self, key: str) -> Outcome | None:
        return next((o for o in self.outcomes if o.key == key), None)
