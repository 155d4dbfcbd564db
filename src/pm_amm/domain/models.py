"""Domain models for pm_amm — pure dataclasses, no I/O."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Reserves:
    """AMM share reserves for one binary market."""

    yes_shares: float
    no_shares: float

    @property
    def k(self) -> float:
        return self.yes_shares * self.no_shares


@dataclass(frozen=True)
class Prices:
    price_yes: float
    price_no: float


@dataclass(frozen=True)
class BuyResult:
    new_yes: float
    new_no: float
    shares_received: float
    avg_price: float

    @property
    def reserves(self) -> Reserves:
        return Reserves(self.new_yes, self.new_no)


@dataclass(frozen=True)
class MarketImpact:
    old_price: float
    new_price: float
    relative_impact: float
