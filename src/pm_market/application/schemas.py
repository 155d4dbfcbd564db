"""Pydantic schemas for pm_market API requests and responses."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from src.pm_common.datetime_utils import ensure_utc
from src.pm_market.domain.models import Market, Outcome


class CreateMarketRequest(BaseModel):
    title: str = Field(..., min_length=3, max_length=500)
    description: str | None = None
    close_at: datetime | None = None
    resolve_by: datetime | None = None
    yes_label: str = "Yes"
    no_label: str = "No"
    initial_price: float = Field(0.5, description="Opening YES price in [0.01, 0.99]")
    seed_liquidity: float | None = Field(None, gt=0)
    open_now: bool = False

    @field_validator("close_at", "resolve_by")
    @classmethod
    def as_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    @model_validator(mode="after")
    def close_before_resolve(self) -> "CreateMarketRequest":
        if self.close_at and self.resolve_by and self.resolve_by < self.close_at:
            raise ValueError("resolve_by must not be earlier than close_at")
        return self


class ChangeStatusRequest(BaseModel):
    status: Literal["OPEN", "CLOSED", "DISPUTED", "CANCELLED", "RESOLVED"]


class OutcomeOut(BaseModel):
    id: str
    key: str
    label: str

    @classmethod
    def from_domain(cls, o: Outcome) -> "OutcomeOut":
        return cls(id=o.id, key=o.key, label=o.label)


class MarketDetail(BaseModel):
    id: str
    title: str
    description: str | None
    status: str
    close_at: datetime | None
    resolve_by: datetime | None
    created_by: str | None
    outcomes: list[OutcomeOut]
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_domain(cls, m: Market) -> "MarketDetail":
        return cls(
            id=m.id,
            title=m.title,
            description=m.description,
            status=m.status,
            close_at=m.close_at,
            resolve_by=m.resolve_by,
            created_by=m.created_by,
            outcomes=[OutcomeOut.from_domain(o) for o in m.outcomes],
            created_at=m.created_at,
            updated_at=m.updated_at,
        )
