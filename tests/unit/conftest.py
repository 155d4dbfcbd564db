"""In-memory repositories and wiring for domain unit tests.

The fakes honour the same contracts as the SQL repositories: guarded
debits, idempotent credits on (reason, ref), conditional status updates,
per-unit weighted averages and keyset paging. They do not model
transactions, so a rollback leaves earlier fake writes in place.
"""

import asyncio
import dataclasses
from datetime import datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock

import pytest

from src.pm_account.domain.ledger import PointsLedger
from src.pm_account.domain.models import PointsEntry
from src.pm_amm.domain.models import Reserves
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import (
    DisputeStatus,
    DisputeVoteChoice,
    MarketStatus,
    OutcomeKey,
    PointsReason,
    StakeUnit,
    TradeStatus,
)
from src.pm_common.errors import ActiveDisputeExistsError, AlreadyResolvedError, AlreadyVotedError
from src.pm_common.locks import KeyedLock
from src.pm_dispute.domain.arbiter import DisputeArbiter
from src.pm_dispute.domain.models import Dispute, DisputeRules, DisputeVote, VoteTally
from src.pm_market.domain.models import Market, Outcome
from src.pm_notify.domain.events import Event, EventKind
from src.pm_position.domain.ledger import PositionLedger
from src.pm_position.domain.models import Position
from src.pm_settlement.domain.engine import SettlementEngine
from src.pm_settlement.domain.models import Resolution
from src.pm_trade.domain.executor import TradeExecutor
from src.pm_trade.domain.models import Trade

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakePointsRepo:
    def __init__(self) -> None:
        self.entries: list[PointsEntry] = []
        self.fail_on_credit_refs: set[str] = set()

    def _balance(self, user_id: str) -> int:
        for e in reversed(self.entries):
            if e.user_id == user_id:
                return e.balance_after
        return 0

    def _append(self, user_id: str, delta: int, reason: str, ref_type, ref_id, metadata) -> PointsEntry:
        entry = PointsEntry(
            id=len(self.entries) + 1,
            user_id=user_id,
            delta=delta,
            balance_after=self._balance(user_id) + delta,
            reason=reason,
            ref_type=ref_type,
            ref_id=ref_id,
            metadata=metadata,
            created_at=utc_now(),
        )
        self.entries.append(entry)
        return entry

    async def get_balance(self, db: Any, user_id: str) -> int:
        return self._balance(user_id)

    async def append_debit(self, db, user_id, amount, reason, ref_type, ref_id, metadata):
        await asyncio.sleep(0)
        # Check and write with no await in between, like the single SQL statement
        if self._balance(user_id) < amount:
            return None
        return self._append(user_id, -amount, reason, ref_type, ref_id, metadata)

    async def append_credit(self, db, user_id, amount, reason, ref_type, ref_id, metadata):
        await asyncio.sleep(0)
        if ref_id is not None and ref_id in self.fail_on_credit_refs:
            self.fail_on_credit_refs.discard(ref_id)
            raise RuntimeError(f"simulated store failure on {ref_id}")
        if ref_id is not None and any(
            e.user_id == user_id and e.reason == reason
            and e.ref_type == ref_type and e.ref_id == ref_id
            for e in self.entries
        ):
            return None
        return self._append(user_id, amount, reason, ref_type, ref_id, metadata)

    async def net_delta_for_ref(self, db, user_id, ref_type, ref_id) -> int:
        return sum(
            e.delta for e in self.entries
            if e.user_id == user_id and e.ref_type == ref_type and e.ref_id == ref_id
        )

    async def list_entries(self, db, user_id, cursor_id, limit, reason):
        rows = [
            e for e in reversed(self.entries)
            if e.user_id == user_id
            and (cursor_id is None or e.id < cursor_id)
            and (reason is None or e.reason == reason)
        ]
        return rows[:limit]

    def grant(self, user_id: str, amount: int) -> None:
        self._append(user_id, amount, PointsReason.MONTHLY_GRANT.value, None, None, None)

    def reasons_for(self, user_id: str) -> list[str]:
        return [e.reason for e in self.entries if e.user_id == user_id]


def _blend(avg: float | None, qty: float, price: float, delta: float) -> float:
    if avg is None or qty <= 0:
        return price
    return (avg * qty + price * delta) / (qty + delta)


class FakePositionRepo:
    def __init__(self) -> None:
        self.rows: dict[tuple[str, str, str], Position] = {}
        self.fail_next_upsert: Exception | None = None

    async def get(self, db, user_id, market_id, outcome_id):
        return self.rows.get((user_id, market_id, outcome_id))

    async def upsert_fill(self, db, user_id, market_id, outcome_id, unit, delta, fill_price):
        await asyncio.sleep(0)
        if self.fail_next_upsert is not None:
            exc, self.fail_next_upsert = self.fail_next_upsert, None
            raise exc
        key = (user_id, market_id, outcome_id)
        pos = self.rows.get(key)
        if pos is None:
            pos = Position(id=len(self.rows) + 1, user_id=user_id, market_id=market_id,
                           outcome_id=outcome_id)
            self.rows[key] = pos
        stake_unit = StakeUnit(unit)
        blended = _blend(pos.average(stake_unit), pos.quantity(stake_unit), fill_price, delta)
        if stake_unit == StakeUnit.POINTS:
            pos.avg_price = blended
            pos.qty_points += delta
        else:
            pos.avg_price_token = blended
            pos.qty_token_amount += delta
        return dataclasses.replace(pos)

    async def zero_outcome(self, db, market_id, outcome_id) -> int:
        count = 0
        for pos in self.rows.values():
            if pos.market_id == market_id and pos.outcome_id == outcome_id and pos.is_open:
                pos.realized_pnl_pts -= pos.cost_basis(StakeUnit.POINTS)
                pos.realized_pnl_token -= pos.cost_basis(StakeUnit.TOKEN)
                pos.qty_points = 0.0
                pos.qty_token_amount = 0.0
                count += 1
        return count

    async def add_realized_pnl(self, db, position_id, pnl_points, pnl_token) -> None:
        pos = next(p for p in self.rows.values() if p.id == position_id)
        pos.realized_pnl_pts += pnl_points
        pos.realized_pnl_token += pnl_token

    async def list_for_market(self, db, market_id, after_id, limit, open_only):
        rows = sorted(
            (p for p in self.rows.values()
             if p.market_id == market_id
             and (after_id is None or p.id > after_id)
             and (not open_only or p.is_open)),
            key=lambda p: p.id,
        )
        return [dataclasses.replace(p) for p in rows[:limit]]

    async def list_for_user(self, db, user_id, market_id, after_id, limit):
        rows = sorted(
            (p for p in self.rows.values()
             if p.user_id == user_id
             and (market_id is None or p.market_id == market_id)
             and (after_id is None or p.id < after_id)),
            key=lambda p: p.id,
            reverse=True,
        )
        return [dataclasses.replace(p) for p in rows[:limit]]

    def position(self, user_id: str, market_id: str, outcome_id: str) -> Position | None:
        return self.rows.get((user_id, market_id, outcome_id))


class FakeTradeRepo:
    def __init__(self) -> None:
        self.trades: dict[str, Trade] = {}
        self._fills: list[Trade] = []

    async def create(self, db, trade: Trade) -> Trade:
        await asyncio.sleep(0)
        stored = dataclasses.replace(trade, created_at=utc_now(), updated_at=utc_now())
        self.trades[trade.id] = stored
        return dataclasses.replace(stored)

    async def get(self, db, trade_id: str) -> Trade | None:
        trade = self.trades.get(trade_id)
        return dataclasses.replace(trade) if trade else None

    async def transition(self, db, trade_id, from_status, to_status, failure_reason=None, shares=None):
        await asyncio.sleep(0)
        trade = self.trades.get(trade_id)
        if trade is None or trade.status != from_status:
            return None
        updated = dataclasses.replace(
            trade,
            status=to_status,
            failure_reason=failure_reason if failure_reason is not None else trade.failure_reason,
            shares=shares if shares is not None else trade.shares,
            updated_at=utc_now(),
        )
        self.trades[trade_id] = updated
        if to_status == TradeStatus.FILLED:
            self._fills.append(updated)
        return dataclasses.replace(updated)

    async def last_filled_price(self, db, market_id, outcome_id) -> float | None:
        for t in reversed(self._fills):
            if t.market_id == market_id and t.outcome_id == outcome_id:
                return t.price
        return None


class FakeMarketRepo:
    def __init__(self) -> None:
        self.markets: dict[str, Market] = {}
        self.reserves: dict[str, Reserves] = {}

    def add_market(
        self,
        market_id: str = "mkt-1",
        status: MarketStatus = MarketStatus.OPEN,
        close_at: datetime | None = None,
        resolve_by: datetime | None = None,
        reserves: tuple[float, float] | None = (1000.0, 1000.0),
    ) -> Market:
        market = Market(
            id=market_id,
            title=f"Market {market_id}",
            description=None,
            status=status.value,
            close_at=close_at or utc_now() + timedelta(days=1),
            resolve_by=resolve_by,
            created_by="admin-1",
            outcomes=[
                Outcome(f"{market_id}-yes", market_id, OutcomeKey.YES.value, "Yes"),
                Outcome(f"{market_id}-no", market_id, OutcomeKey.NO.value, "No"),
            ],
        )
        self.markets[market_id] = market
        if reserves is not None:
            self.reserves[market_id] = Reserves(*reserves)
        return market

    async def get_market(self, db, market_id):
        market = self.markets.get(market_id)
        return dataclasses.replace(market) if market else None

    async def create_market(self, db, market, reserves):
        self.markets[market.id] = dataclasses.replace(market, created_at=utc_now())
        if reserves is not None:
            self.reserves[market.id] = reserves
        return dataclasses.replace(self.markets[market.id])

    async def update_status(self, db, market_id, from_status, to_status):
        market = self.markets.get(market_id)
        if market is None or market.status != from_status:
            return None
        market.status = to_status
        return dataclasses.replace(market)

    async def get_outcome(self, db, outcome_id):
        for market in self.markets.values():
            outcome = market.outcome(outcome_id)
            if outcome is not None:
                return outcome
        return None

    async def get_reserves(self, db, market_id, for_update=False):
        return self.reserves.get(market_id)

    async def update_reserves(self, db, market_id, reserves):
        self.reserves[market_id] = reserves


class FakeResolutionRepo:
    def __init__(self) -> None:
        self.by_market: dict[str, Resolution] = {}

    async def create(self, db, resolution: Resolution) -> Resolution:
        await asyncio.sleep(0)
        if resolution.market_id in self.by_market:
            raise AlreadyResolvedError(resolution.market_id)
        self.by_market[resolution.market_id] = dataclasses.replace(resolution)
        return dataclasses.replace(resolution)

    async def get_by_market(self, db, market_id):
        await asyncio.sleep(0)
        resolution = self.by_market.get(market_id)
        return dataclasses.replace(resolution) if resolution else None

    def _by_id(self, resolution_id: str) -> Resolution:
        return next(r for r in self.by_market.values() if r.id == resolution_id)

    async def record_progress(self, db, resolution_id, payouts, points):
        r = self._by_id(resolution_id)
        r.payouts_applied += payouts
        r.points_paid += points

    async def mark_settled(self, db, resolution_id, settled_at):
        r = self._by_id(resolution_id)
        if r.settled_at is not None:
            return None
        r.settled_at = settled_at
        return dataclasses.replace(r)


class FakeDisputeRepo:
    def __init__(self) -> None:
        self.disputes: dict[str, Dispute] = {}
        self.votes: list[DisputeVote] = []

    async def create(self, db, dispute: Dispute) -> Dispute:
        await asyncio.sleep(0)
        if any(d.market_id == dispute.market_id and d.is_active for d in self.disputes.values()):
            raise ActiveDisputeExistsError(dispute.market_id)
        stored = dataclasses.replace(dispute, opened_at=utc_now())
        self.disputes[dispute.id] = stored
        return dataclasses.replace(stored)

    async def get(self, db, dispute_id):
        dispute = self.disputes.get(dispute_id)
        return dataclasses.replace(dispute) if dispute else None

    async def get_active_for_market(self, db, market_id):
        for d in self.disputes.values():
            if d.market_id == market_id and d.is_active:
                return dataclasses.replace(d)
        return None

    async def mark_voting(self, db, dispute_id) -> None:
        dispute = self.disputes[dispute_id]
        if dispute.status == DisputeStatus.OPEN:
            dispute.status = DisputeStatus.VOTING.value

    async def close(self, db, dispute_id, outcome, source, resolved_by, closed_at):
        await asyncio.sleep(0)
        dispute = self.disputes.get(dispute_id)
        if dispute is None or not dispute.is_active:
            return None
        dispute.status = DisputeStatus.RESOLVED.value
        dispute.outcome = outcome
        dispute.resolved_source = source
        dispute.resolved_by = resolved_by
        dispute.closed_at = closed_at
        return dataclasses.replace(dispute)

    async def add_vote(self, db, vote: DisputeVote) -> DisputeVote:
        await asyncio.sleep(0)
        if any(v.dispute_id == vote.dispute_id and v.user_id == vote.user_id for v in self.votes):
            raise AlreadyVotedError(vote.dispute_id)
        stored = dataclasses.replace(vote, id=len(self.votes) + 1, created_at=utc_now())
        self.votes.append(stored)
        return dataclasses.replace(stored)

    async def list_votes(self, db, dispute_id):
        return [dataclasses.replace(v) for v in self.votes if v.dispute_id == dispute_id]

    async def tally(self, db, dispute_id) -> VoteTally:
        tally = VoteTally()
        for v in self.votes:
            if v.dispute_id != dispute_id:
                continue
            tally.votes += 1
            tally.weight += v.weight
            if v.vote == DisputeVoteChoice.UPHOLD:
                tally.uphold_weight += v.weight
            elif v.vote == DisputeVoteChoice.OVERTURN:
                tally.overturn_weight += v.weight
            else:
                tally.abstain_weight += v.weight
        return tally


class RecordingPublisher:
    def __init__(self) -> None:
        self.events: list[Event] = []

    async def publish(self, event: Event) -> None:
        self.events.append(event)

    async def publish_many(self, events: list[Event]) -> None:
        self.events.extend(events)

    def kinds(self) -> list[EventKind]:
        return [e.kind for e in self.events]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def points_repo() -> FakePointsRepo:
    return FakePointsRepo()


@pytest.fixture
def position_repo() -> FakePositionRepo:
    return FakePositionRepo()


@pytest.fixture
def trade_repo() -> FakeTradeRepo:
    return FakeTradeRepo()


@pytest.fixture
def market_repo() -> FakeMarketRepo:
    return FakeMarketRepo()


@pytest.fixture
def resolution_repo() -> FakeResolutionRepo:
    return FakeResolutionRepo()


@pytest.fixture
def dispute_repo() -> FakeDisputeRepo:
    return FakeDisputeRepo()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def points(points_repo: FakePointsRepo) -> PointsLedger:
    return PointsLedger(points_repo)


@pytest.fixture
def positions(position_repo: FakePositionRepo) -> PositionLedger:
    return PositionLedger(position_repo)


@pytest.fixture
def executor(
    market_repo: FakeMarketRepo,
    trade_repo: FakeTradeRepo,
    points: PointsLedger,
    positions: PositionLedger,
    publisher: RecordingPublisher,
) -> TradeExecutor:
    return TradeExecutor(
        market_repo=market_repo,
        trade_repo=trade_repo,
        points=points,
        positions=positions,
        publisher=publisher,
        user_locks=KeyedLock(),
    )


@pytest.fixture
def settlement(
    market_repo: FakeMarketRepo,
    resolution_repo: FakeResolutionRepo,
    points: PointsLedger,
    positions: PositionLedger,
    publisher: RecordingPublisher,
) -> SettlementEngine:
    return SettlementEngine(
        market_repo=market_repo,
        resolution_repo=resolution_repo,
        points=points,
        positions=positions,
        publisher=publisher,
        market_locks=KeyedLock(),
        page_size=2,
    )


# Small participation thresholds so auto-resolution is reachable with a few voters
TEST_DISPUTE_RULES = DisputeRules(auto_min_votes=3, auto_min_weight=5)


@pytest.fixture
def arbiter(
    dispute_repo: FakeDisputeRepo,
    market_repo: FakeMarketRepo,
    resolution_repo: FakeResolutionRepo,
    points: PointsLedger,
    publisher: RecordingPublisher,
) -> DisputeArbiter:
    return DisputeArbiter(
        dispute_repo=dispute_repo,
        market_repo=market_repo,
        resolution_repo=resolution_repo,
        points=points,
        publisher=publisher,
        market_locks=KeyedLock(),
        rules=TEST_DISPUTE_RULES,
    )
