"""DisputeArbiter — challenges to a recorded resolution.

    RESOLVED ──open──► DISPUTED ──UPHELD / DISMISSED──► RESOLVED
                           │
                           └──────OVERTURNED──────────► CLOSED

Opening debits the opener's stake in the same commit that creates the
dispute and moves the market to DISPUTED. Votes are weighted by the voter's
balance; once participation thresholds are met a weight majority closes the
dispute automatically, otherwise an admin closes it. Closing moves the
market, marks the dispute RESOLVED and credits rewards in one commit;
rewards are idempotent on (reason, dispute id).

An overturned market is back in CLOSED, but payouts already made stay put
and the market keeps its resolution row, so it cannot be settled again.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pm_account.domain.ledger import PointsLedger
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import (
    DisputeOutcome,
    DisputeResolutionSource,
    DisputeStatus,
    DisputeVoteChoice,
    MarketStatus,
    PointsReason,
)
from src.pm_common.errors import (
    ActiveDisputeExistsError,
    DisputeNotActiveError,
    DisputeNotFoundError,
    DisputeWindowClosedError,
    InsufficientBalanceError,
    InvalidStateError,
    MarketNotDisputableError,
    MarketNotFoundError,
    ResolutionNotFoundError,
)
from src.pm_common.locks import KeyedLock
from src.pm_dispute.domain.models import (
    DISPUTE_REF_TYPE,
    Dispute,
    DisputeResult,
    DisputeRules,
    DisputeVote,
    VoteTally,
    dispute_rewards,
    vote_weight,
)
from src.pm_dispute.domain.repository import DisputeRepositoryProtocol
from src.pm_dispute.infrastructure.persistence import DisputeRepository
from src.pm_market.domain.lifecycle import check_transition
from src.pm_market.domain.repository import MarketRepositoryProtocol
from src.pm_market.infrastructure.persistence import MarketRepository
from src.pm_notify.domain.events import (
    Event,
    dispute_opened_event,
    dispute_resolved_event,
    payout_event,
)
from src.pm_notify.domain.publisher import EventPublisherProtocol
from src.pm_settlement.domain.repository import ResolutionRepositoryProtocol
from src.pm_settlement.infrastructure.persistence import ResolutionRepository

logger = logging.getLogger(__name__)


def rules_from_settings() -> DisputeRules:
    return DisputeRules(
        stake=settings.DISPUTE_STAKE_POINTS,
        window_hours=settings.DISPUTE_WINDOW_HOURS,
        min_vote_balance=settings.DISPUTE_MIN_VOTE_BALANCE,
        points_per_weight=settings.DISPUTE_POINTS_PER_WEIGHT,
        max_vote_weight=settings.DISPUTE_MAX_VOTE_WEIGHT,
        auto_min_votes=settings.DISPUTE_AUTO_MIN_VOTES,
        auto_min_weight=settings.DISPUTE_AUTO_MIN_WEIGHT,
        reward_per_weight=settings.DISPUTE_VOTE_REWARD_PER_WEIGHT,
        success_payout=settings.DISPUTE_SUCCESS_PAYOUT,
    )


class DisputeArbiter:
    def __init__(
        self,
        dispute_repo: DisputeRepositoryProtocol | None = None,
        market_repo: MarketRepositoryProtocol | None = None,
        resolution_repo: ResolutionRepositoryProtocol | None = None,
        points: PointsLedger | None = None,
        publisher: EventPublisherProtocol | None = None,
        market_locks: KeyedLock | None = None,
        rules: DisputeRules | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._disputes: DisputeRepositoryProtocol = dispute_repo or DisputeRepository()
        self._markets: MarketRepositoryProtocol = market_repo or MarketRepository()
        self._resolutions: ResolutionRepositoryProtocol = (
            resolution_repo or ResolutionRepository()
        )
        self._points = points or PointsLedger()
        self._publisher = publisher
        self._market_locks = market_locks or KeyedLock()
        self._rules = rules or rules_from_settings()
        self._clock = clock

    # ------------------------------------------------------------------
    # Open
    # ------------------------------------------------------------------

    async def open_dispute(
        self,
        db: AsyncSession,
        market_id: str,
        user_id: str,
        reason: str,
        snapshot_ref: str | None = None,
    ) -> Dispute:
        async with self._market_locks.hold(market_id):
            market = await self._markets.get_market(db, market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            if market.status == MarketStatus.DISPUTED:
                raise ActiveDisputeExistsError(market_id)
            if market.status != MarketStatus.RESOLVED:
                raise MarketNotDisputableError(market_id, market.status)
            resolution = await self._resolutions.get_by_market(db, market_id)
            if resolution is None:
                raise ResolutionNotFoundError(market_id)
            if self._clock() - resolution.resolved_at > timedelta(hours=self._rules.window_hours):
                raise DisputeWindowClosedError(market_id, self._rules.window_hours)
            check_transition(market.status, MarketStatus.DISPUTED, by_dispute=True)

            pending = Dispute(
                id=uuid.uuid4().hex,
                market_id=market_id,
                resolution_id=resolution.id,
                opened_by=user_id,
                reason=reason,
                snapshot_ref=snapshot_ref,
                stake=self._rules.stake,
            )
            try:
                # Debit first: an opener short of the stake writes nothing
                entry = await self._points.debit(
                    db,
                    user_id,
                    self._rules.stake,
                    PointsReason.DISPUTE_OPENED.value,
                    ref_type=DISPUTE_REF_TYPE,
                    ref_id=pending.id,
                    metadata={"market_id": market_id, "resolution_id": resolution.id},
                )
                dispute = await self._disputes.create(db, pending)
                updated = await self._markets.update_status(
                    db, market_id, MarketStatus.RESOLVED.value, MarketStatus.DISPUTED.value
                )
                if updated is None:
                    raise ActiveDisputeExistsError(market_id)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(
            "Dispute opened: id=%s market=%s user=%s stake=%d",
            dispute.id, market_id, user_id, dispute.stake,
        )
        await self._publish(
            [
                dispute_opened_event(market_id, dispute.id, user_id),
                payout_event(user_id, entry.delta, entry.balance_after, entry.reason),
            ]
        )
        return dispute

    # ------------------------------------------------------------------
    # Vote
    # ------------------------------------------------------------------

    async def cast_vote(
        self, db: AsyncSession, dispute_id: str, user_id: str, vote: DisputeVoteChoice
    ) -> DisputeVote:
        """Record one weighted vote, then close the dispute if the tally decides it."""
        dispute = await self._get(db, dispute_id)
        async with self._market_locks.hold(dispute.market_id):
            dispute = await self._get(db, dispute_id)
            if not dispute.is_active:
                raise DisputeNotActiveError(dispute_id, dispute.status)
            balance = await self._points.balance(db, user_id)
            if balance < self._rules.min_vote_balance:
                raise InsufficientBalanceError(self._rules.min_vote_balance, balance)
            weight = vote_weight(
                balance, self._rules.points_per_weight, self._rules.max_vote_weight
            )

            try:
                recorded = await self._disputes.add_vote(
                    db,
                    DisputeVote(
                        id=0,
                        dispute_id=dispute_id,
                        user_id=user_id,
                        vote=vote.value,
                        weight=weight,
                    ),
                )
                if dispute.status == DisputeStatus.OPEN:
                    await self._disputes.mark_voting(db, dispute_id)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
            logger.info(
                "Dispute vote cast: dispute=%s user=%s vote=%s weight=%d",
                dispute_id, user_id, vote.value, weight,
            )

            tally = await self._disputes.tally(db, dispute_id)
            outcome = tally.decide(self._rules.auto_min_votes, self._rules.auto_min_weight)
            if outcome is not None:
                await self._close(db, dispute, outcome, DisputeResolutionSource.AUTO, None)
        return recorded

    # ------------------------------------------------------------------
    # Resolve
    # ------------------------------------------------------------------

    async def resolve_dispute(
        self, db: AsyncSession, dispute_id: str, outcome: DisputeOutcome, resolved_by: str
    ) -> DisputeResult:
        dispute = await self._get(db, dispute_id)
        async with self._market_locks.hold(dispute.market_id):
            dispute = await self._get(db, dispute_id)
            return await self._close(
                db, dispute, outcome, DisputeResolutionSource.ADMIN, resolved_by
            )

    async def get_dispute(self, db: AsyncSession, dispute_id: str) -> tuple[Dispute, VoteTally]:
        dispute = await self._get(db, dispute_id)
        return dispute, await self._disputes.tally(db, dispute_id)

    async def _get(self, db: AsyncSession, dispute_id: str) -> Dispute:
        dispute = await self._disputes.get(db, dispute_id)
        if dispute is None:
            raise DisputeNotFoundError(dispute_id)
        return dispute

    async def _close(
        self,
        db: AsyncSession,
        dispute: Dispute,
        outcome: DisputeOutcome,
        source: DisputeResolutionSource,
        resolved_by: str | None,
    ) -> DisputeResult:
        if not dispute.is_active:
            raise DisputeNotActiveError(dispute.id, dispute.status)
        target = (
            MarketStatus.CLOSED if outcome == DisputeOutcome.OVERTURNED
            else MarketStatus.RESOLVED
        )
        check_transition(MarketStatus.DISPUTED, target, by_dispute=True)

        try:
            closed = await self._disputes.close(
                db, dispute.id, outcome.value, source.value, resolved_by, self._clock()
            )
            if closed is None:
                raise DisputeNotActiveError(dispute.id, DisputeStatus.RESOLVED.value)
            updated = await self._markets.update_status(
                db, dispute.market_id, MarketStatus.DISPUTED.value, target.value
            )
            if updated is None:
                raise InvalidStateError(f"Market {dispute.market_id} is no longer DISPUTED")
            votes = await self._disputes.list_votes(db, dispute.id)
            credits = dispute_rewards(
                closed, votes, outcome, self._rules.reward_per_weight, self._rules.success_payout
            )
            applied = await self._points.bulk_credit(db, credits)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        rewarded = sum(e.delta for e in applied)
        logger.info(
            "Dispute resolved: id=%s market=%s outcome=%s source=%s by=%s rewards=%d points=%d",
            dispute.id, dispute.market_id, outcome.value, source.value, resolved_by,
            len(applied), rewarded,
        )
        events = [
            dispute_resolved_event(
                dispute.market_id, dispute.id, outcome.value, source.value, target.value
            )
        ]
        events.extend(payout_event(e.user_id, e.delta, e.balance_after, e.reason) for e in applied)
        await self._publish(events)
        return DisputeResult(
            dispute=closed,
            market_status=target.value,
            rewards_applied=len(applied),
            points_rewarded=rewarded,
        )

    async def _publish(self, events: list[Event]) -> None:
        if self._publisher is not None and events:
            await self._publisher.publish_many(events)
