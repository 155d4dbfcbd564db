"""SettlementEngine — exactly-once market resolution and payout.

Phase 1  one commit: insert the resolution row and move the market
         CLOSED → RESOLVED. Neither fact exists without the other.
Phase 2  page through open positions (keyset on id). Per page, in one
         commit: credit every winning position, book its payout minus
         cost basis as realized P&L, and liquidate each losing outcome
         the first time it is seen. A position held in points is paid
         floor(qty_points); one held only in tokens is paid
         floor(qty_token_amount).
Phase 3  stamp settled_at and publish market.resolved.

Every payout is keyed on (reason, position id) in the points ledger, so a
page that is replayed after a crash credits nothing twice. Realized P&L is
booked only for credits the ledger actually applied, so resume_settlement is
safe to call any number of times.
"""

import logging
import math
import uuid
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pm_account.domain.ledger import PointsLedger
from src.pm_account.domain.models import PointsCredit
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import MarketStatus, PointsReason, ResolutionSource
from src.pm_common.errors import (
    AlreadyResolvedError,
    MarketNotFoundError,
    MarketNotResolvableError,
    OutcomeNotFoundError,
    ResolutionNotFoundError,
    ValidationError,
)
from src.pm_common.locks import KeyedLock
from src.pm_market.domain.lifecycle import check_transition
from src.pm_market.domain.repository import MarketRepositoryProtocol
from src.pm_market.infrastructure.persistence import MarketRepository
from src.pm_notify.domain.events import Event, payout_event, resolution_event
from src.pm_notify.domain.publisher import EventPublisherProtocol
from src.pm_position.domain.ledger import PositionLedger
from src.pm_position.domain.models import Position
from src.pm_settlement.domain.models import (
    Eligibility,
    Resolution,
    ResolveCommand,
    SettlementReport,
)
from src.pm_settlement.domain.repository import ResolutionRepositoryProtocol
from src.pm_settlement.infrastructure.persistence import ResolutionRepository

logger = logging.getLogger(__name__)

PAYOUT_REF_TYPE = "position"


def payout_for(position: Position) -> int:
    """Winning payout in whole points. Floor, never round."""
    return math.floor(position.quantity(position.settled_unit))


class SettlementEngine:
    def __init__(
        self,
        market_repo: MarketRepositoryProtocol | None = None,
        resolution_repo: ResolutionRepositoryProtocol | None = None,
        points: PointsLedger | None = None,
        positions: PositionLedger | None = None,
        publisher: EventPublisherProtocol | None = None,
        market_locks: KeyedLock | None = None,
        page_size: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._markets: MarketRepositoryProtocol = market_repo or MarketRepository()
        self._resolutions: ResolutionRepositoryProtocol = (
            resolution_repo or ResolutionRepository()
        )
        self._points = points or PointsLedger()
        self._positions = positions or PositionLedger()
        self._publisher = publisher
        self._market_locks = market_locks or KeyedLock()
        self._page_size = page_size or settings.SETTLEMENT_PAGE_SIZE
        self._clock = clock

    async def resolve_market(self, db: AsyncSession, cmd: ResolveCommand) -> SettlementReport:
        async with self._market_locks.hold(cmd.market_id):
            resolution = await self._record_resolution(db, cmd)
            return await self._settle(db, resolution)

    async def resume_settlement(self, db: AsyncSession, market_id: str) -> SettlementReport:
        """Re-drive payouts for an existing resolution. Already-paid positions are skipped."""
        async with self._market_locks.hold(market_id):
            resolution = await self._resolutions.get_by_market(db, market_id)
            if resolution is None:
                raise ResolutionNotFoundError(market_id)
            return await self._settle(db, resolution)

    async def get_resolution(self, db: AsyncSession, market_id: str) -> Resolution:
        resolution = await self._resolutions.get_by_market(db, market_id)
        if resolution is None:
            raise ResolutionNotFoundError(market_id)
        return resolution

    async def check_eligibility(self, db: AsyncSession, market_id: str) -> Eligibility:
        """Advisory pre-check for admin tooling; resolve_market enforces its own rules."""
        market = await self._markets.get_market(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        if await self._resolutions.get_by_market(db, market_id) is not None:
            return Eligibility(market_id, False, ["Market already resolved"])

        requirements: list[str] = []
        if market.status != MarketStatus.CLOSED:
            requirements.append(f"Market must be CLOSED (status={market.status})")
        if market.resolve_by is not None and self._clock() < market.resolve_by:
            requirements.append(f"Must wait until {market.resolve_by.isoformat()}")
        return Eligibility(market_id, not requirements, requirements)

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------

    async def _record_resolution(self, db: AsyncSession, cmd: ResolveCommand) -> Resolution:
        source = ResolutionSource(cmd.source)
        if source == ResolutionSource.ORACLE and not cmd.oracle_tx_hash:
            raise ValidationError("Oracle resolutions require oracle_tx_hash")

        market = await self._markets.get_market(db, cmd.market_id)
        if market is None:
            raise MarketNotFoundError(cmd.market_id)
        if market.status in (MarketStatus.RESOLVED, MarketStatus.DISPUTED):
            raise AlreadyResolvedError(market.id)
        if await self._resolutions.get_by_market(db, market.id) is not None:
            raise AlreadyResolvedError(market.id)
        if market.status != MarketStatus.CLOSED:
            raise MarketNotResolvableError(market.id, market.status)
        if market.outcome(cmd.winning_outcome_id) is None:
            raise OutcomeNotFoundError(cmd.winning_outcome_id)
        check_transition(market.status, MarketStatus.RESOLVED, by_settlement=True)

        try:
            resolution = await self._resolutions.create(
                db,
                Resolution(
                    id=uuid.uuid4().hex,
                    market_id=market.id,
                    winning_outcome_id=cmd.winning_outcome_id,
                    source=source.value,
                    resolved_by=cmd.resolved_by,
                    resolved_at=self._clock(),
                    oracle_tx_hash=cmd.oracle_tx_hash,
                    notes=cmd.notes,
                ),
            )
            updated = await self._markets.update_status(
                db, market.id, MarketStatus.CLOSED.value, MarketStatus.RESOLVED.value
            )
            if updated is None:
                raise AlreadyResolvedError(market.id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Market resolved: market=%s winner=%s source=%s by=%s resolution=%s",
            market.id, resolution.winning_outcome_id, resolution.source,
            resolution.resolved_by, resolution.id,
        )
        return resolution

    # ------------------------------------------------------------------
    # Phases 2 and 3
    # ------------------------------------------------------------------

    async def _settle(self, db: AsyncSession, resolution: Resolution) -> SettlementReport:
        market_id = resolution.market_id
        winner = resolution.winning_outcome_id
        report = SettlementReport(
            market_id=market_id,
            resolution_id=resolution.id,
            winning_outcome_id=winner,
        )
        liquidated: set[str] = set()

        async for page in self._positions.iter_market_pages(db, market_id, self._page_size):
            credits: list[PointsCredit] = []
            losers: list[str] = []
            by_ref: dict[str, Position] = {}
            for position in page.items:
                report.positions_scanned += 1
                if position.outcome_id == winner:
                    amount = payout_for(position)
                    if amount > 0:
                        credit = self._payout_credit(resolution, position, amount)
                        credits.append(credit)
                        by_ref[credit.ref_id] = position
                elif position.outcome_id not in liquidated and position.outcome_id not in losers:
                    losers.append(position.outcome_id)

            try:
                applied = await self._points.bulk_credit(db, credits)
                for entry in applied:
                    position = by_ref[entry.ref_id]
                    await self._positions.realize(
                        db, position, entry.delta, position.settled_unit
                    )
                for outcome_id in losers:
                    await self._positions.liquidate(db, market_id, outcome_id)
                paid = sum(e.delta for e in applied)
                if applied:
                    await self._resolutions.record_progress(
                        db, resolution.id, len(applied), paid
                    )
                await db.commit()
            except Exception:
                await db.rollback()
                logger.exception(
                    "Settlement page failed: market=%s after page %d; safe to resume",
                    market_id, report.pages,
                )
                raise

            liquidated.update(losers)
            report.outcomes_liquidated.extend(losers)
            report.pages += 1
            report.payouts_applied += len(applied)
            report.payouts_skipped += len(credits) - len(applied)
            report.points_paid += paid
            logger.info(
                "Settlement checkpoint: market=%s page=%d positions=%d paid=%d points=%d",
                market_id, report.pages, len(page.items), len(applied), paid,
            )
            await self._publish(
                [payout_event(e.user_id, e.delta, e.balance_after, e.reason) for e in applied]
            )

        settled = await self._finish(db, resolution)
        report.settled_at = settled.settled_at if settled else resolution.settled_at
        return report

    async def _finish(self, db: AsyncSession, resolution: Resolution) -> Resolution | None:
        try:
            settled = await self._resolutions.mark_settled(db, resolution.id, self._clock())
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if settled is None:
            return None
        logger.info(
            "Settlement complete: market=%s resolution=%s payouts=%d points=%d",
            settled.market_id, settled.id, settled.payouts_applied, settled.points_paid,
        )
        await self._publish(
            [
                resolution_event(
                    settled.market_id,
                    settled.winning_outcome_id,
                    settled.id,
                    settled.resolved_at,
                )
            ]
        )
        return settled

    def _payout_credit(
        self, resolution: Resolution, position: Position, amount: int
    ) -> PointsCredit:
        return PointsCredit(
            user_id=position.user_id,
            amount=amount,
            reason=PointsReason.MARKET_RESOLUTION_WIN.value,
            ref_type=PAYOUT_REF_TYPE,
            ref_id=str(position.id),
            metadata={
                "market_id": resolution.market_id,
                "position_id": position.id,
                "outcome_id": position.outcome_id,
                "resolution_id": resolution.id,
                "quantity": position.quantity(position.settled_unit),
                "unit": position.settled_unit.value,
                "payout_rate": 1,
            },
        )

    async def _publish(self, events: list[Event]) -> None:
        if self._publisher is not None and events:
            await self._publisher.publish_many(events)
