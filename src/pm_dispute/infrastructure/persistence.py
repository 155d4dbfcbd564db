"""DisputeRepository — concrete implementation of DisputeRepositoryProtocol.

A partial unique index allows one OPEN/VOTING dispute per market, and
(dispute_id, user_id) is unique on votes, so racing openers and double
voters are turned away by the store rather than by a read-then-write check.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.errors import ActiveDisputeExistsError, AlreadyVotedError, InternalError
from src.pm_dispute.domain.models import Dispute, DisputeVote, VoteTally

_DISPUTE_COLUMNS = """
    id, market_id, resolution_id, opened_by, reason, snapshot_ref, stake,
    status, outcome, resolved_source, resolved_by, opened_at, closed_at
"""

_INSERT_SQL = text(f"""
    INSERT INTO market_disputes
        (id, market_id, resolution_id, opened_by, reason, snapshot_ref, stake, status)
    VALUES
        (:id, :market_id, :resolution_id, :opened_by, :reason, :snapshot_ref, :stake, 'OPEN')
    RETURNING {_DISPUTE_COLUMNS}
""")

_GET_SQL = text(f"""
    SELECT {_DISPUTE_COLUMNS}
    FROM market_disputes
    WHERE id = :dispute_id
""")

_GET_ACTIVE_SQL = text(f"""
    SELECT {_DISPUTE_COLUMNS}
    FROM market_disputes
    WHERE market_id = :market_id AND status IN ('OPEN', 'VOTING')
""")

_MARK_VOTING_SQL = text("""
    UPDATE market_disputes
    SET status = 'VOTING'
    WHERE id = :dispute_id AND status = 'OPEN'
""")

_CLOSE_SQL = text(f"""
    UPDATE market_disputes
    SET status = 'RESOLVED',
        outcome = :outcome,
        resolved_source = :source,
        resolved_by = :resolved_by,
        closed_at = :closed_at
    WHERE id = :dispute_id AND status IN ('OPEN', 'VOTING')
    RETURNING {_DISPUTE_COLUMNS}
""")

_VOTE_COLUMNS = "id, dispute_id, user_id, vote, weight, created_at"

_INSERT_VOTE_SQL = text(f"""
    INSERT INTO dispute_votes (dispute_id, user_id, vote, weight)
    VALUES (:dispute_id, :user_id, :vote, :weight)
    RETURNING {_VOTE_COLUMNS}
""")

_LIST_VOTES_SQL = text(f"""
    SELECT {_VOTE_COLUMNS}
    FROM dispute_votes
    WHERE dispute_id = :dispute_id
    ORDER BY id ASC
""")

_TALLY_SQL = text("""
    SELECT
        COUNT(*)                                                    AS votes,
        COALESCE(SUM(weight), 0)                                    AS weight,
        COALESCE(SUM(weight) FILTER (WHERE vote = 'UPHOLD'), 0)     AS uphold_weight,
        COALESCE(SUM(weight) FILTER (WHERE vote = 'OVERTURN'), 0)   AS overturn_weight,
        COALESCE(SUM(weight) FILTER (WHERE vote = 'ABSTAIN'), 0)    AS abstain_weight
    FROM dispute_votes
    WHERE dispute_id = :dispute_id
""")


def _row_to_dispute(row: object) -> Dispute:
    return Dispute(
        id=row.id,  # type: ignore[attr-defined]
        market_id=row.market_id,  # type: ignore[attr-defined]
        resolution_id=row.resolution_id,  # type: ignore[attr-defined]
        opened_by=row.opened_by,  # type: ignore[attr-defined]
        reason=row.reason,  # type: ignore[attr-defined]
        snapshot_ref=row.snapshot_ref,  # type: ignore[attr-defined]
        stake=row.stake,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        outcome=row.outcome,  # type: ignore[attr-defined]
        resolved_source=row.resolved_source,  # type: ignore[attr-defined]
        resolved_by=row.resolved_by,  # type: ignore[attr-defined]
        opened_at=row.opened_at,  # type: ignore[attr-defined]
        closed_at=row.closed_at,  # type: ignore[attr-defined]
    )


def _row_to_vote(row: object) -> DisputeVote:
    return DisputeVote(
        id=row.id,  # type: ignore[attr-defined]
        dispute_id=row.dispute_id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        vote=row.vote,  # type: ignore[attr-defined]
        weight=row.weight,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class DisputeRepository:
    async def create(self, db: AsyncSession, dispute: Dispute) -> Dispute:
        try:
            result = await db.execute(
                _INSERT_SQL,
                {
                    "id": dispute.id,
                    "market_id": dispute.market_id,
                    "resolution_id": dispute.resolution_id,
                    "opened_by": dispute.opened_by,
                    "reason": dispute.reason,
                    "snapshot_ref": dispute.snapshot_ref,
                    "stake": dispute.stake,
                },
            )
        except IntegrityError:
            raise ActiveDisputeExistsError(dispute.market_id) from None
        row = result.fetchone()
        if row is None:
            raise InternalError("Dispute insert returned no rows")
        return _row_to_dispute(row)

    async def get(self, db: AsyncSession, dispute_id: str) -> Dispute | None:
        result = await db.execute(_GET_SQL, {"dispute_id": dispute_id})
        row = result.fetchone()
        return _row_to_dispute(row) if row else None

    async def get_active_for_market(
        self, db: AsyncSession, market_id: str
    ) -> Dispute | None:
        result = await db.execute(_GET_ACTIVE_SQL, {"market_id": market_id})
        row = result.fetchone()
        return _row_to_dispute(row) if row else None

    async def mark_voting(self, db: AsyncSession, dispute_id: str) -> None:
        await db.execute(_MARK_VOTING_SQL, {"dispute_id": dispute_id})

    async def close(
        self,
        db: AsyncSession,
        dispute_id: str,
        outcome: str,
        source: str,
        resolved_by: str | None,
        closed_at: datetime,
    ) -> Dispute | None:
        result = await db.execute(
            _CLOSE_SQL,
            {
                "dispute_id": dispute_id,
                "outcome": outcome,
                "source": source,
                "resolved_by": resolved_by,
                "closed_at": closed_at,
            },
        )
        row = result.fetchone()
        return _row_to_dispute(row) if row else None

    async def add_vote(self, db: AsyncSession, vote: DisputeVote) -> DisputeVote:
        try:
            result = await db.execute(
                _INSERT_VOTE_SQL,
                {
                    "dispute_id": vote.dispute_id,
                    "user_id": vote.user_id,
                    "vote": vote.vote,
                    "weight": vote.weight,
                },
            )
        except IntegrityError:
            raise AlreadyVotedError(vote.dispute_id) from None
        row = result.fetchone()
        if row is None:
            raise InternalError("Vote insert returned no rows")
        return _row_to_vote(row)

    async def list_votes(self, db: AsyncSession, dispute_id: str) -> list[DisputeVote]:
        result = await db.execute(_LIST_VOTES_SQL, {"dispute_id": dispute_id})
        return [_row_to_vote(row) for row in result.fetchall()]

    async def tally(self, db: AsyncSession, dispute_id: str) -> VoteTally:
        result = await db.execute(_TALLY_SQL, {"dispute_id": dispute_id})
        row = result.fetchone()
        if row is None:
            return VoteTally()
        return VoteTally(
            votes=int(row.votes),
            weight=int(row.weight),
            uphold_weight=int(row.uphold_weight),
            overturn_weight=int(row.overturn_weight),
            abstain_weight=int(row.abstain_weight),
        )
