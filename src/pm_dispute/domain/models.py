"""Domain models for pm_dispute — pure dataclasses and the voting rules."""

from dataclasses import dataclass
from datetime import datetime

from src.pm_account.domain.models import PointsCredit
from src.pm_common.enums import (
    DisputeOutcome,
    DisputeStatus,
    DisputeVoteChoice,
    PointsReason,
)

DISPUTE_REF_TYPE = "dispute"


@dataclass(frozen=True)
class DisputeRules:
    stake: int = 1000
    window_hours: int = 48
    min_vote_balance: int = 100
    points_per_weight: int = 100
    max_vote_weight: int = 10
    auto_min_votes: int = 10
    auto_min_weight: int = 50
    reward_per_weight: int = 50
    success_payout: int = 1500


@dataclass
class Dispute:
    id: str
    market_id: str
    resolution_id: str
    opened_by: str
    reason: str
    stake: int                       # points debited from the opener
    status: str = DisputeStatus.OPEN.value
    snapshot_ref: str | None = None
    outcome: str | None = None
    resolved_source: str | None = None
    resolved_by: str | None = None
    opened_at: datetime | None = None
    closed_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status in (DisputeStatus.OPEN, DisputeStatus.VOTING)


@dataclass
class DisputeVote:
    id: int
    dispute_id: str
    user_id: str
    vote: str                        # DisputeVoteChoice value
    weight: int
    created_at: datetime | None = None


@dataclass
class VoteTally:
    votes: int = 0
    weight: int = 0
    uphold_weight: int = 0
    overturn_weight: int = 0
    abstain_weight: int = 0

    def decide(self, min_votes: int, min_weight: int) -> DisputeOutcome | None:
        """Outcome once participation is reached and one side holds a weight majority."""
        if self.votes < min_votes or self.weight < min_weight:
            return None
        required = self.weight // 2 + 1
        if self.overturn_weight >= required:
            return DisputeOutcome.OVERTURNED
        if self.uphold_weight >= required:
            return DisputeOutcome.UPHELD
        return None


@dataclass
class DisputeResult:
    dispute: Dispute
    market_status: str
    rewards_applied: int = 0
    points_rewarded: int = 0


def vote_weight(balance: int, points_per_weight: int, max_weight: int) -> int:
    return min(balance // points_per_weight, max_weight)


def dispute_rewards(
    dispute: Dispute,
    votes: list[DisputeVote],
    outcome: DisputeOutcome,
    reward_per_weight: int,
    success_payout: int,
) -> list[PointsCredit]:
    """Credits owed when a dispute closes with `outcome`.

    Voters on the winning side earn reward_per_weight per unit of weight; a
    dismissal counts as the resolution standing, so UPHOLD voters win. The
    opener gets success_payout only when the resolution is overturned,
    otherwise the stake stays forfeit.
    """
    winning_vote = (
        DisputeVoteChoice.OVERTURN if outcome == DisputeOutcome.OVERTURNED
        else DisputeVoteChoice.UPHOLD
    )
    credits = [
        PointsCredit(
            user_id=v.user_id,
            amount=v.weight * reward_per_weight,
            reason=PointsReason.DISPUTE_VOTE_CORRECT.value,
            ref_type=DISPUTE_REF_TYPE,
            ref_id=dispute.id,
            metadata={"vote": v.vote, "weight": v.weight, "outcome": outcome.value},
        )
        for v in votes
        if v.vote == winning_vote
    ]
    if outcome == DisputeOutcome.OVERTURNED:
        credits.append(
            PointsCredit(
                user_id=dispute.opened_by,
                amount=success_payout,
                reason=PointsReason.DISPUTE_SUCCESSFUL.value,
                ref_type=DISPUTE_REF_TYPE,
                ref_id=dispute.id,
                metadata={"outcome": outcome.value, "stake": dispute.stake},
            )
        )
    return credits
