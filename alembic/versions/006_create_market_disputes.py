"""006: create market_disputes and dispute_votes tables

Revision ID: 006
Revises: 005
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE market_disputes (
            id                  VARCHAR(64)     PRIMARY KEY,
            market_id           VARCHAR(64)     NOT NULL REFERENCES markets(id),
            resolution_id       VARCHAR(64)     NOT NULL REFERENCES market_resolutions(id),
            opened_by           VARCHAR(64)     NOT NULL,
            reason              TEXT            NOT NULL,
            snapshot_ref        VARCHAR(256),
            stake               BIGINT          NOT NULL,
            status              VARCHAR(20)     NOT NULL DEFAULT 'OPEN',
            outcome             VARCHAR(20),
            resolved_source     VARCHAR(20),
            resolved_by         VARCHAR(64),
            opened_at           TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            closed_at           TIMESTAMPTZ,
            CONSTRAINT ck_disputes_status CHECK (status IN ('OPEN', 'VOTING', 'RESOLVED')),
            CONSTRAINT ck_disputes_outcome CHECK (
                outcome IS NULL OR outcome IN ('UPHELD', 'OVERTURNED', 'DISMISSED')
            ),
            CONSTRAINT ck_disputes_source CHECK (
                resolved_source IS NULL OR resolved_source IN ('AUTO', 'ADMIN')
            ),
            CONSTRAINT ck_disputes_closed CHECK (
                (status = 'RESOLVED') = (outcome IS NOT NULL AND closed_at IS NOT NULL)
            ),
            CONSTRAINT ck_disputes_stake_gt_0 CHECK (stake > 0)
        );
    """)
    # At most one OPEN/VOTING dispute per market
    op.execute("""
        CREATE UNIQUE INDEX uq_disputes_active_market
        ON market_disputes (market_id)
        WHERE status IN ('OPEN', 'VOTING');
    """)
    op.execute("CREATE INDEX idx_disputes_market ON market_disputes (market_id, opened_at DESC);")

    op.execute("""
        CREATE TABLE dispute_votes (
            id              BIGSERIAL       PRIMARY KEY,
            dispute_id      VARCHAR(64)     NOT NULL REFERENCES market_disputes(id),
            user_id         VARCHAR(64)     NOT NULL,
            vote            VARCHAR(20)     NOT NULL,
            weight          INT             NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_dispute_votes_user UNIQUE (dispute_id, user_id),
            CONSTRAINT ck_dispute_votes_vote CHECK (vote IN ('UPHOLD', 'OVERTURN', 'ABSTAIN')),
            CONSTRAINT ck_dispute_votes_weight_gt_0 CHECK (weight > 0)
        );
    """)
    op.execute("COMMENT ON TABLE market_disputes IS 'Challenges to a recorded resolution';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS dispute_votes CASCADE;")
    op.execute("DROP TABLE IF EXISTS market_disputes CASCADE;")
