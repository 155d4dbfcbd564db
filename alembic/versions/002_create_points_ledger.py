"""002: create points_ledger table

Revision ID: 002
Revises: 001
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE points_ledger (
            id              BIGSERIAL       PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            delta           BIGINT          NOT NULL,
            balance_after   BIGINT          NOT NULL,
            reason          VARCHAR(40)     NOT NULL,
            ref_type        VARCHAR(30),
            ref_id          VARCHAR(64),
            metadata        JSONB,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_points_reason CHECK (
                reason IN (
                    'monthly_grant', 'bet_placed', 'bet_refund',
                    'bet_cancelled', 'market_resolution_win',
                    'dispute_opened', 'dispute_vote_correct', 'dispute_successful'
                )
            ),
            CONSTRAINT ck_points_delta_ne_0 CHECK (delta <> 0),
            CONSTRAINT ck_points_balance_gte_0 CHECK (balance_after >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_points_user_id ON points_ledger (user_id, id DESC);")
    op.execute("""
        CREATE UNIQUE INDEX uq_points_reason_ref
        ON points_ledger (user_id, reason, ref_type, ref_id)
        WHERE ref_id IS NOT NULL;
    """)
    op.execute("COMMENT ON TABLE points_ledger IS 'Append-only; balance is the latest balance_after';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS points_ledger CASCADE;")
