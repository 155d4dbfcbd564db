"""005: create market_resolutions table

Revision ID: 005
Revises: 004
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE market_resolutions (
            id                  VARCHAR(64)     PRIMARY KEY,
            market_id           VARCHAR(64)     NOT NULL REFERENCES markets(id),
            winning_outcome_id  VARCHAR(64)     NOT NULL REFERENCES market_outcomes(id),
            source              VARCHAR(20)     NOT NULL,
            oracle_tx_hash      VARCHAR(128),
            notes               TEXT,
            resolved_by         VARCHAR(64)     NOT NULL,
            resolved_at         TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            settled_at          TIMESTAMPTZ,
            payouts_applied     INT             NOT NULL DEFAULT 0,
            points_paid         BIGINT          NOT NULL DEFAULT 0,
            CONSTRAINT uq_resolutions_market UNIQUE (market_id),
            CONSTRAINT ck_resolutions_source CHECK (
                source IN ('MANUAL', 'ORACLE', 'COMMUNITY')
            ),
            CONSTRAINT ck_resolutions_oracle_hash CHECK (
                source <> 'ORACLE' OR oracle_tx_hash IS NOT NULL
            )
        );
    """)
    op.execute("COMMENT ON TABLE market_resolutions IS 'One row per resolved market';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS market_resolutions CASCADE;")
