"""001: create common functions and market tables

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_update_timestamp()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TABLE markets (
            id              VARCHAR(64)     PRIMARY KEY,
            title           VARCHAR(500)    NOT NULL,
            description     TEXT,
            status          VARCHAR(20)     NOT NULL DEFAULT 'DRAFT',
            close_at        TIMESTAMPTZ,
            resolve_by      TIMESTAMPTZ,
            created_by      VARCHAR(64)     NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_markets_status CHECK (
                status IN ('DRAFT', 'OPEN', 'CLOSED', 'RESOLVED', 'DISPUTED', 'CANCELLED')
            ),
            CONSTRAINT ck_markets_resolve_after_close CHECK (
                resolve_by IS NULL OR close_at IS NULL OR resolve_by >= close_at
            )
        );
    """)
    op.execute("CREATE INDEX idx_markets_status ON markets (status);")
    op.execute("""
        CREATE TRIGGER trg_markets_updated_at
            BEFORE UPDATE ON markets
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE market_outcomes (
            id              VARCHAR(64)     PRIMARY KEY,
            market_id       VARCHAR(64)     NOT NULL REFERENCES markets(id),
            outcome_key     VARCHAR(10)     NOT NULL,
            label           VARCHAR(200)    NOT NULL,
            CONSTRAINT ck_outcomes_key CHECK (outcome_key IN ('YES', 'NO')),
            CONSTRAINT uq_outcomes_market_key UNIQUE (market_id, outcome_key)
        );
    """)

    op.execute("""
        CREATE TABLE market_reserves (
            market_id       VARCHAR(64)         PRIMARY KEY REFERENCES markets(id),
            yes_shares      DOUBLE PRECISION    NOT NULL,
            no_shares       DOUBLE PRECISION    NOT NULL,
            k               DOUBLE PRECISION    NOT NULL,
            updated_at      TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_reserves_yes_gte_0 CHECK (yes_shares >= 0),
            CONSTRAINT ck_reserves_no_gte_0 CHECK (no_shares >= 0),
            CONSTRAINT ck_reserves_k_gt_0 CHECK (k > 0)
        );
    """)
    op.execute("COMMENT ON TABLE market_reserves IS 'CPMM pool per market; k is the seeded invariant';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS market_reserves CASCADE;")
    op.execute("DROP TABLE IF EXISTS market_outcomes CASCADE;")
    op.execute("DROP TABLE IF EXISTS markets CASCADE;")
    op.execute("DROP FUNCTION IF EXISTS fn_update_timestamp();")
