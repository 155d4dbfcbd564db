"""004: create trades table

Revision ID: 004
Revises: 003
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE trades (
            id                  VARCHAR(64)         PRIMARY KEY,
            user_id             VARCHAR(64)         NOT NULL,
            market_id           VARCHAR(64)         NOT NULL REFERENCES markets(id),
            outcome_id          VARCHAR(64)         NOT NULL REFERENCES market_outcomes(id),
            side                VARCHAR(10)         NOT NULL,
            price               DOUBLE PRECISION    NOT NULL,
            stake_unit          VARCHAR(10)         NOT NULL,
            stake_points        BIGINT,
            stake_token_amount  DOUBLE PRECISION,
            token_symbol        VARCHAR(20),
            status              VARCHAR(20)         NOT NULL DEFAULT 'PENDING',
            shares              DOUBLE PRECISION,
            failure_reason      VARCHAR(500),
            filled_at           TIMESTAMPTZ,
            created_at          TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_trades_price_range CHECK (price >= 0.01 AND price <= 0.99),
            CONSTRAINT ck_trades_side CHECK (side IN ('YES', 'NO', 'BUY', 'SELL')),
            CONSTRAINT ck_trades_status CHECK (
                status IN ('PENDING', 'FILLED', 'FAILED', 'CANCELLED')
            ),
            CONSTRAINT ck_trades_unit CHECK (stake_unit IN ('POINTS', 'TOKEN')),
            CONSTRAINT ck_trades_stake_exactly_one CHECK (
                (stake_points IS NOT NULL AND stake_points > 0 AND stake_token_amount IS NULL)
                OR (stake_token_amount IS NOT NULL AND stake_token_amount > 0
                    AND stake_points IS NULL AND token_symbol IS NOT NULL)
            )
        );
    """)
    op.execute("CREATE INDEX idx_trades_user ON trades (user_id, created_at DESC);")
    op.execute("""
        CREATE INDEX idx_trades_last_fill
        ON trades (market_id, outcome_id, status, filled_at DESC);
    """)
    op.execute("""
        CREATE TRIGGER trg_trades_updated_at
            BEFORE UPDATE ON trades
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS trades CASCADE;")
