"""003: create positions table

Revision ID: 003
Revises: 002
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE positions (
            id                  BIGSERIAL           PRIMARY KEY,
            user_id             VARCHAR(64)         NOT NULL,
            market_id           VARCHAR(64)         NOT NULL REFERENCES markets(id),
            outcome_id          VARCHAR(64)         NOT NULL REFERENCES market_outcomes(id),
            qty_points          DOUBLE PRECISION    NOT NULL DEFAULT 0,
            qty_token_amount    DOUBLE PRECISION    NOT NULL DEFAULT 0,
            avg_price           DOUBLE PRECISION,
            avg_price_token     DOUBLE PRECISION,
            realized_pnl_pts    DOUBLE PRECISION    NOT NULL DEFAULT 0,
            realized_pnl_token  DOUBLE PRECISION    NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_positions_user_market_outcome UNIQUE (user_id, market_id, outcome_id),
            CONSTRAINT ck_positions_qty_points_gte_0 CHECK (qty_points >= 0),
            CONSTRAINT ck_positions_qty_token_gte_0 CHECK (qty_token_amount >= 0),
            CONSTRAINT ck_positions_avg_price CHECK (
                avg_price IS NULL OR (avg_price > 0 AND avg_price < 1)
            ),
            CONSTRAINT ck_positions_avg_price_token CHECK (
                avg_price_token IS NULL OR (avg_price_token > 0 AND avg_price_token < 1)
            )
        );
    """)
    op.execute("CREATE INDEX idx_positions_market ON positions (market_id, id);")
    op.execute("CREATE INDEX idx_positions_user ON positions (user_id, id DESC);")
    op.execute("""
        CREATE TRIGGER trg_positions_updated_at
            BEFORE UPDATE ON positions
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS positions CASCADE;")
