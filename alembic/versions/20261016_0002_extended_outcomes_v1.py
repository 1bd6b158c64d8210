"""Create extended_outcomes table for 24-hour TP1 -> TP2 tracking."""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "20261016_0002"
down_revision = "20261016_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """
    Apply extended outcome storage schema.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Timestamps are epoch milliseconds stored as BIGINT; `0` means "not set".
    Raises:
        Exception: Postgres execution errors from Alembic runtime.
    Side Effects:
        Creates extended_outcomes table and its open-row index.
    """
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS extended_outcomes (
            signal_id BIGINT PRIMARY KEY REFERENCES signals (signal_id) ON DELETE CASCADE,
            symbol TEXT NOT NULL,
            category TEXT NOT NULL,
            signal_time BIGINT NOT NULL,
            expires_at BIGINT NOT NULL,
            entry_price DOUBLE PRECISION NOT NULL,
            stop_price DOUBLE PRECISION NOT NULL,
            tp1_price DOUBLE PRECISION NOT NULL,
            tp2_price DOUBLE PRECISION NOT NULL,
            status TEXT NOT NULL DEFAULT 'PENDING',
            trade_state TEXT NOT NULL DEFAULT 'PENDING',
            exit_price DOUBLE PRECISION NULL,
            exit_time BIGINT NOT NULL DEFAULT 0,
            first_tp1_at BIGINT NOT NULL DEFAULT 0,
            tp2_at BIGINT NOT NULL DEFAULT 0,
            stop_at BIGINT NOT NULL DEFAULT 0,
            mfe_pct DOUBLE PRECISION NOT NULL DEFAULT 0,
            mae_pct DOUBLE PRECISION NOT NULL DEFAULT 0,
            coverage_pct DOUBLE PRECISION NOT NULL DEFAULT 0,
            n_candles_evaluated INTEGER NOT NULL DEFAULT 0,
            n_candles_expected INTEGER NOT NULL DEFAULT 0,
            managed_status TEXT NOT NULL DEFAULT 'PENDING',
            managed_r DOUBLE PRECISION NULL,
            managed_pnl_usd DOUBLE PRECISION NULL,
            live_managed_r DOUBLE PRECISION NULL,
            runner_be_at BIGINT NOT NULL DEFAULT 0,
            runner_exit_at BIGINT NOT NULL DEFAULT 0,
            runner_exit_reason TEXT NULL,
            risk_usd DOUBLE PRECISION NOT NULL DEFAULT 0,
            completed_at BIGINT NOT NULL DEFAULT 0,
            last_evaluated_at BIGINT NOT NULL DEFAULT 0,
            resolve_version TEXT NULL,
            debug_json TEXT NULL,
            CONSTRAINT extended_outcomes_status_chk CHECK (
                status IN (
                    'PENDING', 'ACHIEVED_TP1', 'LOSS_STOP',
                    'WIN_TP1', 'WIN_TP2', 'FLAT_TIMEOUT_24H'
                )
            ),
            CONSTRAINT extended_outcomes_window_chk CHECK (expires_at > signal_time)
        )
        """
    )
    op.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_extended_outcomes_open
            ON extended_outcomes (last_evaluated_at, signal_id)
            WHERE completed_at = 0
        """
    )


def downgrade() -> None:
    """
    Revert extended outcome storage schema.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        None.
    Raises:
        Exception: Postgres execution errors from Alembic runtime.
    Side Effects:
        Drops extended_outcomes table.
    """
    op.execute("DROP TABLE IF EXISTS extended_outcomes")
