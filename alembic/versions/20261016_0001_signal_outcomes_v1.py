"""Create signal, outcome, skip and meta tables for outcome resolution v1."""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "20261016_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """
    Apply outcome resolution v1 storage schema.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Timestamps are epoch milliseconds stored as BIGINT; `0` means "not set".
    Raises:
        Exception: Postgres execution errors from Alembic runtime.
    Side Effects:
        Creates signals, signal_outcomes, outcome_skips, outcome_meta tables and indexes.
    """
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS signals (
            signal_id BIGSERIAL PRIMARY KEY,
            symbol TEXT NOT NULL,
            category TEXT NOT NULL,
            time BIGINT NOT NULL,
            price DOUBLE PRECISION NOT NULL,
            stop DOUBLE PRECISION NULL,
            tp1 DOUBLE PRECISION NULL,
            tp2 DOUBLE PRECISION NULL,
            config_hash TEXT NOT NULL DEFAULT '',
            entry_time BIGINT NOT NULL DEFAULT 0,
            entry_candle_open_time BIGINT NOT NULL DEFAULT 0,
            entry_rule TEXT NULL,
            vwap DOUBLE PRECISION NULL,
            atr_pct DOUBLE PRECISION NULL,
            rr DOUBLE PRECISION NULL,
            rr_est DOUBLE PRECISION NULL,
            delta_vwap_pct DOUBLE PRECISION NULL,
            vol_spike DOUBLE PRECISION NULL,
            rsi9 DOUBLE PRECISION NULL,
            session_ok BOOLEAN NULL,
            sweep_ok BOOLEAN NULL,
            btc_bear BOOLEAN NULL,
            config_snapshot JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at BIGINT NOT NULL,
            updated_at BIGINT NOT NULL,
            CONSTRAINT signals_natural_key_uq UNIQUE (symbol, category, time, config_hash)
        )
        """
    )
    op.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_signals_category_time
            ON signals (category, time DESC, signal_id DESC)
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS signal_outcomes (
            signal_id BIGINT NOT NULL REFERENCES signals (signal_id) ON DELETE CASCADE,
            horizon_min INTEGER NOT NULL,
            entry_time BIGINT NOT NULL DEFAULT 0,
            entry_candle_open_time BIGINT NOT NULL DEFAULT 0,
            entry_rule TEXT NOT NULL DEFAULT 'signal_close',
            start_time BIGINT NOT NULL,
            end_time BIGINT NOT NULL,
            interval_min INTEGER NOT NULL,
            n_candles INTEGER NOT NULL DEFAULT 0,
            n_candles_expected INTEGER NOT NULL DEFAULT 0,
            coverage_pct DOUBLE PRECISION NOT NULL DEFAULT 0,
            entry_price DOUBLE PRECISION NOT NULL,
            open_price DOUBLE PRECISION NOT NULL,
            close_price DOUBLE PRECISION NOT NULL,
            max_high DOUBLE PRECISION NOT NULL,
            min_low DOUBLE PRECISION NOT NULL,
            ret_pct DOUBLE PRECISION NOT NULL DEFAULT 0,
            r_mult DOUBLE PRECISION NOT NULL DEFAULT 0,
            r_close DOUBLE PRECISION NOT NULL DEFAULT 0,
            r_mfe DOUBLE PRECISION NOT NULL DEFAULT 0,
            r_mae DOUBLE PRECISION NOT NULL DEFAULT 0,
            r_realized DOUBLE PRECISION NOT NULL DEFAULT 0,
            hit_sl BOOLEAN NOT NULL DEFAULT FALSE,
            hit_tp1 BOOLEAN NOT NULL DEFAULT FALSE,
            hit_tp2 BOOLEAN NOT NULL DEFAULT FALSE,
            tp1_hit_time BIGINT NOT NULL DEFAULT 0,
            sl_hit_time BIGINT NOT NULL DEFAULT 0,
            tp2_hit_time BIGINT NOT NULL DEFAULT 0,
            time_to_first_hit_ms BIGINT NOT NULL DEFAULT 0,
            bars_to_exit INTEGER NOT NULL DEFAULT 0,
            mfe_pct DOUBLE PRECISION NOT NULL DEFAULT 0,
            mae_pct DOUBLE PRECISION NOT NULL DEFAULT 0,
            result TEXT NOT NULL DEFAULT 'PENDING',
            exit_reason TEXT NULL,
            outcome_driver TEXT NULL,
            trade_state TEXT NOT NULL DEFAULT 'PENDING',
            exit_price DOUBLE PRECISION NOT NULL DEFAULT 0,
            exit_time BIGINT NOT NULL DEFAULT 0,
            window_status TEXT NOT NULL,
            outcome_state TEXT NOT NULL,
            invalid_levels BOOLEAN NOT NULL DEFAULT FALSE,
            invalid_reason TEXT NULL,
            ambiguous BOOLEAN NOT NULL DEFAULT FALSE,
            expired_after_15m BOOLEAN NOT NULL DEFAULT FALSE,
            expired_reason TEXT NULL,
            attempted_at BIGINT NOT NULL DEFAULT 0,
            computed_at BIGINT NOT NULL DEFAULT 0,
            resolved_at BIGINT NOT NULL DEFAULT 0,
            resolve_version TEXT NULL,
            prev_snapshot TEXT NULL,
            outcome_debug_json TEXT NULL,
            PRIMARY KEY (signal_id, horizon_min),
            CONSTRAINT signal_outcomes_window_status_chk
                CHECK (window_status IN ('COMPLETE', 'PARTIAL', 'INVALID')),
            CONSTRAINT signal_outcomes_result_chk
                CHECK (result IN ('WIN', 'LOSS', 'NONE', 'PENDING')),
            CONSTRAINT signal_outcomes_horizon_chk CHECK (horizon_min > 0)
        )
        """
    )
    op.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_signal_outcomes_horizon_status
            ON signal_outcomes (horizon_min, window_status, invalid_reason)
        """
    )
    op.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_signal_outcomes_resolved_at
            ON signal_outcomes (resolved_at)
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS outcome_skips (
            signal_id BIGINT NOT NULL,
            horizon_min INTEGER NOT NULL,
            reason TEXT NOT NULL,
            created_at BIGINT NOT NULL,
            PRIMARY KEY (signal_id, horizon_min)
        )
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS outcome_meta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at BIGINT NOT NULL
        )
        """
    )


def downgrade() -> None:
    """
    Revert outcome resolution v1 storage schema.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Downgrade order drops dependent tables first.
    Raises:
        Exception: Postgres execution errors from Alembic runtime.
    Side Effects:
        Drops meta, skips, outcomes and signals tables.
    """
    op.execute("DROP TABLE IF EXISTS outcome_meta")
    op.execute("DROP TABLE IF EXISTS outcome_skips")
    op.execute("DROP TABLE IF EXISTS signal_outcomes")
    op.execute("DROP TABLE IF EXISTS signals")
